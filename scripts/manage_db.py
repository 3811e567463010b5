#!/usr/bin/env python3
"""
Management script for the XP minting engine: database and award commands.
"""

import asyncio
import json
import sys
from pathlib import Path
from dataclasses import replace
from typing import Optional

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

import typer
from rich.console import Console
from rich.table import Table

from alembic.config import Config
from alembic import command
from xp_minting.core.config import AwardConfig
from xp_minting.core.database import init_database, close_database, DatabaseManager
from xp_minting.core.exceptions import XPMintingException
from xp_minting.core.logging import setup_logging, get_logger
from xp_minting.services.daily_award_service import DailyAwardService
from xp_minting.services.awards.blockchain import PointsLedgerClient
from xp_minting.utils.validation import is_valid_period_key, validate_wallet_address

console = Console()
logger = get_logger(__name__)
app = typer.Typer(help="XP minting management commands")


def _check_day(day: Optional[str]) -> None:
    if day is not None and not is_valid_period_key(day):
        console.print(f"❌ Invalid day: {day} (expected YYYY-MM-DD)")
        raise typer.Exit(code=2)


@app.command("init-db")
def init_db():
    """Create all tables directly (without migrations)."""
    async def _init():
        setup_logging()
        await init_database()
        await DatabaseManager.create_tables()
        await close_database()
        console.print("✅ Database initialized successfully!")

    asyncio.run(_init())


@app.command("drop-db")
def drop_db(yes: bool = typer.Option(False, "--yes", help="Skip confirmation")):
    """Drop all tables."""
    if not yes and not typer.confirm("Are you sure you want to drop all tables?"):
        console.print("❌ Operation cancelled")
        return

    async def _drop():
        setup_logging()
        await init_database()
        await DatabaseManager.drop_tables()
        await close_database()
        console.print("🗑️ All tables dropped!")

    asyncio.run(_drop())


@app.command()
def upgrade(revision: str = "head"):
    """Apply migrations."""
    command.upgrade(Config("alembic.ini"), revision)
    console.print(f"✅ Database upgraded to: {revision}")


@app.command()
def downgrade(revision: str):
    """Downgrade database to specific revision."""
    command.downgrade(Config("alembic.ini"), revision)
    console.print(f"⬇️ Database downgraded to: {revision}")


@app.command()
def health():
    """Check database health."""
    async def _health() -> bool:
        setup_logging()
        await init_database()
        try:
            return await DatabaseManager.health_check()
        finally:
            await close_database()

    if asyncio.run(_health()):
        console.print("✅ Database is healthy!")
    else:
        console.print("❌ Database health check failed!")
        raise typer.Exit(code=1)


@app.command("run-award")
def run_award(
    day: Optional[str] = typer.Option(None, help="UTC day YYYY-MM-DD (defaults to today)"),
    shadow: bool = typer.Option(False, "--shadow", help="Force shadow mode (no ledger calls)")
):
    """Run the daily award once."""
    _check_day(day)

    async def _run():
        setup_logging()
        await init_database()
        try:
            config = AwardConfig.from_settings()
            if shadow:
                config = replace(config, award_onchain=False)
            service = DailyAwardService(config)
            await service.initialize()
            return await service.run(day)
        finally:
            await close_database()

    results = asyncio.run(_run())

    table = Table(title=f"Daily award {results.period_key}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Processed", str(results.processed))
    table.add_row("Successful", str(results.successful))
    table.add_row("Failed", str(results.failed))
    table.add_row("Duration", f"{results.duration_seconds:.2f}s")
    table.add_row("Aborted", "yes" if results.aborted else "no")
    console.print(table)

    for error in results.errors:
        console.print(f"[red]• {error}[/red]")

    if results.aborted:
        raise typer.Exit(code=1)


@app.command()
def stats(day: Optional[str] = typer.Option(None, help="UTC day YYYY-MM-DD (defaults to today)")):
    """Show award log stats for a day."""
    _check_day(day)

    async def _stats():
        setup_logging()
        await init_database()
        try:
            return await DailyAwardService(AwardConfig.from_settings()).get_period_stats(day)
        finally:
            await close_database()

    period_stats = asyncio.run(_stats())

    table = Table(title=f"Award stats {period_stats.period_key} ({period_stats.action_kind})")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Attempts", str(period_stats.total_attempts))
    table.add_row("Confirmed", str(period_stats.confirmed))
    table.add_row("Already applied", str(period_stats.already_applied))
    table.add_row("Granted off-ledger", str(period_stats.granted_off_ledger))
    table.add_row("Failed", str(period_stats.failed))
    table.add_row("Pending", str(period_stats.pending))
    table.add_row("Distinct subjects", str(period_stats.distinct_subjects))
    table.add_row("Total amount", str(period_stats.total_amount))
    console.print(table)


@app.command()
def logs(
    address: str,
    day: Optional[str] = typer.Option(None, help="Restrict to one UTC day"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON rows")
):
    """Show award history of one address."""
    _check_day(day)
    if not validate_wallet_address(address):
        console.print(f"❌ Invalid EVM address: {address}")
        raise typer.Exit(code=2)

    async def _logs():
        setup_logging()
        await init_database()
        try:
            return await DailyAwardService(AwardConfig.from_settings()).get_subject_logs(address, day)
        finally:
            await close_database()

    entries = asyncio.run(_logs())

    if as_json:
        console.print_json(json.dumps([entry.to_dict() for entry in entries]))
        return

    table = Table(title=f"Award logs {address.lower()}")
    for column in ("Created", "Period", "Outcome", "On ledger", "Amount", "Tx hash", "Error"):
        table.add_column(column)
    for entry in entries:
        table.add_row(
            entry.created_at.isoformat(timespec="seconds"),
            entry.period_key,
            entry.outcome,
            "✅" if entry.confirmed_on_ledger else "-",
            str(entry.amount),
            entry.tx_hash or "",
            entry.error_message or ""
        )
    console.print(table)


@app.command()
def balance(address: str):
    """Read an address's total on the Points ledger."""
    if not validate_wallet_address(address):
        console.print(f"❌ Invalid EVM address: {address}")
        raise typer.Exit(code=2)

    async def _balance() -> int:
        setup_logging()
        return await PointsLedgerClient(AwardConfig.from_settings()).total_of(address)

    try:
        total = asyncio.run(_balance())
    except XPMintingException as e:
        console.print(f"❌ {e.message}")
        raise typer.Exit(code=1)

    console.print(f"💰 {address.lower()}: {total}")


if __name__ == "__main__":
    app()
