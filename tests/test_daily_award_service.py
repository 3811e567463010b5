"""
Tests for the daily award service facade.
"""

import asyncio

import pytest

from xp_minting.core.exceptions import AwardRunInProgressError
from xp_minting.services.awards.core import AwardRunResults
from xp_minting.services.daily_award_service import DailyAwardService


class BlockingOrchestrator:
    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.periods = []

    async def run_daily_award(self, period_key=None):
        self.periods.append(period_key)
        self.started.set()
        await self.release.wait()
        return AwardRunResults(period_key=period_key, processed=1, successful=1)


@pytest.mark.asyncio
async def test_second_concurrent_run_is_rejected(shadow_config):
    orchestrator = BlockingOrchestrator()
    service = DailyAwardService(shadow_config, orchestrator=orchestrator)

    first = asyncio.create_task(service.run("2024-03-01"))
    await orchestrator.started.wait()
    assert service.is_running

    with pytest.raises(AwardRunInProgressError):
        await service.run("2024-03-01")

    orchestrator.release.set()
    results = await first

    assert results.processed == 1
    assert service.last_results is results
    assert not service.is_running
    assert orchestrator.periods == ["2024-03-01"]


@pytest.mark.asyncio
async def test_run_defaults_to_current_period(shadow_config):
    orchestrator = BlockingOrchestrator()
    orchestrator.release.set()
    service = DailyAwardService(shadow_config, orchestrator=orchestrator)

    results = await service.run()

    assert len(results.period_key) == 10
    assert orchestrator.periods == [results.period_key]


@pytest.mark.asyncio
async def test_end_to_end_shadow_run_and_queries(database, shadow_config):
    from datetime import datetime
    from tests.conftest import ADDRESS_A, add_user

    await add_user(ADDRESS_A, datetime(2024, 3, 1, 12, 0))
    service = DailyAwardService(shadow_config)

    results = await service.run("2024-03-01")
    stats = await service.get_period_stats("2024-03-01")
    logs = await service.get_subject_logs(ADDRESS_A.upper().replace("0X", "0x"), "2024-03-01")

    assert results.successful == 1
    assert stats.granted_off_ledger == 1
    assert [entry.outcome for entry in logs] == ["granted_off_ledger"]
