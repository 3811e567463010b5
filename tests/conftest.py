"""
Shared fixtures: in-memory database and a fake Points ledger.
"""

from datetime import datetime
from typing import List, Optional

import pytest
import pytest_asyncio

from xp_minting.core.config import AwardConfig
from xp_minting.core.database import init_database, close_database, get_async_session, DatabaseManager
from xp_minting.models.user import User
from xp_minting.services.awards.blockchain.points_contract import LedgerReceipt, PreparedAward


ADDRESS_A = "0x" + "a" * 40
ADDRESS_B = "0x" + "b" * 40
ADDRESS_C = "0x" + "c" * 40


@pytest_asyncio.fixture
async def database():
    """Fresh in-memory SQLite schema per test."""
    await init_database("sqlite+aiosqlite://")
    await DatabaseManager.create_tables()
    yield
    await close_database()


async def add_user(wallet_address: Optional[str], last_login: Optional[datetime], username: str = None) -> User:
    async with get_async_session() as session:
        user = User(username=username, wallet_address=wallet_address, last_login=last_login)
        session.add(user)
        await session.flush()
        return user


class FakeLedgerClient:
    """
    In-memory Points contract.

    Mirrors the contract guard: an action id can be consumed once; building
    a transaction for a consumed id is rejected like a failed gas estimate.
    """

    def __init__(self):
        self.consumed = set()
        self.totals = {}
        self.build_calls: List[tuple] = []
        self.sent: List[tuple] = []
        self.build_errors: List[BaseException] = []
        self.failing_addresses = {}
        self.receipt_status = 1
        self.replay_error: Optional[BaseException] = None
        self.receipt_delay: Optional[float] = None

    async def build_award_transaction(self, address: str, amount: int, action_id: str) -> PreparedAward:
        from web3.exceptions import ContractLogicError

        self.build_calls.append((address, amount, action_id))
        if self.build_errors:
            raise self.build_errors.pop(0)
        if address in self.failing_addresses:
            raise self.failing_addresses[address]
        if action_id in self.consumed:
            raise ContractLogicError("execution reverted: ActionId used")
        payload = f"{address}|{amount}|{action_id}".encode()
        return PreparedAward(raw_transaction=payload, nonce=len(self.sent), sender="0x" + "5" * 40)

    async def send_transaction(self, prepared: PreparedAward) -> str:
        address, amount, action_id = prepared.raw_transaction.decode().split("|")
        self.sent.append((address, int(amount), action_id))
        if self.receipt_status == 1:
            self.consumed.add(action_id)
            self.totals[address] = self.totals.get(address, 0) + int(amount)
        return "0x" + format(len(self.sent), "064x")

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> LedgerReceipt:
        if self.receipt_delay is not None:
            import asyncio
            await asyncio.sleep(self.receipt_delay)
        return LedgerReceipt(tx_hash=tx_hash, status=self.receipt_status, block_number=len(self.sent))

    async def replay_award(self, address: str, amount: int, action_id: str, block_number: Optional[int]) -> None:
        if self.replay_error is not None:
            raise self.replay_error


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def fake_ledger() -> FakeLedgerClient:
    return FakeLedgerClient()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def onchain_config() -> AwardConfig:
    return AwardConfig(
        award_onchain=True,
        private_key="0x" + "1" * 64,
        points_address="0x" + "2" * 40,
        daily_amount=10,
        batch_size=50,
        pacing_seconds=0.2,
        submission_timeout=5.0,
        build_max_attempts=3,
        backoff_base_seconds=1.0,
    )


@pytest.fixture
def shadow_config() -> AwardConfig:
    return AwardConfig(award_onchain=False, daily_amount=10)
