"""
Tests for the daily award orchestrator.
"""

from dataclasses import replace
from datetime import datetime
from typing import List

import pytest
from web3.exceptions import ContractLogicError

from xp_minting.core.exceptions import AuditLogWriteError, EligibilityQueryError
from xp_minting.models.award_log import ActionKind, AwardStatus
from xp_minting.services.awards.core import AwardOutcome, Subject, derive_action_id
from xp_minting.services.awards.core.orchestrator import AwardOrchestrator
from xp_minting.services.awards.database import AwardLogRepository
from xp_minting.services.awards.transactions import LedgerAwarder
from tests.conftest import ADDRESS_A, ADDRESS_B, ADDRESS_C, add_user


PERIOD = "2024-03-01"


def _orchestrator(config, ledger=None, sleep=None, **kwargs) -> AwardOrchestrator:
    awarder = kwargs.pop("awarder", None) or LedgerAwarder(config, ledger_client=ledger, sleep=sleep)
    return AwardOrchestrator(config, awarder=awarder, sleep=sleep, **kwargs)


async def _seed_active(*addresses: str):
    for hour, address in enumerate(addresses, start=1):
        await add_user(address, datetime(2024, 3, 1, hour, 0))


class StaticSelector:
    def __init__(self, subjects: List[Subject]):
        self.subjects = subjects

    async def select_eligible(self, period_key, action_kind):
        return list(self.subjects)


class FailingSelector:
    async def select_eligible(self, period_key, action_kind):
        raise EligibilityQueryError(period_key, "connection refused")


class ScriptedAwarder:
    def __init__(self, outcomes=None, raise_for=()):
        self.outcomes = outcomes or {}
        self.raise_for = set(raise_for)
        self.calls = []

    async def award(self, address, amount, action_id):
        self.calls.append((address, amount, action_id))
        if address in self.raise_for:
            raise RuntimeError("socket closed")
        return self.outcomes.get(address, AwardOutcome.confirmed("0x" + "1" * 64))


class NullLogRepository:
    def __init__(self, error: Exception = None):
        self.error = error
        self.attempts = []

    async def log_attempt(self, attempt):
        self.attempts.append(attempt)
        if self.error:
            raise self.error


@pytest.mark.asyncio
async def test_no_eligible_subjects_returns_zero_counts(database, onchain_config, fake_ledger):
    results = await _orchestrator(onchain_config, fake_ledger).run_daily_award(PERIOD)

    assert (results.processed, results.successful, results.failed) == (0, 0, 0)
    assert results.errors == []
    assert not results.aborted


@pytest.mark.asyncio
async def test_scenario_single_active_subject_then_nothing_left(database, onchain_config, fake_ledger, recording_sleep):
    await add_user(ADDRESS_A, datetime(2024, 3, 1, 8, 0))
    await add_user(ADDRESS_B, datetime(2024, 2, 28, 23, 0))
    orchestrator = _orchestrator(onchain_config, fake_ledger, recording_sleep)

    first = await orchestrator.run_daily_award(PERIOD)
    second = await orchestrator.run_daily_award(PERIOD)

    assert (first.processed, first.successful, first.failed) == (1, 1, 0)
    assert second.processed == 0
    assert fake_ledger.sent == [(ADDRESS_A, 10, derive_action_id(ADDRESS_A, ActionKind.DAILY_LOGIN, PERIOD))]


@pytest.mark.asyncio
async def test_at_most_one_confirmation_across_runs(database, onchain_config, fake_ledger, recording_sleep):
    await _seed_active(ADDRESS_A, ADDRESS_B)
    orchestrator = _orchestrator(onchain_config, fake_ledger, recording_sleep)

    for _ in range(3):
        await orchestrator.run_daily_award(PERIOD)

    repository = AwardLogRepository()
    for address in (ADDRESS_A, ADDRESS_B):
        rows = await repository.query_by_subject(address, PERIOD)
        assert len([row for row in rows if row.confirmed_on_ledger]) == 1
    assert fake_ledger.totals == {ADDRESS_A: 10, ADDRESS_B: 10}


@pytest.mark.asyncio
async def test_failed_subject_is_retried_with_same_identifier(database, onchain_config, fake_ledger, recording_sleep):
    await _seed_active(ADDRESS_A)
    fake_ledger.build_errors.append(ContractLogicError("execution reverted: Pausable: paused"))
    orchestrator = _orchestrator(onchain_config, fake_ledger, recording_sleep)

    first = await orchestrator.run_daily_award(PERIOD)
    second = await orchestrator.run_daily_award(PERIOD)

    assert (first.successful, first.failed) == (0, 1)
    assert (second.successful, second.failed) == (1, 0)

    expected_id = derive_action_id(ADDRESS_A, ActionKind.DAILY_LOGIN, PERIOD)
    assert [call[2] for call in fake_ledger.build_calls] == [expected_id, expected_id]

    rows = await AwardLogRepository().query_by_subject(ADDRESS_A, PERIOD)
    assert [row.outcome for row in rows] == [AwardStatus.CONFIRMED.value, AwardStatus.FAILED.value]
    assert len([row for row in rows if row.confirmed_on_ledger]) == 1
    assert {row.action_id for row in rows} == {expected_id}


@pytest.mark.asyncio
async def test_award_landed_but_not_logged_is_recovered_as_already_applied(database, onchain_config, fake_ledger, recording_sleep):
    await _seed_active(ADDRESS_A)
    fake_ledger.consumed.add(derive_action_id(ADDRESS_A, ActionKind.DAILY_LOGIN, PERIOD))
    orchestrator = _orchestrator(onchain_config, fake_ledger, recording_sleep)

    results = await orchestrator.run_daily_award(PERIOD)
    again = await orchestrator.run_daily_award(PERIOD)

    assert (results.successful, results.failed) == (1, 0)
    assert again.processed == 0
    assert fake_ledger.sent == []

    rows = await AwardLogRepository().query_by_subject(ADDRESS_A, PERIOD)
    assert [(row.outcome, row.confirmed_on_ledger, row.tx_hash) for row in rows] == [
        (AwardStatus.ALREADY_APPLIED.value, True, None)
    ]


@pytest.mark.asyncio
async def test_partial_failure_is_isolated(database, onchain_config, fake_ledger, recording_sleep):
    await _seed_active(ADDRESS_A, ADDRESS_B)
    fake_ledger.failing_addresses[ADDRESS_A] = ContractLogicError("execution reverted: blocked")
    orchestrator = _orchestrator(onchain_config, fake_ledger, recording_sleep)

    results = await orchestrator.run_daily_award(PERIOD)

    assert (results.processed, results.successful, results.failed) == (2, 1, 1)
    assert len(results.errors) == 1
    assert results.errors[0].startswith(f"{ADDRESS_A}: ")
    assert "blocked" in results.errors[0]
    assert [sent[0] for sent in fake_ledger.sent] == [ADDRESS_B]


@pytest.mark.asyncio
async def test_shadow_mode_grants_without_ledger_or_pacing(database, shadow_config, recording_sleep):
    await _seed_active(ADDRESS_A, ADDRESS_B)
    awarder = LedgerAwarder(shadow_config)
    orchestrator = _orchestrator(shadow_config, sleep=recording_sleep, awarder=awarder)

    results = await orchestrator.run_daily_award(PERIOD)

    assert awarder.ledger is None
    assert (results.processed, results.successful, results.failed) == (2, 2, 0)
    assert recording_sleep.calls == []

    stats = await AwardLogRepository().query_by_period(PERIOD)
    assert stats.granted_off_ledger == 2
    assert stats.confirmed_on_ledger == 0


@pytest.mark.asyncio
async def test_shadow_grants_do_not_block_later_runs(database, shadow_config):
    await _seed_active(ADDRESS_A)
    orchestrator = _orchestrator(shadow_config, awarder=LedgerAwarder(shadow_config))

    await orchestrator.run_daily_award(PERIOD)
    again = await orchestrator.run_daily_award(PERIOD)

    assert again.processed == 1


@pytest.mark.asyncio
async def test_onchain_runs_are_paced_between_subjects(database, onchain_config, fake_ledger, recording_sleep):
    await _seed_active(ADDRESS_A, ADDRESS_B, ADDRESS_C)

    await _orchestrator(onchain_config, fake_ledger, recording_sleep).run_daily_award(PERIOD)

    assert recording_sleep.calls == [0.2, 0.2]


@pytest.mark.asyncio
async def test_subjects_processed_across_batches_in_order(onchain_config, recording_sleep):
    subjects = [Subject(address="0x" + format(i, "040x")) for i in range(5)]
    awarder = ScriptedAwarder()
    orchestrator = AwardOrchestrator(
        replace(onchain_config, batch_size=2),
        selector=StaticSelector(subjects),
        awarder=awarder,
        log_repository=NullLogRepository(),
        sleep=recording_sleep
    )

    results = await orchestrator.run_daily_award(PERIOD)

    assert results.processed == 5
    assert [call[0] for call in awarder.calls] == [s.address for s in subjects]
    assert len(recording_sleep.calls) == 4


@pytest.mark.asyncio
async def test_selector_failure_aborts_run(onchain_config):
    awarder = ScriptedAwarder()
    orchestrator = AwardOrchestrator(
        onchain_config,
        selector=FailingSelector(),
        awarder=awarder,
        log_repository=NullLogRepository()
    )

    results = await orchestrator.run_daily_award(PERIOD)

    assert results.aborted
    assert results.processed == 0
    assert results.errors[0].startswith("Fatal error: ")
    assert awarder.calls == []


@pytest.mark.asyncio
async def test_unexpected_awarder_exception_counts_as_failure(onchain_config, recording_sleep):
    awarder = ScriptedAwarder(raise_for={ADDRESS_A})
    log_repository = NullLogRepository()
    orchestrator = AwardOrchestrator(
        onchain_config,
        selector=StaticSelector([Subject(ADDRESS_A), Subject(ADDRESS_B)]),
        awarder=awarder,
        log_repository=log_repository,
        sleep=recording_sleep
    )

    results = await orchestrator.run_daily_award(PERIOD)

    assert (results.processed, results.successful, results.failed) == (2, 1, 1)
    assert "socket closed" in results.errors[0]


@pytest.mark.asyncio
async def test_audit_write_failure_does_not_change_counts(onchain_config, recording_sleep):
    log_repository = NullLogRepository(AuditLogWriteError(ADDRESS_A, "0x" + "0" * 64, "disk full"))
    orchestrator = AwardOrchestrator(
        onchain_config,
        selector=StaticSelector([Subject(ADDRESS_A)]),
        awarder=ScriptedAwarder(),
        log_repository=log_repository,
        sleep=recording_sleep
    )

    results = await orchestrator.run_daily_award(PERIOD)

    assert (results.processed, results.successful, results.failed) == (1, 1, 0)
    assert len(results.errors) == 1
    assert "disk full" in results.errors[0]


@pytest.mark.asyncio
async def test_amount_comes_from_configuration(onchain_config, recording_sleep):
    awarder = ScriptedAwarder()
    log_repository = NullLogRepository()
    orchestrator = AwardOrchestrator(
        replace(onchain_config, daily_amount=25),
        selector=StaticSelector([Subject(ADDRESS_A)]),
        awarder=awarder,
        log_repository=log_repository,
        sleep=recording_sleep
    )

    await orchestrator.run_daily_award(PERIOD)

    assert awarder.calls[0][1] == 25
    assert log_repository.attempts[0].amount == 25


@pytest.mark.asyncio
async def test_audit_connection_failure_does_not_stop_run(monkeypatch, onchain_config, recording_sleep):
    from xp_minting.services.awards.database import award_log_repository

    def _refused():
        raise ConnectionRefusedError(111, "Connect call failed")

    monkeypatch.setattr(award_log_repository, "get_async_session", _refused)
    awarder = ScriptedAwarder()
    orchestrator = AwardOrchestrator(
        onchain_config,
        selector=StaticSelector([Subject(ADDRESS_A), Subject(ADDRESS_B)]),
        awarder=awarder,
        log_repository=AwardLogRepository(),
        sleep=recording_sleep
    )

    results = await orchestrator.run_daily_award(PERIOD)

    assert (results.processed, results.successful, results.failed) == (2, 2, 0)
    assert [call[0] for call in awarder.calls] == [ADDRESS_A, ADDRESS_B]
    assert len(results.errors) == 2
    assert all("Connect call failed" in error for error in results.errors)


@pytest.mark.asyncio
async def test_unwrapped_log_exception_is_recorded(onchain_config, recording_sleep):
    orchestrator = AwardOrchestrator(
        onchain_config,
        selector=StaticSelector([Subject(ADDRESS_A), Subject(ADDRESS_B)]),
        awarder=ScriptedAwarder(),
        log_repository=NullLogRepository(OSError("connection reset")),
        sleep=recording_sleep
    )

    results = await orchestrator.run_daily_award(PERIOD)

    assert (results.processed, results.successful) == (2, 2)
    assert results.errors == [f"{ADDRESS_A}: connection reset", f"{ADDRESS_B}: connection reset"]
