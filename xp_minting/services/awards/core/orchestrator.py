"""
Daily award orchestrator.
"""

import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

import structlog

from xp_minting.core.config import AwardConfig
from xp_minting.core.exceptions import AuditLogWriteError, XPMintingException
from xp_minting.models.award_log import ActionKind
from xp_minting.services.awards.database import AwardLogRepository, EligibilitySelector
from xp_minting.services.awards.transactions import LedgerAwarder
from .action_id import derive_action_id
from .types import AwardAttempt, AwardOutcome, AwardRunResults, ProcessorStatus, Subject, current_period_key


logger = structlog.get_logger(__name__)


class AwardOrchestrator:
    """
    Runs one daily award pass.

    Architecture:
    1. Select subjects active in the period without a confirmed award
    2. Per subject: derive action id, award on ledger, append to the award log
    3. Subjects run strictly one after another, paced in on-chain mode
    4. A subject failure never stops the run; the next run retries it
    """

    def __init__(
        self,
        config: AwardConfig,
        selector: Optional[EligibilitySelector] = None,
        awarder: Optional[LedgerAwarder] = None,
        log_repository: Optional[AwardLogRepository] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        action_kind: ActionKind = ActionKind.DAILY_LOGIN
    ):
        self.config = config
        self.logger = logger.bind(service="award_orchestrator")
        self.selector = selector or EligibilitySelector()
        self.awarder = awarder or LedgerAwarder(config)
        self.log_repository = log_repository or AwardLogRepository()
        self.action_kind = action_kind
        self.status = ProcessorStatus.IDLE
        self._sleep = sleep or asyncio.sleep

    def _batches(self, subjects: List[Subject]) -> List[List[Subject]]:
        size = max(1, self.config.batch_size)
        return [subjects[i:i + size] for i in range(0, len(subjects), size)]

    async def process_subject(self, subject: Subject, period_key: str, results: AwardRunResults) -> AwardOutcome:
        """Derive, award, log and count one subject. Never raises."""
        amount = self.config.daily_amount

        try:
            action_id = derive_action_id(subject.address, self.action_kind, period_key)
            outcome = await self.awarder.award(subject.address, amount, action_id)
        except Exception as e:
            message = e.message if isinstance(e, XPMintingException) else str(e)
            self.logger.error(
                "Unexpected error while awarding subject",
                address=subject.address,
                period_key=period_key,
                error=message
            )
            outcome = AwardOutcome.failed(message or type(e).__name__)
            results.record(subject.address, outcome)
            return outcome

        results.record(subject.address, outcome)

        try:
            await self.log_repository.log_attempt(
                AwardAttempt(
                    address=subject.address,
                    action_kind=self.action_kind,
                    period_key=period_key,
                    action_id=action_id,
                    amount=amount,
                    outcome=outcome
                )
            )
        except Exception as e:
            message = e.message if isinstance(e, AuditLogWriteError) else (str(e) or type(e).__name__)
            self.logger.error(
                "Award attempt could not be logged",
                address=subject.address,
                action_id=action_id,
                outcome=outcome.status.value,
                error=message
            )
            results.errors.append(f"{subject.address}: {message}")

        return outcome

    async def run_daily_award(self, period_key: Optional[str] = None) -> AwardRunResults:
        """
        Run the award pass for ``period_key`` (UTC today by default).

        Returns:
            AwardRunResults; a selection failure is reported with aborted=True
        """
        if self.status != ProcessorStatus.IDLE:
            raise RuntimeError(f"Orchestrator is already running with status: {self.status}")

        period_key = period_key or current_period_key()
        results = AwardRunResults(period_key=period_key, started_at=datetime.now(timezone.utc))
        self.status = ProcessorStatus.RUNNING

        try:
            self.logger.info(
                "Starting daily award run",
                period_key=period_key,
                action_kind=self.action_kind.value,
                onchain=self.config.award_onchain,
                amount=self.config.daily_amount
            )

            try:
                subjects = await self.selector.select_eligible(period_key, self.action_kind)
            except XPMintingException as e:
                self.logger.error("Daily award run aborted", period_key=period_key, error=e.message)
                results.aborted = True
                results.errors.append(f"Fatal error: {e.message}")
                return results

            if not subjects:
                self.logger.info("No eligible subjects found", period_key=period_key)
                return results

            batches = self._batches(subjects)
            for batch_number, batch in enumerate(batches, start=1):
                self.logger.info(
                    "Processing award batch",
                    batch=batch_number,
                    batches=len(batches),
                    size=len(batch)
                )

                for index, subject in enumerate(batch):
                    await self.process_subject(subject, period_key, results)

                    is_last = batch_number == len(batches) and index == len(batch) - 1
                    if self.config.award_onchain and not is_last and self.config.pacing_seconds > 0:
                        await self._sleep(self.config.pacing_seconds)

            return results

        finally:
            results.finished_at = datetime.now(timezone.utc)
            self.status = ProcessorStatus.IDLE
            self.logger.info(
                "Daily award run finished",
                period_key=period_key,
                processed=results.processed,
                successful=results.successful,
                failed=results.failed,
                aborted=results.aborted,
                duration=f"{results.duration_seconds:.2f}s"
            )
