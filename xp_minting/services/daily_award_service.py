"""
Daily award service.

This service provides:
- One daily award run per UTC day for subjects active that day
- Deterministic action ids so a retried run never double-awards
- Shadow mode that grants off-ledger without touching the Points contract
- Read access to the award log for stats and per-address history

Components live in:
- xp_minting.services.awards.core - Orchestrator, types and action ids
- xp_minting.services.awards.database - Eligibility and award log access
- xp_minting.services.awards.blockchain - Points contract client
- xp_minting.services.awards.transactions - Ledger awarder
"""

import asyncio
from typing import List, Optional

import structlog

from xp_minting.core.config import AwardConfig
from xp_minting.core.exceptions import AwardRunInProgressError
from xp_minting.models.award_log import ActionKind, AwardLog
from .awards.core import AwardPeriodStats, AwardRunResults, current_period_key
from .awards.core.orchestrator import AwardOrchestrator
from .awards.database import AwardLogRepository


logger = structlog.get_logger(__name__)


class DailyAwardService:
    """Process-wide entry point for award runs and award log queries."""

    def __init__(
        self,
        config: Optional[AwardConfig] = None,
        orchestrator: Optional[AwardOrchestrator] = None,
        log_repository: Optional[AwardLogRepository] = None
    ):
        self.config = config or AwardConfig.from_settings()
        self.logger = logger.bind(service="daily_award_service")
        self.log_repository = log_repository or AwardLogRepository()
        self.orchestrator = orchestrator or AwardOrchestrator(
            self.config,
            log_repository=self.log_repository
        )
        self._run_lock = asyncio.Lock()
        self.last_results: Optional[AwardRunResults] = None

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    async def initialize(self):
        """Log the effective configuration."""
        self.logger.info("Daily award service initialized", **self.config.public_view())

    async def run(self, period_key: Optional[str] = None) -> AwardRunResults:
        """
        Run the daily award for ``period_key`` (UTC today by default).

        Raises:
            AwardRunInProgressError: another run is active in this process
        """
        if self._run_lock.locked():
            self.logger.warning("Award run rejected, another run is active", period_key=period_key)
            raise AwardRunInProgressError(period_key)

        async with self._run_lock:
            results = await self.orchestrator.run_daily_award(period_key or current_period_key())
            self.last_results = results
            return results

    async def get_period_stats(
        self,
        period_key: Optional[str] = None,
        action_kind: ActionKind = ActionKind.DAILY_LOGIN
    ) -> AwardPeriodStats:
        return await self.log_repository.query_by_period(period_key or current_period_key(), action_kind)

    async def get_subject_logs(self, address: str, period_key: Optional[str] = None) -> List[AwardLog]:
        return await self.log_repository.query_by_subject(address, period_key)


# Global instance
_daily_award_service: Optional[DailyAwardService] = None


async def get_daily_award_service() -> DailyAwardService:
    """Get or create global DailyAwardService instance."""
    global _daily_award_service
    if _daily_award_service is None:
        _daily_award_service = DailyAwardService()
        await _daily_award_service.initialize()
    return _daily_award_service


async def run_daily_award(period_key: Optional[str] = None) -> AwardRunResults:
    """
    Convenience function to run the daily award.

    Returns:
        AwardRunResults with processing results
    """
    service = await get_daily_award_service()
    return await service.run(period_key)
