"""
Daily award scheduler.

This service provides:
- Daily award run at a configurable UTC hour and minute (00:05 by default)
  for the last completed UTC day
- Catch-up window so a restart shortly after the slot still runs that day
- Run statistics, manual trigger and health checks
"""

import asyncio
from datetime import datetime, timezone, timedelta
from typing import Dict, Any, Optional
from dataclasses import dataclass, asdict
from enum import Enum
import structlog

from xp_minting.core.config import settings
from xp_minting.core.exceptions import AwardRunInProgressError
from xp_minting.services.awards.core import AwardRunResults, current_period_key
from xp_minting.services.daily_award_service import get_daily_award_service


logger = structlog.get_logger(__name__)

RUN_WINDOW = timedelta(minutes=30)


class SchedulerStatus(Enum):
    """Status of the award scheduler."""
    STOPPED = "stopped"
    WAITING = "waiting"
    PROCESSING = "processing"
    ERROR = "error"


@dataclass
class SchedulerStats:
    """Statistics for scheduler operations."""
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    skipped_runs: int = 0
    last_results: Optional[AwardRunResults] = None
    uptime_start: Optional[datetime] = None


class DailyAwardScheduler:
    """
    Runs the daily award once per UTC day.

    A scheduled run awards the last completed UTC day, so the default 00:05
    slot covers every login of the day before. Manual triggers default to
    the current day.
    """

    def __init__(
        self,
        enabled: Optional[bool] = None,
        utc_hour: Optional[int] = None,
        utc_minute: Optional[int] = None,
        check_interval: Optional[int] = None,
        error_pause_seconds: float = 300
    ):
        self.logger = logger.bind(service="daily_award_scheduler")

        self.enabled = settings.scheduler_enabled if enabled is None else enabled
        self.utc_hour = settings.award_schedule_utc_hour if utc_hour is None else utc_hour
        self.utc_minute = settings.award_schedule_utc_minute if utc_minute is None else utc_minute
        self.check_interval = settings.scheduler_interval if check_interval is None else check_interval
        self.error_pause_seconds = error_pause_seconds

        # State
        self.status = SchedulerStatus.STOPPED
        self.stats = SchedulerStats(uptime_start=datetime.now(timezone.utc))
        self._should_stop = False
        self._scheduler_task: Optional[asyncio.Task] = None

        self.logger.info(
            "Daily award scheduler initialized",
            enabled=self.enabled,
            utc_hour=self.utc_hour,
            utc_minute=self.utc_minute,
            check_interval=self.check_interval
        )

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    def _slot_for(self, now: datetime) -> datetime:
        return now.replace(hour=self.utc_hour, minute=self.utc_minute, second=0, microsecond=0)

    def _calculate_next_run_time(self, now: Optional[datetime] = None) -> datetime:
        """Next occurrence of the configured UTC slot."""
        now = now or datetime.now(timezone.utc)
        next_run = self._slot_for(now)
        if next_run <= now:
            next_run += timedelta(days=1)
        return next_run

    def _scheduled_period_key(self, now: Optional[datetime] = None) -> str:
        """Period key of the last completed UTC day."""
        now = now or datetime.now(timezone.utc)
        return current_period_key(now - timedelta(days=1))

    def _should_run_award(self, now: Optional[datetime] = None) -> bool:
        """True inside the run window when today's run has not happened yet."""
        now = now or datetime.now(timezone.utc)
        slot = self._slot_for(now)
        if not (slot <= now < slot + RUN_WINDOW):
            return False
        if self.stats.last_run:
            return self.stats.last_run.date() < now.date()
        return True

    async def start(self):
        """Start the award scheduler."""
        if not self.enabled:
            self.logger.info("Daily award scheduler is disabled")
            return

        if self.status != SchedulerStatus.STOPPED:
            self.logger.warning("Scheduler already running", current_status=self.status.value)
            return

        self.logger.info("Starting daily award scheduler")

        self._should_stop = False
        self.status = SchedulerStatus.WAITING
        self.stats.next_run = self._calculate_next_run_time()
        self._scheduler_task = asyncio.create_task(self._scheduler_loop())

        self.logger.info("Daily award scheduler started", next_run=self.stats.next_run.isoformat())

    async def stop(self):
        """Stop the award scheduler."""
        if self.status == SchedulerStatus.STOPPED:
            return

        self.logger.info("Stopping daily award scheduler")
        self._should_stop = True

        if self._scheduler_task and not self._scheduler_task.done():
            self._scheduler_task.cancel()
            try:
                await self._scheduler_task
            except asyncio.CancelledError:
                pass

        self.status = SchedulerStatus.STOPPED
        self.logger.info("Daily award scheduler stopped")

    async def _scheduler_loop(self):
        self.logger.info("Scheduler loop started")

        while not self._should_stop:
            try:
                if self._should_run_award():
                    await self._run_daily_award(self._scheduled_period_key())

                self.stats.next_run = self._calculate_next_run_time()
                await asyncio.sleep(self.check_interval)

            except asyncio.CancelledError:
                self.logger.info("Scheduler loop cancelled")
                break

            except Exception as e:
                self.logger.error("Error in scheduler loop", error=str(e))
                self.status = SchedulerStatus.ERROR
                await asyncio.sleep(60)
                self.status = SchedulerStatus.WAITING

        self.logger.info("Scheduler loop stopped")

    async def _run_daily_award(self, period_key: Optional[str] = None) -> Optional[AwardRunResults]:
        """Run one award pass and record it in the scheduler stats."""
        period_key = period_key or current_period_key()
        self.logger.info("Starting scheduled daily award", period_key=period_key)

        self.status = SchedulerStatus.PROCESSING
        self.stats.total_runs += 1

        try:
            service = await get_daily_award_service()
            results = await service.run(period_key)

        except AwardRunInProgressError:
            self.stats.skipped_runs += 1
            self.stats.last_run = datetime.now(timezone.utc)
            self.status = SchedulerStatus.WAITING
            self.logger.warning("Daily award already running, scheduled run skipped", period_key=period_key)
            return None

        except Exception as e:
            self.stats.failed_runs += 1
            self.status = SchedulerStatus.ERROR
            self.logger.error(
                "Scheduled daily award failed",
                period_key=period_key,
                error=str(e),
                total_runs=self.stats.total_runs,
                failed_runs=self.stats.failed_runs
            )
            await asyncio.sleep(self.error_pause_seconds)
            self.status = SchedulerStatus.WAITING
            return None

        self.stats.last_run = datetime.now(timezone.utc)
        self.stats.last_results = results
        if results.aborted:
            self.stats.failed_runs += 1
        else:
            self.stats.successful_runs += 1
        self.status = SchedulerStatus.WAITING

        self.logger.info(
            "Scheduled daily award completed",
            period_key=period_key,
            processed=results.processed,
            successful=results.successful,
            failed=results.failed,
            aborted=results.aborted,
            duration=f"{results.duration_seconds:.2f}s"
        )

        if results.failed > 0:
            self.logger.warning(
                "Some subjects failed the daily award and will be retried next run",
                period_key=period_key,
                failed_count=results.failed,
                errors=results.errors[:10]
            )

        return results

    async def trigger_manual_run(self, period_key: Optional[str] = None) -> AwardRunResults:
        """
        Manually trigger an award run (for admin/backfill).

        Raises:
            AwardRunInProgressError: a run is already in progress
        """
        if self.status == SchedulerStatus.PROCESSING:
            raise AwardRunInProgressError(period_key)

        self.logger.info("Manual daily award triggered", period_key=period_key)

        old_status = self.status
        self.status = SchedulerStatus.PROCESSING

        try:
            service = await get_daily_award_service()
            results = await service.run(period_key)

            self.stats.last_results = results
            self.stats.total_runs += 1
            self.stats.successful_runs += 1
            return results

        except Exception as e:
            self.stats.failed_runs += 1
            self.logger.error("Manual daily award failed", error=str(e))
            raise
        finally:
            self.status = old_status

    async def health_check(self) -> Dict[str, Any]:
        """Scheduler health summary."""
        uptime_seconds = (datetime.now(timezone.utc) - self.stats.uptime_start).total_seconds()

        return {
            "status": self.status.value,
            "healthy": self.status != SchedulerStatus.ERROR,
            "enabled": self.enabled,
            "uptime_seconds": uptime_seconds,
            "scheduler_stats": asdict(self.stats),
            "configuration": {
                "utc_hour": self.utc_hour,
                "utc_minute": self.utc_minute,
                "check_interval": self.check_interval
            },
            "next_run_in_seconds": (
                (self.stats.next_run - datetime.now(timezone.utc)).total_seconds()
                if self.stats.next_run else None
            )
        }

    def get_status(self) -> Dict[str, Any]:
        """Get current scheduler status."""
        return {
            "status": self.status.value,
            "enabled": self.enabled,
            "stats": asdict(self.stats),
            "next_run": self.stats.next_run.isoformat() if self.stats.next_run else None
        }


# Global scheduler instance
_daily_award_scheduler: Optional[DailyAwardScheduler] = None


async def get_daily_award_scheduler() -> DailyAwardScheduler:
    """Get or create global DailyAwardScheduler instance."""
    global _daily_award_scheduler
    if _daily_award_scheduler is None:
        _daily_award_scheduler = DailyAwardScheduler()
    return _daily_award_scheduler


async def start_daily_award_scheduler():
    """Start the global daily award scheduler."""
    scheduler = await get_daily_award_scheduler()
    await scheduler.start()


async def stop_daily_award_scheduler():
    """Stop the global daily award scheduler."""
    if _daily_award_scheduler:
        await _daily_award_scheduler.stop()
