"""
Main entry point for the standalone scheduler service.
Runs the daily award scheduler without the HTTP API.
"""

import asyncio
import signal

import structlog

from xp_minting.core.database import init_database, close_database
from xp_minting.core.logging import setup_logging
from .award_scheduler import DailyAwardScheduler

logger = structlog.get_logger(__name__)


class SchedulerMain:
    """Scheduler service coordinator."""

    def __init__(self):
        self.award_scheduler = None
        self._stop_event = asyncio.Event()

    async def initialize(self):
        logger.info("Initializing scheduler service")
        await init_database()
        self.award_scheduler = DailyAwardScheduler(enabled=True)
        logger.info("Scheduler service initialized successfully")

    async def run(self):
        """Start the scheduler and block until stop() is called."""
        await self.award_scheduler.start()
        logger.info("Scheduler service started")
        await self._stop_event.wait()

    async def stop(self):
        logger.info("Stopping scheduler service")
        if self.award_scheduler:
            await self.award_scheduler.stop()
        await close_database()
        self._stop_event.set()
        logger.info("Scheduler service stopped")


async def main():
    """Run the scheduler service until SIGINT/SIGTERM."""
    setup_logging()

    service = SchedulerMain()
    loop = asyncio.get_running_loop()

    def signal_handler(signum):
        logger.info(f"Received signal {signum}, shutting down...")
        service._stop_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, signal_handler, signum)

    try:
        await service.initialize()
        await service.run()
    except Exception as e:
        logger.error("Scheduler service failed", error=str(e))
        raise
    finally:
        await service.stop()


def run():
    """Console entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
