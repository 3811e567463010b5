"""
Main FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, status
from fastapi.responses import JSONResponse

from xp_minting.core.config import settings
from xp_minting.core.logging import setup_logging
from xp_minting.core.database import init_database, close_database, DatabaseManager
from xp_minting.api.middleware import add_middleware
from xp_minting.api.schemas.common import HealthCheckResponse, SuccessResponse
from xp_minting.api.routes import cron

import structlog

setup_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting XP Minting Engine", version=settings.app_version)

    try:
        await init_database()
        logger.info("Database initialized successfully")

        if settings.scheduler_enabled:
            from xp_minting.scheduler.award_scheduler import start_daily_award_scheduler
            await start_daily_award_scheduler()
            logger.info("Daily award scheduler started")

    except Exception as e:
        logger.error("Startup failed", error=str(e))
        raise

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application")
    try:
        if settings.scheduler_enabled:
            from xp_minting.scheduler.award_scheduler import stop_daily_award_scheduler
            await stop_daily_award_scheduler()

        await close_database()
        logger.info("Database connections closed")
    except Exception as e:
        logger.error("Shutdown error", error=str(e))

    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="""
    Awards daily activity on the Points ledger exactly once per user and day.

    ## Cron

    `POST /api/v1/cron/award` runs the daily award. Authenticate with the
    `X-Cron-Secret` header or the `secret` query parameter.
    """,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan
    )

    add_middleware(app)

    @app.get(
        "/health",
        response_model=HealthCheckResponse,
        tags=["System"],
        summary="Health Check",
        description="Check API server health and database connectivity"
    )
    async def health_check():
        if await DatabaseManager.health_check():
            return HealthCheckResponse(status="healthy", version=settings.app_version)

        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "unhealthy",
                "version": settings.app_version,
                "services": {
                    "database": "unhealthy",
                    "api": "healthy"
                }
            }
        )

    @app.get(
        "/",
        response_model=SuccessResponse,
        tags=["System"],
        summary="API Information"
    )
    async def root():
        return SuccessResponse(
            message=f"{settings.app_name} v{settings.app_version}",
            data={
                "version": settings.app_version,
                "environment": settings.environment,
                "award_onchain": settings.award_onchain,
                "docs_url": "/docs" if settings.debug else None
            }
        )

    app.include_router(
        cron.router,
        prefix=f"{settings.api_v1_prefix}/cron",
        tags=["Cron"]
    )

    logger.info("FastAPI application configured successfully")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "xp_minting.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
