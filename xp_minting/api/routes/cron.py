"""
Cron routes for the XP minting API.
Triggers the daily award and exposes award log stats and history.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

import structlog

from xp_minting.api.dependencies import validate_address_param, validate_day_param, verify_cron_secret
from xp_minting.api.schemas.awards import (
    AwardLogEntry,
    AwardRunResponse,
    AwardRunStats,
    CronHealthData,
    PeriodStatsData,
    SubjectLogsData,
)
from xp_minting.api.schemas.common import SuccessResponse, create_success_response
from xp_minting.core.exceptions import AwardRunInProgressError
from xp_minting.services.daily_award_service import get_daily_award_service

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post(
    "/award",
    response_model=AwardRunResponse,
    dependencies=[Depends(verify_cron_secret)],
    summary="Run Daily Award",
    description="Award today's (or the given day's) active users on the Points ledger"
)
async def trigger_daily_award(day: Optional[str] = Depends(validate_day_param)):
    """Run the daily award; 409 while another run is active in this process."""
    service = await get_daily_award_service()

    try:
        results = await service.run(day)

    except AwardRunInProgressError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": e.code, "message": e.message}
        )

    except Exception as e:
        logger.error("Daily award run failed", day=day, error=str(e))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "message": "Daily award failed",
                "errors": [str(e)]
            }
        )

    message = (
        f"Daily award aborted for {results.period_key}"
        if results.aborted
        else f"Daily award completed for {results.period_key}"
    )
    return AwardRunResponse(
        success=not results.aborted,
        message=message,
        stats=AwardRunStats.from_results(results),
        errors=results.errors or None
    )


@router.get(
    "/daily-stats",
    response_model=SuccessResponse,
    dependencies=[Depends(verify_cron_secret)],
    summary="Daily Award Stats",
    description="Aggregate award log figures for a day"
)
async def get_daily_stats(day: Optional[str] = Depends(validate_day_param)):
    service = await get_daily_award_service()
    stats = await service.get_period_stats(day)
    return create_success_response(
        data=PeriodStatsData.from_stats(stats),
        message=f"Award stats for {stats.period_key}"
    )


@router.get(
    "/user-logs/{address}",
    response_model=SuccessResponse,
    dependencies=[Depends(verify_cron_secret)],
    summary="User Award Logs",
    description="Award history of one address, newest first"
)
async def get_user_logs(
    address: str = Depends(validate_address_param),
    day: Optional[str] = Depends(validate_day_param)
):
    service = await get_daily_award_service()
    logs = await service.get_subject_logs(address, day)
    return create_success_response(
        data=SubjectLogsData(
            address=address,
            period_key=day,
            count=len(logs),
            logs=[AwardLogEntry.model_validate(log) for log in logs]
        )
    )


@router.get(
    "/health",
    response_model=SuccessResponse,
    summary="Award Engine Health",
    description="Award engine status with masked configuration"
)
async def cron_health():
    service = await get_daily_award_service()
    last = service.last_results
    return create_success_response(
        data=CronHealthData(
            status="healthy",
            running=service.is_running,
            config=service.config.public_view(),
            last_run=AwardRunStats.from_results(last) if last else None
        )
    )
