"""
API dependencies for FastAPI endpoints.
Provides reusable dependency functions for cron authentication and parameter validation.
"""

import hmac
from typing import Optional

from fastapi import Header, HTTPException, Path, Query, status

import structlog

from xp_minting.core.config import settings
from xp_minting.utils.validation import is_valid_period_key, normalize_address, validate_wallet_address


logger = structlog.get_logger(__name__)


async def verify_cron_secret(
    x_cron_secret: Optional[str] = Header(None, alias="X-Cron-Secret"),
    secret: Optional[str] = Query(None, description="Cron secret (alternative to X-Cron-Secret)")
) -> None:
    """Reject requests that do not carry the configured cron secret."""
    provided = x_cron_secret or secret
    if not provided or not settings.cron_secret or not hmac.compare_digest(
        provided.encode(), settings.cron_secret.encode()
    ):
        logger.warning("Unauthorized cron request")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "UNAUTHORIZED",
                "message": "Invalid or missing cron secret"
            }
        )


async def validate_day_param(
    day: Optional[str] = Query(None, description="UTC day key YYYY-MM-DD (defaults to today)")
) -> Optional[str]:
    """Validate optional day query parameter."""
    if day is not None and not is_valid_period_key(day):
        logger.warning("Invalid day provided", day=day)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "INVALID_DAY",
                "message": "Invalid day format, expected YYYY-MM-DD"
            }
        )
    return day


async def validate_address_param(
    address: str = Path(..., description="EVM wallet address")
) -> str:
    """Validate wallet address path parameter."""
    if not validate_wallet_address(address):
        logger.warning("Invalid wallet address provided", address=address)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "INVALID_ADDRESS",
                "message": "Invalid EVM address format"
            }
        )
    return normalize_address(address)
