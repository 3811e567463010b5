"""
Custom middleware for the FastAPI application.
Provides request logging, domain error mapping and CORS.
"""

import time
from datetime import datetime, timezone
from typing import Callable

from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

import structlog

from xp_minting.core.config import settings
from xp_minting.core.exceptions import (
    AuthenticationError,
    AwardRunInProgressError,
    ValidationError,
    XPMintingException,
)


logger = structlog.get_logger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request/response logging."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()

        logger.info(
            "Request started",
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else None,
        )

        response = await call_next(request)
        process_time = time.perf_counter() - start_time
        response.headers["X-Process-Time"] = str(process_time)

        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            process_time=process_time,
        )

        return response


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Maps domain exceptions escaping a route to consistent error responses."""

    STATUS_BY_TYPE = (
        (ValidationError, status.HTTP_400_BAD_REQUEST),
        (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
        (AwardRunInProgressError, status.HTTP_409_CONFLICT),
    )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except XPMintingException as e:
            status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
            for exc_type, mapped in self.STATUS_BY_TYPE:
                if isinstance(e, exc_type):
                    status_code = mapped
                    break

            log = logger.warning if status_code < 500 else logger.error
            log("Domain error", path=request.url.path, code=e.code, error=e.message)
            return JSONResponse(
                status_code=status_code,
                content={
                    "success": False,
                    "error": e.code,
                    "message": e.message,
                    "details": e.details,
                    "timestamp": datetime.now(timezone.utc).isoformat()
                }
            )

        except Exception as e:
            logger.error("Unhandled error", path=request.url.path, error=str(e), exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "success": False,
                    "error": "INTERNAL_SERVER_ERROR",
                    "message": "An unexpected error occurred",
                    "timestamp": datetime.now(timezone.utc).isoformat()
                }
            )


def add_middleware(app: FastAPI) -> None:
    """Add all middleware to the FastAPI app."""

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Order matters - last added is executed first
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(LoggingMiddleware)

    logger.info("Middleware configured successfully")
