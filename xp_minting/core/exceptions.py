"""
Custom exception classes for the application.
Provides structured error handling across all modules.
"""

from typing import Any, Optional, Dict


class XPMintingException(Exception):
    """Base exception class for the XP minting engine."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(XPMintingException):
    """Raised when there's a configuration error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONFIGURATION_ERROR", details)


class DatabaseError(XPMintingException):
    """Raised when there's a database error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "DATABASE_ERROR", details)


class ValidationError(XPMintingException):
    """Raised when data validation fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "VALIDATION_ERROR", details)


class AuthenticationError(XPMintingException):
    """Raised when authentication fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "AUTHENTICATION_ERROR", details)


class ExternalServiceError(XPMintingException):
    """Raised when an external service error occurs."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "EXTERNAL_SERVICE_ERROR", details)


class LedgerError(ExternalServiceError):
    """Raised when the Points contract call cannot be completed."""


class LedgerSubmissionTimeout(LedgerError):
    """Raised when a ledger submission exceeds its timeout."""

    def __init__(self, timeout_seconds: float):
        super().__init__(
            f"Ledger submission timed out after {timeout_seconds:g}s",
            {"timeout_seconds": timeout_seconds}
        )


# Award pipeline exceptions
class EligibilityQueryError(DatabaseError):
    """Raised when the eligibility query fails; fatal to an award run."""

    def __init__(self, period_key: str, reason: str):
        super().__init__(
            f"Eligibility query failed for {period_key}: {reason}",
            {"period_key": period_key, "reason": reason}
        )


class AuditLogWriteError(DatabaseError):
    """Raised when an award attempt cannot be appended to the award log."""

    def __init__(self, address: str, action_id: str, reason: str):
        super().__init__(
            f"Failed to log award attempt for {address}: {reason}",
            {"address": address, "action_id": action_id, "reason": reason}
        )


class AwardRunInProgressError(XPMintingException):
    """Raised when an award run is triggered while another is active."""

    def __init__(self, period_key: Optional[str] = None):
        super().__init__(
            "Daily award run already in progress",
            "AWARD_RUN_IN_PROGRESS",
            {"period_key": period_key}
        )
