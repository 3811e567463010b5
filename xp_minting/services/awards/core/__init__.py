"""
Core award types and identifier derivation.
"""

from .types import (
    AwardAttempt,
    AwardOutcome,
    AwardPeriodStats,
    AwardRunResults,
    ProcessorStatus,
    Subject,
    current_period_key,
    period_bounds,
)
from .action_id import derive_action_id, action_id_bytes

__all__ = [
    "AwardAttempt",
    "AwardOutcome",
    "AwardPeriodStats",
    "AwardRunResults",
    "ProcessorStatus",
    "Subject",
    "current_period_key",
    "period_bounds",
    "derive_action_id",
    "action_id_bytes",
]
