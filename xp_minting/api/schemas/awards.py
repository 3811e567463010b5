"""
Award-related Pydantic schemas.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict

from xp_minting.services.awards.core import AwardPeriodStats, AwardRunResults
from .common import APIResponse


class AwardRunStats(BaseModel):
    """Counters of one award run."""
    period_key: str = Field(description="UTC day key YYYY-MM-DD")
    processed: int = 0
    successful: int = 0
    failed: int = 0
    duration_ms: int = 0
    aborted: bool = False

    @classmethod
    def from_results(cls, results: AwardRunResults) -> "AwardRunStats":
        return cls(
            period_key=results.period_key,
            processed=results.processed,
            successful=results.successful,
            failed=results.failed,
            duration_ms=int(results.duration_seconds * 1000),
            aborted=results.aborted
        )


class AwardRunResponse(APIResponse):
    """Response of a triggered award run."""
    stats: AwardRunStats
    errors: Optional[List[str]] = None


class PeriodStatsData(BaseModel):
    """Award log aggregates for one period."""
    period_key: str
    action_kind: str
    total_attempts: int
    confirmed: int
    already_applied: int
    granted_off_ledger: int
    failed: int
    confirmed_on_ledger: int
    pending: int
    distinct_subjects: int
    total_amount: int

    @classmethod
    def from_stats(cls, stats: AwardPeriodStats) -> "PeriodStatsData":
        return cls(
            period_key=stats.period_key,
            action_kind=stats.action_kind,
            total_attempts=stats.total_attempts,
            confirmed=stats.confirmed,
            already_applied=stats.already_applied,
            granted_off_ledger=stats.granted_off_ledger,
            failed=stats.failed,
            confirmed_on_ledger=stats.confirmed_on_ledger,
            pending=stats.pending,
            distinct_subjects=stats.distinct_subjects,
            total_amount=stats.total_amount
        )


class AwardLogEntry(BaseModel):
    """One award log row."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    address: str
    action_kind: str
    period_key: str
    action_id: str
    amount: int
    tx_hash: Optional[str] = None
    confirmed_on_ledger: bool
    outcome: str
    error_message: Optional[str] = None
    created_at: datetime


class SubjectLogsData(BaseModel):
    """Award history of one address."""
    address: str
    period_key: Optional[str] = None
    count: int
    logs: List[AwardLogEntry]


class CronHealthData(BaseModel):
    """Award engine health and masked configuration."""
    status: str = "healthy"
    running: bool = False
    config: Dict[str, Any]
    last_run: Optional[AwardRunStats] = None
