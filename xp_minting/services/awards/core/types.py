"""
Types for award processing.
"""

from datetime import datetime, timedelta, timezone
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Tuple

from xp_minting.core.exceptions import ValidationError
from xp_minting.models.award_log import ActionKind, AwardStatus
from xp_minting.utils.validation import is_valid_period_key


PERIOD_LENGTH = timedelta(hours=24)


def current_period_key(now: Optional[datetime] = None) -> str:
    """UTC calendar day key for ``now`` (defaults to the current time)."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m-%d")


def period_bounds(period_key: str) -> Tuple[datetime, datetime]:
    """Half-open naive UTC window ``[start, start + 24h)`` for a day key."""
    if not is_valid_period_key(period_key):
        raise ValidationError(
            f"Invalid period key: {period_key!r}",
            {"period_key": period_key}
        )
    start = datetime.strptime(period_key, "%Y-%m-%d")
    return start, start + PERIOD_LENGTH


class ProcessorStatus(Enum):
    """Status of the award processor."""
    IDLE = "idle"
    RUNNING = "running"


@dataclass(frozen=True)
class Subject:
    """An identity eligible for a reward this period."""
    address: str
    user_id: Optional[int] = None
    last_login: Optional[datetime] = None


@dataclass(frozen=True)
class AwardOutcome:
    """Result of one ledger award attempt."""
    tx_hash: Optional[str] = None
    already_applied: bool = False
    error: Optional[str] = None
    onchain: bool = False

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def status(self) -> AwardStatus:
        if self.error is not None:
            return AwardStatus.FAILED
        if self.already_applied:
            return AwardStatus.ALREADY_APPLIED
        if self.onchain:
            return AwardStatus.CONFIRMED
        return AwardStatus.GRANTED_OFF_LEDGER

    @classmethod
    def confirmed(cls, tx_hash: str) -> "AwardOutcome":
        return cls(tx_hash=tx_hash, onchain=True)

    @classmethod
    def applied_previously(cls, tx_hash: Optional[str] = None) -> "AwardOutcome":
        return cls(tx_hash=tx_hash, already_applied=True, onchain=True)

    @classmethod
    def off_ledger(cls) -> "AwardOutcome":
        return cls()

    @classmethod
    def failed(cls, error: str, tx_hash: Optional[str] = None) -> "AwardOutcome":
        return cls(tx_hash=tx_hash, error=error or "Unknown error", onchain=True)


@dataclass
class AwardAttempt:
    """Typed award log entry before it is persisted."""
    address: str
    action_kind: ActionKind
    period_key: str
    action_id: str
    amount: int
    outcome: AwardOutcome


@dataclass
class AwardRunResults:
    """Aggregate result of a daily award run."""
    period_key: str
    processed: int = 0
    successful: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    aborted: bool = False
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> float:
        if not self.started_at or not self.finished_at:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def record(self, address: str, outcome: AwardOutcome) -> None:
        """Count one processed subject."""
        self.processed += 1
        if outcome.succeeded:
            self.successful += 1
        else:
            self.failed += 1
            self.errors.append(f"{address}: {outcome.error}")


@dataclass
class AwardPeriodStats:
    """Aggregate award log figures for one period and action kind."""
    period_key: str
    action_kind: str
    total_attempts: int = 0
    confirmed: int = 0
    already_applied: int = 0
    granted_off_ledger: int = 0
    failed: int = 0
    distinct_subjects: int = 0
    total_amount: int = 0

    @property
    def confirmed_on_ledger(self) -> int:
        return self.confirmed + self.already_applied

    @property
    def pending(self) -> int:
        """Attempts that did not end up on the ledger."""
        return self.total_attempts - self.confirmed_on_ledger
