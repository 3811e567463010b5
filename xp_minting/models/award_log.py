"""
Award log - append-only audit trail of every reward attempt.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import String, Integer, BigInteger, Boolean, DateTime, Text, Index, text
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel, utcnow


class ActionKind(str, Enum):
    """Categories of qualifying behaviour that earn a ledger reward."""
    DAILY_LOGIN = "daily-login"


class AwardStatus(str, Enum):
    """Outcome of a single award attempt."""
    CONFIRMED = "confirmed"
    ALREADY_APPLIED = "already_applied"
    GRANTED_OFF_LEDGER = "granted_off_ledger"
    FAILED = "failed"

    @property
    def is_success(self) -> bool:
        return self != AwardStatus.FAILED

    @property
    def confirmed_on_ledger(self) -> bool:
        return self in (AwardStatus.CONFIRMED, AwardStatus.ALREADY_APPLIED)


class AwardLog(BaseModel):
    """
    One row per award attempt. Rows are inserted, never updated.

    At most one row per (address, action_kind, period_key) may carry
    confirmed_on_ledger = true; the eligibility query excludes on that row.
    """

    __tablename__ = "award_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    address: Mapped[str] = mapped_column(
        String(42),
        nullable=False,
        comment="Lower-cased subject address"
    )

    action_kind: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="ActionKind value"
    )

    period_key: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        comment="UTC day key YYYY-MM-DD"
    )

    action_id: Mapped[str] = mapped_column(
        String(66),
        nullable=False,
        comment="keccak256 idempotency token as 0x hex"
    )

    amount: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Reward amount"
    )

    tx_hash: Mapped[Optional[str]] = mapped_column(
        String(66),
        comment="Ledger transaction hash when submitted on-chain"
    )

    confirmed_on_ledger: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Whether the ledger holds this award"
    )

    outcome: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="AwardStatus value"
    )

    error_message: Mapped[Optional[str]] = mapped_column(
        Text,
        comment="Raw error when the attempt failed"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False
    )

    __table_args__ = (
        Index("idx_award_logs_address_period", "address", "period_key"),
        Index("idx_award_logs_kind_period", "action_kind", "period_key"),
        Index("idx_award_logs_action_id", "action_id"),
        Index(
            "uq_award_logs_confirmed",
            "address", "action_kind", "period_key",
            unique=True,
            postgresql_where=text("confirmed_on_ledger IS TRUE"),
            sqlite_where=text("confirmed_on_ledger = 1"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<AwardLog(address={self.address}, kind={self.action_kind}, "
            f"period={self.period_key}, outcome={self.outcome})>"
        )
