"""
User model - the slice of the user account the award engine reads.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel, TimestampMixin


class User(BaseModel, TimestampMixin):
    """User account; the engine only reads wallet_address and last_login."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    username: Mapped[Optional[str]] = mapped_column(
        String(50),
        comment="Display name"
    )

    # Ledger-facing address linked by the user
    wallet_address: Mapped[Optional[str]] = mapped_column(
        String(42),
        comment="Linked EVM wallet address"
    )

    last_login: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        comment="Last qualifying login (UTC)"
    )

    __table_args__ = (
        Index("idx_users_last_login", "last_login"),
        Index("idx_users_wallet_address", "wallet_address"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, wallet={self.wallet_address})>"
