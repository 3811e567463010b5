"""
Database models for the XP minting engine.
"""

from .base import Base, BaseModel, TimestampMixin
from .user import User
from .award_log import AwardLog, ActionKind, AwardStatus

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "User",
    "AwardLog",
    "ActionKind",
    "AwardStatus",
]
