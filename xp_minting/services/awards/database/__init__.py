"""
Database access for award processing.
"""

from .eligibility_repository import EligibilitySelector
from .award_log_repository import AwardLogRepository

__all__ = [
    "EligibilitySelector",
    "AwardLogRepository",
]
