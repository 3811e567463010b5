"""
Points ledger operations.
"""

from .points_contract import PointsLedgerClient, PreparedAward, LedgerReceipt, POINTS_ABI
from .revert_decoder import AlreadyAppliedClassifier, RevertReason, decode_revert, error_selector

__all__ = [
    "PointsLedgerClient",
    "PreparedAward",
    "LedgerReceipt",
    "POINTS_ABI",
    "AlreadyAppliedClassifier",
    "RevertReason",
    "decode_revert",
    "error_selector",
]
