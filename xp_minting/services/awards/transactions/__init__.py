"""
Ledger award submission.
"""

from .awarder import LedgerAwarder

__all__ = [
    "LedgerAwarder",
]
