"""
Ledger data validation utilities.
Provides validation functions for EVM addresses and period keys.
"""

import re
from datetime import datetime

from eth_utils import is_hex_address

import structlog


logger = structlog.get_logger(__name__)

PERIOD_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class EVMValidator:
    """Validator for EVM ledger data."""

    @staticmethod
    def is_valid_address(address: str) -> bool:
        """
        Validate a 0x-prefixed 20-byte hex address.

        Checksum casing is not enforced; the ledger treats addresses
        case-insensitively.
        """
        if not address or not isinstance(address, str):
            return False
        address = address.strip()
        return address.startswith("0x") and is_hex_address(address)


def is_valid_period_key(period_key: str) -> bool:
    """Check a UTC day key in YYYY-MM-DD form that names a real date."""
    if not period_key or not PERIOD_KEY_PATTERN.match(period_key):
        return False
    try:
        datetime.strptime(period_key, "%Y-%m-%d")
    except ValueError:
        return False
    return True


def validate_wallet_address(wallet: str) -> bool:
    """Validate wallet address format."""
    return EVMValidator.is_valid_address(wallet)


def normalize_address(address: str) -> str:
    """Canonical storage form of a ledger address."""
    return (address or "").strip().lower()
