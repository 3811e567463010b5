"""
Deterministic action identifiers used as the ledger's idempotency token.

This module is the only place the identifier is computed; the selector,
awarder and log all receive the value derived here.
"""

from eth_utils import keccak, to_bytes

from xp_minting.core.exceptions import ValidationError
from xp_minting.models.award_log import ActionKind
from xp_minting.utils.validation import is_valid_period_key, normalize_address

SEPARATOR = "|"


def _kind_value(action_kind) -> str:
    if isinstance(action_kind, ActionKind):
        return action_kind.value
    return str(action_kind or "")


def derive_action_id(address: str, action_kind, period_key: str) -> str:
    """
    Compute keccak256("{address}|{kind}|{period}") as 0x-prefixed hex.

    The address is trimmed and lower-cased first so checksum casing never
    changes the identifier.
    """
    normalized = normalize_address(address)
    kind = _kind_value(action_kind)

    if not normalized:
        raise ValidationError("Subject address is required", {"address": address})
    if not kind:
        raise ValidationError("Action kind is required")
    if not is_valid_period_key(period_key):
        raise ValidationError(f"Invalid period key: {period_key!r}", {"period_key": period_key})

    for name, value in (("address", normalized), ("action_kind", kind)):
        if SEPARATOR in value:
            raise ValidationError(
                f"{name} must not contain '{SEPARATOR}'",
                {name: value}
            )

    payload = SEPARATOR.join((normalized, kind, period_key))
    return "0x" + keccak(text=payload).hex()


def action_id_bytes(action_id: str) -> bytes:
    """The 32-byte value passed as the contract's bytes32 argument."""
    raw = to_bytes(hexstr=action_id)
    if len(raw) != 32:
        raise ValidationError(f"Action id must be 32 bytes, got {len(raw)}", {"action_id": action_id})
    return raw
