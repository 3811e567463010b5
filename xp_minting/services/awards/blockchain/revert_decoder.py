"""
Decoding of ledger rejections into structured revert reasons.

Custom-error selectors are matched first; reason-string markers are only a
fallback for contracts that revert with ``require(..., "message")``.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from eth_utils import keccak
from web3.exceptions import ContractCustomError, ContractLogicError

ERROR_STRING_SELECTOR = "0x08c379a0"
REVERT_PREFIXES = ("execution reverted: ", "execution reverted", "VM Exception while processing transaction: revert ")


@dataclass(frozen=True)
class RevertReason:
    """A decoded contract rejection."""
    source: str  # "custom_error", "reason" or "rpc"
    message: str
    selector: Optional[str] = None


def error_selector(signature: str) -> str:
    """4-byte selector of a Solidity custom error, e.g. ``ActionIdUsed(bytes32)``."""
    return "0x" + keccak(text=signature.strip())[:4].hex()


def _strip_prefix(message: str) -> str:
    for prefix in REVERT_PREFIXES:
        if message.startswith(prefix):
            return message[len(prefix):].strip()
    return message.strip()


def _selector_from_data(data) -> Optional[str]:
    if isinstance(data, dict):
        data = data.get("data")
    if not isinstance(data, str) or not data.startswith("0x") or len(data) < 10:
        return None
    selector = data[:10].lower()
    if selector == ERROR_STRING_SELECTOR:
        return None
    return selector


def decode_revert(exc: BaseException) -> Optional[RevertReason]:
    """
    Turn a web3 contract error into a RevertReason.

    Returns None when the exception is not a contract rejection (transport
    errors, timeouts, signing problems).
    """
    if isinstance(exc, ContractCustomError):
        selector = _selector_from_data(getattr(exc, "data", None)) or _selector_from_data(getattr(exc, "message", None))
        return RevertReason(
            source="custom_error",
            message=str(getattr(exc, "message", None) or exc),
            selector=selector,
        )

    if isinstance(exc, ContractLogicError):
        message = getattr(exc, "message", None) or str(exc)
        return RevertReason(
            source="reason",
            message=_strip_prefix(str(message)),
            selector=_selector_from_data(getattr(exc, "data", None)),
        )

    # Some providers surface reverts as ValueError({"code": 3, "message": ..., "data": ...})
    if isinstance(exc, ValueError) and exc.args and isinstance(exc.args[0], dict):
        payload = exc.args[0]
        message = str(payload.get("message", ""))
        if "revert" in message.lower():
            return RevertReason(
                source="rpc",
                message=_strip_prefix(message),
                selector=_selector_from_data(payload.get("data")),
            )

    return None


class AlreadyAppliedClassifier:
    """Decides whether a rejection means the action id was already consumed."""

    def __init__(self, error_signatures: Iterable[str], markers: Iterable[str]):
        self.selectors = frozenset(error_selector(sig) for sig in error_signatures if sig)
        self.markers = tuple(m.lower() for m in markers if m)

    def matches(self, reason: Optional[RevertReason]) -> bool:
        if reason is None:
            return False
        if reason.selector and reason.selector in self.selectors:
            return True
        text = reason.message.lower()
        return any(marker in text for marker in self.markers)
