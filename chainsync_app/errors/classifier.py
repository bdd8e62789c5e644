"""
Failure classification.

Maps a raw failure raised by the wallet or the endpoint to an ``ErrorKind``.
The matching rule is a case-insensitive substring search over the error text;
it lives here alone so it can be swapped without touching retry or gateway
code. Classification only steers retries: revert reasons always reach the
caller verbatim.
"""

import re
from dataclasses import dataclass
from typing import Optional

from .taxonomy import ERROR_TYPES, ChainOpsError, ContractRevertError, ErrorKind

NETWORK_MARKERS = (
    "network",
    "timeout",
    "timed out",
    "connection refused",
    "connection reset",
    "econnreset",
)

USER_REJECTION_MARKERS = (
    "user rejected",
    "user denied",
    "rejected by user",
    "action_rejected",
    "request rejected",
)

REVERT_MARKERS = (
    "revert",
    "out of gas",
    "invalid opcode",
)

# EIP-1193 "User Rejected Request"
USER_REJECTED_CODE = 4001

_REASON_PATTERNS = (
    re.compile(r"reverted with reason string ['\"](?P<reason>.*)['\"]", re.IGNORECASE | re.DOTALL),
    re.compile(r"execution reverted:\s*(?P<reason>.+)", re.IGNORECASE | re.DOTALL),
    re.compile(r"reverted:\s*(?P<reason>.+)", re.IGNORECASE | re.DOTALL),
)


@dataclass(frozen=True)
class ClassifiedError:
    """A failure kind plus the text shown to the user."""
    kind: ErrorKind
    message: str

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message}


def error_message(error: BaseException) -> str:
    """Best-effort human text of an exception."""
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    if error.args and isinstance(error.args[0], dict):
        # JSON-RPC error payloads arrive as {"code": ..., "message": ...}
        payload_message = error.args[0].get("message")
        if payload_message:
            return str(payload_message)
    text = str(error)
    return text if text else type(error).__name__


def _error_code(error: BaseException) -> Optional[int]:
    code = getattr(error, "code", None)
    if code is None and error.args and isinstance(error.args[0], dict):
        code = error.args[0].get("code")
    try:
        return int(code) if code is not None else None
    except (TypeError, ValueError):
        return None


def classify(error: BaseException) -> ErrorKind:
    """Map a raw failure to an ``ErrorKind``."""
    if isinstance(error, ChainOpsError):
        return error.kind

    text = error_message(error).lower()

    if any(marker in text for marker in NETWORK_MARKERS):
        return ErrorKind.NETWORK_TRANSIENT

    if _error_code(error) == USER_REJECTED_CODE:
        return ErrorKind.USER_REJECTED
    if any(marker in text for marker in USER_REJECTION_MARKERS):
        return ErrorKind.USER_REJECTED

    if any(marker in text for marker in REVERT_MARKERS):
        return ErrorKind.CONTRACT_REVERT

    return ErrorKind.UNKNOWN


def extract_revert_reason(error: BaseException) -> str:
    """Return the endpoint's revert reason, stripped of transport prefixes."""
    reason = getattr(error, "reason", None)
    if isinstance(reason, str) and reason:
        return reason

    text = error_message(error)
    for pattern in _REASON_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group("reason").strip()
    return text


def describe(error: BaseException) -> ClassifiedError:
    """Classify ``error`` and pick the text the caller should see."""
    kind = classify(error)
    if kind == ErrorKind.CONTRACT_REVERT:
        return ClassifiedError(kind=kind, message=extract_revert_reason(error))
    return ClassifiedError(kind=kind, message=error_message(error))


def to_chain_error(error: BaseException) -> ChainOpsError:
    """Wrap a raw failure in the matching taxonomy exception."""
    if isinstance(error, ChainOpsError):
        return error

    classified = describe(error)
    error_type = ERROR_TYPES[classified.kind]
    if error_type is ContractRevertError:
        return ContractRevertError(classified.message)
    return error_type(classified.message)
