"""
Error taxonomy for contract operations.

Every failure that can reach the presentation layer is one of the kinds in
``ErrorKind``. The exception classes carry their kind so that code which
raises them never needs the message-based classifier.
"""

from enum import Enum
from typing import Any, Dict, Optional

from .recovery import RecoverableError


class ErrorKind(str, Enum):
    """Failure kinds surfaced to callers."""
    WALLET_UNAVAILABLE = "wallet_unavailable"
    CHAIN_MISMATCH = "chain_mismatch"
    USER_REJECTED = "user_rejected"
    NETWORK_TRANSIENT = "network_transient"
    CONTRACT_REVERT = "contract_revert"
    INVALID_INPUT = "invalid_input"
    OPERATION_IN_PROGRESS = "operation_in_progress"
    UNKNOWN = "unknown"


class ChainOpsError(Exception):
    """Base class for classified contract operation failures."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class WalletUnavailableError(ChainOpsError):
    """No wallet is reachable, or it failed to hand out an account."""

    kind = ErrorKind.WALLET_UNAVAILABLE


class ChainMismatchError(ChainOpsError):
    """The wallet is on the wrong chain and could not be switched."""

    kind = ErrorKind.CHAIN_MISMATCH

    def __init__(self, message: str, expected_chain_id: Optional[int] = None,
                 actual_chain_id: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.expected_chain_id = expected_chain_id
        self.actual_chain_id = actual_chain_id


class UserRejectedError(ChainOpsError):
    """The user declined a signature or request in the wallet."""

    kind = ErrorKind.USER_REJECTED


class NetworkTransientError(ChainOpsError, RecoverableError):
    """Transport-level failure worth retrying."""

    kind = ErrorKind.NETWORK_TRANSIENT

    def __init__(self, message: str, retry_count: int = 0, max_retries: int = 3,
                 context: Optional[Dict[str, Any]] = None):
        ChainOpsError.__init__(self, message, context=context)
        self.retry_count = retry_count
        self.max_retries = max_retries
        self.recoverable = True


class ContractRevertError(ChainOpsError):
    """The endpoint rejected the call with a business-rule reason."""

    kind = ErrorKind.CONTRACT_REVERT

    def __init__(self, reason: str, tx_hash: Optional[str] = None, **kwargs):
        super().__init__(reason, **kwargs)
        self.reason = reason
        self.tx_hash = tx_hash


class InvalidInputError(ChainOpsError):
    """User-supplied arguments are malformed for the method."""

    kind = ErrorKind.INVALID_INPUT

    def __init__(self, reason: str, field: Optional[str] = None, value: Any = None, **kwargs):
        super().__init__(reason, **kwargs)
        self.reason = reason
        self.field = field
        self.value = value


class OperationInProgressError(ChainOpsError):
    """Another operation for the same signer has not finished yet."""

    kind = ErrorKind.OPERATION_IN_PROGRESS

    def __init__(self, message: str, signer: Optional[str] = None,
                 active_operation_id: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.signer = signer
        self.active_operation_id = active_operation_id


class UnknownChainError(ChainOpsError):
    """Failure that matches no other kind; keeps the raw message."""

    kind = ErrorKind.UNKNOWN

    def __init__(self, raw_message: str, **kwargs):
        super().__init__(raw_message, **kwargs)
        self.raw_message = raw_message


class StateTransitionError(Exception):
    """Illegal operation phase change."""

    def __init__(self, message: str, current_state: Optional[str] = None,
                 attempted_transition: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.current_state = current_state
        self.attempted_transition = attempted_transition
        self.context = context or {}
        self.recoverable = False


ERROR_TYPES: Dict[ErrorKind, type] = {
    ErrorKind.WALLET_UNAVAILABLE: WalletUnavailableError,
    ErrorKind.CHAIN_MISMATCH: ChainMismatchError,
    ErrorKind.USER_REJECTED: UserRejectedError,
    ErrorKind.NETWORK_TRANSIENT: NetworkTransientError,
    ErrorKind.CONTRACT_REVERT: ContractRevertError,
    ErrorKind.INVALID_INPUT: InvalidInputError,
    ErrorKind.OPERATION_IN_PROGRESS: OperationInProgressError,
    ErrorKind.UNKNOWN: UnknownChainError,
}
