"""
Error taxonomy and classification for contract operations.

Every failure the engine reports is one of the ``ErrorKind`` values; raw
wallet and endpoint failures are mapped onto them by ``classify``.
"""

from .classifier import (
    ClassifiedError,
    classify,
    describe,
    error_message,
    extract_revert_reason,
    to_chain_error,
)
from .recovery import (
    GracefulDegradationError,
    RecoverableError,
)
from .taxonomy import (
    ChainMismatchError,
    ChainOpsError,
    ContractRevertError,
    ErrorKind,
    InvalidInputError,
    NetworkTransientError,
    OperationInProgressError,
    StateTransitionError,
    UnknownChainError,
    UserRejectedError,
    WalletUnavailableError,
)

__all__ = [
    # Taxonomy
    "ErrorKind",
    "ChainOpsError",
    "WalletUnavailableError",
    "ChainMismatchError",
    "UserRejectedError",
    "NetworkTransientError",
    "ContractRevertError",
    "InvalidInputError",
    "OperationInProgressError",
    "UnknownChainError",
    "StateTransitionError",
    # Recovery Categories
    "RecoverableError",
    "GracefulDegradationError",
    # Classification
    "ClassifiedError",
    "classify",
    "describe",
    "error_message",
    "extract_revert_reason",
    "to_chain_error",
]
