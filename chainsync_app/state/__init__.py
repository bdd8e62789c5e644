"""
Operation lifecycle and account state.

Holds the per-operation phase machine, the tagged outcome returned to the
presentation layer, and the synchronizer that keeps ``AccountState`` in step
with the endpoint after each mutation.
"""

from .machine import ALLOWED_TRANSITIONS, OperationStateMachine
from .models import (
    TERMINAL_PHASES,
    AccountState,
    OperationOutcome,
    OperationPhase,
    OperationRecord,
    OutcomeStatus,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "OperationStateMachine",
    "TERMINAL_PHASES",
    "AccountState",
    "OperationOutcome",
    "OperationPhase",
    "OperationRecord",
    "OutcomeStatus",
]
