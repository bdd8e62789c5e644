"""
Per-operation lifecycle state machine.

Idle -> Validating -> AwaitingSession -> Estimating -> Submitted -> Confirming
-> {Succeeded | Failed}. Validating and AwaitingSession may be skipped when
their preconditions already hold; read-only operations go through Reading
instead of the estimate/submit/confirm phases. Nothing leads back to Idle.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Optional

from ..errors import StateTransitionError
from ..logging.config import get_operation_logger, log_state_transition
from .models import TERMINAL_PHASES, OperationPhase, OperationRecord

logger = get_operation_logger(__name__)

P = OperationPhase

ALLOWED_TRANSITIONS: dict[OperationPhase, frozenset[OperationPhase]] = {
    P.IDLE: frozenset({P.VALIDATING, P.AWAITING_SESSION, P.ESTIMATING, P.READING, P.FAILED}),
    P.VALIDATING: frozenset({P.AWAITING_SESSION, P.ESTIMATING, P.READING, P.FAILED}),
    P.AWAITING_SESSION: frozenset({P.ESTIMATING, P.READING, P.FAILED}),
    P.ESTIMATING: frozenset({P.SUBMITTED, P.FAILED}),
    P.SUBMITTED: frozenset({P.CONFIRMING, P.FAILED}),
    P.CONFIRMING: frozenset({P.SUCCEEDED, P.FAILED}),
    P.READING: frozenset({P.SUCCEEDED, P.FAILED}),
    P.SUCCEEDED: frozenset(),
    P.FAILED: frozenset(),
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OperationStateMachine:
    """Tracks and validates the phase of one submitted operation."""

    def __init__(
        self,
        operation_id: str,
        method_name: str,
        clock: Optional[Callable[[], datetime]] = None,
        on_transition: Optional[Callable[[OperationRecord, OperationPhase], None]] = None,
    ):
        self._clock = clock or _utc_now
        self._on_transition = on_transition
        now = self._clock()
        self.record = OperationRecord(
            operation_id=operation_id,
            method_name=method_name,
            started_at=now,
            updated_at=now,
        )
        self.logger = logger.bind(method=method_name)

    @property
    def phase(self) -> OperationPhase:
        return self.record.phase

    @property
    def is_terminal(self) -> bool:
        return self.record.is_terminal

    def can_advance(self, phase: OperationPhase) -> bool:
        return phase in ALLOWED_TRANSITIONS[self.record.phase]

    def advance(self, phase: OperationPhase, trigger: str,
                context: Optional[dict[str, Any]] = None) -> OperationRecord:
        """
        Move to ``phase``.

        Raises:
            StateTransitionError: ``phase`` is not reachable from the current phase
        """
        current = self.record.phase
        if not self.can_advance(phase):
            raise StateTransitionError(
                f"Invalid operation transition from {current.value} to {phase.value}",
                current_state=current.value,
                attempted_transition=phase.value,
                context={"operation_id": self.record.operation_id},
            )

        self.record = self.record.with_phase(phase, self._clock())
        log_state_transition(
            self.logger,
            self.record.operation_id,
            current.value,
            phase.value,
            trigger,
            context
        )
        if self._on_transition:
            self._on_transition(self.record, current)
        return self.record

    def bind_signer(self, signer: str) -> None:
        self.record = self.record.with_signer(signer)

    def fail(self, trigger: str, context: Optional[dict[str, Any]] = None) -> OperationRecord:
        """Move to Failed; a no-op when the operation already finished."""
        if self.record.phase in TERMINAL_PHASES:
            return self.record
        return self.advance(OperationPhase.FAILED, trigger, context)
