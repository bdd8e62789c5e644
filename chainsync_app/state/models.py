"""
Operation lifecycle and read-model data structures.

This module defines immutable data structures for the phase of an in-flight
operation, the tagged outcome handed to the presentation layer, and the
account snapshot the presentation layer renders.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ..errors import ClassifiedError, ErrorKind
from ..gateway.models import ReceiptSummary


class OperationPhase(str, Enum):
    """Per-operation lifecycle phases."""
    IDLE = "idle"
    VALIDATING = "validating"
    AWAITING_SESSION = "awaiting_session"
    ESTIMATING = "estimating"
    SUBMITTED = "submitted"
    CONFIRMING = "confirming"
    READING = "reading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


TERMINAL_PHASES = frozenset({OperationPhase.SUCCEEDED, OperationPhase.FAILED})


class OutcomeStatus(str, Enum):
    """Tag of an ``OperationOutcome``."""
    SUCCESS = "success"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass(frozen=True)
class OperationOutcome:
    """Result of one ``submit`` call, consumed once by the presentation layer."""

    status: OutcomeStatus
    method_name: str = ""
    receipt: Optional[ReceiptSummary] = None
    value: Any = None                      # Decoded result of a read-only method
    reason: Optional[str] = None           # Set for REJECTED
    error: Optional[ClassifiedError] = None
    operation_id: Optional[str] = None
    attempts: int = 0

    @classmethod
    def success(cls, method_name: str, receipt: Optional[ReceiptSummary] = None,
                value: Any = None, attempts: int = 0) -> "OperationOutcome":
        return cls(status=OutcomeStatus.SUCCESS, method_name=method_name,
                   receipt=receipt, value=value, attempts=attempts)

    @classmethod
    def rejected(cls, method_name: str, reason: str,
                 error: Optional[ClassifiedError] = None) -> "OperationOutcome":
        return cls(status=OutcomeStatus.REJECTED, method_name=method_name,
                   reason=reason, error=error)

    @classmethod
    def failed(cls, method_name: str, error: ClassifiedError,
               attempts: int = 0) -> "OperationOutcome":
        return cls(status=OutcomeStatus.FAILED, method_name=method_name,
                   error=error, attempts=attempts)

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error else None

    def with_operation_id(self, operation_id: str) -> "OperationOutcome":
        return replace(self, operation_id=operation_id)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly form; integers become strings to keep full precision."""
        value = self.value
        if isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        elif isinstance(value, (list, tuple)):
            value = [str(v) if isinstance(v, int) and not isinstance(v, bool) else v for v in value]
        return {
            "status": self.status.value,
            "method_name": self.method_name,
            "operation_id": self.operation_id,
            "receipt": self.receipt.to_dict() if self.receipt else None,
            "value": value,
            "reason": self.reason,
            "error": self.error.to_dict() if self.error else None,
            "attempts": self.attempts,
        }


@dataclass(frozen=True)
class OperationRecord:
    """Runtime state for a single submitted operation."""

    operation_id: str
    method_name: str
    phase: OperationPhase = OperationPhase.IDLE
    signer: Optional[str] = None
    started_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    history: tuple[OperationPhase, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    def with_phase(self, phase: OperationPhase, timestamp: datetime) -> "OperationRecord":
        """Create new record in ``phase``, appending the old phase to history."""
        return replace(
            self,
            phase=phase,
            updated_at=timestamp,
            history=self.history + (self.phase,),
        )

    def with_signer(self, signer: str) -> "OperationRecord":
        return replace(self, signer=signer)


@dataclass(frozen=True)
class AccountState:
    """
    Derived account fields as shown to the user.

    Amounts are decimal strings at full precision. A snapshot is replaced as a
    whole; fields whose read failed carry over from the previous snapshot.
    """

    signer: Optional[str] = None
    balance: Optional[str] = None
    total_supply: Optional[str] = None
    max_supply: Optional[str] = None
    staked_balance: Optional[str] = None
    pending_rewards: Optional[str] = None
    contract_balance: Optional[str] = None
    is_owner: bool = False
    refreshed_at: Optional[datetime] = None
    stale_fields: tuple[str, ...] = field(default=())

    def with_updates(self, **fields: Any) -> "AccountState":
        return replace(self, **fields)

    def to_dict(self) -> dict[str, Any]:
        return {
            "signer": self.signer,
            "balance": self.balance,
            "total_supply": self.total_supply,
            "max_supply": self.max_supply,
            "staked_balance": self.staked_balance,
            "pending_rewards": self.pending_rewards,
            "contract_balance": self.contract_balance,
            "is_owner": self.is_owner,
            "refreshed_at": self.refreshed_at.isoformat() if self.refreshed_at else None,
            "stale_fields": list(self.stale_fields),
        }
