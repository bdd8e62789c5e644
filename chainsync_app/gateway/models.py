"""
Immutable data structures for a single contract operation.

An ``OperationSpec`` describes what the caller wants; a ``CallDescriptor``
binds it to a deployment and a signer; a ``GasPlan`` lives for one
submission; a ``ReceiptSummary`` is what a confirmed transaction reports back.
"""

from dataclasses import dataclass
from typing import Any, Optional

from .abi import MethodSignature


@dataclass(frozen=True)
class OperationSpec:
    """One logical contract call, built from validated user input."""
    method_name: str
    args: tuple[Any, ...] = ()
    value: Optional[int] = None          # Native currency in base units
    is_mutating: bool = True


@dataclass(frozen=True)
class CallDescriptor:
    """An ``OperationSpec`` bound to an endpoint address and a signer."""
    address: str
    method: MethodSignature
    args: tuple[Any, ...]
    sender: str
    value: Optional[int] = None

    def tx_params(self, gas_limit: Optional[int] = None) -> dict[str, Any]:
        """Transaction fields in web3 naming."""
        params: dict[str, Any] = {"from": self.sender}
        if self.value:
            params["value"] = self.value
        if gas_limit is not None:
            params["gas"] = gas_limit
        return params


@dataclass(frozen=True)
class GasPlan:
    """Estimated gas plus the safety pad applied before submission."""
    estimated_units: int
    padded_units: int

    @classmethod
    def from_estimate(cls, estimated_units: int, pad_numerator: int = 120,
                      pad_denominator: int = 100) -> "GasPlan":
        """Pad an estimate by ``pad_numerator / pad_denominator``, rounding down."""
        estimated = int(estimated_units)
        if estimated < 0:
            raise ValueError(f"Gas estimate cannot be negative: {estimated}")
        return cls(
            estimated_units=estimated,
            padded_units=estimated * pad_numerator // pad_denominator,
        )


@dataclass(frozen=True)
class ReceiptSummary:
    """What the presentation layer needs to know about a confirmed call."""
    tx_hash: str
    method_name: str
    status: int = 1
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    gas_limit: Optional[int] = None
    estimated_gas: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "tx_hash": self.tx_hash,
            "method_name": self.method_name,
            "status": self.status,
            "block_number": self.block_number,
            "gas_used": self.gas_used,
            "gas_limit": self.gas_limit,
            "estimated_gas": self.estimated_gas,
        }
