"""
Contract gateway.

One parameterized gateway replaces per-contract copies of the same
estimate -> pad -> submit -> confirm sequence. It is driven entirely by a
``DeploymentConfig`` and talks to the ledger through a ``ContractEndpoint``.
"""

import asyncio
import functools
from typing import Any, Callable, Optional

from ..config.defaults import DefaultConfig, get_default_config
from ..config.deployments import DeploymentConfig
from ..errors import (
    ChainMismatchError,
    ClassifiedError,
    ContractRevertError,
    ErrorKind,
    InvalidInputError,
    WalletUnavailableError,
    describe,
    extract_revert_reason,
    to_chain_error,
)
from ..logging.config import get_operation_logger
from ..persistence.tx_journal import TransactionJournal, TxStatus
from ..session.models import Session
from ..state.models import OperationOutcome, OperationPhase
from .endpoint import ContractEndpoint, receipt_field
from .models import CallDescriptor, GasPlan, OperationSpec, ReceiptSummary
from .retry import RetryContext, RetryPolicy

logger = get_operation_logger(__name__)

PhaseCallback = Callable[[OperationPhase], None]


class ContractGateway:
    """Builds and submits contract operations for one deployment."""

    def __init__(
        self,
        deployment: DeploymentConfig,
        endpoint: ContractEndpoint,
        retry_policy: Optional[RetryPolicy] = None,
        config: Optional[DefaultConfig] = None,
        journal: Optional[TransactionJournal] = None,
    ):
        self.deployment = deployment
        self.endpoint = endpoint
        self.config = config or get_default_config()
        self.retry_policy = retry_policy or RetryPolicy(self.config.retry)
        self.journal = journal
        self.logger = logger.bind(deployment=deployment.name)

    def build_call(self, session: Optional[Session], spec: OperationSpec) -> CallDescriptor:
        """
        Bind ``spec`` to this deployment and the session's signer.

        Raises:
            WalletUnavailableError: No connected session
            ChainMismatchError: Session is on another chain
            InvalidInputError: Method unknown to the deployment, or wrong arity
        """
        if session is None or not session.connected:
            raise WalletUnavailableError("No connected session")
        if session.chain_id != self.deployment.chain_id:
            raise ChainMismatchError(
                f"Session is on chain {session.chain_id}, deployment requires "
                f"{self.deployment.chain_id}",
                expected_chain_id=self.deployment.chain_id,
                actual_chain_id=session.chain_id,
            )

        method = self.deployment.method(spec.method_name)
        if method is None:
            raise InvalidInputError(f"Unknown method: {spec.method_name}",
                                    field="method_name", value=spec.method_name)
        if len(spec.args) != len(method.signature.inputs):
            raise InvalidInputError(
                f"{spec.method_name} takes {len(method.signature.inputs)} arguments, "
                f"got {len(spec.args)}",
                field="args",
            )

        return CallDescriptor(
            address=self.deployment.address,
            method=method.signature,
            args=tuple(spec.args),
            sender=session.signer,
            value=spec.value,
        )

    def plan_gas(self, estimated_units: int) -> GasPlan:
        gas = self.config.gas
        return GasPlan.from_estimate(estimated_units, gas.pad_numerator, gas.pad_denominator)

    async def invoke(
        self,
        session: Optional[Session],
        spec: OperationSpec,
        on_phase: Optional[PhaseCallback] = None,
        operation_id: Optional[str] = None,
    ) -> OperationOutcome:
        """
        Run one operation to completion.

        Mutating calls are estimated, padded, submitted and confirmed; the
        estimate and submit steps share a single retry budget. The
        confirmation wait is never retried. Read-only specs take the read
        path and succeed with the decoded value.

        Returns:
            ``Success`` with a receipt summary (or value), else ``Failed``
        """
        try:
            call = self.build_call(session, spec)
        except InvalidInputError as e:
            return OperationOutcome.rejected(spec.method_name, "invalid input", describe(e))
        except (WalletUnavailableError, ChainMismatchError) as e:
            return OperationOutcome.failed(spec.method_name, describe(e))

        context = self.retry_policy.new_context()
        log = self.logger.bind(method=spec.method_name, signer=call.sender,
                               operation_id=operation_id)

        if not spec.is_mutating:
            _notify(on_phase, OperationPhase.READING)
            try:
                value = await self._read_call(call, context)
            except Exception as e:
                return self._failure(log, spec, e, context, phase="read")
            return OperationOutcome.success(spec.method_name, value=value,
                                            attempts=context.total_calls)

        _notify(on_phase, OperationPhase.ESTIMATING)
        try:
            estimate = await self.retry_policy.execute(
                lambda: self.endpoint.estimate_gas(call),
                context=context,
                label=f"{spec.method_name}.estimate_gas",
            )
            plan = self.plan_gas(estimate)
            log.debug("Gas planned", estimated=plan.estimated_units, padded=plan.padded_units)

            tx_hash = await self.retry_policy.execute(
                lambda: self.endpoint.send_transaction(call, plan.padded_units),
                context=context,
                label=f"{spec.method_name}.send_transaction",
            )
        except Exception as e:
            return self._failure(log, spec, e, context, phase="submit")

        log.info("Transaction submitted", tx_hash=tx_hash, gas_limit=plan.padded_units)
        await self._journal("record_submitted", tx_hash, self.deployment.name, spec.method_name,
                            call.sender, plan.padded_units, operation_id)
        _notify(on_phase, OperationPhase.SUBMITTED)

        _notify(on_phase, OperationPhase.CONFIRMING)
        confirmation = self.config.confirmation
        try:
            receipt = await self.endpoint.wait_for_receipt(
                tx_hash,
                timeout=confirmation.timeout_seconds,
                poll_latency=confirmation.poll_latency_seconds,
            )
            if receipt_field(receipt, "status") == 0:
                raise ContractRevertError("Transaction reverted on-chain", tx_hash=tx_hash)
        except Exception as e:
            reason = extract_revert_reason(e)
            status = TxStatus.REVERTED if isinstance(e, ContractRevertError) else TxStatus.UNCONFIRMED
            await self._journal("update_status", tx_hash, status, reason=reason)
            log.warning("Transaction not confirmed", tx_hash=tx_hash, reason=reason,
                        error_type=type(e).__name__)
            return OperationOutcome.failed(
                spec.method_name,
                ClassifiedError(kind=ErrorKind.CONTRACT_REVERT, message=reason),
                attempts=context.total_calls,
            )

        summary = ReceiptSummary(
            tx_hash=tx_hash,
            method_name=spec.method_name,
            status=receipt_field(receipt, "status") or 1,
            block_number=receipt_field(receipt, "blockNumber", "block_number"),
            gas_used=receipt_field(receipt, "gasUsed", "gas_used"),
            gas_limit=plan.padded_units,
            estimated_gas=plan.estimated_units,
        )
        await self._journal("update_status", tx_hash, TxStatus.CONFIRMED,
                            block_number=summary.block_number)
        log.info("Transaction confirmed", tx_hash=tx_hash, block_number=summary.block_number,
                 gas_used=summary.gas_used)
        return OperationOutcome.success(spec.method_name, receipt=summary,
                                        attempts=context.total_calls)

    async def read(self, session: Optional[Session], spec: OperationSpec) -> Any:
        """
        Direct read call: no gas plan, no confirmation wait.

        Raises:
            ChainOpsError: The classified failure once retries are exhausted
        """
        call = self.build_call(session, spec)
        try:
            return await self._read_call(call, self.retry_policy.new_context())
        except Exception as e:
            error = to_chain_error(e)
            if error is e:
                raise
            raise error from e

    async def read_method(self, session: Optional[Session], method_name: str, *args: Any) -> Any:
        return await self.read(session, OperationSpec(method_name, tuple(args), is_mutating=False))

    async def _read_call(self, call: CallDescriptor, context: RetryContext) -> Any:
        return await self.retry_policy.execute(
            lambda: self.endpoint.call(call),
            context=context,
            label=f"{call.method.name}.call",
        )

    async def _journal(self, operation: str, *args: Any, **kwargs: Any) -> None:
        """Run a journal write on the default executor, off the event loop."""
        if self.journal is None:
            return
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None, functools.partial(getattr(self.journal, operation), *args, **kwargs)
        )

    def _failure(self, log, spec: OperationSpec, error: Exception,
                 context: RetryContext, phase: str) -> OperationOutcome:
        classified = describe(error)
        log.warning(
            "Operation failed",
            phase=phase,
            error_kind=classified.kind.value,
            error=classified.message,
            attempts=context.total_calls,
        )
        return OperationOutcome.failed(spec.method_name, classified, attempts=context.total_calls)


def _notify(on_phase: Optional[PhaseCallback], phase: OperationPhase) -> None:
    if on_phase:
        on_phase(phase)
