"""
Operation controller.

Orchestrates one deployment: validates user input, makes sure a signing
session exists, drives the contract gateway, triggers account state refreshes
and publishes every outcome to the presentation layer.
"""

import asyncio
import uuid
from pathlib import Path
from typing import Any, Callable, Optional, Sequence, Union

import structlog

from .config.defaults import DefaultConfig, get_default_config
from .config.delivery import DeliveryMethod, EventDeliveryConfig, EventType
from .config.deployments import ConfigError, DeploymentConfig
from .config.loader import ConfigLoader
from .config.validation import ConfigValidator
from .delivery.base import BaseEventDelivery
from .delivery.stdout_delivery import StdoutEventDelivery
from .errors import (
    ChainOpsError,
    ClassifiedError,
    ErrorKind,
    InvalidInputError,
    describe,
)
from .gateway.contract import ContractGateway
from .gateway.endpoint import ContractEndpoint, Web3ContractEndpoint
from .gateway.retry import RetryPolicy, SleepFunc
from .logging.config import get_operation_logger
from .persistence.tx_journal import TransactionJournal
from .session.manager import SessionManager
from .session.models import Session, SessionStatus
from .session.wallet import WalletProvider, Web3WalletProvider
from .state.machine import OperationStateMachine
from .state.models import AccountState, OperationOutcome, OperationPhase, OutcomeStatus
from .state.synchronizer import StateSynchronizer
from .validation.inputs import InputValidator

logger = structlog.get_logger(__name__)
operation_logger = get_operation_logger(__name__)


def _new_operation_id() -> str:
    return uuid.uuid4().hex[:12]


class OperationController:
    """
    Entry point for the presentation layer.

    Exposes ``submit``, ``current_account_state`` and
    ``current_session_status``. At most one operation per signer is in
    flight; a second ``submit`` for the same signer is rejected with
    ``OPERATION_IN_PROGRESS`` and never reaches the endpoint.
    """

    def __init__(
        self,
        deployment: DeploymentConfig,
        session_manager: SessionManager,
        gateway: ContractGateway,
        synchronizer: Optional[StateSynchronizer] = None,
        validator: Optional[InputValidator] = None,
        config: Optional[DefaultConfig] = None,
        deliveries: Optional[list[BaseEventDelivery]] = None,
        id_factory: Callable[[], str] = _new_operation_id,
    ) -> None:
        self.logger = logger.bind(deployment=deployment.name)
        self.operation_logger = operation_logger.bind(deployment=deployment.name)

        self.deployment = deployment
        self.config = config or gateway.config or get_default_config()
        self.session_manager = session_manager
        self.gateway = gateway
        self.validator = validator or InputValidator(deployment, self.config.units.decimals)
        self.synchronizer = synchronizer or StateSynchronizer(
            gateway, deployment, decimals=self.config.units.decimals
        )
        if self.synchronizer.on_snapshot is None:
            self.synchronizer.on_snapshot = self._on_snapshot
        self.deliveries: list[BaseEventDelivery] = list(deliveries or [])
        self._id_factory = id_factory

        # Non-terminal operation per signer
        self._active: dict[str, OperationStateMachine] = {}
        self._tasks: set[asyncio.Task] = set()
        self._pending_connect: Optional[asyncio.Task] = None
        self._outcome_counts: dict[str, int] = {status.value: 0 for status in OutcomeStatus}
        self._submitted_count = 0

        self.logger.info("Operation controller initialized", chain_id=deployment.chain_id,
                         methods=[m.name for m in deployment.methods])

    @classmethod
    def from_config(
        cls,
        deployment_name: str,
        wallet: Optional[WalletProvider] = None,
        endpoint: Optional[ContractEndpoint] = None,
        config_dir: Optional[Union[str, Path]] = None,
        overrides: Optional[dict[str, Any]] = None,
        journal_path: Optional[str] = None,
        delivery_config: Optional[EventDeliveryConfig] = None,
        sleep: Optional[SleepFunc] = None,
    ) -> "OperationController":
        """
        Build a controller for a deployment defined in ``deployments.yaml``.

        Without an explicit ``endpoint`` or ``wallet`` the deployment's
        ``rpc_url`` is used for both.

        Raises:
            ConfigError: Unknown deployment, invalid configuration, or no way
                to reach the endpoint
        """
        loader = ConfigLoader.create(Path(config_dir) if config_dir else None)
        deployment = loader.load_deployment(deployment_name)

        merged = loader.merge_config(deployment_name, overrides)
        errors = ConfigValidator.validate_config(merged)
        if errors:
            details = [f"{err.field}: {err.message} (got: {err.value})" for err in errors]
            raise ConfigError(f"Invalid engine configuration for {deployment_name!r}: {details}")
        config = loader.engine_config(deployment_name, overrides)

        if endpoint is None:
            if not deployment.rpc_url:
                raise ConfigError(f"Deployment {deployment_name!r} has no rpc_url and no endpoint was given")
            endpoint = Web3ContractEndpoint.from_rpc_url(deployment.rpc_url, deployment)
        if wallet is None and deployment.rpc_url:
            wallet = Web3WalletProvider.from_rpc_url(deployment.rpc_url)

        gateway = ContractGateway(
            deployment,
            endpoint,
            retry_policy=RetryPolicy(config.retry, sleep=sleep),
            config=config,
            journal=TransactionJournal(journal_path) if journal_path else None,
        )
        return cls(
            deployment,
            SessionManager(wallet, deployment),
            gateway,
            config=config,
            deliveries=create_deliveries(delivery_config) if delivery_config else None,
        )

    # Presentation boundary

    async def submit(self, method_name: str, raw_args: Sequence[Any] = ()) -> OperationOutcome:
        """
        Validate, execute and report one operation.

        The returned outcome does not wait for the account refresh that
        follows a successful mutation. Cancelling the caller abandons the
        wait only; a submitted transaction keeps being tracked.
        """
        operation_id = self._id_factory()
        self._submitted_count += 1
        task = self._track(self._execute(operation_id, method_name, raw_args))
        return await asyncio.shield(task)

    def current_account_state(self) -> AccountState:
        session = self.session_manager.current_session()
        signer = session.signer if session and session.connected else None
        return self.synchronizer.current(signer)

    def current_session_status(self) -> SessionStatus:
        return self.session_manager.status()

    # Session

    async def connect(self) -> OperationOutcome:
        """Connect the wallet; ``Failed`` carries ``WALLET_UNAVAILABLE`` or ``CHAIN_MISMATCH``."""
        try:
            session = await self._connect_session()
        except ChainOpsError as e:
            outcome = OperationOutcome.failed("connect", describe(e))
        else:
            outcome = OperationOutcome.success("connect", value=session.signer)
        self._publish(EventType.OPERATION_OUTCOME, outcome.to_dict())
        return outcome

    def disconnect(self) -> None:
        self.session_manager.disconnect()
        self._publish_session_status()

    def handle_accounts_changed(self, accounts: Sequence[str]) -> None:
        session = self.session_manager.handle_accounts_changed(accounts)
        self._publish_session_status()
        if session is not None and self.config.sync.refresh_after_connect:
            self._schedule_refresh(session)

    def handle_chain_changed(self, chain_id: Union[int, str]) -> None:
        self.session_manager.handle_chain_changed(chain_id)
        self._publish_session_status()

    async def refresh_now(self) -> AccountState:
        """Refresh account state immediately and wait for the result."""
        return await self.synchronizer.refresh(self.session_manager.current_session())

    async def drain(self) -> None:
        """Wait for every tracked operation and background refresh to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def active_operation(self, signer: str) -> Optional[OperationStateMachine]:
        return self._active.get(signer)

    def add_delivery(self, delivery: BaseEventDelivery) -> None:
        self.deliveries.append(delivery)

    def get_runtime_stats(self) -> dict[str, Any]:
        """Get runtime statistics."""
        return {
            "submitted_operations": self._submitted_count,
            "outcomes": dict(self._outcome_counts),
            "active_operations": len(self._active),
            "background_tasks": len(self._tasks),
            "refresh_count": self.synchronizer.refresh_count,
            "degraded_reads": self.synchronizer.degraded_reads,
            "session": self.current_session_status().to_dict(),
            "deliveries": [d.get_stats() for d in self.deliveries],
        }

    # Internals

    async def _execute(self, operation_id: str, method_name: str,
                       raw_args: Sequence[Any]) -> OperationOutcome:
        machine = OperationStateMachine(operation_id, method_name)
        log = self.operation_logger.bind(operation_id=operation_id, method=method_name)
        signer: Optional[str] = None

        try:
            machine.advance(OperationPhase.VALIDATING, "submit")
            try:
                prepared = self.validator.validate(method_name, raw_args)
            except InvalidInputError as e:
                log.info("Rejected invalid input", reason=e.reason, field=e.field)
                machine.fail("invalid_input", {"reason": e.reason})
                return self._finish(
                    OperationOutcome.rejected(method_name, "invalid input", describe(e)),
                    operation_id,
                )

            session = self.session_manager.current_session()
            if session is None or not session.connected:
                machine.advance(OperationPhase.AWAITING_SESSION, "no_session")
                try:
                    session = await self._connect_session()
                except ChainOpsError as e:
                    machine.fail("connect_failed", {"error_kind": e.kind.value})
                    return self._finish(OperationOutcome.failed(method_name, describe(e)), operation_id)

            # No suspension point between this check and the registration below
            active = self._active.get(session.signer)
            if active is not None and not active.is_terminal:
                log.warning("Operation already in progress", signer=session.signer,
                            active_operation_id=active.record.operation_id,
                            active_phase=active.phase.value)
                machine.fail("operation_in_progress")
                error = ClassifiedError(
                    kind=ErrorKind.OPERATION_IN_PROGRESS,
                    message=f"Operation {active.record.operation_id} is still {active.phase.value}",
                )
                return self._finish(
                    OperationOutcome.rejected(method_name, "operation in progress", error),
                    operation_id,
                )

            signer = session.signer
            self._active[signer] = machine
            machine.bind_signer(signer)

            spec = prepared.to_spec(signer)
            outcome = await self.gateway.invoke(
                session,
                spec,
                on_phase=lambda phase: machine.advance(phase, "gateway"),
                operation_id=operation_id,
            )

            if outcome.succeeded:
                machine.advance(OperationPhase.SUCCEEDED, "confirmed" if spec.is_mutating else "read")
                if spec.is_mutating and self.config.sync.enabled:
                    # Issued only after confirmation, so the refresh observes this mutation
                    self._schedule_refresh(session)
            else:
                machine.fail("gateway_failure",
                             {"error_kind": outcome.error_kind.value if outcome.error_kind else None})
            return self._finish(outcome, operation_id)

        finally:
            if not machine.is_terminal:
                machine.fail("aborted")
            if signer is not None and self._active.get(signer) is machine:
                del self._active[signer]

    async def _connect_session(self) -> Session:
        """Connect, sharing one wallet prompt among concurrent callers."""
        task = self._pending_connect
        if task is None:
            task = self._track(self._connect_once())
            self._pending_connect = task
        return await asyncio.shield(task)

    async def _connect_once(self) -> Session:
        try:
            session = await self.session_manager.connect()
        finally:
            if self._pending_connect is asyncio.current_task():
                self._pending_connect = None
        self._publish_session_status()
        if self.config.sync.refresh_after_connect:
            self._schedule_refresh(session)
        return session

    def _finish(self, outcome: OperationOutcome, operation_id: str) -> OperationOutcome:
        outcome = outcome.with_operation_id(operation_id)
        self._outcome_counts[outcome.status.value] += 1
        self.operation_logger.info(
            "Operation finished",
            operation_id=operation_id,
            method=outcome.method_name,
            status=outcome.status.value,
            error_kind=outcome.error_kind.value if outcome.error_kind else None,
        )
        self._publish(EventType.OPERATION_OUTCOME, outcome.to_dict())
        return outcome

    def _schedule_refresh(self, session: Session) -> None:
        self._track(self._refresh_quietly(session))

    async def _refresh_quietly(self, session: Session) -> None:
        try:
            await self.synchronizer.refresh(session)
        except ChainOpsError as e:
            self.logger.warning("Account refresh skipped", signer=session.signer, error=str(e))

    def _track(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _on_snapshot(self, snapshot: AccountState) -> None:
        self._publish(EventType.ACCOUNT_STATE, snapshot.to_dict())

    def _publish_session_status(self) -> None:
        self._publish(EventType.SESSION_STATUS, self.current_session_status().to_dict())

    def _publish(self, event_type: EventType, payload: dict[str, Any]) -> None:
        event = {"event": event_type.value, "deployment": self.deployment.name, "payload": payload}
        for delivery in self.deliveries:
            try:
                delivery.publish([event])
            except Exception as e:
                self.logger.error("Event delivery failed", delivery_name=delivery.name,
                                  event_type=event_type.value, error=str(e),
                                  error_type=type(e).__name__)


def create_deliveries(config: EventDeliveryConfig) -> list[BaseEventDelivery]:
    """Instantiate the enabled file-configurable destinations."""
    if not config.enabled:
        return []

    deliveries: list[BaseEventDelivery] = []
    for destination in config.destinations:
        if not destination.enabled:
            continue
        if destination.method == DeliveryMethod.STDOUT:
            deliveries.append(StdoutEventDelivery(
                destination.name,
                destination.config,
                events_filter=destination.events_filter,
            ))
        else:
            raise ConfigError(f"Destination {destination.name!r}: {destination.method.value} "
                              "deliveries are registered with add_delivery")
    return deliveries
