"""
Account state synchronization.

After each confirmed mutation the synchronizer re-reads the derived account
fields and publishes one new ``AccountState`` snapshot per signer. Field
reads fail independently: a failed read keeps the field's previous value and
is logged, never raised.
"""

import asyncio
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

import structlog

from ..config.deployments import DeploymentConfig
from ..errors import GracefulDegradationError, WalletUnavailableError
from ..gateway.contract import ContractGateway
from ..session.models import Session
from ..utils.units import format_units
from .models import AccountState

logger = structlog.get_logger(__name__)

SnapshotCallback = Callable[[AccountState], Any]

# AccountState fields holding base-unit amounts
AMOUNT_FIELDS = (
    "balance",
    "total_supply",
    "max_supply",
    "staked_balance",
    "pending_rewards",
    "contract_balance",
)


class StateSynchronizer:
    """
    Keeps one ``AccountState`` snapshot per signer.

    At most one refresh per signer runs at a time. A refresh requested while
    another is running is queued behind it, and every caller that arrives
    before the queued refresh starts shares its result, so the snapshot a
    caller receives was read after its request.
    """

    def __init__(
        self,
        gateway: ContractGateway,
        deployment: Optional[DeploymentConfig] = None,
        decimals: int = 18,
        on_snapshot: Optional[SnapshotCallback] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.gateway = gateway
        self.deployment = deployment or gateway.deployment
        self.decimals = decimals
        self.on_snapshot = on_snapshot
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._snapshots: dict[str, AccountState] = {}
        self._running: dict[str, asyncio.Task] = {}
        self._queued: dict[str, asyncio.Task] = {}
        self._degradations: dict[str, tuple[GracefulDegradationError, ...]] = {}
        self.logger = logger.bind(deployment=self.deployment.name)

        self.refresh_count = 0
        self.degraded_reads = 0

    def current(self, signer: Optional[str] = None) -> AccountState:
        """Latest snapshot for ``signer``; an empty state before the first refresh."""
        if signer is None:
            return AccountState(max_supply=self.deployment.max_supply)
        return self._snapshots.get(signer) or self._initial_state(signer)

    def forget(self, signer: str) -> None:
        self._snapshots.pop(signer, None)
        self._degradations.pop(signer, None)

    def last_degradations(self, signer: str) -> tuple[GracefulDegradationError, ...]:
        """Field reads that fell back to their previous value in the latest refresh."""
        return self._degradations.get(signer, ())

    def is_refreshing(self, signer: str) -> bool:
        return signer in self._running or signer in self._queued

    async def refresh(self, session: Optional[Session]) -> AccountState:
        """
        Re-read every configured field for the session's signer.

        Abandoning the wait (cancelling the caller) does not cancel the
        underlying refresh.

        Raises:
            WalletUnavailableError: No connected session
        """
        if session is None or not session.connected:
            raise WalletUnavailableError("Cannot refresh account state without a connected session")

        signer = session.signer
        task = self._queued.get(signer)
        if task is None:
            task = asyncio.create_task(self._run(session, self._running.get(signer)))
            self._queued[signer] = task
        return await asyncio.shield(task)

    async def _run(self, session: Session, previous: Optional[asyncio.Task]) -> AccountState:
        signer = session.signer
        task = asyncio.current_task()
        if previous is not None:
            await asyncio.wait([previous])

        if self._queued.get(signer) is task:
            del self._queued[signer]
        self._running[signer] = task
        try:
            return await self._refresh_once(session)
        finally:
            if self._running.get(signer) is task:
                del self._running[signer]

    async def _refresh_once(self, session: Session) -> AccountState:
        signer = session.signer
        reads = self._plan_reads(session)
        previous = self.current(signer)
        self.refresh_count += 1

        if not reads:
            return previous

        names = list(reads)
        results = await asyncio.gather(*(reads[name] for name in names), return_exceptions=True)

        updates: dict[str, Any] = {}
        stale: list[str] = []
        degradations: list[GracefulDegradationError] = []
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                stale.append(name)
                degradations.append(self._degrade(signer, name, result))
                continue
            try:
                updates.update(self._convert(name, result, signer))
            except (TypeError, ValueError) as e:
                stale.append(name)
                degradations.append(self._degrade(signer, name, e))

        self._degradations[signer] = tuple(degradations)

        if not updates:
            self.logger.warning("Account refresh produced no fields; keeping previous snapshot",
                                signer=signer, failed_fields=stale)
            return previous

        snapshot = replace(
            previous,
            refreshed_at=self._clock(),
            stale_fields=tuple(stale),
            **updates,
        )
        # Single assignment: readers see the old or the new snapshot, never a mix
        self._snapshots[signer] = snapshot
        self.logger.info(
            "Account state refreshed",
            signer=signer,
            updated_fields=sorted(updates),
            stale_fields=stale,
        )
        await self._publish(snapshot)
        return snapshot

    def _plan_reads(self, session: Session) -> dict[str, Awaitable[Any]]:
        reads: dict[str, Awaitable[Any]] = {}
        for field_name, method_name in self.deployment.sync.methods().items():
            method = self.deployment.method(method_name)
            if method is None:
                self.logger.warning("Sync method not in deployment", field=field_name,
                                    method=method_name)
                continue
            inputs = method.signature.inputs
            if any(p.type != "address" for p in inputs):
                self.logger.warning("Sync method takes non-address arguments", field=field_name,
                                    method=method_name)
                continue
            args = tuple(session.signer for _ in inputs)
            reads[field_name] = self.gateway.read_method(session, method_name, *args)
        return reads

    def _convert(self, field_name: str, value: Any, signer: str) -> dict[str, Any]:
        if field_name == "owner":
            return {"is_owner": str(value).lower() == signer.lower()}
        if field_name in AMOUNT_FIELDS:
            if isinstance(value, bool):
                raise TypeError(f"Expected an integer amount for {field_name}")
            return {field_name: format_units(int(value), self.decimals)}
        raise ValueError(f"Unknown account field: {field_name}")

    def _degrade(self, signer: str, field_name: str,
                 error: BaseException) -> GracefulDegradationError:
        self.degraded_reads += 1
        degradation = GracefulDegradationError(
            f"Read of {field_name} failed: {error}",
            degraded_functionality=field_name,
            fallback_strategy="keep_previous_value",
        )
        self.logger.warning(
            "Account field read failed",
            signer=signer,
            field=field_name,
            error=str(error),
            error_type=type(error).__name__,
            fallback=degradation.fallback_strategy,
        )
        return degradation

    def _initial_state(self, signer: str) -> AccountState:
        return AccountState(signer=signer, max_supply=self.deployment.max_supply)

    async def _publish(self, snapshot: AccountState) -> None:
        if self.on_snapshot is None:
            return
        try:
            result = self.on_snapshot(snapshot)
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            self.logger.error("Snapshot callback failed", error=str(e), error_type=type(e).__name__)
