"""
Remote endpoint boundary.

``ContractEndpoint`` is the narrow request/response surface the gateway needs
from the ledger. ``Web3ContractEndpoint`` implements it with web3.py's
``AsyncWeb3``; transactions are sent with ``eth_sendTransaction`` so the
connected wallet does the signing.
"""

from typing import Any, Optional, Protocol

import structlog
from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError

from ..config.deployments import DeploymentConfig
from ..errors import ContractRevertError, extract_revert_reason
from .abi import build_abi
from .models import CallDescriptor

logger = structlog.get_logger(__name__)


class ContractEndpoint(Protocol):
    """What the gateway needs from the remote ledger."""

    async def estimate_gas(self, call: CallDescriptor) -> int:
        """Gas units the call is expected to consume."""
        ...

    async def send_transaction(self, call: CallDescriptor, gas_limit: int) -> str:
        """Submit the call; returns the transaction hash."""
        ...

    async def wait_for_receipt(self, tx_hash: str, timeout: float,
                               poll_latency: float) -> dict[str, Any]:
        """
        Suspend until the transaction is mined.

        Raises ``ContractRevertError`` carrying the endpoint's reason when the
        transaction reverted on-chain.
        """
        ...

    async def call(self, call: CallDescriptor) -> Any:
        """Execute a read-only call and return the decoded value."""
        ...


class Web3ContractEndpoint:
    """``ContractEndpoint`` backed by an ``AsyncWeb3`` contract instance."""

    def __init__(self, w3: AsyncWeb3, deployment: DeploymentConfig):
        self.w3 = w3
        self.deployment = deployment
        self.contract = w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(deployment.address),
            abi=build_abi(deployment.signatures),
        )
        self.logger = logger.bind(deployment=deployment.name)

    @classmethod
    def from_rpc_url(cls, rpc_url: str, deployment: DeploymentConfig,
                     request_timeout: float = 30.0) -> "Web3ContractEndpoint":
        """Endpoint over an HTTP JSON-RPC provider."""
        w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
            rpc_url,
            request_kwargs={"timeout": request_timeout}
        ))
        return cls(w3, deployment)

    def _function(self, call: CallDescriptor):
        return getattr(self.contract.functions, call.method.name)(*call.args)

    async def estimate_gas(self, call: CallDescriptor) -> int:
        try:
            return int(await self._function(call).estimate_gas(call.tx_params()))
        except ContractLogicError as e:
            raise ContractRevertError(extract_revert_reason(e)) from e

    async def send_transaction(self, call: CallDescriptor, gas_limit: int) -> str:
        try:
            tx_hash = await self._function(call).transact(call.tx_params(gas_limit))
        except ContractLogicError as e:
            raise ContractRevertError(extract_revert_reason(e)) from e
        return AsyncWeb3.to_hex(tx_hash)

    async def wait_for_receipt(self, tx_hash: str, timeout: float,
                               poll_latency: float) -> dict[str, Any]:
        receipt = await self.w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=timeout, poll_latency=poll_latency
        )
        if receipt.get("status", 1) == 0:
            reason = await self._revert_reason(tx_hash, receipt)
            raise ContractRevertError(reason, tx_hash=tx_hash)
        return dict(receipt)

    async def call(self, call: CallDescriptor) -> Any:
        try:
            return await self._function(call).call(call.tx_params())
        except ContractLogicError as e:
            raise ContractRevertError(extract_revert_reason(e)) from e

    async def _revert_reason(self, tx_hash: str, receipt: Any) -> str:
        """Replay a reverted transaction at its block to recover the reason."""
        fallback = "Transaction reverted on-chain"
        try:
            tx = await self.w3.eth.get_transaction(tx_hash)
            await self.w3.eth.call(
                {
                    "from": tx["from"],
                    "to": tx["to"],
                    "data": tx["input"],
                    "value": tx.get("value", 0),
                    "gas": tx["gas"],
                },
                receipt["blockNumber"],
            )
        except ContractLogicError as e:
            return extract_revert_reason(e)
        except Exception as e:
            self.logger.warning(
                "Could not replay reverted transaction",
                tx_hash=tx_hash,
                error=str(e),
                error_type=type(e).__name__
            )
        return fallback


def receipt_field(receipt: dict[str, Any], *names: str) -> Optional[Any]:
    """First present key among web3 (camelCase) and snake_case spellings."""
    for name in names:
        if name in receipt and receipt[name] is not None:
            return receipt[name]
    return None
