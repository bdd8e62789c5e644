"""
Wallet boundary.

``WalletProvider`` is the three-call surface the session manager needs from an
external wallet. ``Web3WalletProvider`` speaks EIP-1193 JSON-RPC through an
``AsyncWeb3`` provider.
"""

from typing import Any, Optional, Protocol, Union

import structlog
from eth_utils import to_checksum_address
from web3 import AsyncWeb3

from ..errors import UserRejectedError, WalletUnavailableError

logger = structlog.get_logger(__name__)

USER_REJECTED_CODE = 4001
UNRECOGNIZED_CHAIN_CODE = 4902


class WalletProvider(Protocol):
    """What the session manager needs from the external wallet."""

    async def request_accounts(self) -> str:
        """Prompt for account access; returns the selected address."""
        ...

    async def get_active_chain(self) -> int:
        """Chain id the wallet is currently pointed at."""
        ...

    async def request_chain_switch(self, chain_id: int) -> bool:
        """Prompt to switch chains; ``False`` when declined or failed."""
        ...


class WalletRequestError(Exception):
    """JSON-RPC error object returned by the wallet."""

    def __init__(self, method: str, code: Optional[int], message: str):
        self.method = method
        self.code = code
        self.message = message
        super().__init__(f"{method} failed ({code}): {message}")


def parse_chain_id(value: Union[int, str]) -> int:
    """Chain ids arrive as hex strings from EIP-1193 and as ints elsewhere."""
    if isinstance(value, int):
        return value
    text = str(value).strip()
    return int(text, 16) if text.lower().startswith("0x") else int(text)


class Web3WalletProvider:
    """``WalletProvider`` over an ``AsyncWeb3`` provider's raw requests."""

    def __init__(self, w3: AsyncWeb3):
        self.w3 = w3
        self.logger = logger

    @classmethod
    def from_rpc_url(cls, rpc_url: str) -> "Web3WalletProvider":
        return cls(AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url)))

    async def _request(self, method: str, params: list[Any]) -> Any:
        try:
            response = await self.w3.provider.make_request(method, params)
        except Exception as e:
            raise WalletUnavailableError(
                f"Wallet request {method} failed: {e}",
                context={"method": method, "error_type": type(e).__name__}
            ) from e

        error = response.get("error")
        if error:
            if isinstance(error, dict):
                raise WalletRequestError(method, error.get("code"), error.get("message", ""))
            raise WalletRequestError(method, None, str(error))
        return response.get("result")

    async def request_accounts(self) -> str:
        try:
            accounts = await self._request("eth_requestAccounts", [])
        except WalletRequestError as e:
            if e.code == USER_REJECTED_CODE:
                raise UserRejectedError(e.message or "User rejected the request") from e
            raise WalletUnavailableError(str(e)) from e

        if not accounts:
            raise WalletUnavailableError("Wallet returned no accounts")
        return to_checksum_address(accounts[0])

    async def get_active_chain(self) -> int:
        return parse_chain_id(await self._request("eth_chainId", []))

    async def request_chain_switch(self, chain_id: int) -> bool:
        try:
            await self._request("wallet_switchEthereumChain", [{"chainId": hex(chain_id)}])
        except (WalletRequestError, WalletUnavailableError) as e:
            self.logger.warning(
                "Chain switch not performed",
                chain_id=chain_id,
                declined=getattr(e, "code", None) == USER_REJECTED_CODE,
                unrecognized=getattr(e, "code", None) == UNRECOGNIZED_CHAIN_CODE,
                error=str(e)
            )
            return False
        return True
