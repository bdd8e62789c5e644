"""
Signing session management.

The ``SessionManager`` is the only component that prompts the wallet. It
owns the ``Session``; every other component gets a read-only copy.
"""

from typing import Optional, Sequence, Union

from eth_utils import to_checksum_address

from ..config.deployments import DeploymentConfig
from ..errors import ChainMismatchError, WalletUnavailableError
from ..logging.config import get_session_logger
from .models import Session, SessionStatus
from .wallet import WalletProvider, parse_chain_id

logger = get_session_logger(__name__)


class SessionManager:
    """
    Establishes and tracks the signing session for one deployment.

    A failed ``connect`` always leaves the manager without a session, so a
    stale connected session can never be used after a chain mismatch.
    """

    def __init__(self, wallet: Optional[WalletProvider], deployment: DeploymentConfig):
        self.wallet = wallet
        self.deployment = deployment
        self.required_chain_id = deployment.chain_id
        self._session: Optional[Session] = None
        self.logger = logger.bind(deployment=deployment.name)

    def current_session(self) -> Optional[Session]:
        """Last established session, or ``None``."""
        return self._session

    def status(self) -> SessionStatus:
        return SessionStatus.from_session(self._session)

    @property
    def is_connected(self) -> bool:
        return self._session is not None and self._session.connected

    async def connect(self) -> Session:
        """
        Request account access and make sure the wallet is on the required chain.

        Returns:
            The populated, connected session

        Raises:
            WalletUnavailableError: No wallet, or the account request failed
            ChainMismatchError: Wrong chain and the switch was declined or failed
        """
        if self.wallet is None:
            self._session = None
            raise WalletUnavailableError("No wallet provider available")

        try:
            signer = await self.wallet.request_accounts()
            chain_id = await self.wallet.get_active_chain()
        except Exception as e:
            self._session = None
            self.logger.warning("Wallet connection failed", error=str(e),
                                error_type=type(e).__name__)
            if isinstance(e, WalletUnavailableError):
                raise
            raise WalletUnavailableError(f"Failed to connect wallet: {e}") from e

        if chain_id != self.required_chain_id:
            chain_id = await self._switch_chain(chain_id)

        self._session = Session(
            signer=to_checksum_address(signer),
            chain_id=chain_id,
            connected=True,
        )
        self.logger.info("Wallet connected", signer=self._session.signer, chain_id=chain_id)
        return self._session

    async def _switch_chain(self, actual_chain_id: int) -> int:
        self.logger.info(
            "Requesting chain switch",
            from_chain_id=actual_chain_id,
            to_chain_id=self.required_chain_id
        )
        try:
            switched = await self.wallet.request_chain_switch(self.required_chain_id)
            if switched:
                # Wallets may acknowledge the switch without performing it
                actual_chain_id = await self.wallet.get_active_chain()
        except Exception as e:
            self.logger.warning("Chain switch failed", error=str(e), error_type=type(e).__name__)
            switched = False

        if not switched or actual_chain_id != self.required_chain_id:
            self._session = None
            raise ChainMismatchError(
                f"Wallet is on chain {actual_chain_id}, "
                f"{self.deployment.chain_name or 'deployment'} requires {self.required_chain_id}",
                expected_chain_id=self.required_chain_id,
                actual_chain_id=actual_chain_id,
            )
        return actual_chain_id

    def disconnect(self) -> None:
        if self._session is not None:
            self.logger.info("Wallet disconnected", signer=self._session.signer)
        self._session = None

    def handle_accounts_changed(self, accounts: Sequence[str]) -> Optional[Session]:
        """Wallet switched or locked its accounts."""
        if not accounts:
            self.disconnect()
            return None
        if not self.is_connected:
            return None

        signer = to_checksum_address(accounts[0])
        if signer != self._session.signer:
            self.logger.info("Active account changed", previous=self._session.signer, signer=signer)
            self._session = Session(signer=signer, chain_id=self._session.chain_id, connected=True)
        return self._session

    def handle_chain_changed(self, chain_id: Union[int, str]) -> Optional[Session]:
        """Wallet moved to another chain; anything but the required chain disconnects."""
        new_chain_id = parse_chain_id(chain_id)
        if new_chain_id != self.required_chain_id:
            self.logger.warning(
                "Wallet left the required chain",
                chain_id=new_chain_id,
                required_chain_id=self.required_chain_id
            )
            self.disconnect()
            return None
        return self._session
