"""Tests for signing session management."""

import pytest
from eth_utils import to_checksum_address
from unittest.mock import AsyncMock, Mock

from chainsync_app.errors import ChainMismatchError, UserRejectedError, WalletUnavailableError
from chainsync_app.session.manager import SessionManager
from chainsync_app.session.models import ConnectionState, Session, SessionStatus

MAINNET = 1


class TestConnect:
    """Test connect()."""

    @pytest.mark.asyncio
    async def test_connect_on_required_chain(self, make_wallet, token_deployment, owner_address):
        """Test a wallet already on the right chain connects without switching."""
        wallet = make_wallet()
        manager = SessionManager(wallet, token_deployment)

        session = await manager.connect()

        assert session == Session(signer=owner_address, chain_id=17000, connected=True)
        assert manager.current_session() is session
        assert not any(isinstance(c, tuple) for c in wallet.calls)

    @pytest.mark.asyncio
    async def test_no_wallet(self, token_deployment):
        """Test a missing wallet raises WalletUnavailable."""
        manager = SessionManager(None, token_deployment)
        with pytest.raises(WalletUnavailableError):
            await manager.connect()
        assert manager.current_session() is None

    @pytest.mark.asyncio
    async def test_account_request_failure(self, make_wallet, token_deployment):
        """Test wallet failures surface as WalletUnavailable."""
        manager = SessionManager(make_wallet(available=False), token_deployment)
        with pytest.raises(WalletUnavailableError, match="No injected provider"):
            await manager.connect()
        assert not manager.is_connected

    @pytest.mark.asyncio
    async def test_user_declines_account_access(self, token_deployment):
        """Test a declined account prompt is still WalletUnavailable."""
        wallet = Mock()
        wallet.request_accounts = AsyncMock(side_effect=UserRejectedError("User rejected the request."))
        manager = SessionManager(wallet, token_deployment)

        with pytest.raises(WalletUnavailableError):
            await manager.connect()

    @pytest.mark.asyncio
    async def test_switches_chain(self, make_wallet, token_deployment):
        """Test a wrong chain triggers a switch and the chain is re-read."""
        wallet = make_wallet(chain_id=MAINNET)
        manager = SessionManager(wallet, token_deployment)

        session = await manager.connect()

        assert session.chain_id == 17000
        assert ("request_chain_switch", 17000) in wallet.calls
        assert wallet.calls.count("get_active_chain") == 2

    @pytest.mark.asyncio
    async def test_declined_switch(self, make_wallet, token_deployment):
        """Test a declined switch raises ChainMismatch and leaves no session."""
        wallet = make_wallet(chain_id=MAINNET, switch_result=False)
        manager = SessionManager(wallet, token_deployment)

        with pytest.raises(ChainMismatchError) as exc_info:
            await manager.connect()

        assert exc_info.value.expected_chain_id == 17000
        assert exc_info.value.actual_chain_id == MAINNET
        assert manager.current_session() is None
        assert manager.status().state == ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_switch_acknowledged_but_not_applied(self, make_wallet, token_deployment):
        """Test a wallet that claims success but stays put is a mismatch."""
        wallet = make_wallet(chain_id=MAINNET, switch_applies=False)
        manager = SessionManager(wallet, token_deployment)

        with pytest.raises(ChainMismatchError):
            await manager.connect()
        assert manager.current_session() is None

    @pytest.mark.asyncio
    async def test_switch_raises(self, token_deployment, owner_address):
        """Test a failing switch request is a mismatch."""
        wallet = Mock()
        wallet.request_accounts = AsyncMock(return_value=owner_address)
        wallet.get_active_chain = AsyncMock(return_value=MAINNET)
        wallet.request_chain_switch = AsyncMock(side_effect=RuntimeError("Unrecognized chain"))
        manager = SessionManager(wallet, token_deployment)

        with pytest.raises(ChainMismatchError):
            await manager.connect()

    @pytest.mark.asyncio
    async def test_failed_reconnect_clears_previous_session(self, make_wallet, token_deployment):
        """Test a later failed connect does not keep the old session."""
        wallet = make_wallet()
        manager = SessionManager(wallet, token_deployment)
        await manager.connect()

        wallet.chain_id = MAINNET
        wallet.switch_result = False
        with pytest.raises(ChainMismatchError):
            await manager.connect()
        assert manager.current_session() is None

    @pytest.mark.asyncio
    async def test_address_is_checksummed(self, make_wallet, token_deployment):
        """Test lowercase wallet addresses are normalized."""
        wallet = make_wallet(accounts=["0x" + "ab" * 20])
        session = await SessionManager(wallet, token_deployment).connect()
        assert session.signer == to_checksum_address("0x" + "ab" * 20)


class TestWalletEvents:
    """Test wallet event handling."""

    @pytest.mark.asyncio
    async def test_accounts_changed(self, make_wallet, token_deployment, user_address):
        """Test switching accounts rebinds the session."""
        manager = SessionManager(make_wallet(), token_deployment)
        await manager.connect()

        session = manager.handle_accounts_changed([user_address])

        assert session.signer == user_address
        assert session.connected

    @pytest.mark.asyncio
    async def test_accounts_emptied(self, make_wallet, token_deployment):
        """Test a locked wallet disconnects."""
        manager = SessionManager(make_wallet(), token_deployment)
        await manager.connect()

        assert manager.handle_accounts_changed([]) is None
        assert manager.current_session() is None

    def test_accounts_changed_while_disconnected(self, make_wallet, token_deployment, user_address):
        """Test account events do not create a session."""
        manager = SessionManager(make_wallet(), token_deployment)
        assert manager.handle_accounts_changed([user_address]) is None

    @pytest.mark.asyncio
    async def test_chain_changed_away(self, make_wallet, token_deployment):
        """Test leaving the required chain disconnects."""
        manager = SessionManager(make_wallet(), token_deployment)
        await manager.connect()

        assert manager.handle_chain_changed("0x1") is None
        assert not manager.is_connected

    @pytest.mark.asyncio
    async def test_chain_changed_to_required(self, make_wallet, token_deployment):
        """Test hex chain ids for the required chain keep the session."""
        manager = SessionManager(make_wallet(), token_deployment)
        session = await manager.connect()

        assert manager.handle_chain_changed(hex(17000)) is session

    @pytest.mark.asyncio
    async def test_disconnect(self, make_wallet, token_deployment):
        """Test explicit disconnect."""
        manager = SessionManager(make_wallet(), token_deployment)
        await manager.connect()
        manager.disconnect()
        assert manager.status() == SessionStatus(state=ConnectionState.DISCONNECTED)


class TestSessionStatus:
    """Test the presentation view of the session."""

    def test_connected(self, owner_address):
        """Test connected status carries address and chain."""
        status = SessionStatus.from_session(Session(owner_address, 17000, True))
        assert status.is_connected
        assert status.to_dict() == {"state": "connected", "address": owner_address, "chain_id": 17000}

    def test_disconnected(self):
        """Test missing or unconnected sessions are disconnected."""
        assert not SessionStatus.from_session(None).is_connected
        assert not SessionStatus.from_session(Session.disconnected()).is_connected
