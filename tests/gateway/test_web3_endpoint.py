"""Tests for the AsyncWeb3-backed contract endpoint."""

from unittest.mock import AsyncMock, Mock

import pytest
from web3.exceptions import ContractLogicError

from chainsync_app.errors import ContractRevertError
from chainsync_app.gateway.endpoint import Web3ContractEndpoint, receipt_field
from chainsync_app.gateway.models import CallDescriptor

OWNER = "0x1111111111111111111111111111111111111111"


@pytest.fixture
def w3():
    return Mock()


@pytest.fixture
def endpoint(w3, token_deployment):
    return Web3ContractEndpoint(w3, token_deployment)


@pytest.fixture
def mint_call(token_deployment):
    return CallDescriptor(
        address=token_deployment.address,
        method=token_deployment.method("mint").signature,
        args=(OWNER, 10 ** 18),
        sender=OWNER,
    )


def contract_function(w3, name):
    """The mock bound contract function returned for ``name``."""
    return getattr(w3.eth.contract.return_value.functions, name).return_value


class TestWeb3ContractEndpoint:
    """Test Web3ContractEndpoint."""

    def test_contract_built_from_deployment(self, w3, endpoint, token_deployment):
        """Test the contract is bound to the deployment address and ABI."""
        kwargs = w3.eth.contract.call_args.kwargs
        assert kwargs["address"] == token_deployment.address
        assert {entry["name"] for entry in kwargs["abi"]} == {
            "mint", "burn", "balanceOf", "totalSupply", "owner"
        }

    @pytest.mark.asyncio
    async def test_estimate_gas(self, w3, endpoint, mint_call):
        """Test estimation is sent from the signer."""
        function = contract_function(w3, "mint")
        function.estimate_gas = AsyncMock(return_value=50_000)

        assert await endpoint.estimate_gas(mint_call) == 50_000
        function.estimate_gas.assert_awaited_once_with({"from": OWNER})

    @pytest.mark.asyncio
    async def test_estimate_gas_revert(self, w3, endpoint, mint_call):
        """Test a logic error becomes a revert with the contract's reason."""
        contract_function(w3, "mint").estimate_gas = AsyncMock(
            side_effect=ContractLogicError("execution reverted: Ownable: caller is not the owner")
        )

        with pytest.raises(ContractRevertError) as exc_info:
            await endpoint.estimate_gas(mint_call)
        assert exc_info.value.reason == "Ownable: caller is not the owner"

    @pytest.mark.asyncio
    async def test_send_transaction(self, w3, endpoint, mint_call):
        """Test the padded gas limit is used and the hash returned as hex."""
        function = contract_function(w3, "mint")
        function.transact = AsyncMock(return_value=b"\x12" * 32)

        tx_hash = await endpoint.send_transaction(mint_call, 60_000)

        assert tx_hash == "0x" + "12" * 32
        function.transact.assert_awaited_once_with({"from": OWNER, "gas": 60_000})

    @pytest.mark.asyncio
    async def test_wait_for_receipt(self, w3, endpoint):
        """Test a successful receipt is returned as a dict."""
        w3.eth.wait_for_transaction_receipt = AsyncMock(
            return_value={"status": 1, "blockNumber": 7, "gasUsed": 41_000}
        )

        receipt = await endpoint.wait_for_receipt("0xabc", timeout=5, poll_latency=0.1)

        assert receipt["blockNumber"] == 7
        w3.eth.wait_for_transaction_receipt.assert_awaited_once_with("0xabc", timeout=5, poll_latency=0.1)

    @pytest.mark.asyncio
    async def test_reverted_receipt_replays_for_reason(self, w3, endpoint):
        """Test a status-0 receipt is replayed to recover the revert reason."""
        w3.eth.wait_for_transaction_receipt = AsyncMock(return_value={"status": 0, "blockNumber": 9})
        w3.eth.get_transaction = AsyncMock(return_value={
            "from": OWNER, "to": "0x" + "33" * 20, "input": "0x", "value": 0, "gas": 60_000,
        })
        w3.eth.call = AsyncMock(side_effect=ContractLogicError("execution reverted: ERC20Capped: cap exceeded"))

        with pytest.raises(ContractRevertError) as exc_info:
            await endpoint.wait_for_receipt("0xabc", timeout=5, poll_latency=0.1)

        assert exc_info.value.reason == "ERC20Capped: cap exceeded"
        assert w3.eth.call.await_args.args[1] == 9

    @pytest.mark.asyncio
    async def test_reverted_receipt_without_replay(self, w3, endpoint):
        """Test a generic reason when the replay itself fails."""
        w3.eth.wait_for_transaction_receipt = AsyncMock(return_value={"status": 0, "blockNumber": 9})
        w3.eth.get_transaction = AsyncMock(side_effect=RuntimeError("not found"))

        with pytest.raises(ContractRevertError, match="reverted on-chain"):
            await endpoint.wait_for_receipt("0xabc", timeout=5, poll_latency=0.1)

    @pytest.mark.asyncio
    async def test_call(self, w3, endpoint, token_deployment):
        """Test read calls return the decoded value."""
        contract_function(w3, "balanceOf").call = AsyncMock(return_value=123)
        call = CallDescriptor(
            address=token_deployment.address,
            method=token_deployment.method("balanceOf").signature,
            args=(OWNER,),
            sender=OWNER,
        )

        assert await endpoint.call(call) == 123


def test_receipt_field_spellings():
    """Test camelCase and snake_case receipt keys."""
    assert receipt_field({"blockNumber": 5}, "blockNumber", "block_number") == 5
    assert receipt_field({"block_number": 6}, "blockNumber", "block_number") == 6
    assert receipt_field({"blockNumber": None}, "blockNumber") is None
