"""Pytest configuration and shared fixtures."""

import asyncio
from collections import defaultdict
from typing import Any, Optional

import pytest

from chainsync_app.config.defaults import get_default_config
from chainsync_app.config.deployments import deployment_from_dict
from chainsync_app.config.loader import ConfigLoader
from chainsync_app.engine import OperationController
from chainsync_app.errors import ContractRevertError, WalletUnavailableError
from chainsync_app.gateway.contract import ContractGateway
from chainsync_app.gateway.models import CallDescriptor
from chainsync_app.gateway.retry import RetryPolicy
from chainsync_app.session.manager import SessionManager

OWNER = "0x1111111111111111111111111111111111111111"
USER = "0x2222222222222222222222222222222222222222"
STAKING_ADDRESS = "0x3333333333333333333333333333333333333333"
HOLESKY = 17000
WEI = 10 ** 18


class FakeWallet:
    """In-memory wallet implementing the three-call wallet boundary."""

    def __init__(self, accounts=(OWNER,), chain_id: int = HOLESKY, available: bool = True,
                 switch_result: bool = True, switch_applies: bool = True):
        self.accounts = list(accounts)
        self.chain_id = chain_id
        self.available = available
        self.switch_result = switch_result
        self.switch_applies = switch_applies
        self.calls: list[Any] = []

    async def request_accounts(self) -> str:
        self.calls.append("request_accounts")
        if not self.available:
            raise RuntimeError("No injected provider found")
        if not self.accounts:
            raise WalletUnavailableError("Wallet returned no accounts")
        return self.accounts[0]

    async def get_active_chain(self) -> int:
        self.calls.append("get_active_chain")
        return self.chain_id

    async def request_chain_switch(self, chain_id: int) -> bool:
        self.calls.append(("request_chain_switch", chain_id))
        if self.switch_result and self.switch_applies:
            self.chain_id = chain_id
        return self.switch_result


class InMemoryLedger:
    """
    Token, staking and batch contract semantics behind the endpoint boundary.

    Failures are injected per call site with ``fail_next``: ``estimate_gas``,
    ``send_transaction``, ``wait_for_receipt`` or ``call:<method>``.
    Dry runs during gas estimation raise the same text a JSON-RPC node
    returns ("execution reverted: <reason>").
    """

    def __init__(self, owner: str = OWNER, gas_estimate: int = 50_000,
                 max_supply: Optional[int] = None):
        self.owner = owner
        self.gas_estimate = gas_estimate
        self.max_supply = max_supply
        self.balances: dict[str, int] = defaultdict(int)
        self.total_supply = 0
        self.staked: dict[str, int] = defaultdict(int)
        self.rewards: dict[str, int] = defaultdict(int)
        self.native_balance = 0
        self.users: list[tuple] = []
        self.calls: list[tuple[str, str]] = []
        self.sent: list[tuple[str, int]] = []
        self.failures: dict[str, list[BaseException]] = defaultdict(list)
        self.confirm_gate: Optional[asyncio.Event] = None
        self.block_number = 100
        self._pending: dict[str, CallDescriptor] = {}
        self._tx_counter = 0

    def fail_next(self, site: str, *errors: BaseException) -> None:
        self.failures[site].extend(errors)

    def count(self, site: str) -> int:
        return sum(1 for recorded, _ in self.calls if recorded == site)

    def _maybe_fail(self, site: str) -> None:
        if self.failures[site]:
            raise self.failures[site].pop(0)

    async def estimate_gas(self, call: CallDescriptor) -> int:
        self.calls.append(("estimate_gas", call.method.name))
        self._maybe_fail("estimate_gas")
        reason = self._apply(call, commit=False)
        if reason:
            raise ValueError(f"execution reverted: {reason}")
        return self.gas_estimate

    async def send_transaction(self, call: CallDescriptor, gas_limit: int) -> str:
        self.calls.append(("send_transaction", call.method.name))
        self._maybe_fail("send_transaction")
        self._tx_counter += 1
        tx_hash = f"0x{self._tx_counter:064x}"
        self._pending[tx_hash] = call
        self.sent.append((call.method.name, gas_limit))
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str, timeout: float,
                               poll_latency: float) -> dict[str, Any]:
        self.calls.append(("wait_for_receipt", tx_hash))
        if self.confirm_gate is not None:
            await self.confirm_gate.wait()
        self._maybe_fail("wait_for_receipt")
        call = self._pending.pop(tx_hash)
        reason = self._apply(call, commit=True)
        if reason:
            raise ContractRevertError(reason, tx_hash=tx_hash)
        self.block_number += 1
        return {
            "transactionHash": tx_hash,
            "status": 1,
            "blockNumber": self.block_number,
            "gasUsed": self.gas_estimate,
        }

    async def call(self, call: CallDescriptor) -> Any:
        name = call.method.name
        self.calls.append(("call", name))
        self._maybe_fail(f"call:{name}")
        args = call.args
        if name == "balanceOf":
            return self.balances[args[0]]
        if name == "totalSupply":
            return self.total_supply
        if name == "owner":
            return self.owner
        if name == "getStakedBalance":
            return self.staked[args[0]]
        if name == "getPendingRewards":
            return self.rewards[args[0]]
        if name == "getContractBalance":
            return self.native_balance
        if name == "processLargeArray":
            return sum(args[0])
        raise ValueError(f"execution reverted: no view method {name}")

    def _apply(self, call: CallDescriptor, commit: bool) -> Optional[str]:
        """Run a mutating call; returns the revert reason instead of raising."""
        name, args, sender = call.method.name, call.args, call.sender

        if name == "mint":
            to, amount = args
            if sender != self.owner:
                return "Ownable: caller is not the owner"
            if self.max_supply is not None and self.total_supply + amount > self.max_supply:
                return "ERC20Capped: cap exceeded"
            if commit:
                self.balances[to] += amount
                self.total_supply += amount
        elif name == "burn":
            (amount,) = args
            if self.balances[sender] < amount:
                return "burn amount exceeds balance"
            if commit:
                self.balances[sender] -= amount
                self.total_supply -= amount
        elif name == "stake":
            if not call.value:
                return "Cannot stake 0"
            if commit:
                self.staked[sender] += call.value
                self.native_balance += call.value
        elif name == "unstake":
            (amount,) = args
            if self.staked[sender] < amount:
                return "Insufficient staked balance"
            if commit:
                self.staked[sender] -= amount
                self.native_balance -= amount
        elif name == "claimRewards":
            if self.rewards[sender] == 0:
                return "No rewards to claim"
            if commit:
                self.balances[sender] += self.rewards[sender]
                self.rewards[sender] = 0
        elif name == "addMultipleUsers":
            if commit:
                self.users.extend(args[0])
        elif name in ("performComplexCalculation", "updateAllBalances", "simulateExternalCall"):
            pass
        else:
            return f"function {name} not found"
        return None


class RecordingSleep:
    """Async sleep stand-in that records delays instead of waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


STAKING_DEPLOYMENT = {
    "address": STAKING_ADDRESS,
    "chain_id": HOLESKY,
    "chain_name": "Holesky",
    "methods": [
        "function stake() public payable",
        "function unstake(uint256 amount) public",
        "function claimRewards() public",
        "function balanceOf(address account) public view returns (uint256)",
        "function getStakedBalance(address user) public view returns (uint256)",
        "function getPendingRewards(address user) public view returns (uint256)",
    ],
    "sync": {
        "balance": "balanceOf",
        "total_supply": None,
        "staked_balance": "getStakedBalance",
        "pending_rewards": "getPendingRewards",
    },
}


@pytest.fixture
def owner_address() -> str:
    return OWNER


@pytest.fixture
def user_address() -> str:
    return USER


@pytest.fixture
def config_loader() -> ConfigLoader:
    """Loader over the shipped deployments file."""
    return ConfigLoader.create()


@pytest.fixture
def token_deployment(config_loader):
    return config_loader.load_deployment("minting-token")


@pytest.fixture
def gas_heavy_deployment(config_loader):
    return config_loader.load_deployment("gas-heavy")


@pytest.fixture
def staking_deployment():
    return deployment_from_dict("staking", STAKING_DEPLOYMENT)


@pytest.fixture
def wallet() -> FakeWallet:
    return FakeWallet()


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def make_wallet():
    return FakeWallet


@pytest.fixture
def make_ledger():
    return InMemoryLedger


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_gateway(recording_sleep):
    """Build a gateway whose retry backoff is recorded, not slept."""
    def _make(deployment, endpoint, config=None, journal=None):
        config = config or get_default_config()
        return ContractGateway(
            deployment,
            endpoint,
            retry_policy=RetryPolicy(config.retry, sleep=recording_sleep),
            config=config,
            journal=journal,
        )
    return _make


@pytest.fixture
def make_controller(make_gateway):
    """Build a controller over a fake wallet and an in-memory ledger."""
    def _make(deployment, ledger, wallet=None, config=None, journal=None, deliveries=None):
        config = config or get_default_config()
        gateway = make_gateway(deployment, ledger, config=config, journal=journal)
        session_manager = SessionManager(wallet if wallet is not None else FakeWallet(), deployment)
        return OperationController(
            deployment,
            session_manager,
            gateway,
            config=config,
            deliveries=deliveries,
        )
    return _make
