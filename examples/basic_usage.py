#!/usr/bin/env python3
"""
Basic Usage Example - ChainSync Contract Operation Engine

This script drives the minting token deployment through a JSON-RPC node that
manages unlocked accounts (a local Anvil or Hardhat node forked from Holesky
works). It shows how to:
- Build a controller for a named deployment
- Connect the signing session
- Submit operations and read their outcomes
- Watch published events and the refreshed account state

Run: python examples/basic_usage.py http://127.0.0.1:8545
"""

import asyncio
import sys

from chainsync_app.config.delivery import StdoutDeliveryConfig
from chainsync_app.config.loader import ConfigLoader
from chainsync_app.delivery.stdout_delivery import StdoutEventDelivery
from chainsync_app.engine import OperationController
from chainsync_app.gateway.endpoint import Web3ContractEndpoint
from chainsync_app.logging.config import configure_logging
from chainsync_app.session.wallet import Web3WalletProvider


async def run(rpc_url: str) -> None:
    deployment = ConfigLoader.create().load_deployment("minting-token")

    controller = OperationController.from_config(
        "minting-token",
        wallet=Web3WalletProvider.from_rpc_url(rpc_url),
        endpoint=Web3ContractEndpoint.from_rpc_url(rpc_url, deployment),
    )
    controller.add_delivery(StdoutEventDelivery("console", StdoutDeliveryConfig(format="pretty")))

    connected = await controller.connect()
    if not connected.succeeded:
        print(f"Could not connect: {connected.error.message}")
        return
    print(f"Connected as {connected.value}")

    for method_name, args in [
        ("mint", ["100.0"]),
        ("burn", ["0"]),              # Rejected: amounts must be positive
        ("burn", ["1000000000"]),     # Fails: burn amount exceeds balance
        ("burn", ["25.5"]),
    ]:
        outcome = await controller.submit(method_name, args)
        if outcome.succeeded:
            print(f"{method_name}{args}: confirmed in block {outcome.receipt.block_number}, "
                  f"gas limit {outcome.receipt.gas_limit}")
        elif outcome.reason:
            print(f"{method_name}{args}: rejected ({outcome.reason})")
        else:
            print(f"{method_name}{args}: {outcome.error.kind.value} - {outcome.error.message}")

    await controller.drain()
    state = controller.current_account_state()
    print(f"\nBalance: {state.balance}  Total supply: {state.total_supply}  "
          f"Cap: {state.max_supply}  Owner: {state.is_owner}")
    print(f"Stats: {controller.get_runtime_stats()['outcomes']}")


def main() -> None:
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    configure_logging(level="WARNING")
    asyncio.run(run(sys.argv[1]))


if __name__ == "__main__":
    main()
