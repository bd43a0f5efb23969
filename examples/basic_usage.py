#!/usr/bin/env python3
"""Basic usage example for Soulbound Identity.

This example demonstrates:
- Hashing the identity documents of a workspace
- Building and encoding a registration file
- Looking up an agent on chain
- Verifying the workspace against the on-chain hashes
- Preparing the unsigned update transaction
"""

import asyncio
import sys

from soulbound_identity import (
    AgentConfig,
    ChainClient,
    build_registration,
    estimate_on_chain_cost,
    hash_identity_files,
    plan_update,
    to_data_uri,
    verify_identity,
)


async def main(workspace: str, agent_id: int | None = None):
    """Run basic operations against Base mainnet."""
    print("Hashing identity documents...")
    snapshot = hash_identity_files(workspace)
    for entry in snapshot.files:
        print(f"  {entry.name}: {entry.hash or 'MISSING'}")
    print(f"  composite: {snapshot.composite}")

    config = AgentConfig(
        name="Bernardo",
        description="Business & engineering agent",
        workspace_path=workspace,
        owner_address="0x0000000000000000000000000000000000000001",
        agent_id=agent_id,
    )

    print("\nBuilding registration...")
    registration = build_registration(config, snapshot=snapshot)
    cost = estimate_on_chain_cost(registration)
    print(f"  Data URI length: {len(to_data_uri(registration))} chars")
    print(f"  Estimated gas: ~{cost.estimated_gas:,}")

    async with ChainClient() as client:
        if agent_id is not None:
            print(f"\nLooking up agent #{agent_id}...")
            agent = await client.lookup_agent(agent_id)
            print(f"  Owner: {agent.owner}")
            print(f"  Registration found: {agent.registration is not None}")

            print("\nVerifying workspace...")
            outcome = await verify_identity(workspace, agent_id=agent_id, client=client)
            print(f"  {outcome.exit_code.name}: {outcome.message}")

            tba = await client.tba_exists(agent_id)
            print(f"\nToken bound account: {tba.address} (deployed: {tba.exists})")

        print("\nPlanning update...")
        plan = await plan_update(config, client)
        if plan.noop:
            print("  Nothing to do, chain already matches the workspace.")
        else:
            print(f"  {len(plan.changes)} change(s); transaction: {plan.transaction.description}")

    print("\nDone!")


if __name__ == "__main__":
    workspace_arg = sys.argv[1] if len(sys.argv) > 1 else "."
    agent_arg = int(sys.argv[2]) if len(sys.argv) > 2 else None
    asyncio.run(main(workspace_arg, agent_arg))
