"""
Soulbound Identity Command Line Interface.

Provides commands for hashing identity documents, building registration
files, inspecting agents on chain, verifying a workspace and preparing
identity updates.
"""

import argparse
import asyncio
import json
import logging
import sys

from .client import ChainClient
from .config import AgentConfig, ChainConfig, load_agent_config
from .exceptions import (
    AgentNotFoundError,
    SignerNotConfiguredError,
    SoulboundIdentityError,
)
from .hashing import hash_identity_files
from .registration import build_registration, estimate_on_chain_cost, to_data_uri
from .tba import DEFAULT_SALT
from .types import ExitCode, IdentitySnapshot, VerificationOutcome, VerificationStatus
from .update import (
    artifact_path,
    plan_update,
    sign_and_submit,
    write_dry_run_artifacts,
    write_transaction_handoff,
)
from .verify import verify_identity

STATUS_ICONS = {
    VerificationStatus.VERIFIED: "✅",
    VerificationStatus.MISMATCH: "❌",
    VerificationStatus.MISSING: "⛔",
    VerificationStatus.NO_CHAIN_HASH: "⚠️ ",
}


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(levelname)s: %(message)s'
    )


def _chain_config(args: argparse.Namespace, agent: AgentConfig | None = None) -> ChainConfig:
    overrides = {}
    if getattr(args, "rpc_url", None):
        overrides["rpc_url"] = args.rpc_url
    if agent is not None:
        overrides["chain_id"] = agent.chain_id
        overrides["identity_registry"] = agent.identity_registry
    return ChainConfig(**overrides)


def _print_snapshot(snapshot: IdentitySnapshot) -> None:
    for entry in snapshot.files:
        if entry.exists:
            print(f"  ✅ {entry.name}")
            print(f"     Hash: {entry.hash}")
            print(f"     Size: {entry.size} bytes")
        else:
            print(f"  ❌ {entry.name}: NOT FOUND")
    print(f"\n  🔗 Composite Hash: {snapshot.composite}\n")


# -------------------------------------------------------------------------
# Commands
# -------------------------------------------------------------------------


def cmd_hash(args: argparse.Namespace) -> int:
    """Hash the identity documents in a workspace."""
    snapshot = hash_identity_files(args.workspace)
    if args.json:
        print(json.dumps(snapshot.model_dump(), indent=2))
    else:
        print("\n🔐 Soulbound Identity Hasher")
        print(f"   Workspace: {args.workspace}\n")
        _print_snapshot(snapshot)
    return 0


def cmd_build(args: argparse.Namespace) -> int:
    """Build a registration file from an agent config."""
    config = load_agent_config(args.config)
    registration = build_registration(config)

    output = args.output or artifact_path(args.config, "registration")
    with open(output, "w", encoding="utf-8") as fh:
        json.dump(registration.to_json_dict(), fh, indent=2)

    cost = estimate_on_chain_cost(registration)
    data_uri = to_data_uri(registration)
    print(f"\n🔐 Building registration for: {config.name}")
    print(f"\n  ✅ Registration written to: {output}")
    print("\n  📊 On-chain cost estimate:")
    print(f"     JSON size: {cost.json_bytes} bytes")
    print(f"     Base64 URI size: {cost.data_uri_bytes} bytes")
    print(f"     Estimated gas: ~{cost.estimated_gas:,}")
    print(f"\n  🔗 Data URI (first 100 chars): {data_uri[:100]}...")
    print(f"     Full URI length: {len(data_uri)} chars\n")
    return 0


async def cmd_lookup(args: argparse.Namespace) -> int:
    """Look up an agent by ID and print it as JSON."""
    async with ChainClient(_chain_config(args)) as client:
        agent = await client.lookup_agent(args.agent_id)
    print(json.dumps(agent.model_dump(mode="json", by_alias=True), indent=2))
    return 0


async def cmd_tba(args: argparse.Namespace) -> int:
    """Show the token-bound account address of an agent."""
    async with ChainClient(_chain_config(args)) as client:
        tba = await client.tba_exists(args.agent_id, args.salt)
    if args.json:
        print(json.dumps(tba.model_dump(), indent=2))
    else:
        print(f"TBA for agent #{args.agent_id}: {tba.address} (exists: {str(tba.exists).lower()})")
    return 0


def _print_outcome(outcome: VerificationOutcome, verbose: bool) -> None:
    result = outcome.result
    if result is None:
        print(f"\n   ⚠️  {outcome.message}\n")
        return

    print("\n   Verification Results:")
    for name, item in result.files.items():
        print(f"     {STATUS_ICONS[item.status]} {name}: {item.status.value}")
        if item.status == VerificationStatus.MISMATCH and verbose:
            print(f"        Expected: {item.expected}")
            print(f"        Actual:   {item.actual}")
    if result.composite is not None:
        print(f"     {STATUS_ICONS[result.composite.status]} composite: {result.composite.status.value}")

    banner = "✅ IDENTITY VERIFIED" if outcome.verified else "❌ IDENTITY VERIFICATION FAILED"
    print(f"\n   {banner}\n")


async def cmd_verify(args: argparse.Namespace) -> int:
    """Verify local identity documents against chain or an offline hash file."""
    workspace = args.workspace or args.workspace_arg
    agent_id = args.agent_id
    chain_config = None

    if args.config:
        agent_config = load_agent_config(args.config)
        workspace = workspace or agent_config.workspace_path
        agent_id = agent_id if agent_id is not None else agent_config.agent_id
        chain_config = _chain_config(args, agent_config)

    if not args.json:
        print("\n🔐 Soulbound Identity Verification")
        print(f"   Workspace: {workspace}")
        if args.offline:
            print(f"   Mode: OFFLINE (hashes from {args.expected_hashes})")
        elif agent_id is not None:
            print(f"   Agent ID: {agent_id}")
            print("   Mode: ON-CHAIN")

    async with ChainClient(chain_config or _chain_config(args)) as client:
        outcome = await verify_identity(
            workspace,
            agent_id=agent_id,
            offline=args.offline,
            expected_hashes_path=args.expected_hashes,
            client=client,
            strict=args.strict,
        )

    if args.json:
        print(json.dumps(outcome.model_dump(mode="json"), indent=2))
    else:
        if outcome.exit_code == ExitCode.ERROR:
            print(f"\n   ❌ {outcome.message}", file=sys.stderr)
        else:
            _print_outcome(outcome, args.verbose)
    return int(outcome.exit_code)


async def cmd_update(args: argparse.Namespace) -> int:
    """Recompute identity hashes and prepare the on-chain update."""
    config = load_agent_config(args.config)
    chain_config = _chain_config(args, config)

    print("\n🔐 Soulbound Identity Update")
    print(f"   Agent: {config.name}")
    print(f"   Workspace: {config.workspace_path}")

    async with ChainClient(chain_config) as client:
        plan = await plan_update(config, client)

    print("\n   📝 Current identity file hashes:")
    for entry in plan.snapshot.files:
        shown = f"{entry.hash} ({entry.size} bytes)" if entry.exists else "NOT FOUND"
        print(f"     {entry.name}: {shown}")
    print(f"     composite: {plan.snapshot.composite}")

    if plan.noop:
        print("\n   ✅ All identity files match on-chain hashes. No update needed.\n")
        return 0

    print("\n   🔄 Changes detected:")
    for change in plan.changes:
        print(f"     {change.file}:")
        print(f"       On-chain: {change.previous or '(not set)'}")
        print(f"       Local:    {change.current or '(missing)'}")

    print("\n   📊 Registration file:")
    print(f"     JSON size: {plan.cost.json_bytes} bytes")
    print(f"     Data URI size: {plan.cost.data_uri_bytes} bytes")
    print(f"     Estimated gas: ~{plan.cost.estimated_gas:,}")
    print(f"\n   📋 Transaction: {plan.transaction.description}")
    if args.verbose:
        print(f"     To: {plan.transaction.to}")
        print(f"     Data: {plan.transaction.data[:66]}...")
        print(f"     Data length: {len(plan.transaction.data)} chars")

    if not (args.dry_run or args.output or args.sign):
        print("\n   Use --dry-run, --output <file>, or --sign to proceed.\n")
        return 0

    if args.dry_run:
        registration_path, hashes_path = write_dry_run_artifacts(plan, args.config)
        print("\n   🏁 DRY RUN, no transaction submitted.")
        print(f"   📄 Registration saved to: {registration_path}")
        print(f"   📄 Expected hashes saved to: {hashes_path}")

    if args.output:
        path = write_transaction_handoff(plan, args.output, chain_config.chain_id)
        print(f"\n   📄 Unsigned transaction saved to: {path}")
        print("   Sign with your private key and broadcast it.")

    if args.sign:
        print("\n   🔑 Signing transaction...")
        tx_hash = sign_and_submit(plan.transaction)
        print(f"   ✅ Submitted: {tx_hash}")

    print()
    return 0


# -------------------------------------------------------------------------
# Entry point
# -------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='soulbound-identity',
        description='Soulbound Identity - anchor and verify agent identity documents on-chain'
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose output')
    parser.add_argument('--rpc-url', help='JSON-RPC endpoint (overrides SOULBOUND_RPC_URL)')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    p_hash = subparsers.add_parser('hash', help='Hash identity documents in a workspace')
    p_hash.add_argument('workspace', nargs='?', default='.', help='Workspace path')
    p_hash.add_argument('--json', action='store_true', help='Output as JSON')

    p_build = subparsers.add_parser('build', help='Build a registration file from a config')
    p_build.add_argument('config', help='Agent config JSON')
    p_build.add_argument('-o', '--output', help='Registration output path')

    p_lookup = subparsers.add_parser('lookup', help='Look up an agent by ID')
    p_lookup.add_argument('agent_id', type=int, help='Agent ID')

    p_tba = subparsers.add_parser('tba', help='Show the token-bound account of an agent')
    p_tba.add_argument('agent_id', type=int, help='Agent ID')
    p_tba.add_argument('--salt', default=DEFAULT_SALT, help='bytes32 salt (default all-zero)')
    p_tba.add_argument('--json', action='store_true', help='Output as JSON')

    p_verify = subparsers.add_parser('verify', help='Verify identity documents')
    p_verify.add_argument('workspace_arg', nargs='?', metavar='workspace', help='Workspace path')
    p_verify.add_argument('-w', '--workspace', help='Workspace path')
    p_verify.add_argument('-a', '--agent-id', type=int, help='Agent ID to verify against')
    p_verify.add_argument('-c', '--config', help='Agent config JSON')
    p_verify.add_argument('--offline', action='store_true', help='Verify against a local hash file')
    p_verify.add_argument('--expected-hashes', help='Expected hashes JSON (offline mode)')
    p_verify.add_argument('--strict', action='store_true', help='Fail documents with no anchored hash')
    p_verify.add_argument('--json', action='store_true', help='Output as JSON')

    p_update = subparsers.add_parser('update', help='Prepare an identity hash update')
    p_update.add_argument('-c', '--config', required=True, help='Agent config JSON')
    p_update.add_argument('-d', '--dry-run', action='store_true', help='Save artifacts without transacting')
    p_update.add_argument('-o', '--output', help='Write the unsigned transaction to this file')
    p_update.add_argument('-s', '--sign', action='store_true', help='Sign and submit the transaction')

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    sync_commands = {'hash': cmd_hash, 'build': cmd_build}
    async_commands = {'lookup': cmd_lookup, 'tba': cmd_tba, 'verify': cmd_verify, 'update': cmd_update}

    try:
        if args.command in sync_commands:
            return sync_commands[args.command](args)
        if args.command in async_commands:
            return asyncio.run(async_commands[args.command](args))
    except AgentNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return int(ExitCode.NO_REGISTRATION)
    except SignerNotConfiguredError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (SoulboundIdentityError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return int(ExitCode.ERROR)

    parser.print_help()
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == '__main__':
    run()
