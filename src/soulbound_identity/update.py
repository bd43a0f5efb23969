"""Identity updater: republish identity hashes after local edits.

When SOUL.md, USER.md or IDENTITY.md changes, the update workflow
recomputes the hashes, compares them with the registration currently on
chain, and if anything drifted rebuilds the registration and prepares the
unsigned ``register`` / ``setAgentURI`` transaction.

Nothing here holds a private key. Signing is delegated to a ``Signer``
supplied by the caller.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol

from .client import ChainClient
from .config import AgentConfig
from .exceptions import ConfigurationError, SignerNotConfiguredError
from .hashing import hash_identity_files
from .registration import build_registration, estimate_on_chain_cost, to_data_uri, utc_timestamp
from .types import (
    HashChange,
    IdentitySnapshot,
    RegistrationDocument,
    UnsignedTransaction,
    UpdatePlan,
)

logger = logging.getLogger(__name__)


class Signer(Protocol):
    """Anything that can sign and broadcast an UnsignedTransaction."""

    def sign(self, transaction: UnsignedTransaction) -> str:
        """Sign and submit, returning the transaction hash."""
        ...


def diff_hashes(snapshot: IdentitySnapshot, on_chain: dict[str, Any]) -> list[HashChange]:
    """List documents (and the composite) whose hash differs from chain."""
    changes = []
    for name, local_hash in snapshot.expected_hashes().items():
        chain_hash = on_chain.get(name)
        if local_hash != chain_hash:
            changes.append(HashChange(file=name, previous=chain_hash, current=local_hash))
    return changes


def _all_changed(snapshot: IdentitySnapshot) -> list[HashChange]:
    return [HashChange(file=name, previous=None, current=h) for name, h in snapshot.expected_hashes().items()]


def _check_agent_identifier(config: AgentConfig, registration: RegistrationDocument) -> None:
    """An agent keeps its identifier across every registration it publishes."""
    registry = f"eip155:{config.chain_id}:{config.identity_registry}".lower()
    for entry in registration.registrations:
        if entry.agent_registry.lower() == registry and entry.agent_id != config.agent_id:
            raise ConfigurationError(
                f"On-chain registration belongs to agent #{entry.agent_id}, "
                f"config says #{config.agent_id}"
            )


async def plan_update(config: AgentConfig, client: ChainClient) -> UpdatePlan:
    """Work out whether the on-chain identity needs republishing.

    Args:
        config: Agent configuration (must name a workspace)
        client: Chain client used for the current state and tx building

    Returns:
        UpdatePlan; ``noop`` is True when chain already matches the workspace

    Raises:
        ConfigurationError: Workspace missing, or agent id inconsistent with chain
        DocumentReadError: An identity document could not be read
        AgentNotFoundError: ``config.agent_id`` is not registered
        ChainError: Chain state could not be read
    """
    if not config.workspace_path:
        raise ConfigurationError("Config has no workspacePath")
    if not os.path.isdir(config.workspace_path):
        raise ConfigurationError(f"Workspace {config.workspace_path} is not a directory")

    snapshot = hash_identity_files(config.workspace_path)

    if config.agent_id is None:
        logger.info("No agentId configured; preparing initial registration")
        changes = _all_changed(snapshot)
    else:
        agent = await client.lookup_agent(config.agent_id)
        current = agent.registration
        if current is not None:
            _check_agent_identifier(config, current)

        if current is not None and current.identity_files:
            changes = diff_hashes(snapshot, current.identity_files)
            if not changes:
                logger.info("Identity of agent #%s already matches chain", config.agent_id)
                return UpdatePlan(snapshot=snapshot, agent_id=config.agent_id, noop=True)
        else:
            logger.info("Agent #%s has no identity hashes on chain yet", config.agent_id)
            changes = _all_changed(snapshot)

    registration = build_registration(config, snapshot=snapshot)
    data_uri = to_data_uri(registration)

    if config.agent_id is None:
        transaction = client.build_register_tx(data_uri)
    else:
        transaction = client.build_update_uri_tx(config.agent_id, data_uri)

    return UpdatePlan(
        snapshot=snapshot,
        agent_id=config.agent_id,
        changes=changes,
        registration=registration,
        data_uri=data_uri,
        cost=estimate_on_chain_cost(registration),
        transaction=transaction,
    )


def artifact_path(config_path: str | os.PathLike, suffix: str) -> Path:
    path = Path(config_path)
    return path.with_name(f"{path.stem}-{suffix}.json")


def _write_json(path: Path, data: Any) -> None:
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


def write_dry_run_artifacts(plan: UpdatePlan, config_path: str | os.PathLike) -> tuple[Path, Path]:
    """Save the registration and expected hashes next to the config.

    The expected-hashes file is in the format ``verify --offline`` reads.

    Returns:
        (registration path, expected-hashes path)
    """
    if plan.registration is None:
        raise ValueError("No-op plan has no registration to write")

    registration_path = artifact_path(config_path, "registration")
    hashes_path = artifact_path(config_path, "expected-hashes")
    _write_json(registration_path, plan.registration.to_json_dict())
    _write_json(hashes_path, plan.snapshot.expected_hashes())
    return registration_path, hashes_path


def write_transaction_handoff(
    plan: UpdatePlan,
    output_path: str | os.PathLike,
    chain_id: int,
) -> Path:
    """Serialize the unsigned transaction for an external signer."""
    if plan.transaction is None or plan.registration is None:
        raise ValueError("No-op plan has no transaction to write")

    handoff = {
        **plan.transaction.model_dump(),
        "chainId": chain_id,
        "registration": plan.registration.to_json_dict(),
        "changes": [change.model_dump(by_alias=True) for change in plan.changes],
        "timestamp": utc_timestamp(),
    }
    path = Path(output_path)
    _write_json(path, handoff)
    return path


def sign_and_submit(transaction: UnsignedTransaction, signer: Signer | None = None) -> str:
    """Hand a transaction to a signer.

    Raises:
        SignerNotConfiguredError: No signer was supplied
    """
    if signer is None:
        raise SignerNotConfiguredError(
            "No signer configured. Use --output to save the unsigned transaction and sign it externally."
        )
    logger.info("Submitting: %s", transaction.description)
    return signer.sign(transaction)
