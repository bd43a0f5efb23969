"""ERC-8004 registration file builder.

Generates the agent registration JSON that becomes the agentURI on-chain,
including the identity document hashes, service endpoints and soulbound
configuration, and encodes it as a base64 ``data:`` URI for fully on-chain
storage.
"""

import base64
import json
import logging
import math
from datetime import datetime, timezone
from typing import Any
from urllib.parse import unquote

from .config import AgentConfig
from .hashing import ALGORITHM, hash_identity_files
from .types import (
    CostEstimate,
    IdentitySnapshot,
    OwnerInfo,
    RegistrationDocument,
    RegistrationEntry,
    SoulboundConfig,
)
from .uri import RegistrationURI, URIKind, parse_registration_uri

logger = logging.getLogger(__name__)

GENERATOR = "soulbound-identity/registration-builder v1.0.0"

DATA_URI_PREFIX = "data:application/json;base64,"

# Rough upper bound for Base L2 (EIP-2028 calldata price, one SSTORE per 32 bytes)
CALLDATA_GAS_PER_BYTE = 16
STORAGE_GAS_PER_SLOT = 20_000
BASE_CALL_GAS = 50_000


def utc_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def identity_files_record(snapshot: IdentitySnapshot, now: datetime | None = None) -> dict[str, Any]:
    """Render a snapshot as the ``identityFiles`` block of a registration."""
    record: dict[str, Any] = snapshot.expected_hashes()
    record["_algorithm"] = ALGORITHM
    record["_hashDate"] = utc_timestamp(now)
    return record


def build_registration(
    config: AgentConfig,
    snapshot: IdentitySnapshot | None = None,
    now: datetime | None = None,
) -> RegistrationDocument:
    """Build an ERC-8004 registration file for an agent.

    Args:
        config: Agent configuration
        snapshot: Precomputed identity snapshot; computed from
            ``config.workspace_path`` when omitted
        now: Timestamp to stamp the document with (defaults to current time)

    Returns:
        The registration document. ``identity_files`` is None (serialized as
        ``null``) when no workspace was given.

    Raises:
        DocumentReadError: An identity document could not be read
    """
    if snapshot is None and config.workspace_path:
        snapshot = hash_identity_files(config.workspace_path)
    elif snapshot is None:
        logger.debug("No workspace configured for %s; identityFiles left null", config.name)

    registrations = []
    if config.agent_id is not None:
        registrations.append(
            RegistrationEntry(
                agent_id=config.agent_id,
                agent_registry=f"eip155:{config.chain_id}:{config.identity_registry}",
            )
        )

    return RegistrationDocument(
        name=config.name,
        description=config.description,
        image=config.image,
        services=list(config.services),
        x402_support=True,
        active=True,
        registrations=registrations,
        supported_trust=list(config.supported_trust),
        soulbound=SoulboundConfig.model_validate(config.soulbound),
        identity_files=identity_files_record(snapshot, now) if snapshot is not None else None,
        owner=OwnerInfo(address=config.owner_address, chain=f"eip155:{config.chain_id}"),
        generated_at=utc_timestamp(now),
        generator=GENERATOR,
    )


def to_json(registration: RegistrationDocument | dict[str, Any]) -> str:
    """Compact JSON serialization used for on-chain storage."""
    if isinstance(registration, RegistrationDocument):
        registration = registration.to_json_dict()
    return json.dumps(registration, separators=(",", ":"), ensure_ascii=False)


def to_data_uri(registration: RegistrationDocument | dict[str, Any]) -> str:
    """Encode a registration as a ``data:application/json;base64,...`` URI."""
    encoded = base64.b64encode(to_json(registration).encode("utf-8")).decode("ascii")
    return DATA_URI_PREFIX + encoded


def decode_inline(parsed: RegistrationURI) -> Any:
    """Decode the JSON body of an inline ``data:`` URI.

    Raises:
        ValueError: The URI is not inline, or its body is not valid JSON
    """
    if parsed.kind == URIKind.INLINE_BASE64:
        body = base64.b64decode(parsed.payload, validate=False).decode("utf-8")
    elif parsed.kind == URIKind.INLINE_PERCENT:
        body = unquote(parsed.payload)
    else:
        raise ValueError(f"not an inline data URI: {parsed.raw[:40]!r}")
    return json.loads(body)


def from_data_uri(uri: str) -> Any:
    """Inverse of :func:`to_data_uri`; returns the decoded JSON value."""
    return decode_inline(parse_registration_uri(uri))


def estimate_on_chain_cost(registration: RegistrationDocument | dict[str, Any]) -> CostEstimate:
    """Estimate the gas cost of storing a registration on-chain.

    Advisory only; the real cost depends on L2 fee conditions.
    """
    json_bytes = len(to_json(registration).encode("utf-8"))
    data_uri_bytes = len(to_data_uri(registration).encode("utf-8"))

    calldata_gas = data_uri_bytes * CALLDATA_GAS_PER_BYTE
    storage_gas = math.ceil(data_uri_bytes / 32) * STORAGE_GAS_PER_SLOT

    return CostEstimate(
        json_bytes=json_bytes,
        data_uri_bytes=data_uri_bytes,
        estimated_gas=BASE_CALL_GAS + calldata_gas + storage_gas,
        note="Actual gas depends on Base L2 fees. Estimate is rough upper bound.",
    )
