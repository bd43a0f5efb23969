"""Identity verification against on-chain or offline hashes.

Checks that the local identity documents match the hashes anchored in the
agent's ERC-8004 registration. Intended to run at agent boot.

Outcomes map to process exit codes:
    0 = verified (all hashes match)
    1 = mismatch (a document was changed or is missing)
    2 = no on-chain registration or no hashes in it (e.g. newly registered)
    3 = error (network, configuration, unreadable document)
"""

import logging
import os
from collections.abc import Mapping

from .client import ChainClient
from .config import load_expected_hashes
from .exceptions import (
    AgentNotFoundError,
    ChainError,
    ConfigurationError,
    DocumentReadError,
)
from .hashing import hash_identity_files
from .registration import utc_timestamp
from .types import (
    COMPOSITE_KEY,
    ExitCode,
    FileVerification,
    IdentitySnapshot,
    VerificationOutcome,
    VerificationResult,
    VerificationStatus,
)

logger = logging.getLogger(__name__)


def verify_identity_files(
    snapshot: IdentitySnapshot,
    expected: Mapping[str, str | None],
    strict: bool = False,
) -> VerificationResult:
    """Compare a local snapshot with expected hashes.

    Args:
        snapshot: Freshly computed local hashes
        expected: Document name -> expected hash, optionally with ``_composite``
        strict: Treat documents without an expected hash as failures

    Returns:
        VerificationResult with a status per document and for the composite
    """
    files: dict[str, FileVerification] = {}
    verified = True

    for entry in snapshot.files:
        want = expected.get(entry.name) or None

        if not entry.exists:
            files[entry.name] = FileVerification(status=VerificationStatus.MISSING, expected=want)
            verified = False
        elif want is None:
            # Present locally but never anchored; only fatal in strict mode
            files[entry.name] = FileVerification(status=VerificationStatus.NO_CHAIN_HASH, actual=entry.hash)
            if strict:
                verified = False
        elif entry.hash == want:
            files[entry.name] = FileVerification(
                status=VerificationStatus.VERIFIED, expected=want, actual=entry.hash
            )
        else:
            files[entry.name] = FileVerification(
                status=VerificationStatus.MISMATCH, expected=want, actual=entry.hash
            )
            verified = False

    composite = None
    expected_composite = expected.get(COMPOSITE_KEY)
    if expected_composite:
        if snapshot.composite == expected_composite:
            composite = FileVerification(
                status=VerificationStatus.VERIFIED,
                expected=expected_composite,
                actual=snapshot.composite,
            )
        else:
            composite = FileVerification(
                status=VerificationStatus.MISMATCH,
                expected=expected_composite,
                actual=snapshot.composite,
            )
            verified = False

    return VerificationResult(
        verified=verified,
        files=files,
        composite=composite,
        timestamp=utc_timestamp(),
    )


async def verify_identity(
    workspace: str | os.PathLike | None,
    agent_id: int | None = None,
    offline: bool = False,
    expected_hashes_path: str | os.PathLike | None = None,
    client: ChainClient | None = None,
    strict: bool = False,
) -> VerificationOutcome:
    """Run one verification attempt end to end.

    Offline mode reads expected hashes from a local file; online mode looks
    the agent up on chain. Operational problems are reported as
    ``ExitCode.ERROR`` rather than raised, so callers can always map the
    outcome to an exit code.

    Args:
        workspace: Directory holding the identity documents
        agent_id: Agent to verify against (online mode)
        offline: Use ``expected_hashes_path`` instead of the chain
        expected_hashes_path: Offline expected-hashes JSON file
        client: ChainClient for online mode (one is created if omitted)
        strict: Fail documents that have no anchored hash

    Returns:
        VerificationOutcome
    """
    try:
        _check_inputs(workspace, agent_id, offline, expected_hashes_path)
        snapshot = hash_identity_files(workspace)
    except (ConfigurationError, DocumentReadError) as e:
        return VerificationOutcome(exit_code=ExitCode.ERROR, message=str(e))

    if offline:
        try:
            expected = load_expected_hashes(expected_hashes_path)
        except ConfigurationError as e:
            return VerificationOutcome(exit_code=ExitCode.ERROR, message=str(e), snapshot=snapshot)
        source = f"offline hashes from {expected_hashes_path}"
    else:
        resolved = await _expected_from_chain(agent_id, client)
        if isinstance(resolved, tuple):
            code, message = resolved
            return VerificationOutcome(exit_code=code, message=message, snapshot=snapshot)
        expected = resolved
        source = f"on-chain registration of agent #{agent_id}"

    result = verify_identity_files(snapshot, expected, strict=strict)
    if result.verified:
        return VerificationOutcome(
            exit_code=ExitCode.VERIFIED,
            message=f"Identity verified against {source}",
            snapshot=snapshot,
            result=result,
        )

    failing = {VerificationStatus.MISMATCH, VerificationStatus.MISSING}
    if strict:
        failing.add(VerificationStatus.NO_CHAIN_HASH)
    failed = [name for name, item in result.files.items() if item.status in failing]
    logger.warning("Identity verification failed for %s", ", ".join(failed) or "composite")
    return VerificationOutcome(
        exit_code=ExitCode.MISMATCH,
        message=f"Identity verification against {source} failed",
        snapshot=snapshot,
        result=result,
    )


def _check_inputs(workspace, agent_id, offline, expected_hashes_path) -> None:
    if not workspace:
        raise ConfigurationError("A workspace path is required")
    if not os.path.isdir(workspace):
        raise ConfigurationError(f"Workspace {workspace} is not a directory")
    if offline and not expected_hashes_path:
        raise ConfigurationError("Offline verification needs an expected-hashes file")
    if not offline and agent_id is None:
        raise ConfigurationError("An agent id is required for on-chain verification")
    if not offline and (isinstance(agent_id, bool) or not isinstance(agent_id, int) or agent_id < 0):
        raise ConfigurationError(f"Agent id must be a non-negative integer, got {agent_id!r}")


async def _expected_from_chain(
    agent_id: int,
    client: ChainClient | None,
) -> dict[str, str | None] | tuple[ExitCode, str]:
    """Fetch anchored hashes, or the (exit code, message) that ends the attempt."""
    owns_client = client is None
    client = client or ChainClient()
    try:
        agent = await client.lookup_agent(agent_id)
    except AgentNotFoundError as e:
        return ExitCode.NO_REGISTRATION, str(e)
    except ChainError as e:
        return ExitCode.ERROR, f"Chain read error: {e}"
    finally:
        if owns_client:
            await client.aclose()

    if agent.registration is None:
        return ExitCode.NO_REGISTRATION, f"No registration file found for agent #{agent_id}"
    if not agent.registration.identity_files:
        return ExitCode.NO_REGISTRATION, "Registration file has no identity file hashes"
    return dict(agent.registration.identity_files)
