"""Identity document hashing.

Computes keccak256 hashes of the agent identity documents (SOUL.md, USER.md,
IDENTITY.md) and a composite hash over the ordered set. These are the values
anchored on-chain in the ERC-8004 registration file.

The digest is Ethereum keccak256, not NIST SHA3-256 (``hashlib.sha3_256``).
The two use different padding and never agree, so an on-chain comparison
against a SHA3 digest always fails.
"""

import logging
import os
from collections.abc import Sequence

from eth_utils import keccak

from .exceptions import DocumentReadError
from .types import DocumentHash, IdentitySnapshot

logger = logging.getLogger(__name__)

IDENTITY_FILES: tuple[str, ...] = ("SOUL.md", "USER.md", "IDENTITY.md")

ALGORITHM = "keccak256"

# Stands in for a missing document inside the composite
ZERO_HASH = "0x" + "0" * 64


def keccak256(data: bytes | str) -> str:
    """Compute an Ethereum-compatible keccak256 digest.

    Args:
        data: Raw bytes, or text which is hashed as UTF-8

    Returns:
        0x-prefixed lowercase hex digest
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return "0x" + keccak(data).hex()


def composite_hash(hashes: Sequence[str | None]) -> str:
    """Hash the ordered concatenation of per-document hashes.

    Missing documents (None) contribute ZERO_HASH, so the composite changes
    when a document appears or disappears as well as when content changes.
    """
    joined = "".join(h or ZERO_HASH for h in hashes)
    return keccak256(joined.encode("utf-8"))


def hash_identity_files(
    workspace_path: str | os.PathLike,
    filenames: Sequence[str] = IDENTITY_FILES,
) -> IdentitySnapshot:
    """Hash all identity documents in a workspace.

    Documents are re-read on every call; nothing is cached.

    Args:
        workspace_path: Directory holding the identity documents
        filenames: Ordered document names to hash

    Returns:
        IdentitySnapshot with one entry per name plus the composite

    Raises:
        DocumentReadError: A document exists but could not be read
    """
    entries: list[DocumentHash] = []

    for filename in filenames:
        path = os.path.join(os.fspath(workspace_path), filename)
        try:
            with open(path, "rb") as fh:
                content = fh.read()
        except FileNotFoundError:
            logger.debug("Identity document %s not found", path)
            entries.append(DocumentHash(name=filename, hash=None, size=0, exists=False, path=path))
            continue
        except OSError as e:
            raise DocumentReadError(f"Cannot read {path}: {e}", path=path) from e

        entries.append(
            DocumentHash(
                name=filename,
                hash=keccak256(content),
                size=len(content),
                exists=True,
                path=path,
            )
        )

    return IdentitySnapshot(
        files=entries,
        composite=composite_hash([entry.hash for entry in entries]),
    )
