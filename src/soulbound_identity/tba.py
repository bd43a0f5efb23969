"""Offline ERC-6551 token-bound account address derivation.

The registry deploys each account with CREATE2, so its address can be
computed without touching the chain. The result says nothing about whether
the account has been deployed yet.
"""

from eth_abi import encode
from eth_utils import keccak, to_bytes, to_canonical_address, to_checksum_address

# ERC-1167 minimal proxy around the implementation, as laid out by the ERC-6551 registry
_PROXY_HEADER = bytes.fromhex("3d60ad80600a3d3981f3363d3d373d3d3d363d73")
_PROXY_FOOTER = bytes.fromhex("5af43d82803e903d91602b57fd5bf3")

DEFAULT_SALT = "0x" + "0" * 64


def salt_bytes(salt: str | bytes) -> bytes:
    """Normalize a salt to 32 bytes (left-padded)."""
    raw = salt if isinstance(salt, bytes) else to_bytes(hexstr=salt)
    if len(raw) > 32:
        raise ValueError("salt must fit in 32 bytes")
    return raw.rjust(32, b"\x00")


def account_bytecode(
    implementation: str,
    salt: str | bytes,
    chain_id: int,
    token_contract: str,
    token_id: int,
) -> bytes:
    """Creation bytecode of the account proxy."""
    return (
        _PROXY_HEADER
        + to_canonical_address(implementation)
        + _PROXY_FOOTER
        + encode(
            ["bytes32", "uint256", "address", "uint256"],
            [salt_bytes(salt), chain_id, to_checksum_address(token_contract), token_id],
        )
    )


def compute_tba_address(
    implementation: str,
    salt: str | bytes,
    chain_id: int,
    token_contract: str,
    token_id: int,
    registry: str,
) -> str:
    """Derive the account address the registry would deploy.

    Pure function of its inputs.

    Returns:
        Checksummed address
    """
    init_code_hash = keccak(account_bytecode(implementation, salt, chain_id, token_contract, token_id))
    digest = keccak(b"\xff" + to_canonical_address(registry) + salt_bytes(salt) + init_code_hash)
    return to_checksum_address(digest[12:])
