"""
Configuration for Soulbound Identity.

Chain defaults are read from environment variables so the same code can point
at mainnet, a testnet or a local fork without changes. They only seed
``ChainConfig``; the client itself always receives an explicit, immutable
``ChainConfig`` so several chains can coexist in one process.

Environment Variables:
    SOULBOUND_RPC_URL: JSON-RPC endpoint (default: Base public endpoint)
    SOULBOUND_CHAIN_ID: EVM chain id (default: 8453, Base mainnet)
    SOULBOUND_IDENTITY_REGISTRY: ERC-8004 Identity Registry address
    SOULBOUND_TBA_REGISTRY: ERC-6551 registry address
    SOULBOUND_TBA_IMPLEMENTATION: ERC-6551 account implementation address
    SOULBOUND_IPFS_GATEWAY: Gateway prefix used to fetch ipfs:// URIs
    SOULBOUND_RPC_TIMEOUT: Seconds before an RPC call is abandoned
    SOULBOUND_FETCH_TIMEOUT: Seconds before a registration-file fetch is abandoned
"""

import json
import os
from pathlib import Path
from typing import Any, Final

from eth_utils import is_address, to_checksum_address
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ConfigurationError

# =============================================================================
# Chain Defaults (Base Mainnet)
# =============================================================================

RPC_URL: Final[str] = os.getenv("SOULBOUND_RPC_URL", "https://base-mainnet.public.blastapi.io")

CHAIN_ID: Final[int] = int(os.getenv("SOULBOUND_CHAIN_ID", "8453"))

IDENTITY_REGISTRY: Final[str] = os.getenv(
    "SOULBOUND_IDENTITY_REGISTRY",
    "0x8004A169FB4a3325136EB29fA0ceB6D2e539a432",
)

# ERC-6551 canonical deployment, same address on all EVM chains
TBA_REGISTRY: Final[str] = os.getenv(
    "SOULBOUND_TBA_REGISTRY",
    "0x000000006551c19487814612e58FE06813775758",
)

TBA_IMPLEMENTATION: Final[str] = os.getenv(
    "SOULBOUND_TBA_IMPLEMENTATION",
    "0x55266d75D1a14E4572138116aF39863Ed6596E7F",
)

IPFS_GATEWAY: Final[str] = os.getenv("SOULBOUND_IPFS_GATEWAY", "https://ipfs.io/ipfs/")

RPC_TIMEOUT: Final[float] = float(os.getenv("SOULBOUND_RPC_TIMEOUT", "30"))

FETCH_TIMEOUT: Final[float] = float(os.getenv("SOULBOUND_FETCH_TIMEOUT", "10"))


def _checksum(value: str) -> str:
    if not is_address(value.lower()):
        raise ValueError(f"not an EVM address: {value!r}")
    return to_checksum_address(value)


class ChainConfig(BaseModel):
    """Immutable description of one chain deployment.

    Attributes:
        rpc_url: JSON-RPC endpoint
        chain_id: EVM chain id
        identity_registry: ERC-8004 Identity Registry address
        tba_registry: ERC-6551 registry address
        tba_implementation: ERC-6551 account implementation address
        ipfs_gateway: URL prefix substituted for ``ipfs://``
        rpc_timeout: Seconds per RPC call
        fetch_timeout: Seconds per registration-file fetch
    """

    model_config = ConfigDict(frozen=True, validate_default=True)

    rpc_url: str = RPC_URL
    chain_id: int = CHAIN_ID
    identity_registry: str = IDENTITY_REGISTRY
    tba_registry: str = TBA_REGISTRY
    tba_implementation: str = TBA_IMPLEMENTATION
    ipfs_gateway: str = IPFS_GATEWAY
    rpc_timeout: float = Field(default=RPC_TIMEOUT, gt=0)
    fetch_timeout: float = Field(default=FETCH_TIMEOUT, gt=0)

    @field_validator(
        "identity_registry",
        "tba_registry",
        "tba_implementation",
        mode="after",
    )
    @classmethod
    def _normalize_address(cls, value: str) -> str:
        return _checksum(value)

    @property
    def caip_chain(self) -> str:
        """CAIP-2 chain reference, e.g. ``eip155:8453``."""
        return f"eip155:{self.chain_id}"


class AgentConfig(BaseModel):
    """Agent description read from a JSON config file.

    Keys use the camelCase names of the config file format, e.g.::

        {
          "name": "Bernardo",
          "description": "Business & engineering agent",
          "workspacePath": "~/.openclaw/workspace",
          "ownerAddress": "0x...",
          "agentId": 42,
          "services": []
        }
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", validate_default=True)

    name: str
    description: str = ""
    image: str = ""
    workspace_path: str | None = Field(default=None, alias="workspacePath")
    owner_address: str | None = Field(default=None, alias="ownerAddress")
    agent_id: int | None = Field(default=None, alias="agentId")
    chain_id: int = Field(default=CHAIN_ID, alias="chainId")
    identity_registry: str = Field(default=IDENTITY_REGISTRY, alias="identityRegistry")
    services: list[dict[str, Any]] = Field(default_factory=list)
    supported_trust: list[str] = Field(default_factory=lambda: ["reputation"], alias="supportedTrust")
    soulbound: dict[str, Any] = Field(default_factory=lambda: {"locked": True, "standard": "ERC-5192"})

    @field_validator("workspace_path", mode="after")
    @classmethod
    def _expand_user(cls, value: str | None) -> str | None:
        return os.path.expanduser(value) if value else value

    @field_validator("identity_registry", mode="after")
    @classmethod
    def _normalize_registry(cls, value: str) -> str:
        return _checksum(value)


def load_agent_config(path: str | os.PathLike) -> AgentConfig:
    """Load and validate an agent JSON config file.

    Raises:
        ConfigurationError: File missing, not JSON, or invalid
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read config {path}: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Config {path} is not valid JSON: {e}") from e

    try:
        return AgentConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config {path}: {e}") from e


def load_expected_hashes(path: str | os.PathLike) -> dict[str, str | None]:
    """Load an offline expected-hashes file (name -> hash, plus ``_composite``).

    Raises:
        ConfigurationError: File missing, not JSON, or not an object
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"Cannot read expected hashes {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Expected hashes {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Expected hashes {path} must be a JSON object")
    return data
