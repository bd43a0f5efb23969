"""Soulbound Identity - anchor agent identity documents on-chain and verify them.

Example:
    >>> from soulbound_identity import ChainClient, verify_identity
    >>> async with ChainClient() as client:
    ...     outcome = await verify_identity("~/.openclaw/workspace", agent_id=42, client=client)
    >>> print(outcome.exit_code)
"""

from .client import ChainClient
from .config import AgentConfig, ChainConfig, load_agent_config
from .hashing import IDENTITY_FILES, ZERO_HASH, hash_identity_files, keccak256
from .registration import build_registration, estimate_on_chain_cost, from_data_uri, to_data_uri
from .tba import compute_tba_address
from .types import (
    ChainAgent,
    DocumentHash,
    ExitCode,
    IdentitySnapshot,
    RegistrationDocument,
    TBAInfo,
    UnsignedTransaction,
    UpdatePlan,
    VerificationOutcome,
    VerificationResult,
    VerificationStatus,
)
from .update import Signer, plan_update, sign_and_submit
from .verify import verify_identity, verify_identity_files
from .exceptions import (
    SoulboundIdentityError,
    ConfigurationError,
    DocumentReadError,
    ChainError,
    ChainConnectionError,
    ChainRPCError,
    ContractRevertError,
    AgentNotFoundError,
    SignerNotConfiguredError,
)

__version__ = "0.1.0"

__all__ = [
    "ChainClient",
    "AgentConfig",
    "ChainConfig",
    "load_agent_config",
    "IDENTITY_FILES",
    "ZERO_HASH",
    "hash_identity_files",
    "keccak256",
    "build_registration",
    "estimate_on_chain_cost",
    "from_data_uri",
    "to_data_uri",
    "compute_tba_address",
    "ChainAgent",
    "DocumentHash",
    "ExitCode",
    "IdentitySnapshot",
    "RegistrationDocument",
    "TBAInfo",
    "UnsignedTransaction",
    "UpdatePlan",
    "VerificationOutcome",
    "VerificationResult",
    "VerificationStatus",
    "Signer",
    "plan_update",
    "sign_and_submit",
    "verify_identity",
    "verify_identity_files",
    "SoulboundIdentityError",
    "ConfigurationError",
    "DocumentReadError",
    "ChainError",
    "ChainConnectionError",
    "ChainRPCError",
    "ContractRevertError",
    "AgentNotFoundError",
    "SignerNotConfiguredError",
]
