"""Pydantic data models for Soulbound Identity."""

from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Key under which the composite hash travels next to the per-document hashes
COMPOSITE_KEY = "_composite"

REGISTRATION_TYPE = "https://eips.ethereum.org/EIPS/eip-8004#registration-v1"


# -------------------------------------------------------------------------
# Hashing
# -------------------------------------------------------------------------


class DocumentHash(BaseModel):
    """Content hash of one identity document.

    Attributes:
        name: Document name (e.g. "SOUL.md")
        hash: 0x-prefixed keccak256 hex digest, None if the document is missing
        size: Content length in bytes
        exists: Whether the document was found
        path: Filesystem path that was read
    """

    name: str
    hash: str | None
    size: int = 0
    exists: bool
    path: str


class IdentitySnapshot(BaseModel):
    """Hashes of the full ordered document set plus their composite."""

    files: list[DocumentHash]
    composite: str

    @property
    def names(self) -> list[str]:
        return [entry.name for entry in self.files]

    def get(self, name: str) -> DocumentHash | None:
        for entry in self.files:
            if entry.name == name:
                return entry
        return None

    def expected_hashes(self) -> dict[str, str | None]:
        """Project the snapshot into the flat name -> hash form.

        This is the format stored under ``identityFiles`` in a registration
        and in offline expected-hash files.
        """
        hashes: dict[str, str | None] = {entry.name: entry.hash for entry in self.files}
        hashes[COMPOSITE_KEY] = self.composite
        return hashes


# -------------------------------------------------------------------------
# Registration document
# -------------------------------------------------------------------------


class RegistrationEntry(BaseModel):
    """On-chain registration reference (agent id + namespaced registry)."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    agent_id: int = Field(alias="agentId")
    agent_registry: str = Field(alias="agentRegistry")


class SoulboundConfig(BaseModel):
    """ERC-5192 soulbound lock configuration."""

    model_config = ConfigDict(extra="allow")

    locked: bool = True
    standard: str = "ERC-5192"


class OwnerInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    address: str | None = None
    chain: str | None = None


class RegistrationDocument(BaseModel):
    """ERC-8004 registration file published as the agent's tokenURI.

    Unknown fields are kept (``extra="allow"``) so a document fetched from
    chain can be re-serialized without losing data written by other tools.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: str = REGISTRATION_TYPE
    name: str = ""
    description: str = ""
    image: str = ""
    services: list[dict[str, Any]] = Field(default_factory=list)
    x402_support: bool = Field(default=True, alias="x402Support")
    active: bool = True
    registrations: list[RegistrationEntry] = Field(default_factory=list)
    supported_trust: list[str] = Field(default_factory=list, alias="supportedTrust")
    soulbound: SoulboundConfig = Field(default_factory=SoulboundConfig)
    identity_files: dict[str, Any] | None = Field(default=None, alias="identityFiles")
    owner: OwnerInfo | None = None
    generated_at: str | None = Field(default=None, alias="_generatedAt")
    generator: str | None = Field(default=None, alias="_generator")

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with the wire field names."""
        return self.model_dump(mode="json", by_alias=True)

    def agent_ids(self) -> list[int]:
        return [entry.agent_id for entry in self.registrations]


class CostEstimate(BaseModel):
    """Advisory gas estimate for storing a registration on-chain."""

    json_bytes: int
    data_uri_bytes: int
    estimated_gas: int
    note: str


# -------------------------------------------------------------------------
# Chain projections
# -------------------------------------------------------------------------


class ChainAgent(BaseModel):
    """Read-only view of one agent's on-chain state."""

    model_config = ConfigDict(populate_by_name=True)

    agent_id: int = Field(alias="agentId")
    owner: str
    token_uri: str = Field(alias="tokenURI")
    agent_wallet: str | None = Field(default=None, alias="agentWallet")
    registration: RegistrationDocument | None = None


class TBAInfo(BaseModel):
    """Token-bound account address and whether code is deployed there."""

    address: str
    exists: bool


class UnsignedTransaction(BaseModel):
    """A fully encoded contract call awaiting an external signer."""

    model_config = ConfigDict(frozen=True)

    to: str
    data: str
    description: str


# -------------------------------------------------------------------------
# Verification
# -------------------------------------------------------------------------


class VerificationStatus(str, Enum):
    VERIFIED = "VERIFIED"
    MISMATCH = "MISMATCH"
    MISSING = "MISSING"
    NO_CHAIN_HASH = "NO_CHAIN_HASH"


class ExitCode(IntEnum):
    """Process exit codes of the verify command."""

    VERIFIED = 0
    MISMATCH = 1
    NO_REGISTRATION = 2
    ERROR = 3


class FileVerification(BaseModel):
    status: VerificationStatus
    expected: str | None = None
    actual: str | None = None


class VerificationResult(BaseModel):
    """Itemized comparison of local hashes against expected hashes."""

    verified: bool
    files: dict[str, FileVerification]
    composite: FileVerification | None = None
    timestamp: str


class VerificationOutcome(BaseModel):
    """Terminal state of one verification attempt.

    Attributes:
        exit_code: Outcome class (verified, mismatch, no registration, error)
        message: Human-readable explanation
        snapshot: Local snapshot, if it could be computed
        result: Comparison result, present only when hashes were compared
    """

    exit_code: ExitCode
    message: str
    snapshot: IdentitySnapshot | None = None
    result: VerificationResult | None = None

    @property
    def verified(self) -> bool:
        return self.exit_code == ExitCode.VERIFIED


# -------------------------------------------------------------------------
# Update
# -------------------------------------------------------------------------


class HashChange(BaseModel):
    """One drifted hash between chain and workspace."""

    model_config = ConfigDict(populate_by_name=True)

    file: str
    previous: str | None = Field(default=None, alias="from")
    current: str | None = Field(default=None, alias="to")


class UpdatePlan(BaseModel):
    """Everything the update workflow computed for one run.

    A no-op plan (local hashes already match chain) carries no registration
    and no transaction.
    """

    snapshot: IdentitySnapshot
    agent_id: int | None = None
    changes: list[HashChange] = Field(default_factory=list)
    noop: bool = False
    registration: RegistrationDocument | None = None
    data_uri: str | None = None
    cost: CostEstimate | None = None
    transaction: UnsignedTransaction | None = None
