"""Typed exceptions for the Soulbound Identity toolkit."""


class SoulboundIdentityError(Exception):
    """Base exception for Soulbound Identity."""


class ConfigurationError(SoulboundIdentityError):
    """Required configuration is missing or invalid."""


class DocumentReadError(SoulboundIdentityError):
    """An identity document exists but could not be read.

    Attributes:
        path: Path of the document that failed to read
    """

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class ChainError(SoulboundIdentityError):
    """Base exception for chain reads."""


class ChainConnectionError(ChainError):
    """Cannot reach the RPC endpoint (network failure or timeout)."""


class ChainRPCError(ChainError):
    """The RPC endpoint answered with an error.

    Attributes:
        code: JSON-RPC error code if available
    """

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code


class ContractRevertError(ChainRPCError):
    """A contract call reverted."""


class AgentNotFoundError(SoulboundIdentityError):
    """No agent is registered under the requested identifier.

    Attributes:
        agent_id: The identifier that was looked up
    """

    def __init__(self, agent_id: int):
        super().__init__(f"Agent #{agent_id} is not registered")
        self.agent_id = agent_id


class SignerNotConfiguredError(SoulboundIdentityError):
    """Signing was requested but no signer is available."""
