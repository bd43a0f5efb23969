"""ChainClient for reading and preparing writes to the identity registries.

Reads go over JSON-RPC (``eth_call`` / ``eth_getCode``) and need no key
material. Writes are only *built*: every ``build_*_tx`` method returns an
UnsignedTransaction that the caller hands to an external signer.
"""

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

import httpx
from eth_abi.exceptions import DecodingError
from eth_utils import to_bytes, to_checksum_address
from pydantic import ValidationError

from . import abi
from .config import ChainConfig
from .exceptions import (
    AgentNotFoundError,
    ChainConnectionError,
    ChainRPCError,
    ContractRevertError,
)
from .registration import decode_inline
from .tba import DEFAULT_SALT, compute_tba_address, salt_bytes
from .types import ChainAgent, RegistrationDocument, TBAInfo, UnsignedTransaction
from .uri import URIKind, parse_registration_uri

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40

# JSON-RPC error code geth and most providers use for reverts
_REVERT_CODE = 3


class ChainClient:
    """Async client for the ERC-8004 Identity Registry and ERC-6551 registry.

    Example:
        >>> async with ChainClient() as client:
        ...     agent = await client.lookup_agent(1)
        ...     print(agent.owner, agent.registration)
    """

    def __init__(
        self,
        config: ChainConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            config: Chain deployment to talk to (defaults from environment)
            transport: Optional httpx transport, e.g. ``httpx.MockTransport``
        """
        self._config = config or ChainConfig()
        self._client = httpx.AsyncClient(timeout=self._config.rpc_timeout, transport=transport)
        self._request_id = 0

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit - close HTTP client."""
        await self.aclose()

    async def aclose(self):
        """Close the HTTP client."""
        await self._client.aclose()

    @property
    def config(self) -> ChainConfig:
        return self._config

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        """Make a JSON-RPC request and handle errors.

        Args:
            method: JSON-RPC method name
            params: Positional parameters

        Returns:
            The ``result`` member of the response

        Raises:
            ChainConnectionError: Endpoint unreachable, timed out or HTTP error
            ContractRevertError: The call reverted
            ChainRPCError: Any other RPC-level error
        """
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}

        try:
            response = await self._client.post(self._config.rpc_url, json=payload)
        except httpx.TimeoutException as e:
            raise ChainConnectionError(f"RPC timeout after {self._config.rpc_timeout}s: {e}") from e
        except httpx.HTTPError as e:
            raise ChainConnectionError(f"Cannot reach RPC endpoint: {e}") from e

        if not response.is_success:
            raise ChainConnectionError(f"RPC endpoint returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise ChainRPCError(f"RPC response is not JSON: {e}") from e

        if not isinstance(body, dict):
            raise ChainRPCError("RPC response is not a JSON object")

        error = body.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = str(error.get("message") or "") if isinstance(error, dict) else str(error)
            if code == _REVERT_CODE or "revert" in message.lower():
                raise ContractRevertError(message or "execution reverted", code)
            raise ChainRPCError(message or "RPC error", code)

        if "result" not in body:
            raise ChainRPCError("RPC response has no result")
        return body["result"]

    async def _call(self, to: str, fn: abi.ContractFunction, *args: Any) -> tuple[Any, ...]:
        """Run a read-only contract call and decode its outputs."""
        result = await self._rpc("eth_call", [{"to": to, "data": fn.encode_call(*args)}, "latest"])
        try:
            return fn.decode_output(to_bytes(hexstr=result))
        except (DecodingError, ValueError, TypeError) as e:
            raise ChainRPCError(f"Cannot decode {fn.name} result: {e}") from e

    # -------------------------------------------------------------------------
    # Identity Registry Reads
    # -------------------------------------------------------------------------

    async def owner_of(self, agent_id: int) -> str:
        """Owner address of an agent NFT.

        Raises:
            AgentNotFoundError: No such token
        """
        _check_agent_id(agent_id)
        try:
            (owner,) = await self._call(self._config.identity_registry, abi.OWNER_OF, agent_id)
        except ContractRevertError as e:
            raise AgentNotFoundError(agent_id) from e
        return to_checksum_address(owner)

    async def token_uri(self, agent_id: int) -> str:
        """Raw tokenURI (the registration file reference) of an agent.

        Raises:
            AgentNotFoundError: No such token
        """
        _check_agent_id(agent_id)
        try:
            (uri,) = await self._call(self._config.identity_registry, abi.TOKEN_URI, agent_id)
        except ContractRevertError as e:
            raise AgentNotFoundError(agent_id) from e
        return uri

    async def balance_of(self, owner: str) -> int:
        """Number of agents held by an address."""
        (balance,) = await self._call(
            self._config.identity_registry, abi.BALANCE_OF, to_checksum_address(owner)
        )
        return balance

    async def get_agent_wallet(self, agent_id: int) -> str | None:
        """Linked wallet of an agent.

        Returns:
            Checksummed address, or None if no wallet is set (the getter
            reverts or returns the zero address)
        """
        _check_agent_id(agent_id)
        try:
            (wallet,) = await self._call(self._config.identity_registry, abi.GET_AGENT_WALLET, agent_id)
        except ContractRevertError:
            logger.debug("agent #%s has no wallet set", agent_id)
            return None
        if int(wallet, 16) == 0:
            return None
        return to_checksum_address(wallet)

    async def get_metadata(self, agent_id: int, key: str) -> bytes | None:
        """Read an on-chain metadata value.

        Returns:
            Raw bytes, or None if the key is not set
        """
        _check_agent_id(agent_id)
        try:
            (value,) = await self._call(self._config.identity_registry, abi.GET_METADATA, agent_id, key)
        except ContractRevertError:
            return None
        return value or None

    async def lookup_agent(self, agent_id: int) -> ChainAgent:
        """Look up an agent by ID.

        Owner, tokenURI and wallet are read concurrently; the tokenURI is then
        resolved into a registration document. Resolution failures leave
        ``registration`` as None instead of raising.

        Raises:
            AgentNotFoundError: No such agent
            ChainConnectionError: RPC endpoint unreachable
            ChainRPCError: RPC-level failure
        """
        _check_agent_id(agent_id)
        results = await asyncio.gather(
            self.owner_of(agent_id),
            self.token_uri(agent_id),
            self.get_agent_wallet(agent_id),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        owner, token_uri, wallet = results

        registration = await self.fetch_registration_file(token_uri)

        return ChainAgent(
            agent_id=agent_id,
            owner=owner,
            token_uri=token_uri,
            agent_wallet=wallet,
            registration=registration,
        )

    # -------------------------------------------------------------------------
    # Registration File Resolution
    # -------------------------------------------------------------------------

    async def fetch_registration_file(self, uri: str | None) -> RegistrationDocument | None:
        """Fetch and parse a registration file from any supported URI scheme.

        Supports base64 and percent-encoded ``data:`` URIs, ``ipfs://`` via
        the configured gateway, and plain HTTP(S).

        Returns:
            The parsed document, or None if the URI is unsupported,
            unreachable, or does not hold a registration JSON object
        """
        parsed = parse_registration_uri(uri, self._config.ipfs_gateway)

        try:
            if parsed.kind in (URIKind.INLINE_BASE64, URIKind.INLINE_PERCENT):
                data = decode_inline(parsed)
            elif parsed.kind in (URIKind.CONTENT_ADDRESSED, URIKind.HTTP):
                data = await self._fetch_json(parsed.url)
            else:
                logger.warning("Unsupported registration URI: %.60s", parsed.raw)
                return None

            if not isinstance(data, dict):
                logger.warning("Registration file at %.60s is not a JSON object", parsed.raw)
                return None
            return RegistrationDocument.model_validate(data)

        except ValidationError as e:
            logger.warning("Registration file at %.60s is malformed: %s", parsed.raw, e)
        except (ValueError, httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as e:
            logger.warning("Cannot resolve registration file %.60s: %s", parsed.raw, e)
        except RecursionError:
            logger.warning("Registration file at %.60s is nested too deeply", parsed.raw)
        return None

    async def _fetch_json(self, url: str) -> Any:
        """GET a URL with the bounded fetch timeout and parse JSON.

        Returns None for non-2xx responses.
        """
        response = await self._client.get(
            url, timeout=self._config.fetch_timeout, follow_redirects=True
        )
        if not response.is_success:
            logger.warning("Registration fetch %s returned HTTP %s", url, response.status_code)
            return None
        return response.json()

    # -------------------------------------------------------------------------
    # Token Bound Accounts
    # -------------------------------------------------------------------------

    async def get_tba_address(self, agent_id: int, salt: str | bytes = DEFAULT_SALT) -> str:
        """Deterministic TBA address for an agent NFT, as reported by the registry.

        The account does not need to exist; this is the address it would have.
        """
        _check_agent_id(agent_id)
        (address,) = await self._call(
            self._config.tba_registry,
            abi.TBA_ACCOUNT,
            self._config.tba_implementation,
            salt_bytes(salt),
            self._config.chain_id,
            self._config.identity_registry,
            agent_id,
        )
        return to_checksum_address(address)

    def compute_tba_address(self, agent_id: int, salt: str | bytes = DEFAULT_SALT) -> str:
        """Same address as :meth:`get_tba_address`, derived locally."""
        _check_agent_id(agent_id)
        return compute_tba_address(
            self._config.tba_implementation,
            salt,
            self._config.chain_id,
            self._config.identity_registry,
            agent_id,
            self._config.tba_registry,
        )

    async def get_code(self, address: str) -> str:
        return await self._rpc("eth_getCode", [to_checksum_address(address), "latest"])

    async def tba_exists(self, agent_id: int, salt: str | bytes = DEFAULT_SALT) -> TBAInfo:
        """Check whether an agent's TBA has code deployed."""
        address = await self.get_tba_address(agent_id, salt)
        code = await self.get_code(address)
        return TBAInfo(address=address, exists=bool(code) and code != "0x")

    # -------------------------------------------------------------------------
    # Transaction Builders (no signer involved)
    # -------------------------------------------------------------------------

    def build_register_tx(
        self,
        agent_uri: str,
        metadata: Mapping[str, str | bytes] | None = None,
    ) -> UnsignedTransaction:
        """Build a ``register(agentURI[, metadata])`` transaction."""
        if metadata:
            entries = [(key, _as_bytes(value)) for key, value in metadata.items()]
            data = abi.REGISTER_WITH_METADATA.encode_call(agent_uri, entries)
        else:
            data = abi.REGISTER.encode_call(agent_uri)
        return UnsignedTransaction(
            to=self._config.identity_registry,
            data=data,
            description=f"Register new agent with URI: {agent_uri[:80]}...",
        )

    def build_update_uri_tx(self, agent_id: int, new_uri: str) -> UnsignedTransaction:
        """Build a ``setAgentURI`` transaction (republishes identity hashes)."""
        _check_agent_id(agent_id)
        return UnsignedTransaction(
            to=self._config.identity_registry,
            data=abi.SET_AGENT_URI.encode_call(agent_id, new_uri),
            description=f"Update URI for agent #{agent_id}",
        )

    def build_create_tba_tx(self, agent_id: int, salt: str | bytes = DEFAULT_SALT) -> UnsignedTransaction:
        """Build an ERC-6551 ``createAccount`` transaction."""
        _check_agent_id(agent_id)
        return UnsignedTransaction(
            to=self._config.tba_registry,
            data=abi.TBA_CREATE_ACCOUNT.encode_call(
                self._config.tba_implementation,
                salt_bytes(salt),
                self._config.chain_id,
                self._config.identity_registry,
                agent_id,
            ),
            description=f"Create Token Bound Account for agent #{agent_id}",
        )

    def build_set_metadata_tx(self, agent_id: int, key: str, value: str | bytes) -> UnsignedTransaction:
        """Build a ``setMetadata`` transaction. Text values are stored as UTF-8."""
        _check_agent_id(agent_id)
        return UnsignedTransaction(
            to=self._config.identity_registry,
            data=abi.SET_METADATA.encode_call(agent_id, key, _as_bytes(value)),
            description=f'Set metadata "{key}" for agent #{agent_id}',
        )


def _check_agent_id(agent_id: int) -> None:
    if isinstance(agent_id, bool) or not isinstance(agent_id, int) or agent_id < 0:
        raise ValueError(f"agent id must be a non-negative integer, got {agent_id!r}")


def _as_bytes(value: str | bytes) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value
