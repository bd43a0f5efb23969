"""pytest configuration for soulbound-identity tests.

Chain traffic is served by ``FakeChain``: an in-memory identity registry and
ERC-6551 registry answering ABI-encoded JSON-RPC calls through
``httpx.MockTransport``. No network is needed.
"""

import json
from typing import Any

import httpx
import pytest
from eth_abi import decode, encode

from soulbound_identity import abi
from soulbound_identity.client import ChainClient
from soulbound_identity.config import AgentConfig, ChainConfig
from soulbound_identity.tba import compute_tba_address

OWNER = "0x1111111111111111111111111111111111111111"
WALLET = "0x2222222222222222222222222222222222222222"
ZERO = "0x" + "0" * 40

DOCUMENTS = {
    "SOUL.md": b"# Soul\nI am Bernardo. I keep my word.\n",
    "USER.md": b"# User\nThe owner prefers concise answers.\n",
    "IDENTITY.md": b"# Identity\nBusiness & engineering agent.\n",
}


class FakeChain:
    """In-memory registries behind a JSON-RPC endpoint."""

    def __init__(self, config: ChainConfig):
        self.config = config
        self.owners: dict[int, str] = {}
        self.uris: dict[int, str] = {}
        self.wallets: dict[int, str] = {}
        self.metadata: dict[tuple[int, str], bytes] = {}
        self.code: dict[str, str] = {}
        self.documents: dict[str, Any] = {}
        self.calls: list[str] = []
        self.rpc_error: dict[str, Any] | None = None
        self.rpc_timeout = False

    def register(self, agent_id: int, uri: str, owner: str = OWNER, wallet: str | None = None) -> None:
        self.owners[agent_id] = owner
        self.uris[agent_id] = uri
        if wallet is not None:
            self.wallets[agent_id] = wallet

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> ChainClient:
        return ChainClient(self.config, transport=self.transport())

    # -- request handling -------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return self._serve_document(str(request.url))

        if self.rpc_timeout:
            raise httpx.ReadTimeout("timed out", request=request)

        payload = json.loads(request.content)
        request_id = payload["id"]
        if self.rpc_error is not None:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": request_id, "error": self.rpc_error})

        method, params = payload["method"], payload["params"]
        if method == "eth_getCode":
            code = self.code.get(params[0].lower(), "0x")
            return _result(request_id, code)
        if method == "eth_call":
            return self._eth_call(request_id, params[0]["data"])
        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": request_id, "error": {"code": -32601, "message": "method not found"}},
        )

    def _serve_document(self, url: str) -> httpx.Response:
        if url not in self.documents:
            return httpx.Response(404, text="not found")
        body = self.documents[url]
        if isinstance(body, Exception):
            raise body
        if isinstance(body, str):
            return httpx.Response(200, text=body)
        return httpx.Response(200, json=body)

    def _eth_call(self, request_id: int, data_hex: str) -> httpx.Response:
        data = bytes.fromhex(data_hex[2:])
        selector, args = data[:4], data[4:]

        for fn in (
            abi.OWNER_OF,
            abi.TOKEN_URI,
            abi.BALANCE_OF,
            abi.GET_AGENT_WALLET,
            abi.GET_METADATA,
            abi.TBA_ACCOUNT,
        ):
            if fn.selector == selector:
                break
        else:
            return _revert(request_id)

        self.calls.append(fn.name)
        values = decode(list(fn.inputs), args)

        if fn is abi.OWNER_OF:
            if values[0] not in self.owners:
                return _revert(request_id)
            return _encoded(request_id, ["address"], [self.owners[values[0]]])
        if fn is abi.TOKEN_URI:
            if values[0] not in self.uris:
                return _revert(request_id)
            return _encoded(request_id, ["string"], [self.uris[values[0]]])
        if fn is abi.BALANCE_OF:
            count = sum(1 for owner in self.owners.values() if owner.lower() == values[0].lower())
            return _encoded(request_id, ["uint256"], [count])
        if fn is abi.GET_AGENT_WALLET:
            if values[0] not in self.owners:
                return _revert(request_id)
            return _encoded(request_id, ["address"], [self.wallets.get(values[0], ZERO)])
        if fn is abi.GET_METADATA:
            return _encoded(request_id, ["bytes"], [self.metadata.get((values[0], values[1]), b"")])

        implementation, salt, chain_id, token_contract, token_id = values
        address = compute_tba_address(
            implementation, salt, chain_id, token_contract, token_id, self.config.tba_registry
        )
        return _encoded(request_id, ["address"], [address])


def _result(request_id: int, result: Any) -> httpx.Response:
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": request_id, "result": result})


def _encoded(request_id: int, types: list[str], values: list[Any]) -> httpx.Response:
    return _result(request_id, "0x" + encode(types, values).hex())


def _revert(request_id: int) -> httpx.Response:
    return httpx.Response(
        200,
        json={"jsonrpc": "2.0", "id": request_id, "error": {"code": 3, "message": "execution reverted"}},
    )


@pytest.fixture
def chain_config() -> ChainConfig:
    """Chain deployment pointing at a fake RPC endpoint."""
    return ChainConfig(rpc_url="http://rpc.test", chain_id=8453)


@pytest.fixture
def fake_chain(chain_config) -> FakeChain:
    return FakeChain(chain_config)


@pytest.fixture
def workspace(tmp_path):
    """Workspace holding all three identity documents."""
    path = tmp_path / "workspace"
    path.mkdir()
    for name, content in DOCUMENTS.items():
        (path / name).write_bytes(content)
    return path


@pytest.fixture
def agent_config(workspace) -> AgentConfig:
    return AgentConfig(
        name="Bernardo",
        description="Business & engineering agent",
        workspace_path=str(workspace),
        owner_address=OWNER,
    )
