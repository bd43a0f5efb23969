"""Contract function descriptors for the registries this toolkit talks to.

Only the functions actually used are described. Each descriptor knows its
canonical signature, 4-byte selector, how to encode call data and how to
decode return data.
"""

from dataclasses import dataclass
from typing import Any

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector


@dataclass(frozen=True)
class ContractFunction:
    """One Solidity function.

    Attributes:
        name: Function name
        inputs: Canonical ABI input types
        outputs: Canonical ABI output types
    """

    name: str
    inputs: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ()

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> bytes:
        return function_signature_to_4byte_selector(self.signature)

    def encode_call(self, *args: Any) -> str:
        """ABI-encode a call, returning 0x-prefixed hex call data."""
        if len(args) != len(self.inputs):
            raise TypeError(f"{self.signature} takes {len(self.inputs)} arguments, got {len(args)}")
        return "0x" + (self.selector + encode(list(self.inputs), list(args))).hex()

    def decode_output(self, data: bytes) -> tuple[Any, ...]:
        return decode(list(self.outputs), data)


# -------------------------------------------------------------------------
# ERC-8004 Identity Registry (ERC-721 based)
# -------------------------------------------------------------------------

OWNER_OF = ContractFunction("ownerOf", ("uint256",), ("address",))
TOKEN_URI = ContractFunction("tokenURI", ("uint256",), ("string",))
BALANCE_OF = ContractFunction("balanceOf", ("address",), ("uint256",))

REGISTER = ContractFunction("register", ("string",), ("uint256",))
REGISTER_WITH_METADATA = ContractFunction("register", ("string", "(string,bytes)[]"), ("uint256",))
SET_AGENT_URI = ContractFunction("setAgentURI", ("uint256", "string"))

GET_METADATA = ContractFunction("getMetadata", ("uint256", "string"), ("bytes",))
SET_METADATA = ContractFunction("setMetadata", ("uint256", "string", "bytes"))

GET_AGENT_WALLET = ContractFunction("getAgentWallet", ("uint256",), ("address",))

# -------------------------------------------------------------------------
# ERC-6551 Registry
# -------------------------------------------------------------------------

TBA_ACCOUNT = ContractFunction(
    "account",
    ("address", "bytes32", "uint256", "address", "uint256"),
    ("address",),
)
TBA_CREATE_ACCOUNT = ContractFunction(
    "createAccount",
    ("address", "bytes32", "uint256", "address", "uint256"),
    ("address",),
)
