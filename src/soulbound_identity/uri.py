"""Registration URI classification.

A tokenURI is classified once into a closed set of kinds; the client then
resolves it by kind instead of re-inspecting the string.
"""

import re
from dataclasses import dataclass
from enum import Enum

_BASE64_DATA = re.compile(r"^data:[^;,]*;base64,(.+)$", re.DOTALL)
_PLAIN_DATA = re.compile(r"^data:[^,]*,(.+)$", re.DOTALL)


class URIKind(str, Enum):
    INLINE_BASE64 = "inline-base64"
    INLINE_PERCENT = "inline-percent"
    CONTENT_ADDRESSED = "content-addressed"
    HTTP = "http"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class RegistrationURI:
    """A parsed tokenURI.

    Attributes:
        kind: How the URI resolves
        raw: The URI as stored on-chain
        payload: Encoded body for inline kinds
        url: Fetch URL for content-addressed and HTTP kinds
    """

    kind: URIKind
    raw: str
    payload: str | None = None
    url: str | None = None

    @property
    def is_inline(self) -> bool:
        return self.kind in (URIKind.INLINE_BASE64, URIKind.INLINE_PERCENT)


def parse_registration_uri(uri: str | None, ipfs_gateway: str = "https://ipfs.io/ipfs/") -> RegistrationURI:
    """Classify a tokenURI.

    Args:
        uri: Raw tokenURI string
        ipfs_gateway: URL prefix that replaces ``ipfs://``

    Returns:
        RegistrationURI; empty or unknown schemes come back UNSUPPORTED
    """
    if not uri:
        return RegistrationURI(kind=URIKind.UNSUPPORTED, raw=uri or "")

    if uri.startswith("data:"):
        match = _BASE64_DATA.match(uri)
        if match:
            return RegistrationURI(kind=URIKind.INLINE_BASE64, raw=uri, payload=match.group(1))
        match = _PLAIN_DATA.match(uri)
        if match:
            return RegistrationURI(kind=URIKind.INLINE_PERCENT, raw=uri, payload=match.group(1))
        return RegistrationURI(kind=URIKind.UNSUPPORTED, raw=uri)

    if uri.startswith("ipfs://"):
        path = uri[len("ipfs://"):]
        if path.startswith("ipfs/"):
            path = path[len("ipfs/"):]
        gateway = ipfs_gateway if ipfs_gateway.endswith("/") else ipfs_gateway + "/"
        return RegistrationURI(kind=URIKind.CONTENT_ADDRESSED, raw=uri, url=gateway + path)

    if uri.startswith(("http://", "https://")):
        return RegistrationURI(kind=URIKind.HTTP, raw=uri, url=uri)

    return RegistrationURI(kind=URIKind.UNSUPPORTED, raw=uri)
