"""
URL normalization and deterministic content ids.

    >>> normalize_url("https://Example.com/a?utm=1#frag")
    'https://example.com/a'

The content id is MurmurHash3 x64 128-bit (seed 0) of "{host}.{path}",
big-endian, base64url without padding. Bookmarks and images share it, so the
same normalized URL always maps to the same id.

Host and path are serialized the way a WHATWG URL parser does: IPv6 hosts keep
their brackets, international hosts are punycoded and the path is
percent-encoded, so an already-encoded URL and its raw form share one id.
"""

import base64
from urllib.parse import quote, urlsplit

import mmh3

from bookmark_hub.services.processors.exceptions import InvalidUrlError

# Left unencoded in a URL path besides ASCII letters, digits and "-._~"
PATH_SAFE = "/%!$&'()*+,;=:@[]^|"


def _split(url: str):
    try:
        parts = urlsplit(url.strip())
        host = parts.hostname
    except ValueError as e:
        raise InvalidUrlError(f"Invalid url={url}: {e}") from e
    if not host:
        raise InvalidUrlError(f"Invalid url={url}: no host")

    if ":" in host:
        host = f"[{host}]"
    else:
        try:
            host = host.encode("idna").decode("ascii")
        except UnicodeError as e:
            raise InvalidUrlError(f"Invalid url={url}: bad host {host!r}") from e

    path = quote(parts.path or "/", safe=PATH_SAFE)
    return parts, host, path


def normalize_url(url: str) -> str:
    """Keep scheme, host and path; drop credentials, port, query and fragment."""
    parts, host, path = _split(url)
    return f"{parts.scheme}://{host}{path}"


def make_content_id(url: str) -> str:
    _, host, path = _split(url)
    digest = mmh3.hash128(f"{host}.{path}".encode("utf-8"), seed=0, x64arch=True, signed=False)
    return base64.urlsafe_b64encode(digest.to_bytes(16, "big")).rstrip(b"=").decode("ascii")


def domain_from_url(url: str) -> str:
    _, host, _ = _split(url)
    return host
