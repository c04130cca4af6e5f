"""Derivation of upstream request headers from inbound headers."""

from collections.abc import Iterable

from multidict import CIMultiDict

# Edge/CDN metadata and proxy routing or credential headers.
STRIPPED_HEADERS = (
    "cf-connecting-ip",
    "cf-ray",
    "cf-visitor",
    "cf-ipcountry",
    "x-target-url",
    "authorization",
)

# Owned by the HTTP client for the outbound connection.
HOP_BY_HOP_HEADERS = (
    "host",
    "connection",
    "keep-alive",
    "proxy-connection",
    "transfer-encoding",
    "te",
    "trailer",
    "upgrade",
)

FORWARDED_PROTO = "https"


def transform_headers(
    inbound: Iterable[tuple[str, str]],
    client_ip: str | None,
    request_host: str,
) -> CIMultiDict[str]:
    """
    Build the header set sent upstream.

    Args:
        inbound: Inbound header pairs, in order, repeated names allowed
        client_ip: Address of the original client, if known
        request_host: Hostname the caller addressed the proxy with

    Returns:
        Case-insensitive multimap with forwarding headers set
    """
    headers: CIMultiDict[str] = CIMultiDict(inbound)

    for name in (*STRIPPED_HEADERS, *HOP_BY_HOP_HEADERS):
        headers.popall(name, None)

    headers["X-Forwarded-For"] = client_ip or "unknown"
    headers["X-Forwarded-Proto"] = FORWARDED_PROTO
    headers["X-Forwarded-Host"] = request_host
    return headers
