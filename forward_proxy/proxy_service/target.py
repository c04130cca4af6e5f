"""Target URL resolution and upstream URL composition."""

from collections.abc import Mapping
from urllib.parse import unquote_plus

from multidict import MultiMapping
from yarl import URL

from forward_proxy.proxy_service.exceptions import InvalidTargetError, MissingTargetError
from forward_proxy.shared.models import TargetSpec

TARGET_QUERY_PARAMS = ("url", "target")
TARGET_HEADER = "X-Target-URL"
ALLOWED_SCHEMES = frozenset({"http", "https"})


def resolve_target(query: MultiMapping[str], headers: Mapping[str, str]) -> TargetSpec:
    """
    Pick the caller's target URL and validate it.

    Looks at the ``url`` query parameter, then ``target``, then the
    ``X-Target-URL`` header. The first non-empty value wins; for repeated
    query keys that is the first occurrence.

    Raises:
        MissingTargetError: No source carries a value.
        InvalidTargetError: The value is not an absolute http(s) URL.
    """
    raw = None
    for name in TARGET_QUERY_PARAMS:
        raw = query.get(name)
        if raw:
            break
    else:
        raw = headers.get(TARGET_HEADER)

    if not raw:
        raise MissingTargetError("Missing target URL")

    try:
        url = URL(raw.strip())
    except (TypeError, ValueError) as exc:
        raise InvalidTargetError(raw) from exc

    if url.scheme not in ALLOWED_SCHEMES or not url.host:
        raise InvalidTargetError(raw)

    return TargetSpec(raw=raw, url=url)


def strip_target_params(query_string: str) -> str:
    """Drop the proxy's own routing parameters, keeping the rest byte-for-byte."""
    kept = []
    for pair in query_string.split("&"):
        if not pair:
            continue
        key = unquote_plus(pair.partition("=")[0])
        if key in TARGET_QUERY_PARAMS:
            continue
        kept.append(pair)
    return "&".join(kept)


def compose_url(target: TargetSpec, path: str, query_string: str) -> URL:
    """
    Build the upstream URL from the target origin and the inbound path and query.

    An inbound path of exactly ``/`` keeps the target's own path; any other
    path replaces it. The target's query is always replaced.
    """
    base = target.url
    final_path = base.raw_path if path == "/" else path

    return URL.build(
        scheme=base.scheme,
        authority=base.raw_authority,
        path=final_path,
        query_string=strip_target_params(query_string),
        encoded=True,
    )
