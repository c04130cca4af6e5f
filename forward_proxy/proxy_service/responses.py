"""Outbound responses: CORS preflight, decorated upstream relay, JSON errors."""

from starlette.background import BackgroundTask
from starlette.responses import JSONResponse, Response, StreamingResponse

from forward_proxy.proxy_service.auth import AUTH_REALM
from forward_proxy.proxy_service.exceptions import AuthFailedError, ProxyError
from forward_proxy.proxy_service.forwarder import UpstreamResponse

ALLOWED_METHODS = "GET, POST, PUT, DELETE, PATCH, OPTIONS"
PREFLIGHT_MAX_AGE = "86400"

# Framing of the relayed body belongs to the ASGI server.
RESPONSE_HOP_BY_HOP_HEADERS = frozenset(
    {"connection", "keep-alive", "proxy-connection", "transfer-encoding", "te", "trailer", "upgrade"}
)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": ALLOWED_METHODS,
    "Access-Control-Allow-Headers": "*",
}


def preflight_response() -> Response:
    """Answer a CORS preflight without contacting any upstream."""
    return Response(
        status_code=204,
        headers={**CORS_HEADERS, "Access-Control-Max-Age": PREFLIGHT_MAX_AGE},
    )


def error_response(error: ProxyError, request_id: str | None = None) -> JSONResponse:
    """Render a pipeline error as the JSON body the callers rely on."""
    headers = {"Access-Control-Allow-Origin": "*"}
    if isinstance(error, AuthFailedError):
        headers["WWW-Authenticate"] = AUTH_REALM
    if request_id and error.status_code >= 500:
        headers["X-Request-ID"] = request_id

    return JSONResponse(error.payload(), status_code=error.status_code, headers=headers)


def decorate_response(
    upstream: UpstreamResponse,
    target_url: str,
    request_id: str,
    fetch_ms: int,
    proxy_by: str,
) -> StreamingResponse:
    """
    Relay the upstream response with CORS and diagnostic headers added.

    The body is streamed as it arrives; the upstream connection is released
    once streaming finishes or the caller goes away.
    """
    response = StreamingResponse(
        upstream.iter_chunks(),
        status_code=upstream.status,
        background=BackgroundTask(upstream.aclose),
    )

    for name, value in upstream.headers.items():
        if name.lower() in RESPONSE_HOP_BY_HOP_HEADERS:
            continue
        response.headers.append(name, value)

    for name, value in CORS_HEADERS.items():
        response.headers[name] = value
    response.headers["Access-Control-Expose-Headers"] = "*"
    response.headers["X-Proxy-By"] = proxy_by
    response.headers["X-Target-URL"] = target_url
    response.headers["X-Request-ID"] = request_id
    response.headers["X-Proxy-Time"] = f"{fetch_ms}ms"
    return response
