import time
from datetime import datetime, timezone

from multidict import MultiDict
from starlette.requests import ClientDisconnect, Request
from starlette.responses import JSONResponse, Response

from forward_proxy.proxy_service.auth import authenticate
from forward_proxy.proxy_service.exceptions import AuthFailedError, ForwardError, ProxyError, UnexpectedProxyError
from forward_proxy.proxy_service.forwarder import Forwarder
from forward_proxy.proxy_service.headers import transform_headers
from forward_proxy.proxy_service.responses import decorate_response, error_response, preflight_response
from forward_proxy.proxy_service.target import compose_url, resolve_target
from forward_proxy.proxy_service.tracking import LoggingObserver, Observer, elapsed_ms
from forward_proxy.shared.config import Settings
from forward_proxy.shared.logging import get_logger, get_request_logger
from forward_proxy.shared.models import HealthStatus, Outcome, OutcomeRecord

logger = get_logger(__name__)


class ProxyRequestHandler:
    """
    Encapsulates all logic related to handling HTTP requests that must be
    rewritten and forwarded to a caller-chosen target.
    """

    def __init__(self, settings: Settings, observer: Observer | None = None):
        self.__settings = settings
        self.__observer = observer or LoggingObserver()

    def _get_forwarder(self, request: Request) -> Forwarder:
        """Get the forwarder from the application state."""
        forwarder = getattr(request.app.state, "forwarder", None)
        if forwarder is None:
            raise RuntimeError("Forwarder is not initialized")
        return forwarder

    async def handle(self, request: Request) -> Response:
        """Public entry point used by Starlette router."""
        request_id: str = request.state.request_id
        record = OutcomeRecord(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            outcome=Outcome.ERROR,
            started_at=request.state.started_at,
        )
        self._notify_started(request, request_id)

        response = None
        try:
            response = await self._process(request, record)
        except Exception as exc:
            get_request_logger(logger, request_id).exception(f"Request failed due to unexpected error: {exc}")
            record.outcome = Outcome.ERROR
            error = UnexpectedProxyError(str(exc) or exc.__class__.__name__, request_id)
            response = error_response(error, request_id)
        finally:
            record.status_code = response.status_code if response is not None else None
            self._notify_finished(record)

        return response

    async def health(self, request: Request) -> JSONResponse:
        """Liveness check; never gated by auth."""
        status = HealthStatus(
            timestamp=datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            service=self.__settings.service_name,
            environment=self.__settings.environment,
            request_id=request.state.request_id,
            auth_required=self.__settings.require_auth,
        )
        return JSONResponse(status.model_dump(by_alias=True), headers={"Access-Control-Allow-Origin": "*"})

    async def _process(self, request: Request, record: OutcomeRecord) -> Response:
        request_id = record.request_id
        log = get_request_logger(logger, request_id)

        if not authenticate(request.headers, self.__settings):
            log.warning("Authentication failed")
            record.outcome = Outcome.AUTH_FAILED
            return error_response(AuthFailedError("Authentication failed"))

        if request.method == "OPTIONS":
            record.outcome = Outcome.CORS_PREFLIGHT
            return preflight_response()

        try:
            target = resolve_target(MultiDict(request.query_params.multi_items()), request.headers)
        except ProxyError as exc:
            log.info(str(exc))
            record.outcome = Outcome.INVALID_TARGET
            return error_response(exc)

        final_url = compose_url(target, self._raw_path(request), request.url.query)
        headers = transform_headers(
            request.headers.items(),
            client_ip=self._client_ip(request),
            request_host=request.url.hostname or "",
        )
        body = request.stream() if self._has_body(request) else None

        log.info(f"Proxying to: {final_url}")
        log.debug(f"Proxy headers: {dict(headers)}")

        forwarder = self._get_forwarder(request)
        fetch_start = time.monotonic()
        try:
            upstream = await forwarder.forward(request.method, final_url, headers, body)
        except ClientDisconnect:
            error = ForwardError("Client disconnected while sending the request body", str(final_url), request_id)
            log.warning(error.message)
            return error_response(error, request_id)
        except ForwardError as exc:
            exc.target = str(final_url)
            exc.request_id = request_id
            log.error(f"Proxy request failed - {exc.message}")
            return error_response(exc, request_id)

        record.fetch_ms = elapsed_ms(fetch_start)
        record.outcome = Outcome.SUCCESS
        log.info(f"Target response: {upstream.status} {upstream.reason} in {record.fetch_ms}ms")

        try:
            # Header values must be latin-1; the parsed URL is percent- and IDNA-encoded.
            return decorate_response(
                upstream,
                target_url=str(target.url),
                request_id=request_id,
                fetch_ms=record.fetch_ms,
                proxy_by=self.__settings.proxy_by,
            )
        except Exception:
            await upstream.aclose()
            raise

    def _raw_path(self, request: Request) -> str:
        """Inbound path exactly as sent, percent-encoding intact."""
        raw_path = request.scope.get("raw_path")
        if raw_path:
            return raw_path.split(b"?", 1)[0].decode("latin-1")
        return request.url.path

    def _client_ip(self, request: Request) -> str | None:
        client_ip = request.headers.get("cf-connecting-ip")
        if client_ip:
            return client_ip
        if self.__settings.peer_address_fallback and request.client:
            return request.client.host
        return None

    def _has_body(self, request: Request) -> bool:
        return "content-length" in request.headers or "transfer-encoding" in request.headers

    def _notify_started(self, request: Request, request_id: str) -> None:
        try:
            self.__observer.request_started(request, request_id)
        except Exception:
            logger.debug("Observer failed on request start", exc_info=True)

    def _notify_finished(self, record: OutcomeRecord) -> None:
        try:
            self.__observer.request_finished(record)
        except Exception:
            logger.debug("Observer failed on request end", exc_info=True)
