"""Request correlation ids and the request lifecycle observer."""

import time
from abc import ABC, abstractmethod
from uuid import uuid4

from starlette.requests import Request

from forward_proxy.shared.logging import get_logger, get_request_logger
from forward_proxy.shared.models import OutcomeRecord

logger = get_logger(__name__)

MASKED_HEADERS = frozenset({"authorization", "proxy-authorization", "cookie"})


def generate_request_id() -> str:
    """Short opaque id used to correlate log lines and response headers."""
    return uuid4().hex[:8]


def elapsed_ms(started_at: float) -> int:
    return int((time.monotonic() - started_at) * 1000)


class Observer(ABC):
    """Receives the two fixed lifecycle events of every proxied request."""

    @abstractmethod
    def request_started(self, request: Request, request_id: str) -> None:
        pass

    @abstractmethod
    def request_finished(self, record: OutcomeRecord) -> None:
        pass


class LoggingObserver(Observer):
    """Observer that writes request lifecycle lines to the application log."""

    def request_started(self, request: Request, request_id: str) -> None:
        query = f"?{request.url.query}" if request.url.query else ""
        headers = {
            name: ("***" if name in MASKED_HEADERS else value) for name, value in request.headers.items()
        }
        client_ip = request.headers.get("cf-connecting-ip") or (request.client.host if request.client else "unknown")

        log = get_request_logger(logger, request_id)
        log.info(f"Incoming: {request.method} {request.url.path}{query}")
        log.info(f"User-Agent: {request.headers.get('user-agent', 'unknown')}, client: {client_ip}")
        log.debug(f"Headers: {headers}")

    def request_finished(self, record: OutcomeRecord) -> None:
        fetch = f", upstream {record.fetch_ms}ms" if record.fetch_ms is not None else ""
        line = (
            f"{record.outcome.value} {record.status_code} "
            f"{record.method} {record.path} in {elapsed_ms(record.started_at)}ms{fetch}"
        )
        log = get_request_logger(logger, record.request_id)
        if record.status_code is None or record.status_code >= 500:
            log.warning(line)
        else:
            log.info(line)
