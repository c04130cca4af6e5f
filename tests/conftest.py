import base64
from collections.abc import AsyncIterable
from dataclasses import dataclass

import pytest
from multidict import CIMultiDict
from starlette.testclient import TestClient
from yarl import URL

from forward_proxy.proxy_service.forwarder import BODYLESS_METHODS, Forwarder, UpstreamResponse
from forward_proxy.proxy_service.server import create_app
from forward_proxy.proxy_service.tracking import Observer
from forward_proxy.shared.config import Settings


def basic_auth(user: str = "admin", password: str = "password") -> str:
    token = base64.b64encode(f"{user}:{password}".encode()).decode()
    return f"Basic {token}"


@dataclass
class ForwardedCall:
    method: str
    url: URL
    headers: CIMultiDict
    body: bytes | None


class FakeForwarder(Forwarder):
    """Records what would have been sent upstream and replays a canned response."""

    def __init__(self, status=200, reason="OK", headers=None, chunks=(b"upstream body",), error=None):
        self.status = status
        self.reason = reason
        self.headers = headers or {"Content-Type": "text/plain"}
        self.chunks = chunks
        self.error = error
        self.calls: list[ForwardedCall] = []
        self.closed = False

    async def forward(self, method, url, headers, body: AsyncIterable[bytes] | None = None):
        data = None
        if body is not None and method not in BODYLESS_METHODS:
            data = b"".join([chunk async for chunk in body])
        self.calls.append(ForwardedCall(method, url, headers, data))

        if self.error is not None:
            raise self.error

        async def stream():
            for chunk in self.chunks:
                yield chunk

        return UpstreamResponse(
            status=self.status,
            reason=self.reason,
            headers=CIMultiDict(self.headers),
            chunks=stream(),
            close=self._close,
        )

    def _close(self):
        self.closed = True

    @property
    def last_call(self) -> ForwardedCall:
        return self.calls[-1]


class RecordingObserver(Observer):
    def __init__(self):
        self.started: list[str] = []
        self.finished = []

    def request_started(self, request, request_id):
        self.started.append(request_id)

    def request_finished(self, record):
        self.finished.append(record)


@pytest.fixture
def settings():
    return Settings(
        require_auth=True,
        basic_auth_user="admin",
        basic_auth_pass="password",
        environment="test",
        proxy_by="test-proxy",
    )


@pytest.fixture
def open_settings(settings):
    return settings.model_copy(update={"require_auth": False})


@pytest.fixture
def forwarder():
    return FakeForwarder()


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def client(settings, forwarder, observer):
    return TestClient(create_app(settings, forwarder=forwarder, observer=observer))


@pytest.fixture
def open_client(open_settings, forwarder, observer):
    return TestClient(create_app(open_settings, forwarder=forwarder, observer=observer))


@pytest.fixture
def auth_headers():
    return {"Authorization": basic_auth()}
