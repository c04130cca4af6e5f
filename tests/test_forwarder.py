import gzip

import pytest
from aiohttp import test_utils, web
from multidict import CIMultiDict
from yarl import URL

from forward_proxy.proxy_service.exceptions import ForwardError
from forward_proxy.proxy_service.forwarder import AiohttpForwarder, create_client_session


async def echo(request: web.Request) -> web.Response:
    body = await request.read()
    return web.json_response(
        {
            "method": request.method,
            "path": request.path,
            "query": request.query_string,
            "host": request.headers.get("Host"),
            "custom": request.headers.get("X-Custom"),
            "body": body.decode(),
        },
        status=201,
        reason="Made It",
    )


async def redirect(request: web.Request) -> web.Response:
    raise web.HTTPFound("/elsewhere")


async def compressed(request: web.Request) -> web.Response:
    return web.Response(body=gzip.compress(b"zipped"), headers={"Content-Encoding": "gzip"})


def upstream_app() -> web.Application:
    app = web.Application()
    app.router.add_get("/redirect", redirect)
    app.router.add_get("/gzip", compressed)
    app.router.add_route("*", "/{tail:.*}", echo)
    return app


async def read_all(upstream) -> bytes:
    data = b"".join([chunk async for chunk in upstream.iter_chunks()])
    await upstream.aclose()
    return data


async def body_stream():
    yield b'{"a": '
    yield b"1}"


@pytest.mark.asyncio
async def test_forward_relays_status_headers_and_body():
    async with test_utils.TestServer(upstream_app()) as server:
        async with create_client_session() as session:
            forwarder = AiohttpForwarder(session)
            headers = CIMultiDict({"X-Custom": "yes", "Content-Type": "application/json"})

            upstream = await forwarder.forward("POST", server.make_url("/items?x=1"), headers, body_stream())
            data = await read_all(upstream)

    assert upstream.status == 201
    assert upstream.reason == "Made It"
    assert upstream.headers["Content-Type"].startswith("application/json")
    assert b'"method": "POST"' in data
    assert b'"query": "x=1"' in data
    assert b'"custom": "yes"' in data
    assert b'"body": "{\\"a\\": 1}"' in data
    assert f'"host": "{server.host}:{server.port}"'.encode() in data


@pytest.mark.asyncio
async def test_get_never_sends_a_body():
    async with test_utils.TestServer(upstream_app()) as server:
        async with create_client_session() as session:
            forwarder = AiohttpForwarder(session)
            upstream = await forwarder.forward("GET", server.make_url("/"), CIMultiDict(), body_stream())
            data = await read_all(upstream)

    assert b'"body": ""' in data


@pytest.mark.asyncio
async def test_redirects_are_relayed_not_followed():
    async with test_utils.TestServer(upstream_app()) as server:
        async with create_client_session() as session:
            forwarder = AiohttpForwarder(session)
            upstream = await forwarder.forward("GET", server.make_url("/redirect"), CIMultiDict())
            await read_all(upstream)

    assert upstream.status == 302
    assert upstream.headers["Location"] == "/elsewhere"


@pytest.mark.asyncio
async def test_compressed_body_is_relayed_verbatim():
    async with test_utils.TestServer(upstream_app()) as server:
        async with create_client_session() as session:
            forwarder = AiohttpForwarder(session)
            upstream = await forwarder.forward("GET", server.make_url("/gzip"), CIMultiDict())
            data = await read_all(upstream)

    assert upstream.headers["Content-Encoding"] == "gzip"
    assert gzip.decompress(data) == b"zipped"


@pytest.mark.asyncio
async def test_connection_failure_raises_forward_error():
    async with create_client_session() as session:
        forwarder = AiohttpForwarder(session, timeout=5)

        with pytest.raises(ForwardError) as exc_info:
            await forwarder.forward("GET", URL("http://127.0.0.1:1/"), CIMultiDict())

    assert exc_info.value.status_code == 502
    assert exc_info.value.message
    assert exc_info.value.target == "http://127.0.0.1:1/"
