"""Proxy service entry point."""

from contextlib import asynccontextmanager

import uvicorn
from starlette.applications import Starlette
from starlette.routing import Route

from forward_proxy.proxy_service.forwarder import AiohttpForwarder, Forwarder, create_client_session
from forward_proxy.proxy_service.handlers import ProxyRequestHandler
from forward_proxy.proxy_service.middleware import RequestContextMiddleware
from forward_proxy.proxy_service.tracking import Observer
from forward_proxy.shared.config import Settings, get_settings
from forward_proxy.shared.logging import get_logger, setup_logging

logger = get_logger(__name__)

ALL_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


@asynccontextmanager
async def lifespan(app: Starlette):
    """Manage application lifecycle (startup/shutdown)."""
    settings: Settings = app.state.settings
    logger.info("Starting Proxy Service")
    logger.info(f"Environment: {settings.environment}, auth required: {settings.require_auth}")
    if settings.require_auth and settings.uses_default_credentials:
        logger.warning("Basic auth is using the default credentials; set BASIC_AUTH_USER and BASIC_AUTH_PASS")

    session = None
    if app.state.forwarder is None:
        session = create_client_session()
        app.state.forwarder = AiohttpForwarder(session, timeout=settings.request_timeout)

    yield

    if session is not None:
        await session.close()
    logger.info("Proxy Service stopped")


def create_app(
    settings: Settings | None = None,
    forwarder: Forwarder | None = None,
    observer: Observer | None = None,
) -> Starlette:
    """Create and configure the proxy service application."""
    settings = settings or get_settings()
    handler = ProxyRequestHandler(settings, observer)

    app = Starlette(
        debug=False,
        routes=[
            Route("/health", handler.health, methods=ALL_METHODS),
            Route("/ping", handler.health, methods=ALL_METHODS),
            Route("/{path:path}", handler.handle, methods=ALL_METHODS),
        ],
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.forwarder = forwarder

    app.add_middleware(RequestContextMiddleware)

    return app


def main() -> None:
    """Entry point for the proxy server."""
    settings = get_settings()
    setup_logging(settings.log_level)

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        loop="uvloop",
        log_config=None,
    )


if __name__ == "__main__":
    main()
