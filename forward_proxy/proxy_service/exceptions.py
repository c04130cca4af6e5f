"""Errors raised by the proxy pipeline and rendered as JSON error responses."""

from typing import Any

from forward_proxy.shared.models import TargetUsage


class ProxyError(Exception):
    """Base class for errors that end a request with a JSON error body."""

    status_code: int = 500
    error: str = "Internal proxy error"

    def payload(self) -> dict[str, Any]:
        return {"error": self.error}


class MissingTargetError(ProxyError):
    status_code = 400
    error = "Missing target URL"

    def payload(self) -> dict[str, Any]:
        return {"error": self.error, "usage": TargetUsage().model_dump()}


class InvalidTargetError(ProxyError):
    status_code = 400
    error = "Invalid target URL"

    def __init__(self, provided: str):
        super().__init__(f"Invalid target URL: {provided}")
        self.provided = provided

    def payload(self) -> dict[str, Any]:
        return {"error": self.error, "provided": self.provided}


class AuthFailedError(ProxyError):
    status_code = 401
    error = "Unauthorized"

    def payload(self) -> dict[str, Any]:
        return {"error": self.error, "message": "Valid Basic authentication credentials are required"}


class ForwardError(ProxyError):
    """Any transport-level failure reaching the upstream."""

    status_code = 502
    error = "Proxy request failed"

    def __init__(self, message: str, target: str = "", request_id: str = ""):
        super().__init__(message)
        self.message = message
        self.target = target
        self.request_id = request_id

    def payload(self) -> dict[str, Any]:
        return {
            "error": self.error,
            "message": self.message,
            "target": self.target,
            "requestId": self.request_id,
        }


class UnexpectedProxyError(ProxyError):
    """A failure inside the proxy itself rather than in the caller's input or the upstream."""

    status_code = 500

    def __init__(self, message: str, request_id: str = ""):
        super().__init__(message)
        self.message = message
        self.request_id = request_id

    def payload(self) -> dict[str, Any]:
        return {"error": self.error, "message": self.message, "requestId": self.request_id}
