"""Data models for the forward proxy."""

from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field
from yarl import URL


class Outcome(str, Enum):
    """Classification of how a request ended."""

    AUTH_FAILED = "AUTH_FAILED"
    CORS_PREFLIGHT = "CORS_PREFLIGHT"
    INVALID_TARGET = "INVALID_TARGET"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


class TargetSpec(BaseModel):
    """Validated caller-supplied destination."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    raw: Annotated[str, Field(description="Target exactly as the caller supplied it")]
    url: Annotated[URL, Field(description="Parsed absolute http(s) URL")]


class OutcomeRecord(BaseModel):
    """Per-request record emitted once when the request ends."""

    request_id: Annotated[str, Field(description="Correlation id of the request")]
    method: Annotated[str, Field(description="HTTP method")]
    path: Annotated[str, Field(description="Request path")]
    outcome: Annotated[Outcome, Field(description="Outcome classification")]
    started_at: Annotated[float, Field(description="Monotonic start time in seconds")]
    status_code: Annotated[int | None, Field(ge=100, le=599, description="Status sent to the caller")] = None
    fetch_ms: Annotated[int | None, Field(ge=0, description="Upstream fetch duration in ms")] = None


class HealthStatus(BaseModel):
    """Body of the health check endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    status: Annotated[str, Field(description="Always 'healthy'")] = "healthy"
    timestamp: Annotated[str, Field(description="ISO-8601 UTC timestamp")]
    service: Annotated[str, Field(description="Service name")]
    environment: Annotated[str, Field(description="Deployment environment label")]
    request_id: Annotated[str, Field(alias="requestId", description="Correlation id of the request")]
    auth_required: Annotated[bool, Field(description="Whether Basic auth gates the proxy")]


class TargetUsage(BaseModel):
    """Hints returned when no target URL was supplied."""

    method1: str = "Add ?url=https://example.com to your request"
    method2: str = "Add ?target=https://example.com to your request"
    method3: str = "Add X-Target-URL header with target URL"
    example: str = "https://your-proxy.example.com?url=https://jsonplaceholder.typicode.com/posts"
