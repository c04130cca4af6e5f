"""Configuration management using pydantic-settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_AUTH_USER = "admin"
DEFAULT_AUTH_PASS = "password"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    require_auth: bool = Field(default=True, description="Gate the proxy behind Basic auth")
    basic_auth_user: str = Field(default=DEFAULT_AUTH_USER, description="Expected Basic auth username")
    basic_auth_pass: str = Field(default=DEFAULT_AUTH_PASS, description="Expected Basic auth password")
    environment: str = Field(default="production", description="Deployment label echoed by the health check")
    service_name: str = Field(default="HTTP Proxy Worker", description="Service name echoed by the health check")
    proxy_by: str = Field(default="forward-proxy", description="Value of the X-Proxy-By response header")
    request_timeout: float | None = Field(
        default=None, gt=0, description="Upstream total timeout in seconds (unset: no timeout)"
    )
    peer_address_fallback: bool = Field(
        default=True,
        description="Use the socket peer address for X-Forwarded-For when CF-Connecting-IP is absent",
    )
    log_level: str = Field(default="INFO", description="Logging level")
    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8000, description="Bind port")

    @property
    def uses_default_credentials(self) -> bool:
        return self.basic_auth_user == DEFAULT_AUTH_USER and self.basic_auth_pass == DEFAULT_AUTH_PASS


@lru_cache
def get_settings() -> Settings:
    """Get the application settings instance."""
    return Settings()
