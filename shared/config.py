"""
Shared configuration management for the proxy entitlements connector.
"""

from typing import Optional
from urllib.parse import urlsplit

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_TOKEN_PATH = "/oauth/token"


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="PROXY_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Observability
    enable_metrics: bool = Field(default=True)


class ProxyConfig(BaseConfig):
    """Connector configuration."""

    service_name: str = "proxy"
    port: int = 8020
    host: str = "0.0.0.0"

    # Identity platform connection
    base_url: str = Field(default="http://localhost:8080")
    client_id: str = Field(default="")
    client_secret: str = Field(default="")
    token_url: Optional[str] = Field(default=None)
    request_timeout: float = Field(default=30.0)
    page_size: int = Field(default=250)

    # Proxy source
    sp_connector_instance_id: str = Field(default="")
    search: str = Field(default="privileged:true")
    comment_template: str = Field(default="Proxy access request for {entitlements}")
    create_access_profile: bool = Field(default=False)
    retry_delay_seconds: float = Field(default=60.0)

    def resolved_token_url(self) -> str:
        """Token endpoint, derived from the API origin unless overridden."""
        if self.token_url:
            return self.token_url
        parts = urlsplit(self.base_url)
        return f"{parts.scheme}://{parts.netloc}{DEFAULT_TOKEN_PATH}"

    def format_comment(self, entitlements) -> str:
        """Render the access request comment for the requested proxy names."""
        return self.comment_template.replace("{entitlements}", ", ".join(entitlements))


def get_config(**overrides) -> ProxyConfig:
    """Get connector configuration."""
    return ProxyConfig(**overrides)
