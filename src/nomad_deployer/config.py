"""Configuration management for nomad-deployer."""

from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from nomad_deployer.constants import (
    DEFAULT_NOMAD_ADDR,
    MAX_NOTIFICATION_BYTES,
    NOTIFICATION_QUEUE_CAPACITY,
    PLAIN_HTTP_PORT,
    TLS_HTTP_PORT,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Listener
    tls_cn: str | None = Field(
        default=None, description="Certificate common name; enables the TLS listener"
    )
    tls_cert_dir: str = Field(
        default="/etc/nomad-deployer/tls", description="Directory holding <cn>.crt/<cn>.key"
    )
    tls_cert_file: str | None = Field(default=None, description="Explicit PEM certificate path")
    tls_key_file: str | None = Field(default=None, description="Explicit PEM private key path")
    bind_host: str = Field(default="0.0.0.0", description="Listener bind address")
    http_port: int = Field(default=PLAIN_HTTP_PORT, description="Plain TCP listener port")
    tls_port: int = Field(default=TLS_HTTP_PORT, description="TLS listener port")
    queue_capacity: int = Field(
        default=NOTIFICATION_QUEUE_CAPACITY,
        ge=1,
        description="Notifications buffered before the listener blocks",
    )
    max_body_bytes: int = Field(
        default=MAX_NOTIFICATION_BYTES,
        ge=1,
        description="Largest notification body read; larger ones enqueue a zero value",
    )

    # Nomad
    nomad_addr: str = Field(default=DEFAULT_NOMAD_ADDR, description="Nomad HTTP API address")
    nomad_token: SecretStr | None = Field(default=None, description="Nomad ACL token")
    nomad_region: str | None = Field(default=None, description="Nomad region")
    nomad_namespace: str | None = Field(default=None, description="Nomad namespace")
    nomad_cacert: str | None = Field(default=None, description="CA bundle for the Nomad API")
    nomad_client_cert: str | None = Field(default=None, description="Client certificate")
    nomad_client_key: str | None = Field(default=None, description="Client private key")
    nomad_skip_verify: bool = Field(default=False, description="Disable TLS verification")
    nomad_timeout_seconds: float | None = Field(
        default=None, description="Per-request timeout; unset waits indefinitely"
    )
    nomad_enforce_index: bool = Field(
        default=False, description="Register with check-and-set on JobModifyIndex"
    )

    # Application
    environment: str = Field(default="production", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() == "development"

    @property
    def tls_enabled(self) -> bool:
        """TLS is used whenever a certificate common name is configured."""
        return bool(self.tls_cn)

    @property
    def listen_port(self) -> int:
        return self.tls_port if self.tls_enabled else self.http_port

    @property
    def transport(self) -> str:
        return "tls" if self.tls_enabled else "tcp"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
