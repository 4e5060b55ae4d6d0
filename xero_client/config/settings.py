import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from xero_client.auth.exceptions import ConfigurationError
from xero_client.config.constants import (
    CLOCK_TOLERANCE,
    ISSUER_BASE_URL,
    XERO_API_BASE_URL,
)
from xero_client.config.http import HTTPSettings
from xero_client.config.logging import LoggingSettings


__all__ = ["ClientConfig", "XeroSettings", "ConfigurationError"]


class ClientConfig(BaseModel):
    """OAuth client registration used for the whole lifetime of a client."""

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(..., min_length=1)
    client_secret: SecretStr
    redirect_uris: tuple[str, ...] = Field(
        ...,
        description="Registered redirect URIs; the first one is used in the flow",
    )
    scopes: tuple[str, ...] = Field(default_factory=tuple)
    state: str | None = None

    @field_validator("redirect_uris")
    @classmethod
    def validate_redirect_uris(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Reject an empty redirect URI list up front."""
        if not v:
            raise ValueError("At least one redirect URI is required")
        for uri in v:
            if not uri.startswith(("http://", "https://")):
                raise ValueError(f"Redirect URI must be an http(s) URL: {uri}")
        return v

    @field_validator("client_secret", mode="before")
    @classmethod
    def validate_secret(cls, v: str | SecretStr) -> SecretStr:
        """Convert string values to SecretStr."""
        if isinstance(v, str):
            if not v:
                raise ValueError("client_secret must not be empty")
            return SecretStr(v)
        return v

    @property
    def redirect_uri(self) -> str:
        """Redirect URI used when building consent URLs and exchanging codes."""
        return self.redirect_uris[0]


class XeroSettings(BaseSettings):
    """
    Settings for the Xero client.

    Values are loaded from environment variables prefixed with ``XERO_`` and
    from a ``.env`` file. Nested sections use ``__`` as delimiter, for example
    ``XERO_HTTP__RETRIES=2``.
    """

    model_config = SettingsConfigDict(
        env_prefix="XERO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    client_id: str | None = Field(default=None, description="OAuth client ID")
    client_secret: SecretStr | None = Field(
        default=None, description="OAuth client secret"
    )
    redirect_uris: list[str] = Field(
        default_factory=list,
        description="Registered redirect URIs",
    )
    scopes: list[str] = Field(
        default_factory=list,
        description="OAuth scopes to request (empty means openid email profile)",
    )
    state: str | None = Field(
        default=None,
        description="Opaque state value sent with the consent request",
    )

    issuer_url: str = Field(
        default=ISSUER_BASE_URL,
        description="OpenID issuer base URL used for discovery",
    )
    api_base_url: str = Field(
        default=XERO_API_BASE_URL,
        description="Base URL of the connections and accounting APIs",
    )

    auto_refresh: bool = Field(
        default=True,
        description="Refresh an expired token set before an API call",
    )
    clock_tolerance: int = Field(
        default=CLOCK_TOLERANCE,
        ge=0,
        description="Seconds of clock skew tolerated for id token and expiry checks",
    )
    strict_tenant_join: bool = Field(
        default=True,
        description="Fail tenant refresh when an organisation record does not match",
    )

    http: HTTPSettings = Field(
        default_factory=HTTPSettings,
        description="HTTP client configuration settings",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration",
    )

    @field_validator("issuer_url", "api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @classmethod
    def from_toml(cls, path: Path, **overrides: Any) -> "XeroSettings":
        """Load settings from a TOML file.

        Explicit ``overrides`` win over file values, which win over the
        environment.

        Raises:
            ConfigurationError: If the file cannot be read or parsed
        """
        try:
            with path.open("rb") as f:
                data = tomllib.load(f)
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e

        section = data.get("xero", data)
        section.update(overrides)
        return cls(**section)

    def to_client_config(self) -> ClientConfig:
        """Build the immutable client registration from these settings.

        Raises:
            ConfigurationError: If credentials or redirect URIs are missing
        """
        if not self.client_id or self.client_secret is None:
            raise ConfigurationError("client_id and client_secret are required")
        if not self.redirect_uris:
            raise ConfigurationError("At least one redirect URI is required")

        try:
            return ClientConfig(
                client_id=self.client_id,
                client_secret=self.client_secret,
                redirect_uris=tuple(self.redirect_uris),
                scopes=tuple(self.scopes),
                state=self.state,
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid client configuration: {e}") from e
