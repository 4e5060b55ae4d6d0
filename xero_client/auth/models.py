"""Data models for authentication."""

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    SecretStr,
    field_validator,
)

from xero_client.auth.exceptions import ClaimsError
from xero_client.config.constants import DEFAULT_SIGNING_ALG


def _preview(secret: SecretStr | None) -> str:
    if secret is None:
        return "None"
    value = secret.get_secret_value()
    return f"'{value[:8]}...{value[-8:]}'" if len(value) > 16 else "'***'"


class TokenSet(BaseModel):
    """The credential bundle of one authenticated session.

    Instances are immutable: a refresh produces a new ``TokenSet`` and a
    disconnect replaces it with ``TokenSet.empty()``.
    """

    model_config = ConfigDict(frozen=True)

    access_token: SecretStr | None = None
    refresh_token: SecretStr | None = None
    id_token: str | None = Field(default=None, repr=False)
    expires_at: datetime | None = None
    token_type: str = "Bearer"
    scope: frozenset[str] = Field(default_factory=frozenset)

    _claims: dict[str, Any] | None = PrivateAttr(default=None)

    @field_validator("access_token", "refresh_token", mode="before")
    @classmethod
    def validate_tokens(cls, v: str | SecretStr | None) -> SecretStr | None:
        """Convert string values to SecretStr; empty strings mean absent."""
        if v is None or v == "":
            return None
        if isinstance(v, str):
            return SecretStr(v)
        return v

    @field_validator("id_token", mode="before")
    @classmethod
    def validate_id_token(cls, v: str | None) -> str | None:
        return v or None

    @field_validator("expires_at", mode="before")
    @classmethod
    def validate_expires_at(cls, v: Any) -> Any:
        """Accept epoch seconds and treat naive datetimes as UTC."""
        if v is None:
            return None
        if isinstance(v, int | float):
            try:
                return datetime.fromtimestamp(v, tz=UTC)
            except (OverflowError, OSError) as e:
                raise ValueError(f"expires_at out of range: {v}") from e
        if isinstance(v, datetime) and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @field_validator("scope", mode="before")
    @classmethod
    def validate_scope(cls, v: str | Iterable[str] | None) -> frozenset[str]:
        """Accept the space separated form used by token endpoints."""
        if v is None:
            return frozenset()
        if isinstance(v, str):
            return frozenset(v.split())
        return frozenset(v)

    @classmethod
    def empty(cls) -> "TokenSet":
        """Sentinel used once a session has been disconnected or revoked."""
        return cls()

    @classmethod
    def from_token_response(
        cls, data: Mapping[str, Any], now: datetime | None = None
    ) -> "TokenSet":
        """Build a token set from a token endpoint response.

        ``expires_in`` is converted into an absolute ``expires_at``.
        """
        now = now or datetime.now(UTC)
        expires_in = data.get("expires_in")
        expires_at = data.get("expires_at")
        if expires_in is not None:
            try:
                expires_at = now + timedelta(seconds=int(expires_in))
            except OverflowError as e:
                raise ValueError(f"expires_in out of range: {expires_in}") from e

        return cls(
            access_token=data.get("access_token"),
            refresh_token=data.get("refresh_token"),
            id_token=data.get("id_token"),
            expires_at=expires_at,
            token_type=data.get("token_type") or "Bearer",
            scope=data.get("scope"),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TokenSet":
        """Restore a token set persisted with ``to_dict``."""
        return cls.from_token_response(data)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for caller-owned persistence.

        Secrets are revealed in the returned mapping; callers are responsible
        for storing it safely.
        """
        return {
            "access_token": self.access_token_value,
            "refresh_token": self.refresh_token_value,
            "id_token": self.id_token,
            "expires_at": int(self.expires_at.timestamp()) if self.expires_at else None,
            "token_type": self.token_type,
            "scope": " ".join(sorted(self.scope)),
        }

    @property
    def access_token_value(self) -> str | None:
        return self.access_token.get_secret_value() if self.access_token else None

    @property
    def refresh_token_value(self) -> str | None:
        return self.refresh_token.get_secret_value() if self.refresh_token else None

    @property
    def is_empty(self) -> bool:
        return self.access_token is None

    @property
    def expires_in(self) -> int | None:
        """Seconds until expiry (negative once expired), None when unknown."""
        if self.expires_at is None:
            return None
        return int((self.expires_at - datetime.now(UTC)).total_seconds())

    def expired(self, leeway: int = 0) -> bool:
        """Check whether the access token is expired.

        Args:
            leeway: Seconds subtracted from the expiry to refresh early

        Returns:
            False when no expiry information is present
        """
        if self.expires_at is None:
            return False
        return datetime.now(UTC) >= self.expires_at - timedelta(seconds=leeway)

    def claims(self) -> dict[str, Any]:
        """Decode the id token payload.

        The signature is not verified here; claims are checked when the token
        set is produced by a code exchange.

        Raises:
            ClaimsError: If there is no id token or it cannot be decoded
        """
        if self._claims is not None:
            return dict(self._claims)
        if not self.id_token:
            raise ClaimsError("id_token not present in TokenSet")
        try:
            decoded = jwt.decode(self.id_token, options={"verify_signature": False})
        except jwt.PyJWTError as e:
            raise ClaimsError(f"id_token cannot be decoded: {e}") from e
        self._claims = decoded
        return dict(decoded)

    def __repr__(self) -> str:
        """Safe string representation that masks sensitive tokens."""
        expires_at = self.expires_at.isoformat() if self.expires_at else "None"
        return (
            f"TokenSet(access_token={_preview(self.access_token)}, "
            f"refresh_token={_preview(self.refresh_token)}, "
            f"id_token={'present' if self.id_token else 'None'}, "
            f"expires_at={expires_at}, "
            f"scope={sorted(self.scope)}, "
            f"token_type='{self.token_type}')"
        )

    def __eq__(self, other: object) -> bool:
        # The decoded claims cache is not part of the value
        if not isinstance(other, TokenSet):
            return NotImplemented
        return self.__dict__ == other.__dict__


class ProviderMetadata(BaseModel):
    """OpenID provider configuration returned by discovery."""

    model_config = ConfigDict(frozen=True, extra="allow")

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    jwks_uri: str | None = None
    revocation_endpoint: str | None = None
    userinfo_endpoint: str | None = None
    id_token_signing_alg_values_supported: list[str] = Field(
        default_factory=lambda: [DEFAULT_SIGNING_ALG]
    )

    @field_validator("issuer", "authorization_endpoint", "token_endpoint")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Expected an http(s) URL, got: {v!r}")
        return v

    @property
    def signing_alg(self) -> str:
        """Signing algorithm mandated by the provider for id tokens."""
        algs = self.id_token_signing_alg_values_supported
        return algs[0] if algs else DEFAULT_SIGNING_ALG
