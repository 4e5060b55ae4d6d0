"""Exceptions raised by the Xero client."""

from typing import Any


class XeroClientError(Exception):
    """Base exception for all Xero client errors."""

    pass


class ConfigurationError(XeroClientError):
    """Raised when client configuration or settings are invalid."""

    pass


class DiscoveryError(XeroClientError):
    """Raised when the issuer metadata cannot be fetched or is malformed."""

    pass


class CredentialsMissingError(XeroClientError):
    """Raised when the token set lacks a credential an operation needs."""

    pass


class ClaimsError(XeroClientError):
    """Raised when id token claims are requested but cannot be produced."""

    pass


class OAuthError(XeroClientError):
    """Base exception for protocol-level OAuth rejections.

    Carries the provider supplied detail when one is available.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: Any = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body
        self.detail = detail


class TokenExchangeError(OAuthError):
    """Raised when an authorization code cannot be exchanged for tokens."""

    pass


class RefreshError(OAuthError):
    """Raised when a token set cannot be refreshed."""

    pass


class RevocationError(OAuthError):
    """Raised when a connection or token cannot be revoked."""

    pass


class ApiError(XeroClientError):
    """Raised for any non-2xx API response.

    ``status_code`` and ``body`` are exactly what the transport returned.
    """

    def __init__(self, status_code: int, body: Any, method: str = "", url: str = ""):
        super().__init__(f"{method} {url} failed with status {status_code}".strip())
        self.status_code = status_code
        self.body = body
        self.method = method
        self.url = url


class TransportError(XeroClientError):
    """Raised when a network call cannot complete (connection, timeout)."""

    pass


class ConsistencyError(XeroClientError):
    """Raised when a tenant cannot be joined to its organisation record."""

    def __init__(self, message: str, tenant_id: str | None = None):
        super().__init__(message)
        self.tenant_id = tenant_id
