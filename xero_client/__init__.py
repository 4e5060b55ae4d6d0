"""OAuth2 / OpenID Connect client for the Xero APIs."""

from ._version import __version__
from .auth.exceptions import (
    ApiError,
    ClaimsError,
    ConfigurationError,
    ConsistencyError,
    CredentialsMissingError,
    DiscoveryError,
    OAuthError,
    RefreshError,
    RevocationError,
    TokenExchangeError,
    TransportError,
    XeroClientError,
)
from .auth.models import ProviderMetadata, TokenSet
from .client import XeroClient
from .config import ClientConfig, XeroSettings
from .http.executor import ApiResponse
from .tenants.models import Connection, Organisation, Tenant


__all__ = [
    "__version__",
    "ApiError",
    "ApiResponse",
    "ClaimsError",
    "ClientConfig",
    "ConfigurationError",
    "Connection",
    "ConsistencyError",
    "CredentialsMissingError",
    "DiscoveryError",
    "OAuthError",
    "Organisation",
    "ProviderMetadata",
    "RefreshError",
    "RevocationError",
    "Tenant",
    "TokenExchangeError",
    "TokenSet",
    "TransportError",
    "XeroClient",
    "XeroClientError",
    "XeroSettings",
]
