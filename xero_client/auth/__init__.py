"""Authentication: token sets, provider metadata and the OAuth flow."""

from .exceptions import (
    ApiError,
    ClaimsError,
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
from .models import ProviderMetadata, TokenSet


__all__ = [
    "ApiError",
    "ClaimsError",
    "ConsistencyError",
    "CredentialsMissingError",
    "DiscoveryError",
    "OAuthError",
    "ProviderMetadata",
    "RefreshError",
    "RevocationError",
    "TokenExchangeError",
    "TokenSet",
    "TransportError",
    "XeroClientError",
]
