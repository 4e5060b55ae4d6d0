"""OAuth2 / OpenID Connect flow implementation."""

from .discovery import ProviderMetadataResolver
from .flow import AuthFlowEngine


__all__ = ["AuthFlowEngine", "ProviderMetadataResolver"]
