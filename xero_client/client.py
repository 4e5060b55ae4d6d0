"""Xero client facade.

``XeroClient`` owns the single token set of a session. Every operation that
replaces the token set holds the token lock for its whole protocol exchange,
and every outbound call reads the current access token under the same lock,
so a call never observes a half-finished refresh.
"""

import asyncio
from typing import Any

import httpx

from xero_client.api.accounting import AccountingApi
from xero_client.auth.exceptions import ConfigurationError, CredentialsMissingError
from xero_client.auth.models import ProviderMetadata, TokenSet
from xero_client.auth.oauth.discovery import ProviderMetadataResolver
from xero_client.auth.oauth.flow import AuthFlowEngine
from xero_client.config.settings import ClientConfig, XeroSettings
from xero_client.core.http_client import HTTPClientFactory
from xero_client.core.logging import get_logger
from xero_client.http.executor import ApiResponse, AuthenticatedRequestExecutor
from xero_client.tenants.directory import TenantDirectory
from xero_client.tenants.models import Tenant


logger = get_logger(__name__)


class XeroClient:
    """Authenticated client for the Xero APIs."""

    def __init__(
        self,
        config: ClientConfig,
        settings: XeroSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the client.

        Args:
            config: Client registration (validated at construction)
            settings: Endpoint, HTTP and behaviour settings
            http_client: HTTP client to use; one is created and owned by the
                client when omitted
        """
        if not isinstance(config, ClientConfig):
            raise ConfigurationError(
                f"config must be a ClientConfig, got {type(config).__name__}"
            )

        self.config = config
        self.settings = settings or XeroSettings()
        self._http_client = http_client or HTTPClientFactory.create_client(
            settings=self.settings.http
        )
        self._owns_http_client = http_client is None

        api_base_url = self.settings.api_base_url
        self.resolver = ProviderMetadataResolver(
            self.settings.issuer_url, self._http_client
        )
        self.auth_flow = AuthFlowEngine(
            config,
            self.resolver,
            self._http_client,
            api_base_url=api_base_url,
            clock_tolerance=self.settings.clock_tolerance,
        )
        self.executor = AuthenticatedRequestExecutor(self._http_client)
        self.tenant_directory = TenantDirectory(
            api_base_url, strict=self.settings.strict_tenant_join
        )
        self.accounting_api = AccountingApi(
            self.executor, api_base_url, token_provider=self._accounting_token
        )

        self._token_lock = asyncio.Lock()
        self._token_set = TokenSet.empty()
        self._access_token: str | None = None
        self._token_generation = 0
        self._tenants: tuple[Tenant, ...] = ()

    @classmethod
    def from_settings(
        cls, settings: XeroSettings, http_client: httpx.AsyncClient | None = None
    ) -> "XeroClient":
        """Create a client whose registration comes from settings."""
        return cls(settings.to_client_config(), settings, http_client)

    async def __aenter__(self) -> "XeroClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http_client:
            await self._http_client.aclose()

    # ==================== Authorization ====================

    async def initialize(self) -> ProviderMetadata:
        """Resolve the provider metadata for this client."""
        return await self.auth_flow.initialize()

    async def build_consent_url(self) -> str:
        """Build the URL where the user grants access."""
        return await self.auth_flow.build_consent_url()

    async def handle_callback(self, callback_url: str) -> TokenSet:
        """Exchange the code in a callback URL and adopt the new token set.

        The tenant cache of the previous session is dropped.
        """
        async with self._token_lock:
            token_set = await self.auth_flow.exchange_code(callback_url)
            self._tenants = ()
            self._adopt(token_set, reason="callback")
            return token_set

    async def refresh_token(self) -> TokenSet:
        """Refresh the current token set.

        Raises:
            RefreshError: If the current token set has no refresh token or the
                provider rejects it
        """
        async with self._token_lock:
            token_set = await self.auth_flow.refresh(
                self._token_set.refresh_token_value
            )
            self._adopt(token_set, reason="refresh")
            return token_set

    async def refresh_token_using_token_set(self, token_set: TokenSet) -> TokenSet:
        """Refresh with the refresh token of ``token_set`` and adopt the result.

        ``token_set`` itself is left untouched.
        """
        async with self._token_lock:
            refreshed = await self.auth_flow.refresh(token_set.refresh_token_value)
            self._adopt(refreshed, reason="refresh")
            return refreshed

    async def disconnect(self, connection_id: str) -> TokenSet:
        """Remove a tenant connection.

        The session is treated as invalidated: the token set is cleared and
        the tenant cache dropped, so a new authorization is required.
        """
        async with self._token_lock:
            await self.auth_flow.revoke(connection_id, self._access_token, self.executor)
            self._tenants = ()
            self._adopt(TokenSet.empty(), reason="disconnect")
            return self._token_set

    async def revoke_token(self) -> TokenSet:
        """Revoke the refresh token at the provider and clear the session."""
        async with self._token_lock:
            await self.auth_flow.revoke_token(self._token_set.refresh_token_value)
            self._tenants = ()
            self._adopt(TokenSet.empty(), reason="revoke")
            return self._token_set

    # ==================== Token set access ====================

    async def set_token_set(self, token_set: TokenSet) -> None:
        """Adopt a token set restored by the caller and drop the tenant cache.

        Raises:
            CredentialsMissingError: If the token set has no access token
        """
        if token_set.access_token is None:
            raise CredentialsMissingError("Access token is undefined")
        async with self._token_lock:
            self._tenants = ()
            self._adopt(token_set, reason="set")

    def read_token_set(self) -> TokenSet:
        return self._token_set

    def read_id_token_claims(self) -> dict[str, Any]:
        """Claims of the current id token.

        Raises:
            ClaimsError: If no id token is present
        """
        return self._token_set.claims()

    def _adopt(self, token_set: TokenSet, reason: str) -> None:
        """Store a token set and push its access token everywhere it is used.

        Must be called with the token lock held, as the last step of the
        operation that produced ``token_set``.
        """
        self._token_set = token_set
        self._token_generation += 1
        self._access_token = token_set.access_token_value
        self.accounting_api.access_token = self._access_token
        logger.debug(
            "token_set_adopted",
            reason=reason,
            empty=token_set.is_empty,
            expires_in=token_set.expires_in,
            category="auth",
        )

    async def _current_access_token(self) -> tuple[str, int]:
        """Snapshot the access token for one outbound call.

        Refreshes first when ``auto_refresh`` is enabled and the token set has
        expired but carries a refresh token.
        """
        async with self._token_lock:
            token_set = self._token_set
            if (
                self.settings.auto_refresh
                and token_set.refresh_token is not None
                and token_set.expired(leeway=self.settings.clock_tolerance)
            ):
                logger.info("token_set_expired_refreshing", category="auth")
                refreshed = await self.auth_flow.refresh(token_set.refresh_token_value)
                self._adopt(refreshed, reason="auto_refresh")

            if self._access_token is None:
                raise CredentialsMissingError(
                    "No access token; complete the authorization flow first"
                )
            return self._access_token, self._token_generation

    async def _accounting_token(self) -> str:
        access_token, _ = await self._current_access_token()
        return access_token

    # ==================== API calls ====================

    @property
    def tenants(self) -> tuple[Tenant, ...]:
        """Tenants from the last successful ``update_tenants``."""
        return self._tenants

    async def update_tenants(self) -> tuple[Tenant, ...]:
        """Reload the tenant list for the current token set.

        The cached list is replaced only after a complete refresh, and only
        if the token set did not change while the refresh was running.
        """
        access_token, generation = await self._current_access_token()
        tenants = await self.tenant_directory.refresh(self.executor, access_token)

        if generation == self._token_generation:
            self._tenants = tenants
        else:
            logger.info("tenants_discarded_token_changed", category="tenants")
        return tenants

    async def make_api_call(self, method: str, uri: str, **kwargs: Any) -> ApiResponse:
        """Perform an authenticated call with the current access token.

        Raises:
            ApiError: For non-2xx responses, status code and body unmodified
            TransportError: If the request cannot complete
        """
        access_token, _ = await self._current_access_token()
        return await self.executor.execute(method, uri, access_token, **kwargs)
