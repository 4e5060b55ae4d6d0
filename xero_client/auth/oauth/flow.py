"""Authorization code flow: consent URL, code exchange, refresh and revocation.

The engine never holds a ``TokenSet``. It produces new ones and hands them
back; the client that owns the session decides when to adopt them.
"""

import secrets
from typing import Any
from urllib.parse import parse_qsl, quote, urlencode, urlparse

import httpx
import jwt

from xero_client.auth.exceptions import (
    ApiError,
    OAuthError,
    RefreshError,
    RevocationError,
    TokenExchangeError,
    TransportError,
)
from xero_client.auth.models import ProviderMetadata, TokenSet
from xero_client.auth.oauth.discovery import ProviderMetadataResolver
from xero_client.auth.oauth.errors import extract_error_detail
from xero_client.config.constants import (
    CLOCK_TOLERANCE,
    CONNECTIONS_PATH,
    DEFAULT_SCOPES,
    XERO_API_BASE_URL,
)
from xero_client.config.settings import ClientConfig
from xero_client.core.logging import get_logger
from xero_client.http.executor import AuthenticatedRequestExecutor, parse_body


logger = get_logger(__name__)


class AuthFlowEngine:
    """OAuth2 / OpenID Connect authorization code flow for one client registration."""

    def __init__(
        self,
        config: ClientConfig,
        resolver: ProviderMetadataResolver,
        http_client: httpx.AsyncClient,
        api_base_url: str = XERO_API_BASE_URL,
        clock_tolerance: int = CLOCK_TOLERANCE,
    ):
        """Initialize the flow engine.

        Args:
            config: Client registration
            resolver: Provider metadata resolver owned by the same client
            http_client: HTTP client used for token endpoint calls
            api_base_url: Base URL of the connections API
            clock_tolerance: Seconds of skew tolerated on id token timestamps
        """
        self.config = config
        self.resolver = resolver
        self.api_base_url = api_base_url.rstrip("/")
        self.clock_tolerance = clock_tolerance
        self._http_client = http_client

    async def initialize(self) -> ProviderMetadata:
        """Resolve provider metadata (cached after the first call)."""
        return await self.resolver.resolve()

    # ==================== Consent ====================

    def consent_url(self, metadata: ProviderMetadata) -> str:
        """Build the authorization URL for the given provider metadata."""
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "scope": " ".join(self.config.scopes) or " ".join(DEFAULT_SCOPES),
            "response_type": "code",
        }
        if self.config.state is not None:
            params["state"] = self.config.state

        separator = "&" if "?" in metadata.authorization_endpoint else "?"
        return (
            f"{metadata.authorization_endpoint}{separator}"
            f"{urlencode(params, quote_via=quote)}"
        )

    async def build_consent_url(self) -> str:
        """Initialize if needed and build the consent URL."""
        metadata = await self.initialize()
        url = self.consent_url(metadata)
        logger.debug(
            "consent_url_built",
            scopes=list(self.config.scopes) or list(DEFAULT_SCOPES),
            has_state=self.config.state is not None,
            category="auth",
        )
        return url

    # ==================== Code exchange ====================

    @staticmethod
    def callback_params(callback_url: str) -> dict[str, str]:
        """Extract the query parameters of a callback URL."""
        return dict(parse_qsl(urlparse(callback_url).query, keep_blank_values=True))

    def _check_callback(
        self, params: dict[str, str], metadata: ProviderMetadata
    ) -> str:
        """Validate callback parameters against the original request.

        Returns:
            The authorization code

        Raises:
            TokenExchangeError: If the callback must not be exchanged
        """
        if "error" in params:
            detail = params.get("error_description") or params["error"]
            logger.warning(
                "oauth_callback_error",
                error=params["error"],
                detail=detail,
                category="auth",
            )
            raise TokenExchangeError(f"Authorization failed: {detail}", detail=detail)

        expected_state = self.config.state
        received_state = params.get("state")
        if expected_state is None or received_state is None:
            state_ok = expected_state is None and received_state is None
        else:
            state_ok = secrets.compare_digest(
                expected_state.encode(), received_state.encode()
            )
        if not state_ok:
            logger.warning(
                "oauth_callback_state_mismatch",
                state_expected=expected_state is not None,
                state_received=received_state is not None,
                category="auth",
            )
            raise TokenExchangeError("State parameter mismatch")

        received_issuer = params.get("iss")
        if received_issuer is not None and received_issuer != metadata.issuer:
            logger.warning(
                "oauth_callback_issuer_mismatch",
                expected=metadata.issuer,
                received=received_issuer,
                category="auth",
            )
            raise TokenExchangeError(
                f"Issuer mismatch: expected {metadata.issuer}, got {received_issuer}"
            )

        code = params.get("code")
        if not code:
            raise TokenExchangeError("No authorization code received")
        return code

    async def exchange_code(self, callback_url: str) -> TokenSet:
        """Exchange the authorization code carried by a callback URL.

        Args:
            callback_url: Full URL the provider redirected the user to

        Returns:
            A new TokenSet

        Raises:
            DiscoveryError: If provider metadata cannot be resolved
            TokenExchangeError: If the callback is invalid, the provider
                rejects the code or the response cannot be parsed
            TransportError: If the token endpoint cannot be reached
        """
        metadata = await self.initialize()
        code = self._check_callback(self.callback_params(callback_url), metadata)

        body = await self._token_request(
            metadata,
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.config.redirect_uri,
            },
            TokenExchangeError,
            "token_exchange",
        )
        token_set = self._build_token_set(body, metadata, TokenExchangeError)

        logger.info(
            "oauth_code_exchanged",
            has_refresh_token=token_set.refresh_token is not None,
            has_id_token=token_set.id_token is not None,
            expires_in=token_set.expires_in,
            scopes=sorted(token_set.scope),
            category="auth",
        )
        return token_set

    # ==================== Refresh ====================

    async def refresh(self, refresh_token: str | None) -> TokenSet:
        """Obtain a new token set with a refresh token.

        The presented refresh token is carried over when the provider does not
        rotate it.

        Raises:
            RefreshError: If no refresh token is given or the provider rejects it
            TransportError: If the token endpoint cannot be reached
        """
        if not refresh_token:
            raise RefreshError("refresh_token not present in TokenSet")

        metadata = await self.initialize()
        body = await self._token_request(
            metadata,
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            RefreshError,
            "token_refresh",
        )
        if not body.get("refresh_token"):
            body = {**body, "refresh_token": refresh_token}

        token_set = self._build_token_set(body, metadata, RefreshError)
        logger.info(
            "oauth_token_refreshed",
            rotated_refresh_token=token_set.refresh_token_value != refresh_token,
            expires_in=token_set.expires_in,
            category="auth",
        )
        return token_set

    # ==================== Revocation ====================

    async def revoke(
        self,
        connection_id: str,
        access_token: str | None,
        executor: AuthenticatedRequestExecutor,
    ) -> None:
        """Remove a tenant connection.

        Raises:
            RevocationError: On a non-2xx response, with status code and body
            TransportError: If the request cannot complete
        """
        uri = f"{self.api_base_url}{CONNECTIONS_PATH}/{quote(connection_id, safe='')}"
        try:
            await executor.delete(uri, access_token)
        except ApiError as e:
            detail = extract_error_detail(e.body)
            logger.error(
                "connection_revocation_failed",
                connection_id=connection_id,
                status_code=e.status_code,
                detail=detail,
                category="auth",
            )
            raise RevocationError(
                f"Disconnecting {connection_id} failed: {detail}",
                status_code=e.status_code,
                body=e.body,
                detail=detail,
            ) from e

        logger.info("connection_revoked", connection_id=connection_id, category="auth")

    async def revoke_token(
        self, token: str | None, token_type_hint: str = "refresh_token"
    ) -> None:
        """Revoke a token at the provider's revocation endpoint.

        Raises:
            RevocationError: If there is no token, no revocation endpoint, or
                the provider answers with a non-2xx status
            TransportError: If the endpoint cannot be reached
        """
        if not token:
            raise RevocationError(f"No {token_type_hint} to revoke")

        metadata = await self.initialize()
        if not metadata.revocation_endpoint:
            raise RevocationError("Provider does not advertise a revocation endpoint")

        response = await self._post_form(
            metadata.revocation_endpoint,
            {"token": token, "token_type_hint": token_type_hint},
            "token_revocation",
        )
        if not response.is_success:
            body = parse_body(response)
            detail = extract_error_detail(body)
            logger.error(
                "token_revocation_failed",
                status_code=response.status_code,
                detail=detail,
                category="auth",
            )
            raise RevocationError(
                f"Token revocation failed: {detail}",
                status_code=response.status_code,
                body=body,
                detail=detail,
            )

        logger.info("token_revoked", token_type_hint=token_type_hint, category="auth")

    # ==================== Helpers ====================

    async def _post_form(
        self, url: str, form: dict[str, str], operation: str
    ) -> httpx.Response:
        """POST a form authenticated with the client credentials."""
        try:
            return await self._http_client.post(
                url,
                data=form,
                auth=httpx.BasicAuth(
                    self.config.client_id,
                    self.config.client_secret.get_secret_value(),
                ),
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.error(
                f"{operation}_transport_error",
                error=str(e),
                error_type=type(e).__name__,
                category="auth",
            )
            raise TransportError(f"{operation} failed: {e}") from e

    async def _token_request(
        self,
        metadata: ProviderMetadata,
        form: dict[str, str],
        error_cls: type[OAuthError],
        operation: str,
    ) -> dict[str, Any]:
        response = await self._post_form(metadata.token_endpoint, form, operation)
        body = parse_body(response)

        if not response.is_success:
            detail = extract_error_detail(body)
            logger.error(
                f"{operation}_rejected",
                status_code=response.status_code,
                detail=detail,
                category="auth",
            )
            raise error_cls(
                f"{operation} failed: {detail}",
                status_code=response.status_code,
                body=body,
                detail=detail,
            )

        if not isinstance(body, dict):
            logger.error(f"{operation}_invalid_response", category="auth")
            raise error_cls(
                f"{operation} failed: token response is not a JSON object",
                status_code=response.status_code,
                body=body,
            )

        if not body.get("access_token"):
            logger.error(
                f"{operation}_missing_access_token",
                response_keys=list(body.keys()),
                category="auth",
            )
            raise error_cls(
                f"{operation} failed: access_token missing from response",
                status_code=response.status_code,
            )
        return body

    def _build_token_set(
        self,
        body: dict[str, Any],
        metadata: ProviderMetadata,
        error_cls: type[OAuthError],
    ) -> TokenSet:
        try:
            token_set = TokenSet.from_token_response(body)
        except (ValueError, TypeError, OverflowError) as e:
            raise error_cls(f"Unparseable token response: {e}") from e

        if token_set.id_token:
            self._validate_id_token(token_set.id_token, metadata, error_cls)
        return token_set

    def _validate_id_token(
        self,
        id_token: str,
        metadata: ProviderMetadata,
        error_cls: type[OAuthError],
    ) -> None:
        """Check issuer, audience and expiry of an id token.

        Signatures are not verified against the provider keys.
        """
        try:
            jwt.decode(
                id_token,
                options={
                    "verify_signature": False,
                    "verify_exp": True,
                    "verify_aud": True,
                    "verify_iss": True,
                    "require": ["iss", "aud", "exp"],
                },
                audience=self.config.client_id,
                issuer=metadata.issuer,
                leeway=self.clock_tolerance,
            )
        except jwt.PyJWTError as e:
            logger.error(
                "id_token_invalid",
                error=str(e),
                error_type=type(e).__name__,
                category="auth",
            )
            raise error_cls(f"Invalid id_token: {e}") from e
