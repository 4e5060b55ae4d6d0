"""Tests for the authorization code flow engine."""

import base64
import time
from unittest.mock import AsyncMock
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from pytest_httpx import HTTPXMock

from tests.fixtures.identity import (
    AUTHORIZE_URL,
    CLIENT_ID,
    CLIENT_SECRET,
    CONNECTIONS_URL,
    DISCOVERY_URL,
    ISSUER,
    REDIRECT_URI,
    REVOCATION_URL,
    STATE,
    TOKEN_URL,
    make_id_token,
    make_token_set,
    provider_metadata_payload,
    token_response,
)
from xero_client.auth.exceptions import (
    ApiError,
    RefreshError,
    RevocationError,
    TokenExchangeError,
    TransportError,
)
from xero_client.auth.models import ProviderMetadata
from xero_client.auth.oauth.discovery import ProviderMetadataResolver
from xero_client.auth.oauth.flow import AuthFlowEngine
from xero_client.config.settings import ClientConfig
from xero_client.http.executor import AuthenticatedRequestExecutor


CALLBACK_URL = f"{REDIRECT_URI}?code=auth-code-1&state={STATE}&scope=openid"


def _form(request: httpx.Request) -> dict[str, list[str]]:
    return parse_qs(request.content.decode())


def _engine_for(
    config: ClientConfig, http_client: httpx.AsyncClient
) -> AuthFlowEngine:
    return AuthFlowEngine(config, ProviderMetadataResolver(ISSUER, http_client), http_client)


class TestConsentUrl:
    """Consent URL construction."""

    async def test_default_scopes_when_empty(
        self, client_config: ClientConfig, http_client: httpx.AsyncClient, mock_discovery: HTTPXMock
    ) -> None:
        config = client_config.model_copy(update={"scopes": ()})
        url = await _engine_for(config, http_client).build_consent_url()

        query = parse_qs(urlparse(url).query)
        assert query["scope"] == ["openid email profile"]
        assert "scope=openid%20email%20profile" in url

    async def test_scopes_joined_in_order(
        self, engine: AuthFlowEngine, mock_discovery: HTTPXMock
    ) -> None:
        url = await engine.build_consent_url()

        parsed = urlparse(url)
        query = parse_qs(parsed.query)
        assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == AUTHORIZE_URL
        assert query["scope"] == ["openid profile email accounting.transactions"]
        assert query["client_id"] == [CLIENT_ID]
        assert query["redirect_uri"] == [REDIRECT_URI]
        assert query["response_type"] == ["code"]
        assert query["state"] == [STATE]

    async def test_no_state_parameter_without_state(
        self, client_config: ClientConfig, http_client: httpx.AsyncClient, mock_discovery: HTTPXMock
    ) -> None:
        config = client_config.model_copy(update={"state": None})
        url = await _engine_for(config, http_client).build_consent_url()
        assert "state" not in parse_qs(urlparse(url).query)

    def test_consent_url_is_pure(self, engine: AuthFlowEngine) -> None:
        metadata = ProviderMetadata.model_validate(provider_metadata_payload())
        assert engine.consent_url(metadata) == engine.consent_url(metadata)


class TestExchangeCode:
    """Authorization code exchange."""

    async def test_exchange_success(
        self, engine: AuthFlowEngine, mock_discovery: HTTPXMock
    ) -> None:
        mock_discovery.add_response(method="POST", url=TOKEN_URL, json=token_response())

        token_set = await engine.exchange_code(CALLBACK_URL)

        assert token_set.access_token_value == "access-token-1"
        assert token_set.refresh_token_value == "refresh-token-1"
        assert token_set.claims()["sub"] == "user-123"

        request = mock_discovery.get_request(method="POST", url=TOKEN_URL)
        assert request is not None
        assert _form(request) == {
            "grant_type": ["authorization_code"],
            "code": ["auth-code-1"],
            "redirect_uri": [REDIRECT_URI],
        }
        expected_auth = base64.b64encode(f"{CLIENT_ID}:{CLIENT_SECRET}".encode()).decode()
        assert request.headers["Authorization"] == f"Basic {expected_auth}"

    async def test_state_mismatch_makes_no_token_request(
        self, engine: AuthFlowEngine, mock_discovery: HTTPXMock
    ) -> None:
        with pytest.raises(TokenExchangeError, match="State parameter mismatch"):
            await engine.exchange_code(f"{REDIRECT_URI}?code=abc&state=forged")

        assert mock_discovery.get_requests(url=TOKEN_URL) == []

    async def test_missing_state_is_a_mismatch(
        self, engine: AuthFlowEngine, mock_discovery: HTTPXMock
    ) -> None:
        with pytest.raises(TokenExchangeError, match="State parameter mismatch"):
            await engine.exchange_code(f"{REDIRECT_URI}?code=abc")

    async def test_unexpected_state_without_configured_state(
        self, client_config: ClientConfig, http_client: httpx.AsyncClient, mock_discovery: HTTPXMock
    ) -> None:
        engine = _engine_for(client_config.model_copy(update={"state": None}), http_client)
        with pytest.raises(TokenExchangeError, match="State parameter mismatch"):
            await engine.exchange_code(f"{REDIRECT_URI}?code=abc&state=injected")

    async def test_non_ascii_state_round_trip(
        self, client_config: ClientConfig, http_client: httpx.AsyncClient, mock_discovery: HTTPXMock
    ) -> None:
        engine = _engine_for(client_config.model_copy(update={"state": "café"}), http_client)
        mock_discovery.add_response(method="POST", url=TOKEN_URL, json=token_response())

        token_set = await engine.exchange_code(f"{REDIRECT_URI}?code=abc&state=caf%C3%A9")

        assert token_set.access_token_value == "access-token-1"

    async def test_forged_non_ascii_state(
        self, engine: AuthFlowEngine, mock_discovery: HTTPXMock
    ) -> None:
        with pytest.raises(TokenExchangeError, match="State parameter mismatch"):
            await engine.exchange_code(f"{REDIRECT_URI}?code=abc&state=%C3%A9vil")

        assert mock_discovery.get_requests(url=TOKEN_URL) == []

    async def test_provider_error_in_callback(
        self, engine: AuthFlowEngine, mock_discovery: HTTPXMock
    ) -> None:
        url = f"{REDIRECT_URI}?error=access_denied&error_description=User+cancelled&state={STATE}"

        with pytest.raises(TokenExchangeError) as exc_info:
            await engine.exchange_code(url)

        assert exc_info.value.detail == "User cancelled"

    async def test_missing_code(
        self, engine: AuthFlowEngine, mock_discovery: HTTPXMock
    ) -> None:
        with pytest.raises(TokenExchangeError, match="No authorization code"):
            await engine.exchange_code(f"{REDIRECT_URI}?state={STATE}")

    async def test_issuer_mismatch_in_callback(
        self, engine: AuthFlowEngine, mock_discovery: HTTPXMock
    ) -> None:
        url = f"{CALLBACK_URL}&iss=https%3A%2F%2Fevil.example.com"
        with pytest.raises(TokenExchangeError, match="Issuer mismatch"):
            await engine.exchange_code(url)

    async def test_provider_rejects_code(
        self, engine: AuthFlowEngine, mock_discovery: HTTPXMock
    ) -> None:
        mock_discovery.add_response(
            method="POST",
            url=TOKEN_URL,
            status_code=400,
            json={"error": "invalid_grant"},
        )

        with pytest.raises(TokenExchangeError) as exc_info:
            await engine.exchange_code(CALLBACK_URL)

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "invalid_grant"
        assert exc_info.value.body == {"error": "invalid_grant"}

    async def test_response_without_access_token(
        self, engine: AuthFlowEngine, mock_discovery: HTTPXMock
    ) -> None:
        mock_discovery.add_response(
            method="POST", url=TOKEN_URL, json=token_response(access_token=None)
        )

        with pytest.raises(TokenExchangeError, match="access_token missing"):
            await engine.exchange_code(CALLBACK_URL)

    async def test_expires_in_out_of_range(
        self, engine: AuthFlowEngine, mock_discovery: HTTPXMock
    ) -> None:
        mock_discovery.add_response(
            method="POST", url=TOKEN_URL, json=token_response(expires_in=10**15)
        )

        with pytest.raises(TokenExchangeError, match="Unparseable token response"):
            await engine.exchange_code(CALLBACK_URL)

    async def test_response_not_json(
        self, engine: AuthFlowEngine, mock_discovery: HTTPXMock
    ) -> None:
        mock_discovery.add_response(method="POST", url=TOKEN_URL, text="OK")

        with pytest.raises(TokenExchangeError, match="not a JSON object"):
            await engine.exchange_code(CALLBACK_URL)

    async def test_id_token_for_other_audience(
        self, engine: AuthFlowEngine, mock_discovery: HTTPXMock
    ) -> None:
        mock_discovery.add_response(
            method="POST",
            url=TOKEN_URL,
            json=token_response(id_token=make_id_token(aud="someone-else")),
        )

        with pytest.raises(TokenExchangeError, match="Invalid id_token"):
            await engine.exchange_code(CALLBACK_URL)

    async def test_expired_id_token(
        self, engine: AuthFlowEngine, mock_discovery: HTTPXMock
    ) -> None:
        mock_discovery.add_response(
            method="POST",
            url=TOKEN_URL,
            json=token_response(id_token=make_id_token(exp=int(time.time()) - 60)),
        )

        with pytest.raises(TokenExchangeError, match="Invalid id_token"):
            await engine.exchange_code(CALLBACK_URL)

    async def test_id_token_within_clock_tolerance(
        self, engine: AuthFlowEngine, mock_discovery: HTTPXMock
    ) -> None:
        mock_discovery.add_response(
            method="POST",
            url=TOKEN_URL,
            json=token_response(id_token=make_id_token(exp=int(time.time()) - 2)),
        )

        token_set = await engine.exchange_code(CALLBACK_URL)
        assert token_set.id_token is not None

    async def test_token_endpoint_unreachable(
        self, engine: AuthFlowEngine, mock_discovery: HTTPXMock
    ) -> None:
        mock_discovery.add_exception(httpx.ConnectError("refused"), url=TOKEN_URL)

        with pytest.raises(TransportError):
            await engine.exchange_code(CALLBACK_URL)


class TestRefresh:
    """Refresh token grant."""

    async def test_refresh_without_token_fails_before_network(
        self, engine: AuthFlowEngine
    ) -> None:
        with pytest.raises(RefreshError, match="refresh_token not present"):
            await engine.refresh(None)

    async def test_refresh_returns_new_token_set(
        self, engine: AuthFlowEngine, mock_discovery: HTTPXMock
    ) -> None:
        original = make_token_set()
        snapshot = original.to_dict()
        mock_discovery.add_response(
            method="POST",
            url=TOKEN_URL,
            json=token_response(access_token="access-token-2", refresh_token="refresh-token-2"),
        )

        refreshed = await engine.refresh(original.refresh_token_value)

        assert refreshed is not original
        assert refreshed.access_token_value == "access-token-2"
        assert refreshed.refresh_token_value == "refresh-token-2"
        assert original.to_dict() == snapshot

        request = mock_discovery.get_request(method="POST", url=TOKEN_URL)
        assert request is not None
        assert _form(request) == {
            "grant_type": ["refresh_token"],
            "refresh_token": ["refresh-token-1"],
        }

    async def test_refresh_keeps_unrotated_refresh_token(
        self, engine: AuthFlowEngine, mock_discovery: HTTPXMock
    ) -> None:
        mock_discovery.add_response(
            method="POST",
            url=TOKEN_URL,
            json=token_response(access_token="access-token-2", refresh_token=None),
        )

        refreshed = await engine.refresh("refresh-token-1")

        assert refreshed.refresh_token_value == "refresh-token-1"

    async def test_refresh_rejected(
        self, engine: AuthFlowEngine, mock_discovery: HTTPXMock
    ) -> None:
        mock_discovery.add_response(
            method="POST",
            url=TOKEN_URL,
            status_code=400,
            json={"error": "invalid_grant", "error_description": "token expired"},
        )

        with pytest.raises(RefreshError) as exc_info:
            await engine.refresh("refresh-token-1")

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "token expired"


class TestRevocation:
    """Connection and token revocation."""

    async def test_revoke_connection(
        self, engine: AuthFlowEngine, http_client: httpx.AsyncClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            method="DELETE", url=f"{CONNECTIONS_URL}/conn-1", status_code=204
        )

        await engine.revoke("conn-1", "access-token-1", AuthenticatedRequestExecutor(http_client))

        request = httpx_mock.get_request(method="DELETE")
        assert request is not None
        assert request.headers["Authorization"] == "Bearer access-token-1"

    async def test_revoke_connection_failure(
        self, engine: AuthFlowEngine, http_client: httpx.AsyncClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            method="DELETE",
            url=f"{CONNECTIONS_URL}/conn-1",
            status_code=404,
            json={"Title": "Not found", "Detail": "Connection not found"},
        )

        with pytest.raises(RevocationError) as exc_info:
            await engine.revoke(
                "conn-1", "access-token-1", AuthenticatedRequestExecutor(http_client)
            )

        assert exc_info.value.status_code == 404
        assert exc_info.value.body == {"Title": "Not found", "Detail": "Connection not found"}
        assert exc_info.value.detail == "Connection not found"
        assert isinstance(exc_info.value.__cause__, ApiError)

    async def test_revoke_uses_given_executor(self, engine: AuthFlowEngine) -> None:
        executor = AsyncMock(spec=AuthenticatedRequestExecutor)

        await engine.revoke("conn/1", "token", executor)

        executor.delete.assert_awaited_once_with(f"{CONNECTIONS_URL}/conn%2F1", "token")

    async def test_revoke_token(
        self, engine: AuthFlowEngine, mock_discovery: HTTPXMock
    ) -> None:
        mock_discovery.add_response(method="POST", url=REVOCATION_URL, status_code=200)

        await engine.revoke_token("refresh-token-1")

        request = mock_discovery.get_request(method="POST", url=REVOCATION_URL)
        assert request is not None
        assert _form(request) == {
            "token": ["refresh-token-1"],
            "token_type_hint": ["refresh_token"],
        }

    async def test_revoke_token_rejected(
        self, engine: AuthFlowEngine, mock_discovery: HTTPXMock
    ) -> None:
        mock_discovery.add_response(
            method="POST", url=REVOCATION_URL, status_code=400, json={"error": "invalid_client"}
        )

        with pytest.raises(RevocationError) as exc_info:
            await engine.revoke_token("refresh-token-1")

        assert exc_info.value.status_code == 400

    async def test_revoke_token_without_endpoint(
        self, engine: AuthFlowEngine, httpx_mock: HTTPXMock
    ) -> None:
        payload = provider_metadata_payload()
        del payload["revocation_endpoint"]
        httpx_mock.add_response(url=DISCOVERY_URL, json=payload)

        with pytest.raises(RevocationError, match="revocation endpoint"):
            await engine.revoke_token("refresh-token-1")

    async def test_revoke_token_requires_token(self, engine: AuthFlowEngine) -> None:
        with pytest.raises(RevocationError):
            await engine.revoke_token(None)
