"""Bearer-authenticated request execution.

Every API call made by the client passes through ``AuthenticatedRequestExecutor``.
The access token is always supplied by the caller; the executor keeps no
credential state of its own.
"""

from dataclasses import dataclass, field
from typing import Any

import httpx

from xero_client.auth.exceptions import (
    ApiError,
    CredentialsMissingError,
    TransportError,
)
from xero_client.core.logging import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class ApiResponse:
    """Successful API response."""

    status_code: int
    body: Any
    headers: dict[str, str] = field(default_factory=dict)


def parse_body(response: httpx.Response) -> Any:
    """Return the response body as structured data when possible.

    JSON content types are decoded; anything else (or JSON that does not
    parse) is returned as the raw text. An empty body yields None.
    """
    if not response.content:
        return None
    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text


class AuthenticatedRequestExecutor:
    """Executes HTTP calls with a bearer token and classifies the result."""

    def __init__(self, http_client: httpx.AsyncClient):
        self._http_client = http_client

    async def execute(
        self,
        method: str,
        uri: str,
        access_token: str | None,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        data: Any = None,
        headers: dict[str, str] | None = None,
    ) -> ApiResponse:
        """Perform one authenticated request.

        Args:
            method: HTTP method
            uri: Absolute request URI
            access_token: Bearer token attached to the request
            params: Query string parameters
            json: JSON request body
            data: Form request body
            headers: Extra request headers

        Returns:
            ApiResponse for a 2xx status

        Raises:
            CredentialsMissingError: If no access token is given
            ApiError: For any status outside 200-299, with the status code and
                body exactly as received
            TransportError: If the request cannot complete
        """
        if not access_token:
            raise CredentialsMissingError("An access token is required for API calls")

        method = method.upper()
        request_headers = {"Accept": "application/json"}
        if headers:
            request_headers.update(headers)
        request_headers["Authorization"] = f"Bearer {access_token}"

        try:
            response = await self._http_client.request(
                method,
                uri,
                params=params,
                json=json,
                data=data,
                headers=request_headers,
            )
        except httpx.TimeoutException as e:
            logger.warning(
                "api_call_timeout", method=method, uri=uri, error=str(e), category="http"
            )
            raise TransportError(f"{method} {uri} timed out") from e
        except httpx.HTTPError as e:
            logger.warning(
                "api_call_transport_error",
                method=method,
                uri=uri,
                error=str(e),
                error_type=type(e).__name__,
                category="http",
            )
            raise TransportError(f"{method} {uri} failed: {e}") from e

        body = parse_body(response)

        if not 200 <= response.status_code <= 299:
            logger.info(
                "api_call_failed",
                method=method,
                uri=uri,
                status_code=response.status_code,
                category="http",
            )
            raise ApiError(response.status_code, body, method=method, url=uri)

        logger.debug(
            "api_call_completed",
            method=method,
            uri=uri,
            status_code=response.status_code,
            category="http",
        )
        return ApiResponse(
            status_code=response.status_code,
            body=body,
            headers=dict(response.headers),
        )

    async def get(self, uri: str, access_token: str | None, **kwargs: Any) -> ApiResponse:
        return await self.execute("GET", uri, access_token, **kwargs)

    async def delete(
        self, uri: str, access_token: str | None, **kwargs: Any
    ) -> ApiResponse:
        return await self.execute("DELETE", uri, access_token, **kwargs)

    async def post(
        self, uri: str, access_token: str | None, body: Any = None, **kwargs: Any
    ) -> ApiResponse:
        return await self.execute("POST", uri, access_token, json=body, **kwargs)

    async def put(
        self, uri: str, access_token: str | None, body: Any = None, **kwargs: Any
    ) -> ApiResponse:
        return await self.execute("PUT", uri, access_token, json=body, **kwargs)

    async def patch(
        self, uri: str, access_token: str | None, body: Any = None, **kwargs: Any
    ) -> ApiResponse:
        return await self.execute("PATCH", uri, access_token, json=body, **kwargs)
