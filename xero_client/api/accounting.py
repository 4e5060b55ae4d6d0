"""Accounting API surface.

Only the glue needed by the client is provided here. ``XeroClient`` pushes
the access token whenever its token set changes and installs a token
provider, so every call reads the current token under the client's token
lock (refreshing first when auto refresh applies).
"""

from collections.abc import Awaitable, Callable
from typing import Any

from xero_client.config.constants import TENANT_ID_HEADER, XERO_API_BASE_URL
from xero_client.http.executor import ApiResponse, AuthenticatedRequestExecutor
from xero_client.tenants.models import Organisation
from xero_client.tenants.organisations import fetch_organisations


TokenProvider = Callable[[], Awaitable[str | None]]


class AccountingApi:
    """Tenant-scoped calls against the accounting API."""

    def __init__(
        self,
        executor: AuthenticatedRequestExecutor,
        base_url: str = XERO_API_BASE_URL,
        token_provider: TokenProvider | None = None,
    ):
        self._executor = executor
        self.base_url = base_url.rstrip("/")
        self.access_token: str | None = None
        self._token_provider = token_provider

    async def _resolve_token(self) -> str | None:
        if self._token_provider is not None:
            return await self._token_provider()
        return self.access_token

    async def request(
        self,
        method: str,
        path: str,
        xero_tenant_id: str,
        **kwargs: Any,
    ) -> ApiResponse:
        """Call an accounting endpoint on behalf of one tenant."""
        headers = dict(kwargs.pop("headers", None) or {})
        headers[TENANT_ID_HEADER] = xero_tenant_id
        return await self._executor.execute(
            method,
            f"{self.base_url}{path}",
            await self._resolve_token(),
            headers=headers,
            **kwargs,
        )

    async def get_organisations(self, xero_tenant_id: str) -> list[Organisation]:
        """Return the organisation records visible to a tenant.

        Raises:
            ConsistencyError: If the response carries no usable organisation list
        """
        return await fetch_organisations(
            self._executor, self.base_url, await self._resolve_token(), xero_tenant_id
        )
