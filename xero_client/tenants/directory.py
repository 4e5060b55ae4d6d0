"""Tenant directory: authorized connections joined with their organisations."""

import asyncio
from collections.abc import Awaitable, Iterable
from typing import Any, TypeVar

from pydantic import ValidationError

from xero_client.auth.exceptions import ConsistencyError
from xero_client.config.constants import CONNECTIONS_PATH, XERO_API_BASE_URL
from xero_client.core.logging import get_logger
from xero_client.http.executor import AuthenticatedRequestExecutor
from xero_client.tenants.models import Connection, Organisation, Tenant
from xero_client.tenants.organisations import fetch_organisations


logger = get_logger(__name__)

T = TypeVar("T")


async def gather_all_or_nothing(aws: Iterable[Awaitable[T]]) -> list[T]:
    """Run awaitables concurrently; on the first failure cancel the rest.

    The first exception propagates unchanged.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class TenantDirectory:
    """Builds the ordered tenant list for an access token."""

    def __init__(self, api_base_url: str = XERO_API_BASE_URL, strict: bool = True):
        """Initialize the directory.

        Args:
            api_base_url: Base URL of the connections and accounting APIs
            strict: Raise ConsistencyError when a tenant has no matching
                organisation; otherwise leave the organisation empty
        """
        self.api_base_url = api_base_url.rstrip("/")
        self.strict = strict

    async def refresh(
        self, executor: AuthenticatedRequestExecutor, access_token: str | None
    ) -> tuple[Tenant, ...]:
        """Fetch connections and organisations and join them.

        Returns:
            Tenants sorted by update timestamp, most recent first; ties keep
            the order the provider returned

        Raises:
            ApiError: Propagated unchanged from any failed call
            TransportError: Propagated unchanged from any failed call
            ConsistencyError: If provider data cannot be joined
        """
        response = await executor.get(
            f"{self.api_base_url}{CONNECTIONS_PATH}", access_token
        )
        connections = self._parse_connections(response.body)

        # All organisation fetches must succeed before anything is returned
        organisation_lists = await gather_all_or_nothing(
            fetch_organisations(
                executor, self.api_base_url, access_token, connection.tenant_id
            )
            for connection in connections
        )

        organisations: dict[str, Organisation] = {}
        for organisation_list in organisation_lists:
            for organisation in organisation_list:
                organisations.setdefault(organisation.organisation_id, organisation)

        tenants = [self._join(connection, organisations) for connection in connections]
        # list.sort is stable, also with reverse=True
        tenants.sort(key=lambda tenant: tenant.updated_date_utc, reverse=True)

        logger.info(
            "tenants_refreshed",
            tenant_count=len(tenants),
            organisation_count=len(organisations),
            category="tenants",
        )
        return tuple(tenants)

    def _parse_connections(self, body: Any) -> list[Connection]:
        if not isinstance(body, list):
            raise ConsistencyError(
                f"Connections endpoint returned {type(body).__name__}, expected a list"
            )
        try:
            return [Connection.model_validate(item) for item in body]
        except ValidationError as e:
            logger.error("connections_malformed", error=str(e), category="tenants")
            raise ConsistencyError(f"Malformed connection record: {e}") from e

    def _join(
        self, connection: Connection, organisations: dict[str, Organisation]
    ) -> Tenant:
        organisation = organisations.get(connection.tenant_id)
        if organisation is None:
            logger.warning(
                "tenant_organisation_missing",
                tenant_id=connection.tenant_id,
                strict=self.strict,
                category="tenants",
            )
            if self.strict:
                raise ConsistencyError(
                    f"No organisation record matches tenant {connection.tenant_id}",
                    tenant_id=connection.tenant_id,
                )
        return Tenant.from_connection(connection, organisation)
