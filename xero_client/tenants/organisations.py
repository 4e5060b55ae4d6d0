"""Organisation lookup shared by the tenant directory and the accounting API."""

from typing import Any

from pydantic import ValidationError

from xero_client.auth.exceptions import ConsistencyError
from xero_client.config.constants import ORGANISATIONS_PATH, TENANT_ID_HEADER
from xero_client.core.logging import get_logger
from xero_client.http.executor import AuthenticatedRequestExecutor
from xero_client.tenants.models import Organisation


logger = get_logger(__name__)


def parse_organisations(body: Any, tenant_id: str) -> list[Organisation]:
    """Read the ``Organisations`` list of an organisation response.

    Raises:
        ConsistencyError: If the list is missing or a record is malformed
    """
    records = body.get("Organisations") if isinstance(body, dict) else None
    if not isinstance(records, list):
        logger.error(
            "organisations_list_missing", tenant_id=tenant_id, category="tenants"
        )
        raise ConsistencyError(
            f"Organisation response for tenant {tenant_id} has no Organisations list",
            tenant_id=tenant_id,
        )
    try:
        return [Organisation.model_validate(record) for record in records]
    except ValidationError as e:
        logger.error(
            "organisations_malformed",
            tenant_id=tenant_id,
            error=str(e),
            category="tenants",
        )
        raise ConsistencyError(
            f"Malformed organisation record for tenant {tenant_id}: {e}",
            tenant_id=tenant_id,
        ) from e


async def fetch_organisations(
    executor: AuthenticatedRequestExecutor,
    api_base_url: str,
    access_token: str | None,
    tenant_id: str,
) -> list[Organisation]:
    """GET the organisation records visible to one tenant."""
    response = await executor.get(
        f"{api_base_url}{ORGANISATIONS_PATH}",
        access_token,
        headers={TENANT_ID_HEADER: tenant_id},
    )
    return parse_organisations(response.body, tenant_id)
