"""Typed records for connections, organisations and joined tenants."""

import re
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# The API emits up to seven fractional digits; datetime holds six
_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")


def _parse_api_datetime(v: Any) -> Any:
    if isinstance(v, str):
        v = _EXCESS_FRACTION.sub(r"\1", v)
        v = datetime.fromisoformat(v.replace("Z", "+00:00"))
    if isinstance(v, datetime) and v.tzinfo is None:
        # API timestamps are UTC without an offset
        return v.replace(tzinfo=UTC)
    return v


class Connection(BaseModel):
    """One authorized connection returned by the connections endpoint."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    tenant_id: str = Field(..., alias="tenantId")
    tenant_type: str = Field(..., alias="tenantType")
    tenant_name: str | None = Field(None, alias="tenantName")
    auth_event_id: str | None = Field(None, alias="authEventId")
    created_date_utc: datetime | None = Field(None, alias="createdDateUtc")
    updated_date_utc: datetime = Field(..., alias="updatedDateUtc")

    @field_validator("created_date_utc", "updated_date_utc", mode="before")
    @classmethod
    def validate_dates(cls, v: Any) -> Any:
        return _parse_api_datetime(v)


class Organisation(BaseModel):
    """Organisation record of the accounting API."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    organisation_id: str = Field(..., alias="OrganisationID")
    name: str | None = Field(None, alias="Name")
    legal_name: str | None = Field(None, alias="LegalName")
    organisation_type: str | None = Field(None, alias="OrganisationType")
    base_currency: str | None = Field(None, alias="BaseCurrency")
    country_code: str | None = Field(None, alias="CountryCode")


class Tenant(BaseModel):
    """A connection joined with its organisation record."""

    model_config = ConfigDict(frozen=True)

    id: str
    tenant_id: str
    tenant_type: str
    tenant_name: str | None = None
    updated_date_utc: datetime
    organisation: Organisation | None = None

    @model_validator(mode="after")
    def check_organisation(self) -> "Tenant":
        """The nested organisation must be the tenant's own."""
        if (
            self.organisation is not None
            and self.organisation.organisation_id != self.tenant_id
        ):
            raise ValueError(
                f"Organisation {self.organisation.organisation_id} does not "
                f"belong to tenant {self.tenant_id}"
            )
        return self

    @classmethod
    def from_connection(
        cls, connection: Connection, organisation: Organisation | None
    ) -> "Tenant":
        return cls(
            id=connection.id,
            tenant_id=connection.tenant_id,
            tenant_type=connection.tenant_type,
            tenant_name=connection.tenant_name,
            updated_date_utc=connection.updated_date_utc,
            organisation=organisation,
        )
