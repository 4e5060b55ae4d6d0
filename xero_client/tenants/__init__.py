"""Tenant directory and tenant records."""

from .directory import TenantDirectory
from .models import Connection, Organisation, Tenant


__all__ = ["Connection", "Organisation", "Tenant", "TenantDirectory"]
