"""API surface receiving the client's access token."""

from .accounting import AccountingApi


__all__ = ["AccountingApi"]
