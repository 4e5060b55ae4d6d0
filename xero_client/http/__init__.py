"""Authenticated request execution."""

from .executor import ApiResponse, AuthenticatedRequestExecutor


__all__ = ["ApiResponse", "AuthenticatedRequestExecutor"]
