"""Configuration module for the Xero client."""

from .http import HTTPSettings
from .logging import LoggingSettings
from .settings import ClientConfig, ConfigurationError, XeroSettings


__all__ = [
    "ClientConfig",
    "ConfigurationError",
    "HTTPSettings",
    "LoggingSettings",
    "XeroSettings",
]
