"""Endpoint and protocol constants for the Xero client."""

ISSUER_BASE_URL = "https://identity.xero.com"
XERO_API_BASE_URL = "https://api.xero.com"

DISCOVERY_PATH = "/.well-known/openid-configuration"
CONNECTIONS_PATH = "/connections"
ORGANISATIONS_PATH = "/api.xro/2.0/Organisation"

TENANT_ID_HEADER = "xero-tenant-id"

DEFAULT_SCOPES = ("openid", "email", "profile")
DEFAULT_SIGNING_ALG = "RS256"

# Seconds of skew tolerated when checking id token timestamps
CLOCK_TOLERANCE = 5

DEFAULT_USER_AGENT = "xero-client-python/0.1"
