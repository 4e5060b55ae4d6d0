"""HTTP client configuration settings."""

from pydantic import BaseModel, Field

from xero_client.config.constants import DEFAULT_USER_AGENT


class HTTPSettings(BaseModel):
    """HTTP client configuration settings.

    Controls timeouts and the retry policy of the shared HTTP client. Retries
    are never implicit: the default of zero means a failed connection surfaces
    immediately as a transport error.
    """

    timeout_connect: float = Field(
        default=5.0,
        ge=0,
        description="Connection timeout in seconds",
    )

    timeout_read: float = Field(
        default=30.0,
        ge=0,
        description="Read timeout in seconds",
    )

    retries: int = Field(
        default=0,
        ge=0,
        description="Number of connection-level retries performed by the transport",
    )

    verify: bool | str = Field(
        default=True,
        description="SSL verification (True/False or path to CA bundle)",
    )

    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="User-Agent header sent with every request",
    )
