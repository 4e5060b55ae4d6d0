"""HTTP client construction for the Xero client.

Every outbound request of a client instance goes through one
``httpx.AsyncClient`` built here, so timeouts and the retry policy are
configured in a single place.
"""

import os
import ssl
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import httpx

from xero_client.config.http import HTTPSettings
from xero_client.core.logging import get_logger


logger = get_logger(__name__)


class HTTPClientFactory:
    """Factory for creating configured HTTP clients.

    Provides centralized configuration for HTTP clients with:
    - Explicit connect/read timeouts
    - Explicit connection-level retries (no implicit library defaults)
    - Proxy and CA bundle configuration from the environment
    """

    @staticmethod
    def create_client(
        *,
        settings: HTTPSettings | None = None,
        max_keepalive_connections: int = 20,
        max_connections: int = 100,
        **kwargs: Any,
    ) -> httpx.AsyncClient:
        """Create an HTTP client with the given settings.

        Args:
            settings: HTTP settings (defaults are used when omitted)
            max_keepalive_connections: Max keep-alive connections for reuse
            max_connections: Max total concurrent connections
            **kwargs: Additional httpx.AsyncClient arguments

        Returns:
            Configured httpx.AsyncClient instance
        """
        settings = settings or HTTPSettings()

        proxy = _get_proxy_url()
        verify = _resolve_verify(settings.verify)

        timeout = httpx.Timeout(
            connect=settings.timeout_connect,
            read=settings.timeout_read,
            write=settings.timeout_read,
            pool=settings.timeout_connect,
        )

        limits = httpx.Limits(
            max_keepalive_connections=max_keepalive_connections,
            max_connections=max_connections,
        )

        transport = httpx.AsyncHTTPTransport(
            limits=limits,
            verify=verify,
            proxy=proxy,
            retries=settings.retries,
        )

        headers = {"User-Agent": settings.user_agent}
        if "headers" in kwargs:
            headers.update(kwargs.pop("headers"))

        logger.debug(
            "http_client_created",
            timeout_connect=settings.timeout_connect,
            timeout_read=settings.timeout_read,
            retries=settings.retries,
            has_proxy=proxy is not None,
        )

        return httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers=headers,
            **kwargs,
        )

    @staticmethod
    @asynccontextmanager
    async def managed_client(
        settings: HTTPSettings | None = None, **kwargs: Any
    ) -> AsyncGenerator[httpx.AsyncClient, None]:
        """Create an HTTP client that is closed when the context exits.

        Example:
            async with HTTPClientFactory.managed_client() as client:
                response = await client.get("https://api.xero.com/connections")
        """
        client = HTTPClientFactory.create_client(settings=settings, **kwargs)
        try:
            yield client
        finally:
            await client.aclose()
            logger.debug("managed_http_client_closed")


_PROXY_ENV_VARS = ("HTTPS_PROXY", "https_proxy", "ALL_PROXY", "HTTP_PROXY", "http_proxy")


def _get_proxy_url() -> str | None:
    """Return the first proxy URL configured in the environment.

    Every API and identity endpoint is HTTPS, so ``HTTPS_PROXY`` is checked
    first.
    """
    for name in _PROXY_ENV_VARS:
        proxy_url = os.environ.get(name)
        if proxy_url:
            logger.debug("proxy_configured", proxy_url=proxy_url, source=name)
            return proxy_url
    return None


def _resolve_verify(verify: bool | str) -> ssl.SSLContext | bool:
    """Resolve SSL verification from settings and environment variables.

    An explicit CA bundle path in settings wins; otherwise
    ``REQUESTS_CA_BUNDLE``/``SSL_CERT_FILE`` and ``SSL_VERIFY`` are honoured.
    """
    if isinstance(verify, str):
        return ssl.create_default_context(cafile=verify)
    if not verify:
        logger.warning("ssl_verification_disabled", source="settings")
        return False

    ca_bundle = os.environ.get("REQUESTS_CA_BUNDLE") or os.environ.get("SSL_CERT_FILE")
    ssl_verify = os.environ.get("SSL_VERIFY", "true").lower()

    if ca_bundle and Path(ca_bundle).exists():
        logger.debug("ssl_ca_bundle_configured", ca_bundle_path=ca_bundle)
        return ssl.create_default_context(cafile=ca_bundle)
    elif ssl_verify in ("false", "0", "no"):
        logger.warning("ssl_verification_disabled", source="environment")
        return False
    return True
