"""OpenID provider metadata discovery."""

import asyncio

import httpx
from pydantic import ValidationError

from xero_client.auth.exceptions import DiscoveryError
from xero_client.auth.models import ProviderMetadata
from xero_client.config.constants import DISCOVERY_PATH
from xero_client.core.logging import get_logger


logger = get_logger(__name__)


class ProviderMetadataResolver:
    """Fetches the issuer configuration once and caches it on the instance.

    The cache lives as long as the resolver, which is owned by a single
    client; nothing is shared between clients.
    """

    def __init__(self, issuer_url: str, http_client: httpx.AsyncClient):
        self.issuer_url = issuer_url.rstrip("/")
        self._http_client = http_client
        self._metadata: ProviderMetadata | None = None
        self._lock = asyncio.Lock()

    @property
    def discovery_url(self) -> str:
        return f"{self.issuer_url}{DISCOVERY_PATH}"

    @property
    def metadata(self) -> ProviderMetadata | None:
        """Cached metadata, None before the first successful resolve."""
        return self._metadata

    async def resolve(self, force: bool = False) -> ProviderMetadata:
        """Return the provider metadata, fetching it on first use.

        Args:
            force: Re-fetch even when a cached value exists

        Raises:
            DiscoveryError: If the issuer is unreachable or the metadata is
                malformed. A cached value is left untouched on failure.
        """
        async with self._lock:
            if self._metadata is not None and not force:
                return self._metadata

            metadata = await self._fetch()
            self._metadata = metadata
            return metadata

    async def _fetch(self) -> ProviderMetadata:
        url = self.discovery_url
        logger.debug("provider_discovery_start", url=url, category="auth")

        try:
            response = await self._http_client.get(
                url, headers={"Accept": "application/json"}
            )
        except httpx.HTTPError as e:
            logger.error(
                "provider_discovery_unreachable",
                url=url,
                error=str(e),
                error_type=type(e).__name__,
                category="auth",
            )
            raise DiscoveryError(f"Issuer {self.issuer_url} unreachable: {e}") from e

        if not response.is_success:
            logger.error(
                "provider_discovery_http_error",
                url=url,
                status_code=response.status_code,
                category="auth",
            )
            raise DiscoveryError(
                f"Discovery failed with status {response.status_code} for {url}"
            )

        try:
            metadata = ProviderMetadata.model_validate(response.json())
        except ValueError as e:
            # Covers both JSON decoding and pydantic validation failures
            reason = "invalid metadata" if isinstance(e, ValidationError) else "invalid JSON"
            logger.error(
                "provider_discovery_malformed",
                url=url,
                reason=reason,
                error=str(e),
                category="auth",
            )
            raise DiscoveryError(f"Malformed provider metadata ({reason}): {e}") from e

        if metadata.issuer.rstrip("/") != self.issuer_url:
            logger.error(
                "provider_discovery_issuer_mismatch",
                expected=self.issuer_url,
                received=metadata.issuer,
                category="auth",
            )
            raise DiscoveryError(
                f"Issuer mismatch: expected {self.issuer_url}, got {metadata.issuer}"
            )

        logger.info(
            "provider_discovery_completed",
            issuer=metadata.issuer,
            signing_alg=metadata.signing_alg,
            has_revocation_endpoint=metadata.revocation_endpoint is not None,
            category="auth",
        )
        return metadata
