"""Metadata extraction orchestrator.

Two mutually exclusive modes:

- routed (production): exactly one provider per URL. The first restricted
  provider whose `accepts()` matches wins; otherwise the default provider
  runs. A failure yields one error record for that provider; there is no
  automatic fail-over to another provider.
- fan-out (evaluation): every configured provider runs on the URL
  concurrently, ignoring `accepts()`, and every result is returned.

Exceptions never leave this module: each (URL, provider) unit is wrapped.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from app.providers.base import ProviderResult, describe_error
from app.providers.metadata.base import (
    MetadataProvider,
    MetadataProviderName,
    ProductRecord,
    error_record,
)

logger = logging.getLogger(__name__)

MetadataResult = ProviderResult[ProductRecord]

NO_PROVIDER_SOURCE = "none"


class MetadataOrchestrator:

    def __init__(
        self,
        providers: Sequence[MetadataProvider],
        use_url_routing: bool = True,
        default_provider: Optional[MetadataProviderName] = None,
    ):
        self._providers = list(providers)
        self.use_url_routing = use_url_routing
        self._default = self._resolve_default(default_provider)
        if not self._providers:
            logger.warning("MetadataOrchestrator built with no providers")

    @property
    def providers(self) -> List[MetadataProvider]:
        return list(self._providers)

    @property
    def default_provider(self) -> Optional[MetadataProvider]:
        return self._default

    def _resolve_default(self, name: Optional[MetadataProviderName]) -> Optional[MetadataProvider]:
        general = [p for p in self._providers if not p.restricted]
        if name is not None:
            for provider in general:
                if provider.name == name:
                    return provider
            logger.warning("Default metadata provider %s is not configured", name.value)
        return general[0] if general else None

    def select_provider(self, url: str) -> Optional[MetadataProvider]:
        """Routed-mode choice for `url`. Deterministic for a fixed provider set."""
        for provider in self._providers:
            if provider.restricted and provider.accepts(url):
                return provider
        return self._default

    async def extract(self, url: str) -> List[MetadataResult]:
        """Extract metadata for one URL in the configured mode."""
        if self.use_url_routing:
            provider = self.select_provider(url)
            if provider is None:
                message = "No metadata provider accepts this URL"
                logger.error("%s: %s", message, url)
                return [MetadataResult(source=NO_PROVIDER_SOURCE, data=error_record(url, message), error=message)]
            return [await self._extract_one(provider, url)]

        return list(await asyncio.gather(*(self._extract_one(p, url) for p in self._providers)))

    async def extract_many(self, urls: Sequence[str]) -> List[List[MetadataResult]]:
        """Extract every URL concurrently; one URL's failure never affects another."""
        return list(await asyncio.gather(*(self.extract(url) for url in urls)))

    async def _extract_one(self, provider: MetadataProvider, url: str) -> MetadataResult:
        source = provider.name.value
        try:
            record = await provider.extract_metadata(url)
            return MetadataResult(source=source, data=record)
        except Exception as exc:
            message = describe_error(exc)
            logger.error("[%s] Metadata extraction failed for %s: %s", source, url, message)
            return MetadataResult(source=source, data=error_record(url, message), error=message)
