"""Search fan-out: one query, every configured provider, concurrently.

Each provider's failure is caught and recorded on its own ProviderResult so
one slow or broken backend never poisons the others. There is no overall
deadline here; every provider carries its own.
"""

import asyncio
import logging
from typing import List, Sequence

from app.providers.base import ProviderResult, describe_error
from app.providers.search.base import SearchHit, SearchProvider

logger = logging.getLogger(__name__)

SearchResult = ProviderResult[List[SearchHit]]


class SearchOrchestrator:
    """Runs a query against a fixed set of search providers."""

    def __init__(self, providers: Sequence[SearchProvider]):
        self._providers = list(providers)
        if not self._providers:
            logger.warning("SearchOrchestrator built with no providers")

    @property
    def providers(self) -> List[SearchProvider]:
        return list(self._providers)

    async def fan_out(self, product_name: str) -> List[SearchResult]:
        """Purchase-oriented search for a product name, one entry per provider."""
        return await asyncio.gather(
            *(self._search_one(p, product_name, raw=False) for p in self._providers)
        )

    async def fan_out_raw(self, query: str) -> List[SearchResult]:
        """Same as fan_out() but the query is passed through unchanged."""
        return await asyncio.gather(
            *(self._search_one(p, query, raw=True) for p in self._providers)
        )

    async def _search_one(self, provider: SearchProvider, text: str, raw: bool) -> SearchResult:
        source = provider.name.value
        try:
            hits = await (provider.query(text) if raw else provider.search(text))
            return SearchResult(source=source, data=list(hits))
        except Exception as exc:
            logger.error("[%s] Search failed for %r: %s", source, text, describe_error(exc))
            return SearchResult(source=source, data=[], error=describe_error(exc))


def flatten_hits(results: Sequence[SearchResult]) -> List[SearchHit]:
    """All hits from all providers, in provider order."""
    hits: List[SearchHit] = []
    for result in results:
        hits.extend(result.data)
    return hits
