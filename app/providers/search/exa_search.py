"""Exa neural search backend."""

import logging
from typing import List, Optional

from exa_py import Exa

from app.providers.base import run_sync
from app.providers.search.base import SearchHit, SearchProvider, SearchProviderName

logger = logging.getLogger(__name__)


class ExaSearchProvider(SearchProvider):
    name = SearchProviderName.EXA

    def __init__(self, client: Exa, max_results: int = 10, timeout_s: Optional[float] = None):
        super().__init__(max_results=max_results, timeout_s=timeout_s)
        self._client = client

    async def _run_query(self, query: str, product_name: Optional[str] = None) -> List[SearchHit]:
        logger.info("[exa] Searching: %s", query)
        response = await run_sync(
            self._client.search, query, num_results=self.max_results, type="auto"
        )
        return [
            SearchHit(
                title=getattr(result, "title", None) or "Unknown",
                url=result.url,
                published_date=getattr(result, "published_date", None),
                author=getattr(result, "author", None),
            )
            for result in (response.results or [])
        ]
