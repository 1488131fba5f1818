"""Parallel Web search backend."""

import logging
from typing import List, Optional

from parallel import AsyncParallel

from app.providers.search.base import SearchHit, SearchProvider, SearchProviderName

logger = logging.getLogger(__name__)

# Excerpts are forwarded to the name-extraction prompt; keep them bounded
MAX_CHARS_PER_RESULT = 5000
MAX_EXCERPT_CHARS = 1500


class ParallelWebSearchProvider(SearchProvider):
    name = SearchProviderName.PARALLEL_WEB

    def __init__(self, client: AsyncParallel, max_results: int = 10, timeout_s: Optional[float] = None):
        super().__init__(max_results=max_results, timeout_s=timeout_s)
        self._client = client

    async def _run_query(self, query: str, product_name: Optional[str] = None) -> List[SearchHit]:
        if product_name:
            objective = f"Find online stores selling {product_name}"
            queries = [query, product_name]
        else:
            objective = f"Find specific real products for {query}"
            queries = [query]

        logger.info("[parallel_web] Searching: %s", queries)
        search = await self._client.beta.search(
            objective=objective,
            search_queries=queries,
            max_results=self.max_results,
            max_chars_per_result=MAX_CHARS_PER_RESULT,
        )

        results = getattr(search, "results", None) or []
        logger.debug("[parallel_web] %d result(s) for %s", len(results), queries)
        if not results:
            logger.warning("[parallel_web] No results returned for %s", queries)
            return []

        hits = []
        for result in results:
            excerpts = getattr(result, "excerpts", None) or []
            hits.append(SearchHit(
                title=getattr(result, "title", None) or "Unknown",
                url=result.url,
                excerpt=" ".join(excerpts)[:MAX_EXCERPT_CHARS] or None,
            ))
        return hits
