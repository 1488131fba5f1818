"""Search backend that asks a chat model for shopping URLs."""

import json
import logging
from typing import Any, List, Optional

from openai import AsyncOpenAI

from app.providers.search.base import SearchHit, SearchProvider, SearchProviderName

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You are a helpful assistant that finds online shopping URLs for products. "
    'Return results as a JSON object with a "results" key containing an array '
    "of objects with title and url fields."
)


class OpenAIWebSearchProvider(SearchProvider):
    name = SearchProviderName.OPENAI_WEB_SEARCH

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-4o",
        max_results: int = 10,
        timeout_s: Optional[float] = None,
    ):
        super().__init__(max_results=max_results, timeout_s=timeout_s)
        self._client = client
        self._model = model

    async def _run_query(self, query: str, product_name: Optional[str] = None) -> List[SearchHit]:
        logger.info("[openai_web_search] Searching: %s", query)
        subject = f'where I can buy "{product_name}"' if product_name else f'for "{query}"'
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": _SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": (
                        f"Find {self.max_results} reliable online shopping URLs {subject}. "
                        "Include major retailers and official stores. "
                        'Return as JSON: {"results": [{"title": "...", "url": "..."}]}'
                    ),
                },
            ],
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content if response.choices else None
        if not content:
            return []
        return parse_result_list(content)


def parse_result_list(content: str) -> List[SearchHit]:
    """Parse the loosely structured JSON a chat model returns for a URL list."""
    try:
        parsed: Any = json.loads(content)
    except json.JSONDecodeError as exc:
        logger.error("[openai_web_search] Could not parse results: %s", exc)
        return []

    items = parsed
    if isinstance(parsed, dict):
        items = parsed.get("results") or parsed.get("urls") or []
    if not isinstance(items, list):
        return []

    hits = []
    for item in items:
        if not isinstance(item, dict):
            continue
        url = item.get("url") or item.get("link")
        if not url:
            continue
        hits.append(SearchHit(
            title=item.get("title") or item.get("name") or "Unknown",
            url=url,
            published_date=item.get("publishedDate"),
            author=item.get("author"),
        ))
    return hits
