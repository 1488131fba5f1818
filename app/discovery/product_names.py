"""Product name extraction: fuzzy gift category -> concrete product names.

Searches the category a few different ways, then asks the completion model
to pull out product names that literally appear in those results.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List

from app.discovery.errors import UpstreamFaultError
from app.llm.completion import CompletionError, TextCompletion, parse_json_object
from app.providers.search.base import SearchHit
from app.providers.search.orchestrator import SearchOrchestrator, flatten_hits

logger = logging.getLogger(__name__)

STAGE = "product_names"
MAX_NAME_CHARS = 200

SYSTEM_PROMPT = (
    "You are an expert at extracting specific product names from search results. "
    "Respond only with valid JSON containing a products array."
)


def build_queries(category: str) -> List[str]:
    return [category, f"best {category}", f"top {category}"]


async def collect_pool(category: str, search: SearchOrchestrator, pool_size: int) -> List[SearchHit]:
    """Run the diversified queries and keep the first `pool_size` distinct URLs."""
    per_query = await asyncio.gather(*(search.fan_out_raw(q) for q in build_queries(category)))

    pool: List[SearchHit] = []
    seen = set()
    for results in per_query:
        for hit in flatten_hits(results):
            if hit.url in seen:
                continue
            seen.add(hit.url)
            pool.append(hit)
    return pool[:pool_size]


def build_prompt(category: str, pool: List[SearchHit], count: int) -> str:
    listing: List[Dict[str, Any]] = [
        {
            "index": i + 1,
            "title": hit.title,
            "url": hit.url,
            "excerpt": hit.excerpt or "",
        }
        for i, hit in enumerate(pool)
    ]
    return f"""You are helping to extract specific, real product names from search results.

Gift idea category: "{category}"

Here are search results about this category:
{json.dumps(listing, indent=2)}

Your task: Extract up to {count} SPECIFIC PRODUCT NAMES from these search results. Look for:
- Full product names with brands and titles (e.g., "The Garden-Fresh Vegetable Cookbook by Andrea Chesman")
- Actual products mentioned in titles or excerpts
- Real product names, not generic descriptions
- Include the author/brand if mentioned

IMPORTANT:
- Extract ONLY products whose names appear in the titles or excerpts above
- Do NOT make up, complete, or invent product names that are not in the text
- If fewer than {count} products are mentioned, return fewer
- Do NOT use generic terms like "Garden Cookbook" - use full specific names
- Prioritize products that appear on e-commerce sites (Amazon, retailers, etc.)

Respond with ONLY a JSON object with a "products" key containing an array of product name strings.
Example: {{"products": ["Product Name 1", "Product Name 2", "Product Name 3"]}}"""


def parse_product_names(content: str) -> List[str]:
    """Validate the completion's `products` array. Raises ValueError when unusable."""
    parsed = parse_json_object(content)
    if parsed is None:
        raise ValueError("completion was not a JSON object")
    products = parsed.get("products")
    if not isinstance(products, list):
        raise ValueError("completion had no products array")

    names: List[str] = []
    seen = set()
    for item in products:
        if not isinstance(item, str):
            continue
        name = " ".join(item.split())
        if not name or len(name) > MAX_NAME_CHARS:
            continue
        key = name.lower()
        if key in seen:
            continue
        seen.add(key)
        names.append(name)
    return names


async def extract_product_names(
    category: str,
    count: int,
    search: SearchOrchestrator,
    completion: TextCompletion,
    oversample: int = 2,
    min_pool: int = 20,
) -> List[str]:
    """Return at most `count` product names grounded in search results for `category`.

    An empty search pool returns [] without calling the completion model.
    """
    pool_size = max(count * oversample, min_pool)
    pool = await collect_pool(category, search, pool_size)
    logger.info("[ProductNames] %d pooled result(s) for %r", len(pool), category)

    if not pool:
        logger.warning("[ProductNames] No search results for %r, skipping extraction", category)
        return []

    try:
        content = await completion.complete(
            build_prompt(category, pool, count),
            response_format="json",
            temperature=0.0,
            system=SYSTEM_PROMPT,
        )
    except CompletionError as exc:
        raise UpstreamFaultError(STAGE, f"Product name extraction failed: {exc}") from exc

    try:
        names = parse_product_names(content)
    except ValueError as exc:
        logger.error("[ProductNames] Unusable completion for %r: %s", category, exc)
        raise UpstreamFaultError(STAGE, f"Product name extraction returned malformed output: {exc}") from exc

    logger.info("[ProductNames] Extracted %d name(s) for %r: %s", len(names), category, names)
    return names[:count]
