"""URL selection: rank pooled search hits for purchase-worthiness.

Most search hits are reviews or listicles, so the completion model picks the
indices of direct e-commerce product pages. A response that cannot be parsed
(or a completion that fails) falls back to the first N hits in input order.
"""

import json
import logging
from typing import Any, List, Optional

from app.llm.completion import CompletionError, TextCompletion, parse_json_object
from app.providers.search.base import SearchHit

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are an expert at identifying e-commerce purchase URLs. Respond only with valid JSON."


def build_prompt(hits: List[SearchHit], top_n: int, category: Optional[str] = None) -> str:
    listing = [
        {
            "index": i + 1,
            "productName": hit.product_name,
            "title": hit.title,
            "url": hit.url,
        }
        for i, hit in enumerate(hits)
    ]
    context = f'Original gift idea: "{category}"\n\n' if category else ""
    return f"""You are helping to identify the best URLs where a user can PURCHASE specific products online.

{context}Here are {len(hits)} search results for specific products:
{json.dumps(listing, indent=2)}

Your task: Select the {top_n} BEST URLs where someone can actually purchase these products. Look for:
- Direct product pages on e-commerce sites (Amazon, BestBuy, Target, Walmart, etc.)
- Official manufacturer stores
- Reputable online retailers
- Favor .com links over international domains
- Try to select diverse products (different URLs for different product names)

AVOID:
- Review sites
- Comparison sites
- News articles and editorial content
- General information pages
- Wholesale/bulk sites

Respond with ONLY a JSON object with an "indices" key containing an array of index numbers (e.g., {{"indices": [1, 5, 8, 12]}}). Select exactly {top_n} items."""


def parse_indices(content: str) -> Optional[List[int]]:
    """1-based indices from the completion, or None when the response is unusable."""
    parsed = parse_json_object(content)
    if parsed is None:
        return None
    raw: Any = parsed.get("indices")
    if raw is None:
        raw = parsed.get("selected")
    if not isinstance(raw, list):
        return None

    indices = []
    for value in raw:
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            indices.append(value)
        elif isinstance(value, str) and value.strip().isdigit():
            indices.append(int(value.strip()))
    return indices


def pick_hits(hits: List[SearchHit], indices: List[int], top_n: int) -> List[SearchHit]:
    """Map indices to hits: out-of-range dropped, duplicate URLs dropped, at most top_n."""
    selected: List[SearchHit] = []
    seen_urls = set()
    for idx in indices:
        if idx < 1 or idx > len(hits):
            continue
        hit = hits[idx - 1]
        if hit.url in seen_urls:
            continue
        seen_urls.add(hit.url)
        selected.append(hit)
        if len(selected) == top_n:
            break
    return selected


async def select_purchase_urls(
    hits: List[SearchHit],
    count: int,
    completion: TextCompletion,
    category: Optional[str] = None,
) -> List[SearchHit]:
    """Choose up to `count` purchase pages from `hits`."""
    if not hits or count <= 0:
        return []
    top_n = min(count, len(hits))

    try:
        content = await completion.complete(
            build_prompt(hits, top_n, category),
            response_format="json",
            temperature=0.0,
            system=SYSTEM_PROMPT,
        )
        indices = parse_indices(content)
    except CompletionError as exc:
        logger.error("[UrlSelection] Completion failed: %s", exc)
        indices = None

    if indices is None:
        logger.warning("[UrlSelection] Unusable ranking response, falling back to first %d hit(s)", top_n)
        return hits[:top_n]

    selected = pick_hits(hits, indices, top_n)
    logger.info("[UrlSelection] Selected %d of %d hit(s)", len(selected), len(hits))
    return selected
