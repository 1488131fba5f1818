"""Amazon product metadata via the Apify `junglee/amazon-crawler` actor.

Only works for Amazon product URLs; `accepts()` tells the orchestrator which
URLs to route here.
"""

import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from apify_client import ApifyClientAsync

from app.providers.metadata.base import (
    MetadataProvider,
    MetadataProviderName,
    Price,
    ProductRecord,
    UNKNOWN_PRODUCT_NAME,
)
from app.providers.metadata.pricing import format_price, normalize_currency, parse_price_text, to_decimal

logger = logging.getLogger(__name__)

ACTOR_ID = "junglee/amazon-crawler"

_AMAZON_HOST_RE = re.compile(r"(^|\.)amazon\.[a-z]{2,3}(\.[a-z]{2})?$")


def is_amazon_url(url: str) -> bool:
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        return False
    return bool(_AMAZON_HOST_RE.search(host))


class ApifyAmazonMetadataProvider(MetadataProvider):
    name = MetadataProviderName.APIFY_AMAZON
    restricted = True

    def __init__(self, client: ApifyClientAsync, timeout_s: Optional[float] = None):
        super().__init__(timeout_s=timeout_s)
        self._client = client

    def accepts(self, url: str) -> bool:
        return is_amazon_url(url)

    async def _extract(self, url: str) -> ProductRecord:
        logger.info("[apify_amazon] Extracting metadata from: %s", url)
        if not self.accepts(url):
            raise ValueError("Not an Amazon URL")

        run_input = {
            "categoryOrProductUrls": [{"url": url}],
            "maxItemsPerStartUrl": 1,
            "proxyCountry": "AUTO_SELECT_PROXY_COUNTRY",
            "maxSearchPagesPerStartUrl": 1,
            "maxOffers": 0,
            "locationDeliverableRoutes": ["PRODUCT"],
        }
        run = await self._client.actor(ACTOR_ID).call(run_input=run_input)
        if not run:
            raise RuntimeError("Apify actor run did not return")

        page = await self._client.dataset(run["defaultDatasetId"]).list_items()
        if not page.items:
            raise ValueError("No product data retrieved from Apify")

        return item_to_record(page.items[0], url)


def item_to_record(item: Dict[str, Any], url: str) -> ProductRecord:
    """Map one amazon-crawler dataset item to a ProductRecord."""
    return ProductRecord(
        name=str(item.get("title") or item.get("name") or UNKNOWN_PRODUCT_NAME),
        price=_parse_price(item),
        image_urls=_collect_images(item),
        description=str(
            item.get("description")
            or item.get("productDescription")
            or item.get("bookDescription")
            or ""
        ),
        product_url=str(item.get("url") or url),
        availability=_parse_availability(item),
        brand=str(item["brand"]) if item.get("brand") else None,
        rating=_as_float(item.get("stars")),
        review_count=_as_int(item.get("reviewsCount")),
        provider_product_id=item.get("asin") or item.get("originalAsin"),
    )


def _parse_price(item: Dict[str, Any]) -> Price:
    price = item.get("price")
    if isinstance(price, dict):
        amount = to_decimal(price.get("value"))
        currency = normalize_currency(price.get("currency"))
        if currency is None and isinstance(price.get("currency"), str):
            # The actor sometimes reports a symbol ("$") instead of a code
            currency = parse_price_text(price["currency"]).currency
        return Price(amount=amount, currency=currency, formatted=format_price(amount, currency))
    if price:
        return parse_price_text(price)
    if item.get("currentPrice"):
        return parse_price_text(item["currentPrice"])
    return Price()


def _collect_images(item: Dict[str, Any]) -> List[str]:
    images: List[str] = []
    if isinstance(item.get("highResolutionImages"), list):
        images.extend(str(u) for u in item["highResolutionImages"] if u)
    elif isinstance(item.get("images"), list):
        images.extend(str(u) for u in item["images"] if u)

    thumbnail = item.get("thumbnailImage") or item.get("image") or item.get("imageUrl")
    if thumbnail and str(thumbnail) not in images:
        images.insert(0, str(thumbnail))
    return images


def _parse_availability(item: Dict[str, Any]) -> Optional[str]:
    in_stock_text = item.get("inStockText")
    if isinstance(in_stock_text, str) and in_stock_text.strip():
        return in_stock_text.strip()
    if item.get("inStock") is not None:
        return "In Stock" if item["inStock"] else "Out of Stock"
    if item.get("availability"):
        return str(item["availability"])
    return None


def _as_float(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None
