"""Parallel Web task-run metadata backend.

Creates a structured-output task for the URL and polls for its result.
General purpose: accepts any URL.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from parallel import AsyncParallel

from app.providers.metadata.base import (
    MetadataProvider,
    MetadataProviderName,
    Price,
    ProductRecord,
    UNKNOWN_PRODUCT_NAME,
)
from app.providers.metadata.pricing import format_price, normalize_currency, to_decimal

logger = logging.getLogger(__name__)

INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "product_url": {
            "type": "string",
            "description": "The URL of the product to retrieve structured metadata for",
        },
    },
    "required": ["product_url"],
}

OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "title": {
            "type": "string",
            "description": "The full, official title of the product",
        },
        "description": {
            "type": "string",
            "description": "A comprehensive description of the product",
        },
        "price_amount": {
            "type": "number",
            "description": "The numeric price amount (e.g., 29.99)",
        },
        "price_currency": {
            "type": "string",
            "description": "The ISO 4217 currency code (e.g., USD, EUR, GBP)",
        },
        "image_urls": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Array of product image URLs, with the primary/best image first",
        },
    },
    "required": ["title", "description", "price_amount", "price_currency", "image_urls"],
    "additionalProperties": False,
}


class ParallelWebMetadataProvider(MetadataProvider):
    name = MetadataProviderName.PARALLEL_WEB

    def __init__(
        self,
        client: AsyncParallel,
        processor: str = "lite",
        poll_timeout_s: int = 25,
        max_polls: int = 144,
        poll_interval_s: float = 1.0,
        timeout_s: Optional[float] = None,
    ):
        super().__init__(timeout_s=timeout_s)
        self._client = client
        self._processor = processor
        self._poll_timeout_s = poll_timeout_s
        self._max_polls = max_polls
        self._poll_interval_s = poll_interval_s

    async def _extract(self, url: str) -> ProductRecord:
        logger.info("[parallel_web] Extracting metadata from: %s", url)
        task_run = await self._client.task_run.create(
            input={"product_url": url},
            processor=self._processor,
            task_spec={
                "input_schema": {"type": "json", "json_schema": INPUT_SCHEMA},
                "output_schema": {"type": "json", "json_schema": OUTPUT_SCHEMA},
            },
        )
        run_result = await self._wait_for_result(task_run.run_id)
        return output_to_record(run_result.output.content, url)

    async def _wait_for_result(self, run_id: str) -> Any:
        for attempt in range(1, self._max_polls + 1):
            try:
                return await self._client.task_run.result(run_id, api_timeout=self._poll_timeout_s)
            except Exception as exc:
                if attempt == self._max_polls:
                    raise
                logger.debug("[parallel_web] Run %s not ready (attempt %d): %s", run_id, attempt, exc)
                await asyncio.sleep(self._poll_interval_s)
        raise RuntimeError("Failed to get task run result after retries")


def output_to_record(content: Any, url: str) -> ProductRecord:
    """Map the task's structured output to a ProductRecord."""
    if not isinstance(content, dict):
        raise ValueError("Task run returned no structured output")
    output: Dict[str, Any] = content

    amount = to_decimal(output.get("price_amount"))
    currency = normalize_currency(output.get("price_currency"))
    images: List[str] = [str(u) for u in (output.get("image_urls") or []) if u]

    return ProductRecord(
        name=output.get("title") or UNKNOWN_PRODUCT_NAME,
        price=Price(amount=amount, currency=currency, formatted=format_price(amount, currency)),
        image_urls=images,
        description=output.get("description") or "",
        product_url=url,
    )
