"""Persistence collaborator for discovery: categories in, products out.

Backed by Supabase tables:
  general_gift_ideas: the categories users create (id, user_id, idea_text)
  specific_gift_ideas: discovered products
  device_tokens: push targets for the products-ready notification

supabase-py is synchronous, so every call runs in a worker thread.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from supabase import Client

from app.discovery.errors import PersistenceError
from app.providers.base import run_sync
from app.providers.metadata.base import ProductRecord

logger = logging.getLogger(__name__)

CATEGORY_TABLE = "general_gift_ideas"
PRODUCT_TABLE = "specific_gift_ideas"
DEVICE_TOKEN_TABLE = "device_tokens"


class GiftCategory(BaseModel):
    id: str
    user_id: str
    idea_text: str


class DeviceToken(BaseModel):
    device_token: str
    is_sandbox: bool = True


class ProductContext(BaseModel):
    """Who and what a discovered product belongs to."""
    user_id: str
    general_gift_idea_id: str
    person_id: Optional[str] = None
    event_id: Optional[str] = None


def product_to_row(record: ProductRecord, source_provider: str, context: ProductContext) -> Dict[str, Any]:
    return {
        "user_id": context.user_id,
        "person_id": context.person_id,
        "event_id": context.event_id,
        "general_gift_idea_id": context.general_gift_idea_id,
        "name": record.name,
        "description": record.description,
        "url": record.product_url,
        "price_amount": float(record.price.amount) if record.price.amount is not None else None,
        "price_currency": record.price.currency,
        "image_urls": record.image_urls or None,
        "source_provider": source_provider,
        "creation_method": "ai_generated",
        "enrichment_status": "completed",
    }


class GiftStore(ABC):

    @abstractmethod
    async def fetch_category(self, category_id: str, owner_id: str) -> Optional[GiftCategory]:
        """The category if it exists and belongs to `owner_id`, else None."""
        ...

    @abstractmethod
    async def insert_products(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Insert all rows in one batch. Raises PersistenceError; never partially succeeds silently."""
        ...

    @abstractmethod
    async def fetch_device_tokens(self, owner_id: str) -> List[DeviceToken]:
        ...


class SupabaseGiftStore(GiftStore):

    def __init__(self, client: Client):
        self._client = client

    async def fetch_category(self, category_id: str, owner_id: str) -> Optional[GiftCategory]:
        def _query():
            return (
                self._client.table(CATEGORY_TABLE)
                .select("id, user_id, idea_text")
                .eq("id", category_id)
                .eq("user_id", owner_id)
                .limit(1)
                .execute()
            )

        response = await run_sync(_query)
        if not response.data:
            return None
        return GiftCategory(**response.data[0])

    async def insert_products(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not rows:
            return []

        def _insert():
            return self._client.table(PRODUCT_TABLE).insert(rows).execute()

        try:
            response = await run_sync(_insert)
        except Exception as e:
            logger.error("Insert into %s failed: %s", PRODUCT_TABLE, e)
            raise PersistenceError(f"Failed to save products: {e}") from e

        inserted = response.data or []
        if len(inserted) != len(rows):
            raise PersistenceError(
                f"Failed to save products: inserted {len(inserted)} of {len(rows)} row(s)"
            )
        return inserted

    async def fetch_device_tokens(self, owner_id: str) -> List[DeviceToken]:
        def _query():
            return (
                self._client.table(DEVICE_TOKEN_TABLE)
                .select("device_token, is_sandbox")
                .eq("user_id", owner_id)
                .execute()
            )

        response = await run_sync(_query)
        return [
            DeviceToken(device_token=row["device_token"], is_sandbox=row.get("is_sandbox") is not False)
            for row in (response.data or [])
            if row.get("device_token")
        ]
