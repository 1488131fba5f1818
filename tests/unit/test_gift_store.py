"""Supabase gift store against a mocked query builder."""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from app.db.gift_store import ProductContext, SupabaseGiftStore, product_to_row
from app.discovery.errors import PersistenceError
from app.providers.metadata.base import Price, ProductRecord


def _client(data=None, error=None):
    client = MagicMock()
    query = client.table.return_value
    # every builder method returns the same chain
    for method in ("select", "eq", "limit", "insert"):
        getattr(query, method).return_value = query
    if error is not None:
        query.execute.side_effect = error
    else:
        query.execute.return_value = SimpleNamespace(data=data)
    return client, query


class TestProductToRow:

    def test_mapping(self):
        record = ProductRecord(
            name="Theragun Mini",
            price=Price(amount=Decimal("199.00"), currency="USD"),
            image_urls=["https://img.example.com/1.jpg"],
            description="Massager",
            product_url="https://shop.example.com/a",
        )
        context = ProductContext(user_id="user-1", general_gift_idea_id="idea-1", person_id="person-1")

        row = product_to_row(record, "parallel_web", context)

        assert row["user_id"] == "user-1"
        assert row["general_gift_idea_id"] == "idea-1"
        assert row["person_id"] == "person-1"
        assert row["event_id"] is None
        assert row["url"] == "https://shop.example.com/a"
        assert row["price_amount"] == 199.0
        assert row["price_currency"] == "USD"
        assert row["source_provider"] == "parallel_web"
        assert row["creation_method"] == "ai_generated"

    def test_missing_price_and_images(self):
        record = ProductRecord(product_url="https://shop.example.com/a")
        row = product_to_row(record, "exa_contents", ProductContext(user_id="u", general_gift_idea_id="g"))
        assert row["price_amount"] is None
        assert row["image_urls"] is None


class TestSupabaseGiftStore:

    @pytest.mark.asyncio
    async def test_fetch_category_filters_by_owner(self):
        client, query = _client(data=[{"id": "idea-1", "user_id": "user-1", "idea_text": "fitness gear"}])
        category = await SupabaseGiftStore(client).fetch_category("idea-1", "user-1")

        client.table.assert_called_with("general_gift_ideas")
        query.eq.assert_any_call("id", "idea-1")
        query.eq.assert_any_call("user_id", "user-1")
        assert category.idea_text == "fitness gear"

    @pytest.mark.asyncio
    async def test_fetch_category_missing(self):
        client, _ = _client(data=[])
        assert await SupabaseGiftStore(client).fetch_category("idea-1", "user-2") is None

    @pytest.mark.asyncio
    async def test_insert_products(self):
        rows = [{"name": "A"}, {"name": "B"}]
        client, query = _client(data=[{"id": "p1", "name": "A"}, {"id": "p2", "name": "B"}])

        inserted = await SupabaseGiftStore(client).insert_products(rows)

        client.table.assert_called_with("specific_gift_ideas")
        query.insert.assert_called_once_with(rows)
        assert [r["id"] for r in inserted] == ["p1", "p2"]

    @pytest.mark.asyncio
    async def test_insert_nothing(self):
        client, _ = _client()
        assert await SupabaseGiftStore(client).insert_products([]) == []
        client.table.assert_not_called()

    @pytest.mark.asyncio
    async def test_insert_failure_raises_persistence_error(self):
        client, _ = _client(error=RuntimeError("connection reset"))
        with pytest.raises(PersistenceError, match="connection reset"):
            await SupabaseGiftStore(client).insert_products([{"name": "A"}])

    @pytest.mark.asyncio
    async def test_short_insert_raises(self):
        client, _ = _client(data=[{"id": "p1"}])
        with pytest.raises(PersistenceError, match="1 of 2"):
            await SupabaseGiftStore(client).insert_products([{"name": "A"}, {"name": "B"}])

    @pytest.mark.asyncio
    async def test_device_tokens(self):
        client, _ = _client(data=[
            {"device_token": "t1", "is_sandbox": False},
            {"device_token": "t2", "is_sandbox": None},
            {"device_token": "", "is_sandbox": True},
        ])
        tokens = await SupabaseGiftStore(client).fetch_device_tokens("user-1")
        assert [(t.device_token, t.is_sandbox) for t in tokens] == [("t1", False), ("t2", True)]
