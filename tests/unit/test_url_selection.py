"""URL selection: ranked picks with a first-N fallback."""

import pytest

from app.discovery.url_selection import parse_indices, pick_hits, select_purchase_urls
from app.llm.completion import CompletionError
from app.providers.search.base import SearchHit
from conftest import FakeCompletion


def _hits(n: int):
    return [SearchHit(title=f"Hit {i}", url=f"https://shop.example.com/{i}", product_name=f"P{i}") for i in range(1, n + 1)]


class TestParseIndices:

    def test_indices_key(self):
        assert parse_indices('{"indices": [3, 1]}') == [3, 1]

    def test_selected_key_and_digit_strings(self):
        assert parse_indices('{"selected": ["2", 4, "x", true]}') == [2, 4]

    @pytest.mark.parametrize("content", ["", "nope", "[1, 2]", '{"indices": "1,2"}', '{"other": [1]}'])
    def test_unusable(self, content):
        assert parse_indices(content) is None


class TestPickHits:

    def test_one_based_and_in_order_of_indices(self):
        hits = _hits(5)
        assert [h.url for h in pick_hits(hits, [3, 1], 5)] == [
            "https://shop.example.com/3",
            "https://shop.example.com/1",
        ]

    def test_out_of_range_discarded(self):
        hits = _hits(3)
        assert [h.url for h in pick_hits(hits, [0, 4, 99, -1, 2], 3)] == ["https://shop.example.com/2"]

    def test_duplicate_urls_dropped(self):
        hits = _hits(2) + [SearchHit(title="Again", url="https://shop.example.com/1")]
        assert len(pick_hits(hits, [1, 3, 2], 3)) == 2

    def test_capped_at_top_n(self):
        assert len(pick_hits(_hits(6), [1, 2, 3, 4, 5, 6], 2)) == 2


class TestSelectPurchaseUrls:

    @pytest.mark.asyncio
    async def test_ranked_selection(self):
        completion = FakeCompletion(['{"indices": [4, 2]}'])
        selected = await select_purchase_urls(_hits(5), 2, completion, "fitness gear")
        assert [h.url for h in selected] == ["https://shop.example.com/4", "https://shop.example.com/2"]
        assert '"fitness gear"' in completion.prompts[0]

    @pytest.mark.asyncio
    async def test_malformed_response_falls_back_to_first_n(self):
        completion = FakeCompletion(["I picked 1 and 2"])
        selected = await select_purchase_urls(_hits(5), 3, completion)
        assert [h.url for h in selected] == [f"https://shop.example.com/{i}" for i in (1, 2, 3)]

    @pytest.mark.asyncio
    async def test_completion_failure_falls_back_to_first_n(self):
        completion = FakeCompletion([CompletionError("timeout")])
        selected = await select_purchase_urls(_hits(2), 3, completion)
        assert len(selected) == 2

    @pytest.mark.asyncio
    async def test_all_indices_out_of_range(self):
        completion = FakeCompletion(['{"indices": [10, 11]}'])
        assert await select_purchase_urls(_hits(3), 2, completion) == []

    @pytest.mark.asyncio
    async def test_never_more_than_requested(self):
        completion = FakeCompletion(['{"indices": [1, 2, 3, 4, 5]}'])
        selected = await select_purchase_urls(_hits(5), 2, completion)
        assert len(selected) == 2

    @pytest.mark.asyncio
    async def test_empty_input_skips_completion(self):
        completion = FakeCompletion(['{"indices": [1]}'])
        assert await select_purchase_urls([], 3, completion) == []
        assert completion.calls == 0
