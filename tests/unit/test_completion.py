"""OpenAI completion client: retries and JSON parsing."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.llm.completion import CompletionError, OpenAICompletion, parse_json_object


def _response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _client(side_effect):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=side_effect)
    return client


class TestOpenAICompletion:

    @pytest.mark.asyncio
    async def test_returns_content_and_requests_json(self):
        client = _client([_response('{"products": []}')])
        completion = OpenAICompletion(client, model="gpt-4o", retry_backoff_s=0)

        content = await completion.complete("prompt", system="be terse")

        assert content == '{"products": []}'
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["temperature"] == 0.0
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0] == {"role": "system", "content": "be terse"}

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        client = _client([RuntimeError("502"), _response("ok")])
        completion = OpenAICompletion(client, max_retries=2, retry_backoff_s=0)

        assert await completion.complete("prompt", response_format="text") == "ok"
        assert client.chat.completions.create.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self):
        client = _client(RuntimeError("502"))
        completion = OpenAICompletion(client, max_retries=2, retry_backoff_s=0)

        with pytest.raises(CompletionError, match="3 attempt"):
            await completion.complete("prompt")
        assert client.chat.completions.create.await_count == 3

    @pytest.mark.asyncio
    async def test_malformed_content_is_not_retried(self):
        client = _client([_response("not json at all")])
        completion = OpenAICompletion(client, retry_backoff_s=0)

        assert await completion.complete("prompt") == "not json at all"
        assert client.chat.completions.create.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_choices_yield_empty_string(self):
        client = _client([SimpleNamespace(choices=[])])
        completion = OpenAICompletion(client, retry_backoff_s=0)
        assert await completion.complete("prompt") == ""


class TestParseJsonObject:

    def test_object(self):
        assert parse_json_object('{"a": 1}') == {"a": 1}

    def test_fenced(self):
        assert parse_json_object('```json\n{"a": 1}\n```') == {"a": 1}

    @pytest.mark.parametrize("text", ["", "[1]", "nope", "42"])
    def test_not_an_object(self, text):
        assert parse_json_object(text) is None
