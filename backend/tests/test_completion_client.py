from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from assistant_tools.completion import CompletionClient, CompletionError, chat_provider_candidates


def _provider(name: str, base_url: str = "https://llm.test/v1") -> dict:
    return {"provider": name, "base_url": base_url, "api_key": "test-key", "model": "m-large", "suggest_model": "m-small"}


def test_openai_compatible_reply_is_extracted():
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append({"url": str(request.url), "body": json.loads(request.content)})
        return httpx.Response(200, json={"choices": [{"message": {"content": " Stay hydrated. "}}]})

    client = CompletionClient(providers=[_provider("openai")], transport=httpx.MockTransport(handler))
    reply = asyncio.run(client.complete("Is water good for me?", context="User: hi"))

    assert reply == "Stay hydrated."
    assert seen[0]["url"] == "https://llm.test/v1/chat/completions"
    body = seen[0]["body"]
    assert body["model"] == "m-large"
    assert body["max_tokens"] == 500
    assert body["messages"][-1] == {"role": "user", "content": "Is water good for me?"}
    assert "User: hi" in body["messages"][0]["content"]


def test_anthropic_reply_is_extracted():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith("/messages")
        assert request.headers["x-api-key"] == "test-key"
        return httpx.Response(200, json={"content": [{"type": "text", "text": "Rest well."}]})

    client = CompletionClient(providers=[_provider("anthropic")], transport=httpx.MockTransport(handler))
    assert asyncio.run(client.complete("sleep advice")) == "Rest well."


def test_next_provider_is_tried_after_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "down.test":
            return httpx.Response(503, json={"error": {"message": "overloaded"}})
        return httpx.Response(200, json={"choices": [{"message": {"content": "Backup answer"}}]})

    client = CompletionClient(
        providers=[_provider("aimlapi", "https://down.test/v1"), _provider("openai")],
        transport=httpx.MockTransport(handler),
    )
    assert asyncio.run(client.complete("hello there")) == "Backup answer"


def test_all_providers_failing_raises_completion_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": {"message": "boom"}})

    client = CompletionClient(providers=[_provider("openai")], transport=httpx.MockTransport(handler))
    with pytest.raises(CompletionError) as excinfo:
        asyncio.run(client.complete("hello there"))
    assert "openai" in str(excinfo.value)


def test_transport_errors_raise_completion_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    client = CompletionClient(providers=[_provider("openai")], transport=httpx.MockTransport(handler))
    with pytest.raises(CompletionError):
        asyncio.run(client.complete("hello there"))


def test_no_configured_provider_raises_completion_error():
    with pytest.raises(CompletionError):
        asyncio.run(CompletionClient(providers=[]).complete("hello"))


def test_suggest_reply_uses_small_model_and_strips_quotes():
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"choices": [{"message": {"content": '"Can you tell me more?"'}}]})

    client = CompletionClient(providers=[_provider("openai")], transport=httpx.MockTransport(handler))
    suggestion = asyncio.run(client.suggest_reply("How can I help you today?"))

    assert suggestion == "Can you tell me more?"
    assert seen[0]["model"] == "m-small"
    assert seen[0]["max_tokens"] == 50


def test_provider_candidates_follow_env_preference(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-anthropic")
    monkeypatch.delenv("AIML_API_KEY", raising=False)

    monkeypatch.setenv("ASSISTANT_CHAT_PROVIDER", "auto")
    assert [candidate["provider"] for candidate in chat_provider_candidates()] == ["openai", "anthropic"]

    monkeypatch.setenv("ASSISTANT_CHAT_PROVIDER", "claude")
    assert [candidate["provider"] for candidate in chat_provider_candidates()] == ["anthropic", "openai"]
