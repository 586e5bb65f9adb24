import json

import httpx
import pytest

from hearth.core.errors import BackendUnavailable
from hearth.services.llm import OllamaBackend, estimate_messages_tokens, estimate_tokens


def make_backend(handler) -> OllamaBackend:
    return OllamaBackend(
        host="http://ollama.test:11434/",
        model="tinyllama",
        context_length=2048,
        temperature=0.2,
        transport=httpx.MockTransport(handler),
    )


async def test_complete_posts_chat_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"message": {"role": "assistant", "content": "Hi!"}})

    backend = make_backend(handler)
    messages = [{"role": "user", "content": "hello"}]
    assert await backend.complete(messages, keep_alive=-1) == "Hi!"
    await backend.close()

    assert seen["url"] == "http://ollama.test:11434/api/chat"
    assert seen["body"] == {
        "model": "tinyllama",
        "messages": messages,
        "stream": False,
        "keep_alive": -1,
        "options": {"temperature": 0.2, "num_ctx": 2048},
    }


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="model not found"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"done": True}),
    ],
)
async def test_bad_responses_raise(response):
    backend = make_backend(lambda request: response)
    with pytest.raises(BackendUnavailable):
        await backend.complete([{"role": "user", "content": "x"}])
    await backend.close()


async def test_connection_errors_raise():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    backend = make_backend(handler)
    with pytest.raises(BackendUnavailable):
        await backend.complete([{"role": "user", "content": "x"}])
    await backend.close()


async def test_timeouts_raise():
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    backend = make_backend(handler)
    with pytest.raises(BackendUnavailable) as exc:
        await backend.complete([{"role": "user", "content": "x"}])
    assert "timed out" in str(exc.value)
    await backend.close()


async def test_warm_up_never_raises():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503)

    backend = make_backend(handler)
    assert await backend.warm_up(keep_alive=-1) is False
    assert len(calls) == 1
    await backend.close()


def test_token_estimates():
    assert estimate_tokens("") == 1
    assert estimate_tokens("a" * 40) == 10
    assert estimate_messages_tokens([{"role": "user", "content": "a" * 40}]) > 10
