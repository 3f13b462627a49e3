"""Tests for the relay endpoint."""

import gzip
import json

import httpx
import pytest
from httpx import AsyncClient

from conftest import sse
from cortex_code.relay.gemini import GeminiClient

CHAT_BODY = {
    "history": [
        {"role": "user", "parts": [{"text": "What is a closure?"}]},
        {"role": "model", "parts": [{"text": "A function plus its environment."}]},
    ],
    "message": "Show me one in Python",
    "instructions": "Answer tersely.",
    "images": [
        {"mimeType": "image/png", "data": "iVBORw0KGgo="},
        {"mimeType": "image/jpeg", "data": "/9j/4AAQ"},
    ],
}


@pytest.mark.asyncio
async def test_stream_is_relayed_verbatim(client: AsyncClient, upstream) -> None:
    """A 2xx upstream stream reaches the caller byte for byte with SSE headers."""
    stream = sse("Hel", "lo") + b"data: not json\r\n\r\n"
    upstream(lambda request: httpx.Response(200, content=stream))

    response = await client.post("/api/generate", json=CHAT_BODY)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    assert response.headers["connection"] == "keep-alive"
    assert response.content == stream


@pytest.mark.asyncio
async def test_compressed_upstream_is_decoded(client: AsyncClient, upstream) -> None:
    """A gzip-encoded upstream stream reaches the caller as plain SSE."""
    plain = sse("Hel", "lo")
    upstream(
        lambda request: httpx.Response(
            200, content=gzip.compress(plain), headers={"content-encoding": "gzip"}
        )
    )

    response = await client.post("/api/generate", json=CHAT_BODY)

    assert response.status_code == 200
    assert "content-encoding" not in response.headers
    assert response.content == plain


@pytest.mark.asyncio
async def test_upstream_request_composition(client: AsyncClient, upstream) -> None:
    """Images come first, the text part last, after the verbatim history."""
    seen = upstream(lambda request: httpx.Response(200, content=sse("ok")))

    await client.post("/api/generate", json=CHAT_BODY)

    assert len(seen) == 1
    request = seen[0]
    assert request.url.path == "/v1beta/models/gemini-test:streamGenerateContent"
    assert request.url.params["key"] == "test-key"
    assert request.url.params["alt"] == "sse"

    payload = json.loads(request.content)
    assert payload["contents"][:2] == CHAT_BODY["history"]
    assert payload["contents"][2] == {
        "role": "user",
        "parts": [
            {"inline_data": {"mime_type": "image/png", "data": "iVBORw0KGgo="}},
            {"inline_data": {"mime_type": "image/jpeg", "data": "/9j/4AAQ"}},
            {"text": "Show me one in Python"},
        ],
    }
    system_text = payload["system_instruction"]["parts"][0]["text"]
    assert system_text.startswith("You are Cortex Code")
    assert system_text.endswith(" Answer tersely.")
    assert {s["threshold"] for s in payload["safetySettings"]} == {"BLOCK_NONE"}
    assert len(payload["safetySettings"]) == 4


@pytest.mark.asyncio
async def test_text_part_always_present(client: AsyncClient, upstream) -> None:
    """An image-only turn still ends with an empty text part."""
    seen = upstream(lambda request: httpx.Response(200, content=sse("ok")))

    await client.post(
        "/api/generate",
        json={"history": [], "images": [{"mimeType": "image/png", "data": "AAAA"}]},
    )

    parts = json.loads(seen[0].content)["contents"][-1]["parts"]
    assert parts[-1] == {"text": ""}
    assert len(parts) == 2


@pytest.mark.asyncio
async def test_rate_limit_is_mapped(client: AsyncClient, upstream) -> None:
    upstream(
        lambda request: httpx.Response(
            429, json={"error": {"code": 429, "message": "Resource has been exhausted"}}
        )
    )

    response = await client.post("/api/generate", json=CHAT_BODY)

    assert response.status_code == 429
    assert response.json() == {
        "error": "RATE_LIMIT_EXCEEDED",
        "message": "Resource has been exhausted",
    }


@pytest.mark.asyncio
async def test_upstream_error_keeps_status_and_message(client: AsyncClient, upstream) -> None:
    upstream(
        lambda request: httpx.Response(
            400, json={"error": {"code": 400, "message": "API key not valid"}}
        )
    )

    response = await client.post("/api/generate", json=CHAT_BODY)

    assert response.status_code == 400
    assert response.json() == {"error": "API_ERROR", "message": "API key not valid"}


@pytest.mark.asyncio
async def test_upstream_error_without_json_body(client: AsyncClient, upstream) -> None:
    upstream(lambda request: httpx.Response(503, text="<html>Service Unavailable</html>"))

    response = await client.post("/api/generate", json=CHAT_BODY)

    assert response.status_code == 503
    data = response.json()
    assert data["error"] == "API_ERROR"
    assert data["message"] == "An error occurred with the Google API."


@pytest.mark.asyncio
async def test_network_failure_is_server_error(client: AsyncClient, upstream) -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    upstream(refuse)

    response = await client.post("/api/generate", json=CHAT_BODY)

    assert response.status_code == 500
    assert response.json() == {"error": "SERVER_ERROR", "message": "Connection refused"}


@pytest.mark.asyncio
async def test_local_failure_is_server_error(client: AsyncClient, upstream, monkeypatch) -> None:
    """Faults before the upstream call still answer with the JSON error shape."""
    seen = upstream(lambda request: httpx.Response(200, content=sse("ok")))

    def broken(self, *args, **kwargs):
        raise ValueError("persona file is not valid YAML")

    monkeypatch.setattr(GeminiClient, "build_payload", broken)

    response = await client.post("/api/generate", json=CHAT_BODY)

    assert response.status_code == 500
    assert response.json() == {"error": "SERVER_ERROR", "message": "persona file is not valid YAML"}
    assert seen == []


@pytest.mark.asyncio
async def test_stream_interrupted_after_start(client: AsyncClient, upstream) -> None:
    """Once streaming has begun a transport failure just ends the body."""
    first = sse("Hel")

    async def body():
        yield first
        raise httpx.ReadError("connection reset")

    upstream(lambda request: httpx.Response(200, content=body()))

    response = await client.post("/api/generate", json=CHAT_BODY)

    assert response.status_code == 200
    assert response.content == first


@pytest.mark.asyncio
async def test_missing_credential(client: AsyncClient, upstream) -> None:
    """No key means no upstream call at all."""
    seen = upstream(lambda request: httpx.Response(200, content=sse("ok")), api_key="")

    response = await client.post("/api/generate", json=CHAT_BODY)

    assert response.status_code == 500
    assert response.json()["error"] == "MISSING_API_KEY"
    assert seen == []


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["GET", "PUT", "DELETE", "OPTIONS"])
async def test_only_post_is_allowed(client: AsyncClient, upstream, method: str) -> None:
    seen = upstream(lambda request: httpx.Response(200, content=sse("ok")))

    response = await client.request(method, "/api/generate")

    assert response.status_code == 405
    assert response.json() == {"error": "Method Not Allowed"}
    assert response.headers["allow"] == "POST"
    assert seen == []
