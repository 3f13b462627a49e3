"""Shared test fixtures for the Cortex Code backend."""

import json
from collections.abc import AsyncGenerator, Callable

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from cortex_code.client.relay import RelayClient
from cortex_code.client.session import ChatSession
from cortex_code.client.storage import MemoryStorage
from cortex_code.client.store import ConversationStore
from cortex_code.dependencies import get_gemini_client
from cortex_code.main import app
from cortex_code.relay.gemini import GeminiClient


def sse(*texts: str) -> bytes:
    """Encode deltas the way Gemini's ``alt=sse`` stream does."""
    records = [
        "data: " + json.dumps({"candidates": [{"content": {"parts": [{"text": t}], "role": "model"}}]})
        for t in texts
    ]
    return ("\r\n\r\n".join(records) + "\r\n\r\n").encode("utf-8")


class FakeDialogs:
    """Answers every dialog immediately with canned values."""

    def __init__(self, confirm: bool = True, prompt: str | None = None) -> None:
        self.confirm_answer = confirm
        self.prompt_answer = prompt
        self.asked: list[str] = []

    async def confirm(self, title: str, text: str) -> bool:
        self.asked.append(title)
        return self.confirm_answer

    async def prompt(self, title: str, text: str, default: str = "") -> str | None:
        self.asked.append(title)
        return self.prompt_answer


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def upstream() -> Callable[..., list[httpx.Request]]:
    """Point the relay at a mocked Gemini; returns the list of captured requests."""

    def install(handler: Callable[[httpx.Request], httpx.Response], api_key: str = "test-key"):
        seen: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        gemini = GeminiClient(
            api_key=api_key,
            model="gemini-test",
            base_url="https://gemini.test/v1beta",
            transport=httpx.MockTransport(record),
        )
        app.dependency_overrides[get_gemini_client] = lambda: gemini
        return seen

    return install


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(storage: MemoryStorage) -> ConversationStore:
    return ConversationStore(storage)


@pytest.fixture
def make_session(store: ConversationStore):
    """Build a ChatSession whose relay is answered by ``handler``."""

    def build(handler, dialogs=None, locale="en") -> ChatSession:
        relay = RelayClient(
            url="http://relay.test/api/generate",
            transport=httpx.MockTransport(handler),
        )
        return ChatSession(store, relay, dialogs=dialogs or FakeDialogs(), locale=locale)

    return build
