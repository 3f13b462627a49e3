"""Gemini streamGenerateContent via REST API with API key authentication.

Uses the REST endpoint directly in SSE mode (``alt=sse``) so the response body
can be relayed to the browser as it arrives.
"""

import logging
from typing import Any, Sequence

import httpx

from cortex_code.config import settings
from cortex_code.models.messages import HistoryEntry, ImagePayload
from cortex_code.personality.loader import build_system_instruction, load_personality

logger = logging.getLogger(__name__)

# Least restrictive threshold for every category
SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


class GeminiClient:
    """Streaming text generation using the Gemini REST API.

    The HTTP client is created lazily on first use, so the relay works under
    test transports that never run the application lifespan.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        personality: dict[str, Any] | None = None,
    ) -> None:
        self._personality = personality if personality is not None else load_personality()
        self._api_key = settings.gemini_api_key if api_key is None else api_key
        self._model = model or settings.gemini_model
        self._base_url = (base_url or settings.gemini_api_base).rstrip("/")
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def api_key(self) -> str:
        return self._api_key

    @property
    def model(self) -> str:
        return self._model

    @property
    def stream_url(self) -> str:
        return f"{self._base_url}/models/{self._model}:streamGenerateContent"

    async def initialize(self) -> None:
        """Create the HTTP client."""
        # No read timeout: replies stream for as long as the model generates
        self._client = httpx.AsyncClient(timeout=None, transport=self._transport)
        logger.info("GeminiClient initialized (REST API, model=%s)", self._model)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
        logger.info("GeminiClient closed")

    def build_payload(
        self,
        history: Sequence[HistoryEntry],
        message: str,
        instructions: str = "",
        images: Sequence[ImagePayload] = (),
    ) -> dict[str, Any]:
        """Assemble the upstream request body for one chat turn.

        The new user turn carries one ``inline_data`` part per image, in order,
        followed by a single text part that is always present.
        """
        user_parts: list[dict[str, Any]] = [
            {"inline_data": {"mime_type": image.mime_type, "data": image.data}}
            for image in images
        ]
        user_parts.append({"text": message or ""})

        contents = [entry.model_dump() for entry in history]
        contents.append({"role": "user", "parts": user_parts})

        return {
            "contents": contents,
            "system_instruction": {
                "parts": [{"text": build_system_instruction(instructions, self._personality)}]
            },
            "safetySettings": [
                {"category": category, "threshold": "BLOCK_NONE"}
                for category in SAFETY_CATEGORIES
            ],
        }

    async def open_stream(self, payload: dict[str, Any]) -> httpx.Response:
        """Send the request and return the response with its body unread.

        The caller owns the response and must close it with ``aclose()``.

        Raises:
            httpx.HTTPError: If the request fails before a response arrives.
        """
        if self._client is None:
            await self.initialize()

        request = self._client.build_request(
            "POST",
            self.stream_url,
            params={"key": self._api_key, "alt": "sse"},
            json=payload,
        )
        response = await self._client.send(request, stream=True)
        logger.info(
            "Gemini stream opened: status=%d, turns=%d",
            response.status_code,
            len(payload["contents"]),
        )
        return response
