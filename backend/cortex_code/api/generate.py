"""Relay endpoint: forwards one chat turn to Gemini and streams the reply back.

Protocol:
    Client POSTs JSON: {"history": [{"role", "parts"}], "message": "...",
                        "instructions": "...", "images": [{"mimeType", "data"}]}
    Server replies 200 text/event-stream with the upstream SSE bytes verbatim,
    or a JSON body {"error": <tag>, "message": "..."} on failure.
"""

from __future__ import annotations

import json
import logging
from typing import AsyncIterator

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse

from cortex_code.dependencies import get_gemini_client
from cortex_code.models.messages import ErrorResponse, GenerateRequest
from cortex_code.relay.gemini import GeminiClient

logger = logging.getLogger(__name__)
router = APIRouter()

RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
API_ERROR = "API_ERROR"
SERVER_ERROR = "SERVER_ERROR"
MISSING_API_KEY = "MISSING_API_KEY"

DEFAULT_UPSTREAM_MESSAGE = "An error occurred with the Google API."

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def _error(status_code: int, tag: str, message: str | None = None, **kwargs) -> JSONResponse:
    body = ErrorResponse(error=tag, message=message).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body, **kwargs)


def _upstream_error_message(raw: bytes) -> str:
    """Pull ``error.message`` out of an upstream failure body."""
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return DEFAULT_UPSTREAM_MESSAGE
    if isinstance(data, list) and data:
        data = data[0]
    if not isinstance(data, dict):
        return DEFAULT_UPSTREAM_MESSAGE
    error = data.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return DEFAULT_UPSTREAM_MESSAGE


async def _relay_body(upstream: httpx.Response) -> AsyncIterator[bytes]:
    """Yield the decoded upstream stream; always release the upstream connection.

    Any upstream content-encoding is undone here, since the relayed response
    does not carry it.
    """
    try:
        async for chunk in upstream.aiter_bytes():
            yield chunk
    except httpx.HTTPError as exc:
        # Headers are already sent, so the only option left is to end the stream
        logger.error("Upstream stream interrupted: %s", exc)
    finally:
        await upstream.aclose()


@router.post("")
async def generate(
    request: GenerateRequest,
    gemini: GeminiClient = Depends(get_gemini_client),
):
    """Relay a chat turn to the upstream model as a Server-Sent-Events stream."""
    if not gemini.api_key:
        logger.error("Rejecting generate request: GEMINI_API_KEY is not configured")
        return _error(
            500, MISSING_API_KEY, "The upstream API key was not found on the server."
        )

    try:
        payload = gemini.build_payload(
            request.history, request.message, request.instructions, request.images
        )
        upstream = await gemini.open_stream(payload)
    except httpx.HTTPError as exc:
        logger.exception("Server error while contacting upstream")
        return _error(500, SERVER_ERROR, str(exc) or type(exc).__name__)
    except Exception as exc:
        logger.exception("Server error while preparing the upstream request")
        return _error(500, SERVER_ERROR, str(exc) or type(exc).__name__)

    if not upstream.is_success:
        try:
            raw = await upstream.aread()
        except httpx.HTTPError:
            logger.exception("Failed to read upstream error body")
            raw = b""
        finally:
            await upstream.aclose()

        message = _upstream_error_message(raw)
        logger.error(
            "Google API Error: status=%d body=%s",
            upstream.status_code,
            raw[:2000].decode("utf-8", errors="replace"),
        )
        if upstream.status_code == 429:
            return _error(429, RATE_LIMIT_EXCEEDED, message)
        return _error(upstream.status_code, API_ERROR, message)

    return StreamingResponse(
        _relay_body(upstream),
        status_code=200,
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )


@router.api_route("", methods=["GET", "PUT", "PATCH", "DELETE", "OPTIONS"], include_in_schema=False)
async def generate_method_not_allowed() -> JSONResponse:
    """Only POST is accepted on the relay path."""
    return _error(405, "Method Not Allowed", headers={"Allow": "POST"})
