"""Wire models for the relay endpoint."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class HistoryEntry(BaseModel):
    """One prior turn, forwarded to the upstream verbatim."""

    role: str
    parts: list[dict[str, Any]] = Field(default_factory=list)


class ImagePayload(BaseModel):
    """Inline image attached to the new user turn."""

    model_config = ConfigDict(populate_by_name=True)

    mime_type: str = Field(alias="mimeType")
    data: str  # base64, no data-URL prefix


class GenerateRequest(BaseModel):
    """Body of ``POST /api/generate``."""

    history: list[HistoryEntry] = Field(default_factory=list)
    message: str = ""
    instructions: str = ""
    images: list[ImagePayload] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """JSON failure body returned by the relay."""

    error: str
    message: str | None = None
