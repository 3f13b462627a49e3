"""Conversation models persisted by the chat client.

Collection schema (one JSON array under a single storage key)::

    [
        {
            "id": "1718035200123",
            "title": "How do I reverse a list in",
            "turns": [
                {"sender": "user", "text": "How do I reverse a list in Python?", "images": []},
                {"sender": "assistant", "text": "Use `reversed()` ...", "images": []}
            ]
        }
    ]
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, TypeAdapter


class Sender(str, Enum):
    """Turn author."""

    USER = "user"
    ASSISTANT = "assistant"


class ImageAttachment(BaseModel):
    """An image attached to a user turn."""

    mime_type: str
    data: str  # base64 payload sent upstream
    data_url: str  # cached for display

    def to_payload(self) -> dict[str, str]:
        return {"mimeType": self.mime_type, "data": self.data}


class Turn(BaseModel):
    """One message in a conversation."""

    sender: Sender
    text: str = ""
    images: list[ImageAttachment] = Field(default_factory=list)

    @property
    def is_user(self) -> bool:
        return self.sender == Sender.USER

    def to_history_entry(self) -> dict[str, Any]:
        """Map to the upstream history shape. Images are not replayed."""
        return {
            "role": "user" if self.is_user else "model",
            "parts": [{"text": self.text}],
        }


class Conversation(BaseModel):
    """Ordered list of turns with a display title."""

    id: str
    title: str
    turns: list[Turn] = Field(default_factory=list)


_collection_adapter = TypeAdapter(list[Conversation])


def dump_conversations(conversations: list[Conversation]) -> str:
    """Serialize the whole collection to JSON."""
    return _collection_adapter.dump_json(conversations).decode("utf-8")


def load_conversations(raw: str | None) -> list[Conversation]:
    """Parse a collection previously written by :func:`dump_conversations`."""
    if not raw:
        return []
    return _collection_adapter.validate_json(raw)
