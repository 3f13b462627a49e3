"""Headless chat client: conversation store, stream decoding and send flow."""

from cortex_code.client.session import ChatSession, SendOutcome, SendResult, SessionState
from cortex_code.client.store import ConversationStore
from cortex_code.client.storage import JsonFileStorage, MemoryStorage

__all__ = [
    "ChatSession",
    "ConversationStore",
    "JsonFileStorage",
    "MemoryStorage",
    "SendOutcome",
    "SendResult",
    "SessionState",
]
