"""Conversation store: the client's only owner of conversation state.

The whole collection is serialized and written under one key on every
``save()``; there are no partial writes.
"""

from __future__ import annotations

import logging
import time

from cortex_code.client.storage import KeyValueStorage
from cortex_code.models.conversations import (
    Conversation,
    Sender,
    dump_conversations,
    load_conversations,
)

logger = logging.getLogger(__name__)

CHATS_KEY = "cortex_code_chats"
INSTRUCTIONS_KEY = "cortex_code_instructions"
THEME_KEY = "cortex_theme"

TITLE_LENGTH = 30
THEMES = ("light", "dark")
DEFAULT_THEME = "dark"


class ConversationStore:
    """Ordered conversation list (newest first) plus client preferences."""

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage
        self.conversations: list[Conversation] = []

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> list[Conversation]:
        """Replace the in-memory list with the persisted one."""
        self.conversations = load_conversations(self._storage.get_item(CHATS_KEY))
        logger.info("Loaded %d conversations", len(self.conversations))
        return self.conversations

    def save(self) -> None:
        self._storage.set_item(CHATS_KEY, dump_conversations(self.conversations))

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def get(self, conversation_id: str | None) -> Conversation | None:
        if conversation_id is None:
            return None
        return next((c for c in self.conversations if c.id == conversation_id), None)

    def create(self, text: str, fallback_title: str) -> Conversation:
        """Start a conversation titled after its first message.

        Not persisted here: the first successful reply saves it.
        """
        conversation = Conversation(
            id=self._new_id(),
            title=text[:TITLE_LENGTH] or fallback_title,
        )
        self.conversations.insert(0, conversation)
        logger.info("Created conversation %s", conversation.id)
        return conversation

    def _new_id(self) -> str:
        new_id = int(time.time() * 1000)
        # Two conversations created within the same millisecond
        while self.get(str(new_id)) is not None:
            new_id += 1
        return str(new_id)

    def rename(self, conversation_id: str, title: str | None) -> bool:
        conversation = self.get(conversation_id)
        if conversation is None or not title or not title.strip():
            return False
        conversation.title = title.strip()
        self.save()
        return True

    def delete(self, conversation_id: str) -> bool:
        before = len(self.conversations)
        self.conversations = [c for c in self.conversations if c.id != conversation_id]
        self.save()
        return len(self.conversations) < before

    # ------------------------------------------------------------------
    # Turn mutations (callers persist)
    # ------------------------------------------------------------------

    @staticmethod
    def truncate(conversation: Conversation, length: int) -> None:
        """Drop the turn at ``length`` and everything after it."""
        del conversation.turns[length:]

    @staticmethod
    def delete_user_turn(conversation: Conversation, index: int) -> int:
        """Remove a user turn and the assistant reply directly after it.

        Returns:
            Number of turns removed (1 or 2).
        """
        turns = conversation.turns
        if not turns[index].is_user:
            raise ValueError(f"Turn {index} is not a user turn")
        has_reply = index + 1 < len(turns) and turns[index + 1].sender == Sender.ASSISTANT
        count = 2 if has_reply else 1
        del turns[index : index + count]
        return count

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    @property
    def instructions(self) -> str:
        return self._storage.get_item(INSTRUCTIONS_KEY) or ""

    @instructions.setter
    def instructions(self, value: str) -> None:
        self._storage.set_item(INSTRUCTIONS_KEY, value)

    @property
    def theme(self) -> str:
        theme = self._storage.get_item(THEME_KEY)
        return theme if theme in THEMES else DEFAULT_THEME

    @theme.setter
    def theme(self, value: str) -> None:
        if value not in THEMES:
            raise ValueError(f"Unknown theme: {value}")
        self._storage.set_item(THEME_KEY, value)

    def toggle_theme(self) -> str:
        self.theme = "dark" if self.theme == "light" else "light"
        return self.theme
