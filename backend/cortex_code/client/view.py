"""Headless transcript view.

Holds exactly what a browser transcript would show, without any markup. The
terminal shell subclasses it and echoes each change as it happens.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from cortex_code.models.conversations import Conversation, ImageAttachment, Sender, Turn


@dataclass
class DisplayedTurn:
    """One transcript entry.

    ``index`` is the turn's position in the conversation, or None for transient
    entries that are not part of it. While streaming, ``fragments`` holds the
    text nodes inserted before the cursor marker.
    """

    sender: Sender
    text: str = ""
    html: str | None = None
    images: list[ImageAttachment] = field(default_factory=list)
    index: int | None = None
    fragments: list[str] = field(default_factory=list)
    cursor: bool = False

    @property
    def transient(self) -> bool:
        return self.index is None


class TranscriptView:
    """State of the chat window and sidebar."""

    def __init__(self) -> None:
        self.entries: list[DisplayedTurn] = []
        self.welcome_visible = True
        self.thinking = False
        self.busy = False
        self.notices: list[str] = []
        self.history: list[tuple[str, str, bool]] = []  # (id, title, active)
        self.pending_images: list[ImageAttachment] = []
        self.theme = "dark"
        self.scrolls = 0
        self._streaming: DisplayedTurn | None = None

    # ------------------------------------------------------------------
    # Transcript
    # ------------------------------------------------------------------

    def clear(self) -> None:
        self.entries = []
        self.thinking = False
        self._streaming = None

    def show_welcome(self) -> None:
        self.clear()
        self.welcome_visible = True

    def hide_welcome(self) -> None:
        self.welcome_visible = False

    def show_conversation(self, conversation: Conversation, render) -> None:
        """Redraw every turn of ``conversation``; ``render`` turns text into HTML."""
        self.clear()
        self.hide_welcome()
        for index, turn in enumerate(conversation.turns):
            self.append_turn(turn, render(turn.text), index)

    def append_turn(self, turn: Turn, html: str | None = None, index: int | None = None) -> DisplayedTurn:
        entry = DisplayedTurn(
            sender=turn.sender,
            text=turn.text,
            html=html,
            images=list(turn.images),
            index=index,
        )
        self.entries.append(entry)
        self.scroll_to_end()
        return entry

    def show_thinking(self) -> None:
        self.thinking = True
        self.scroll_to_end()

    def remove_thinking(self) -> None:
        self.thinking = False

    # ------------------------------------------------------------------
    # Streaming assistant turn
    # ------------------------------------------------------------------

    def open_stream(self, index: int) -> DisplayedTurn:
        """Start the assistant entry with a trailing cursor marker."""
        self._streaming = self.append_turn(Turn(sender=Sender.ASSISTANT), index=index)
        self._streaming.cursor = True
        return self._streaming

    def append_delta(self, delta: str) -> None:
        """Insert a text node immediately before the cursor marker."""
        self._streaming.fragments.append(delta)
        self._streaming.text += delta

    def close_stream(self, html: str) -> DisplayedTurn:
        """Remove the cursor and replace the raw text with rendered HTML."""
        entry = self._streaming
        entry.cursor = False
        entry.html = html
        entry.fragments = []
        self._streaming = None
        return entry

    def scroll_to_end(self) -> None:
        self.scrolls += 1

    # ------------------------------------------------------------------
    # Chrome
    # ------------------------------------------------------------------

    def set_busy(self, busy: bool) -> None:
        """Input disabled and stop button shown while ``busy``."""
        self.busy = busy

    def show_notice(self, text: str) -> None:
        self.notices.append(text)

    def show_history(self, conversations: list[Conversation], active_id: str | None) -> None:
        self.history = [(c.id, c.title, c.id == active_id) for c in conversations]

    def show_pending_images(self, images: list[ImageAttachment]) -> None:
        self.pending_images = list(images)

    def apply_theme(self, theme: str) -> None:
        self.theme = theme
