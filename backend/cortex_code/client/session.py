"""Chat session: drives the relay and applies streamed replies to the store.

Each send moves through
``Composing -> AwaitingFirstByte -> Streaming -> Settled`` and settles exactly
once as SUCCESS, EMPTY, ABORTED or FAILED. Only SUCCESS persists anything;
every other outcome leaves the stored conversations as they were before the
send began and shows, at most, a transient assistant entry.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Sequence

import httpx

from cortex_code.client.attachments import PendingImages
from cortex_code.client.dialogs import DialogChannel
from cortex_code.client.errors import (
    AttachmentLimitError,
    SendInProgressError,
    UnsupportedAttachmentError,
)
from cortex_code.client.messages import message
from cortex_code.client.relay import RelayClient
from cortex_code.client.render import render_markdown
from cortex_code.client.store import ConversationStore
from cortex_code.client.stream import StreamDecoder
from cortex_code.client.view import TranscriptView
from cortex_code.config import settings
from cortex_code.models.conversations import Conversation, ImageAttachment, Sender, Turn
from cortex_code.utils.language_detector import get_language_detector

logger = logging.getLogger(__name__)

RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
TRANSPORT_ERROR = "TRANSPORT_ERROR"


class SendOutcome(str, Enum):
    """How a send settled."""

    SUCCESS = "success"
    EMPTY = "empty"
    ABORTED = "aborted"
    FAILED = "failed"


@dataclass
class SendResult:
    outcome: SendOutcome
    text: str = ""
    error: str | None = None
    detail: str | None = None
    status_code: int | None = None


class AbortHandle:
    """Cooperative cancellation signal for one in-flight send."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def abort(self) -> None:
        self._event.set()

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class SessionState:
    """Transient per-session state; never persisted."""

    active_conversation_id: str | None = None
    abort: AbortHandle | None = None
    pending_images: PendingImages = field(default_factory=PendingImages)

    @property
    def sending(self) -> bool:
        return self.abort is not None


class ChatSession:
    """Control logic between the transcript view, the store and the relay."""

    def __init__(
        self,
        store: ConversationStore,
        relay: RelayClient,
        view: TranscriptView | None = None,
        dialogs: Any = None,
        state: SessionState | None = None,
        locale: str | None = None,
    ) -> None:
        self.store = store
        self.relay = relay
        self.view = view or TranscriptView()
        self.dialogs = dialogs or DialogChannel()
        self.state = state or SessionState()
        self._ui_locale = locale or settings.ui_locale

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _locale(self, text: str = "", conversation_id: str | None = None) -> str:
        if self._ui_locale != "auto":
            return self._ui_locale
        return get_language_detector().detect(text, conversation_id)

    def _render(self, text: str, locale: str) -> str:
        return render_markdown(text, message("copy", locale))

    def _active(self) -> Conversation:
        conversation = self.store.get(self.state.active_conversation_id)
        if conversation is None:
            raise LookupError("No active conversation")
        return conversation

    def _ensure_idle(self) -> None:
        if self.state.sending:
            raise SendInProgressError("A reply is still streaming")

    def _show_history(self) -> None:
        self.view.show_history(self.store.conversations, self.state.active_conversation_id)

    def _show_conversation(self, conversation: Conversation) -> None:
        locale = self._locale(conversation_id=conversation.id)
        self.view.show_conversation(conversation, lambda text: self._render(text, locale))
        self._show_history()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Read persisted conversations and preferences into the view."""
        self.store.load()
        self.view.apply_theme(self.store.theme)
        self.view.show_welcome()
        self._show_history()

    def start_new_chat(self) -> None:
        self.state.active_conversation_id = None
        self.view.show_welcome()
        self._show_history()
        self.clear_pending_images()

    def open_conversation(self, conversation_id: str) -> bool:
        conversation = self.store.get(conversation_id)
        if conversation is None:
            return False
        self.state.active_conversation_id = conversation.id
        self._show_conversation(conversation)
        return True

    # ------------------------------------------------------------------
    # Send flow
    # ------------------------------------------------------------------

    async def send(
        self,
        text: str,
        images: Sequence[ImageAttachment] | None = None,
        regenerating: bool = False,
    ) -> SendResult | None:
        """Send a message and stream the reply into the active conversation.

        Args:
            text: Message text; may be empty when images are attached.
            images: Attachments for this message. Defaults to the staged images.
            regenerating: Re-ask the trailing user turn instead of appending one.

        Returns:
            The settled result, or None when there was nothing to send.

        Raises:
            SendInProgressError: If a reply is already streaming.
        """
        self._ensure_idle()
        images = list(images) if images is not None else self.state.pending_images.snapshot()
        if not text.strip() and not images:
            return None

        # Composing
        conversation = self.store.get(self.state.active_conversation_id)
        if conversation is None:
            conversation = self.store.create(text, message("image_title", self._locale(text)))
            self.state.active_conversation_id = conversation.id
            self._show_history()
        locale = self._locale(text, conversation.id)

        if not regenerating:
            user_turn = Turn(sender=Sender.USER, text=text, images=images)
            self.view.append_turn(
                user_turn, self._render(text, locale), len(conversation.turns)
            )
            conversation.turns.append(user_turn)
            self.clear_pending_images()

        body = {
            # The newest turn travels as message/images; earlier ones as text only
            "history": [turn.to_history_entry() for turn in conversation.turns[:-1]],
            "message": text,
            "instructions": self.store.instructions,
            "images": [image.to_payload() for image in images],
        }

        # AwaitingFirstByte
        self.view.hide_welcome()
        self.view.set_busy(True)
        abort = AbortHandle()
        self.state.abort = abort
        self.view.show_thinking()

        try:
            result = await self._exchange(conversation, body, abort, locale)
        finally:
            self.view.set_busy(False)
            self.state.abort = None

        logger.info(
            "Send settled: conversation=%s outcome=%s error=%s",
            conversation.id,
            result.outcome.value,
            result.error,
        )
        return result

    def cancel(self) -> bool:
        """Abort the in-flight send, if any."""
        if self.state.abort is None:
            return False
        self.state.abort.abort()
        return True

    async def _exchange(
        self,
        conversation: Conversation,
        body: dict[str, Any],
        abort: AbortHandle,
        locale: str,
    ) -> SendResult:
        """Run the relay exchange, racing it against the abort signal."""
        reply = asyncio.ensure_future(self._stream_reply(conversation, body, abort, locale))
        aborted = asyncio.ensure_future(abort.wait())
        try:
            done, _ = await asyncio.wait(
                {reply, aborted}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            reply.cancel()
            aborted.cancel()
            raise
        aborted.cancel()

        if reply in done:
            return reply.result()

        # Bytes already buffered by the transport are dropped with the task
        reply.cancel()
        await asyncio.wait({reply})
        return self._aborted()

    def _aborted(self) -> SendResult:
        self.view.remove_thinking()
        return SendResult(SendOutcome.ABORTED)

    async def _stream_reply(
        self,
        conversation: Conversation,
        body: dict[str, Any],
        abort: AbortHandle,
        locale: str,
    ) -> SendResult:
        try:
            async with self.relay.stream(body) as response:
                if not response.is_success:
                    return await self._fail_with_response(response, locale)
                return await self._apply_stream(conversation, response, abort, locale)
        except httpx.HTTPError as exc:
            logger.error("Relay request failed: %s", exc)
            return self._fail(
                message("server_error", locale), locale, TRANSPORT_ERROR, str(exc) or None
            )

    async def _apply_stream(
        self,
        conversation: Conversation,
        response: httpx.Response,
        abort: AbortHandle,
        locale: str,
    ) -> SendResult:
        decoder = StreamDecoder()
        fragments: list[str] = []
        index = len(conversation.turns)

        def apply(delta: str) -> None:
            if not fragments:
                self.view.remove_thinking()
                self.view.open_stream(index)
            fragments.append(delta)
            self.view.append_delta(delta)

        # Streaming
        async for chunk in response.aiter_bytes():
            if abort.aborted:
                return self._aborted()
            for delta in decoder.feed(chunk):
                apply(delta)
            self.view.scroll_to_end()
        for delta in decoder.flush():
            apply(delta)

        if decoder.skipped:
            logger.warning("Skipped %d malformed stream records", decoder.skipped)

        if not fragments:
            self.view.remove_thinking()
            text = message("no_response", locale)
            self.view.append_turn(Turn(sender=Sender.ASSISTANT, text=text), self._render(text, locale))
            return SendResult(SendOutcome.EMPTY)

        text = "".join(fragments)
        self.view.close_stream(self._render(text, locale))
        conversation.turns.append(Turn(sender=Sender.ASSISTANT, text=text))
        self.store.save()
        return SendResult(SendOutcome.SUCCESS, text=text)

    async def _fail_with_response(self, response: httpx.Response, locale: str) -> SendResult:
        await response.aread()
        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        tag = data.get("error") or "API_ERROR"
        detail = data.get("message")
        logger.error("Relay returned %d: error=%s message=%s", response.status_code, tag, detail)

        if tag == RATE_LIMIT_EXCEEDED or response.status_code == 429:
            text = message("rate_limit", locale)
            tag = RATE_LIMIT_EXCEEDED
        elif detail:
            text = message("server_error_detail", locale, detail=detail)
        else:
            text = message("server_error", locale)
        return self._fail(text, locale, tag, detail, response.status_code)

    def _fail(
        self,
        text: str,
        locale: str,
        tag: str,
        detail: str | None = None,
        status_code: int | None = None,
    ) -> SendResult:
        """Show a transient error entry; nothing is persisted."""
        self.view.remove_thinking()
        self.view.append_turn(Turn(sender=Sender.ASSISTANT, text=text), self._render(text, locale))
        return SendResult(SendOutcome.FAILED, error=tag, detail=detail, status_code=status_code)

    # ------------------------------------------------------------------
    # Turn mutations
    # ------------------------------------------------------------------

    async def edit_turn(self, index: int) -> SendResult | None:
        """Replace a user turn's text, dropping it and everything after, then resend."""
        self._ensure_idle()
        conversation = self._active()
        turn = conversation.turns[index]
        if not turn.is_user:
            raise ValueError(f"Turn {index} is not a user turn")

        locale = self._locale(turn.text, conversation.id)
        new_text = await self.dialogs.prompt(
            message("edit_title", locale), message("edit_text", locale), turn.text
        )
        if not new_text or not new_text.strip() or new_text == turn.text:
            return None

        self.store.truncate(conversation, index)
        self.store.save()
        self._show_conversation(conversation)
        return await self.send(new_text, images=turn.images)

    async def delete_turn(self, index: int) -> int:
        """Delete a user turn and its reply. Returns the number of turns removed."""
        self._ensure_idle()
        conversation = self._active()
        if not conversation.turns[index].is_user:
            raise ValueError(f"Turn {index} is not a user turn")

        locale = self._locale(conversation_id=conversation.id)
        if not await self.dialogs.confirm(
            message("delete_turn_title", locale), message("delete_turn_text", locale)
        ):
            return 0

        removed = self.store.delete_user_turn(conversation, index)
        self.store.save()
        self._show_conversation(conversation)
        return removed

    async def regenerate(self, index: int) -> SendResult | None:
        """Drop an assistant turn and everything after it, then re-ask its user turn."""
        self._ensure_idle()
        conversation = self._active()
        turn = conversation.turns[index]
        if turn.is_user or index == 0:
            raise ValueError(f"Turn {index} is not an assistant reply")

        locale = self._locale(conversation_id=conversation.id)
        if not await self.dialogs.confirm(
            message("regenerate_title", locale), message("regenerate_text", locale)
        ):
            return None

        user_turn = conversation.turns[index - 1]
        self.store.truncate(conversation, index)
        self.store.save()
        self._show_conversation(conversation)
        return await self.send(user_turn.text, images=user_turn.images, regenerating=True)

    # ------------------------------------------------------------------
    # Conversation list
    # ------------------------------------------------------------------

    async def rename_conversation(self, conversation_id: str) -> bool:
        conversation = self.store.get(conversation_id)
        if conversation is None:
            return False

        locale = self._locale(conversation_id=conversation_id)
        new_title = await self.dialogs.prompt(
            message("rename_title", locale), message("rename_text", locale), conversation.title
        )
        renamed = self.store.rename(conversation_id, new_title)
        if renamed:
            self._show_history()
        return renamed

    async def delete_conversation(self, conversation_id: str) -> bool:
        if self.store.get(conversation_id) is None:
            return False

        locale = self._locale(conversation_id=conversation_id)
        if not await self.dialogs.confirm(
            message("delete_chat_title", locale), message("delete_chat_text", locale)
        ):
            return False

        self.store.delete(conversation_id)
        if self._ui_locale == "auto":
            get_language_detector().forget(conversation_id)
        if self.state.active_conversation_id == conversation_id:
            self.start_new_chat()
        else:
            self._show_history()
        return True

    # ------------------------------------------------------------------
    # Attachments and preferences
    # ------------------------------------------------------------------

    def stage_images(self, paths: Sequence[Path]) -> list[ImageAttachment]:
        """Stage image files for the next send.

        A batch that would exceed the cap, or that holds a non-image, is
        rejected as a whole with a notice. So is one with an unreadable file.
        """
        locale = self._locale(conversation_id=self.state.active_conversation_id)
        try:
            staged = self.state.pending_images.stage(paths)
        except AttachmentLimitError as exc:
            self.view.show_notice(message("attachment_limit", locale, limit=exc.limit))
            return []
        except UnsupportedAttachmentError as exc:
            logger.info("Rejected attachment: %s", exc)
            self.view.show_notice(message("not_an_image", locale))
            return []
        except OSError as exc:
            logger.warning("Could not read attachment: %s", exc)
            self.view.show_notice(message("unreadable_image", locale))
            return []
        self.view.show_pending_images(self.state.pending_images.snapshot())
        return staged

    def clear_pending_images(self) -> None:
        self.state.pending_images.clear()
        self.view.show_pending_images([])

    def save_instructions(self, text: str) -> None:
        self.store.instructions = text

    def toggle_theme(self) -> str:
        theme = self.store.toggle_theme()
        self.view.apply_theme(theme)
        return theme
