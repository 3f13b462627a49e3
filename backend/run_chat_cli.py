"""Terminal front-end for the Cortex Code chat client.

Start the relay first (``uvicorn cortex_code.main:app``), then:
    python backend/run_chat_cli.py

Plain lines are sent as messages. Commands:
    /new                  start a new conversation
    /list                 list conversations
    /open N               open conversation N from /list
    /rename N | /delete N rename or delete conversation N
    /show                 reprint the active conversation
    /edit I | /del I      edit or delete user turn I
    /regen I              regenerate assistant turn I
    /image PATH [PATH..]  stage images for the next message
    /instructions TEXT    save custom instructions
    /theme                toggle light/dark
    /quit                 exit
Ctrl-C while a reply is streaming cancels it.
"""

import asyncio
import contextlib
import logging
import shlex
import signal
import sys
from pathlib import Path

from cortex_code.client.dialogs import DialogRequest
from cortex_code.client.relay import RelayClient
from cortex_code.client.session import ChatSession, SendOutcome
from cortex_code.client.storage import JsonFileStorage
from cortex_code.client.store import ConversationStore
from cortex_code.client.view import TranscriptView
from cortex_code.config import settings
from cortex_code.models.conversations import Sender

# Logging to a file only; the terminal belongs to the transcript
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.FileHandler("chat_cli.log")],
)

logger = logging.getLogger(__name__)


class ConsoleView(TranscriptView):
    """Echoes transcript changes to stdout as they happen."""

    def append_turn(self, turn, html=None, index=None):
        entry = super().append_turn(turn, html, index)
        if turn.text or turn.images:
            label = "you" if turn.sender == Sender.USER else "ai"
            marker = f"[{index}]" if index is not None else "[-]"
            images = f" (+{len(turn.images)} images)" if turn.images else ""
            print(f"{marker} {label}{images}: {turn.text}")
        return entry

    def show_thinking(self):
        super().show_thinking()
        print("... thinking", flush=True)

    def open_stream(self, index):
        entry = super().open_stream(index)
        print(f"[{index}] ai: ", end="", flush=True)
        return entry

    def append_delta(self, delta):
        super().append_delta(delta)
        print(delta, end="", flush=True)

    def close_stream(self, html):
        entry = super().close_stream(html)
        print()
        return entry

    def show_notice(self, text):
        super().show_notice(text)
        print(f"! {text}")

    def apply_theme(self, theme):
        super().apply_theme(theme)
        print(f"theme: {theme}")


async def _answer_dialogs(session: ChatSession) -> None:
    """Presentation side of the dialog channel: answer each request from stdin."""
    while True:
        request: DialogRequest = await session.dialogs.requests.get()
        print(f"== {request.title}\n{request.text}")
        if request.wants_input:
            print(f"(current: {request.default})")
            answer = await asyncio.to_thread(input, "> ")
            confirmed = bool(answer)
        else:
            answer = await asyncio.to_thread(input, "[y/N] ")
            confirmed = answer.strip().lower() in ("y", "yes")
            answer = None
        if confirmed:
            request.accept(answer)
        else:
            request.dismiss()


async def _run_cancellable(session: ChatSession, coro):
    """Await ``coro``; Ctrl-C aborts the in-flight send instead of exiting."""
    loop = asyncio.get_running_loop()

    def _on_sigint() -> None:
        if session.cancel():
            print("\n(cancelled)")

    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, _on_sigint)
    try:
        return await coro
    finally:
        with contextlib.suppress(NotImplementedError):
            loop.remove_signal_handler(signal.SIGINT)


def _print_list(session: ChatSession) -> None:
    for n, (_, title, active) in enumerate(session.view.history):
        print(f"{'*' if active else ' '} {n}: {title}")


def _conversation_id(session: ChatSession, arg: str) -> str:
    return session.view.history[int(arg)][0]


async def _handle_command(session: ChatSession, line: str) -> bool:
    """Run one slash command. Returns False to exit."""
    command, *args = shlex.split(line)
    if command == "/quit":
        return False
    if command == "/new":
        session.start_new_chat()
    elif command == "/list":
        _print_list(session)
    elif command == "/open":
        session.open_conversation(_conversation_id(session, args[0]))
    elif command == "/show":
        session.open_conversation(session.state.active_conversation_id or "")
    elif command == "/rename":
        await session.rename_conversation(_conversation_id(session, args[0]))
        _print_list(session)
    elif command == "/delete":
        await session.delete_conversation(_conversation_id(session, args[0]))
        _print_list(session)
    elif command == "/edit":
        await _run_cancellable(session, session.edit_turn(int(args[0])))
    elif command == "/del":
        removed = await session.delete_turn(int(args[0]))
        print(f"removed {removed} turns")
    elif command == "/regen":
        await _run_cancellable(session, session.regenerate(int(args[0])))
    elif command == "/image":
        staged = session.stage_images([Path(a) for a in args])
        print(f"{len(session.state.pending_images)} images staged (+{len(staged)})")
    elif command == "/instructions":
        session.save_instructions(" ".join(args))
    elif command == "/theme":
        session.toggle_theme()
    else:
        print(f"unknown command: {command}")
    return True


async def main():
    """Run the interactive chat loop."""
    logger.info("Starting Cortex Code chat CLI (relay=%s)", settings.relay_url)

    relay = RelayClient()
    await relay.initialize()
    session = ChatSession(
        ConversationStore(JsonFileStorage(settings.storage_path)),
        relay,
        view=ConsoleView(),
    )
    session.load()
    dialog_task = asyncio.create_task(_answer_dialogs(session))

    try:
        while True:
            line = await asyncio.to_thread(input, "you> ")
            if not line.strip():
                continue
            if line.startswith("/"):
                try:
                    if not await _handle_command(session, line):
                        break
                except (IndexError, ValueError, LookupError, OSError) as exc:
                    print(f"error: {exc}")
                continue
            result = await _run_cancellable(session, session.send(line))
            if result and result.outcome == SendOutcome.FAILED:
                logger.warning("Send failed: %s %s", result.error, result.detail)
    except (EOFError, KeyboardInterrupt):
        print()
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        dialog_task.cancel()
        await relay.close()
        logger.info("Chat CLI shut down cleanly")


if __name__ == "__main__":
    asyncio.run(main())
