"""Confirmation and prompt dialogs as awaitable requests.

The control logic awaits ``DialogChannel.confirm`` / ``prompt``; the
presentation layer takes requests off ``DialogChannel.requests`` and answers
each one exactly once with :meth:`DialogRequest.accept` or
:meth:`DialogRequest.dismiss`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class DialogRequest:
    """One pending dialog. ``default`` is None for confirmations."""

    title: str
    text: str
    default: str | None = None
    future: asyncio.Future = field(default_factory=lambda: asyncio.get_running_loop().create_future())

    @property
    def wants_input(self) -> bool:
        return self.default is not None

    def accept(self, value: str | None = None) -> None:
        """Resolve on confirm: True for confirmations, the entered text for prompts."""
        if self.future.done():
            return
        if self.wants_input:
            self.future.set_result(self.default if value is None else value)
        else:
            self.future.set_result(True)

    def dismiss(self) -> None:
        """Resolve on cancel: False for confirmations, None for prompts."""
        if self.future.done():
            return
        self.future.set_result(None if self.wants_input else False)


class DialogChannel:
    """Message-passing channel between control logic and the presentation layer."""

    def __init__(self) -> None:
        self.requests: asyncio.Queue[DialogRequest] = asyncio.Queue()

    async def _ask(self, request: DialogRequest) -> Any:
        await self.requests.put(request)
        logger.debug("Dialog opened: %s", request.title)
        return await request.future

    async def confirm(self, title: str, text: str) -> bool:
        return await self._ask(DialogRequest(title=title, text=text))

    async def prompt(self, title: str, text: str, default: str = "") -> str | None:
        return await self._ask(DialogRequest(title=title, text=text, default=default))
