"""Best-effort decoder for the relayed Gemini SSE stream.

A malformed record never aborts the stream: it is skipped and decoding
continues with the next line.
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import Any, AsyncIterable, AsyncIterator

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "


def extract_delta(record: Any) -> str | None:
    """Return ``candidates[0].content.parts[0].text`` or None if absent."""
    try:
        text = record["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) else None


class StreamDecoder:
    """Turns raw stream chunks into text deltas.

    Lines split across chunk boundaries are carried over until their newline
    arrives; the tail is handled by :meth:`flush`.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""
        self.skipped = 0

    def feed(self, chunk: bytes) -> list[str]:
        self._pending += self._decoder.decode(chunk)
        *lines, self._pending = self._pending.split("\n")
        return self._parse(lines)

    def flush(self) -> list[str]:
        tail = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return self._parse([tail])

    def _parse(self, lines: list[str]) -> list[str]:
        deltas = []
        for line in lines:
            line = line.rstrip("\r")
            if not line.startswith(DATA_PREFIX):
                continue
            try:
                record = json.loads(line[len(DATA_PREFIX):])
            except json.JSONDecodeError:
                self.skipped += 1
                logger.debug("Skipping malformed stream record: %s", line[:80])
                continue
            delta = extract_delta(record)
            if delta:
                deltas.append(delta)
        return deltas


async def iter_text_deltas(chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
    """Lazily yield every text delta found in ``chunks``."""
    decoder = StreamDecoder()
    async for chunk in chunks:
        for delta in decoder.feed(chunk):
            yield delta
    for delta in decoder.flush():
        yield delta
