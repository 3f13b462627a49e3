"""Image attachment staging for the next outgoing message."""

from __future__ import annotations

import base64
import logging
import mimetypes
from pathlib import Path
from typing import Iterator, Sequence

from cortex_code.client.errors import AttachmentLimitError, UnsupportedAttachmentError
from cortex_code.config import settings
from cortex_code.models.conversations import ImageAttachment

logger = logging.getLogger(__name__)


def image_from_bytes(content: bytes, mime_type: str) -> ImageAttachment:
    """Encode raw image bytes as a base64 payload plus a displayable data URL."""
    if not mime_type.startswith("image/"):
        raise UnsupportedAttachmentError(f"Not an image: {mime_type}")
    data = base64.b64encode(content).decode("ascii")
    return ImageAttachment(
        mime_type=mime_type,
        data=data,
        data_url=f"data:{mime_type};base64,{data}",
    )


def read_image(path: Path, mime_type: str | None = None) -> ImageAttachment:
    """Read an image file from disk."""
    path = Path(path)
    mime_type = mime_type or mimetypes.guess_type(path.name)[0] or ""
    if not mime_type.startswith("image/"):
        raise UnsupportedAttachmentError(f"{path.name} is not an image")
    return image_from_bytes(path.read_bytes(), mime_type)


class PendingImages:
    """Images waiting to be sent, capped at a fixed count."""

    def __init__(self, limit: int | None = None) -> None:
        self.limit = settings.max_pending_images if limit is None else limit
        self._items: list[ImageAttachment] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[ImageAttachment]:
        return iter(self._items)

    @property
    def remaining(self) -> int:
        return self.limit - len(self._items)

    def check_room(self, count: int) -> None:
        """Raise if ``count`` more images would exceed the cap."""
        if count > self.remaining:
            logger.info(
                "Rejected %d images: %d of %d already staged",
                count,
                len(self._items),
                self.limit,
            )
            raise AttachmentLimitError(self.limit)

    def add(self, images: Sequence[ImageAttachment]) -> None:
        """Stage a batch. Either every image is added or none is."""
        self.check_room(len(images))
        self._items.extend(images)

    def stage(self, paths: Sequence[Path]) -> list[ImageAttachment]:
        """Read and stage image files, checking the cap before reading anything."""
        self.check_room(len(paths))
        images = [read_image(path) for path in paths]
        self.add(images)
        return images

    def remove(self, index: int) -> ImageAttachment:
        return self._items.pop(index)

    def clear(self) -> None:
        self._items.clear()

    def snapshot(self) -> list[ImageAttachment]:
        return list(self._items)
