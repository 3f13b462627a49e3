"""Client-side usage errors. These are raised before anything reaches the network."""


class ClientUsageError(Exception):
    """An action the client refuses locally."""


class AttachmentLimitError(ClientUsageError):
    """Staging would exceed the per-send image cap."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"At most {limit} images can be attached to one message")


class UnsupportedAttachmentError(ClientUsageError):
    """The staged file is not an image."""


class SendInProgressError(ClientUsageError):
    """A reply is still streaming for this session."""
