"""
Error kinds surfaced by the processing entry point.
None of these are retried; the caller decides how to present them.
"""
from typing import Optional


class DegradeError(Exception):
    """Base class for every error raised by the degrade engine."""


class InvalidInput(DegradeError):
    """Input missing, empty, not an audio type, or over the size limit."""


class DecodeError(DegradeError):
    """
    The decoder could not parse the encoded bytes.
    reason: "unsupported" (container/codec not recognised) or "corrupt".
    """

    def __init__(self, message: str, reason: str = "corrupt", container: Optional[str] = None):
        super().__init__(message)
        self.reason = reason
        self.container = container


class InvalidParameter(DegradeError):
    """Quality level or settings outside the supported domain."""


class ProcessingFailure(DegradeError):
    """Unexpected failure inside the signal chain."""
