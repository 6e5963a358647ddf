"""
Error types for Chariot conversation streaming.

Every fault raised while opening or reading a stream is one of these. The
launcher converts them into ``error`` + ``end`` events, so callers of the
streaming API never see them directly.
"""

from __future__ import annotations


class ChariotError(Exception):
    """Base Chariot client error with response context."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data or {}


class StreamSetupError(ChariotError):
    """Request could not be sent, or the response cannot be streamed."""
    pass


class StreamTransportError(ChariotError):
    """Reading the response body failed mid-stream."""
    pass


class MalformedFrameError(ChariotError):
    """A ``data:`` line did not carry a JSON object."""

    def __init__(self, message: str, line: str, **kwargs):
        super().__init__(message, **kwargs)
        self.line = line
