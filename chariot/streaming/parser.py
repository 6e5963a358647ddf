"""
SSE frame parser for Chariot conversation streams.

Each ``data:`` line carries a JSON object whose ``status`` field decides the
event it becomes. Lines without that prefix (``event:``, ``id:``, comments)
are tolerated and skipped.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from typing import Any

import structlog

from ..exceptions import MalformedFrameError
from .models import FrameStatus, SSEFrame

DATA_PREFIX = "data:"

logger = structlog.get_logger(__name__)


def _classify(payload: dict[str, Any]) -> FrameStatus | None:
    try:
        return FrameStatus(payload.get("status"))
    except ValueError:
        return None


def _decode_line(line: str) -> dict[str, Any]:
    raw = line[len(DATA_PREFIX):]
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedFrameError(f"Invalid JSON in stream frame: {e}", line=line) from e
    if not isinstance(payload, dict):
        raise MalformedFrameError(
            f"Expected JSON object in stream frame, got {type(payload).__name__}",
            line=line,
        )
    return payload


def iter_frames(chunk: str) -> Iterator[SSEFrame]:
    """
    Lazily yield frames in line order.

    Frames before a malformed line are yielded before
    ``MalformedFrameError`` is raised for it.
    """
    yield from StreamingParser().parse(chunk)


def parse_chunk(chunk: str) -> list[SSEFrame]:
    """Parse every frame contained in ``chunk``."""
    return list(iter_frames(chunk))


class StreamingParser:
    """Frame parser that keeps counters for monitoring."""

    def __init__(self):
        self.reset_stats()

    def parse(self, chunk: str) -> Iterator[SSEFrame]:
        """Yield the frames of ``chunk`` while updating the counters."""
        for raw_line in chunk.split("\n"):
            if not raw_line.strip():
                continue
            self.stats['total_lines'] += 1

            if not raw_line.startswith(DATA_PREFIX):
                self.stats['ignored_lines'] += 1
                logger.debug("Ignoring non-data SSE line", line=raw_line[:80])
                continue

            try:
                payload = _decode_line(raw_line)
            except MalformedFrameError:
                self.stats['malformed_frames'] += 1
                raise

            status = _classify(payload)
            if status is None:
                self.stats['unknown_status'] += 1
                logger.debug(
                    "Ignoring frame with unknown status",
                    status=payload.get("status"),
                )
                continue

            self.stats['frames'] += 1
            yield SSEFrame(status=status, payload=payload)

    def get_stats(self) -> dict[str, int]:
        """Get parser statistics for monitoring."""
        return self.stats.copy()

    def reset_stats(self) -> None:
        """Reset statistics counters."""
        self.stats = {
            'total_lines': 0,
            'frames': 0,
            'ignored_lines': 0,
            'unknown_status': 0,
            'malformed_frames': 0,
        }
