"""Incremental NDJSON decoder for streamed ``/api/chat`` responses.

The server writes one JSON object per line as generation proceeds, so
lines are decoded one at a time and every fragment is handed to the
callback before the next line is read.  Nothing buffers the whole body.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from enum import StrEnum

from pydantic import ValidationError

from .cancellation import CancellationToken
from .errors import ErrorKind, OllamaError
from .models import ChatChunk

logger = logging.getLogger(__name__)


class DecodeOutcome(StrEnum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class StreamDecoder:
    """Consume raw lines until ``done``, cancellation, or a bad record.

    ``decode`` returns a ``DecodeOutcome``.  Malformed lines and
    server-reported errors raise ``OllamaError``; exceptions from the line
    iterator (transport failures) and from ``on_fragment`` propagate as-is.
    """

    def __init__(self, token: CancellationToken, on_fragment: Callable[[str], None]):
        self._token = token
        self._on_fragment = on_fragment
        self._parts: list[str] = []
        self.lines_read = 0

    @property
    def content(self) -> str:
        return "".join(self._parts)

    @property
    def fragment_count(self) -> int:
        return len(self._parts)

    def decode(self, lines: Iterable[str | bytes]) -> DecodeOutcome:
        for raw_line in lines:
            if self._token.is_cancelled:
                return DecodeOutcome.CANCELLED
            self.lines_read += 1
            chunk = self._parse(raw_line)
            if chunk is None:
                continue

            if chunk.error and chunk.message is None:
                raise OllamaError(ErrorKind.SERVER_ERROR, f"Ollama reported an error: {chunk.error}")

            fragment = chunk.fragment
            if fragment:
                self._parts.append(fragment)
                self._on_fragment(fragment)

            if chunk.done:
                return DecodeOutcome.COMPLETED

        if self._token.is_cancelled:
            return DecodeOutcome.CANCELLED
        raise OllamaError(ErrorKind.PARSE_ERROR, "Response stream ended before completion.")

    def _parse(self, raw_line: str | bytes) -> ChatChunk | None:
        """Parse one line; None for blank lines."""
        try:
            line = raw_line.decode("utf-8") if isinstance(raw_line, bytes) else raw_line
        except UnicodeDecodeError as exc:
            raise OllamaError(ErrorKind.PARSE_ERROR, "Failed to parse streaming response.", exc) from exc
        if not line.strip():
            return None
        try:
            return ChatChunk.model_validate_json(line)
        except ValidationError as exc:
            logger.debug("Malformed stream line %d: %r", self.lines_read, line[:200])
            raise OllamaError(ErrorKind.PARSE_ERROR, "Failed to parse streaming response.", exc) from exc
