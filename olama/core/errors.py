"""Client error types."""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    CONNECTION_FAILED = "connection_failed"  # network unreachable, connection refused
    TIMEOUT = "timeout"  # no response within the configured timeout
    MODEL_NOT_FOUND = "model_not_found"  # HTTP 404
    INVALID_REQUEST = "invalid_request"  # HTTP 400
    SERVER_ERROR = "server_error"  # HTTP 5xx and anything unclassified
    PARSE_ERROR = "parse_error"  # body failed structural parsing


class OllamaError(Exception):
    """Client call failure tagged with one of the closed set of error kinds.

    ``detail`` is the human-readable message meant for the user; the
    underlying exception (if any) is kept on ``cause`` and chained as
    ``__cause__`` by the raiser.
    """

    def __init__(
        self,
        kind: ErrorKind,
        detail: str,
        cause: BaseException | None = None,
    ):
        super().__init__(detail)
        self.kind = kind
        self.detail = detail
        self.cause = cause

    @property
    def is_network_error(self) -> bool:
        """True when the failure is infrastructure-related (not a request problem)."""
        return self.kind in (ErrorKind.CONNECTION_FAILED, ErrorKind.TIMEOUT)

    def __repr__(self) -> str:
        return f"OllamaError(kind={self.kind.value!r}, detail={self.detail!r})"
