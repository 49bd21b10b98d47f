"""One chat exchange: request, streamed tokens, terminal result.

State machine::

    IDLE -> SENDING -> STREAMING -> COMPLETED
               |           |----> FAILED
               |           '----> CANCELLED
               |----> FAILED
               '----> CANCELLED

All transitions happen on the thread running ``ChatExchange.run``.
``cancel`` sets the exchange's token, which the decoder polls between
lines, and shuts down the live response's socket so a read blocked on
a stalled server returns.  A cancel issued while the request is still
waiting for response headers takes effect once they arrive.
``on_token`` is invoked only while STREAMING, once per fragment, in
arrival order.  A ``cancel`` that returns True always yields
``Cancelled``.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator, Sequence
from concurrent.futures import Future
from dataclasses import dataclass
from enum import StrEnum

import requests

from .cancellation import CancellationToken
from .classifier import classify_exception, classify_status
from .constants import CHAT_PATH, CHAT_READ_TIMEOUT
from .errors import ErrorKind, OllamaError
from .models import Message
from .request_builder import build_chat_request
from .stream_decoder import DecodeOutcome, StreamDecoder
from .transport import Transport, abort_response

logger = logging.getLogger(__name__)


class ExchangeState(StrEnum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATES = frozenset({ExchangeState.COMPLETED, ExchangeState.CANCELLED, ExchangeState.FAILED})

_TRANSITIONS: dict[ExchangeState, frozenset[ExchangeState]] = {
    ExchangeState.IDLE: frozenset({ExchangeState.SENDING}),
    ExchangeState.SENDING: frozenset({ExchangeState.STREAMING, ExchangeState.FAILED, ExchangeState.CANCELLED}),
    ExchangeState.STREAMING: frozenset({ExchangeState.COMPLETED, ExchangeState.FAILED, ExchangeState.CANCELLED}),
    ExchangeState.COMPLETED: frozenset(),
    ExchangeState.CANCELLED: frozenset(),
    ExchangeState.FAILED: frozenset(),
}


# ── Results ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Completed:
    message: Message

    @property
    def state(self) -> ExchangeState:
        return ExchangeState.COMPLETED


@dataclass(frozen=True)
class Failed:
    kind: ErrorKind
    detail: str
    cause: BaseException | None = None

    @property
    def state(self) -> ExchangeState:
        return ExchangeState.FAILED

    @classmethod
    def from_error(cls, error: OllamaError) -> Failed:
        return cls(kind=error.kind, detail=error.detail, cause=error.cause)


@dataclass(frozen=True)
class Cancelled:
    """Exchange stopped on request.  Partial text stays with the caller."""

    @property
    def state(self) -> ExchangeState:
        return ExchangeState.CANCELLED


ExchangeResult = Completed | Failed | Cancelled

TokenCallback = Callable[[str], None]
StateListener = Callable[[ExchangeState, ExchangeState], None]


# ── Exchange ─────────────────────────────────────────────────────────────────


class ChatExchange:
    def __init__(
        self,
        transport: Transport,
        model: str,
        history: Sequence[Message],
        on_token: TokenCallback,
        read_timeout: float = CHAT_READ_TIMEOUT,
        on_state_change: StateListener | None = None,
    ):
        self.transport = transport
        self.model = model
        self.history = list(history)
        self.read_timeout = read_timeout
        self._on_token = on_token
        self._on_state_change = on_state_change
        self._token = CancellationToken()
        self._state = ExchangeState.IDLE
        self._state_lock = threading.Lock()
        self.tokens_delivered = 0

    @property
    def state(self) -> ExchangeState:
        with self._state_lock:
            return self._state

    def cancel(self) -> bool:
        """Request cooperative cancellation.

        Returns False when the exchange already finished or cancel was
        already requested.
        """
        # Held across the token set so a racing terminal transition
        # either lands first (False) or sees the token and yields Cancelled.
        with self._state_lock:
            if self._state in TERMINAL_STATES:
                return False
            return self._token.cancel()

    # ── lifecycle ─────────────────────────────────────────────────

    def run(self) -> ExchangeResult:
        """Drive the exchange to a terminal state.  Never raises for I/O failures."""
        self._transition(ExchangeState.SENDING)
        start = time.monotonic()
        if self._token.is_cancelled:
            return self._cancelled()

        payload = build_chat_request(self.model, self.history)
        logger.debug("Chat request model=%s messages=%d", self.model, len(self.history))

        try:
            response = self.transport.post_stream(CHAT_PATH, payload, self.read_timeout)
        except Exception as exc:
            if self._token.is_cancelled:
                return self._cancelled()
            return self._failed(classify_exception(exc))

        def abort() -> None:
            abort_response(response)

        self._token.add_callback(abort)
        try:
            return self._consume(response, start)
        finally:
            self._token.remove_callback(abort)
            response.close()

    def _consume(self, response: requests.Response, start: float) -> ExchangeResult:
        if self._token.is_cancelled:
            return self._cancelled()
        status_error = classify_status(response.status_code, self.model)
        if status_error is not None:
            return self._failed(status_error)
        if response.encoding is None:
            response.encoding = "utf-8"

        decoder = StreamDecoder(self._token, self._deliver)
        try:
            outcome = decoder.decode(self._lines(response))
        except OllamaError as exc:
            return self._failed(exc)
        except Exception as exc:
            # Closing the response from cancel() surfaces here as a read error.
            if self._token.is_cancelled:
                return self._cancelled()
            return self._failed(classify_exception(exc))

        if outcome is DecodeOutcome.CANCELLED:
            return self._cancelled()

        duration_ms = int((time.monotonic() - start) * 1000)
        message = Message.assistant(decoder.content, generation_duration_ms=duration_ms)
        if not self._transition(ExchangeState.COMPLETED, unless_cancelled=True):
            return self._cancelled()
        logger.debug(
            "Chat response model=%s content=%d chars fragments=%d duration=%dms",
            self.model,
            len(message.content),
            decoder.fragment_count,
            duration_ms,
        )
        return Completed(message)

    def _lines(self, response: requests.Response) -> Iterator[str | bytes]:
        for line in response.iter_lines(decode_unicode=True):
            if self._state is ExchangeState.SENDING:
                self._transition(ExchangeState.STREAMING)
            yield line

    def _deliver(self, fragment: str) -> None:
        if self._state is not ExchangeState.STREAMING:
            return
        self.tokens_delivered += 1
        self._on_token(fragment)

    # ── terminal helpers ──────────────────────────────────────────

    def _failed(self, error: OllamaError) -> Failed | Cancelled:
        if not self._transition(ExchangeState.FAILED, unless_cancelled=True):
            return self._cancelled()
        logger.info("Exchange %s failed: %s: %s", self.model, error.kind.value, error.detail)
        return Failed.from_error(error)

    def _cancelled(self) -> Cancelled:
        self._transition(ExchangeState.CANCELLED)
        logger.info("Exchange %s cancelled after %d token(s)", self.model, self.tokens_delivered)
        return Cancelled()

    def _transition(self, new_state: ExchangeState, *, unless_cancelled: bool = False) -> bool:
        """Move to ``new_state``; returns False if refused because cancel was requested."""
        with self._state_lock:
            old_state = self._state
            if new_state not in _TRANSITIONS[old_state]:
                raise RuntimeError(f"Illegal exchange transition {old_state.value} -> {new_state.value}")
            if unless_cancelled and self._token.is_cancelled:
                return False
            self._state = new_state
        logger.debug("Exchange %s: %s -> %s", self.model, old_state.value, new_state.value)
        if self._on_state_change is not None:
            try:
                self._on_state_change(old_state, new_state)
            except Exception as exc:
                logger.warning("State listener failed on %s -> %s: %s", old_state.value, new_state.value, exc)
        return True


# ── Handle returned to callers ───────────────────────────────────────────────


class ExchangeHandle:
    """Future-like view of a running exchange."""

    def __init__(self, exchange: ChatExchange, future: Future[ExchangeResult]):
        self.exchange = exchange
        self._future = future

    @property
    def state(self) -> ExchangeState:
        return self.exchange.state

    def result(self, timeout: float | None = None) -> ExchangeResult:
        return self._future.result(timeout)

    def done(self) -> bool:
        return self._future.done()

    def cancel(self) -> bool:
        return self.exchange.cancel()

    def add_done_callback(self, callback: Callable[[ExchangeResult], None]) -> None:
        self._future.add_done_callback(lambda fut: callback(fut.result()))
