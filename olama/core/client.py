"""Ollama client: model discovery, reachability probe, streaming chat.

``list_models`` and ``check_connection`` are synchronous and stateless
and may run concurrently with each other and with chat exchanges; they
share only the transport's connection pool.  ``send_message`` starts a
``ChatExchange`` on a worker thread and returns immediately with an
``ExchangeHandle``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

import requests

from .classifier import classify_exception, classify_status
from .config import OlamaConfig, load_config
from .constants import TAGS_PATH
from .errors import ErrorKind, OllamaError
from .exchange import ChatExchange, ExchangeHandle, StateListener, TokenCallback
from .models import Message, ModelDescriptor, parse_tags
from .transport import Transport

logger = logging.getLogger(__name__)


class OllamaClient:
    def __init__(
        self,
        base_url: str | None = None,
        config: OlamaConfig | None = None,
        transport: Transport | None = None,
    ):
        self.config = config or load_config()
        self._timeouts = self.config.timeouts
        self._transport = transport or Transport(
            base_url=base_url or self.config.server.base_url,
            connect_timeout=self._timeouts.connect,
            pool_size=self.config.client.pool_size,
        )
        if transport is not None and base_url:
            self._transport.base_url = base_url
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.client.max_workers,
            thread_name_prefix="olama-exchange",
        )
        self._current: ExchangeHandle | None = None
        self._current_lock = threading.Lock()

    # ── configuration ─────────────────────────────────────────────

    @property
    def base_url(self) -> str:
        return self._transport.base_url

    @base_url.setter
    def base_url(self, value: str) -> None:
        self._transport.base_url = value

    # ── model registry ────────────────────────────────────────────

    def list_models(self) -> list[ModelDescriptor]:
        """Return available models sorted by name (ordinal comparison).

        Raises ``OllamaError`` on any failure.  An empty list is a valid result.
        """
        try:
            response = self._transport.get(TAGS_PATH, self._timeouts.list_models)
        except requests.RequestException as exc:
            raise classify_exception(exc) from exc

        status_error = classify_status(response.status_code)
        if status_error is not None:
            raise status_error

        try:
            models = parse_tags(response.json())
        except ValueError as exc:  # JSONDecodeError and pydantic ValidationError
            raise OllamaError(ErrorKind.PARSE_ERROR, "Failed to parse models response.", exc) from exc

        # str ordering is by code point, which matches byte-wise UTF-8 ordering.
        models.sort(key=lambda m: m.name)
        logger.debug("Fetched %d model(s) from %s", len(models), self.base_url)
        return models

    # ── connection probe ──────────────────────────────────────────

    def check_connection(self) -> bool:
        """True only when ``/api/tags`` answers 200.  Never raises."""
        try:
            response = self._transport.get(TAGS_PATH, self._timeouts.probe)
        except (requests.RequestException, OSError, ValueError) as exc:
            logger.debug("Connection probe to %s failed: %s", self.base_url, exc)
            return False
        return response.status_code == 200

    # ── chat ──────────────────────────────────────────────────────

    def send_message(
        self,
        model: str,
        history: Sequence[Message],
        on_token: TokenCallback,
        on_state_change: StateListener | None = None,
    ) -> ExchangeHandle:
        """Start a streaming chat exchange on a worker thread.

        ``on_token`` is called on the worker thread.  Starting a new
        exchange while another is unresolved is not queued or prevented;
        await or cancel the previous handle first.
        """
        exchange = ChatExchange(
            self._transport,
            model,
            history,
            on_token,
            read_timeout=self._timeouts.chat_read,
            on_state_change=on_state_change,
        )
        handle = ExchangeHandle(exchange, self._executor.submit(exchange.run))
        with self._current_lock:
            self._current = handle
        return handle

    def cancel_current_request(self) -> bool:
        """Cancel the most recently started exchange, if still running."""
        with self._current_lock:
            handle = self._current
        if handle is None:
            return False
        return handle.cancel()

    # ── lifecycle ─────────────────────────────────────────────────

    def close(self) -> None:
        with self._current_lock:
            handle = self._current
            self._current = None
        if handle is not None:
            handle.cancel()
        self._executor.shutdown(wait=True)
        self._transport.close()

    def __enter__(self) -> OllamaClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
