"""Pooled HTTP transport shared by every client call.

One ``requests.Session`` with a mounted ``HTTPAdapter`` sized for
concurrent use: model listing, connection probes and a chat exchange may
all be in flight at once.  The connect timeout is fixed per transport;
read timeouts are chosen per call.  Exceptions from requests propagate
unchanged; classification is the caller's job (see ``classifier``).
"""

from __future__ import annotations

import logging
import socket
from typing import Any

import requests
from requests.adapters import HTTPAdapter

from .constants import CONNECT_TIMEOUT, DEFAULT_BASE_URL, POOL_SIZE

logger = logging.getLogger(__name__)


def normalize_base_url(base_url: str) -> str:
    """Strip whitespace and a trailing slash; reject empty values."""
    if base_url is None or not base_url.strip():
        raise ValueError("Base URL cannot be null or empty")
    base_url = base_url.strip()
    return base_url[:-1] if base_url.endswith("/") else base_url


class Transport:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        connect_timeout: float = CONNECT_TIMEOUT,
        pool_size: int = POOL_SIZE,
    ):
        self._base_url = normalize_base_url(base_url)
        self.connect_timeout = connect_timeout
        self._session = requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})
        # No automatic retries: every call is a single attempt.
        adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size, max_retries=0)
        self._session.mount("http://", adapter)
        self._session.mount("https://", adapter)

    @property
    def base_url(self) -> str:
        return self._base_url

    @base_url.setter
    def base_url(self, value: str) -> None:
        self._base_url = normalize_base_url(value)
        logger.debug("Base URL set to %s", self._base_url)

    def url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    def get(self, path: str, read_timeout: float) -> requests.Response:
        return self._session.get(
            self.url(path),
            timeout=(self.connect_timeout, read_timeout),
        )

    def post_stream(self, path: str, payload: dict[str, Any], read_timeout: float) -> requests.Response:
        """POST ``payload`` as JSON and return the response with its body unread.

        The caller owns the response and must close it.
        """
        return self._session.post(
            self.url(path),
            json=payload,
            timeout=(self.connect_timeout, read_timeout),
            stream=True,
        )

    def close(self) -> None:
        self._session.close()


def _response_socket(response: requests.Response) -> socket.socket | None:
    raw = getattr(response, "raw", None)
    sock = getattr(getattr(raw, "connection", None), "sock", None)
    if sock is not None:
        return sock
    # http.client drops conn.sock when the server asks to close; the body
    # file object still holds the socket.
    fp = getattr(getattr(raw, "_fp", None), "fp", None)
    return getattr(getattr(fp, "raw", None), "_sock", None)


def abort_response(response: requests.Response) -> None:
    """Interrupt a streamed response from another thread.

    ``Response.close`` does not wake a ``recv`` already waiting on the
    socket, and blocks on the reader's buffer lock until it returns.
    Shutting the socket down makes the pending read return at once; the
    reading thread then closes the response itself.  Without a reachable
    socket this falls back to ``close``.
    """
    sock = _response_socket(response)
    if sock is None:
        response.close()
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError as exc:
        logger.debug("Socket shutdown on abort failed: %s", exc)
        response.close()
