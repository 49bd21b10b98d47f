"""Tests for olama/core/transport.py."""

from __future__ import annotations

import socket
from unittest.mock import MagicMock, patch

import pytest

from olama.core.transport import Transport, abort_response, normalize_base_url


def test_normalize_strips_single_trailing_slash():
    assert normalize_base_url("http://localhost:11434/") == "http://localhost:11434"
    assert normalize_base_url(" http://localhost:11434 ") == "http://localhost:11434"


@pytest.mark.parametrize("value", ["", "  ", None])
def test_normalize_rejects_empty(value):
    with pytest.raises(ValueError):
        normalize_base_url(value)


def test_get_uses_fixed_connect_and_per_call_read_timeout():
    transport = Transport("http://host:11434/", connect_timeout=7)
    with patch.object(transport._session, "get") as mock_get:
        transport.get("/api/tags", 30)
    mock_get.assert_called_once_with("http://host:11434/api/tags", timeout=(7, 30))
    transport.close()


def test_post_stream_sends_json_and_streams():
    transport = Transport("http://host:11434")
    payload = {"model": "m", "messages": [], "stream": True}
    with patch.object(transport._session, "post") as mock_post:
        transport.post_stream("/api/chat", payload, 300)
    mock_post.assert_called_once_with(
        "http://host:11434/api/chat",
        json=payload,
        timeout=(10, 300),
        stream=True,
    )
    transport.close()


def test_session_sends_json_content_type():
    transport = Transport()
    assert transport._session.headers["Content-Type"] == "application/json"
    transport.close()


# ── abort_response ───────────────────────────────────────────────────────


def test_abort_shuts_down_socket_without_closing_response():
    response = MagicMock()
    sock = response.raw.connection.sock
    abort_response(response)
    sock.shutdown.assert_called_once_with(socket.SHUT_RDWR)
    response.close.assert_not_called()


def test_abort_uses_body_socket_when_connection_dropped_it():
    response = MagicMock()
    response.raw.connection.sock = None
    sock = response.raw._fp.fp.raw._sock
    abort_response(response)
    sock.shutdown.assert_called_once_with(socket.SHUT_RDWR)


def test_abort_without_socket_closes_response():
    response = MagicMock(spec=["close"])
    abort_response(response)
    response.close.assert_called_once_with()


def test_abort_closes_response_when_shutdown_fails():
    response = MagicMock()
    response.raw.connection.sock.shutdown.side_effect = OSError("not connected")
    abort_response(response)
    response.close.assert_called_once_with()
