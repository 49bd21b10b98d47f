"""Serialize a model name and message history into the ``/api/chat`` body."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from .models import Message


def build_chat_request(model: str, history: Sequence[Message]) -> dict[str, Any]:
    # Timestamps and durations stay client-side; the server only sees role/content.
    return {
        "model": model,
        "messages": [message.to_api_format() for message in history],
        "stream": True,
    }
