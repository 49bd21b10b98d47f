"""Shared client constants, imported by transport, client, and config.

This module has NO imports from the olama package so every other module
can depend on it without cycles.
"""

from __future__ import annotations

# ── Server ───────────────────────────────────────────────────────────────────

DEFAULT_BASE_URL = "http://localhost:11434"

TAGS_PATH = "/api/tags"
CHAT_PATH = "/api/chat"

# ── Timeouts (seconds) ───────────────────────────────────────────────────────

# Connection timeout is fixed for every call; read timeouts vary per call type.
CONNECT_TIMEOUT = 10
LIST_MODELS_TIMEOUT = 30
PROBE_TIMEOUT = 10
CHAT_READ_TIMEOUT = 300  # 5 min: local generations can be slow

# ── Pooling ──────────────────────────────────────────────────────────────────

POOL_SIZE = 10
MAX_WORKERS = 4

# ── Size formatting ──────────────────────────────────────────────────────────

SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")
