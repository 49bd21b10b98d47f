"""Coded status messages for terminal output.

Every line is tagged with a four-letter code so output can be filtered
(``grep '{AERR}'``).  Streaming tokens are written raw between
``emit_stream_start`` and ``emit_stream_end``.
"""

import sys
from datetime import datetime
from enum import StrEnum


class M(StrEnum):
    # ── Model / Exchange ──
    ARSP = "ARSP"  # assistant text response (streamed content)
    AERR = "AERR"  # exchange failed
    ACAN = "ACAN"  # exchange cancelled
    CRES = "CRES"  # chat response metadata (duration)
    MMDL = "MMDL"  # model listing entry
    MCON = "MCON"  # connection status

    # ── System ──
    SINF = "SINF"  # system info
    SERR = "SERR"  # system error
    SCFG = "SCFG"  # config message


_enabled = True


def set_enabled(value: bool) -> None:
    """Silence (or re-enable) all emit output, e.g. when used as a library."""
    global _enabled
    _enabled = value


def is_enabled() -> bool:
    return _enabled


def _ts() -> str:
    return datetime.now().strftime("%H:%M:%S")


def emit(code: M, message: str) -> None:
    if not _enabled:
        return
    print(f"{{{code.value}}}{_ts()} {message}", flush=True)


def emit_stream_start(code: M, label: str) -> None:
    if not _enabled:
        return
    print(f"{{{code.value}}}{_ts()} {label}", end="", flush=True)


def emit_stream_token(token: str) -> None:
    if not _enabled:
        return
    sys.stdout.write(token)
    sys.stdout.flush()


def emit_stream_end() -> None:
    if not _enabled:
        return
    print("", flush=True)
