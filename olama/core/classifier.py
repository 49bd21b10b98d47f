"""Map transport and protocol failures onto ``ErrorKind``.

Two entry points:
  classify_status()     -- an HTTP status known before any body is read
  classify_exception()  -- an exception raised while using the transport

Both return an ``OllamaError`` for the caller to raise or to fold into an
exchange result; neither raises.
"""

from __future__ import annotations

import json

import requests
import urllib3
from pydantic import ValidationError

from .errors import ErrorKind, OllamaError

CONNECTION_FAILED_DETAIL = "Cannot connect to Ollama. Please ensure Ollama is running."
TIMEOUT_DETAIL = "Request timed out. Ollama may be busy."
INVALID_REQUEST_DETAIL = "Invalid request format."
SERVER_ERROR_DETAIL = "Ollama server error. Please try again."


def classify_status(status_code: int, model: str | None = None) -> OllamaError | None:
    """Return the error for a non-success status, or None for 2xx."""
    if 200 <= status_code < 300:
        return None
    if status_code == 404:
        if model:
            detail = f"Model '{model}' not found. Please select a different model."
        else:
            detail = "Requested resource not found on the Ollama server."
        return OllamaError(ErrorKind.MODEL_NOT_FOUND, detail)
    if status_code == 400:
        return OllamaError(ErrorKind.INVALID_REQUEST, INVALID_REQUEST_DETAIL)
    if status_code >= 500:
        return OllamaError(ErrorKind.SERVER_ERROR, f"{SERVER_ERROR_DETAIL} (status {status_code})")
    return OllamaError(ErrorKind.SERVER_ERROR, f"Unexpected response status {status_code} from Ollama.")


def classify_exception(exc: BaseException) -> OllamaError:
    """Classify an exception raised by requests, json or pydantic."""
    if isinstance(exc, OllamaError):
        return exc
    # ConnectTimeout is both a ConnectionError and a Timeout; timeout wins.
    if isinstance(exc, requests.exceptions.Timeout) or _is_stream_read_timeout(exc):
        return OllamaError(ErrorKind.TIMEOUT, TIMEOUT_DETAIL, exc)
    if isinstance(exc, (requests.exceptions.ConnectionError, requests.exceptions.ChunkedEncodingError)):
        return OllamaError(ErrorKind.CONNECTION_FAILED, CONNECTION_FAILED_DETAIL, exc)
    if isinstance(exc, (json.JSONDecodeError, ValidationError)):
        return OllamaError(ErrorKind.PARSE_ERROR, "Failed to parse response from Ollama.", exc)
    return OllamaError(ErrorKind.SERVER_ERROR, f"Unexpected error occurred: {exc}", exc)


def _is_stream_read_timeout(exc: BaseException) -> bool:
    # requests re-raises a read timeout hit while iterating a streamed body
    # as ConnectionError(ReadTimeoutError), not as ReadTimeout.
    return (
        isinstance(exc, requests.exceptions.ConnectionError)
        and bool(exc.args)
        and isinstance(exc.args[0], urllib3.exceptions.ReadTimeoutError)
    )
