"""Streaming client for a local Ollama inference server."""

from .core.client import OllamaClient
from .core.errors import ErrorKind, OllamaError
from .core.exchange import Cancelled, Completed, ExchangeHandle, ExchangeState, Failed
from .core.models import Message, ModelDescriptor, Role, default_model

__all__ = [
    "Cancelled",
    "Completed",
    "ErrorKind",
    "ExchangeHandle",
    "ExchangeState",
    "Failed",
    "Message",
    "ModelDescriptor",
    "OllamaClient",
    "OllamaError",
    "Role",
    "default_model",
]

__version__ = "0.1.0"
