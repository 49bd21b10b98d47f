"""Data model: chat messages, model descriptors and wire records.

Messages and descriptors are frozen dataclasses handed to callers.  The
pydantic models at the bottom describe the server's JSON shapes and are
only used for parsing; a ``ValidationError`` from them means the body
failed structural parsing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from .constants import SIZE_UNITS


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


# ── Message ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Message:
    """One conversation turn.

    ``generation_duration_ms`` is only set on assistant messages built by a
    completed exchange.
    """

    role: Role
    content: str
    created_at: datetime = field(default_factory=datetime.now)
    generation_duration_ms: int | None = None

    def __post_init__(self) -> None:
        # Accept plain strings for role ("user") and normalize to the enum.
        object.__setattr__(self, "role", Role(self.role))
        if self.generation_duration_ms is not None:
            if self.generation_duration_ms < 0:
                raise ValueError(f"generation_duration_ms must be >= 0, got {self.generation_duration_ms}")
            if self.role is not Role.ASSISTANT:
                raise ValueError("generation_duration_ms is only valid on assistant messages")

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(Role.USER, content)

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(Role.SYSTEM, content)

    @classmethod
    def assistant(cls, content: str, generation_duration_ms: int | None = None) -> Message:
        return cls(Role.ASSISTANT, content, generation_duration_ms=generation_duration_ms)

    def to_api_format(self) -> dict[str, str]:
        """Minimal ``{role, content}`` pair sent to ``/api/chat``."""
        return {"role": self.role.value, "content": self.content}


# ── Model descriptor ─────────────────────────────────────────────────────────


def format_bytes(size_bytes: int) -> str:
    """Human-readable size, e.g. ``4.1 GB``.

    Values under 1024 render as an integer byte count; otherwise divide by
    1024 until under 1024 or the unit reaches TB, one decimal place.
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    size = float(size_bytes)
    unit_index = 0
    while size >= 1024 and unit_index < len(SIZE_UNITS) - 1:
        size /= 1024
        unit_index += 1
    return f"{size:.1f} {SIZE_UNITS[unit_index]}"


@dataclass(frozen=True)
class ModelDescriptor:
    name: str
    human_size: str
    raw_size_bytes: int
    modified_at: str

    @classmethod
    def from_record(cls, record: RawModelRecord) -> ModelDescriptor:
        return cls(
            name=record.name,
            human_size=format_bytes(record.size),
            raw_size_bytes=record.size,
            modified_at=record.modified_at,
        )

    def __str__(self) -> str:
        return f"{self.name} ({self.human_size})"


def default_model(models: list[ModelDescriptor], preferred: str | None = None) -> ModelDescriptor | None:
    """Pick the selection a UI should start with.

    ``preferred`` (typically the last model the user picked) wins when the
    server still has it; otherwise the first entry of the sorted list.
    """
    if preferred:
        for model in models:
            if model.name == preferred:
                return model
    return models[0] if models else None


# ── Wire records (parsing only) ──────────────────────────────────────────────


class RawModelRecord(BaseModel):
    name: str
    size: int = Field(ge=0)
    modified_at: str


class TagsResponse(BaseModel):
    """``GET /api/tags`` body.  A missing ``models`` key means no models."""

    models: list[RawModelRecord] = Field(default_factory=list)


class ChunkMessage(BaseModel):
    role: str = Role.ASSISTANT.value
    content: str | None = ""


class ChatChunk(BaseModel):
    """One NDJSON line of a streamed ``/api/chat`` response."""

    message: ChunkMessage | None = None
    done: bool = False
    error: str | None = None

    @property
    def fragment(self) -> str:
        if self.message is None:
            return ""
        return self.message.content or ""


def parse_tags(payload: Any) -> list[ModelDescriptor]:
    """Decode an already-loaded ``/api/tags`` JSON value into descriptors (unsorted)."""
    tags = TagsResponse.model_validate(payload)
    return [ModelDescriptor.from_record(record) for record in tags.models]
