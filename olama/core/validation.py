"""Pre-submission checks for user-entered message text."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    error_message: str | None = None

    @classmethod
    def valid(cls) -> ValidationResult:
        return cls(True)

    @classmethod
    def invalid(cls, error_message: str) -> ValidationResult:
        return cls(False, error_message)


def validate_message_text(text: str | None) -> ValidationResult:
    if text is None:
        return ValidationResult.invalid("Message cannot be null")
    if not text.strip():
        return ValidationResult.invalid("Message cannot be empty or contain only whitespace")
    return ValidationResult.valid()
