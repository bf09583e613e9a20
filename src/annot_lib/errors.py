"""Exceptions raised while loading, validating and exporting annotation files."""
from __future__ import annotations

from typing import Optional


class IngestError(ValueError):
    """Base class for failures that abort a file load or an export."""


class FormatUnrecognizedError(IngestError):
    """Raised when none of the supported layouts matches the file."""


class MalformedRecordError(IngestError):
    """Raised when a line or object that should be JSON does not parse.

    The whole load/accessor call is aborted; records are never skipped
    because that would shift every later index.
    """

    def __init__(
        self,
        message: str,
        *,
        line: Optional[int] = None,
        object_index: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.line = line
        self.object_index = object_index


class ValidationFailure(ValueError):
    """Raised when a save is rejected. ``rule`` names the check that failed."""

    def __init__(self, rule: str, message: str) -> None:
        super().__init__(message)
        self.rule = rule

    def __str__(self) -> str:
        return f"[{self.rule}] {self.args[0]}"


__all__ = [
    "IngestError",
    "FormatUnrecognizedError",
    "MalformedRecordError",
    "ValidationFailure",
]
