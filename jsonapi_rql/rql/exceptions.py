from __future__ import annotations

from typing import Optional


class RejectedInputError(ValueError):
    """
    Raised when a structured query cannot be translated.

    Covers unknown node categories, unknown operators, unknown connectives,
    illegal comparisons against null and references to unknown fields.
    """


class RqlSyntaxError(RejectedInputError):
    """Raised when an RQL string cannot be parsed."""

    def __init__(self, message: str, position: Optional[int] = None) -> None:
        if position is not None:
            message = f"{message} (at offset {position})"
        super().__init__(message)
        self.position = position
