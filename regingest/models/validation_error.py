from __future__ import annotations

from dataclasses import dataclass

"""Row-level validation error (non-fatal)."""

__all__ = [
    "ValidationError",
]


@dataclass(frozen=True)
class ValidationError:
    row: int  # 1-based worksheet row
    message: str
    field: str | None = None

    @property
    def summary_key(self) -> str:
        """Key used when counting errors by kind: the field, else the message."""
        return self.field or self.message
