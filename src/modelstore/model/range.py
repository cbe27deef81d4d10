"""Inclusive range predicate for ``filter``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Range:
    """Matches values between ``start`` and ``end``, both inclusive.

    Usage:
        store.filter(Track, {"duration": Range(180, 240)})
    """

    start: Any
    end: Any

    def contains(self, value: Any) -> bool:
        if value is None:
            return False
        try:
            return self.start <= value <= self.end
        except TypeError:
            return False

    def __str__(self) -> str:
        return f"{self.start!r}..{self.end!r}"


__all__ = [
    "Range",
]
