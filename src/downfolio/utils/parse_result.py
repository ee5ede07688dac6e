"""Outcome of reading a persisted file that may fall back to a default."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class ParseResult(Generic[T]):
    """Either the parsed value, or a default used because parsing failed.

    ``degraded`` is True when the file existed but could not be parsed and
    ``value`` is the fallback. ``error`` then describes the failure.
    """

    value: T
    degraded: bool = False
    error: str | None = None

    @classmethod
    def ok(cls, value: T) -> ParseResult[T]:
        return cls(value=value)

    @classmethod
    def fallback(cls, default: T, error: str) -> ParseResult[T]:
        return cls(value=default, degraded=True, error=error)
