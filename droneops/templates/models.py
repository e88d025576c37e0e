"""Data models for template placeholder parsing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

PlaceholderKind = Literal["text", "image"]


@dataclass(frozen=True)
class Occurrence:
    """A placeholder that sits entirely inside a single run."""

    field_name: str
    kind: PlaceholderKind
    run_id: str
    start: int
    end: int


@dataclass(frozen=True)
class UnsupportedOccurrence:
    """A placeholder-like token that cannot be merged."""

    kind: str
    text: str
    context: str
    run_id: str | None
    start: int | None
    end: int | None


@dataclass
class ParseResult:
    """Placeholder parsing output."""

    fields: list[str] = field(default_factory=list)
    image_fields: list[str] = field(default_factory=list)
    occurrences: list[Occurrence] = field(default_factory=list)
    unsupported: list[UnsupportedOccurrence] = field(default_factory=list)
