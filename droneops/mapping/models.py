"""Merge field containers produced by the field mapper."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

WordValue = str | bytes


@dataclass(frozen=True)
class SheetFields:
    """Values for fixed cell addresses plus the battery row block."""

    sheet_name: str
    cells: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    battery_rows: tuple[tuple[str, ...], ...] = ()


@dataclass(frozen=True)
class MergeFields:
    """Read-only field maps for the Word and spreadsheet merges."""

    word: Mapping[str, WordValue]
    sheet: SheetFields
