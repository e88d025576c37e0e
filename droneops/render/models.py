"""Render report models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from droneops.templates.models import ParseResult


class ReplaceLogEntry(BaseModel):
    """Single placeholder substitution log item."""

    model_config = ConfigDict(extra="forbid")

    status: Literal["replaced", "defaulted", "image"]
    field_name: str
    run_id: str
    paragraph_path: str
    start: int
    end: int
    original_text: str
    new_text: str | None = None


class ReplaceSummary(BaseModel):
    """Aggregate replacement summary for observability."""

    model_config = ConfigDict(extra="forbid")

    total_placeholders: int
    replaced_count: int
    defaulted_count: int
    image_count: int
    folded_runs: int = 0


class ReplaceReport(BaseModel):
    """Full replacement report including touched runs."""

    model_config = ConfigDict(extra="forbid")

    entries: list[ReplaceLogEntry] = Field(default_factory=list)
    summary: ReplaceSummary
    touched_runs: list[str] = Field(default_factory=list)


class DocxRenderOutput(BaseModel):
    """Serialized Word merge result."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    content: bytes
    parse_result: ParseResult
    template_fields: list[str]
    replace_report: ReplaceReport
