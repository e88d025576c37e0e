"""Layout loading utilities for the template contract."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError

from droneops.layout.models import ReportLayout

DEFAULT_LAYOUT_PATH = Path(__file__).with_name("layout.yaml")


def load_layout(path: Path | None = None) -> ReportLayout:
    """Load and validate the template layout from YAML."""

    layout_path = path or DEFAULT_LAYOUT_PATH

    try:
        raw = yaml.safe_load(layout_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValueError(f"Layout file not found: {layout_path}") from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in layout file: {layout_path}") from exc

    if not isinstance(raw, dict):
        raise ValueError(f"Layout file must contain a mapping: {layout_path}")

    try:
        return ReportLayout.model_validate(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid layout schema: {layout_path}: {exc}") from exc


@lru_cache(maxsize=1)
def default_layout() -> ReportLayout:
    """Return the packaged layout, parsed once per process."""

    return load_layout(DEFAULT_LAYOUT_PATH)
