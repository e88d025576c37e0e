"""Load the two well-known template files into memory."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from droneops.layout.loader import default_layout
from droneops.layout.models import ReportLayout
from droneops.utils.errors import TemplateNotFound


@dataclass(frozen=True)
class TemplateSet:
    """Word and spreadsheet template buffers, read-only for every merge."""

    word: bytes
    excel: bytes
    word_name: str = "template.docx"
    excel_name: str = "template.xlsx"


def read_template(template_dir: Path, name: str, *, label: str) -> bytes:
    """Read one template file, raising TemplateNotFound when it is unavailable."""

    path = template_dir / name
    try:
        return path.read_bytes()
    except FileNotFoundError as exc:
        raise TemplateNotFound(
            f"{label} template file ('{name}') not found in '{template_dir}'.",
            template_name=name,
        ) from exc
    except OSError as exc:
        raise TemplateNotFound(
            f"{label} template file ('{name}') could not be read: {exc}",
            template_name=name,
        ) from exc


def load_templates(template_dir: Path, layout: ReportLayout | None = None) -> TemplateSet:
    """Read the Word and Excel templates named by the layout."""

    layout = layout or default_layout()
    return TemplateSet(
        word=read_template(template_dir, layout.word.template, label="Word"),
        excel=read_template(template_dir, layout.sheet.template, label="Excel"),
        word_name=layout.word.template,
        excel_name=layout.sheet.template,
    )
