"""Typer CLI entrypoint for droneops."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError

from droneops.delivery.base import Publisher
from droneops.delivery.data_url import DataUrlPublisher
from droneops.delivery.local_disk import LocalDiskPublisher
from droneops.layout.loader import load_layout
from droneops.layout.models import ReportLayout
from droneops.orchestrator.pipeline import generate_report
from droneops.records.models import InspectionRecord
from droneops.render.docx_renderer import load_docx
from droneops.render.xlsx_renderer import load_xlsx
from droneops.templates.loader import load_templates
from droneops.templates.placeholder_parser import fold_split_placeholders, parse_placeholders
from droneops.utils.errors import TemplateNotFound

app = typer.Typer(help="Drone inspection report CLI", rich_markup_mode=None)

EXIT_OK = 0
EXIT_INVALID_INPUT = 2
EXIT_GENERATION_FAILED = 3


@app.callback()
def cli_callback() -> None:
    """CLI root callback to keep subcommands explicit."""


@app.command("generate")
def generate_command(
    record: Annotated[Path, typer.Option(exists=True, dir_okay=False, file_okay=True)],
    template_dir: Annotated[Path, typer.Option(file_okay=False)] = Path("templates"),
    out_dir: Annotated[Path, typer.Option(file_okay=False)] = Path("output"),
    layout: Annotated[Path | None, typer.Option()] = None,
    delivery: Annotated[
        str,
        typer.Option(help="Where documents go: disk (into --out-dir) or data-url (inline)."),
    ] = "disk",
) -> None:
    """Generate the Word report and Excel service sheet for one record JSON file."""

    normalized_delivery = delivery.lower().strip().replace("_", "-")
    if normalized_delivery not in {"disk", "data-url"}:
        typer.echo("ERROR: --delivery must be one of: disk, data-url.")
        raise typer.Exit(code=EXIT_INVALID_INPUT)

    try:
        layout_model = load_layout(layout)
        inspection = _load_record(record)
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_INVALID_INPUT) from exc

    publisher: Publisher
    if normalized_delivery == "data-url":
        publisher = DataUrlPublisher()
    else:
        publisher = LocalDiskPublisher(out_dir, url_prefix=out_dir.as_posix())

    result = asyncio.run(
        generate_report(
            inspection,
            templates=template_dir,
            publisher=publisher,
            layout=layout_model,
        )
    )
    typer.echo(json.dumps(result.to_payload(), ensure_ascii=False, indent=2))
    if not result.success:
        raise typer.Exit(code=EXIT_GENERATION_FAILED)
    raise typer.Exit(code=EXIT_OK)


@app.command("check-templates")
def check_templates_command(
    template_dir: Annotated[Path, typer.Option(file_okay=False)] = Path("templates"),
    layout: Annotated[Path | None, typer.Option()] = None,
) -> None:
    """Check both templates against the layout contract."""

    try:
        layout_model = load_layout(layout)
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_INVALID_INPUT) from exc

    try:
        problems = _template_problems(template_dir, layout_model)
    except TemplateNotFound as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=EXIT_GENERATION_FAILED) from exc

    if problems:
        for problem in problems:
            typer.echo(f"ERROR: {problem}")
        raise typer.Exit(code=EXIT_GENERATION_FAILED)
    typer.echo("INFO: templates match the layout")
    raise typer.Exit(code=EXIT_OK)


def _template_problems(template_dir: Path, layout: ReportLayout) -> list[str]:
    templates = load_templates(template_dir, layout)
    problems: list[str] = []

    document = load_docx(templates.word, templates.word_name)
    folded = fold_split_placeholders(document)
    if folded:
        typer.echo(f"INFO: {folded} placeholder(s) split across runs will be merged")
    parse_result = parse_placeholders(document)
    for item in parse_result.unsupported:
        problems.append(f"malformed placeholder ({item.kind}) {item.text!r} in {item.context!r}")

    known = layout.known_word_placeholders()
    unknown = sorted({*parse_result.fields, *parse_result.image_fields} - known)
    if unknown:
        typer.echo(
            "WARNING: placeholders not produced by the layout will render as "
            f"{layout.default_text!r}: {', '.join(unknown)}"
        )
    image_slots = set(layout.image_placeholders())
    for name in parse_result.image_fields:
        if name in known and name not in image_slots:
            problems.append(f"image tag {{%{name}}} is bound to a text field")
    for name in parse_result.fields:
        if name in image_slots:
            problems.append(f"text tag {{{name}}} is bound to an image slot (use {{%{name}}})")

    workbook = load_xlsx(templates.excel, templates.excel_name)
    if layout.sheet.sheet_name not in workbook.sheetnames:
        problems.append(
            f"worksheet {layout.sheet.sheet_name!r} not found in {templates.excel_name} "
            f"(sheets: {', '.join(workbook.sheetnames)})"
        )

    return problems


def _load_record(path: Path) -> InspectionRecord:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Record file must be valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise ValueError("Record JSON must be an object")
    try:
        return InspectionRecord.model_validate(raw)
    except ValidationError as exc:
        raise ValueError(f"Inspection record validation failed: {exc}") from exc


def main() -> None:
    """Console script entrypoint."""

    app()


if __name__ == "__main__":
    main()
