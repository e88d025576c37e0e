"""Docx merge engine for run-level placeholder replacement."""

from __future__ import annotations

import io
import zipfile
from collections import defaultdict
from collections.abc import Mapping

from docx import Document
from docx.document import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError
from docx.text.run import Run

from droneops.layout.loader import default_layout
from droneops.layout.models import ReportLayout
from droneops.mapping.models import WordValue
from droneops.render.images import EmbeddedImage, ImageEncoder, PillowImageEncoder, blank_image_png
from droneops.render.models import (
    DocxRenderOutput,
    ReplaceLogEntry,
    ReplaceReport,
    ReplaceSummary,
)
from droneops.templates.models import Occurrence
from droneops.templates.paragraphs import iter_paragraph_contexts
from droneops.templates.placeholder_parser import (
    fold_split_placeholders,
    parse_placeholders,
    raise_for_residual_tags,
    raise_for_unsupported,
)
from droneops.utils.docx_xml import append_run_text
from droneops.utils.errors import InvalidImage, TemplateNotFound, TemplateSyntaxError

_Piece = str | EmbeddedImage


def load_docx(template_bytes: bytes, template_name: str = "template.docx") -> DocxDocument:
    """Open a Word template from bytes, raising TemplateNotFound when unreadable."""

    try:
        return Document(io.BytesIO(template_bytes))
    except (zipfile.BadZipFile, PackageNotFoundError, KeyError, ValueError) as exc:
        raise TemplateNotFound(
            f"Word template '{template_name}' could not be loaded: {exc}",
            template_name=template_name,
        ) from exc


def render_docx(
    template_bytes: bytes,
    fields: Mapping[str, WordValue],
    *,
    layout: ReportLayout | None = None,
    image_encoder: ImageEncoder | None = None,
    template_name: str = "template.docx",
) -> DocxRenderOutput:
    """Merge ``fields`` into a Word template and return the new document bytes.

    Every tag is resolved: text tags without a value get ``layout.default_text``
    and image tags without a value get a blank image of the slot size. A tag
    left anywhere in the package afterwards raises TemplateSyntaxError. The
    template buffer itself is never modified.
    """

    layout = layout or default_layout()
    encoder = image_encoder or PillowImageEncoder()

    document = load_docx(template_bytes, template_name)
    folded = fold_split_placeholders(document)
    parse_result = parse_placeholders(document, strict=False)
    raise_for_unsupported(parse_result)

    run_lookup = _build_run_lookup(document)
    entries, touched_runs = _replace_occurrences(
        occurrences=parse_result.occurrences,
        run_lookup=run_lookup,
        fields=fields,
        layout=layout,
        encoder=encoder,
    )
    raise_for_residual_tags(
        document, resolved_runs={run_lookup[run_id]._r for run_id in touched_runs}
    )

    summary = ReplaceSummary(
        total_placeholders=len(parse_result.occurrences),
        replaced_count=sum(1 for item in entries if item.status == "replaced"),
        defaulted_count=sum(1 for item in entries if item.status == "defaulted"),
        image_count=sum(1 for item in entries if item.status == "image"),
        folded_runs=folded,
    )

    buffer = io.BytesIO()
    document.save(buffer)

    return DocxRenderOutput(
        content=buffer.getvalue(),
        parse_result=parse_result,
        template_fields=[*parse_result.fields, *parse_result.image_fields],
        replace_report=ReplaceReport(
            entries=entries, summary=summary, touched_runs=sorted(touched_runs)
        ),
    )


def _replace_occurrences(
    occurrences: list[Occurrence],
    run_lookup: Mapping[str, Run],
    fields: Mapping[str, WordValue],
    layout: ReportLayout,
    encoder: ImageEncoder,
) -> tuple[list[ReplaceLogEntry], set[str]]:
    grouped: dict[str, list[Occurrence]] = defaultdict(list)
    for occurrence in occurrences:
        grouped[occurrence.run_id].append(occurrence)

    entries: list[ReplaceLogEntry] = []
    touched_runs: set[str] = set()

    for run_id in sorted(grouped.keys()):
        run = run_lookup.get(run_id)
        if run is None:
            continue

        run_text = run.text or ""
        pieces: list[_Piece] = []
        cursor = 0
        for occurrence in sorted(grouped[run_id], key=lambda item: item.start):
            token_text = run_text[occurrence.start : occurrence.end]
            pieces.append(run_text[cursor : occurrence.start])
            cursor = occurrence.end

            value = fields.get(occurrence.field_name)
            if occurrence.kind == "image":
                piece, status = _image_piece(occurrence, value, token_text, run_text, layout, encoder)
                new_text = None
            else:
                piece, status = _text_piece(occurrence, value, token_text, run_text, layout)
                new_text = piece
            pieces.append(piece)

            entries.append(
                ReplaceLogEntry(
                    status=status,
                    field_name=occurrence.field_name,
                    run_id=run_id,
                    paragraph_path=_paragraph_path_from_run_id(run_id),
                    start=occurrence.start,
                    end=occurrence.end,
                    original_text=token_text,
                    new_text=new_text,
                )
            )
        pieces.append(run_text[cursor:])

        _write_pieces(run, pieces)
        touched_runs.add(run_id)

    return entries, touched_runs


def _text_piece(
    occurrence: Occurrence,
    value: WordValue | None,
    token_text: str,
    run_text: str,
    layout: ReportLayout,
) -> tuple[str, str]:
    if value is None:
        return layout.default_text, "defaulted"
    if isinstance(value, bytes):
        raise TemplateSyntaxError(
            "Image value bound to a text placeholder (use {%" + occurrence.field_name + "})",
            tag=token_text,
            context=run_text,
        )
    return value, "replaced"


def _image_piece(
    occurrence: Occurrence,
    value: WordValue | None,
    token_text: str,
    run_text: str,
    layout: ReportLayout,
    encoder: ImageEncoder,
) -> tuple[EmbeddedImage, str]:
    width_px = layout.images.width_px
    height_px = layout.images.height_px
    if isinstance(value, str):
        raise TemplateSyntaxError(
            "Text value bound to an image placeholder",
            tag=token_text,
            context=run_text,
        )

    status = "image"
    if not value:
        value = blank_image_png(width_px, height_px)
        status = "defaulted"

    try:
        return encoder.encode(value, width_px, height_px), status
    except InvalidImage as exc:
        raise InvalidImage(
            f"Image for placeholder '{occurrence.field_name}' could not be read",
            placeholder=occurrence.field_name,
        ) from exc


def _write_pieces(run: Run, pieces: list[_Piece]) -> None:
    run.text = ""
    for piece in pieces:
        if isinstance(piece, EmbeddedImage):
            run.add_picture(piece.stream(), width=piece.width, height=piece.height)
        elif piece:
            append_run_text(run, piece)


def _build_run_lookup(document: DocxDocument) -> dict[str, Run]:
    run_lookup: dict[str, Run] = {}
    for context in iter_paragraph_contexts(document):
        for run_id, run in zip(context.run_ids, context.runs, strict=True):
            run_lookup[run_id] = run
    return run_lookup


def _paragraph_path_from_run_id(run_id: str) -> str:
    return run_id.rsplit(":r", maxsplit=1)[0]
