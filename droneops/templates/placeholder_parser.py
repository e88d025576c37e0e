"""Placeholder parser for Word templates.

Supported tags are ``{field_name}`` for text and ``{%field_name}`` for images.
Body paragraphs, table cells (including nested tables), section headers/footers,
content controls and text boxes are scanned. Runs nested in hyperlinks count as
paragraph runs. Whitespace just inside the braces is ignored.
"""

from __future__ import annotations

import re
from collections.abc import Collection

from docx.document import Document as DocxDocument
from docx.oxml.xmlchemy import BaseOxmlElement
from docx.text.run import Run

from droneops.templates.models import Occurrence, ParseResult, UnsupportedOccurrence
from droneops.templates.paragraphs import iter_paragraph_contexts
from droneops.utils.docx_xml import fold_runs, iter_text_nodes
from droneops.utils.errors import TemplateSyntaxError

_TAG_RE = re.compile(r"\{([^{}]*)\}")
_FIELD_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_IMAGE_PREFIX = "%"
_OPEN_BRACE = "{"
_CLOSE_BRACE = "}"


def parse_placeholders(document: DocxDocument, strict: bool = False) -> ParseResult:
    """Parse placeholders from the document.

    Rules:
    - A tag must sit inside one run; tags split across runs are reported as
      ``cross_run`` (call ``fold_split_placeholders`` first to merge them).
    - Tag names allow letters, digits and underscore and cannot start with a digit.
    - Empty tags, invalid names and unbalanced braces are unsupported.

    Args:
        document: python-docx document object.
        strict: When True, raise TemplateSyntaxError on the first unsupported item.

    Returns:
        ParseResult containing fields, supported occurrences and unsupported entries.
    """

    result = ParseResult()
    seen_fields: set[str] = set()
    seen_images: set[str] = set()

    for context in iter_paragraph_contexts(document):
        full_text, run_spans = _build_run_spans(context.runs)
        if not full_text:
            continue
        run_id_pattern = f"{context.paragraph_path}:r{{}}"

        for match in _TAG_RE.finditer(full_text):
            token = match.group(0)
            inner = match.group(1).strip()
            is_image = inner.startswith(_IMAGE_PREFIX)
            field_name = inner[1:].strip() if is_image else inner
            start_run = _run_index_for_position(match.start(), run_spans)
            end_run = _run_index_for_position(match.end() - 1, run_spans)
            run_id = run_id_pattern.format(start_run) if start_run is not None else None

            if not _FIELD_NAME_RE.fullmatch(field_name):
                result.unsupported.append(
                    UnsupportedOccurrence(
                        kind="invalid_format",
                        text=token,
                        context=full_text,
                        run_id=run_id,
                        start=match.start(),
                        end=match.end(),
                    )
                )
                continue

            if start_run is None or end_run is None or start_run != end_run:
                result.unsupported.append(
                    UnsupportedOccurrence(
                        kind="cross_run",
                        text=token,
                        context=full_text,
                        run_id=run_id,
                        start=match.start(),
                        end=match.end(),
                    )
                )
                continue

            run_start = run_spans[start_run][1]
            result.occurrences.append(
                Occurrence(
                    field_name=field_name,
                    kind="image" if is_image else "text",
                    run_id=run_id_pattern.format(start_run),
                    start=match.start() - run_start,
                    end=match.end() - run_start,
                )
            )
            bucket, seen = (
                (result.image_fields, seen_images) if is_image else (result.fields, seen_fields)
            )
            if field_name not in seen:
                bucket.append(field_name)
                seen.add(field_name)

        for kind, start, end, text in _find_unbalanced_braces(full_text):
            run_index = _run_index_for_position(start, run_spans)
            result.unsupported.append(
                UnsupportedOccurrence(
                    kind=kind,
                    text=text,
                    context=full_text,
                    run_id=run_id_pattern.format(run_index) if run_index is not None else None,
                    start=start,
                    end=end,
                )
            )

    if strict:
        raise_for_unsupported(result)

    return result


def raise_for_unsupported(result: ParseResult) -> None:
    """Raise TemplateSyntaxError for the first unsupported item, if any."""

    if not result.unsupported:
        return
    first = result.unsupported[0]
    raise TemplateSyntaxError(
        f"Malformed placeholder in Word template ({first.kind})",
        tag=first.text,
        context=first.context,
        result=result,
    )


def raise_for_residual_tags(
    document: DocxDocument, resolved_runs: Collection[BaseOxmlElement] = ()
) -> None:
    """Raise TemplateSyntaxError if any part of the package still holds a tag.

    Text of ``resolved_runs`` is skipped, since merged values may contain braces.
    """

    for text in iter_text_nodes(document, skip_runs=resolved_runs):
        match = _TAG_RE.search(text)
        if match is not None:
            raise TemplateSyntaxError(
                "Unresolved placeholder left in Word template",
                tag=match.group(0),
                context=text,
            )


def fold_split_placeholders(document: DocxDocument) -> int:
    """Merge runs that a single tag is split across; return the fold count.

    Word frequently splits typed text such as ``{drone_name}`` over several
    runs after spell-check or formatting edits.
    """

    folds = 0
    for context in iter_paragraph_contexts(document):
        while True:
            span = _first_split_tag(context.runs)
            if span is None:
                break
            first, last = span
            fold_runs(context.runs[first : last + 1])
            folds += 1
    return folds


def _first_split_tag(runs: list[Run]) -> tuple[int, int] | None:
    full_text, run_spans = _build_run_spans(runs)
    if _OPEN_BRACE not in full_text:
        return None

    for match in _TAG_RE.finditer(full_text):
        start_run = _run_index_for_position(match.start(), run_spans)
        end_run = _run_index_for_position(match.end() - 1, run_spans)
        if start_run is not None and end_run is not None and start_run != end_run:
            return start_run, end_run
    return None


def _build_run_spans(runs: list[Run]) -> tuple[str, list[tuple[int, int, int]]]:
    run_spans: list[tuple[int, int, int]] = []
    chunks: list[str] = []
    cursor = 0

    for run_index, run in enumerate(runs):
        text = run.text or ""
        start = cursor
        cursor += len(text)
        run_spans.append((run_index, start, cursor))
        chunks.append(text)

    return "".join(chunks), run_spans


def _run_index_for_position(position: int, run_spans: list[tuple[int, int, int]]) -> int | None:
    for run_index, start, end in run_spans:
        if start <= position < end:
            return run_index
    return None


def _find_unbalanced_braces(full_text: str) -> list[tuple[str, int, int, str]]:
    issues: list[tuple[str, int, int, str]] = []
    open_position: int | None = None

    for index, char in enumerate(full_text):
        if char == _OPEN_BRACE:
            if open_position is not None:
                issues.append(
                    ("nested_open", open_position, index, full_text[open_position:index])
                )
            open_position = index
            continue

        if char == _CLOSE_BRACE:
            if open_position is None:
                issues.append(("stray_close", index, index + 1, _CLOSE_BRACE))
            else:
                open_position = None

    if open_position is not None:
        issues.append(
            ("unclosed_brace", open_position, len(full_text), full_text[open_position:])
        )

    return issues
