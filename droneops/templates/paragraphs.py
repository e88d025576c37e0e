"""Paragraph traversal with stable paragraph paths and run IDs."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from docx.document import Document as DocxDocument
from docx.table import Table
from docx.text.paragraph import Paragraph
from docx.text.run import Run

from droneops.utils.docx_xml import iter_row_cells, iter_story_paragraphs, paragraph_runs

_HEADER_FOOTER_KINDS = (
    "header",
    "first_page_header",
    "even_page_header",
    "footer",
    "first_page_footer",
    "even_page_footer",
)


@dataclass(frozen=True)
class ParagraphContext:
    """Paragraph plus its path, runs and run IDs.

    Path format:
    - body: p{p_idx}
    - table: t{t_idx}.r{row_idx}.c{cell_idx}.p{p_idx} (nested tables extend the prefix)
    - header/footer: s{section_idx}.{kind}.p{p_idx}
    - content controls and text boxes: {story prefix}x{idx}, numbered in document order
    Run IDs append ``:r{run_idx}`` to the paragraph path. ``runs`` includes
    runs nested in hyperlinks and inline content controls.
    """

    paragraph: Paragraph
    paragraph_path: str
    runs: list[Run]
    run_ids: list[str]


def iter_paragraph_contexts(document: DocxDocument) -> Iterator[ParagraphContext]:
    """Yield body, table, header/footer, content-control and text-box paragraphs."""

    body = document._body
    yield from _iter_story(body, body.paragraphs, body.tables, prefix="")

    for section_index, section in enumerate(document.sections):
        for kind in _HEADER_FOOTER_KINDS:
            part = getattr(section, kind)
            if part.is_linked_to_previous:
                continue
            yield from _iter_story(
                part, part.paragraphs, part.tables, prefix=f"s{section_index}.{kind}."
            )


def _iter_story(
    story, paragraphs: list[Paragraph], tables: list[Table], *, prefix: str
) -> Iterator[ParagraphContext]:
    seen = set()
    for context in _iter_container(paragraphs, tables, prefix=prefix):
        seen.add(context.paragraph._p)
        yield context

    extra_index = 0
    for p in iter_story_paragraphs(story._element):
        if p in seen:
            continue
        yield _context(Paragraph(p, story), f"{prefix}x{extra_index}")
        extra_index += 1


def _iter_container(
    paragraphs: list[Paragraph], tables: list[Table], *, prefix: str
) -> Iterator[ParagraphContext]:
    for paragraph_index, paragraph in enumerate(paragraphs):
        yield _context(paragraph, f"{prefix}p{paragraph_index}")

    for table_index, table in enumerate(tables):
        for row_index, row in enumerate(table.rows):
            for cell_index, cell in enumerate(iter_row_cells(row)):
                cell_prefix = f"{prefix}t{table_index}.r{row_index}.c{cell_index}."
                yield from _iter_container(cell.paragraphs, cell.tables, prefix=cell_prefix)


def _context(paragraph: Paragraph, paragraph_path: str) -> ParagraphContext:
    runs = paragraph_runs(paragraph)
    run_ids = [f"{paragraph_path}:r{run_index}" for run_index in range(len(runs))]
    return ParagraphContext(
        paragraph=paragraph, paragraph_path=paragraph_path, runs=runs, run_ids=run_ids
    )
