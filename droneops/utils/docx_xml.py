"""Utilities for docx XML operations.

All XML-level operations on docx content must be implemented here.
Do not spread XML manipulation logic across other modules.
"""

from __future__ import annotations

from collections.abc import Collection, Iterator, Sequence

from docx.document import Document as DocxDocument
from docx.opc.part import XmlPart
from docx.oxml.ns import qn
from docx.oxml.xmlchemy import BaseOxmlElement
from docx.table import _Cell, _Row
from docx.text.paragraph import Paragraph
from docx.text.run import Run

_BREAK_CHARS = {"\t", "\n"}


def iter_row_cells(row: _Row) -> Iterator[_Cell]:
    """Yield each physical ``w:tc`` of a row exactly once.

    ``_Row.cells`` repeats horizontally merged cells, which would make the
    same paragraph show up several times.
    """

    for tc in row._tr.tc_lst:
        yield _Cell(tc, row.table)


def iter_story_paragraphs(story_element: BaseOxmlElement) -> Iterator[BaseOxmlElement]:
    """Yield every ``w:p`` below a story root in document order.

    Unlike ``BlockItemContainer.paragraphs`` this reaches paragraphs in block
    content controls (``w:sdt``) and text boxes (``w:txbxContent``).
    """

    yield from story_element.iter(qn("w:p"))


def paragraph_runs(paragraph: Paragraph) -> list[Run]:
    """Return every run owned by ``paragraph``, in order.

    ``Paragraph.runs`` only returns direct ``w:r`` children; this also includes
    runs nested in hyperlinks, inline content controls, smart tags and
    tracked insertions. Runs of text-box paragraphs nested inside a drawing
    belong to those paragraphs and are skipped here.
    """

    p = paragraph._p
    return [
        Run(r, paragraph)
        for r in p.iter(qn("w:r"))
        if next(r.iterancestors(qn("w:p")), None) is p
    ]


def fold_runs(runs: Sequence[Run]) -> None:
    """Move the text of ``runs`` into the first run and empty the rest.

    The first run keeps its formatting; trailing runs stay in place as empty
    ``w:r`` elements so run indexes of the paragraph do not shift.
    """

    if len(runs) < 2:
        return

    head, *tail = runs
    head.text = "".join(run.text or "" for run in runs)
    for run in tail:
        run.text = ""


def normalize_line_endings(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def append_run_text(run: Run, text: str) -> None:
    """Append text to a run as ``w:t``, ``w:tab`` and ``w:br`` elements.

    ``\\r\\n`` and ``\\r`` count as a single line break.
    """

    chunk: list[str] = []
    for char in normalize_line_endings(text):
        if char not in _BREAK_CHARS:
            chunk.append(char)
            continue
        if chunk:
            run.add_text("".join(chunk))
            chunk.clear()
        if char == "\t":
            run.add_tab()
        else:
            run.add_break()
    if chunk:
        run.add_text("".join(chunk))


def iter_text_nodes(
    document: DocxDocument, skip_runs: Collection[BaseOxmlElement] = ()
) -> Iterator[str]:
    """Yield the text of every ``w:t`` in every XML part of the package.

    Covers parts the paragraph walk never visits (footnotes, comments).
    ``w:t`` elements whose run is in ``skip_runs`` are left out.
    """

    for part in document.part.package.iter_parts():
        if not isinstance(part, XmlPart):
            continue
        for text_node in part.element.iter(qn("w:t")):
            if text_node.getparent() in skip_runs:
                continue
            yield text_node.text or ""
