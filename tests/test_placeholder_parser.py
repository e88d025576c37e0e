from __future__ import annotations

import pytest
from docx import Document
from docx.oxml import parse_xml
from docx.oxml.ns import nsdecls

from droneops.templates.placeholder_parser import (
    fold_split_placeholders,
    parse_placeholders,
    raise_for_residual_tags,
    raise_for_unsupported,
)
from droneops.utils.errors import TemplateSyntaxError


def test_parse_single_placeholder_in_single_run() -> None:
    document = Document()
    paragraph = document.add_paragraph()
    paragraph.add_run("Drone: {drone_name}")

    result = parse_placeholders(document)

    assert result.fields == ["drone_name"]
    assert result.image_fields == []
    assert len(result.occurrences) == 1
    assert result.occurrences[0].run_id == "p0:r0"
    assert result.occurrences[0].start == 7
    assert result.occurrences[0].end == 19
    assert result.occurrences[0].kind == "text"
    assert not result.unsupported


def test_parse_image_placeholder() -> None:
    document = Document()
    document.add_paragraph("{%image_1} and {date}")

    result = parse_placeholders(document)

    assert result.image_fields == ["image_1"]
    assert result.fields == ["date"]
    assert [item.kind for item in result.occurrences] == ["image", "text"]


def test_repeated_placeholder_is_listed_once() -> None:
    document = Document()
    document.add_paragraph("{company}")
    document.add_paragraph("{company} / {company}")

    result = parse_placeholders(document)

    assert result.fields == ["company"]
    assert len(result.occurrences) == 3


def test_parse_cross_run_placeholder_records_unsupported() -> None:
    document = Document()
    paragraph = document.add_paragraph()
    paragraph.add_run("Owner: {com")
    paragraph.add_run("pany} end")

    result = parse_placeholders(document)

    assert result.fields == []
    assert len(result.unsupported) == 1
    assert result.unsupported[0].kind == "cross_run"
    assert result.unsupported[0].text == "{company}"


def test_fold_split_placeholders_merges_into_first_run() -> None:
    document = Document()
    paragraph = document.add_paragraph()
    first = paragraph.add_run("Owner: {com")
    first.bold = True
    paragraph.add_run("pa")
    paragraph.add_run("ny} end")

    folded = fold_split_placeholders(document)
    result = parse_placeholders(document)

    assert folded == 1
    assert paragraph.runs[0].text == "Owner: {company} end"
    assert paragraph.runs[0].bold is True
    assert [run.text for run in paragraph.runs[1:]] == ["", ""]
    assert result.fields == ["company"]
    assert not result.unsupported


@pytest.mark.parametrize("text", ["{}", "{ }", "{bad name}", "{1st}", "{%}", "{% }"])
def test_invalid_tag_names_are_unsupported(text: str) -> None:
    document = Document()
    document.add_paragraph(f"before {text} after")

    result = parse_placeholders(document)

    assert result.occurrences == []
    assert [item.kind for item in result.unsupported] == ["invalid_format"]


@pytest.mark.parametrize(
    ("text", "kind"),
    [
        ("Date: {date", "unclosed_brace"),
        ("Date: date}", "stray_close"),
        ("Date: {da{date}", "nested_open"),
    ],
)
def test_unbalanced_braces_are_unsupported(text: str, kind: str) -> None:
    document = Document()
    document.add_paragraph(text)

    result = parse_placeholders(document)

    assert kind in [item.kind for item in result.unsupported]


def test_strict_mode_raises_with_tag_and_context() -> None:
    document = Document()
    document.add_paragraph("Notes: {visual notes}")

    with pytest.raises(TemplateSyntaxError) as exc_info:
        parse_placeholders(document, strict=True)

    assert exc_info.value.tag == "{visual notes}"
    assert exc_info.value.context == "Notes: {visual notes}"
    assert exc_info.value.result is not None


def test_raise_for_unsupported_is_noop_for_clean_template() -> None:
    document = Document()
    document.add_paragraph("{drone_name}")

    raise_for_unsupported(parse_placeholders(document))


def test_parse_table_and_header_placeholders() -> None:
    document = Document()
    table = document.add_table(rows=1, cols=2)
    table.cell(0, 0).paragraphs[0].text = "Company"
    table.cell(0, 1).paragraphs[0].text = "{company}"
    document.sections[0].header.paragraphs[0].text = "{owner}"
    document.sections[0].footer.paragraphs[0].text = "{serial_no}"

    result = parse_placeholders(document)

    run_ids = {item.field_name: item.run_id for item in result.occurrences}
    assert run_ids["company"] == "t0.r0.c1.p0:r0"
    assert run_ids["owner"] == "s0.header.p0:r0"
    assert run_ids["serial_no"] == "s0.footer.p0:r0"


def test_nested_table_placeholders_are_found() -> None:
    document = Document()
    outer = document.add_table(rows=1, cols=1)
    inner = outer.cell(0, 0).add_table(rows=1, cols=1)
    inner.cell(0, 0).paragraphs[0].text = "{n1}"

    result = parse_placeholders(document)

    assert result.fields == ["n1"]
    assert result.occurrences[0].run_id == "t0.r0.c0.t0.r0.c0.p0:r0"


def test_merged_cells_are_scanned_once() -> None:
    document = Document()
    table = document.add_table(rows=1, cols=3)
    merged = table.cell(0, 0).merge(table.cell(0, 1))
    merged.paragraphs[0].text = "{aircraft_model}"

    result = parse_placeholders(document)

    assert len(result.occurrences) == 1


def test_whitespace_inside_braces_is_ignored() -> None:
    document = Document()
    document.add_paragraph("Drone: { drone_name } {% image_1 }")

    result = parse_placeholders(document)

    assert result.fields == ["drone_name"]
    assert result.image_fields == ["image_1"]
    assert result.occurrences[0].start == 7
    assert result.occurrences[0].end == 21
    assert not result.unsupported


def test_hyperlink_runs_get_paragraph_run_ids() -> None:
    document = Document()
    paragraph = document.add_paragraph("Operator: ")
    paragraph._p.append(
        parse_xml(
            f"<w:hyperlink {nsdecls('w')}><w:r><w:t>{{company}}</w:t></w:r></w:hyperlink>"
        )
    )
    paragraph.add_run(" ({serial_no})")

    result = parse_placeholders(document)

    assert result.fields == ["company", "serial_no"]
    assert [item.run_id for item in result.occurrences] == ["p0:r1", "p0:r2"]


def test_tag_split_inside_hyperlink_is_folded() -> None:
    document = Document()
    paragraph = document.add_paragraph()
    paragraph._p.append(
        parse_xml(
            f"<w:hyperlink {nsdecls('w')}>"
            "<w:r><w:t>{comp</w:t></w:r><w:r><w:t>any}</w:t></w:r>"
            "</w:hyperlink>"
        )
    )

    assert fold_split_placeholders(document) == 1
    result = parse_placeholders(document)

    assert result.fields == ["company"]
    assert not result.unsupported


def test_residual_tags_outside_resolved_runs_raise() -> None:
    document = Document()
    paragraph = document.add_paragraph("Owner: {company}")

    with pytest.raises(TemplateSyntaxError, match="Unresolved") as exc_info:
        raise_for_residual_tags(document)

    assert exc_info.value.tag == "{company}"
    raise_for_residual_tags(document, resolved_runs={paragraph.runs[0]._r})
