from __future__ import annotations

import base64
import io
import json
import logging
import zipfile
from pathlib import Path

import pytest
from docx import Document
from openpyxl import Workbook, load_workbook

from droneops.delivery.base import PublishedLinks
from droneops.delivery.data_url import DataUrlPublisher
from droneops.orchestrator.pipeline import (
    SUCCESS_MESSAGE,
    GenerationResult,
    generate_report,
    merge_documents,
    merge_documents_concurrently,
    output_names,
)
from droneops.records.models import InspectionRecord
from droneops.templates.loader import TemplateSet, load_templates
from droneops.utils.errors import StorageError


class RecordingPublisher:
    def __init__(self, *, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def publish(
        self, word_bytes: bytes, excel_bytes: bytes, word_name: str, excel_name: str
    ) -> PublishedLinks:
        self.calls.append((word_name, excel_name))
        if self.error is not None:
            raise self.error
        return PublishedLinks(word_url=f"mem://{word_name}", excel_url=f"mem://{excel_name}")


def _write_templates(
    directory: Path, *, word: bool = True, excel: bool = True, sheet_name: str = "Sheet2"
) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    if word:
        document = Document()
        document.add_paragraph("Inspection of {drone_name} on {date}")
        document.add_paragraph("{%image_1}")
        document.add_paragraph("Battery 1: {n1} ({c1} cycles)")
        document.save(str(directory / "template.docx"))
    if excel:
        workbook = Workbook()
        workbook.active.title = sheet_name
        workbook.save(str(directory / "template.xlsx"))
    return directory


def _record(**overrides: object) -> InspectionRecord:
    payload: dict[str, object] = {
        "report_name": "S2500-07 inspection",
        "service_sheet_name": "S2500-07 service",
        "drone_name": "S2500-07",
        "date": "2024-03-15",
        "technician": "Dana Reyes",
        "supervisor": "Sam Okafor",
        "company": "Northfield Agri",
        "aircraft_model": "T40",
        "manufacturer": "DJI",
        "aircraft_type": "Multirotor",
        "serial_no": "1581F5BKD22B",
    }
    payload.update(overrides)
    return InspectionRecord.model_validate(payload)


def _zip_entry(content: bytes, name: str) -> bytes:
    with zipfile.ZipFile(io.BytesIO(content)) as archive:
        return archive.read(name)


def _sheet_values(content: bytes) -> list[tuple[object, ...]]:
    worksheet = load_workbook(io.BytesIO(content))["Sheet2"]
    return [tuple(cell.value for cell in row) for row in worksheet.iter_rows()]


@pytest.mark.anyio
async def test_generate_report_success_publishes_both_documents(tmp_path: Path) -> None:
    templates = _write_templates(tmp_path / "templates")
    publisher = RecordingPublisher()

    result = await generate_report(_record(), templates=templates, publisher=publisher)

    assert result.success is True
    assert result.message == SUCCESS_MESSAGE
    assert publisher.calls == [("S2500-07 inspection.docx", "S2500-07 service.xlsx")]
    assert result.links == PublishedLinks(
        word_url="mem://S2500-07 inspection.docx",
        excel_url="mem://S2500-07 service.xlsx",
    )


@pytest.mark.anyio
async def test_generate_report_with_data_urls_returns_real_documents(tmp_path: Path) -> None:
    templates = load_templates(_write_templates(tmp_path / "templates"))

    result = await generate_report(
        _record(investigate_battery_health=True, batteries=[{"name": "Pack A"}]),
        templates=templates,
        publisher=DataUrlPublisher(),
    )

    assert result.success is True
    assert result.links is not None
    payload = result.links.word_url.split(",", 1)[1]
    document = Document(io.BytesIO(base64.b64decode(payload)))
    assert document.paragraphs[0].text == "Inspection of S2500-07 on 15/03/24"
    assert document.paragraphs[2].text == "Battery 1: Pack A (N/A cycles)"


@pytest.mark.anyio
async def test_missing_word_template_fails_without_publishing(tmp_path: Path) -> None:
    templates = _write_templates(tmp_path / "templates", word=False)
    publisher = RecordingPublisher()

    result = await generate_report(_record(), templates=templates, publisher=publisher)

    assert result.success is False
    assert result.message.startswith("Report generation failed: ")
    assert "template.docx" in result.message
    assert result.links is None
    assert publisher.calls == []


@pytest.mark.anyio
async def test_missing_excel_template_names_the_file(tmp_path: Path) -> None:
    templates = _write_templates(tmp_path / "templates", excel=False)

    result = await generate_report(_record(), templates=templates, publisher=RecordingPublisher())

    assert result.success is False
    assert "template.xlsx" in result.message


@pytest.mark.anyio
async def test_missing_sheet_fails_generation(tmp_path: Path) -> None:
    templates = _write_templates(tmp_path / "templates", sheet_name="Summary")
    publisher = RecordingPublisher()

    result = await generate_report(_record(), templates=templates, publisher=publisher)

    assert result.success is False
    assert "Sheet2" in result.message
    assert publisher.calls == []


@pytest.mark.anyio
async def test_malformed_word_template_fails_generation(tmp_path: Path) -> None:
    templates = _write_templates(tmp_path / "templates")
    document = Document()
    document.add_paragraph("Owner: {owner name}")
    document.save(str(templates / "template.docx"))

    result = await generate_report(_record(), templates=templates, publisher=RecordingPublisher())

    assert result.success is False
    assert "{owner name}" in result.message


@pytest.mark.anyio
async def test_storage_failure_is_reported(tmp_path: Path) -> None:
    templates = _write_templates(tmp_path / "templates")
    publisher = RecordingPublisher(error=StorageError("bucket unavailable"))

    result = await generate_report(_record(), templates=templates, publisher=publisher)

    assert result.success is False
    assert result.message == "Report generation failed: bucket unavailable"


@pytest.mark.anyio
async def test_concurrent_merge_matches_sequential_merge(tmp_path: Path) -> None:
    templates = load_templates(_write_templates(tmp_path / "templates"))
    record = _record(visual_inspection_notes="Arms OK\nNo cracks")

    sequential = merge_documents(record, templates)
    concurrent = await merge_documents_concurrently(record, templates)

    assert _zip_entry(sequential.word_bytes, "word/document.xml") == _zip_entry(
        concurrent.word_bytes, "word/document.xml"
    )
    assert _sheet_values(sequential.excel_bytes) == _sheet_values(concurrent.excel_bytes)
    assert (sequential.word_name, sequential.excel_name) == (
        concurrent.word_name,
        concurrent.excel_name,
    )


def test_merge_leaves_template_buffers_untouched(tmp_path: Path) -> None:
    templates = load_templates(_write_templates(tmp_path / "templates"))
    snapshot = TemplateSet(word=bytes(templates.word), excel=bytes(templates.excel))

    merge_documents(_record(), templates)
    merge_documents(_record(drone_name="S2500-08"), templates)

    assert templates.word == snapshot.word
    assert templates.excel == snapshot.excel


def test_output_names_fall_back_when_names_are_unusable() -> None:
    record = _record().model_copy(update={"report_name": "..", "service_sheet_name": "///"})

    assert output_names(record) == ("inspection_report.docx", "inspection_data.xlsx")


def test_generation_result_payload_shape() -> None:
    ok = GenerationResult(
        success=True,
        message=SUCCESS_MESSAGE,
        links=PublishedLinks(word_url="/output/a/r.docx", excel_url="/output/a/s.xlsx"),
    )
    failed = GenerationResult(success=False, message="Report generation failed: boom")

    assert ok.to_payload() == {
        "success": True,
        "message": SUCCESS_MESSAGE,
        "downloadLinks": {"wordUrl": "/output/a/r.docx", "excelUrl": "/output/a/s.xlsx"},
    }
    assert failed.to_payload() == {"success": False, "message": "Report generation failed: boom"}


@pytest.mark.anyio
async def test_pipeline_logs_json_events(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="droneops.pipeline")
    templates = _write_templates(tmp_path / "templates")

    await generate_report(
        _record(), templates=templates, publisher=RecordingPublisher(), request_id="req-1"
    )

    events = [
        json.loads(record.getMessage())
        for record in caplog.records
        if record.name == "droneops.pipeline"
    ]
    assert [event["event"] for event in events] == ["start", "merged", "published"]
    assert all(event["request_id"] == "req-1" for event in events)
    assert events[0]["drone_name"] == "S2500-07"
