"""Orchestration pipeline: map -> merge both documents -> publish."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from droneops.delivery.base import Publisher, PublishedLinks, safe_file_name
from droneops.layout.loader import default_layout
from droneops.layout.models import ReportLayout
from droneops.mapping.field_mapper import map_record
from droneops.records.models import InspectionRecord
from droneops.render.docx_renderer import render_docx
from droneops.render.images import ImageEncoder
from droneops.render.xlsx_renderer import render_xlsx
from droneops.templates.loader import TemplateSet, load_templates
from droneops.utils.errors import ReportError
from droneops.utils.events import log_event

logger = logging.getLogger("droneops.pipeline")

SUCCESS_MESSAGE = "Reports generated and saved successfully!"
FAILURE_PREFIX = "Report generation failed"


@dataclass(frozen=True)
class MergeOutput:
    """Generated document pair and their suggested file names."""

    word_bytes: bytes
    excel_bytes: bytes
    word_name: str
    excel_name: str


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of one report request: both links or a message, never partial."""

    success: bool
    message: str
    links: PublishedLinks | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.links is not None:
            payload["downloadLinks"] = {
                "wordUrl": self.links.word_url,
                "excelUrl": self.links.excel_url,
            }
        return payload


def output_names(record: InspectionRecord) -> tuple[str, str]:
    """Return safe ``.docx`` / ``.xlsx`` file names from the record."""

    return (
        safe_file_name(record.report_name, ".docx", fallback="inspection_report"),
        safe_file_name(record.service_sheet_name, ".xlsx", fallback="inspection_data"),
    )


def merge_documents(
    record: InspectionRecord,
    templates: TemplateSet,
    *,
    layout: ReportLayout | None = None,
    image_encoder: ImageEncoder | None = None,
) -> MergeOutput:
    """Run both merges sequentially and return the document pair."""

    layout = layout or default_layout()
    fields = map_record(record, layout)
    word = render_docx(
        templates.word,
        fields.word,
        layout=layout,
        image_encoder=image_encoder,
        template_name=templates.word_name,
    )
    excel_bytes = render_xlsx(
        templates.excel, fields.sheet, layout=layout, template_name=templates.excel_name
    )
    word_name, excel_name = output_names(record)
    return MergeOutput(
        word_bytes=word.content,
        excel_bytes=excel_bytes,
        word_name=word_name,
        excel_name=excel_name,
    )


async def merge_documents_concurrently(
    record: InspectionRecord,
    templates: TemplateSet,
    *,
    layout: ReportLayout | None = None,
    image_encoder: ImageEncoder | None = None,
) -> MergeOutput:
    """Run the Word and spreadsheet merges as two joined worker-thread tasks."""

    layout = layout or default_layout()
    fields = map_record(record, layout)
    word, excel_bytes = await asyncio.gather(
        asyncio.to_thread(
            render_docx,
            templates.word,
            fields.word,
            layout=layout,
            image_encoder=image_encoder,
            template_name=templates.word_name,
        ),
        asyncio.to_thread(
            render_xlsx,
            templates.excel,
            fields.sheet,
            layout=layout,
            template_name=templates.excel_name,
        ),
    )
    word_name, excel_name = output_names(record)
    return MergeOutput(
        word_bytes=word.content,
        excel_bytes=excel_bytes,
        word_name=word_name,
        excel_name=excel_name,
    )


async def generate_report(
    record: InspectionRecord,
    *,
    templates: TemplateSet | Path,
    publisher: Publisher,
    layout: ReportLayout | None = None,
    image_encoder: ImageEncoder | None = None,
    request_id: str | None = None,
) -> GenerationResult:
    """Generate, publish and report on one inspection record.

    Every failure is converted into ``success=False`` with a readable message;
    nothing is published unless both documents were produced.
    """

    started = time.perf_counter()
    request_id = request_id or uuid.uuid4().hex
    layout = layout or default_layout()
    log_event(
        logger,
        logging.INFO,
        "start",
        request_id,
        drone_name=record.drone_name,
        image_count=sum(1 for image in record.images if image),
        battery_count=len(record.active_batteries()),
    )

    stage = "load_templates"
    try:
        template_set = (
            templates if isinstance(templates, TemplateSet) else load_templates(templates, layout)
        )
        stage = "merge"
        output = await merge_documents_concurrently(
            record, template_set, layout=layout, image_encoder=image_encoder
        )
        log_event(
            logger,
            logging.INFO,
            "merged",
            request_id,
            word_bytes=len(output.word_bytes),
            excel_bytes=len(output.excel_bytes),
        )
        stage = "publish"
        links = await asyncio.to_thread(
            publisher.publish,
            output.word_bytes,
            output.excel_bytes,
            output.word_name,
            output.excel_name,
        )
    except ReportError as exc:
        log_event(
            logger,
            logging.ERROR,
            "error",
            request_id,
            failure_stage=stage,
            error_type=type(exc).__name__,
            error_message=str(exc),
        )
        return GenerationResult(success=False, message=f"{FAILURE_PREFIX}: {exc}")
    except Exception as exc:  # noqa: BLE001
        logger.exception("unexpected failure during %s (request_id=%s)", stage, request_id)
        return GenerationResult(
            success=False,
            message=f"{FAILURE_PREFIX}: unexpected {type(exc).__name__} during {stage}.",
        )

    log_event(
        logger,
        logging.INFO,
        "published",
        request_id,
        total_ms=int((time.perf_counter() - started) * 1000),
    )
    return GenerationResult(success=True, message=SUCCESS_MESSAGE, links=links)
