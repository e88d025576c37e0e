from __future__ import annotations

import io

import pytest
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font

from droneops.layout.loader import default_layout
from droneops.mapping.field_mapper import map_record
from droneops.mapping.models import SheetFields
from droneops.records.models import InspectionRecord
from droneops.render.xlsx_renderer import load_xlsx, render_xlsx, write_battery_rows
from droneops.utils.errors import SheetNotFound, TemplateNotFound


def _xlsx_bytes(*sheet_names: str, battery_marker: str | None = None) -> bytes:
    workbook = Workbook()
    workbook.active.title = sheet_names[0]
    for name in sheet_names[1:]:
        workbook.create_sheet(name)
    if "Sheet2" in workbook.sheetnames:
        worksheet = workbook["Sheet2"]
        worksheet["K2"].font = Font(bold=True)
        worksheet["K1"] = "Date"
        if battery_marker is not None:
            worksheet["B30"] = battery_marker
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


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


def _sheet(content: bytes, name: str = "Sheet2"):
    return load_workbook(io.BytesIO(content))[name]


def test_fixed_cells_are_written_and_styles_kept() -> None:
    fields = map_record(_record(function_inspection_notes="Motors spin freely"))

    content = render_xlsx(_xlsx_bytes("Sheet1", "Sheet2"), fields.sheet)
    worksheet = _sheet(content)

    assert worksheet["K2"].value == "2024-03-15"
    assert worksheet["K2"].font.bold is True
    assert worksheet["K1"].value == "Date"
    assert worksheet["N2"].value == "S2500-07"
    assert worksheet["D2"].value == "DJI"
    assert worksheet["H2"].value == "Multirotor"
    assert worksheet["D9"].value == "Motors spin freely"
    assert worksheet["D4"].value == "N/A"


def test_other_sheets_are_left_alone() -> None:
    content = render_xlsx(_xlsx_bytes("Sheet1", "Sheet2"), map_record(_record()).sheet)

    assert _sheet(content, "Sheet1")["K2"].value is None


def test_battery_block_untouched_without_investigation() -> None:
    fields = map_record(_record(batteries=[{"name": "Pack A"}]))

    content = render_xlsx(_xlsx_bytes("Sheet2", battery_marker="keep"), fields.sheet)
    worksheet = _sheet(content)

    assert worksheet["B30"].value == "keep"
    assert worksheet["B31"].value is None


def test_battery_rows_start_at_block_start() -> None:
    cells = [f"3.{index:02d}" for index in range(1, 14)]
    record = _record(
        investigate_battery_health=True,
        batteries=[
            {"name": "Pack A", "serial_number": "SN-A", "cycle_count": "120", "cells": cells},
            {"name": "Pack B", "serial_number": "SN-B", "cycle_count": "8"},
        ],
    )

    content = render_xlsx(_xlsx_bytes("Sheet2"), map_record(record).sheet)
    worksheet = _sheet(content)

    assert worksheet["B30"].value == "Pack A"
    assert worksheet["C30"].value == "SN-A"
    assert worksheet["D30"].value == "3.01"
    assert worksheet["P30"].value == "3.13"
    assert worksheet["Q30"].value == "120"
    assert worksheet["B31"].value == "Pack B"
    assert worksheet["D31"].value == "N/A"
    assert worksheet["Q31"].value == "8"
    assert worksheet["B32"].value is None


def test_write_battery_rows_ignores_rows_beyond_max() -> None:
    block = default_layout().sheet.battery_block.model_copy(update={"max_rows": 2})
    worksheet = Workbook().active
    rows = tuple((f"Pack {index}",) + ("x",) * 15 for index in range(3))

    written = write_battery_rows(worksheet, block, rows)

    assert written == 2
    assert worksheet["B31"].value == "Pack 1"
    assert worksheet["B32"].value is None


def test_missing_sheet_raises_sheet_not_found() -> None:
    with pytest.raises(SheetNotFound) as exc_info:
        render_xlsx(_xlsx_bytes("Sheet1"), SheetFields(sheet_name="Sheet2"))

    assert exc_info.value.sheet_name == "Sheet2"
    assert "Sheet2" in str(exc_info.value)


def test_unloadable_template_raises_template_not_found() -> None:
    with pytest.raises(TemplateNotFound) as exc_info:
        load_xlsx(b"not a workbook", "template.xlsx")

    assert exc_info.value.template_name == "template.xlsx"
