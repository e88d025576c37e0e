"""Spreadsheet merge engine writing values into fixed cell addresses."""

from __future__ import annotations

import io
import zipfile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.workbook.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from droneops.layout.loader import default_layout
from droneops.layout.models import BatteryBlock, ReportLayout
from droneops.mapping.models import SheetFields
from droneops.utils.errors import SheetNotFound, TemplateNotFound


def load_xlsx(template_bytes: bytes, template_name: str = "template.xlsx") -> Workbook:
    """Open a spreadsheet template from bytes, raising TemplateNotFound when unreadable."""

    try:
        return load_workbook(io.BytesIO(template_bytes))
    except (zipfile.BadZipFile, InvalidFileException, KeyError, ValueError, OSError) as exc:
        raise TemplateNotFound(
            f"Excel template '{template_name}' could not be loaded: {exc}",
            template_name=template_name,
        ) from exc


def render_xlsx(
    template_bytes: bytes,
    fields: SheetFields,
    *,
    layout: ReportLayout | None = None,
    template_name: str = "template.xlsx",
) -> bytes:
    """Write fixed cells and the battery block, returning the new workbook bytes.

    Cell styles already present in the template are kept; only values change.
    With no battery rows the battery block is left exactly as in the template.
    """

    layout = layout or default_layout()
    workbook = load_xlsx(template_bytes, template_name)

    if fields.sheet_name not in workbook.sheetnames:
        raise SheetNotFound(
            f"Worksheet '{fields.sheet_name}' not found in the Excel template.",
            sheet_name=fields.sheet_name,
        )
    worksheet = workbook[fields.sheet_name]

    for address, value in fields.cells.items():
        worksheet[address].value = value

    write_battery_rows(worksheet, layout.sheet.battery_block, fields.battery_rows)

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def write_battery_rows(
    worksheet: Worksheet, block: BatteryBlock, rows: tuple[tuple[str, ...], ...]
) -> int:
    """Write one battery per row from ``block.start_row``; return rows written."""

    columns = block.columns()
    written = 0
    for offset, values in enumerate(rows[: block.max_rows]):
        row_number = block.start_row + offset
        for column, value in zip(columns, values, strict=False):
            worksheet[f"{column}{row_number}"].value = value
        written += 1
    return written
