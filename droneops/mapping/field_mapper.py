"""Map an inspection record onto Word placeholders and spreadsheet cells."""

from __future__ import annotations

import datetime as dt
from types import MappingProxyType

from droneops.layout.loader import default_layout
from droneops.layout.models import ReportLayout
from droneops.mapping.models import MergeFields, SheetFields, WordValue
from droneops.records.models import BatteryEntry, InspectionRecord
from droneops.render.images import blank_image_png
from droneops.utils.errors import ValidationGap

REQUIRED_FIELDS = (
    "report_name",
    "service_sheet_name",
    "drone_name",
    "date",
    "technician",
    "supervisor",
    "company",
    "aircraft_model",
    "manufacturer",
    "aircraft_type",
    "serial_no",
)


def map_record(record: InspectionRecord, layout: ReportLayout | None = None) -> MergeFields:
    """Build Word and spreadsheet field maps for one record.

    Optional text that is missing or blank is replaced by ``layout.default_text``
    so no merge target is ever left undefined.
    """

    layout = layout or default_layout()
    _check_required_fields(record)

    return MergeFields(
        word=MappingProxyType(build_word_fields(record, layout)),
        sheet=build_sheet_fields(record, layout),
    )


def build_word_fields(record: InspectionRecord, layout: ReportLayout) -> dict[str, WordValue]:
    """Build the placeholder-name to value map for the Word template."""

    fields: dict[str, WordValue] = {}
    for placeholder, selector in layout.word.fields.items():
        fields[placeholder] = _field_text(
            record, selector, date_format=layout.word_date_format, default=layout.default_text
        )

    images = layout.images
    blank = blank_image_png(images.width_px, images.height_px)
    for slot, placeholder in enumerate(layout.image_placeholders(), start=1):
        payload = record.images[slot - 1] if slot <= len(record.images) else None
        fields[placeholder] = payload or blank

    names = layout.word.battery
    for row, battery in enumerate(_battery_rows(record, names.max_rows), start=1):
        fields[names.name.format(row=row)] = _text_or_default(battery.name, layout.default_text)
        fields[names.serial_number.format(row=row)] = _text_or_default(
            battery.serial_number, layout.default_text
        )
        fields[names.cycle_count.format(row=row)] = _text_or_default(
            battery.cycle_count, layout.default_text
        )
        for cell_index, voltage in enumerate(battery.cells, start=1):
            fields[names.cell.format(row=row, cell=cell_index)] = _text_or_default(
                voltage, layout.default_text
            )

    return fields


def build_sheet_fields(record: InspectionRecord, layout: ReportLayout) -> SheetFields:
    """Build fixed-cell values and battery block rows for the spreadsheet."""

    sheet = layout.sheet
    cells = {
        address: _field_text(
            record, selector, date_format=layout.sheet_date_format, default=layout.default_text
        )
        for address, selector in sheet.cells.items()
    }

    rows: list[tuple[str, ...]] = []
    for battery in _battery_rows(record, sheet.battery_block.max_rows):
        values = [battery.name, battery.serial_number, *battery.cells, battery.cycle_count]
        rows.append(tuple(_text_or_default(value, layout.default_text) for value in values))

    return SheetFields(
        sheet_name=sheet.sheet_name,
        cells=MappingProxyType(cells),
        battery_rows=tuple(rows),
    )


def _battery_rows(record: InspectionRecord, max_rows: int) -> tuple[BatteryEntry, ...]:
    return record.active_batteries()[:max_rows]


def _check_required_fields(record: InspectionRecord) -> None:
    missing = [name for name in REQUIRED_FIELDS if _is_blank(getattr(record, name, None))]
    if missing:
        raise ValidationGap("Required inspection fields are missing", missing_fields=missing)


def _field_text(record: InspectionRecord, selector: str, *, date_format: str, default: str) -> str:
    value = getattr(record, selector, None)
    if isinstance(value, dt.date):
        return value.strftime(date_format)
    return _text_or_default(value, default)


def _text_or_default(value: object, default: str) -> str:
    if value is None:
        return default
    text = str(value)
    return text if text.strip() else default


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())
