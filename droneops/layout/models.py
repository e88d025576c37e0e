"""Data models for the template layout contract."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from droneops.records.models import CELLS_PER_BATTERY, MAX_BATTERIES, MAX_IMAGES, InspectionRecord

_CELL_ADDRESS_RE = re.compile(r"[A-Z]{1,3}[1-9][0-9]*")
_COLUMN_RE = re.compile(r"[A-Z]{1,3}")
_PLACEHOLDER_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

_NON_SCALAR_FIELDS = frozenset({"images", "investigate_battery_health", "batteries"})

SELECTABLE_FIELDS = frozenset(set(InspectionRecord.model_fields) - _NON_SCALAR_FIELDS)


def _check_selector(selector: str) -> str:
    if selector not in SELECTABLE_FIELDS:
        raise ValueError(f"unknown record field selector: {selector}")
    return selector


class ImageLayout(BaseModel):
    """Image slot count and the fixed embedded size in pixels."""

    model_config = ConfigDict(extra="forbid")

    slots: int = Field(default=MAX_IMAGES, ge=0, le=MAX_IMAGES)
    width_px: int = Field(default=212, gt=0)
    height_px: int = Field(default=283, gt=0)
    placeholder: str = "image_{slot}"


class BatteryPlaceholders(BaseModel):
    """Word placeholder name patterns for one battery row (1-based ``row``)."""

    model_config = ConfigDict(extra="forbid")

    name: str = "n{row}"
    serial_number: str = "sn{row}"
    cycle_count: str = "c{row}"
    cell: str = "v{row}_{cell}"
    max_rows: int = Field(default=MAX_BATTERIES, ge=0, le=MAX_BATTERIES)

    @model_validator(mode="after")
    def _check_patterns(self) -> BatteryPlaceholders:
        for pattern in (self.name, self.serial_number, self.cycle_count, self.cell):
            sample = pattern.format(row=1, cell=1)
            if not _PLACEHOLDER_NAME_RE.fullmatch(sample):
                raise ValueError(f"invalid battery placeholder pattern: {pattern}")
        return self


class WordLayout(BaseModel):
    """Word template name and placeholder-to-field table."""

    model_config = ConfigDict(extra="forbid")

    template: str = "template.docx"
    fields: dict[str, str]
    battery: BatteryPlaceholders = Field(default_factory=BatteryPlaceholders)

    @field_validator("fields")
    @classmethod
    def _check_fields(cls, value: dict[str, str]) -> dict[str, str]:
        for placeholder, selector in value.items():
            if not _PLACEHOLDER_NAME_RE.fullmatch(placeholder):
                raise ValueError(f"invalid placeholder name: {placeholder}")
            _check_selector(selector)
        return value


class BatteryBlock(BaseModel):
    """Contiguous spreadsheet row range holding one battery per row."""

    model_config = ConfigDict(extra="forbid")

    start_row: int = Field(gt=0)
    max_rows: int = Field(default=MAX_BATTERIES, ge=0, le=MAX_BATTERIES)
    name: str
    serial_number: str
    cells: list[str] = Field(min_length=CELLS_PER_BATTERY, max_length=CELLS_PER_BATTERY)
    cycle_count: str

    @model_validator(mode="after")
    def _check_columns(self) -> BatteryBlock:
        for column in self.columns():
            if not _COLUMN_RE.fullmatch(column):
                raise ValueError(f"invalid column letter: {column}")
        return self

    def columns(self) -> list[str]:
        """Return column letters in battery row value order."""

        return [self.name, self.serial_number, *self.cells, self.cycle_count]


class SheetLayout(BaseModel):
    """Spreadsheet template name, target sheet and fixed cell table."""

    model_config = ConfigDict(extra="forbid")

    template: str = "template.xlsx"
    sheet_name: str
    cells: dict[str, str]
    battery_block: BatteryBlock

    @field_validator("cells")
    @classmethod
    def _check_cells(cls, value: dict[str, str]) -> dict[str, str]:
        for address, selector in value.items():
            if not _CELL_ADDRESS_RE.fullmatch(address):
                raise ValueError(f"invalid cell address: {address}")
            _check_selector(selector)
        return value


class ReportLayout(BaseModel):
    """Full placeholder and cell-address contract for both templates."""

    model_config = ConfigDict(extra="forbid")

    default_text: str = "N/A"
    word_date_format: str = "%d/%m/%y"
    sheet_date_format: str = "%Y-%m-%d"
    images: ImageLayout = Field(default_factory=ImageLayout)
    word: WordLayout
    sheet: SheetLayout

    def image_placeholders(self) -> list[str]:
        return [self.images.placeholder.format(slot=slot) for slot in range(1, self.images.slots + 1)]

    def battery_placeholders(self) -> list[str]:
        names = self.word.battery
        placeholders: list[str] = []
        for row in range(1, names.max_rows + 1):
            placeholders.extend(
                [
                    names.name.format(row=row),
                    names.serial_number.format(row=row),
                    names.cycle_count.format(row=row),
                ]
            )
            placeholders.extend(
                names.cell.format(row=row, cell=cell) for cell in range(1, CELLS_PER_BATTERY + 1)
            )
        return placeholders

    def known_word_placeholders(self) -> set[str]:
        """Every placeholder name the field mapper can produce."""

        return {*self.word.fields, *self.image_placeholders(), *self.battery_placeholders()}
