"""Inspection record models validated at the HTTP/CLI boundary."""

from __future__ import annotations

import base64
import binascii
import datetime as dt
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

MAX_IMAGES = 6
MAX_BATTERIES = 10
CELLS_PER_BATTERY = 13

RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class _RecordModel(BaseModel):
    # Accept both python names and the form's camelCase keys.
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )


class BatteryEntry(_RecordModel):
    """One battery row: identity, cycle count and per-cell voltages."""

    name: str = ""
    serial_number: str = ""
    cycle_count: str = ""
    cells: Annotated[
        tuple[str | None, ...],
        Field(min_length=CELLS_PER_BATTERY, max_length=CELLS_PER_BATTERY),
    ] = (None,) * CELLS_PER_BATTERY


class InspectionRecord(_RecordModel):
    """Validated drone inspection form submission."""

    report_name: RequiredText
    service_sheet_name: RequiredText
    drone_name: RequiredText
    date: dt.date
    technician: RequiredText
    supervisor: RequiredText
    company: RequiredText
    aircraft_model: RequiredText
    manufacturer: RequiredText
    aircraft_type: RequiredText
    serial_no: RequiredText

    visual_inspection_notes: str | None = None
    function_inspection_notes: str | None = None
    deep_clean_notes: str | None = None
    firmware_update: str | None = None
    calibration_notes: str | None = None
    additional_repairs_notes: str | None = None

    images: Annotated[tuple[bytes | None, ...], Field(max_length=MAX_IMAGES)] = ()

    investigate_battery_health: bool = False
    batteries: Annotated[tuple[BatteryEntry, ...], Field(max_length=MAX_BATTERIES)] = ()

    @field_validator("date", mode="before")
    @classmethod
    def _date_from_timestamp(cls, value: object) -> object:
        """Reduce an ISO timestamp to the calendar day in its own offset.

        Browser forms post JS Date values from ``toISOString()``, which are
        UTC (``Z``); those keep the UTC day, so a local date entered east of
        UTC can land on the previous day. Clients that care should send a
        plain ``YYYY-MM-DD`` or a timestamp carrying their local offset.
        """
        if isinstance(value, dt.datetime):
            return value.date()
        if isinstance(value, str) and "T" in value:
            try:
                return dt.datetime.fromisoformat(value.replace("Z", "+00:00")).date()
            except ValueError:
                return value
        return value

    @field_validator("images", mode="before")
    @classmethod
    def _decode_images(cls, value: object) -> object:
        if not isinstance(value, (list, tuple)):
            return value
        return tuple(decode_image_payload(item) for item in value)

    def active_batteries(self) -> tuple[BatteryEntry, ...]:
        """Return battery entries only when battery health was investigated."""

        if not self.investigate_battery_health:
            return ()
        return self.batteries


def decode_image_payload(value: object) -> bytes | None:
    """Decode a data URL or bare base64 string into raw image bytes.

    Empty strings and None mark an empty slot.
    """

    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return bytes(value) or None
    if not isinstance(value, str):
        raise ValueError("image payload must be a data URL or base64 string")

    payload = value.strip()
    if not payload:
        return None
    if payload.startswith("data:"):
        header, _, payload = payload.partition(",")
        if ";base64" not in header:
            raise ValueError("image data URL must be base64 encoded")

    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("image payload is not valid base64") from exc
