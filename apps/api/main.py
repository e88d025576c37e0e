"""FastAPI wrapper for the inspection report pipeline."""

from __future__ import annotations

import importlib.metadata
import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any, Literal

from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse
from pydantic import ValidationError

from droneops.delivery.base import Publisher
from droneops.delivery.data_url import DataUrlPublisher
from droneops.delivery.local_disk import LocalDiskPublisher
from droneops.delivery.s3 import S3Publisher
from droneops.layout.loader import default_layout, load_layout
from droneops.layout.models import ReportLayout
from droneops.orchestrator.pipeline import generate_report
from droneops.records.models import MAX_BATTERIES, MAX_IMAGES, InspectionRecord
from droneops.utils.events import log_event

app = FastAPI(title="droneops report API", version="0.1.0")
logger = logging.getLogger("droneops.api")

DeliveryMode = Literal["disk", "data_url", "s3"]

_DEFAULT_MAX_BODY_BYTES = 25 * 1024 * 1024
_DEFAULT_TEMPLATE_DIR = "templates"
_DEFAULT_OUTPUT_DIR = "public/output"
_DEFAULT_OUTPUT_URL_PREFIX = "/output"
_DEFAULT_S3_URL_EXPIRES = 60 * 60 * 24
_DELIVERY_MODES: tuple[DeliveryMode, ...] = ("disk", "data_url", "s3")
_REQUEST_ID_HEADER = "X-Droneops-Request-Id"


class ApiRequestError(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        error_code: str,
        message: str,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.detail = detail or {}


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Ensure every response has a request id header."""

    request_id = uuid.uuid4().hex
    request.state.request_id = request_id
    try:
        response = await call_next(request)
    except Exception:  # noqa: BLE001
        logger.exception("unhandled error (request_id=%s)", request_id)
        log_event(
            logger,
            logging.ERROR,
            "error",
            request_id,
            error_code="INTERNAL_ERROR",
            status_code=500,
            failure_stage="middleware",
        )
        response = _error_response(
            status_code=500,
            error_code="INTERNAL_ERROR",
            message="internal server error",
            request_id=request_id,
            detail={"path": request.url.path},
        )
    response.headers.setdefault(_REQUEST_ID_HEADER, request_id)
    return response


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    """Liveness endpoint."""

    return {"status": "ok"}


@app.get("/v1/meta")
async def meta_v1(request: Request) -> JSONResponse:
    """Template contract and limits for form clients."""

    request_id = _request_id_from_request(request)
    try:
        layout = _layout()
    except ValueError as exc:
        return _error_response(
            status_code=500,
            error_code="INVALID_LAYOUT",
            message="layout configuration is invalid",
            request_id=request_id,
            detail={"error": str(exc)},
        )

    battery = layout.word.battery
    payload = {
        "version": app.version,
        "package_version": _package_version(),
        "delivery": _delivery_mode(),
        "limits": {"max_images": MAX_IMAGES, "max_batteries": MAX_BATTERIES},
        "word": {
            "template": layout.word.template,
            "placeholders": sorted(layout.word.fields),
            "image_placeholders": layout.image_placeholders(),
            "battery_placeholders": {
                "name": battery.name,
                "serial_number": battery.serial_number,
                "cycle_count": battery.cycle_count,
                "cell": battery.cell,
            },
            "date_format": layout.word_date_format,
        },
        "sheet": {
            "template": layout.sheet.template,
            "sheet_name": layout.sheet.sheet_name,
            "cells": dict(layout.sheet.cells),
            "battery_block": layout.sheet.battery_block.model_dump(mode="json"),
            "date_format": layout.sheet_date_format,
        },
        "default_text": layout.default_text,
    }
    return JSONResponse(
        status_code=200,
        headers={_REQUEST_ID_HEADER: request_id},
        content=payload,
    )


@app.post("/v1/reports", response_model=None)
async def create_report_v1(request: Request) -> JSONResponse:
    """Generate the Word report and Excel service sheet for one inspection."""

    request_id = _request_id_from_request(request)
    failure_stage = "validate_inputs"

    try:
        body = await request.body()
        max_body_bytes = _max_body_bytes()
        if len(body) > max_body_bytes:
            raise ApiRequestError(
                status_code=413,
                error_code="UPLOAD_TOO_LARGE",
                message="request body exceeds size limit",
                detail={"max_bytes": max_body_bytes, "received_bytes": len(body)},
            )
        record = _load_record(body)

        failure_stage = "configure"
        layout = _configured_layout()
        publisher = _build_publisher()
    except ApiRequestError as exc:
        log_event(
            logger,
            logging.ERROR,
            "error",
            request_id,
            error_code=exc.error_code,
            status_code=exc.status_code,
            failure_stage=failure_stage,
        )
        return _error_response(
            status_code=exc.status_code,
            error_code=exc.error_code,
            message=exc.message,
            request_id=request_id,
            detail=exc.detail,
        )

    result = await generate_report(
        record,
        templates=_template_dir(),
        publisher=publisher,
        layout=layout,
        request_id=request_id,
    )
    log_event(
        logger,
        logging.INFO if result.success else logging.ERROR,
        "done",
        request_id,
        success=result.success,
        delivery=_delivery_mode(),
    )
    return JSONResponse(
        status_code=200 if result.success else 500,
        headers={_REQUEST_ID_HEADER: request_id},
        content=result.to_payload(),
    )


@app.get("/output/{folder}/{filename}", response_model=None)
async def download_output(request: Request, folder: str, filename: str) -> FileResponse | JSONResponse:
    """Serve a document published by the local disk backend."""

    request_id = _request_id_from_request(request)
    publisher = LocalDiskPublisher(_output_dir(), url_prefix=_output_url_prefix())
    path = publisher.resolve(folder, filename)
    if path is None:
        return _error_response(
            status_code=404,
            error_code="NOT_FOUND",
            message="report file not found",
            request_id=request_id,
            detail={"path": request.url.path},
        )
    return FileResponse(path, filename=filename, headers={_REQUEST_ID_HEADER: request_id})


def _request_id_from_request(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if isinstance(request_id, str) and request_id:
        return request_id
    generated = uuid.uuid4().hex
    request.state.request_id = generated
    return generated


def _load_record(body: bytes) -> InspectionRecord:
    try:
        raw = json.loads(body.decode("utf-8"))
    except json.JSONDecodeError as exc:
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_JSON",
            message="request body must be valid JSON",
            detail={"error": str(exc)},
        ) from exc
    except UnicodeDecodeError as exc:
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_JSON",
            message="request body must be UTF-8 JSON",
        ) from exc

    if not isinstance(raw, dict):
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_JSON",
            message="request JSON must be an object",
        )

    try:
        return InspectionRecord.model_validate(raw)
    except ValidationError as exc:
        raise ApiRequestError(
            status_code=422,
            error_code="INVALID_ARGUMENT",
            message="inspection record validation failed",
            detail={
                "errors": [
                    {"loc": list(error["loc"]), "msg": error["msg"]} for error in exc.errors()
                ]
            },
        ) from exc


def _configured_layout() -> ReportLayout:
    try:
        return _layout()
    except ValueError as exc:
        raise ApiRequestError(
            status_code=500,
            error_code="INVALID_CONFIG",
            message="layout configuration is invalid",
            detail={"error": str(exc)},
        ) from exc


def _layout() -> ReportLayout:
    raw = os.getenv("DRONEOPS_LAYOUT_PATH")
    if raw is None or not raw.strip():
        return default_layout()
    return load_layout(Path(raw.strip()))


def _build_publisher() -> Publisher:
    mode = _delivery_mode()
    if mode == "data_url":
        return DataUrlPublisher()
    if mode == "s3":
        bucket = os.getenv("DRONEOPS_S3_BUCKET", "").strip()
        if not bucket:
            raise ApiRequestError(
                status_code=500,
                error_code="INVALID_CONFIG",
                message="DRONEOPS_S3_BUCKET is not set",
            )
        return S3Publisher(
            bucket,
            prefix=os.getenv("DRONEOPS_S3_PREFIX", "reports"),
            expires_in=_s3_url_expires(),
            endpoint_url=os.getenv("DRONEOPS_S3_ENDPOINT") or None,
        )
    return LocalDiskPublisher(_output_dir(), url_prefix=_output_url_prefix())


def _delivery_mode() -> DeliveryMode:
    raw = os.getenv("DRONEOPS_DELIVERY", "disk").strip().lower().replace("-", "_")
    for mode in _DELIVERY_MODES:
        if raw == mode:
            return mode
    return "disk"


def _template_dir() -> Path:
    return Path(os.getenv("DRONEOPS_TEMPLATE_DIR", _DEFAULT_TEMPLATE_DIR))


def _output_dir() -> Path:
    return Path(os.getenv("DRONEOPS_OUTPUT_DIR", _DEFAULT_OUTPUT_DIR))


def _output_url_prefix() -> str:
    return os.getenv("DRONEOPS_OUTPUT_URL_PREFIX", _DEFAULT_OUTPUT_URL_PREFIX)


def _max_body_bytes() -> int:
    raw = os.getenv("DRONEOPS_MAX_BODY_BYTES")
    if raw is None:
        return _DEFAULT_MAX_BODY_BYTES
    try:
        parsed = int(raw)
    except ValueError:
        return _DEFAULT_MAX_BODY_BYTES
    return parsed if parsed > 0 else _DEFAULT_MAX_BODY_BYTES


def _s3_url_expires() -> int:
    raw = os.getenv("DRONEOPS_S3_URL_EXPIRES")
    if raw is None:
        return _DEFAULT_S3_URL_EXPIRES
    try:
        parsed = int(raw)
    except ValueError:
        return _DEFAULT_S3_URL_EXPIRES
    return parsed if parsed > 0 else _DEFAULT_S3_URL_EXPIRES


def _package_version() -> str:
    try:
        return importlib.metadata.version("droneops")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def _error_response(
    *,
    status_code: int,
    error_code: str,
    message: str,
    request_id: str,
    detail: dict[str, Any] | None = None,
) -> JSONResponse:
    payload_detail = dict(detail or {})
    payload_detail["request_id"] = request_id

    return JSONResponse(
        status_code=status_code,
        headers={_REQUEST_ID_HEADER: request_id},
        content={
            "error_code": error_code,
            "message": message,
            "detail": payload_detail,
        },
    )
