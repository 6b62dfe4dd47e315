"""FastAPI surface for the fieldqr form controller."""

from __future__ import annotations

import asyncio
import importlib.metadata
import json
import logging
import os
import time
import uuid
from pathlib import Path
from typing import Any, Literal

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, Response
from pydantic import BaseModel, ConfigDict

from core.fields.models import FieldCollection
from core.session.controller import FormController
from core.utils.errors import (
    EncodingFailedError,
    FieldIndexError,
    LastFieldError,
    NothingToDownloadError,
    NoValidFieldsError,
)

app = FastAPI(title="fieldqr API", version="0.1.0")
app.state.controller = FormController()
logger = logging.getLogger("fieldqr.api")

_DEFAULT_GENERATE_TIMEOUT_SECONDS = 10.0
_REQUEST_ID_HEADER = "X-Fieldqr-Request-Id"


class FieldUpdate(BaseModel):
    """Body of a field edit."""

    model_config = ConfigDict(extra="forbid")

    key: Literal["label", "value"]
    value: str


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
        _log_event(
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


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed path/body input in the common error envelope."""

    request_id = _request_id_from_request(request)
    errors = [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", "")}
        for error in exc.errors()
    ]
    _log_event(
        logging.ERROR,
        "error",
        request_id,
        error_code="INVALID_ARGUMENT",
        status_code=400,
        failure_stage="validate_request",
    )
    return _error_response(
        status_code=400,
        error_code="INVALID_ARGUMENT",
        message="request validation failed",
        request_id=request_id,
        detail={"errors": errors},
    )


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    """Liveness endpoint."""

    return {"status": "ok"}


@app.get("/v1/meta")
async def meta_v1(request: Request) -> JSONResponse:
    """Metadata endpoint for web/bootstrap clients."""

    request_id = _request_id_from_request(request)
    if not _meta_enabled():
        return _error_response(
            status_code=404,
            error_code="NOT_FOUND",
            message="meta endpoint is disabled",
            request_id=request_id,
            detail={"path": request.url.path},
        )

    controller = _controller(request)
    payload = {
        "version": app.version,
        "render_options": controller.options.model_dump(mode="json"),
        "default_fields": [
            field.model_dump(mode="json") for field in FieldCollection.default().fields
        ],
        "build": {
            "version": _package_version(),
            "commit": os.getenv("FIELDQR_COMMIT_SHA", "unknown"),
        },
    }
    return JSONResponse(
        status_code=200,
        headers={_REQUEST_ID_HEADER: request_id},
        content=payload,
    )


@app.get("/web", response_model=None)
async def web_console(request: Request) -> HTMLResponse | JSONResponse:
    """Built-in web console entry point."""

    request_id = _request_id_from_request(request)
    if not _web_console_enabled():
        return _error_response(
            status_code=404,
            error_code="NOT_FOUND",
            message="web console is disabled",
            request_id=request_id,
            detail={"path": request.url.path},
        )

    html_path = Path(__file__).resolve().parent / "static" / "web_console.html"
    html = html_path.read_text(encoding="utf-8")
    return HTMLResponse(
        content=html,
        headers={_REQUEST_ID_HEADER: request_id},
    )


@app.get("/v1/state")
async def state_v1(request: Request) -> JSONResponse:
    request_id = _request_id_from_request(request)
    return _state_response(_controller(request), request_id)


@app.post("/v1/fields")
async def add_field_v1(request: Request) -> JSONResponse:
    request_id = _request_id_from_request(request)
    controller = _controller(request)
    controller.add_field()
    _log_event(logging.INFO, "add_field", request_id, field_count=len(controller.fields))
    return _state_response(controller, request_id)


@app.patch("/v1/fields/{index}")
async def update_field_v1(request: Request, index: int, update: FieldUpdate) -> JSONResponse:
    request_id = _request_id_from_request(request)
    controller = _controller(request)
    try:
        controller.update_field(index, update.key, update.value)
    except FieldIndexError as exc:
        return _index_error_response(exc, request_id, failure_stage="update_field")
    return _state_response(controller, request_id)


@app.delete("/v1/fields/{index}")
async def remove_field_v1(request: Request, index: int) -> JSONResponse:
    request_id = _request_id_from_request(request)
    controller = _controller(request)
    try:
        controller.remove_field(index)
    except FieldIndexError as exc:
        return _index_error_response(exc, request_id, failure_stage="remove_field")
    except LastFieldError as exc:
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code="LAST_FIELD",
            status_code=409,
            failure_stage="remove_field",
        )
        return _error_response(
            status_code=409,
            error_code="LAST_FIELD",
            message=str(exc),
            request_id=request_id,
            detail={"index": index},
        )
    _log_event(logging.INFO, "remove_field", request_id, field_count=len(controller.fields))
    return _state_response(controller, request_id)


@app.post("/v1/reset")
async def reset_v1(request: Request) -> JSONResponse:
    request_id = _request_id_from_request(request)
    controller = _controller(request)
    controller.reset()
    _log_event(logging.INFO, "reset", request_id)
    return _state_response(controller, request_id)


@app.post("/v1/generate")
async def generate_v1(request: Request) -> JSONResponse:
    """Encode the current fields and hold the image for preview/download."""

    request_started = time.perf_counter()
    request_id = _request_id_from_request(request)
    controller = _controller(request)
    timeout_seconds = _generate_timeout_seconds()
    failure_stage = "generate"

    _log_event(
        logging.INFO,
        "start",
        request_id,
        field_count=len(controller.fields),
        timeout_seconds=timeout_seconds,
    )

    try:
        try:
            image = await asyncio.wait_for(controller.generate(), timeout=timeout_seconds)
        except NoValidFieldsError as exc:
            failure_stage = "validate_fields"
            raise ApiRequestError(
                status_code=422,
                error_code="NO_VALID_FIELDS",
                message="add at least one field with both label and value",
                detail={"error": str(exc)},
            ) from exc
        except EncodingFailedError as exc:
            failure_stage = "encode"
            cause = exc.cause
            raise ApiRequestError(
                status_code=422,
                error_code="ENCODING_FAILED",
                message="error generating QR code",
                detail={
                    "error": str(exc),
                    "cause": type(cause).__name__ if cause is not None else None,
                },
            ) from exc
        except asyncio.TimeoutError as exc:
            failure_stage = "encode"
            raise ApiRequestError(
                status_code=408,
                error_code="REQUEST_TIMEOUT",
                message="request timed out",
                detail={"timeout_seconds": timeout_seconds},
            ) from exc
    except ApiRequestError as exc:
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code=exc.error_code,
            status_code=exc.status_code,
            failure_stage=failure_stage,
            total_ms=_elapsed_ms(request_started),
        )
        return _error_response(
            status_code=exc.status_code,
            error_code=exc.error_code,
            message=exc.message,
            request_id=request_id,
            detail=exc.detail,
        )
    except Exception as exc:  # noqa: BLE001
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code="INTERNAL_ERROR",
            status_code=500,
            failure_stage=failure_stage,
        )
        return _error_response(
            status_code=500,
            error_code="INTERNAL_ERROR",
            message="internal server error",
            request_id=request_id,
            detail={"error": str(exc), "total_ms": _elapsed_ms(request_started)},
        )

    _log_event(
        logging.INFO,
        "done",
        request_id,
        png_bytes=len(image.png),
        width=image.width,
        height=image.height,
        total_ms=_elapsed_ms(request_started),
    )
    return _state_response(controller, request_id)


@app.get("/v1/download", response_model=None)
async def download_v1(request: Request) -> Response:
    """Return the held image as a file attachment."""

    request_id = _request_id_from_request(request)
    controller = _controller(request)
    try:
        artifact = controller.download()
    except NothingToDownloadError as exc:
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code="NOTHING_TO_DOWNLOAD",
            status_code=409,
            failure_stage="download",
        )
        return _error_response(
            status_code=409,
            error_code="NOTHING_TO_DOWNLOAD",
            message="please generate a QR code first",
            request_id=request_id,
            detail={"error": str(exc)},
        )

    headers = {
        _REQUEST_ID_HEADER: request_id,
        "Content-Disposition": f'attachment; filename="{artifact.filename}"',
    }
    return Response(content=artifact.content, media_type=artifact.media_type, headers=headers)


def _controller(request: Request) -> FormController:
    return request.app.state.controller


def _state_response(controller: FormController, request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=200,
        headers={_REQUEST_ID_HEADER: request_id},
        content=controller.state().model_dump(mode="json"),
    )


def _index_error_response(
    exc: FieldIndexError, request_id: str, *, failure_stage: str
) -> JSONResponse:
    _log_event(
        logging.ERROR,
        "error",
        request_id,
        error_code="INDEX_OUT_OF_RANGE",
        status_code=404,
        failure_stage=failure_stage,
    )
    return _error_response(
        status_code=404,
        error_code="INDEX_OUT_OF_RANGE",
        message=str(exc),
        request_id=request_id,
        detail={"index": exc.index, "field_count": exc.size},
    )


def _request_id_from_request(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if isinstance(request_id, str) and request_id:
        return request_id
    generated = uuid.uuid4().hex
    request.state.request_id = generated
    return generated


def _web_console_enabled() -> bool:
    raw = os.getenv("FIELDQR_ENABLE_WEB_CONSOLE", "1").strip().lower()
    return raw not in {"0", "false", "off", "no"}


def _meta_enabled() -> bool:
    raw = os.getenv("FIELDQR_ENABLE_META", "1").strip().lower()
    return raw not in {"0", "false", "off", "no"}


def _generate_timeout_seconds() -> float:
    raw = os.getenv("FIELDQR_GENERATE_TIMEOUT_SECONDS")
    if raw is None:
        return _DEFAULT_GENERATE_TIMEOUT_SECONDS
    try:
        parsed = float(raw)
    except ValueError:
        return _DEFAULT_GENERATE_TIMEOUT_SECONDS
    return parsed if parsed > 0 else _DEFAULT_GENERATE_TIMEOUT_SECONDS


def _package_version() -> str:
    try:
        return importlib.metadata.version("fieldqr")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def _dump_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


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


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _log_event(level: int, event: str, request_id: str, **fields: Any) -> None:
    payload = {
        "event": event,
        "request_id": request_id,
        **fields,
    }
    logger.log(level, _dump_json(payload))
