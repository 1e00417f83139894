import logging
import uuid
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from portal.core.logging import request_id_var
from portal.schemas.portal import ApiErrorShape

logger = logging.getLogger(__name__)


class PortalHTTPError(HTTPException):
    """HTTPException that also carries a machine-readable code and optional details."""

    def __init__(self, status_code: int, message: str, code: str, details: Any = None):
        super().__init__(status_code=status_code, detail=message)
        self.code = code
        self.details = details

    @property
    def message(self) -> str:
        return str(self.detail)


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def _error_payload(message: str, code: str, details: Any = None) -> dict:
    payload = ApiErrorShape(error=message, code=code, details=details).model_dump()
    if details is None:
        payload.pop("details")
    return payload


# Envelope responder. Every route builds its responses through these helpers so that
# clients can rely on "non-2xx means read the `error` field".


def ok(data: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=data)


def ok_envelope(data: Any) -> JSONResponse:
    return ok({"ok": True, "data": data})


def bad_request(message: str, code: str = "BAD_REQUEST", details: Any = None) -> JSONResponse:
    return JSONResponse(status_code=400, content=_error_payload(message, code, details))


def unauthorized(message: str = "Unauthorized") -> JSONResponse:
    return JSONResponse(status_code=401, content=_error_payload(message, "UNAUTHORIZED"))


def forbidden(message: str = "Forbidden") -> JSONResponse:
    return JSONResponse(status_code=403, content=_error_payload(message, "FORBIDDEN"))


def server_error(message: str = "Internal Server Error", details: Any = None) -> JSONResponse:
    return JSONResponse(status_code=500, content=_error_payload(message, "SERVER_ERROR", details))


def flatten_validation_error(exc: ValidationError | RequestValidationError) -> dict:
    """Group validation failures into form-level and per-field message lists."""
    form_errors: list[str] = []
    field_errors: dict[str, list[str]] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        message = str(error.get("msg", "Invalid value"))
        if not loc:
            form_errors.append(message)
            continue
        field_errors.setdefault(loc[0], []).append(message)
    return {"formErrors": form_errors, "fieldErrors": field_errors}


def invalid_payload(message: str, exc: ValidationError | RequestValidationError) -> PortalHTTPError:
    return PortalHTTPError(400, message, "INVALID_PAYLOAD", flatten_validation_error(exc))


async def portal_http_error_handler(request: Request, exc: PortalHTTPError):
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(exc.message, exc.code, exc.details),
        headers=getattr(exc, "headers", None),
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    if isinstance(exc, PortalHTTPError):
        return await portal_http_error_handler(request, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(str(exc.detail), f"HTTP_{exc.status_code}"),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return bad_request("Invalid request parameters", "INVALID_PAYLOAD", flatten_validation_error(exc))


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception | request_id=%s", get_request_id(request), exc_info=exc)
    return server_error(str(exc) or "Internal Server Error")


async def request_id_middleware(request: Request, call_next):
    incoming = request.headers.get("x-request-id")
    request.state.request_id = incoming or str(uuid.uuid4())
    token = request_id_var.set(request.state.request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers["x-request-id"] = request.state.request_id
    return response
