"""Shared pieces of the route template: body parsing, path/query helpers, action delegation."""
from __future__ import annotations

import json
import math
from typing import Any, TypeVar

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from portal.core.errors import PortalHTTPError, invalid_payload, ok_envelope, server_error
from portal.core.portal_backend import ActionFailure, get_portal_gateway
from portal.schemas.portal import Actor

ModelT = TypeVar("ModelT", bound=BaseModel)


async def read_json_body(request: Request) -> Any:
    """Decode the request body; an empty body reads as ``{}``."""
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except (ValueError, UnicodeDecodeError) as exc:
        raise PortalHTTPError(400, "Invalid JSON body", "INVALID_JSON") from exc


async def read_json_object(request: Request) -> dict:
    body = await read_json_body(request)
    if not isinstance(body, dict):
        raise PortalHTTPError(400, "Invalid JSON body", "INVALID_JSON")
    return body


async def parse_body(request: Request, model: type[ModelT], message: str = "Invalid request payload") -> ModelT:
    body = await read_json_body(request)
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        raise invalid_payload(message, exc) from exc


def require_path_param(value: str | None, name: str, code: str) -> str:
    cleaned = str(value or "").strip()
    if not cleaned:
        raise PortalHTTPError(400, f"{name} is required", code)
    return cleaned


def require_field(body: dict, field: str) -> Any:
    value = body.get(field)
    if isinstance(value, str):
        value = value.strip()
    if not value:
        raise PortalHTTPError(400, f"{field} required", "MISSING_" + field.upper())
    return value


def query_number(raw: str | None, default: float) -> float | int:
    """Parse a numeric query parameter, falling back to ``default`` when absent or not finite."""
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(value):
        return default
    return int(value) if value.is_integer() else value


def dump_body(model: BaseModel) -> dict:
    """Validated payload keyed by backend field names (camelCase client aliases become snake_case)."""
    return model.model_dump(mode="json", exclude_none=True)


async def run_portal_action(action: str, actor: Actor, data: Any = None) -> JSONResponse:
    result = await get_portal_gateway().invoke_result(action, actor, data)
    if isinstance(result, ActionFailure):
        return server_error(result.message or "Portal action failed")
    return ok_envelope(result.data)
