"""Action gateway for the workflow backend (an Apps Script web app).

Every business operation is a named action POSTed as a signed JSON document. The backend
answers with an ``{ok, code, message, data}`` envelope. ``invoke`` returns ``data`` or raises;
``invoke_result`` returns a typed Result the route layer can branch on.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
import random
import string
import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Union

import httpx
from pydantic import ValidationError

from portal.core.logging import DOMAIN_GATEWAY, get_domain_logger
from portal.core.settings import Settings, settings
from portal.schemas.portal import ActionEnvelope, ActionRequest, Actor

logger = get_domain_logger(__name__, DOMAIN_GATEWAY)

_ID_ALPHABET = string.digits + string.ascii_uppercase


def create_request_id(prefix: str = "req") -> str:
    rand = "".join(random.choices(_ID_ALPHABET, k=8))
    return f"{prefix}_{int(time.time() * 1000)}_{rand}"


class PortalBackendError(Exception):
    """Base class for every failure raised by the action gateway."""

    code = "SERVER_ERROR"
    transport = False

    def __init__(self, message: str, *, code: str | None = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details


class PortalConfigError(PortalBackendError):
    code = "BACKEND_NOT_CONFIGURED"


class PortalTransportError(PortalBackendError):
    """Network error, timeout or a 5xx reply: the backend may answer on a retry."""

    code = "BACKEND_UNAVAILABLE"
    transport = True


class PortalActionError(PortalBackendError):
    """The backend answered ``ok=false``; ``code`` and ``details`` come from the envelope."""


class PortalReplyError(PortalBackendError):
    """A 4xx reply or a body that is not an action envelope (a sign-in page, a proxy error)."""

    code = "BACKEND_BAD_REPLY"


@dataclass(frozen=True)
class ActionSuccess:
    data: Any


@dataclass(frozen=True)
class ActionFailure:
    message: str
    code: str
    details: Any = None
    transport: bool = False

    def as_error(self) -> PortalBackendError:
        cls = PortalTransportError if self.transport else PortalActionError
        return cls(self.message, code=self.code, details=self.details)


ActionResult = Union[ActionSuccess, ActionFailure]


def signature_message(*, ts: int, request_id: str, action: str, actor_email: str, data: Any) -> str:
    return ".".join(
        [
            str(ts),
            request_id,
            action,
            actor_email.lower(),
            json.dumps(data if data is not None else {}, separators=(",", ":"), ensure_ascii=False),
        ]
    )


def sign_payload(secret: str, **parts: Any) -> str:
    digest = hmac.new(secret.encode("utf-8"), signature_message(**parts).encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


@dataclass
class PortalBackendClient:
    url: str
    shared_secret: str
    timeout_ms: int = 20000
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)

    @classmethod
    def from_settings(cls, cfg: Settings | None = None) -> "PortalBackendClient":
        cfg = cfg or settings
        return cls(
            url=cfg.apps_script_web_app_url,
            shared_secret=cfg.apps_script_shared_secret,
            timeout_ms=cfg.apps_script_timeout_ms,
        )

    def _assert_configured(self) -> None:
        missing = []
        if not self.url:
            missing.append("APPS_SCRIPT_WEB_APP_URL")
        if not self.shared_secret:
            missing.append("APPS_SCRIPT_SHARED_SECRET")
        if missing:
            raise PortalConfigError(f"Missing required environment variable: {missing[0]}")

    def build_payload(self, request: ActionRequest) -> dict:
        action, actor = request.action, request.actor
        request_id = create_request_id("portal")
        ts = int(time.time() * 1000)
        body = request.data if request.data is not None else {}
        return {
            "action": action,
            "requestId": request_id,
            "actorEmail": actor.email,
            "actorRole": actor.role.value,
            "data": body,
            "ts": ts,
            "signature": sign_payload(
                self.shared_secret,
                ts=ts,
                request_id=request_id,
                action=action,
                actor_email=actor.email,
                data=body,
            ),
        }

    async def call(self, action: str, actor: Actor, data: Any = None) -> ActionEnvelope:
        """Send one action and return the raw envelope; raises on configuration or transport failure."""
        self._assert_configured()
        payload = self.build_payload(ActionRequest(action=action, actor=actor, data=data))
        started = time.perf_counter()
        try:
            async with httpx.AsyncClient(timeout=self.timeout_ms / 1000, transport=self.transport) as client:
                response = await client.post(
                    self.url,
                    content=json.dumps(payload, ensure_ascii=False),
                    headers={"content-type": "application/json"},
                )
        except httpx.TimeoutException as exc:
            raise PortalTransportError(f"Apps Script timeout after {self.timeout_ms}ms") from exc
        except httpx.HTTPError as exc:
            raise PortalTransportError(f"Apps Script request failed: {exc}") from exc

        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
        if response.status_code < 200 or response.status_code >= 300:
            logger.warning(
                "backend http error | action=%s request_id=%s status=%s duration_ms=%s",
                action,
                payload["requestId"],
                response.status_code,
                elapsed_ms,
            )
            if response.status_code >= 500:
                raise PortalTransportError(f"Apps Script HTTP {response.status_code}")
            raise PortalReplyError(f"Apps Script HTTP {response.status_code}")

        try:
            envelope = ActionEnvelope.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise PortalReplyError("Apps Script returned an unreadable envelope") from exc

        logger.info(
            "backend action | action=%s request_id=%s ok=%s code=%s duration_ms=%s",
            action,
            payload["requestId"],
            envelope.ok,
            envelope.code,
            elapsed_ms,
        )
        return envelope


class PortalGateway:
    """Normalizes backend envelopes into returned data, raised errors or typed Results."""

    def __init__(self, client: PortalBackendClient):
        self.client = client

    async def invoke(self, action: str, actor: Actor, data: Any = None) -> Any:
        envelope = await self.client.call(action, actor, data)
        if not envelope.ok:
            raise PortalActionError(envelope.message, code=envelope.code, details=envelope.data)
        return envelope.data

    async def invoke_result(self, action: str, actor: Actor, data: Any = None) -> ActionResult:
        try:
            return ActionSuccess(await self.invoke(action, actor, data))
        except PortalBackendError as exc:
            if exc.transport:
                logger.warning("backend unavailable | action=%s error=%s", action, exc.message)
            else:
                logger.info("backend rejected action | action=%s code=%s message=%s", action, exc.code, exc.message)
            return ActionFailure(message=exc.message, code=exc.code, details=exc.details, transport=exc.transport)


_gateway: PortalGateway | None = None
_gateway_lock = Lock()


def get_portal_gateway() -> PortalGateway:
    global _gateway
    with _gateway_lock:
        if _gateway is None:
            _gateway = PortalGateway(PortalBackendClient.from_settings())
        return _gateway


def set_portal_gateway(gateway: PortalGateway | None) -> None:
    """Replace the process-wide gateway (``None`` re-creates it from settings on next use)."""
    global _gateway
    with _gateway_lock:
        _gateway = gateway


async def portal_action(action: str, actor: Actor, data: Any = None) -> Any:
    return await get_portal_gateway().invoke(action, actor, data)
