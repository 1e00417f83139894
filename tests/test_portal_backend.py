import base64
import hashlib
import hmac
import json
import re

import httpx
import pytest

from portal.core.portal_backend import (
    ActionFailure,
    ActionSuccess,
    PortalActionError,
    PortalBackendClient,
    PortalConfigError,
    PortalGateway,
    PortalReplyError,
    PortalTransportError,
    create_request_id,
    sign_payload,
    signature_message,
)
from portal.schemas.portal import Actor, Role

URL = "https://backend.test/exec"
SECRET = "s3cret"
ACTOR = Actor(email="student@example.com", role=Role.STUDENT)


def _gateway(handler, *, url=URL, secret=SECRET, timeout_ms=20000) -> PortalGateway:
    client = PortalBackendClient(url=url, shared_secret=secret, timeout_ms=timeout_ms, transport=httpx.MockTransport(handler))
    return PortalGateway(client)


def test_request_id_format():
    assert re.fullmatch(r"portal_\d{13}_[0-9A-Z]{8}", create_request_id("portal"))


def test_signature_message_layout():
    message = signature_message(
        ts=1700000000000,
        request_id="portal_1_ABCDEFGH",
        action="portal.getSession",
        actor_email="Jane@Example.com",
        data={"b": 1, "a": [1, 2]},
    )
    assert message == '1700000000000.portal_1_ABCDEFGH.portal.getSession.jane@example.com.{"b":1,"a":[1,2]}'


@pytest.mark.asyncio
async def test_call_posts_signed_envelope():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        seen["content_type"] = request.headers["content-type"]
        return httpx.Response(200, json={"ok": True, "data": {"x": 1}})

    data = await _gateway(handler).invoke("portal.getLeaderboard", ACTOR, {"track": "all"})
    assert data == {"x": 1}

    body = seen["body"]
    assert seen["content_type"] == "application/json"
    assert body["action"] == "portal.getLeaderboard"
    assert body["actorEmail"] == "student@example.com"
    assert body["actorRole"] == "STUDENT"
    assert body["data"] == {"track": "all"}
    assert re.fullmatch(r"portal_\d+_[0-9A-Z]{8}", body["requestId"])

    expected_message = f'{body["ts"]}.{body["requestId"]}.portal.getLeaderboard.student@example.com.{{"track":"all"}}'
    expected = base64.b64encode(hmac.new(SECRET.encode(), expected_message.encode(), hashlib.sha256).digest()).decode()
    assert body["signature"] == expected
    assert body["signature"] == sign_payload(
        SECRET,
        ts=body["ts"],
        request_id=body["requestId"],
        action="portal.getLeaderboard",
        actor_email="student@example.com",
        data={"track": "all"},
    )


@pytest.mark.asyncio
async def test_missing_data_is_sent_as_empty_object():
    seen = {}

    def handler(request):
        seen["data"] = json.loads(request.content)["data"]
        return httpx.Response(200, json={"ok": True})

    assert await _gateway(handler).invoke("portal.me.dailyCheckin", ACTOR) is None
    assert seen["data"] == {}


@pytest.mark.asyncio
async def test_rejection_raises_action_error_with_code():
    def handler(request):
        return httpx.Response(200, json={"ok": False, "code": "NO_TICKETS", "message": "Not enough tickets"})

    gateway = _gateway(handler)
    with pytest.raises(PortalActionError) as excinfo:
        await gateway.invoke("portal.enterRaffle", ACTOR, {"raffle_id": "r1"})
    assert excinfo.value.code == "NO_TICKETS"
    assert excinfo.value.message == "Not enough tickets"
    assert excinfo.value.transport is False

    result = await gateway.invoke_result("portal.enterRaffle", ACTOR, {"raffle_id": "r1"})
    assert result == ActionFailure(message="Not enough tickets", code="NO_TICKETS", details=None, transport=False)


@pytest.mark.asyncio
async def test_5xx_is_transport_failure():
    gateway = _gateway(lambda request: httpx.Response(502, text="Bad gateway"))
    with pytest.raises(PortalTransportError, match="Apps Script HTTP 502"):
        await gateway.invoke("portal.getHealth", ACTOR)

    result = await gateway.invoke_result("portal.getHealth", ACTOR)
    assert isinstance(result, ActionFailure)
    assert result.transport is True
    assert result.code == "BACKEND_UNAVAILABLE"


@pytest.mark.asyncio
async def test_timeout_names_the_budget():
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(PortalTransportError, match="Apps Script timeout after 1500ms"):
        await _gateway(handler, timeout_ms=1500).invoke("portal.getHealth", ACTOR)


@pytest.mark.asyncio
async def test_4xx_is_a_bad_reply_not_an_outage():
    gateway = _gateway(lambda request: httpx.Response(403, json={"ok": False}))
    with pytest.raises(PortalReplyError, match="Apps Script HTTP 403"):
        await gateway.invoke("portal.getSession", ACTOR)

    result = await gateway.invoke_result("portal.getSession", ACTOR)
    assert result.transport is False
    assert result.code == "BACKEND_BAD_REPLY"


@pytest.mark.asyncio
async def test_unreadable_reply_is_a_bad_reply():
    gateway = _gateway(lambda request: httpx.Response(200, text="<html>Sign in</html>"))
    result = await gateway.invoke_result("portal.getSession", ACTOR)
    assert isinstance(result, ActionFailure)
    assert result.transport is False
    assert result.message == "Apps Script returned an unreadable envelope"


@pytest.mark.asyncio
async def test_missing_configuration_never_calls_out():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"ok": True})

    with pytest.raises(PortalConfigError, match="APPS_SCRIPT_WEB_APP_URL"):
        await _gateway(handler, url="").invoke("portal.getHealth", ACTOR)
    with pytest.raises(PortalConfigError, match="APPS_SCRIPT_SHARED_SECRET"):
        await _gateway(handler, secret="").invoke("portal.getHealth", ACTOR)
    assert calls == []


@pytest.mark.asyncio
async def test_success_result():
    gateway = _gateway(lambda request: httpx.Response(200, json={"ok": True, "data": [1, 2]}))
    assert await gateway.invoke_result("portal.getKudos", ACTOR) == ActionSuccess([1, 2])


def test_failure_converts_back_to_error():
    assert isinstance(ActionFailure("down", "BACKEND_UNAVAILABLE", transport=True).as_error(), PortalTransportError)
    error = ActionFailure("nope", "DENIED").as_error()
    assert isinstance(error, PortalActionError)
    assert error.code == "DENIED"
