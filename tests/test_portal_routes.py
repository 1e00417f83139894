import json

import httpx
import pytest

from conftest import ADMIN, STUDENT
from portal.core.portal_backend import (
    PortalActionError,
    PortalBackendClient,
    PortalGateway,
    PortalTransportError,
    set_portal_gateway,
)
from portal.schemas.portal import Role


@pytest.mark.parametrize(
    "method,path,body,action,data",
    [
        ("GET", "/api/leaderboard", None, "portal.getLeaderboard", {"track": "all"}),
        ("GET", "/api/leaderboard?track=product", None, "portal.getLeaderboard", {"track": "product"}),
        ("GET", "/api/kudos?limit=10", None, "portal.getKudos", {"limit": 10, "cursor": ""}),
        ("GET", "/api/kudos?limit=abc", None, "portal.getKudos", {"limit": 50, "cursor": ""}),
        ("POST", "/api/hot-takes", {"take": "Ship daily"}, "portal.postHotTake", {"take": "Ship daily"}),
        (
            "POST",
            "/api/hot-takes/t-9/vote",
            {"vote": "agree"},
            "portal.voteHotTake",
            {"take_id": "t-9", "vote": "agree"},
        ),
        ("POST", "/api/raffles/r-1/enter", {"ticketsSpent": 3}, "portal.enterRaffle", {"raffle_id": "r-1", "tickets_spent": 3}),
        ("GET", "/api/raffles/me/entries?raffleId=r-1", None, "portal.getMyRaffleEntries", {"raffle_id": "r-1"}),
        ("POST", "/api/rewards/redeem", {"reward_id": " rw-1 "}, "portal.redeemReward", {"reward_id": "rw-1"}),
        (
            "POST",
            "/api/assignments/a-1/mark-complete",
            {"notes": "done"},
            "portal.markAssignmentComplete",
            {"assignment_id": "a-1", "notes": "done"},
        ),
        ("POST", "/api/me/goal", {"goal": "Finish module 3"}, "portal.me.setGoal", {"goal": "Finish module 3"}),
        ("POST", "/api/me/checkin", None, "portal.me.dailyCheckin", None),
        ("POST", "/api/me/quests/q-7/claim", None, "portal.claimQuestReward", {"quest_id": "q-7"}),
        ("PATCH", "/api/me/profile", {"bio": "Hi"}, "portal.me.updateProfile", {"bio": "Hi"}),
        (
            "POST",
            "/api/support/ticket",
            {"category": " billing ", "subject": "Refund", "message": "Please help me"},
            "portal.createSupportTicket",
            {"category": "billing", "subject": "Refund", "message": "Please help me", "page_context": ""},
        ),
    ],
)
def test_student_routes_delegate_named_actions(client, gateway, method, path, body, action, data):
    kwargs = {"headers": STUDENT}
    if body is not None:
        kwargs["json"] = body
    response = client.request(method, path, **kwargs)
    assert response.status_code == 200, response.text
    assert gateway.calls == [(action, gateway.calls[0][1], data)]
    assert gateway.calls[0][1].email == "student@example.com"


def test_raffle_tickets_must_be_a_positive_integer(client, gateway):
    for tickets in (0, -2, "3", 1.5):
        response = client.post("/api/raffles/r-1/enter", json={"ticketsSpent": tickets}, headers=STUDENT)
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_PAYLOAD"
    assert gateway.calls == []


@pytest.mark.parametrize(
    "method,path,body,name,code",
    [
        ("POST", "/api/me/quests/%20/claim", None, "questId", "MISSING_QUEST_ID"),
        ("POST", "/api/assignments/%20/mark-complete", {"notes": "x"}, "assignmentId", "MISSING_ASSIGNMENT_ID"),
        ("POST", "/api/deep-dive/%20/consume", None, "linkId", "MISSING_LINK_ID"),
        ("GET", "/api/discussion/%20", None, "threadId", "MISSING_THREAD_ID"),
        ("POST", "/api/discussion/%20/reply", {"body": "Agreed"}, "threadId", "MISSING_THREAD_ID"),
        ("POST", "/api/hot-takes/%20/vote", {"vote": "agree"}, "takeId", "MISSING_TAKE_ID"),
        ("POST", "/api/raffles/%20/enter", {"ticketsSpent": 1}, "raffleId", "MISSING_RAFFLE_ID"),
    ],
)
def test_blank_path_parameter_is_rejected(client, gateway, method, path, body, name, code):
    kwargs = {"headers": STUDENT}
    if body is not None:
        kwargs["json"] = body
    response = client.request(method, path, **kwargs)
    assert response.status_code == 400
    assert response.json() == {"error": f"{name} is required", "code": code}
    assert gateway.calls == []


def test_path_parameters_are_trimmed(client, gateway):
    client.post("/api/raffles/%20r-1%20/enter", json={"ticketsSpent": 1}, headers=STUDENT)
    client.get("/api/discussion/%20th-2", headers=STUDENT)
    assert [call[2] for call in gateway.calls] == [
        {"raffle_id": "r-1", "tickets_spent": 1},
        {"thread_id": "th-2"},
    ]


def test_missing_required_field(client, gateway):
    response = client.post("/api/rewards/redeem", json={}, headers=STUDENT)
    assert response.status_code == 400
    assert response.json()["code"] == "MISSING_REWARD_ID"
    assert gateway.calls == []


def test_backend_rejection_becomes_500(client, gateway):
    gateway.error = PortalActionError("Not enough tickets", code="INSUFFICIENT_TICKETS")
    response = client.get("/api/leaderboard", headers=STUDENT)
    assert response.status_code == 500
    assert response.json() == {"error": "Not enough tickets", "code": "SERVER_ERROR"}


def test_backend_outage_becomes_500(client, gateway):
    gateway.error = PortalTransportError("Apps Script HTTP 502")
    response = client.get("/api/trophy-case", headers=STUDENT)
    assert response.status_code == 500
    assert response.json()["error"] == "Apps Script HTTP 502"


# Admin


def test_invite_lowercases_email_and_builds_activation_base(client, gateway):
    response = client.post("/api/admin/invites", json={"email": "New.Student@Example.COM"}, headers=ADMIN)
    assert response.status_code == 200
    action, _, data = gateway.calls[0]
    assert action == "portal.admin.createInvite"
    assert data == {
        "email": "new.student@example.com",
        "role": "STUDENT",
        "activation_url_base": "https://portal.test/activate",
    }


def test_invite_rejects_unknown_role(client, gateway):
    response = client.post("/api/admin/invites", json={"email": "a@b.co", "role": "OWNER"}, headers=ADMIN)
    assert response.status_code == 400
    assert "role" in response.json()["details"]["fieldErrors"]


@pytest.mark.parametrize("email", ["a@b..com", "x@-.-", "a@b.c.", "no-at-sign", "two@@example.com"])
def test_malformed_emails_never_reach_the_backend(client, gateway, email):
    response = client.post("/api/admin/invites", json={"email": email}, headers=ADMIN)
    assert response.status_code == 400
    assert "email" in response.json()["details"]["fieldErrors"]
    response = client.post("/api/kudos", json={"recipient_email": email, "message": "Nice"}, headers=STUDENT)
    assert response.status_code == 400
    assert gateway.calls == []


def test_deep_dive_link_requires_http_url(client, gateway):
    link = {"module_id": "m-1", "title": "Pricing primer"}
    for url in ("nope", "ftp://files.example.com/a.pdf", "https://"):
        response = client.post("/api/admin/deep-dive", json={**link, "url": url}, headers=ADMIN)
        assert response.status_code == 400
        assert "url" in response.json()["details"]["fieldErrors"]
    assert gateway.calls == []

    response = client.post(
        "/api/admin/deep-dive", json={**link, "url": "https://example.com/pricing"}, headers=ADMIN
    )
    assert response.status_code == 200
    assert gateway.calls[0][2]["url"] == "https://example.com/pricing"


def test_event_rules_object_is_serialized(client, gateway):
    response = client.post(
        "/api/admin/events",
        json={"title": "Sprint", "rules_json": {"max_entries": 3}},
        headers=ADMIN,
    )
    assert response.status_code == 200
    data = gateway.calls[0][2]
    assert data["rules_json"] == json.dumps({"max_entries": 3}, separators=(",", ":"))
    assert data["status"] == "ACTIVE"


def test_quest_target_string_passes_through(client, gateway):
    response = client.post(
        "/api/admin/quests",
        json={"title": "Streak", "target_type": "checkins", "target_json": '{"days":5}'},
        headers=ADMIN,
    )
    assert response.status_code == 200
    assert gateway.calls[0][2]["target_json"] == '{"days":5}'


@pytest.mark.parametrize(
    "query,expected",
    [("", 7), ("?lookback_days=14", 14), ("?lookback_days=abc", 7), ("?lookback_days=inf", 7)],
)
def test_at_risk_lookback_defaults(client, gateway, query, expected):
    client.get("/api/admin/analytics/at-risk" + query, headers=ADMIN)
    assert gateway.calls[0][2] == {"lookback_days": expected, "persist_snapshots": True}


def test_content_validation_flag(client, gateway):
    client.get("/api/admin/content/validation?check_links=true", headers=ADMIN)
    client.get("/api/admin/content/validation?check_links=1", headers=ADMIN)
    assert [c[2]["check_links"] for c in gateway.calls] == [True, False]


def test_preview_requires_email(client, gateway):
    response = client.get("/api/admin/preview", headers=ADMIN)
    assert response.status_code == 400
    assert response.json()["code"] == "MISSING_EMAIL"
    assert gateway.calls == []


def test_calendar_patch_merges_path_id(client, gateway):
    response = client.patch("/api/admin/calendar/ev-1", json={"title": "Office hours"}, headers=ADMIN)
    assert response.status_code == 200
    assert gateway.calls[0][0] == "portal.admin.upsertCalendarEvent"
    assert gateway.calls[0][2] == {"event_id": "ev-1", "title": "Office hours"}


def test_announcement_patch_keeps_open_body(client, gateway):
    client.patch("/api/admin/announcements/an-1", json={"title": "Hi", "pinned": True}, headers=ADMIN)
    assert gateway.calls[0][2] == {"title": "Hi", "pinned": True, "announcement_id": "an-1"}


def test_student_note_delete_uses_its_own_action(client, gateway):
    client.delete("/api/admin/notes/n-1", headers=ADMIN)
    client.delete("/api/admin/student-notes/n-2", headers=ADMIN)
    assert gateway.actions == ["portal.admin.deleteNote", "portal.admin.deleteStudentNote"]


def test_zoom_link_accepts_empty_string_or_url(client, gateway):
    assert client.post("/api/admin/settings/zoom-link", json={"url": ""}, headers=ADMIN).status_code == 200
    assert client.post(
        "/api/admin/settings/zoom-link", json={"url": "https://zoom.us/j/1"}, headers=ADMIN
    ).status_code == 200
    assert client.post("/api/admin/settings/zoom-link", json={"url": "nope"}, headers=ADMIN).status_code == 400
    assert len(gateway.calls) == 2


def test_support_resolve_requires_ticket_id(client, gateway):
    response = client.post("/api/admin/support/%20/resolve", json={}, headers=ADMIN)
    assert response.status_code == 400
    assert response.json()["code"] == "MISSING_TICKET_ID"


# Curriculum


def test_draft_update_passes_body_through_with_key(client, gateway):
    response = client.patch(
        "/api/admin/curriculum/draft/modules/m-1", json={"title": "Pricing", "custom": {"a": 1}}, headers=ADMIN
    )
    assert response.status_code == 200
    assert gateway.calls[0] == ("portal.admin.updateDraftModule", gateway.calls[0][1], {"title": "Pricing", "custom": {"a": 1}, "module_id": "m-1"})


def test_draft_update_blank_key(client, gateway):
    response = client.patch("/api/admin/curriculum/draft/lessons/%20", json={}, headers=ADMIN)
    assert response.status_code == 400
    assert response.json() == {"error": "lessonKey is required", "code": "MISSING_LESSON_KEY"}


def test_draft_lessons_accept_camel_or_snake_query(client, gateway):
    client.get("/api/admin/curriculum/draft/lessons?programId=p1&module_id=m2", headers=ADMIN)
    assert gateway.calls[0][2] == {"program_id": "p1", "module_id": "m2"}


def test_reorder_requires_known_entity_and_ids(client, gateway):
    bad = client.post("/api/admin/curriculum/draft/reorder", json={"entity": "chapters", "ordered_ids": []}, headers=ADMIN)
    assert bad.status_code == 400
    fields = bad.json()["details"]["fieldErrors"]
    assert "entity" in fields and "ordered_ids" in fields

    good = client.post(
        "/api/admin/curriculum/draft/reorder", json={"entity": "modules", "ordered_ids": ["b", "a"]}, headers=ADMIN
    )
    assert good.status_code == 200
    assert gateway.calls == [
        ("portal.admin.reorderDraftEntities", gateway.calls[0][1], {"entity": "modules", "ordered_ids": ["b", "a"]})
    ]


# Session, health, transcript verification


def test_session_passes_backend_data_through(client, gateway):
    gateway.reply = {"email": "student@example.com", "role": "STUDENT", "status": "SUSPENDED"}
    response = client.get("/api/me/session", headers=STUDENT)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "SUSPENDED"
    assert gateway.actions == ["portal.getSession"]


def test_session_falls_back_without_backend_config(client, gateway, monkeypatch):
    from portal.core.settings import settings

    monkeypatch.setattr(settings, "apps_script_shared_secret", "")
    response = client.get("/api/me/session", headers={"x-portal-email": "Coach@Example.com", "x-portal-role": "instructor"})
    assert response.status_code == 200
    assert response.json() == {
        "ok": True,
        "data": {"email": "coach@example.com", "role": "INSTRUCTOR", "status": "ACTIVE"},
    }
    assert gateway.calls == []


def test_session_degrades_on_transport_failure(client, gateway):
    gateway.error = PortalTransportError("Apps Script timeout after 20000ms")
    response = client.get("/api/me/session", headers=STUDENT)
    assert response.status_code == 200
    assert response.json()["data"] == {"email": "student@example.com", "role": "STUDENT", "status": "ACTIVE"}


def test_session_rejection_reports_code(client, gateway):
    gateway.error = PortalActionError("Account not found", code="NOT_FOUND")
    response = client.get("/api/me/session", headers=STUDENT)
    assert response.status_code == 500
    assert response.json() == {"error": "Account not found (code: NOT_FOUND)", "code": "SERVER_ERROR"}


def _backend_replying(response: httpx.Response) -> None:
    client = PortalBackendClient(
        url="https://backend.test/exec",
        shared_secret="test-secret",
        transport=httpx.MockTransport(lambda request: response),
    )
    set_portal_gateway(PortalGateway(client))


@pytest.mark.parametrize(
    "reply,error",
    [
        (httpx.Response(403, json={"ok": False}), "Apps Script HTTP 403 (code: BACKEND_BAD_REPLY)"),
        (
            httpx.Response(200, text="<html>Sign in</html>"),
            "Apps Script returned an unreadable envelope (code: BACKEND_BAD_REPLY)",
        ),
    ],
)
def test_session_does_not_fall_back_on_bad_replies(client, reply, error):
    _backend_replying(reply)
    response = client.get("/api/me/session", headers=STUDENT)
    assert response.status_code == 500
    assert response.json() == {"error": error, "code": "SERVER_ERROR"}


def test_session_falls_back_on_backend_5xx(client):
    _backend_replying(httpx.Response(503, text="Service unavailable"))
    response = client.get("/api/me/session", headers=STUDENT)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "ACTIVE"


def test_health_reports_healthy(client, gateway):
    gateway.reply = {"sheets": "ok"}
    body = client.get("/api/health").json()
    assert body["ok"] is True
    assert body["status"] == "HEALTHY"
    assert body["backend"] == {"sheets": "ok"}
    assert body["checks"]["apps_script_url_configured"] is True
    action, actor, _ = gateway.calls[0]
    assert action == "portal.getHealth"
    assert actor.role == Role.ADMIN


def test_health_degrades_but_stays_200(client, gateway):
    gateway.error = PortalTransportError("Apps Script HTTP 503")
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "DEGRADED"
    assert response.json()["error"] == "Apps Script HTTP 503"


def test_transcript_verify_is_public_and_uses_service_actor(client, gateway):
    response = client.get("/api/transcript/verify?id=tr-42")
    assert response.status_code == 200
    action, actor, data = gateway.calls[0]
    assert action == "portal.verifyStrategicTranscript"
    assert actor.email == "verifier@portal.local"
    assert actor.role == Role.ADMIN
    assert data == {"transcript_id": "tr-42"}


def test_transcript_verify_requires_id(client, gateway):
    response = client.get("/api/transcript/verify")
    assert response.status_code == 400
    assert response.json()["code"] == "MISSING_TRANSCRIPT_ID"
