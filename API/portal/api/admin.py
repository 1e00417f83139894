"""Admin API: operator tooling for analytics, announcements, events, rewards and support.

Every route here requires an admin-capable actor (ADMIN or INSTRUCTOR). Curriculum drafting
lives in ``portal.api.curriculum`` and chat moderation in ``portal.api.chat``.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from portal.core.auth import require_admin_actor
from portal.core.errors import PortalHTTPError
from portal.core.logging import DOMAIN_ROUTES, get_domain_logger
from portal.core.portal_route import (
    dump_body,
    parse_body,
    query_number,
    read_json_body,
    read_json_object,
    require_field,
    require_path_param,
    run_portal_action,
)
from portal.core.settings import settings
from portal.schemas.payloads import (
    AchievementRunRequest,
    AssignmentRequest,
    BroadcastRequest,
    CalendarEventPatch,
    CalendarEventRequest,
    ChangelogEntryRequest,
    DeepDiveLinkPatch,
    DeepDiveLinkRequest,
    DiscussionAnswerRequest,
    EventRequest,
    InviteRequest,
    JournalScoreRequest,
    PinRequest,
    PodAssignRequest,
    QuestRequest,
    RaffleRequest,
    ReferralRedeemRequest,
    SeasonRequest,
    SupportResolveRequest,
    ZoomLinkRequest,
)
from portal.schemas.portal import Actor

router = APIRouter(prefix="/api/admin", tags=["admin"])
logger = get_domain_logger(__name__, DOMAIN_ROUTES)


# Achievements and action queue


@router.get("/achievements")
async def recent_achievement_runs(actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action("portal.admin.listRecentAchievementRuns", actor)


@router.post("/achievements")
async def run_achievement_check(request: Request, actor: Actor = Depends(require_admin_actor)):
    payload = await parse_body(request, AchievementRunRequest, "Invalid achievement payload")
    return await run_portal_action("portal.admin.runAchievementCheck", actor, dump_body(payload))


@router.post("/action-queue/{action_id}/run")
async def run_queued_action(action_id: str, actor: Actor = Depends(require_admin_actor)):
    action_id = require_path_param(action_id, "id", "MISSING_ID")
    return await run_portal_action("portal.admin.runAction", actor, {"action_id": action_id})


# Analytics


@router.get("/analytics/at-risk")
async def at_risk_students(request: Request, actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action(
        "portal.admin.getAtRiskStudents",
        actor,
        {"lookback_days": query_number(request.query_params.get("lookback_days"), 7), "persist_snapshots": True},
    )


@router.get("/analytics/cohort-trends")
async def cohort_trends(request: Request, actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action(
        "portal.admin.getCohortTrends", actor, {"weeks_back": query_number(request.query_params.get("weeks_back"), 8)}
    )


@router.get("/analytics/decision-trends")
async def decision_trends(request: Request, actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action(
        "portal.admin.getDecisionTrends", actor, {"email": request.query_params.get("email") or ""}
    )


@router.get("/audit-log")
async def audit_log(request: Request, actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action(
        "portal.admin.getAuditLog", actor, {"limit": query_number(request.query_params.get("limit"), 200)}
    )


@router.get("/content/validation")
async def content_validation(request: Request, actor: Actor = Depends(require_admin_actor)):
    check_links = request.query_params.get("check_links") == "true"
    return await run_portal_action(
        "portal.admin.getContentValidation", actor, {"check_links": check_links, "persist": True}
    )


@router.get("/engagement/overview")
async def engagement_overview(request: Request, actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action(
        "portal.admin.getEngagementOverview", actor, {"days": query_number(request.query_params.get("days"), 7)}
    )


@router.get("/preview")
async def student_preview(request: Request, actor: Actor = Depends(require_admin_actor)):
    email = request.query_params.get("email") or ""
    if not email:
        raise PortalHTTPError(400, "email query param is required", "MISSING_EMAIL")
    return await run_portal_action("portal.admin.getStudentPreview", actor, {"email": email})


# Announcements, broadcast, changelog


@router.get("/announcements")
async def list_announcements(actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action("portal.admin.listAnnouncements", actor)


@router.post("/announcements")
async def create_announcement(request: Request, actor: Actor = Depends(require_admin_actor)):
    body = await read_json_body(request)
    return await run_portal_action("portal.admin.upsertAnnouncement", actor, body)


@router.patch("/announcements/{announcement_id}")
async def update_announcement(announcement_id: str, request: Request, actor: Actor = Depends(require_admin_actor)):
    announcement_id = require_path_param(announcement_id, "id", "MISSING_ID")
    body = await read_json_object(request)
    return await run_portal_action(
        "portal.admin.upsertAnnouncement", actor, {**body, "announcement_id": announcement_id}
    )


@router.delete("/announcements/{announcement_id}")
async def delete_announcement(announcement_id: str, actor: Actor = Depends(require_admin_actor)):
    announcement_id = require_path_param(announcement_id, "id", "MISSING_ID")
    return await run_portal_action("portal.admin.deleteAnnouncement", actor, {"announcement_id": announcement_id})


@router.post("/announcements/{announcement_id}/dismiss")
async def dismiss_announcement(announcement_id: str, actor: Actor = Depends(require_admin_actor)):
    announcement_id = require_path_param(announcement_id, "id", "MISSING_ID")
    return await run_portal_action("portal.admin.dismissAnnouncement", actor, {"announcement_id": announcement_id})


@router.post("/broadcast")
async def broadcast(request: Request, actor: Actor = Depends(require_admin_actor)):
    payload = await parse_body(request, BroadcastRequest, "Invalid broadcast payload")
    logger.info("broadcast requested | by=%s length=%d", actor.email, len(payload.message))
    return await run_portal_action("portal.admin.broadcastMessage", actor, {"message": payload.message})


@router.get("/changelog")
async def changelog(actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action("portal.admin.getChangelog", actor)


@router.post("/changelog")
async def add_changelog_entry(request: Request, actor: Actor = Depends(require_admin_actor)):
    payload = await parse_body(request, ChangelogEntryRequest, "Invalid changelog payload")
    return await run_portal_action("portal.admin.addChangelogEntry", actor, dump_body(payload))


# Assignments and calendar


@router.get("/assignments")
async def list_assignments(actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action("portal.getAssignments", actor)


@router.post("/assignments")
async def upsert_assignment(request: Request, actor: Actor = Depends(require_admin_actor)):
    payload = await parse_body(request, AssignmentRequest, "Invalid assignment payload")
    return await run_portal_action("portal.admin.upsertAssignment", actor, dump_body(payload))


@router.get("/calendar")
async def list_calendar(actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action("portal.getCalendar", actor)


@router.post("/calendar")
async def create_calendar_event(request: Request, actor: Actor = Depends(require_admin_actor)):
    payload = await parse_body(request, CalendarEventRequest, "Invalid event payload")
    return await run_portal_action("portal.admin.upsertCalendarEvent", actor, dump_body(payload))


@router.patch("/calendar/{event_id}")
async def update_calendar_event(event_id: str, request: Request, actor: Actor = Depends(require_admin_actor)):
    event_id = require_path_param(event_id, "id", "MISSING_ID")
    payload = await parse_body(request, CalendarEventPatch, "Invalid calendar event payload")
    return await run_portal_action(
        "portal.admin.upsertCalendarEvent", actor, {"event_id": event_id, **dump_body(payload)}
    )


@router.delete("/calendar/{event_id}")
async def delete_calendar_event(event_id: str, actor: Actor = Depends(require_admin_actor)):
    event_id = require_path_param(event_id, "id", "MISSING_ID")
    return await run_portal_action("portal.admin.deleteCalendarEvent", actor, {"event_id": event_id})


# Deep-dive links and discussion


@router.get("/deep-dive")
async def list_deep_dive_links(actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action("portal.admin.listDeepDiveLinks", actor)


@router.post("/deep-dive")
async def add_deep_dive_link(request: Request, actor: Actor = Depends(require_admin_actor)):
    payload = await parse_body(request, DeepDiveLinkRequest, "Invalid deep-dive payload")
    return await run_portal_action("portal.admin.addDeepDiveLink", actor, dump_body(payload))


@router.patch("/deep-dive/{link_id}")
async def update_deep_dive_link(link_id: str, request: Request, actor: Actor = Depends(require_admin_actor)):
    link_id = require_path_param(link_id, "id", "MISSING_ID")
    payload = await parse_body(request, DeepDiveLinkPatch, "Invalid patch payload")
    return await run_portal_action("portal.admin.updateDeepDiveLink", actor, {"link_id": link_id, **dump_body(payload)})


@router.delete("/deep-dive/{link_id}")
async def delete_deep_dive_link(link_id: str, actor: Actor = Depends(require_admin_actor)):
    link_id = require_path_param(link_id, "id", "MISSING_ID")
    return await run_portal_action("portal.admin.deleteDeepDiveLink", actor, {"link_id": link_id})


@router.post("/discussion/{thread_id}/answer")
async def mark_discussion_answer(thread_id: str, request: Request, actor: Actor = Depends(require_admin_actor)):
    thread_id = require_path_param(thread_id, "threadId", "MISSING_THREAD_ID")
    payload = await parse_body(request, DiscussionAnswerRequest, "Invalid answer payload")
    return await run_portal_action(
        "portal.admin.markDiscussionAnswer", actor, {"thread_id": thread_id, "reply_id": payload.reply_id}
    )


# Events, seasons, pods, quests


@router.get("/events")
async def list_events(request: Request, actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action(
        "portal.admin.listEvents", actor, {"season_id": request.query_params.get("season_id") or ""}
    )


@router.post("/events")
async def upsert_event(request: Request, actor: Actor = Depends(require_admin_actor)):
    payload = await parse_body(request, EventRequest, "Invalid event payload")
    return await run_portal_action("portal.admin.upsertEvent", actor, dump_body(payload))


@router.get("/seasons")
async def list_seasons(actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action("portal.admin.listSeasons", actor)


@router.post("/seasons")
async def create_season(request: Request, actor: Actor = Depends(require_admin_actor)):
    payload = await parse_body(request, SeasonRequest, "Invalid season payload")
    return await run_portal_action("portal.admin.createSeason", actor, dump_body(payload))


@router.get("/pods")
async def list_pods(request: Request, actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action(
        "portal.admin.listPods", actor, {"season_id": request.query_params.get("season_id") or ""}
    )


@router.post("/pods/assign")
async def assign_pods(request: Request, actor: Actor = Depends(require_admin_actor)):
    payload = await parse_body(request, PodAssignRequest, "Invalid pod assignment payload")
    return await run_portal_action("portal.admin.assignPods", actor, dump_body(payload))


@router.get("/quests")
async def list_quests(actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action("portal.admin.listQuests", actor)


@router.post("/quests")
async def upsert_quest(request: Request, actor: Actor = Depends(require_admin_actor)):
    payload = await parse_body(request, QuestRequest, "Invalid quest payload")
    return await run_portal_action("portal.admin.upsertQuest", actor, dump_body(payload))


# Invites, journal, kudos, notes, spotlight


@router.post("/invites")
async def create_invite(request: Request, actor: Actor = Depends(require_admin_actor)):
    payload = await parse_body(request, InviteRequest, "Invalid invite payload")
    logger.info("invite requested | email=%s role=%s by=%s", payload.email.lower(), payload.role, actor.email)
    return await run_portal_action(
        "portal.admin.createInvite",
        actor,
        {
            "email": payload.email.lower(),
            "role": payload.role,
            "activation_url_base": f"{settings.portal_base_url}/activate",
        },
    )


@router.post("/journal/score")
async def score_journal_entry(request: Request, actor: Actor = Depends(require_admin_actor)):
    payload = await parse_body(request, JournalScoreRequest, "Invalid journal score payload")
    return await run_portal_action("portal.admin.scoreJournalEntry", actor, dump_body(payload))


@router.post("/kudos/{kudos_id}/pin")
async def pin_shoutout(kudos_id: str, request: Request, actor: Actor = Depends(require_admin_actor)):
    kudos_id = require_path_param(kudos_id, "id", "MISSING_ID")
    payload = await parse_body(request, PinRequest, "Invalid pin payload")
    return await run_portal_action("portal.admin.pinShoutout", actor, {"kudos_id": kudos_id, "pinned": payload.pinned})


@router.get("/notes")
async def list_notes(request: Request, actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action(
        "portal.admin.getNotes", actor, {"student_email": request.query_params.get("email")}
    )


@router.post("/notes")
async def save_note(request: Request, actor: Actor = Depends(require_admin_actor)):
    body = await read_json_object(request)
    require_field(body, "student_email")
    require_field(body, "content")
    return await run_portal_action("portal.admin.saveNote", actor, body)


@router.delete("/notes/{note_id}")
async def delete_note(note_id: str, actor: Actor = Depends(require_admin_actor)):
    note_id = require_path_param(note_id, "id", "MISSING_ID")
    return await run_portal_action("portal.admin.deleteNote", actor, {"note_id": note_id})


@router.delete("/student-notes/{note_id}")
async def delete_student_note(note_id: str, actor: Actor = Depends(require_admin_actor)):
    note_id = require_path_param(note_id, "noteId", "MISSING_NOTE_ID")
    return await run_portal_action("portal.admin.deleteStudentNote", actor, {"note_id": note_id})


@router.post("/spotlight")
async def generate_spotlight(request: Request, actor: Actor = Depends(require_admin_actor)):
    body = await read_json_object(request)
    require_field(body, "student_email")
    return await run_portal_action("portal.admin.generateSpotlight", actor, body)


# Raffles, referrals, rewards


@router.get("/raffles")
async def active_raffle(actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action("portal.getActiveRaffle", actor)


@router.post("/raffles")
async def create_raffle(request: Request, actor: Actor = Depends(require_admin_actor)):
    payload = await parse_body(request, RaffleRequest, "Invalid raffle payload")
    return await run_portal_action("portal.admin.createRaffle", actor, dump_body(payload))


@router.post("/raffles/{raffle_id}/close-draw")
async def close_draw_raffle(raffle_id: str, actor: Actor = Depends(require_admin_actor)):
    raffle_id = require_path_param(raffle_id, "raffleId", "MISSING_RAFFLE_ID")
    return await run_portal_action("portal.admin.closeDrawRaffle", actor, {"raffle_id": raffle_id})


@router.post("/referrals/redeem")
async def redeem_referral(request: Request, actor: Actor = Depends(require_admin_actor)):
    payload = await parse_body(request, ReferralRedeemRequest, "Invalid payload")
    return await run_portal_action("portal.admin.redeemReferral", actor, dump_body(payload))


@router.post("/rewards/fulfill")
async def fulfill_redemption(request: Request, actor: Actor = Depends(require_admin_actor)):
    body = await read_json_object(request)
    require_field(body, "redemption_id")
    return await run_portal_action("portal.admin.fulfillRedemption", actor, body)


# Settings, smoke checks, support


@router.get("/settings/zoom-link")
async def get_zoom_link(actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action("portal.admin.getZoomLink", actor)


@router.post("/settings/zoom-link")
async def set_zoom_link(request: Request, actor: Actor = Depends(require_admin_actor)):
    payload = await parse_body(request, ZoomLinkRequest, "Invalid zoom link payload")
    return await run_portal_action("portal.admin.setZoomLink", actor, {"url": str(payload.url)})


@router.post("/smoke/run")
async def run_smoke_checks(actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action("portal.admin.runSmokeChecks", actor, {})


@router.get("/support")
async def support_tickets(actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action("portal.admin.getSupportTickets", actor)


@router.post("/support/{ticket_id}/resolve")
async def resolve_support_ticket(ticket_id: str, request: Request, actor: Actor = Depends(require_admin_actor)):
    ticket_id = require_path_param(ticket_id, "ticketId", "MISSING_TICKET_ID")
    payload = await parse_body(request, SupportResolveRequest, "Invalid resolve payload")
    return await run_portal_action(
        "portal.admin.resolveSupportTicket",
        actor,
        {
            "ticket_id": ticket_id,
            "resolution_note": payload.resolution_note,
            "notify_student": payload.notify_student,
        },
    )
