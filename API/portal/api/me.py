"""Me API: the calling student's own profile, progress and session."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from portal.core.auth import require_actor
from portal.core.errors import ok_envelope, server_error
from portal.core.logging import DOMAIN_SESSION, get_domain_logger
from portal.core.portal_backend import ActionFailure, get_portal_gateway
from portal.core.portal_route import dump_body, parse_body, query_number, require_path_param, run_portal_action
from portal.core.settings import settings
from portal.schemas.payloads import (
    ClaimSubmitRequest,
    GoalRequest,
    JournalEntryRequest,
    NotificationPreferencesRequest,
    OnboardingRequest,
    ProfileUpdateRequest,
    TranscriptRequest,
)
from portal.schemas.portal import Actor

router = APIRouter(prefix="/api/me", tags=["me"])
session_logger = get_domain_logger(__name__, DOMAIN_SESSION)


def fallback_session(actor: Actor) -> dict:
    return {"email": actor.email, "role": actor.role.value, "status": "ACTIVE"}


@router.get("/session")
async def get_session(actor: Actor = Depends(require_actor)):
    if not settings.has_backend_config():
        return ok_envelope(fallback_session(actor))

    result = await get_portal_gateway().invoke_result("portal.getSession", actor)
    if isinstance(result, ActionFailure):
        if result.transport:
            session_logger.warning("session check degraded to identity-only fallback | error=%s", result.message)
            return ok_envelope(fallback_session(actor))
        message = f"{result.message} (code: {result.code})" if result.code else result.message
        return server_error(message or "Session verification failed")
    return ok_envelope(result.data)


@router.get("/activity-timeline")
async def activity_timeline(request: Request, actor: Actor = Depends(require_actor)):
    params = request.query_params
    return await run_portal_action(
        "portal.me.getActivityTimeline",
        actor,
        {"limit": query_number(params.get("limit"), 50), "cursor": params.get("cursor") or ""},
    )


@router.get("/checkin")
async def checkin_status(actor: Actor = Depends(require_actor)):
    return await run_portal_action("portal.me.getCheckinStatus", actor)


@router.post("/checkin")
async def daily_checkin(actor: Actor = Depends(require_actor)):
    return await run_portal_action("portal.me.dailyCheckin", actor)


@router.post("/claims/submit")
async def submit_claim(request: Request, actor: Actor = Depends(require_actor)):
    payload = await parse_body(request, ClaimSubmitRequest, "Invalid claim payload")
    return await run_portal_action("portal.submitClaim", actor, dump_body(payload))


@router.get("/goal")
async def get_goal(actor: Actor = Depends(require_actor)):
    return await run_portal_action("portal.me.getGoal", actor)


@router.post("/goal")
async def set_goal(request: Request, actor: Actor = Depends(require_actor)):
    payload = await parse_body(request, GoalRequest, "Invalid goal payload")
    return await run_portal_action("portal.me.setGoal", actor, {"goal": payload.goal})


@router.get("/journal")
async def list_journal(actor: Actor = Depends(require_actor)):
    return await run_portal_action("portal.getMyJournalEntries", actor)


@router.post("/journal")
async def create_journal_entry(request: Request, actor: Actor = Depends(require_actor)):
    payload = await parse_body(request, JournalEntryRequest, "Invalid journal payload")
    return await run_portal_action("portal.createJournalEntry", actor, dump_body(payload))


@router.get("/notification-preferences")
async def get_notification_preferences(actor: Actor = Depends(require_actor)):
    return await run_portal_action("portal.me.getNotificationPreferences", actor)


@router.post("/notification-preferences")
async def set_notification_preferences(request: Request, actor: Actor = Depends(require_actor)):
    payload = await parse_body(request, NotificationPreferencesRequest, "Invalid preferences payload")
    return await run_portal_action("portal.me.setNotificationPreferences", actor, dump_body(payload))


@router.get("/onboarding")
async def onboarding_status(actor: Actor = Depends(require_actor)):
    return await run_portal_action("portal.me.getOnboardingStatus", actor)


@router.post("/onboarding")
async def update_onboarding(request: Request, actor: Actor = Depends(require_actor)):
    payload = await parse_body(request, OnboardingRequest, "Invalid onboarding payload")
    return await run_portal_action("portal.me.updateOnboarding", actor, dump_body(payload))


@router.get("/profile")
async def get_profile(actor: Actor = Depends(require_actor)):
    return await run_portal_action("portal.me.getProfile", actor)


@router.patch("/profile")
async def update_profile(request: Request, actor: Actor = Depends(require_actor)):
    payload = await parse_body(request, ProfileUpdateRequest, "Invalid profile payload")
    return await run_portal_action("portal.me.updateProfile", actor, dump_body(payload))


@router.post("/quests/{quest_id}/claim")
async def claim_quest_reward(quest_id: str, actor: Actor = Depends(require_actor)):
    quest_id = require_path_param(quest_id, "questId", "MISSING_QUEST_ID")
    return await run_portal_action("portal.claimQuestReward", actor, {"quest_id": quest_id})


@router.get("/recommendations/next-lessons")
async def next_lessons(request: Request, actor: Actor = Depends(require_actor)):
    params = request.query_params
    return await run_portal_action(
        "portal.getNextBestLessons",
        actor,
        {"track": params.get("track") or "", "limit": query_number(params.get("limit"), 5)},
    )


@router.get("/transcript")
async def get_transcript(actor: Actor = Depends(require_actor)):
    return await run_portal_action("portal.getMyStrategicTranscript", actor)


@router.post("/transcript")
async def generate_transcript(request: Request, actor: Actor = Depends(require_actor)):
    payload = await parse_body(request, TranscriptRequest, "Invalid transcript payload")
    return await run_portal_action("portal.generateStrategicTranscript", actor, dump_body(payload))
