"""Student-facing community, rewards and support routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from portal.core.auth import require_actor
from portal.core.errors import PortalHTTPError
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
    DiscussionReplyRequest,
    DiscussionThreadRequest,
    EventSubmitRequest,
    HotTakeRequest,
    HotTakeVoteRequest,
    PodChatMessageRequest,
    PodKudosRequest,
    RaffleEntryRequest,
    ShoutoutRequest,
    SupportTicketRequest,
)
from portal.schemas.portal import Actor, Role

router = APIRouter(prefix="/api", tags=["community"])

DEFAULT_VERIFIER_EMAIL = "verifier@portal.local"


@router.get("/announcements")
async def active_announcements(actor: Actor = Depends(require_actor)):
    return await run_portal_action("portal.getActiveAnnouncements", actor)


@router.post("/announcements")
async def dismiss_announcement(request: Request, actor: Actor = Depends(require_actor)):
    body = await read_json_object(request)
    require_field(body, "announcement_id")
    return await run_portal_action("portal.dismissAnnouncement", actor, body)


@router.post("/assignments/{assignment_id}/mark-complete")
async def mark_assignment_complete(assignment_id: str, request: Request, actor: Actor = Depends(require_actor)):
    assignment_id = require_path_param(assignment_id, "assignmentId", "MISSING_ASSIGNMENT_ID")
    body = await read_json_body(request)
    notes = body.get("notes") if isinstance(body, dict) else ""
    return await run_portal_action(
        "portal.markAssignmentComplete", actor, {"assignment_id": assignment_id, "notes": notes or ""}
    )


@router.get("/deep-dive")
async def deep_dive_links(request: Request, actor: Actor = Depends(require_actor)):
    return await run_portal_action(
        "portal.getDeepDiveLinks", actor, {"module_id": request.query_params.get("module_id") or ""}
    )


@router.post("/deep-dive/{link_id}/consume")
async def consume_deep_dive_link(link_id: str, actor: Actor = Depends(require_actor)):
    link_id = require_path_param(link_id, "linkId", "MISSING_LINK_ID")
    return await run_portal_action("portal.consumeDeepDiveLink", actor, {"link_id": link_id})


@router.get("/discussion")
async def discussion_threads(request: Request, actor: Actor = Depends(require_actor)):
    return await run_portal_action(
        "portal.getDiscussionThreads", actor, {"module_id": request.query_params.get("module_id") or ""}
    )


@router.post("/discussion")
async def create_discussion_thread(request: Request, actor: Actor = Depends(require_actor)):
    payload = await parse_body(request, DiscussionThreadRequest, "Invalid thread payload")
    return await run_portal_action("portal.createDiscussionThread", actor, dump_body(payload))


@router.get("/discussion/{thread_id}")
async def discussion_thread(thread_id: str, actor: Actor = Depends(require_actor)):
    thread_id = require_path_param(thread_id, "threadId", "MISSING_THREAD_ID")
    return await run_portal_action("portal.getDiscussionThread", actor, {"thread_id": thread_id})


@router.post("/discussion/{thread_id}/reply")
async def reply_to_thread(thread_id: str, request: Request, actor: Actor = Depends(require_actor)):
    thread_id = require_path_param(thread_id, "threadId", "MISSING_THREAD_ID")
    payload = await parse_body(request, DiscussionReplyRequest, "Invalid reply payload")
    return await run_portal_action(
        "portal.replyToDiscussionThread", actor, {"thread_id": thread_id, "body": payload.body}
    )


@router.post("/events/{event_id}/submit")
async def submit_event_entry(event_id: str, request: Request, actor: Actor = Depends(require_actor)):
    event_id = require_path_param(event_id, "eventId", "MISSING_EVENT_ID")
    payload = await parse_body(request, EventSubmitRequest, "Invalid event submit payload")
    return await run_portal_action(
        "portal.submitEventEntry",
        actor,
        {"event_id": event_id, "claim_code": payload.claim_code, "reflection_note": payload.reflection_note},
    )


@router.get("/hot-takes")
async def hot_takes(actor: Actor = Depends(require_actor)):
    return await run_portal_action("portal.getHotTakes", actor)


@router.post("/hot-takes")
async def post_hot_take(request: Request, actor: Actor = Depends(require_actor)):
    payload = await parse_body(request, HotTakeRequest, "Invalid hot take payload")
    return await run_portal_action("portal.postHotTake", actor, dump_body(payload))


@router.post("/hot-takes/{take_id}/vote")
async def vote_hot_take(take_id: str, request: Request, actor: Actor = Depends(require_actor)):
    take_id = require_path_param(take_id, "takeId", "MISSING_TAKE_ID")
    payload = await parse_body(request, HotTakeVoteRequest, "Invalid vote payload")
    return await run_portal_action("portal.voteHotTake", actor, {"take_id": take_id, "vote": payload.vote})


@router.get("/kudos")
async def kudos_feed(request: Request, actor: Actor = Depends(require_actor)):
    params = request.query_params
    return await run_portal_action(
        "portal.getKudos",
        actor,
        {"limit": query_number(params.get("limit"), 50), "cursor": params.get("cursor") or ""},
    )


@router.post("/kudos")
async def send_shoutout(request: Request, actor: Actor = Depends(require_actor)):
    payload = await parse_body(request, ShoutoutRequest, "Invalid shoutout payload")
    return await run_portal_action("portal.sendShoutout", actor, dump_body(payload))


@router.get("/leaderboard")
async def leaderboard(request: Request, actor: Actor = Depends(require_actor)):
    return await run_portal_action(
        "portal.getLeaderboard", actor, {"track": request.query_params.get("track") or "all"}
    )


@router.get("/leagues/standings")
async def league_standings(request: Request, actor: Actor = Depends(require_actor)):
    params = request.query_params
    return await run_portal_action(
        "portal.getLeagueStandings",
        actor,
        {"scope": params.get("scope") or "individual", "season_id": params.get("season_id") or ""},
    )


@router.get("/pod-chat")
async def pod_chat(request: Request, actor: Actor = Depends(require_actor)):
    params = request.query_params
    return await run_portal_action(
        "portal.getPodChat",
        actor,
        {"limit": query_number(params.get("limit"), 60), "cursor": params.get("cursor") or ""},
    )


@router.post("/pod-chat")
async def send_pod_chat_message(request: Request, actor: Actor = Depends(require_actor)):
    payload = await parse_body(request, PodChatMessageRequest, "Invalid message payload")
    return await run_portal_action("portal.sendPodChatMessage", actor, dump_body(payload))


@router.post("/pods/{pod_id}/kudos")
async def send_pod_kudos(pod_id: str, request: Request, actor: Actor = Depends(require_actor)):
    pod_id = require_path_param(pod_id, "podId", "MISSING_POD_ID")
    payload = await parse_body(request, PodKudosRequest, "Invalid kudos payload")
    return await run_portal_action(
        "portal.sendPodKudos",
        actor,
        {"pod_id": pod_id, "target_email": payload.target_email, "message": payload.message},
    )


@router.post("/raffles/{raffle_id}/enter")
async def enter_raffle(raffle_id: str, request: Request, actor: Actor = Depends(require_actor)):
    raffle_id = require_path_param(raffle_id, "raffleId", "MISSING_RAFFLE_ID")
    payload = await parse_body(request, RaffleEntryRequest, "Invalid raffle entry payload")
    return await run_portal_action(
        "portal.enterRaffle", actor, {"raffle_id": raffle_id, "tickets_spent": payload.tickets_spent}
    )


@router.get("/raffles/me/entries")
async def my_raffle_entries(request: Request, actor: Actor = Depends(require_actor)):
    return await run_portal_action(
        "portal.getMyRaffleEntries", actor, {"raffle_id": request.query_params.get("raffleId") or ""}
    )


@router.get("/referrals")
async def my_referral_link(actor: Actor = Depends(require_actor)):
    return await run_portal_action("portal.getMyReferralLink", actor)


@router.post("/rewards/redeem")
async def redeem_reward(request: Request, actor: Actor = Depends(require_actor)):
    body = await read_json_object(request)
    reward_id = require_field(body, "reward_id")
    return await run_portal_action("portal.redeemReward", actor, {"reward_id": reward_id})


@router.post("/support/ticket")
async def create_support_ticket(request: Request, actor: Actor = Depends(require_actor)):
    payload = await parse_body(request, SupportTicketRequest, "Invalid support ticket payload")
    return await run_portal_action("portal.createSupportTicket", actor, dump_body(payload))


@router.get("/trophy-case")
async def trophy_case(request: Request, actor: Actor = Depends(require_actor)):
    return await run_portal_action(
        "portal.getTrophyCase", actor, {"student_email": request.query_params.get("student_email") or ""}
    )


def verifier_actor() -> Actor:
    email = settings.transcript_verify_actor_email or settings.dev_actor_email or DEFAULT_VERIFIER_EMAIL
    return Actor.of(email, Role.ADMIN)


@router.get("/transcript/verify")
async def verify_transcript(request: Request):
    params = request.query_params
    transcript_id = str(params.get("transcript_id") or params.get("id") or "").strip()
    if not transcript_id:
        raise PortalHTTPError(400, "transcript_id is required", "MISSING_TRANSCRIPT_ID")

    return await run_portal_action(
        "portal.verifyStrategicTranscript", verifier_actor(), {"transcript_id": transcript_id}
    )
