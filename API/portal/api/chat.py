from fastapi import APIRouter, Depends, Request

from portal.core.auth import require_actor, require_admin_actor
from portal.core.errors import PortalHTTPError, ok, ok_envelope
from portal.core.logging import DOMAIN_CHAT, get_domain_logger
from portal.core.portal_route import parse_body, query_number
from portal.schemas.payloads import ChatModerateRequest, ChatPostRequest
from portal.schemas.portal import Actor
from portal.stores.chat import get_chat_store

router = APIRouter(prefix="/api", tags=["chat"])
logger = get_domain_logger(__name__, DOMAIN_CHAT)


def _limit(raw: str | None, default: int) -> int:
    return int(query_number(raw, default))


async def _moderate(message_id: str, actor: Actor):
    await get_chat_store().moderate_message(message_id)
    logger.info("message moderated | message_id=%s by=%s", message_id, actor.email)
    return ok({"ok": True, "message": "Message moderated"})


@router.get("/chat/messages")
async def list_messages(request: Request, actor: Actor = Depends(require_actor)):
    messages = await get_chat_store().list_messages(_limit(request.query_params.get("limit"), 100))
    return ok_envelope([message.model_dump() for message in messages])


@router.post("/chat/messages")
async def post_message(request: Request, actor: Actor = Depends(require_actor)):
    payload = await parse_body(request, ChatPostRequest, "Invalid chat payload")

    if payload.action == "moderate":
        if not actor.is_admin:
            raise PortalHTTPError(403, "Admin role required for moderation", "FORBIDDEN")
        if not payload.message_id:
            raise PortalHTTPError(400, "messageId is required for moderation", "MISSING_MESSAGE_ID")
        return await _moderate(payload.message_id, actor)

    text = (payload.text or "").strip()
    if not text:
        raise PortalHTTPError(400, "text is required", "MISSING_TEXT")

    created = await get_chat_store().create_message(actor.email, actor.role.value, text)
    return ok_envelope(created.model_dump())


@router.get("/admin/chat")
async def admin_list_messages(request: Request, actor: Actor = Depends(require_admin_actor)):
    messages = await get_chat_store().list_messages(_limit(request.query_params.get("limit"), 200))
    return ok_envelope([message.model_dump() for message in messages])


@router.post("/admin/chat/moderate")
async def admin_moderate(request: Request, actor: Actor = Depends(require_admin_actor)):
    payload = await parse_body(request, ChatModerateRequest, "Invalid payload")
    return await _moderate(payload.message_id, actor)
