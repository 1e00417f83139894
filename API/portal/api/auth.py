"""Auth API: invite activation and password-reset requests (no actor required)."""
from fastapi import APIRouter, Request

from portal.core.errors import ok, server_error
from portal.core.identity import UserNotFound, get_identity_provider
from portal.core.logging import DOMAIN_AUTH, get_domain_logger
from portal.core.portal_backend import PortalBackendError, portal_action
from portal.core.portal_route import parse_body
from portal.core.settings import settings
from portal.schemas.payloads import ActivateRequest, ResetRequest
from portal.schemas.portal import Actor, Role, normalize_role

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = get_domain_logger(__name__, DOMAIN_AUTH)

RESET_CONFIRMATION = "If your account exists, a reset link has been sent."


@router.post("/activate")
async def activate(request: Request):
    payload = await parse_body(request, ActivateRequest)
    email = payload.email.lower()
    provider = get_identity_provider()

    try:
        try:
            user = await provider.get_user_by_email(email)
            await provider.update_password(user.uid, payload.password)
        except UserNotFound:
            user = await provider.create_user(email, payload.password)

        activation = await portal_action(
            "portal.activateInvite",
            Actor.of(email, Role.STUDENT),
            {"invite_id": payload.invite_id, "email": email, "firebase_uid": user.uid},
        )
        activation = activation if isinstance(activation, dict) else {}
        role = normalize_role(activation.get("role"))
        await provider.set_custom_claims(user.uid, {"role": role.value})
    except (PortalBackendError, UserNotFound) as exc:
        logger.warning("invite activation failed | email=%s error=%s", email, exc)
        return server_error(str(exc) or "Activation failed")

    logger.info("invite activated | email=%s role=%s", email, role.value)
    return ok(
        {
            "ok": True,
            "user": {
                "uid": user.uid,
                "email": email,
                "role": activation.get("role"),
                "status": activation.get("status"),
            },
        }
    )


@router.post("/request-reset")
async def request_reset(request: Request):
    payload = await parse_body(request, ResetRequest)
    email = payload.email.lower()

    # Identity errors are not reported so the response never reveals whether the account exists.
    try:
        await get_identity_provider().generate_password_reset_link(email, f"{settings.portal_base_url}/login")
    except Exception as exc:
        logger.info("password reset link not generated | error=%s", type(exc).__name__)

    return ok({"ok": True, "message": RESET_CONFIRMATION})
