from datetime import datetime, timezone

from fastapi import APIRouter

from portal.core.errors import ok
from portal.core.portal_backend import ActionFailure, get_portal_gateway
from portal.core.settings import settings
from portal.schemas.portal import Actor, Role

router = APIRouter(prefix="/api", tags=["health"])

DEFAULT_HEALTHCHECK_EMAIL = "healthcheck@portal.local"


def health_actor() -> Actor:
    email = settings.healthcheck_actor_email or settings.dev_actor_email or DEFAULT_HEALTHCHECK_EMAIL
    return Actor.of(email, Role.ADMIN)


@router.get("/health")
async def health():
    checks = {
        "apps_script_url_configured": bool(settings.apps_script_web_app_url),
        "apps_script_secret_configured": bool(settings.apps_script_shared_secret),
        "firebase_project_configured": bool(settings.firebase_project_id),
    }
    ts = datetime.now(timezone.utc).isoformat()
    result = await get_portal_gateway().invoke_result("portal.getHealth", health_actor(), {})
    if isinstance(result, ActionFailure):
        return ok(
            {
                "ok": False,
                "status": "DEGRADED",
                "ts": ts,
                "checks": checks,
                "error": result.message or "Health check failed",
            }
        )
    return ok({"ok": True, "status": "HEALTHY", "ts": ts, "checks": checks, "backend": result.data})
