"""Page-level session guard: decides whether a page may render or where to redirect."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from urllib.parse import quote

import httpx

from portal.client.api_client import PortalApiClient, PortalApiError
from portal.client.session_cache import SessionCache
from portal.core.logging import DOMAIN_SESSION, get_domain_logger
from portal.schemas.portal import is_admin_role

logger = get_domain_logger(__name__, DOMAIN_SESSION)

SESSION_PATH = "/api/me/session"
SESSION_TIMEOUT_SECONDS = 8.0
SUSPENDED_REDIRECT = "/login?reason=suspended"
NON_ADMIN_REDIRECT = "/dashboard"


@dataclass(frozen=True)
class GuardDecision:
    allowed: bool
    redirect: str | None = None
    error: str = ""


def _session_fields(payload) -> tuple[str, str]:
    data = payload.get("data") if isinstance(payload, dict) else None
    data = data if isinstance(data, dict) else {}
    role = str(data.get("role") or "").upper()
    status = str(data.get("status") or "ACTIVE").upper()
    return role, status


def login_redirect(path: str | None, reason: str) -> str:
    return f"/login?next={quote(path or '/dashboard', safe='')}&reason={reason}"


class SessionGuard:
    def __init__(
        self,
        client: PortalApiClient,
        cache: SessionCache | None = None,
        timeout_seconds: float = SESSION_TIMEOUT_SECONDS,
    ):
        self.client = client
        self.cache = cache or SessionCache()
        self.timeout_seconds = timeout_seconds
        self._background: set[asyncio.Task] = set()

    def _decide(self, role: str, status: str, require_admin: bool) -> GuardDecision:
        if status == "SUSPENDED":
            return GuardDecision(allowed=False, redirect=SUSPENDED_REDIRECT)
        if require_admin and not is_admin_role(role):
            return GuardDecision(allowed=False, redirect=NON_ADMIN_REDIRECT)
        return GuardDecision(allowed=True)

    async def check(self, require_admin: bool = False, path: str = "/dashboard") -> GuardDecision:
        cached = self.cache.read()
        if cached is not None:
            session, stale = cached
            decision = self._decide(session.role, session.status, require_admin)
            if decision.allowed and stale:
                self._schedule_revalidation(require_admin)
            return decision

        try:
            payload = await asyncio.wait_for(self.client.get(SESSION_PATH), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("session check timed out | path=%s", path)
            return GuardDecision(
                allowed=False,
                redirect=login_redirect(path, "session-check"),
                error="Session verification timed out",
            )
        except PortalApiError as exc:
            logger.info("session check failed | path=%s status=%s error=%s", path, exc.status, exc.message)
            return GuardDecision(allowed=False, redirect=login_redirect(path, "session-check"), error=exc.message)
        except httpx.HTTPError as exc:
            logger.warning("session check unreachable | path=%s error=%s", path, exc)
            return GuardDecision(
                allowed=False,
                redirect=login_redirect(path, "session-check"),
                error=str(exc) or "Session check failed",
            )

        role, status = _session_fields(payload)
        self.cache.write(role, status)
        return self._decide(role, status, require_admin)

    def _schedule_revalidation(self, require_admin: bool) -> None:
        task = asyncio.create_task(self.revalidate(require_admin))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def revalidate(self, require_admin: bool = False) -> None:
        """Refresh the cached session; a failed refresh keeps the stale entry."""
        try:
            payload = await asyncio.wait_for(self.client.get(SESSION_PATH), timeout=self.timeout_seconds)
        except (asyncio.TimeoutError, PortalApiError, httpx.HTTPError) as exc:
            logger.info("background session revalidation failed | error=%s", exc)
            return

        role, status = _session_fields(payload)
        self.cache.write(role, status)
        if status == "SUSPENDED" or (require_admin and not is_admin_role(role)):
            self.cache.clear()

    async def wait_for_background(self) -> None:
        if self._background:
            await asyncio.gather(*list(self._background))
