"""HTTP client for the portal's own ``/api`` surface, used by the session guard and operator scripts."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import httpx

from portal.core.auth import IMPERSONATION_EMAIL_HEADER, IMPERSONATION_ROLE_HEADER
from portal.core.logging import DOMAIN_SESSION, get_domain_logger
from portal.core.settings import settings

logger = get_domain_logger(__name__, DOMAIN_SESSION)

TokenProvider = Callable[[], Awaitable[Optional[str]]]

_UNSET = object()


class PortalApiError(Exception):
    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.message = message
        self.status = status


@dataclass
class PortalApiClient:
    base_url: str
    token_provider: TokenProvider | None = None
    dev_actor_email: str = ""
    dev_actor_role: str = "ADMIN"
    production: bool = False
    timeout: float = 20.0
    transport: httpx.AsyncBaseTransport | None = None

    @classmethod
    def from_settings(cls, base_url: str | None = None, token_provider: TokenProvider | None = None) -> "PortalApiClient":
        return cls(
            base_url=base_url or settings.portal_base_url,
            token_provider=token_provider,
            dev_actor_email=settings.dev_actor_email,
            dev_actor_role=settings.dev_actor_role or "ADMIN",
            production=settings.app_env.lower() in ("prod", "production"),
        )

    async def _bearer_token(self) -> str | None:
        if self.token_provider is None:
            return None
        try:
            return await self.token_provider()
        except Exception as exc:
            # The request still goes out; the server decides whether another strategy applies.
            logger.debug("token provider failed, sending without bearer | error=%s", type(exc).__name__)
            return None

    async def build_headers(self, extra: dict[str, str] | None = None, has_json: bool = False) -> dict[str, str]:
        headers = {key.lower(): value for key, value in (extra or {}).items()}
        if has_json:
            headers.setdefault("content-type", "application/json")

        token = await self._bearer_token()
        if token:
            headers["authorization"] = f"Bearer {token}"

        if not self.production and self.dev_actor_email and IMPERSONATION_EMAIL_HEADER not in headers:
            headers[IMPERSONATION_EMAIL_HEADER] = self.dev_actor_email
            headers[IMPERSONATION_ROLE_HEADER] = self.dev_actor_role or "ADMIN"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = _UNSET,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        has_json = json is not _UNSET
        request_headers = await self.build_headers(headers, has_json=has_json)
        kwargs: dict[str, Any] = {"params": params, "headers": request_headers}
        if has_json:
            kwargs["json"] = json

        async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
            response = await client.request(method, path, **kwargs)

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if not response.is_success:
            if isinstance(payload, dict) and "error" in payload:
                message = str(payload["error"])
            else:
                message = f"Request failed ({response.status_code})"
            raise PortalApiError(message, response.status_code)
        return payload

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, json: Any = None, **kwargs) -> Any:
        return await self.request("POST", path, json={} if json is None else json, **kwargs)

    async def patch(self, path: str, json: Any = None, **kwargs) -> Any:
        return await self.request("PATCH", path, json={} if json is None else json, **kwargs)

    async def delete(self, path: str, **kwargs) -> Any:
        return await self.request("DELETE", path, **kwargs)
