"""Actor resolution: who is calling, and with which role.

Resolution is an ordered list of strategies; the first one that yields an actor wins.
Development strategies are included only when configuration enables them, so a production
deployment disables impersonation through settings alone.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Mapping

from fastapi import Request

from portal.core.errors import PortalHTTPError
from portal.core.identity import InvalidToken, get_identity_provider
from portal.core.logging import DOMAIN_AUTH, get_domain_logger
from portal.core.settings import Settings, settings
from portal.schemas.portal import Actor, Role

logger = get_domain_logger(__name__, DOMAIN_AUTH)

IMPERSONATION_EMAIL_HEADER = "x-portal-email"
IMPERSONATION_ROLE_HEADER = "x-portal-role"
BEARER_PREFIX = "Bearer "


class ActorStrategy(ABC):
    name: str

    @abstractmethod
    async def resolve(self, headers: Mapping[str, str]) -> Actor | None:
        raise NotImplementedError


class HeaderImpersonationStrategy(ActorStrategy):
    name = "dev_headers"

    async def resolve(self, headers: Mapping[str, str]) -> Actor | None:
        email = (headers.get(IMPERSONATION_EMAIL_HEADER) or "").strip()
        if not email:
            return None
        return Actor.of(email, headers.get(IMPERSONATION_ROLE_HEADER), default_role=Role.STUDENT)


class DevActorStrategy(ActorStrategy):
    name = "dev_actor"

    def __init__(self, email: str, role: str | None):
        self.email = (email or "").strip()
        self.role = role

    async def resolve(self, headers: Mapping[str, str]) -> Actor | None:
        if not self.email:
            return None
        return Actor.of(self.email, self.role, default_role=Role.ADMIN)


def extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


class BearerTokenStrategy(ActorStrategy):
    name = "bearer_token"

    def __init__(self, provider=None):
        self._provider = provider

    async def resolve(self, headers: Mapping[str, str]) -> Actor | None:
        token = extract_bearer_token(headers.get("authorization"))
        if token is None:
            return None
        provider = self._provider or get_identity_provider()
        verified = await provider.verify_token(token)
        email = verified.email.strip()
        if not email:
            logger.warning("verified token carries no email | uid=%s", verified.uid)
            return None
        return Actor.of(email, verified.role_claim, default_role=Role.STUDENT)


class ActorResolver:
    def __init__(self, strategies: list[ActorStrategy]):
        self.strategies = list(strategies)

    async def resolve(self, headers: Mapping[str, str]) -> Actor | None:
        for strategy in self.strategies:
            actor = await strategy.resolve(headers)
            if actor is not None:
                return actor
        return None


def build_actor_resolver(cfg: Settings | None = None, provider=None) -> ActorResolver:
    cfg = cfg or settings
    strategies: list[ActorStrategy] = []
    if cfg.allow_dev_headers:
        strategies.append(HeaderImpersonationStrategy())
    if cfg.dev_actor_email.strip():
        strategies.append(DevActorStrategy(cfg.dev_actor_email, cfg.dev_actor_role))
    strategies.append(BearerTokenStrategy(provider))
    return ActorResolver(strategies)


async def get_actor_from_request(request: Request) -> Actor | None:
    try:
        return await build_actor_resolver().resolve(request.headers)
    except InvalidToken as exc:
        # Rejected or expired tokens are indistinguishable from "no credential" to the caller.
        logger.info("token verification failed | error=%s", exc)
        return None


async def require_actor(request: Request) -> Actor:
    actor = await get_actor_from_request(request)
    if actor is None or not actor.email:
        raise PortalHTTPError(401, "Unauthorized", "UNAUTHORIZED")
    request.state.actor = actor
    return actor


async def require_admin_actor(request: Request) -> Actor:
    actor = await require_actor(request)
    if not actor.is_admin:
        raise PortalHTTPError(403, "Admin role required", "FORBIDDEN")
    return actor
