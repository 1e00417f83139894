"""Firebase Admin wrapper for token verification and account management."""
from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import Any

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials
from starlette.concurrency import run_in_threadpool

from portal.core.logging import DOMAIN_AUTH, get_domain_logger
from portal.core.settings import settings

logger = get_domain_logger(__name__, DOMAIN_AUTH)

_app_lock = Lock()


def ensure_firebase_app() -> firebase_admin.App:
    """Initialize the default Firebase app once; concurrent first calls share one instance."""
    with _app_lock:
        try:
            return firebase_admin.get_app()
        except ValueError:
            pass
        if settings.firebase_client_email and settings.firebase_private_key:
            cred = credentials.Certificate(
                {
                    "type": "service_account",
                    "project_id": settings.firebase_project_id,
                    "client_email": settings.firebase_client_email,
                    "private_key": settings.firebase_private_key,
                    "token_uri": "https://oauth2.googleapis.com/token",
                }
            )
        else:
            cred = credentials.ApplicationDefault()
        options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
        logger.info("initializing firebase admin app | project=%s", settings.firebase_project_id or "default")
        return firebase_admin.initialize_app(cred, options)


@dataclass(frozen=True)
class IdentityUser:
    uid: str
    email: str


@dataclass(frozen=True)
class VerifiedToken:
    email: str
    role_claim: Any = None
    uid: str = ""


class UserNotFound(Exception):
    pass


class InvalidToken(Exception):
    """The presented ID token is malformed, expired, revoked or signed for another project."""


class FirebaseIdentityProvider:
    """Thin async facade over ``firebase_admin.auth``; the SDK is blocking so calls run in a threadpool."""

    def __init__(self, app: firebase_admin.App | None = None):
        self._app = app

    @property
    def app(self) -> firebase_admin.App:
        if self._app is None:
            self._app = ensure_firebase_app()
        return self._app

    async def verify_token(self, token: str) -> VerifiedToken:
        try:
            decoded = await run_in_threadpool(firebase_auth.verify_id_token, token, self.app)
        except (ValueError, firebase_auth.InvalidIdTokenError) as exc:
            raise InvalidToken(str(exc)) from exc
        return VerifiedToken(
            email=str(decoded.get("email") or ""),
            role_claim=decoded.get("role"),
            uid=str(decoded.get("uid") or decoded.get("sub") or ""),
        )

    async def get_user_by_email(self, email: str) -> IdentityUser:
        try:
            record = await run_in_threadpool(firebase_auth.get_user_by_email, email, self.app)
        except firebase_auth.UserNotFoundError as exc:
            raise UserNotFound(email) from exc
        return IdentityUser(uid=record.uid, email=record.email or email)

    async def update_password(self, uid: str, password: str) -> None:
        await run_in_threadpool(lambda: firebase_auth.update_user(uid, password=password, app=self.app))

    async def create_user(self, email: str, password: str) -> IdentityUser:
        record = await run_in_threadpool(
            lambda: firebase_auth.create_user(email=email, password=password, email_verified=True, app=self.app)
        )
        return IdentityUser(uid=record.uid, email=record.email or email)

    async def set_custom_claims(self, uid: str, claims: dict) -> None:
        await run_in_threadpool(firebase_auth.set_custom_user_claims, uid, claims, self.app)

    async def generate_password_reset_link(self, email: str, continue_url: str) -> str:
        action_settings = firebase_auth.ActionCodeSettings(url=continue_url)
        return await run_in_threadpool(firebase_auth.generate_password_reset_link, email, action_settings, self.app)


_provider: FirebaseIdentityProvider | None = None
_provider_lock = Lock()


def get_identity_provider():
    global _provider
    with _provider_lock:
        if _provider is None:
            _provider = FirebaseIdentityProvider()
        return _provider


def set_identity_provider(provider) -> None:
    global _provider
    with _provider_lock:
        _provider = provider
