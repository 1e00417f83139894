from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
API_DIR = ROOT / "API"
if str(API_DIR) not in sys.path:
    sys.path.insert(0, str(API_DIR))

# Test-mode runtime guards:
# - workflow backend "configured" but never reached (the gateway is replaced per test)
# - no process-wide dev actor, so anonymous requests stay anonymous
# - chat served from process memory
os.environ["APP_ENV"] = "test"
os.environ["APPS_SCRIPT_WEB_APP_URL"] = "https://backend.test/exec"
os.environ["APPS_SCRIPT_SHARED_SECRET"] = "test-secret"
os.environ["DEV_ACTOR_EMAIL"] = ""
os.environ["ALLOW_DEV_HEADERS"] = "true"
os.environ["CHAT_STORE_BACKEND"] = "memory"
os.environ["PORTAL_BASE_URL"] = "https://portal.test"

from portal.core.identity import IdentityUser, InvalidToken, UserNotFound, VerifiedToken, set_identity_provider  # noqa: E402
from portal.core.portal_backend import PortalBackendClient, PortalGateway, set_portal_gateway  # noqa: E402
from portal.main import app  # noqa: E402
from portal.stores.chat import InMemoryChatStore, set_chat_store  # noqa: E402


class RecordingGateway(PortalGateway):
    """Gateway double: records every invocation and answers with ``reply`` (or raises ``error``)."""

    def __init__(self):
        super().__init__(PortalBackendClient(url="https://backend.test/exec", shared_secret="test-secret"))
        self.calls: list[tuple] = []
        self.reply = {"x": 1}
        self.error = None

    async def invoke(self, action, actor, data=None):
        self.calls.append((action, actor, data))
        if self.error is not None:
            raise self.error
        return self.reply

    @property
    def actions(self) -> list[str]:
        return [call[0] for call in self.calls]


class FakeIdentityProvider:
    def __init__(self):
        self.tokens: dict[str, VerifiedToken] = {}
        self.users: dict[str, IdentityUser] = {}
        self.passwords: dict[str, str] = {}
        self.claims: dict[str, dict] = {}
        self.reset_links: list[tuple[str, str]] = []
        self.reset_error: Exception | None = None

    async def verify_token(self, token):
        if token not in self.tokens:
            raise InvalidToken("unknown token")
        return self.tokens[token]

    async def get_user_by_email(self, email):
        if email not in self.users:
            raise UserNotFound(email)
        return self.users[email]

    async def update_password(self, uid, password):
        self.passwords[uid] = password

    async def create_user(self, email, password):
        user = IdentityUser(uid=f"uid-{len(self.users) + 1}", email=email)
        self.users[email] = user
        self.passwords[user.uid] = password
        return user

    async def set_custom_claims(self, uid, claims):
        self.claims[uid] = dict(claims)

    async def generate_password_reset_link(self, email, continue_url):
        if self.reset_error is not None:
            raise self.reset_error
        self.reset_links.append((email, continue_url))
        return f"https://identity.test/reset?email={email}"


@pytest.fixture(scope="session")
def client() -> TestClient:
    with TestClient(app) as tc:
        yield tc


@pytest.fixture(autouse=True)
def gateway():
    fake = RecordingGateway()
    set_portal_gateway(fake)
    yield fake
    set_portal_gateway(None)


@pytest.fixture(autouse=True)
def identity():
    fake = FakeIdentityProvider()
    set_identity_provider(fake)
    yield fake
    set_identity_provider(None)


@pytest.fixture(autouse=True)
def chat_store():
    store = InMemoryChatStore()
    set_chat_store(store)
    yield store
    set_chat_store(None)


STUDENT = {"x-portal-email": "student@example.com", "x-portal-role": "STUDENT"}
INSTRUCTOR = {"x-portal-email": "coach@example.com", "x-portal-role": "INSTRUCTOR"}
ADMIN = {"x-portal-email": "admin@example.com", "x-portal-role": "ADMIN"}
