from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from threading import Lock

from firebase_admin import firestore
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from portal.core.identity import ensure_firebase_app
from portal.core.logging import DOMAIN_CHAT, get_domain_logger
from portal.core.settings import settings

logger = get_domain_logger(__name__, DOMAIN_CHAT)

COLLECTION = "class_chat_messages"
MODERATED_TEXT = "[Message removed by moderator]"
MIN_LIST_LIMIT = 1
MAX_LIST_LIMIT = 500


class ChatMessage(BaseModel):
    id: str
    authorEmail: str
    authorRole: str = "STUDENT"
    text: str = ""
    createdAt: str = ""
    moderated: bool = False


def clamp_limit(limit: int) -> int:
    return max(MIN_LIST_LIMIT, min(MAX_LIST_LIMIT, int(limit)))


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _from_document(doc_id: str, data: dict) -> ChatMessage:
    return ChatMessage(
        id=doc_id,
        authorEmail=str(data.get("authorEmail") or ""),
        authorRole=str(data.get("authorRole") or "STUDENT"),
        text=str(data.get("text") or ""),
        createdAt=str(data.get("createdAt") or ""),
        moderated=bool(data.get("moderated") or False),
    )


class ChatStore(ABC):
    @abstractmethod
    async def list_messages(self, limit: int = 100) -> list[ChatMessage]:
        """Most recent ``limit`` messages, returned oldest first."""
        raise NotImplementedError

    @abstractmethod
    async def create_message(self, author_email: str, author_role: str, text: str) -> ChatMessage:
        raise NotImplementedError

    @abstractmethod
    async def moderate_message(self, message_id: str) -> None:
        """Overwrite the message text in place and flag it as moderated."""
        raise NotImplementedError


class InMemoryChatStore(ChatStore):
    """Process-local store for development and tests."""

    def __init__(self):
        self._docs: dict[str, dict] = {}
        self._lock = Lock()

    async def list_messages(self, limit: int = 100) -> list[ChatMessage]:
        with self._lock:
            items = list(self._docs.items())
        # Insertion order breaks ties between messages created in the same millisecond.
        ranked = sorted(enumerate(items), key=lambda pair: (pair[1][1].get("createdAt", ""), pair[0]), reverse=True)
        window = [item for _, item in ranked[: clamp_limit(limit)]]
        return [_from_document(doc_id, data) for doc_id, data in reversed(window)]

    async def create_message(self, author_email: str, author_role: str, text: str) -> ChatMessage:
        doc = {
            "authorEmail": author_email.lower(),
            "authorRole": author_role,
            "text": text,
            "createdAt": _now_iso(),
            "moderated": False,
        }
        doc_id = uuid.uuid4().hex[:20]
        with self._lock:
            self._docs[doc_id] = doc
        return _from_document(doc_id, doc)

    async def moderate_message(self, message_id: str) -> None:
        with self._lock:
            doc = self._docs.setdefault(message_id, {})
            doc.update({"moderated": True, "text": MODERATED_TEXT})


class FirestoreChatStore(ChatStore):
    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = firestore.client(ensure_firebase_app())
        return self._client

    async def list_messages(self, limit: int = 100) -> list[ChatMessage]:
        def _fetch():
            query = (
                self.client.collection(COLLECTION)
                .order_by("createdAt", direction=firestore.Query.DESCENDING)
                .limit(clamp_limit(limit))
            )
            return [_from_document(doc.id, doc.to_dict() or {}) for doc in query.stream()]

        newest_first = await run_in_threadpool(_fetch)
        return list(reversed(newest_first))

    async def create_message(self, author_email: str, author_role: str, text: str) -> ChatMessage:
        doc = {
            "authorEmail": author_email.lower(),
            "authorRole": author_role,
            "text": text,
            "createdAt": _now_iso(),
            "moderated": False,
        }

        def _write():
            ref = self.client.collection(COLLECTION).document()
            ref.set(doc)
            return ref.id

        doc_id = await run_in_threadpool(_write)
        return _from_document(doc_id, doc)

    async def moderate_message(self, message_id: str) -> None:
        def _write():
            self.client.collection(COLLECTION).document(message_id).set(
                {"moderated": True, "text": MODERATED_TEXT},
                merge=True,
            )

        await run_in_threadpool(_write)


_store: ChatStore | None = None
_store_lock = Lock()


def _build_store() -> ChatStore:
    backend = (settings.chat_store_backend or "firestore").strip().lower()
    if backend == "memory":
        return InMemoryChatStore()
    if backend != "firestore":
        logger.warning("unknown chat store backend %r, using firestore", backend)
    return FirestoreChatStore()


def get_chat_store() -> ChatStore:
    global _store
    with _store_lock:
        if _store is None:
            _store = _build_store()
        return _store


def set_chat_store(store: ChatStore | None) -> None:
    global _store
    with _store_lock:
        _store = store
