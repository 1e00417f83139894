import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable

FRESH_SECONDS = 5 * 60
STALE_SECONDS = 10 * 60


@dataclass(frozen=True)
class CachedSession:
    role: str
    status: str
    checked_at: float


class SessionCache:
    """Last known session verdict.

    Entries younger than ``fresh_seconds`` are used as-is; entries younger than ``stale_seconds``
    are still usable but should be revalidated; older entries are dropped on read.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        fresh_seconds: float = FRESH_SECONDS,
        stale_seconds: float = STALE_SECONDS,
    ):
        self._clock = clock
        self.fresh_seconds = fresh_seconds
        self.stale_seconds = stale_seconds
        self._entry: CachedSession | None = None
        self._lock = Lock()

    def write(self, role: str, status: str) -> CachedSession:
        entry = CachedSession(
            role=str(role or "").upper(),
            status=str(status or "").upper(),
            checked_at=self._clock(),
        )
        with self._lock:
            self._entry = entry
        return entry

    def read(self) -> tuple[CachedSession, bool] | None:
        with self._lock:
            entry = self._entry
            if entry is None:
                return None
            age = self._clock() - entry.checked_at
            if age < 0 or age >= self.stale_seconds:
                self._entry = None
                return None
        return entry, age >= self.fresh_seconds

    def clear(self) -> None:
        with self._lock:
            self._entry = None
