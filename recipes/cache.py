"""In-memory, time-boxed cache for catalog query results.

Entries are independent: putting or evicting one key never touches another,
and all access happens on the event loop so there is nothing to lock.
"""
from dataclasses import dataclass
from enum import Enum
import time
from typing import Any, Callable


class Miss(Enum):
    miss = "miss"


MISS = Miss.miss


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: str
    value: Any
    fetched_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.fetched_at > self.ttl


class CacheLayer:
    def __init__(
        self,
        *,
        ttl: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.clock = clock
        self._entries: dict[str, CacheEntry] = {}
        # prefix -> when it was last invalidated
        self._invalidated: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Any | Miss:
        entry = self._entries.get(key)
        if entry is None:
            return MISS
        if entry.expired(self.clock()):
            self._entries.pop(key, None)
            return MISS
        return entry.value

    def put(
        self,
        key: str,
        value: Any,
        *,
        ttl: float | None = None,
        fetched_at: float | None = None,
    ) -> bool:
        """Store `value` unless a newer fetch already filled `key`.

        A value fetched before its key was last invalidated by prefix is
        dropped as well. Returns whether the value was stored.
        """
        fetched_at = self.clock() if fetched_at is None else fetched_at
        if self._invalidated_since(key, fetched_at):
            return False
        current = self._entries.get(key)
        if current is not None and current.fetched_at > fetched_at:
            return False
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            fetched_at=fetched_at,
            ttl=self.ttl if ttl is None else ttl,
        )
        return True

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> None:
        self._invalidated[prefix] = self.clock()
        for key in [k for k in self._entries if k.startswith(prefix)]:
            del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()

    def _invalidated_since(self, key: str, fetched_at: float) -> bool:
        return any(
            fetched_at < at
            for prefix, at in self._invalidated.items()
            if key.startswith(prefix)
        )

    def sweep(self) -> int:
        now = self.clock()
        expired = [k for k, e in self._entries.items() if e.expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)
