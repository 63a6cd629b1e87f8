"""ResultCache: recent remote classification results keyed by content.

Design goals:
  - Content-addressed: the key is a fingerprint of the text, never the text
  - Bounded: fixed TTL, lazy eviction on lookup plus a periodic sweep,
    and a size cap (oldest entry goes first)
  - Closed: callers get immutable entries back, never the backing store
"""

from __future__ import annotations
import hashlib
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Iterable

from .types import Span

DEFAULT_TTL = 300.0
DEFAULT_MAX_ENTRIES = 256


@dataclass(frozen=True, slots=True)
class CacheEntry:
    fingerprint: str
    spans: tuple[Span, ...]
    created_at: float
    risk_level: str | None = None


def fingerprint(text: str) -> str:
    """Cheap content hash used as the cache key."""
    return hashlib.blake2b(text.encode("utf-8"), digest_size=16).hexdigest()


class ResultCache:
    """TTL cache of remote detections, safe to share between threads."""

    __slots__ = ("_entries", "_ttl", "_max_entries", "_clock", "_lock")

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._ttl = ttl
        self._max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Core API
    # ------------------------------------------------------------------

    def get(self, text: str) -> CacheEntry | None:
        """Return the live entry for text, evicting it if it has expired."""
        key = fingerprint(text)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._expired(entry):
                del self._entries[key]
                return None
            return entry

    def put(self, text: str, spans: Iterable[Span], *, risk_level: str | None = None) -> CacheEntry:
        key = fingerprint(text)
        entry = CacheEntry(
            fingerprint=key,
            spans=tuple(spans),
            created_at=self._clock(),
            risk_level=risk_level,
        )
        with self._lock:
            self._entries[key] = entry
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)
        return entry

    def sweep(self) -> int:
        """Evict every expired entry.  Returns how many were dropped."""
        with self._lock:
            stale = [k for k, e in self._entries.items() if self._expired(e)]
            for key in stale:
                del self._entries[key]
        return len(stale)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def ttl(self) -> float:
        return self._ttl

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _expired(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.created_at >= self._ttl
