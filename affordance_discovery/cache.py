"""Bounded in-memory cache with per-entry expiry.

Shared by every discovery engine. Entries expire lazily on read and are
also swept by a background daemon thread every ``ttl / 2`` seconds.
Capacity eviction is insertion-order: when a new key would exceed
``max_size`` the oldest-inserted entry is dropped. Re-setting an existing
key replaces its value and expiry but keeps its place in the eviction
order.
"""

import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import BaseModel

log = logging.getLogger(__name__)

KEY_DELIMITER = ":"


@dataclass
class CacheEntry:
    value: Any
    created_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl


@dataclass(frozen=True)
class CacheStats:
    size: int
    max_size: int
    approx_memory: int
    hits: int
    misses: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


def make_key(*parts: Any) -> str:
    """Build a fingerprint from an operation name and its parameters.

    ``None`` parts are dropped so that an omitted optional parameter and an
    explicit ``None`` produce the same key. Delimiters inside a part are
    escaped, so a statement containing ``:`` cannot pose as two parts.
    """
    return KEY_DELIMITER.join(_escape(p) for p in parts if p is not None)


def _escape(part: Any) -> str:
    return str(part).replace("\\", "\\\\").replace(KEY_DELIMITER, "\\" + KEY_DELIMITER)


def _approx_size(key: str, value: Any) -> int:
    try:
        if isinstance(value, BaseModel):
            payload = value.model_dump_json()
        else:
            payload = json.dumps(value, default=str)
    except (TypeError, ValueError):
        payload = repr(value)
    # UTF-16-ish estimate plus per-entry bookkeeping.
    return len(key) * 2 + len(payload) * 2 + 24


class TTLCache:
    def __init__(
        self,
        ttl: float = 300.0,
        max_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
        sweep: bool = True,
    ):
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._stop = threading.Event()
        self._sweeper: Optional[threading.Thread] = None
        if sweep:
            self._sweeper = threading.Thread(
                target=self._sweep_loop,
                name="ttl-cache-sweeper",
                daemon=True,
            )
            self._sweeper.start()

    def get(self, key: str) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.expired(self._clock()):
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        entry = CacheEntry(value=value, created_at=self._clock(), ttl=ttl or self.ttl)
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_size:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                log.debug("Cache full, evicted %s", oldest)
            self._entries[key] = entry

    def has(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if entry.expired(self._clock()):
                del self._entries[key]
                return False
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> CacheStats:
        with self._lock:
            snapshot = list(self._entries.items())
            hits, misses = self._hits, self._misses
        memory = sum(_approx_size(k, e.value) for k, e in snapshot)
        return CacheStats(
            size=len(snapshot),
            max_size=self.max_size,
            approx_memory=memory,
            hits=hits,
            misses=misses,
        )

    def sweep_expired(self) -> int:
        """Remove expired entries, holding the lock for one entry at a time."""
        with self._lock:
            keys = list(self._entries)
        removed = 0
        for key in keys:
            with self._lock:
                entry = self._entries.get(key)
                if entry is not None and entry.expired(self._clock()):
                    del self._entries[key]
                    removed += 1
        if removed:
            log.debug("Swept %d expired cache entries", removed)
        return removed

    def close(self) -> None:
        self._stop.set()
        if self._sweeper is not None and self._sweeper is not threading.current_thread():
            self._sweeper.join(timeout=1.0)
            self._sweeper = None

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self.ttl / 2):
            try:
                self.sweep_expired()
            except Exception:
                log.warning("Cache sweep failed", exc_info=True)
