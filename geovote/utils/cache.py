"""
Short-TTL in-process read cache.

Absorbs polling load on public read endpoints. A stored value is served for
at most ``ttl`` seconds; ``invalidate`` makes the next read reload no matter
how much of the TTL is left. Concurrent misses on one key may each call the
loader (no single-flight); the last store wins.

State lives in a backend object so a shared store can replace the
per-process dictionary for multi-instance deployments.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    expires_at: float


class CacheBackend(Protocol):
    def get(self, key: str) -> Optional[CacheEntry]: ...

    def set(self, key: str, entry: CacheEntry) -> None: ...

    def delete(self, key: str) -> None: ...

    def delete_prefix(self, prefix: str) -> int: ...

    def clear(self) -> None: ...


class MemoryCacheBackend:
    """Dictionary store guarded by one lock; held only for dict operations."""

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, entry: CacheEntry) -> None:
        with self._lock:
            self._entries[key] = entry

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class ReadCache:
    def __init__(self, backend: Optional[CacheBackend] = None, clock: Callable[[], float] = time.monotonic):
        self.backend = backend or MemoryCacheBackend()
        self._injected = backend is not None
        self._clock = clock

    def init_app(self, app) -> None:
        # READ_CACHE_BACKEND wins, then a backend given to the constructor.
        # Otherwise each app gets its own empty dictionary.
        factory = app.config.get("READ_CACHE_BACKEND")
        if factory is not None:
            self.backend = factory()
        elif not self._injected:
            self.backend = MemoryCacheBackend()
        app.extensions["read_cache"] = self

    def get_or_load(self, key: str, ttl: float, loader: Callable[[], Any]) -> Any:
        now = self._clock()
        entry = self.backend.get(key)
        if entry is not None and entry.expires_at > now:
            return entry.value

        # Loader errors propagate and nothing is stored.
        value = loader()
        self.backend.set(key, CacheEntry(value=value, expires_at=self._clock() + ttl))
        return value

    def invalidate(self, key: str) -> None:
        self.backend.delete(key)

    def invalidate_prefix(self, prefix: str) -> None:
        removed = self.backend.delete_prefix(prefix)
        logger.debug("Invalidated %d cache entries with prefix %s", removed, prefix)

    def clear(self) -> None:
        self.backend.clear()


def election_status_key(share_code: str) -> str:
    return f"election:{share_code}:status"


def election_key_prefix(share_code: str) -> str:
    return f"election:{share_code}:"
