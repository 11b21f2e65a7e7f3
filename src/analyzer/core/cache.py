from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional


logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    value: Any
    created_at: float
    ttl: float


class ExpiringCache:
    """In-memory key/value store with a per-entry time-to-live (seconds).

    Expiry is lazy: an entry is only dropped when an access finds it stale,
    or when ``cleanup()`` is called explicitly. Nothing sweeps in the
    background, so keys that are never read again stay resident until the
    next ``cleanup()``/``clear()``.
    """

    def __init__(self, default_ttl: float = 3600.0, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.default_ttl = float(default_ttl)
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    def _expired(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.created_at > entry.ttl

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        self._entries[key] = CacheEntry(
            value=value,
            created_at=self._clock(),
            ttl=float(ttl) if ttl is not None else self.default_ttl,
        )
        logger.debug("Cache set: %s", key)

    def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        if self._expired(entry):
            del self._entries[key]
            self.misses += 1
            logger.debug("Cache expired and removed: %s", key)
            return None
        self.hits += 1
        logger.debug("Cache hit: %s", key)
        return entry.value

    def has(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        if self._expired(entry):
            del self._entries[key]
            return False
        return True

    def delete(self, key: str) -> bool:
        removed = self._entries.pop(key, None) is not None
        if removed:
            logger.debug("Cache deleted: %s", key)
        return removed

    def delete_prefix(self, prefix: str) -> int:
        """Drop every key starting with ``prefix``; returns how many were removed."""
        doomed = [k for k in self._entries if k.startswith(prefix)]
        for k in doomed:
            del self._entries[k]
        if doomed:
            logger.debug("Cache invalidated %d entries under %r", len(doomed), prefix)
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()
        logger.debug("Cache cleared")

    def cleanup(self) -> int:
        """Sweep expired entries now. Returns the number removed."""
        stale = [k for k, e in self._entries.items() if self._expired(e)]
        for k in stale:
            del self._entries[k]
        if stale:
            logger.debug("Cache cleanup: removed %d expired entries", len(stale))
        return len(stale)

    def stats(self) -> dict:
        lookups = self.hits + self.misses
        return {
            "size": len(self._entries),
            "keys": list(self._entries.keys()),
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": (self.hits / lookups) if lookups else 0.0,
        }

    @staticmethod
    def generate_key(prefix: str, params: Mapping[str, Any]) -> str:
        """Deterministic key: parameter order does not matter, only names and values."""
        parts = "|".join(f"{k}:{params[k]}" for k in sorted(params))
        return f"{prefix}:{parts}"
