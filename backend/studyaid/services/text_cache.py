"""Key-value store for text extracted from uploaded documents.

Entries are short-lived: they only bridge the gap between the upload request
and the generation request(s) that follow it. Nothing here is durable.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, List, Optional, Protocol, Tuple

from studyaid.core.config import settings

logger = logging.getLogger(__name__)


class TextCache(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, text: str) -> None: ...

    def keys(self) -> List[str]: ...


def cache_key(user_id: int, file_id: str) -> str:
    return f"{int(user_id)}:{file_id}"


class InMemoryTextCache:
    """LRU-bounded dict with per-entry TTL. ``ttl_seconds=0`` means no expiry."""

    def __init__(self, *, ttl_seconds: int = 3600, max_entries: int = 256, clock: Callable[[], float] = time.monotonic):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.ttl_seconds = max(0, int(ttl_seconds))
        self.max_entries = int(max_entries)
        self._clock = clock
        self._lock = threading.Lock()
        self._data: "OrderedDict[str, Tuple[float, str]]" = OrderedDict()

    def _expired(self, stored_at: float) -> bool:
        return bool(self.ttl_seconds) and (self._clock() - stored_at) >= self.ttl_seconds

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            stored_at, text = entry
            if self._expired(stored_at):
                del self._data[key]
                return None
            self._data.move_to_end(key)
            return text

    def set(self, key: str, text: str) -> None:
        with self._lock:
            # Same key: last writer wins
            self._data[key] = (self._clock(), text)
            self._data.move_to_end(key)
            while len(self._data) > self.max_entries:
                evicted, _ = self._data.popitem(last=False)
                logger.debug("Text cache full, evicted %s", evicted)

    def keys(self) -> List[str]:
        with self._lock:
            return [k for k, (stored_at, _) in self._data.items() if not self._expired(stored_at)]


class RedisTextCache:
    """Same contract on top of Redis, so several API processes can share uploads."""

    def __init__(self, client, *, ttl_seconds: int = 3600, prefix: str = "studyaid:text:"):
        self.client = client
        self.ttl_seconds = max(0, int(ttl_seconds))
        self.prefix = prefix

    def get(self, key: str) -> Optional[str]:
        raw = self.client.get(self.prefix + key)
        if raw is None:
            return None
        return raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)

    def set(self, key: str, text: str) -> None:
        if self.ttl_seconds:
            self.client.setex(self.prefix + key, self.ttl_seconds, text)
        else:
            self.client.set(self.prefix + key, text)

    def keys(self) -> List[str]:
        out: List[str] = []
        for raw in self.client.scan_iter(match=self.prefix + "*"):
            name = raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)
            out.append(name[len(self.prefix):])
        return out


def build_text_cache() -> TextCache:
    backend = (settings.TEXT_CACHE_BACKEND or "memory").strip().lower()
    if backend == "redis":
        import redis

        logger.info("Using Redis text cache at %s", settings.REDIS_URL)
        return RedisTextCache(redis.Redis.from_url(settings.REDIS_URL), ttl_seconds=settings.TEXT_CACHE_TTL_SECONDS)
    if backend != "memory":
        raise ValueError(f"Unknown TEXT_CACHE_BACKEND: {settings.TEXT_CACHE_BACKEND!r}")
    return InMemoryTextCache(ttl_seconds=settings.TEXT_CACHE_TTL_SECONDS, max_entries=settings.TEXT_CACHE_MAX_ENTRIES)
