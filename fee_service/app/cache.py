from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, Union

import redis

from libs.event_contracts.ledger_v1 import PaymentRecorded, StudentAdded
from fee_service.app.settings import settings


logger = logging.getLogger(__name__)

QueryKey = Tuple[str, ...]
LedgerEvent = Union[PaymentRecorded, StudentAdded]

# Read queries served by the API
STUDENTS = "students"
STUDENT = "student"
STUDENT_DETAILS = "student-details"
DASHBOARD_STATS = "dashboard-stats"
CLASS_SUMMARY = "class-summary"

# Which cached queries each write makes stale. "{field}" parts are filled
# from the event; a key drops every cached key it is a prefix of.
DEPENDENCIES: Dict[str, Tuple[QueryKey, ...]] = {
    "payment_recorded": (
        (STUDENTS,),
        (STUDENT, "{student_id}"),
        (STUDENT_DETAILS, "{student_id}"),
        (DASHBOARD_STATS,),
        (CLASS_SUMMARY,),
    ),
    "student_added": (
        (STUDENTS,),
        (DASHBOARD_STATS,),
        (CLASS_SUMMARY,),
    ),
}


def affected_queries(event: LedgerEvent) -> List[QueryKey]:
    fields = event.model_dump()
    return [tuple(part.format(**fields) for part in key) for key in DEPENDENCIES[event.event_type]]


class CacheBackend(Protocol):
    def get(self, key: QueryKey) -> Optional[Any]: ...
    def set(self, key: QueryKey, value: Any, ttl_sec: int) -> None: ...
    def delete_prefix(self, prefix: QueryKey) -> int: ...
    def clear(self) -> None: ...


class MemoryBackend:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._store: Dict[QueryKey, Tuple[float, Any]] = {}

    def get(self, key: QueryKey) -> Optional[Any]:
        now = time.monotonic()
        with self._lock:
            rec = self._store.get(key)
            if rec is None:
                return None
            expires_at, value = rec
            if expires_at < now:
                self._store.pop(key, None)
                return None
            return value

    def set(self, key: QueryKey, value: Any, ttl_sec: int) -> None:
        now = time.monotonic()
        with self._lock:
            for k in [k for k, (expires_at, _) in self._store.items() if expires_at < now]:
                del self._store[k]
            self._store[key] = (now + ttl_sec, value)

    def delete_prefix(self, prefix: QueryKey) -> int:
        n = len(prefix)
        with self._lock:
            doomed = [k for k in self._store if k[:n] == prefix]
            for k in doomed:
                del self._store[k]
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()


class RedisBackend:
    """Values stored as JSON under "<namespace>:<part>|<part>..."."""

    SEP = "|"

    def __init__(self, client, namespace: str = "fee:q") -> None:
        self.r = client
        self.namespace = namespace

    def _key(self, key: QueryKey) -> str:
        return f"{self.namespace}:{self.SEP.join(key)}"

    def get(self, key: QueryKey) -> Optional[Any]:
        raw = self.r.get(self._key(key))
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: QueryKey, value: Any, ttl_sec: int) -> None:
        self.r.setex(self._key(key), ttl_sec, json.dumps(value))

    def delete_prefix(self, prefix: QueryKey) -> int:
        base = self._key(prefix)
        keys = [base] + list(self.r.scan_iter(match=f"{base}{self.SEP}*"))
        return int(self.r.delete(*keys) or 0)

    def clear(self) -> None:
        keys = list(self.r.scan_iter(match=f"{self.namespace}:*"))
        if keys:
            self.r.delete(*keys)


class QueryCache:
    """Short-lived memoization of read results, dropped explicitly on writes."""

    def __init__(self, backend: CacheBackend, ttl_sec: int) -> None:
        self.backend = backend
        self.ttl_sec = ttl_sec

    def fetch(self, key: QueryKey, loader: Callable[[], Any]) -> Any:
        cached = self.backend.get(key)
        if cached is not None:
            return cached
        value = loader()
        if value is not None:
            self.backend.set(key, value, self.ttl_sec)
        return value

    def invalidate(self, prefix: QueryKey) -> int:
        return self.backend.delete_prefix(prefix)

    def apply(self, event: LedgerEvent) -> List[QueryKey]:
        keys = affected_queries(event)
        for key in keys:
            self.invalidate(key)
        logger.info("Invalidated %s after %s", keys, event.event_type)
        return keys

    def clear(self) -> None:
        self.backend.clear()


def build_query_cache() -> QueryCache:
    if settings.QUERY_CACHE_REDIS_URL:
        client = redis.Redis.from_url(settings.QUERY_CACHE_REDIS_URL)
        return QueryCache(RedisBackend(client), settings.QUERY_CACHE_TTL_SEC)
    return QueryCache(MemoryBackend(), settings.QUERY_CACHE_TTL_SEC)
