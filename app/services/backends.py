"""
Pluggable key-value store backends.

Every piece of shared state (submission records, status records,
ephemeral blobs) goes through a ``StoreBackend`` so the process can
run either stand-alone or against a shared store.

**Capability**

``put / get / delete / keys / sweep / compare_and_swap``.  Values
are JSON-serialisable; ``get`` always returns a fresh copy, so
mutating a returned dict never changes stored state.

**Backends**

===============  ==========================================
``memory``       Default.  Process-local, single instance
                 only: two processes keep independent stores.
``redis``        Shared across processes / instances.  CAS
                 via ``WATCH`` / ``MULTI``.
===============  ==========================================

Select via the ``STORE_BACKEND`` env-var.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import redis

from app.core.constants import STORE_NAMESPACE

logger = logging.getLogger(__name__)


def _encode(value: Any) -> str:
    """Serialise *value* to canonical JSON."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


# ── Backend protocol ────────────────────────────────────────


class StoreBackend:
    """Minimal protocol that concrete backends implement."""

    name: str = "abstract"

    def get(self, key: str) -> Any | None:
        """Return the stored value or ``None`` (missing or expired)."""
        raise NotImplementedError

    def put(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value*, optionally expiring after *ttl* seconds."""
        raise NotImplementedError

    def delete(self, key: str) -> bool:
        """Remove *key*; return whether it existed."""
        raise NotImplementedError

    def keys(self, prefix: str = "") -> list[str]:
        """List live keys starting with *prefix*."""
        raise NotImplementedError

    def sweep(self, prefix: str = "") -> int:
        """Drop expired entries under *prefix*; return how many."""
        raise NotImplementedError

    def compare_and_swap(
        self,
        key: str,
        expected: Any | None,
        new: Any,
        ttl: int | None = None,
    ) -> bool:
        """Write *new* only if the current value equals *expected*.

        ``expected=None`` means "key must be absent".

        Returns:
            ``True`` when the write happened.
        """
        raise NotImplementedError

    def ping(self) -> bool:
        """Whether the backend is reachable."""
        return True

    def close(self) -> None:
        """Release resources (optional)."""


# ── In-memory backend ───────────────────────────────────────


@dataclass
class _Entry:
    raw: str
    expires_at: float | None

    def expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class MemoryBackend(StoreBackend):
    """Process-local dict store with per-entry expiry.

    Expired entries are dropped lazily: on ``get`` of the same key
    or on an explicit ``sweep``.  There is no background timer.

    All operations hold one re-entrant lock, which makes
    ``compare_and_swap`` atomic across the threadpool FastAPI
    uses for sync handlers.
    """

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._data: dict[str, _Entry] = {}
        self._lock = threading.RLock()
        self._clock = clock

    def _live(self, key: str) -> _Entry | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.expired(self._clock()):
            del self._data[key]
            return None
        return entry

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._live(key)
            return None if entry is None else json.loads(entry.raw)

    def put(self, key: str, value: Any, ttl: int | None = None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        with self._lock:
            self._data[key] = _Entry(_encode(value), expires_at)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            now = self._clock()
            return [
                k
                for k, entry in self._data.items()
                if k.startswith(prefix) and not entry.expired(now)
            ]

    def sweep(self, prefix: str = "") -> int:
        with self._lock:
            now = self._clock()
            stale = [
                k
                for k, entry in self._data.items()
                if k.startswith(prefix) and entry.expired(now)
            ]
            for k in stale:
                del self._data[k]
        if stale:
            logger.debug("Swept %d expired entries under %r", len(stale), prefix)
        return len(stale)

    def compare_and_swap(
        self,
        key: str,
        expected: Any | None,
        new: Any,
        ttl: int | None = None,
    ) -> bool:
        with self._lock:
            entry = self._live(key)
            current = None if entry is None else entry.raw
            wanted = None if expected is None else _encode(expected)
            if current != wanted:
                return False
            self.put(key, new, ttl)
            return True


# ── Redis backend ───────────────────────────────────────────


class RedisBackend(StoreBackend):
    """Redis-backed store using the shared connection pool.

    Stores values as JSON strings under the ``liveness:`` prefix.
    Expiry is delegated to Redis (``SETEX``), so ``sweep`` has
    nothing to do.  Connection errors propagate: this is the
    store of record, not a cache.
    """

    name = "redis"

    def __init__(
        self,
        client_factory: Callable[[], redis.Redis] | None = None,
        namespace: str = STORE_NAMESPACE,
    ) -> None:
        self._owns_pool = client_factory is None
        if client_factory is None:
            from app.core.redis import get_redis_client

            client_factory = get_redis_client
        self._client_factory = client_factory
        self._ns = namespace

    def _key(self, key: str) -> str:
        return f"{self._ns}{key}"

    def get(self, key: str) -> Any | None:
        client = self._client_factory()
        try:
            raw = client.get(self._key(key))
        finally:
            client.close()
        return None if raw is None else json.loads(raw)

    def put(self, key: str, value: Any, ttl: int | None = None) -> None:
        client = self._client_factory()
        try:
            if ttl:
                client.setex(self._key(key), ttl, _encode(value))
            else:
                client.set(self._key(key), _encode(value))
        finally:
            client.close()

    def delete(self, key: str) -> bool:
        client = self._client_factory()
        try:
            return bool(client.delete(self._key(key)))
        finally:
            client.close()

    def keys(self, prefix: str = "") -> list[str]:
        client = self._client_factory()
        try:
            found = client.scan_iter(match=f"{self._key(prefix)}*")
            return [k[len(self._ns) :] for k in found]
        finally:
            client.close()

    def sweep(self, prefix: str = "") -> int:
        return 0

    def compare_and_swap(
        self,
        key: str,
        expected: Any | None,
        new: Any,
        ttl: int | None = None,
    ) -> bool:
        redis_key = self._key(key)
        wanted = None if expected is None else _encode(expected)
        client = self._client_factory()
        try:
            with client.pipeline() as pipe:
                try:
                    pipe.watch(redis_key)
                    current = pipe.get(redis_key)
                    if current is not None:
                        current = _encode(json.loads(current))
                    if current != wanted:
                        pipe.unwatch()
                        return False
                    pipe.multi()
                    if ttl:
                        pipe.setex(redis_key, ttl, _encode(new))
                    else:
                        pipe.set(redis_key, _encode(new))
                    pipe.execute()
                    return True
                except redis.WatchError:
                    logger.debug("CAS conflict on %s", redis_key)
                    return False
        finally:
            client.close()

    def ping(self) -> bool:
        client = self._client_factory()
        try:
            return bool(client.ping())
        except redis.RedisError:
            logger.warning("Redis ping failed", exc_info=True)
            return False
        finally:
            client.close()

    def close(self) -> None:
        """Tear down the shared pool this backend opened."""
        if self._owns_pool:
            from app.core.redis import close_redis_pool

            close_redis_pool()


# ── Factory ─────────────────────────────────────────────────


def build_backend(name: str) -> StoreBackend:
    """Instantiate the backend selected by ``STORE_BACKEND``.

    Args:
        name: ``memory`` or ``redis``.

    Returns:
        A fresh backend instance.

    Raises:
        ValueError: For an unknown backend name.
    """
    if name == "memory":
        logger.info(
            "Using in-memory store (single instance only; "
            "state is lost on restart)",
        )
        return MemoryBackend()
    if name == "redis":
        logger.info("Using Redis store")
        return RedisBackend()
    raise ValueError(f"Unknown STORE_BACKEND '{name}' (expected memory | redis)")
