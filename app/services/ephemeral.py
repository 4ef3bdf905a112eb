"""
Short-lived blob maps (browser sessions, scratch data).

Each map has a fixed TTL.  Every write first sweeps the map by a
linear scan, deleting entries whose ``expires_at`` has passed;
reads additionally refuse expired entries, so an expired blob is
never returned even before the next sweep.
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from typing import Any

from app.core.clock import Clock, utc_now
from app.schemas.records import EphemeralBlob
from app.services.backends import StoreBackend

logger = logging.getLogger(__name__)


class EphemeralStore:
    """TTL-bounded blob map under a single key prefix."""

    def __init__(
        self,
        backend: StoreBackend,
        *,
        prefix: str,
        ttl: int,
        clock: Clock = utc_now,
    ) -> None:
        if ttl <= 0:
            raise ValueError("Ephemeral TTL must be positive")
        self._backend = backend
        self._prefix = prefix
        self._ttl = ttl
        self._clock = clock

    @property
    def ttl(self) -> int:
        return self._ttl

    def _load(self, full_key: str) -> EphemeralBlob | None:
        raw = self._backend.get(full_key)
        return None if raw is None else EphemeralBlob.model_validate(raw)

    def sweep(self) -> int:
        """Delete every expired blob in this map.

        Returns:
            Number of blobs removed.
        """
        now = self._clock()
        removed = self._backend.sweep(self._prefix)
        for full_key in self._backend.keys(self._prefix):
            blob = self._load(full_key)
            if blob is not None and blob.expires_at <= now:
                self._backend.delete(full_key)
                removed += 1
        if removed:
            logger.debug("Swept %d expired blob(s) from %s", removed, self._prefix)
        return removed

    def put(self, payload: Any) -> tuple[str, EphemeralBlob]:
        """Sweep, then store *payload* under a fresh random key."""
        self.sweep()
        now = self._clock()
        key = secrets.token_urlsafe(16)
        blob = EphemeralBlob(
            payload=payload,
            stored_at=now,
            expires_at=now + timedelta(seconds=self._ttl),
        )
        self._backend.put(
            f"{self._prefix}{key}",
            blob.model_dump(mode="json"),
            ttl=self._ttl,
        )
        return key, blob

    def get(self, key: str) -> EphemeralBlob | None:
        blob = self._load(f"{self._prefix}{key}")
        if blob is None or blob.expires_at <= self._clock():
            return None
        return blob

    def delete(self, key: str) -> bool:
        return self._backend.delete(f"{self._prefix}{key}")

    def count(self) -> int:
        return len(self._backend.keys(self._prefix))
