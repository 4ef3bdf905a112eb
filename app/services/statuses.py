"""
Per-selfie-code status records.

A status record is created next to every submission; a repeated
selfie code replaces the previous record (last writer wins).
Records older than ``STATUS_TTL`` seconds are deleted on the next
access and read as missing.  Updates go through ``compare_and_swap``
so concurrent polls on a shared store never lose an attempt.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from app.core.clock import Clock, utc_now
from app.core.constants import PREFIX_STATUS
from app.schemas.records import StatusRecord
from app.services.backends import StoreBackend
from app.services.records import StoreConflictError

logger = logging.getLogger(__name__)

_CAS_RETRIES: int = 16


class StatusStore:
    """Status records keyed by selfie code."""

    def __init__(
        self,
        backend: StoreBackend,
        *,
        ttl: int = 0,
        clock: Clock = utc_now,
    ) -> None:
        self._backend = backend
        self._ttl = ttl
        self._clock = clock

    @staticmethod
    def _key(selfie_code: str) -> str:
        return f"{PREFIX_STATUS}{selfie_code}"

    def _expired(self, record: StatusRecord, now: datetime) -> bool:
        return bool(self._ttl) and now - record.created_at >= timedelta(
            seconds=self._ttl
        )

    def _backend_ttl(self, record: StatusRecord, now: datetime) -> int | None:
        """Remaining lifetime in whole seconds, for backend-side expiry."""
        if not self._ttl:
            return None
        elapsed = (now - record.created_at).total_seconds()
        return max(1, int(self._ttl - elapsed))

    def create(self, selfie_code: str) -> StatusRecord:
        """Start tracking *selfie_code* in ``pending``."""
        now = self._clock()
        record = StatusRecord(
            selfie_code=selfie_code,
            created_at=now,
            last_checked=now,
            updated_at=now,
        )
        key = self._key(selfie_code)
        if self._backend.get(key) is not None:
            logger.info(
                "Selfie code %s resubmitted; replacing its status record",
                selfie_code,
            )
        self._backend.put(
            key,
            record.model_dump(mode="json"),
            ttl=self._backend_ttl(record, now),
        )
        return record

    def get(self, selfie_code: str) -> StatusRecord | None:
        """Return the live record, deleting it if it has expired."""
        key = self._key(selfie_code)
        raw = self._backend.get(key)
        if raw is None:
            return None
        record = StatusRecord.model_validate(raw)
        if self._expired(record, self._clock()):
            self._backend.delete(key)
            logger.debug("Status record for %s expired", selfie_code)
            return None
        return record

    def update(
        self,
        selfie_code: str,
        mutate: Callable[[StatusRecord, datetime], None],
    ) -> StatusRecord | None:
        """Atomically read, mutate, and write back a status record.

        *mutate* receives the record and the current time and
        changes the record in place.  Exceptions raised by
        *mutate* propagate and nothing is written.

        Returns:
            The updated record, or ``None`` if the code is unknown
            or expired.
        """
        key = self._key(selfie_code)
        for _ in range(_CAS_RETRIES):
            raw = self._backend.get(key)
            if raw is None:
                return None
            now = self._clock()
            record = StatusRecord.model_validate(raw)
            if self._expired(record, now):
                self._backend.delete(key)
                return None
            mutate(record, now)
            if self._backend.compare_and_swap(
                key,
                raw,
                record.model_dump(mode="json"),
                ttl=self._backend_ttl(record, now),
            ):
                return record
        raise StoreConflictError(f"Status record {selfie_code} is under heavy contention")

    def count(self) -> int:
        return len(self._backend.keys(PREFIX_STATUS))
