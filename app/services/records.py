"""
Capped store of submission records.

Records live under ``record:{id}``; their order is kept in a single
``record_index`` list (oldest first).  The index is only ever
rewritten through ``compare_and_swap`` so two writers sharing a Redis
store cannot drop each other's entries.  Once the index grows past
the cap the oldest IDs are trimmed and their records deleted.
"""

from __future__ import annotations

import logging
import secrets
import string
from collections.abc import Callable
from datetime import datetime

from app.core.clock import epoch_ms
from app.core.constants import KEY_RECORD_INDEX, PREFIX_RECORD, RECORD_ID_PREFIX
from app.schemas.records import SubmissionRecord
from app.services.backends import StoreBackend

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits
_CAS_RETRIES: int = 16


class StoreConflictError(Exception):
    """Raised when an index update keeps losing CAS races."""


def generate_record_id(now: datetime) -> str:
    """Return ``REC_<epoch-ms>_<9 alnum>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{RECORD_ID_PREFIX}{epoch_ms(now)}_{suffix}"


class RecordStore:
    """Ring-buffer of ``SubmissionRecord`` objects.

    Usage::

        store = RecordStore(MemoryBackend(), cap=1000)
        record_id = store.create(record)
        latest = store.find(lambda r: r.selfie_code == "X")
    """

    def __init__(self, backend: StoreBackend, *, cap: int = 1000) -> None:
        if cap < 1:
            raise ValueError("Record cap must be at least 1")
        self._backend = backend
        self._cap = cap

    @property
    def cap(self) -> int:
        return self._cap

    # ── Index helpers ───────────────────────────────────────

    def _ids(self) -> list[str]:
        return list(self._backend.get(KEY_RECORD_INDEX) or [])

    def _rewrite_index(
        self,
        change: Callable[[list[str]], list[str]],
    ) -> list[str]:
        """Apply *change* to the index atomically.

        Returns:
            IDs that were present before and are gone after.
        """
        for _ in range(_CAS_RETRIES):
            current = self._backend.get(KEY_RECORD_INDEX)
            before = list(current or [])
            after = change(list(before))
            if self._backend.compare_and_swap(KEY_RECORD_INDEX, current, after):
                kept = set(after)
                return [rid for rid in before if rid not in kept]
        raise StoreConflictError("Record index is under heavy contention")

    def _drop(self, evicted: list[str]) -> None:
        for rid in evicted:
            self._backend.delete(f"{PREFIX_RECORD}{rid}")
        if evicted:
            logger.info("Evicted %d oldest record(s)", len(evicted))

    # ── Public API ──────────────────────────────────────────

    def create(self, record: SubmissionRecord) -> str:
        """Store *record*, append it to the index, and enforce the cap.

        Returns:
            The record ID.
        """
        self._backend.put(
            f"{PREFIX_RECORD}{record.id}",
            record.model_dump(mode="json"),
        )
        cap = self._cap
        self._drop(self._rewrite_index(lambda ids: (ids + [record.id])[-cap:]))
        return record.id

    def cap_at(self, n: int) -> int:
        """Keep only the *n* most recent records.

        Returns:
            How many records were evicted.
        """
        if n < 0:
            raise ValueError("n must be non-negative")
        evicted = self._rewrite_index(lambda ids: ids[-n:] if n else [])
        self._drop(evicted)
        return len(evicted)

    def get(self, record_id: str) -> SubmissionRecord | None:
        raw = self._backend.get(f"{PREFIX_RECORD}{record_id}")
        return None if raw is None else SubmissionRecord.model_validate(raw)

    def update(self, record: SubmissionRecord) -> None:
        """Overwrite an existing record (no-op if it was evicted)."""
        key = f"{PREFIX_RECORD}{record.id}"
        if self._backend.get(key) is None:
            logger.debug("Skipping update of evicted record %s", record.id)
            return
        self._backend.put(key, record.model_dump(mode="json"))

    def find(
        self,
        predicate: Callable[[SubmissionRecord], bool],
    ) -> SubmissionRecord | None:
        """Return the newest record matching *predicate*.

        Newest-first keeps duplicate selfie codes consistent with
        the status map, where the last writer wins.
        """
        for rid in reversed(self._ids()):
            record = self.get(rid)
            if record is not None and predicate(record):
                return record
        return None

    def latest(self, n: int) -> list[SubmissionRecord]:
        """Return up to *n* records, newest first."""
        out: list[SubmissionRecord] = []
        for rid in reversed(self._ids()):
            if len(out) >= n:
                break
            record = self.get(rid)
            if record is not None:
                out.append(record)
        return out

    def count(self) -> int:
        return len(self._ids())
