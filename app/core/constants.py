"""
Centralised constants used across the application.

Keeping magic strings in one place makes it easy to rename keys,
avoids silent typos, and keeps ``grep`` useful when debugging.
"""

from __future__ import annotations

# ── Store key prefixes ──────────────────────────────────────────────────────
# Every key written to the store backend starts with one of these
# prefixes so the keyspace stays organised (and shared Redis
# instances do not collide with other applications).

STORE_NAMESPACE: str = "liveness:"
"""Prefix applied by the Redis backend to every key."""

PREFIX_RECORD: str = "record:"
"""Prefix for submission records (``record:{record_id}``)."""

KEY_RECORD_INDEX: str = "record_index"
"""Ordered list of record IDs, oldest first."""

PREFIX_STATUS: str = "status:"
"""Prefix for status records (``status:{selfie_code}``)."""

PREFIX_SESSION: str = "session:"
"""Prefix for ephemeral browser-session blobs."""

PREFIX_DATA: str = "data:"
"""Prefix for ephemeral data-storage blobs."""


# ── Identifier formats ──────────────────────────────────────────────────────

RECORD_ID_PREFIX: str = "REC_"
"""Submission IDs look like ``REC_<epoch-ms>_<9 alnum>``."""

RESULT_CODE_PREFIX: str = "RESULT_"
"""Result codes look like ``RESULT_<12 ALNUM>_<epoch-ms>``."""


# ── Response-only status ────────────────────────────────────────────────────

STATUS_NOT_FOUND: str = "not_found"
"""Reported by status lookups for unknown or expired selfie codes."""


# ── Signed callback headers ─────────────────────────────────────────────────

HEADER_SIGNATURE: str = "X-Provider-Signature"
HEADER_TIMESTAMP: str = "X-Provider-Timestamp"


# ── Public surface (listed by ``GET /`` and the 404 handler) ────────────────

AVAILABLE_ENDPOINTS: list[str] = [
    "GET /",
    "GET /api/test",
    "GET /api/health",
    "GET /metrics",
    "POST /api/encrypt",
    "POST /api/decrypt",
    "GET /api/debug-encrypt",
    "POST /api/save-selfie",
    "GET /api/check-status",
    "GET /api/get-result",
    "POST /api/provider/callback",
    "GET /selfie/link",
    "POST /api/sessions",
    "GET /api/sessions/{key}",
    "POST /api/data",
    "GET /api/data/{key}",
]
