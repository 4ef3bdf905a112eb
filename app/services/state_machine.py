"""
Verification status state machine.

Status only moves when the verification provider reports it::

    pending ──► processing ──► ready ──► completed
       │            │            │
       └────────────┴────────────┴─────► failed

``pending`` may also jump straight to ``ready`` or ``completed``
(providers that report only the outcome), and ``processing`` may
skip ``ready``.  ``completed`` and ``failed`` are terminal.

Observing a status never changes it; see ``app.services.simulation``
for the opt-in demo mode that feeds synthetic reports through
this same machine.
"""

from __future__ import annotations

import secrets
import string
from datetime import datetime

from app.core.clock import epoch_ms
from app.core.constants import RESULT_CODE_PREFIX
from app.schemas.enums import VerificationStatus
from app.schemas.records import StatusRecord

_S = VerificationStatus

ALLOWED_TRANSITIONS: dict[VerificationStatus, frozenset[VerificationStatus]] = {
    _S.PENDING: frozenset({_S.PROCESSING, _S.READY, _S.COMPLETED, _S.FAILED}),
    _S.PROCESSING: frozenset({_S.READY, _S.COMPLETED, _S.FAILED}),
    _S.READY: frozenset({_S.COMPLETED, _S.FAILED}),
    _S.COMPLETED: frozenset(),
    _S.FAILED: frozenset(),
}

_RESULT_ALPHABET = string.ascii_uppercase + string.digits


class InvalidTransitionError(Exception):
    """Raised when a report would move a status backwards or out of a terminal state."""

    def __init__(
        self,
        current: VerificationStatus,
        target: VerificationStatus,
    ) -> None:
        super().__init__(
            f"Cannot move verification from '{current}' to '{target}'"
        )
        self.current = current
        self.target = target


def can_transition(
    current: VerificationStatus,
    target: VerificationStatus,
) -> bool:
    """Whether *target* is reachable from *current* in one step."""
    return target in ALLOWED_TRANSITIONS[current]


def mint_result_code(now: datetime) -> str:
    """Return ``RESULT_<12 ALNUM>_<epoch-ms>``."""
    token = "".join(secrets.choice(_RESULT_ALPHABET) for _ in range(12))
    return f"{RESULT_CODE_PREFIX}{token}_{epoch_ms(now)}"


def apply_report(
    record: StatusRecord,
    target: VerificationStatus,
    *,
    now: datetime,
    result_code: str | None = None,
    reason: str | None = None,
) -> bool:
    """Move *record* to *target*, mutating it in place.

    A report that repeats the current status is a no-op.
    Entering ``completed`` stores the provider's result code,
    or mints one when the report carries none.

    Args:
        record: The status record to update.
        target: Status reported by the provider.
        now: Transition timestamp.
        result_code: Provider-supplied result code.
        reason: Provider-supplied failure reason.

    Returns:
        ``True`` if the status changed.

    Raises:
        InvalidTransitionError: If *target* is not reachable
            from the record's current status.
    """
    if target == record.status:
        return False
    if not can_transition(record.status, target):
        raise InvalidTransitionError(record.status, target)

    record.status = target
    record.updated_at = now
    if target == VerificationStatus.COMPLETED:
        record.result_code = result_code or mint_result_code(now)
    elif target == VerificationStatus.FAILED:
        record.failure_reason = reason or "reported as failed by provider"
    return True
