"""
Verification lifecycle service.

Ties the record store, the status store, the state machine and the
codec together behind the operations the routes expose:

* ``submit``: create a submission + its status record
* ``check_status``: count a poll (and, in simulated mode, let
  the simulator propose a transition)
* ``get_status``: read without side effects
* ``apply_report``: apply a provider status report
* ``encode_reference``/``decode_reference``: opaque link ids
* ``stats``: store sizes for ``GET /`` and metrics
"""

from __future__ import annotations

import logging
from datetime import datetime
from urllib.parse import urlencode, urlsplit, urlunsplit

from app.core.clock import Clock, utc_now
from app.core.crypto import DecodeResult, SymmetricCodec
from app.core.metrics import record_poll, record_report, record_submission
from app.schemas.enums import VerificationStatus
from app.schemas.records import StatusRecord, SubmissionRecord
from app.schemas.requests import SaveSelfieRequest
from app.services.records import RecordStore, generate_record_id
from app.services.simulation import StatusSimulator
from app.services.state_machine import apply_report as transition
from app.services.state_machine import can_transition
from app.services.statuses import StatusStore

logger = logging.getLogger(__name__)


class VerificationService:
    """Facade over the stores used by the selfie routes.

    When *simulator* is ``None`` (``STATUS_MODE=callback``) a
    status only moves on ``apply_report``; polling merely counts
    attempts.
    """

    def __init__(
        self,
        records: RecordStore,
        statuses: StatusStore,
        codec: SymmetricCodec,
        *,
        provider_url: str,
        simulator: StatusSimulator | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.records = records
        self.statuses = statuses
        self.codec = codec
        self.provider_url = provider_url
        self.simulator = simulator
        self._clock = clock

    @property
    def mode(self) -> str:
        return "callback" if self.simulator is None else "simulated"

    # ── Submission ──────────────────────────────────────────

    def submit(
        self,
        request: SaveSelfieRequest,
        *,
        ip_address: str | None,
        user_agent: str | None,
    ) -> SubmissionRecord:
        """Create a submission record and (re)start its status."""
        now = self._clock()
        record = SubmissionRecord(
            id=generate_record_id(now),
            selfie_code=request.selfie_code,
            client_name=request.client_name,
            encrypted_payload=request.encrypted_code,
            source=request.source,
            created_at=now,
            updated_at=now,
            ip_address=ip_address,
            user_agent=user_agent or "unknown",
        )
        self.records.create(record)
        self.statuses.create(request.selfie_code)
        record_submission()
        logger.info(
            "Selfie data saved (record_id=%s, client=%s)",
            record.id,
            record.client_name,
        )
        return record

    # ── Status ──────────────────────────────────────────────

    def get_status(self, selfie_code: str) -> StatusRecord | None:
        return self.statuses.get(selfie_code)

    def check_status(self, selfie_code: str) -> StatusRecord | None:
        """Record a poll and return the (possibly advanced) status.

        Returns:
            The status record, or ``None`` for unknown / expired codes.
        """
        simulated: list[VerificationStatus] = []

        def _poll(record: StatusRecord, now: datetime) -> None:
            simulated.clear()
            record.last_checked = now
            record.attempts += 1
            if self.simulator is None:
                return
            proposed = self.simulator.advance(record, now)
            if proposed != record.status and can_transition(record.status, proposed):
                transition(record, proposed, now=now)
                simulated.append(proposed)

        record = self.statuses.update(selfie_code, _poll)
        if record is None:
            return None

        for status in simulated:
            record_report(status, channel="simulated")
        if simulated:
            self._sync_submission(record)
        record_poll(record.status)
        return record

    def apply_report(
        self,
        selfie_code: str,
        status: VerificationStatus,
        *,
        result_code: str | None = None,
        reason: str | None = None,
        channel: str = "callback",
    ) -> tuple[StatusRecord, bool] | None:
        """Apply a provider status report.

        Returns:
            ``(record, changed)``, or ``None`` for unknown codes.

        Raises:
            InvalidTransitionError: If the report is not a legal
                transition from the current status.
        """
        changed: list[bool] = []

        def _apply(record: StatusRecord, now: datetime) -> None:
            changed.append(
                transition(
                    record,
                    status,
                    now=now,
                    result_code=result_code,
                    reason=reason,
                )
            )

        record = self.statuses.update(selfie_code, _apply)
        if record is None:
            return None

        did_change = changed[-1]
        if did_change:
            record_report(status, channel=channel)
            self._sync_submission(record)
            logger.info(
                "Verification %s moved to %s via %s",
                selfie_code,
                record.status,
                channel,
            )
        return record, did_change

    def _sync_submission(self, status: StatusRecord) -> None:
        """Mirror status onto the newest submission for the code."""
        record = self.records.find(lambda r: r.selfie_code == status.selfie_code)
        if record is None:
            return
        record.status = status.status
        record.result_code = status.result_code
        record.updated_at = status.updated_at
        self.records.update(record)

    # ── Link references ─────────────────────────────────────

    def encode_reference(self, selfie_code: str) -> str:
        """Opaque id embedded in ``/selfie/link`` URLs."""
        return self.codec.encrypt(selfie_code)

    def decode_reference(self, reference: str) -> DecodeResult:
        return self.codec.decrypt(reference)

    def provider_redirect_url(self, reference: str, return_url: str) -> str:
        """Build the outbound URL to the verification provider.

        Query parameters already present on ``PROVIDER_VERIFY_URL``
        are preserved.
        """
        parts = urlsplit(self.provider_url)
        query = urlencode({"reference": reference, "return_url": return_url})
        if parts.query:
            query = f"{parts.query}&{query}"
        return urlunsplit(parts._replace(query=query))

    # ── Stats ───────────────────────────────────────────────

    def stats(self) -> dict[str, int]:
        return {
            "records": self.records.count(),
            "statuses": self.statuses.count(),
        }
