"""
Simulated status progression for demo / offline use.

Enabled only with ``STATUS_MODE=simulated``.  A simulator looks at a
status record and *proposes* the status a real provider would have
reported by now; the proposal is then applied through
``app.services.state_machine``, so terminal states stay terminal.

Two strategies are available via ``SIMULATION_STRATEGY``:

``attempts``
    Driven by the poll counter: fewer than 3 polls → processing,
    fewer than 6 → ready, fewer than 9 → completed, then failed.
``elapsed``
    Driven by wall-clock minutes since creation: under 1 →
    pending (not started), 1–2 → processing, 2–3 → ready,
    3 or more → completed.
"""

from __future__ import annotations

from datetime import datetime

from app.schemas.enums import VerificationStatus
from app.schemas.records import StatusRecord


class StatusSimulator:
    """Base class for synthetic status sources."""

    name: str = "abstract"

    def advance(self, record: StatusRecord, now: datetime) -> VerificationStatus:
        """Return the status a provider would report for *record*."""
        raise NotImplementedError


class AttemptCountSimulator(StatusSimulator):
    """Status as a function of how many times it has been polled."""

    name = "attempts"

    def advance(self, record: StatusRecord, now: datetime) -> VerificationStatus:
        if record.attempts < 3:
            return VerificationStatus.PROCESSING
        if record.attempts < 6:
            return VerificationStatus.READY
        if record.attempts < 9:
            return VerificationStatus.COMPLETED
        return VerificationStatus.FAILED


class ElapsedTimeSimulator(StatusSimulator):
    """Status as a function of minutes since the record was created."""

    name = "elapsed"

    def advance(self, record: StatusRecord, now: datetime) -> VerificationStatus:
        minutes = (now - record.created_at).total_seconds() / 60
        if minutes < 1:
            return VerificationStatus.PENDING
        if minutes < 2:
            return VerificationStatus.PROCESSING
        if minutes < 3:
            return VerificationStatus.READY
        return VerificationStatus.COMPLETED


_SIMULATORS: dict[str, type[StatusSimulator]] = {
    AttemptCountSimulator.name: AttemptCountSimulator,
    ElapsedTimeSimulator.name: ElapsedTimeSimulator,
}


def build_simulator(strategy: str) -> StatusSimulator:
    """Instantiate the simulator named by ``SIMULATION_STRATEGY``.

    Raises:
        ValueError: For an unknown strategy name.
    """
    try:
        return _SIMULATORS[strategy]()
    except KeyError:
        raise ValueError(
            f"Unknown SIMULATION_STRATEGY '{strategy}' "
            f"(expected one of: {', '.join(sorted(_SIMULATORS))})"
        ) from None
