"""
Prometheus metrics for the broker.

Event counters (submissions, polls, provider reports, decode
failures) are plain ``prometheus_client`` counters.  Store sizes are
read on each scrape by ``StoreCollector``, a custom Collector bound
at startup to a zero-argument ``stats`` callable.

Everything lives on a dedicated ``REGISTRY`` so tests and repeated
imports never collide with the default registry.

Usage:
    Call ``record_submission()`` / ``record_poll()`` /
    ``record_report()`` from handlers and services.  The
    ``/metrics`` endpoint calls ``generate_metrics()``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from prometheus_client import (
    CollectorRegistry,
    Counter,
    generate_latest,
)
from prometheus_client.core import GaugeMetricFamily

logger = logging.getLogger(__name__)

#: Dedicated registry, separate from the process-wide default.
REGISTRY = CollectorRegistry()

SUBMISSIONS = Counter(
    "liveness_submissions",
    "Total selfie submissions accepted.",
    registry=REGISTRY,
)
STATUS_POLLS = Counter(
    "liveness_status_polls",
    "Total status polls, by the status returned.",
    ["status"],
    registry=REGISTRY,
)
PROVIDER_REPORTS = Counter(
    "liveness_provider_reports",
    "Status reports applied, by reported status and channel.",
    ["status", "channel"],
    registry=REGISTRY,
)
DECODE_FAILURES = Counter(
    "liveness_decode_failures",
    "Blobs that could not be decrypted.",
    registry=REGISTRY,
)


# ── Record helpers ──────────────────────────────────────────


def record_submission() -> None:
    """Increment the submission counter."""
    SUBMISSIONS.inc()


def record_poll(status: str) -> None:
    """Count one status poll that returned *status*."""
    STATUS_POLLS.labels(status=status).inc()


def record_report(status: str, *, channel: str) -> None:
    """Count one status report.

    Args:
        status: Reported status.
        channel: ``callback``, ``link`` or ``simulated``.
    """
    PROVIDER_REPORTS.labels(status=status, channel=channel).inc()


def record_decode_failure() -> None:
    """Increment the decode-failure counter."""
    DECODE_FAILURES.inc()


# ── Store-size collector ────────────────────────────────────


class StoreCollector:
    """Report store sizes on each Prometheus scrape.

    ``bind()`` attaches a callable returning a ``{name: count}``
    mapping; until then (or if it raises) nothing is emitted.
    """

    def __init__(self) -> None:
        self._stats: Callable[[], dict[str, int]] | None = None

    def bind(self, stats: Callable[[], dict[str, int]]) -> None:
        self._stats = stats

    def collect(self):
        """Yield one gauge family with a sample per store."""
        if self._stats is None:
            return
        try:
            stats = self._stats()
        except Exception:
            logger.warning("Failed to read store sizes", exc_info=True)
            return

        gauge = GaugeMetricFamily(
            "liveness_store_entries",
            "Live entries per store.",
            labels=["store"],
        )
        for name, count in sorted(stats.items()):
            gauge.add_metric([name], count)
        yield gauge


STORE_COLLECTOR = StoreCollector()
REGISTRY.register(STORE_COLLECTOR)


def generate_metrics() -> bytes:
    """Render Prometheus exposition format.

    Returns:
        UTF-8 bytes ready to be served on ``/metrics``.
    """
    return generate_latest(REGISTRY)
