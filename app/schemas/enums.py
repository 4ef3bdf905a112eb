"""Verification status enumeration used across the application."""

from __future__ import annotations

from enum import StrEnum


class VerificationStatus(StrEnum):
    """Possible states of a liveness verification."""

    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """``completed`` and ``failed`` accept no further transitions."""
        return self in (VerificationStatus.COMPLETED, VerificationStatus.FAILED)
