"""Response models for the broker endpoints.

Every body carries ``success``; error bodies are produced by the
handlers in ``app.core.errors`` and are not modelled here.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.schemas.enums import VerificationStatus


class EncryptResponse(BaseModel):
    """Returned by ``POST /api/encrypt``."""

    success: bool = True
    encrypted_data: str
    original_length: int
    encrypted_length: int
    timestamp: datetime


class DecryptResponse(BaseModel):
    """Returned by ``POST /api/decrypt``.

    ``decrypted_data`` is present only on success; ``error``
    only on failure.  The input is never echoed back.
    """

    success: bool
    decrypted_data: str | None = None
    error: str | None = None


class DebugEncryptResponse(BaseModel):
    """Returned by ``GET /api/debug-encrypt``."""

    success: bool
    sample: str
    encrypted: str
    decrypted: str | None = None
    round_trip_ok: bool
    distinct_ciphertexts: bool = Field(
        ...,
        description="Two encryptions of the sample differ (random IV)",
    )


class SaveSelfieResponse(BaseModel):
    """Returned by ``POST /api/save-selfie``."""

    success: bool = True
    record_id: str
    selfie_code: str
    message: str = "Selfie data saved successfully"
    link: str = Field(..., description="Encrypted /selfie/link URL")
    timestamp: datetime


class StatusResponse(BaseModel):
    """Returned by ``GET /api/check-status``."""

    success: bool = True
    status: VerificationStatus
    attempts: int
    last_checked: datetime
    result_code: str | None = None
    timestamp: datetime


class ResultResponse(BaseModel):
    """Returned by ``GET /api/get-result``.

    Before completion ``success`` is ``False`` and only
    ``current_status`` / ``message`` are set.
    """

    success: bool
    message: str | None = None
    current_status: VerificationStatus | None = None
    status: VerificationStatus | None = None
    result_code: str | None = None
    attempts: int | None = None
    timestamp: datetime


class CallbackResponse(BaseModel):
    """Returned by ``POST /api/provider/callback``."""

    success: bool = True
    selfie_code: str
    status: VerificationStatus
    result_code: str | None = None
    changed: bool = Field(
        ...,
        description="False when the report repeated the current status",
    )


class BlobStoredResponse(BaseModel):
    """Returned when an ephemeral blob is stored."""

    success: bool = True
    key: str
    expires_at: datetime


class BlobResponse(BaseModel):
    """Returned when an ephemeral blob is read."""

    success: bool = True
    key: str
    payload: Any
    stored_at: datetime
    expires_at: datetime
