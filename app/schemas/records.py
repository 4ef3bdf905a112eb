"""Stored record models (submission, status, ephemeral blob)."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.schemas.enums import VerificationStatus


class SubmissionRecord(BaseModel):
    """A single ``save-selfie`` submission."""

    id: str = Field(..., description="Record identifier (REC_<ms>_<alnum>)")
    selfie_code: str = Field(..., description="Caller-supplied lookup key")
    client_name: str = Field(default="unknown")
    encrypted_payload: str = Field(
        ...,
        description="Opaque encrypted code supplied by the caller",
    )
    source: str = Field(default="web")
    status: VerificationStatus = Field(default=VerificationStatus.PENDING)
    result_code: str | None = Field(default=None)
    created_at: datetime
    updated_at: datetime
    ip_address: str | None = Field(default=None)
    user_agent: str = Field(default="unknown")


class StatusRecord(BaseModel):
    """Verification status tracked per selfie code."""

    selfie_code: str
    status: VerificationStatus = Field(default=VerificationStatus.PENDING)
    attempts: int = Field(default=0, ge=0, description="Status polls so far")
    created_at: datetime
    last_checked: datetime
    updated_at: datetime
    result_code: str | None = Field(default=None)
    failure_reason: str | None = Field(default=None)


class EphemeralBlob(BaseModel):
    """Short-lived payload held in a session or data map."""

    payload: Any
    stored_at: datetime
    expires_at: datetime
