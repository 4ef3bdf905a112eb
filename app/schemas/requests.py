"""Request models for the broker endpoints."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import (
    BaseModel,
    Field,
    field_validator,
    model_validator,
)

from app.schemas.enums import VerificationStatus

# Payloads are identifiers or small JSON blobs; anything larger
# is almost certainly a misuse.
_MAX_DATA_CHARS: int = 64_000


# ── Selfie code validation ──────────────────────────────────

SelfieCode = Annotated[
    str,
    Field(
        min_length=1,
        max_length=256,
        description="Caller-supplied opaque lookup key",
    ),
]


# ── Codec requests ──────────────────────────────────────────


class EncryptRequest(BaseModel):
    """Request body for ``POST /api/encrypt``."""

    data: str = Field(
        ...,
        min_length=1,
        max_length=_MAX_DATA_CHARS,
        description="Plaintext to encrypt",
    )
    action: str = Field(
        default="encrypt",
        description='Must be "encrypt"',
    )

    @field_validator("action")
    @classmethod
    def _only_encrypt(cls, v: str) -> str:
        """Reject any action other than ``encrypt``."""
        if v != "encrypt":
            raise ValueError('Action must be "encrypt"')
        return v


class DecryptRequest(BaseModel):
    """Request body for ``POST /api/decrypt``."""

    data: str = Field(
        ...,
        min_length=1,
        max_length=_MAX_DATA_CHARS,
        description="Blob produced by /api/encrypt",
    )


# ── Submission requests ─────────────────────────────────────


class SaveSelfieRequest(BaseModel):
    """Request body for ``POST /api/save-selfie``."""

    selfie_code: SelfieCode
    encrypted_code: str = Field(
        ...,
        min_length=1,
        max_length=_MAX_DATA_CHARS,
        description="Opaque encrypted payload supplied by the caller",
    )
    client_name: str | None = Field(default="unknown", max_length=256)
    source: str = Field(default="web", max_length=128)

    @field_validator("selfie_code", "encrypted_code")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        """Whitespace-only values count as missing."""
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @field_validator("client_name")
    @classmethod
    def _default_client_name(cls, v: str | None) -> str:
        """An explicit ``null`` or blank name reads as ``"unknown"``."""
        if v is None or not v.strip():
            return "unknown"
        return v


class ProviderReport(BaseModel):
    """Status report sent by the verification provider.

    The provider identifies the verification either by the
    opaque ``reference`` it received in the redirect or, for
    integrations that were given it, the plain ``selfie_code``.
    """

    reference: str | None = Field(
        default=None,
        max_length=_MAX_DATA_CHARS,
        description="Encrypted id from the outbound redirect",
    )
    selfie_code: SelfieCode | None = None
    status: VerificationStatus = Field(
        ...,
        description="Status the provider reports",
    )
    result_code: str | None = Field(
        default=None,
        max_length=256,
        description="Provider-minted result code (on completion)",
    )
    reason: str | None = Field(
        default=None,
        max_length=1024,
        description="Failure reason (on failure)",
    )

    @model_validator(mode="after")
    def _require_identifier(self) -> ProviderReport:
        """Exactly one of ``reference`` / ``selfie_code`` is required."""
        if bool(self.reference) == bool(self.selfie_code):
            raise ValueError(
                "Provide exactly one of 'reference' or 'selfie_code'."
            )
        return self


# ── Ephemeral blob requests ─────────────────────────────────


class BlobRequest(BaseModel):
    """Request body for ``POST /api/sessions`` and ``POST /api/data``."""

    payload: Any = Field(
        ...,
        description="Any JSON value",
    )

    @field_validator("payload")
    @classmethod
    def _not_null(cls, v: Any) -> Any:
        """``null`` would be indistinguishable from a miss."""
        if v is None:
            raise ValueError("payload must not be null")
        return v
