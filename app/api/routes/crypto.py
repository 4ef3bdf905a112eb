"""Codec routes (encrypt, decrypt, self-check)."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from app.api.deps import get_codec
from app.core.clock import utc_now
from app.core.config import Settings, get_settings
from app.core.crypto import SymmetricCodec
from app.core.errors import NotFoundError
from app.core.metrics import record_decode_failure
from app.schemas import (
    DebugEncryptResponse,
    DecryptRequest,
    DecryptResponse,
    EncryptRequest,
    EncryptResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["crypto"])

_DEBUG_SAMPLE = "liveness-broker self-check ✓"


@router.post("/encrypt", response_model=EncryptResponse)
def encrypt(
    request: EncryptRequest,
    codec: SymmetricCodec = Depends(get_codec),
) -> EncryptResponse:
    """Encrypt ``data`` with a fresh random IV."""
    encrypted = codec.encrypt(request.data)
    logger.info(
        "Encryption successful (original_length=%d, encrypted_length=%d)",
        len(request.data),
        len(encrypted),
    )
    return EncryptResponse(
        encrypted_data=encrypted,
        original_length=len(request.data),
        encrypted_length=len(encrypted),
        timestamp=utc_now(),
    )


@router.post("/decrypt", response_model=DecryptResponse)
def decrypt(
    request: DecryptRequest,
    codec: SymmetricCodec = Depends(get_codec),
) -> DecryptResponse:
    """Decrypt ``data``.

    A blob that cannot be decoded yields ``success: false`` and
    an ``error`` reason; the input is never echoed back.
    """
    result = codec.decrypt(request.data)
    if not result.ok:
        record_decode_failure()
        return DecryptResponse(success=False, error=result.reason)
    return DecryptResponse(success=True, decrypted_data=result.plaintext)


@router.get("/debug-encrypt", response_model=DebugEncryptResponse)
def debug_encrypt(
    codec: SymmetricCodec = Depends(get_codec),
    settings: Settings = Depends(get_settings),
) -> DebugEncryptResponse:
    """Round-trip a fixed sample through the codec.

    Disabled when ``ENVIRONMENT=production``.
    """
    if settings.is_production:
        raise NotFoundError("Endpoint not available in production")

    first = codec.encrypt(_DEBUG_SAMPLE)
    second = codec.encrypt(_DEBUG_SAMPLE)
    result = codec.decrypt(first)
    decrypted = result.plaintext if result.ok else None
    round_trip_ok = decrypted == _DEBUG_SAMPLE
    return DebugEncryptResponse(
        success=round_trip_ok,
        sample=_DEBUG_SAMPLE,
        encrypted=first,
        decrypted=decrypted,
        round_trip_ok=round_trip_ok,
        distinct_ciphertexts=first != second,
    )
