"""
FastAPI dependency-injection helpers.

Provides ``Depends()``-compatible factories for the shared store
backend, the codec, and the services built on them.  Each factory
is cached so every request sees the same instances; tests swap
them out with ``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Request

from app.core.config import Settings, get_settings
from app.core.constants import HEADER_SIGNATURE, HEADER_TIMESTAMP, PREFIX_DATA, PREFIX_SESSION
from app.core.crypto import SymmetricCodec
from app.core.security import verify_signature
from app.services.backends import StoreBackend, build_backend
from app.services.ephemeral import EphemeralStore
from app.services.records import RecordStore
from app.services.simulation import build_simulator
from app.services.statuses import StatusStore
from app.services.verification import VerificationService


@lru_cache
def get_store_backend() -> StoreBackend:
    """Return the process-wide store backend."""
    return build_backend(get_settings().STORE_BACKEND)


@lru_cache
def get_codec() -> SymmetricCodec:
    """Return the codec keyed from ``ENCRYPTION_KEY``.

    Key derivation is deliberately slow, so it runs once.
    """
    settings = get_settings()
    return SymmetricCodec.from_passphrase(
        settings.ENCRYPTION_KEY,
        settings.ENCRYPTION_SALT,
        iterations=settings.ENCRYPTION_KDF_ITERATIONS,
    )


@lru_cache
def get_verification_service() -> VerificationService:
    """Return the verification service wired from settings."""
    settings = get_settings()
    backend = get_store_backend()
    simulator = (
        build_simulator(settings.SIMULATION_STRATEGY)
        if settings.STATUS_MODE == "simulated"
        else None
    )
    return VerificationService(
        RecordStore(backend, cap=settings.RECORD_CAP),
        StatusStore(backend, ttl=settings.STATUS_TTL),
        get_codec(),
        provider_url=settings.PROVIDER_VERIFY_URL,
        simulator=simulator,
    )


@lru_cache
def get_session_store() -> EphemeralStore:
    """Browser-session blobs (``SESSION_TTL``, default 1 h)."""
    return EphemeralStore(
        get_store_backend(),
        prefix=PREFIX_SESSION,
        ttl=get_settings().SESSION_TTL,
    )


@lru_cache
def get_data_store() -> EphemeralStore:
    """Scratch data blobs (``DATA_TTL``, default 24 h)."""
    return EphemeralStore(
        get_store_backend(),
        prefix=PREFIX_DATA,
        ttl=get_settings().DATA_TTL,
    )


async def verify_provider_signature(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> None:
    """Reject provider callbacks whose HMAC signature is invalid.

    Skipped entirely when ``PROVIDER_CALLBACK_SECRET`` is empty
    (local development).

    Raises:
        SignatureError: Rendered as HTTP 401.
    """
    if not settings.PROVIDER_CALLBACK_SECRET:
        return
    verify_signature(
        await request.body(),
        settings.PROVIDER_CALLBACK_SECRET,
        signature=request.headers.get(HEADER_SIGNATURE),
        timestamp=request.headers.get(HEADER_TIMESTAMP),
        tolerance=settings.CALLBACK_TOLERANCE,
    )
