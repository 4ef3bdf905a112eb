"""Shared pytest fixtures for the Liveness Broker test suite."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from app.api.deps import (
    get_codec,
    get_data_store,
    get_session_store,
    get_store_backend,
    get_verification_service,
)
from app.core.config import Settings, get_settings
from app.core.constants import PREFIX_DATA, PREFIX_SESSION
from app.core.crypto import SymmetricCodec
from app.main import app
from app.services.backends import MemoryBackend
from app.services.ephemeral import EphemeralStore
from app.services.records import RecordStore
from app.services.statuses import StatusStore
from app.services.verification import VerificationService

PROVIDER_URL = "https://verify.example.com/liveness"


# ── Clock ───────────────────────────────────────────────────────────────────


class FakeClock:
    """Controllable clock shared by stores, backends and services."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def epoch(self) -> float:
        return self.now.timestamp()

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 1, 1, 12, 0, tzinfo=UTC))


# ── Stores & services ───────────────────────────────────────────────────────


@pytest.fixture
def backend(clock: FakeClock) -> MemoryBackend:
    return MemoryBackend(clock=clock.epoch)


@pytest.fixture(scope="session")
def codec() -> SymmetricCodec:
    """Codec with a cheap KDF so the suite stays fast."""
    return SymmetricCodec.from_passphrase(
        "test-passphrase",
        "test-salt",
        iterations=1_000,
    )


@pytest.fixture
def service(backend, codec, clock) -> VerificationService:
    """Callback-mode service over an in-memory backend."""
    return VerificationService(
        RecordStore(backend, cap=1000),
        StatusStore(backend, ttl=3600, clock=clock),
        codec,
        provider_url=PROVIDER_URL,
        clock=clock,
    )


@pytest.fixture
def session_store(backend, clock) -> EphemeralStore:
    return EphemeralStore(backend, prefix=PREFIX_SESSION, ttl=3600, clock=clock)


@pytest.fixture
def data_store(backend, clock) -> EphemeralStore:
    return EphemeralStore(backend, prefix=PREFIX_DATA, ttl=86400, clock=clock)


# ── Settings override ──────────────────────────────────────────────────────


@pytest.fixture
def test_settings() -> Settings:
    """Settings with no .env file and no callback secret."""
    return Settings(
        _env_file=None,
        ENVIRONMENT="development",
        PROVIDER_CALLBACK_SECRET="",
        PROVIDER_VERIFY_URL=PROVIDER_URL,
    )


# ── HTTP client ─────────────────────────────────────────────────────────────


@pytest.fixture
def overrides(service, codec, backend, session_store, data_store, test_settings):
    """Point every dependency at the in-memory fixtures."""
    app.dependency_overrides.update(
        {
            get_verification_service: lambda: service,
            get_codec: lambda: codec,
            get_store_backend: lambda: backend,
            get_session_store: lambda: session_store,
            get_data_store: lambda: data_store,
            get_settings: lambda: test_settings,
        }
    )
    yield app.dependency_overrides
    app.dependency_overrides.clear()


@pytest.fixture
async def client(overrides) -> AsyncClient:  # type: ignore[misc]
    """
    Yield an async HTTP client bound to the FastAPI app.

    Usage::

        async def test_something(client: AsyncClient):
            response = await client.get("/api/test")
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
    ) as ac:
        yield ac
