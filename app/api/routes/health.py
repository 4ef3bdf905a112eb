"""Service-info, liveness and metrics routes."""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST

from app.api.deps import (
    get_data_store,
    get_session_store,
    get_store_backend,
    get_verification_service,
)
from app.core.clock import utc_now
from app.core.config import get_settings, get_version
from app.core.constants import AVAILABLE_ENDPOINTS
from app.core.metrics import generate_metrics
from app.schemas import HealthResponse, ServerTestResponse, ServiceInfoResponse
from app.services.backends import StoreBackend
from app.services.ephemeral import EphemeralStore
from app.services.verification import VerificationService

router = APIRouter(tags=["health"])
root_router = APIRouter(tags=["system"])

_version = get_version()
_started = time.monotonic()


@root_router.get("/", response_model=ServiceInfoResponse)
def service_info(
    service: VerificationService = Depends(get_verification_service),
    sessions: EphemeralStore = Depends(get_session_store),
    data: EphemeralStore = Depends(get_data_store),
) -> ServiceInfoResponse:
    """Banner with the endpoint list and store sizes."""
    stats = service.stats()
    stats.update(sessions=sessions.count(), data=data.count())
    return ServiceInfoResponse(
        message=f"{get_settings().APP_NAME} is running",
        version=_version,
        timestamp=utc_now(),
        endpoints=AVAILABLE_ENDPOINTS,
        stats={**stats, "status_mode": service.mode},
    )


@root_router.get("/metrics", tags=["observability"])
def prometheus_metrics() -> Response:
    """Expose Prometheus metrics from the dedicated registry."""
    return Response(
        content=generate_metrics(),
        media_type=CONTENT_TYPE_LATEST,
    )


@router.get("/test", response_model=ServerTestResponse)
def server_test() -> ServerTestResponse:
    """Liveness probe with server time and uptime."""
    return ServerTestResponse(
        message=f"{get_settings().APP_NAME} is working",
        server_time=utc_now(),
        uptime_seconds=round(time.monotonic() - _started, 3),
    )


@router.get("/health", response_model=HealthResponse)
def health_check(
    backend: StoreBackend = Depends(get_store_backend),
) -> HealthResponse:
    """Readiness probe — also pings the store backend."""
    reachable = backend.ping()
    return HealthResponse(
        status="ok" if reachable else "degraded",
        version=_version,
        store_backend=backend.name,
        store_reachable=reachable,
    )
