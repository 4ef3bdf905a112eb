"""Health and service-info response models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Returned by the health-check endpoint."""

    status: str = Field(
        ...,
        description="Service health status",
    )
    version: str = Field(
        ...,
        description="Application version",
    )
    store_backend: str = Field(
        ...,
        description="Configured store backend (memory | redis)",
    )
    store_reachable: bool = Field(
        ...,
        description="Whether the store backend answered a ping",
    )


class ServerTestResponse(BaseModel):
    """Returned by ``GET /api/test``."""

    success: bool = True
    status: str = "ok"
    message: str
    server_time: datetime
    uptime_seconds: float


class ServiceInfoResponse(BaseModel):
    """Returned by ``GET /``."""

    success: bool = True
    message: str
    version: str
    timestamp: datetime
    endpoints: list[str] = Field(default_factory=list)
    stats: dict[str, Any] = Field(default_factory=dict)
