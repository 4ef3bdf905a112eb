"""
FastAPI entry point; routers are defined in ``app.api.routes``.

The application exposes:
* ``GET  /``                         service banner and store stats
* ``GET  /metrics``                  Prometheus metrics
* ``GET  /api/test``, ``/api/health`` liveness / readiness probes
* ``POST /api/encrypt`` / ``/api/decrypt`` / ``GET /api/debug-encrypt``
* ``POST /api/save-selfie``          submit a selfie record
* ``GET  /api/check-status``         poll verification status
* ``GET  /api/get-result``           result code once completed
* ``POST /api/provider/callback``    signed provider status report
* ``GET  /selfie/link``              provider redirect / return leg
* ``/api/sessions``, ``/api/data``   short-lived blobs
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.deps import get_store_backend, get_verification_service
from app.api.routes import crypto, ephemeral, health, links, selfie
from app.core.config import get_settings, get_version
from app.core.errors import register_exception_handlers
from app.core.metrics import STORE_COLLECTOR
from app.logging_config import setup_logging
from app.middleware import RequestIDMiddleware

# ── Logging ─────────────────────────────────────────────────────────────────

settings = get_settings()
setup_logging(level=settings.LOG_LEVEL, json_format=not settings.DEBUG)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Application startup / shutdown hooks."""
    logger.info(
        "Starting %s (%s, store=%s, status_mode=%s)",
        settings.APP_NAME,
        settings.ENVIRONMENT,
        settings.STORE_BACKEND,
        settings.STATUS_MODE,
    )
    STORE_COLLECTOR.bind(lambda: get_verification_service().stats())
    yield
    get_store_backend().close()
    logger.info("Shutting down %s", settings.APP_NAME)


# ── App factory ─────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.APP_NAME,
    description=(
        "Short-lived record broker for a third-party liveness "
        "verification flow."
    ),
    version=get_version(),
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    docs_url=f"{settings.API_PREFIX}/docs",
    redoc_url=f"{settings.API_PREFIX}/redoc",
    root_path=settings.ROOT_PATH,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)
app.add_middleware(RequestIDMiddleware)

register_exception_handlers(app)

app.include_router(health.root_router)
app.include_router(health.router, prefix=settings.API_PREFIX)
app.include_router(crypto.router, prefix=settings.API_PREFIX)
app.include_router(selfie.router, prefix=settings.API_PREFIX)
app.include_router(ephemeral.router, prefix=settings.API_PREFIX)
app.include_router(links.router)


def run() -> None:
    """Serve the app with uvicorn on ``PORT``."""
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        log_config=None,
    )


if __name__ == "__main__":
    run()
