"""Short-lived session and data blob routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.deps import get_data_store, get_session_store
from app.core.errors import NotFoundError
from app.schemas import BlobRequest, BlobResponse, BlobStoredResponse
from app.services.ephemeral import EphemeralStore

router = APIRouter(tags=["ephemeral"])


def _store(store: EphemeralStore, request: BlobRequest) -> BlobStoredResponse:
    key, blob = store.put(request.payload)
    return BlobStoredResponse(key=key, expires_at=blob.expires_at)


def _fetch(store: EphemeralStore, key: str, what: str) -> BlobResponse:
    blob = store.get(key)
    if blob is None:
        raise NotFoundError(f"{what} not found or expired")
    return BlobResponse(
        key=key,
        payload=blob.payload,
        stored_at=blob.stored_at,
        expires_at=blob.expires_at,
    )


@router.post("/sessions", response_model=BlobStoredResponse)
def create_session(
    request: BlobRequest,
    store: EphemeralStore = Depends(get_session_store),
) -> BlobStoredResponse:
    """Store a browser-session payload (expires after ``SESSION_TTL``)."""
    return _store(store, request)


@router.get("/sessions/{key}", response_model=BlobResponse)
def read_session(
    key: str,
    store: EphemeralStore = Depends(get_session_store),
) -> BlobResponse:
    return _fetch(store, key, "Session")


@router.post("/data", response_model=BlobStoredResponse)
def store_data(
    request: BlobRequest,
    store: EphemeralStore = Depends(get_data_store),
) -> BlobStoredResponse:
    """Store a scratch payload (expires after ``DATA_TTL``)."""
    return _store(store, request)


@router.get("/data/{key}", response_model=BlobResponse)
def read_data(
    key: str,
    store: EphemeralStore = Depends(get_data_store),
) -> BlobResponse:
    return _fetch(store, key, "Data")
