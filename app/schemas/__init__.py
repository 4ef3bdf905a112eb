"""
Pydantic models for API requests, responses, and stored records.

All data contracts live here so that route handlers and services
can import lightweight schema objects without circular
dependencies.

For convenience every public model is re-exported from this
``__init__`` so that ``from app.schemas import SaveSelfieRequest``
keeps working.
"""

from app.schemas.enums import VerificationStatus
from app.schemas.health import (
    HealthResponse,
    ServerTestResponse,
    ServiceInfoResponse,
)
from app.schemas.records import EphemeralBlob, StatusRecord, SubmissionRecord
from app.schemas.requests import (
    BlobRequest,
    DecryptRequest,
    EncryptRequest,
    ProviderReport,
    SaveSelfieRequest,
)
from app.schemas.responses import (
    BlobResponse,
    BlobStoredResponse,
    CallbackResponse,
    DebugEncryptResponse,
    DecryptResponse,
    EncryptResponse,
    ResultResponse,
    SaveSelfieResponse,
    StatusResponse,
)

__all__ = [
    "BlobRequest",
    "BlobResponse",
    "BlobStoredResponse",
    "CallbackResponse",
    "DebugEncryptResponse",
    "DecryptRequest",
    "DecryptResponse",
    "EncryptRequest",
    "EncryptResponse",
    "EphemeralBlob",
    "HealthResponse",
    "ProviderReport",
    "ResultResponse",
    "SaveSelfieRequest",
    "SaveSelfieResponse",
    "ServerTestResponse",
    "ServiceInfoResponse",
    "StatusRecord",
    "StatusResponse",
    "SubmissionRecord",
    "VerificationStatus",
]
