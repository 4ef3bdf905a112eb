"""Submission, status polling, result and provider-callback routes."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from app.api.deps import get_verification_service, verify_provider_signature
from app.core.clock import utc_now
from app.core.constants import STATUS_NOT_FOUND
from app.core.errors import BadRequestError, NotFoundError
from app.core.metrics import record_decode_failure
from app.schemas import (
    CallbackResponse,
    ProviderReport,
    ResultResponse,
    SaveSelfieRequest,
    SaveSelfieResponse,
    StatusResponse,
    VerificationStatus,
)
from app.services.verification import VerificationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["selfie"])

SelfieCodeQuery = Annotated[str, Query(min_length=1, max_length=256)]


def _not_found(selfie_code: str) -> NotFoundError:
    logger.info("Selfie code not found: %s", selfie_code)
    return NotFoundError("Selfie code not found", status=STATUS_NOT_FOUND)


@router.post("/save-selfie", response_model=SaveSelfieResponse)
def save_selfie(
    payload: SaveSelfieRequest,
    request: Request,
    service: VerificationService = Depends(get_verification_service),
) -> SaveSelfieResponse:
    """Store a submission and start tracking its status.

    The returned ``link`` embeds the encrypted selfie code and
    sends the browser on to the verification provider.
    """
    record = service.submit(
        payload,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    reference = service.encode_reference(record.selfie_code)
    link = request.url_for("selfie_link").include_query_params(id=reference)
    return SaveSelfieResponse(
        record_id=record.id,
        selfie_code=record.selfie_code,
        link=str(link),
        timestamp=record.created_at,
    )


@router.get("/check-status", response_model=StatusResponse)
def check_status(
    selfie_code: SelfieCodeQuery,
    service: VerificationService = Depends(get_verification_service),
) -> StatusResponse:
    """Poll the verification status for *selfie_code*.

    Each call counts as one attempt.  The status itself only
    changes on provider reports (or in simulated mode).
    """
    record = service.check_status(selfie_code)
    if record is None:
        raise _not_found(selfie_code)
    return StatusResponse(
        status=record.status,
        attempts=record.attempts,
        last_checked=record.last_checked,
        result_code=record.result_code,
        timestamp=utc_now(),
    )


@router.get(
    "/get-result",
    response_model=ResultResponse,
    response_model_exclude_none=True,
)
def get_result(
    selfie_code: SelfieCodeQuery,
    service: VerificationService = Depends(get_verification_service),
) -> ResultResponse:
    """Return the result code once the verification has completed."""
    record = service.get_status(selfie_code)
    if record is None:
        raise _not_found(selfie_code)

    if record.status != VerificationStatus.COMPLETED:
        return ResultResponse(
            success=False,
            message=(
                "Selfie is not completed yet. "
                f"Current status: {record.status}"
            ),
            current_status=record.status,
            timestamp=utc_now(),
        )

    return ResultResponse(
        success=True,
        result_code=record.result_code,
        status=record.status,
        attempts=record.attempts,
        timestamp=utc_now(),
    )


@router.post(
    "/provider/callback",
    response_model=CallbackResponse,
    dependencies=[Depends(verify_provider_signature)],
)
def provider_callback(
    report: ProviderReport,
    service: VerificationService = Depends(get_verification_service),
) -> CallbackResponse:
    """Apply a status report from the verification provider.

    Requires ``X-Provider-Signature`` / ``X-Provider-Timestamp``
    headers when ``PROVIDER_CALLBACK_SECRET`` is configured.
    """
    selfie_code = report.selfie_code
    if selfie_code is None:
        decoded = service.decode_reference(report.reference or "")
        if not decoded.ok:
            record_decode_failure()
            raise BadRequestError(f"Invalid reference: {decoded.reason}")
        selfie_code = decoded.plaintext

    outcome = service.apply_report(
        selfie_code,
        report.status,
        result_code=report.result_code,
        reason=report.reason,
        channel="callback",
    )
    if outcome is None:
        raise _not_found(selfie_code)

    record, changed = outcome
    return CallbackResponse(
        selfie_code=selfie_code,
        status=record.status,
        result_code=record.result_code,
        changed=changed,
    )
