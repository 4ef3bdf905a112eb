"""Browser-facing ``/selfie/link`` route.

Two legs share the URL:

* outbound leg, ``?id=<reference>``: decrypt the reference, check the
  verification exists, and redirect (307) to the provider with a
  ``return_url`` pointing back here;
* return leg, ``?id=<reference>&result_code=...``: the provider sends the
  browser back after completion; the result is applied through the
  state machine and a short confirmation page is shown.
"""

from __future__ import annotations

import html
import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from app.api.deps import get_verification_service
from app.core.config import Settings, get_settings
from app.core.metrics import record_decode_failure
from app.core.security import SignatureError, link_payload, verify_signature
from app.schemas import VerificationStatus
from app.services.state_machine import InvalidTransitionError
from app.services.verification import VerificationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["links"])

_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>{title}</title>
<style>
body {{ font-family: sans-serif; background: #f8f9fa; padding: 50px; text-align: center; }}
.box {{ background: #fff; border-radius: 10px; padding: 40px; max-width: 600px; margin: 0 auto; }}
h1 {{ color: {colour}; }}
</style>
</head>
<body>
<div class="box">
<h1>{title}</h1>
<p>{message}</p>
</div>
</body>
</html>
"""


def _page(title: str, message: str, status_code: int = 200) -> HTMLResponse:
    colour = "#2ecc71" if status_code < 400 else "#dc3545"
    return HTMLResponse(
        _PAGE.format(
            title=html.escape(title),
            message=html.escape(message),
            colour=colour,
        ),
        status_code=status_code,
    )


@router.get("/selfie/link", response_class=HTMLResponse)
def selfie_link(
    request: Request,
    reference: str | None = Query(default=None, alias="id"),
    result_code: str | None = Query(default=None, max_length=256),
    signature: str | None = Query(default=None),
    timestamp: str | None = Query(default=None),
    service: VerificationService = Depends(get_verification_service),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Redirect to the provider, or accept the provider's return leg."""
    if not reference:
        return _page("Error", "No ID parameter provided.", 400)
    if result_code is not None and not result_code.strip():
        return _page("Error", "Empty result_code parameter.", 400)

    decoded = service.decode_reference(reference)
    if not decoded.ok:
        record_decode_failure()
        logger.info("Rejected undecodable link id (%s)", decoded.reason)
        return _page("Invalid link", "This verification link is not valid.", 400)
    selfie_code = decoded.plaintext

    if result_code is None:
        status = service.get_status(selfie_code)
        if status is None:
            return _page(
                "Not found",
                "This verification has expired or does not exist.",
                404,
            )
        if status.status.is_terminal:
            return _page(
                "Verification finished",
                f"This verification is already {status.status}.",
            )
        return_url = request.url_for("selfie_link").include_query_params(id=reference)
        return RedirectResponse(
            service.provider_redirect_url(reference, str(return_url)),
            status_code=307,
        )

    if settings.PROVIDER_CALLBACK_SECRET:
        try:
            verify_signature(
                link_payload(reference, result_code),
                settings.PROVIDER_CALLBACK_SECRET,
                signature=signature,
                timestamp=timestamp,
                tolerance=settings.CALLBACK_TOLERANCE,
            )
        except SignatureError as exc:
            logger.warning("Rejected return leg for %s: %s", selfie_code, exc)
            return _page("Invalid link", str(exc), 401)

    try:
        outcome = service.apply_report(
            selfie_code,
            VerificationStatus.COMPLETED,
            result_code=result_code,
            channel="link",
        )
    except InvalidTransitionError as exc:
        return _page("Verification finished", str(exc), 409)

    if outcome is None:
        return _page(
            "Not found",
            "This verification has expired or does not exist.",
            404,
        )
    return _page(
        "Verification complete",
        "Your selfie verification is complete. "
        "You can return to the application.",
    )
