"""Request-ID propagation middleware."""

from __future__ import annotations

import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.logging_config import request_id_ctx

REQUEST_ID_HEADER = "X-Request-ID"
_MAX_REQUEST_ID_LENGTH = 128


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag every request with an ID and echo it back.

    A client-supplied ``X-Request-ID`` is reused when present
    (truncated to a sane length); otherwise a UUID4 is minted.
    The ID is exposed to log records through ``request_id_ctx``.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = (
            request.headers.get(REQUEST_ID_HEADER, "")[:_MAX_REQUEST_ID_LENGTH]
            or uuid.uuid4().hex
        )
        token = request_id_ctx.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
