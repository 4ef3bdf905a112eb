"""
HMAC signing and verification for provider callbacks.

The verification provider reports status changes either through a
server-to-server ``POST`` or by sending the browser back to
``/selfie/link`` with a ``result_code``.  When
``PROVIDER_CALLBACK_SECRET`` is configured, both legs must carry an
HMAC-SHA256 signature over ``{timestamp}.{payload}`` so a browser
cannot mint its own result codes.  Signatures older than
``CALLBACK_TOLERANCE`` seconds are rejected to limit replay.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time

logger = logging.getLogger(__name__)


class SignatureError(Exception):
    """Raised when a callback signature is missing, stale, or wrong."""


def compute_signature(
    payload_bytes: bytes,
    secret: str,
    *,
    timestamp: int | None = None,
) -> tuple[str, int]:
    """Compute an HMAC-SHA256 signature for a callback payload.

    The signature covers ``{timestamp}.{payload_bytes}`` to
    prevent replay attacks.

    Args:
        payload_bytes: The raw body bytes (or canonical query string).
        secret: The shared HMAC secret string.
        timestamp: Unix epoch seconds.  Defaults to
            ``int(time.time())``.

    Returns:
        A ``(signature_hex, timestamp)`` tuple.
    """
    if timestamp is None:
        timestamp = int(time.time())
    message = f"{timestamp}.".encode() + payload_bytes
    sig = hmac.new(
        secret.encode(),
        message,
        hashlib.sha256,
    ).hexdigest()
    return sig, timestamp


def verify_signature(
    payload_bytes: bytes,
    secret: str,
    *,
    signature: str | None,
    timestamp: str | int | None,
    tolerance: int,
    now: float | None = None,
) -> None:
    """Check a callback signature produced by ``compute_signature``.

    Args:
        payload_bytes: The exact bytes that were signed.
        secret: The shared HMAC secret string.
        signature: Hex signature supplied by the caller.
        timestamp: Unix epoch seconds supplied by the caller.
        tolerance: Maximum accepted age (and clock skew) in seconds.
        now: Current epoch seconds; defaults to ``time.time()``.

    Raises:
        SignatureError: If the signature is missing, malformed,
            outside the tolerance window, or does not match.
    """
    if not signature or timestamp is None or timestamp == "":
        raise SignatureError("Missing callback signature")

    try:
        ts = int(timestamp)
    except (TypeError, ValueError) as exc:
        raise SignatureError("Malformed callback timestamp") from exc

    current = time.time() if now is None else now
    if abs(current - ts) > tolerance:
        logger.warning(
            "Rejected stale callback signature (age=%ds)",
            int(current - ts),
        )
        raise SignatureError("Callback signature expired")

    expected, _ = compute_signature(payload_bytes, secret, timestamp=ts)
    if not hmac.compare_digest(expected, signature.lower()):
        raise SignatureError("Invalid callback signature")


def link_payload(reference: str, result_code: str) -> bytes:
    """Canonical bytes signed for the browser return leg.

    *reference* is the opaque ``id`` the provider received in the
    outbound redirect; it never sees the plaintext selfie code.
    """
    return f"{reference}:{result_code}".encode()
