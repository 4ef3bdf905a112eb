"""
Symmetric codec for identifiers embedded in URLs.

AES-256-CBC with PKCS7 padding.  Every call to ``encrypt`` draws a
fresh 16-byte IV which is prepended to the ciphertext; the pair is
then URL-safe base64 encoded::

    blob = b64url(iv (16) + ciphertext (16·n))

The key is derived from the configured passphrase with
PBKDF2-HMAC-SHA256; the passphrase itself is never used as key
material.

``decrypt`` returns a tagged result (``Decoded`` or ``DecodeError``)
instead of raising, and never hands the input back as plaintext.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
from dataclasses import dataclass

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger(__name__)

_KEY_LENGTH: int = 32
_IV_LENGTH: int = 16
_BLOCK_BITS: int = algorithms.AES.block_size


# ── Key derivation ──────────────────────────────────────────


def derive_key(
    passphrase: str,
    salt: str,
    *,
    iterations: int = 200_000,
) -> bytes:
    """
    PBKDF2-HMAC-SHA256 → 32-byte AES-256 key
    """
    if not passphrase:
        raise ValueError("Encryption passphrase must not be empty")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=_KEY_LENGTH,
        salt=salt.encode(),
        iterations=iterations,
    )
    return kdf.derive(passphrase.encode())


# ── Tagged decrypt result ───────────────────────────────────


@dataclass(frozen=True)
class Decoded:
    """Successful decryption."""

    plaintext: str

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class DecodeError:
    """Decryption failed; ``reason`` is safe to show to clients."""

    reason: str

    @property
    def ok(self) -> bool:
        return False


DecodeResult = Decoded | DecodeError


# ── Codec ───────────────────────────────────────────────────


class SymmetricCodec:
    """AES-256-CBC codec with a random IV per message.

    Usage::

        codec = SymmetricCodec.from_passphrase("secret", "salt")
        blob = codec.encrypt("selfie-code-42")
        result = codec.decrypt(blob)
        if result.ok:
            print(result.plaintext)
    """

    def __init__(self, key: bytes) -> None:
        if len(key) != _KEY_LENGTH:
            raise ValueError(
                f"AES-256 key must be {_KEY_LENGTH} bytes, got {len(key)}"
            )
        self._key = key

    @classmethod
    def from_passphrase(
        cls,
        passphrase: str,
        salt: str,
        *,
        iterations: int = 200_000,
    ) -> SymmetricCodec:
        """Build a codec whose key is derived from *passphrase*.

        Args:
            passphrase: Human-chosen secret (``ENCRYPTION_KEY``).
            salt: KDF salt (``ENCRYPTION_SALT``).
            iterations: PBKDF2 iteration count.

        Returns:
            A ready-to-use ``SymmetricCodec``.
        """
        return cls(derive_key(passphrase, salt, iterations=iterations))

    def encrypt(self, plaintext: str) -> str:
        """Encrypt *plaintext* and return a URL-safe base64 blob.

        Args:
            plaintext: Any UTF-8 string (may be empty).

        Returns:
            ``b64url(iv + ciphertext)`` as an ASCII string.
        """
        iv = os.urandom(_IV_LENGTH)
        padder = padding.PKCS7(_BLOCK_BITS).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        return base64.urlsafe_b64encode(iv + ciphertext).decode("ascii")

    def decrypt(self, blob: str) -> DecodeResult:
        """Decrypt a blob produced by ``encrypt``.

        Accepts both the URL-safe and the standard base64
        alphabet, with or without trailing ``=`` padding.

        Args:
            blob: Encoded ``iv + ciphertext``.

        Returns:
            ``Decoded`` with the plaintext, or ``DecodeError``
            describing why the blob could not be decoded.
        """
        raw = _b64decode(blob)
        if raw is None:
            return DecodeError("invalid base64 encoding")

        if len(raw) < _IV_LENGTH * 2 or len(raw) % _IV_LENGTH:
            return DecodeError("invalid ciphertext length")

        iv, ciphertext = raw[:_IV_LENGTH], raw[_IV_LENGTH:]
        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()

        unpadder = padding.PKCS7(_BLOCK_BITS).unpadder()
        try:
            data = unpadder.update(padded) + unpadder.finalize()
        except ValueError:
            return DecodeError("invalid padding (wrong key or corrupted data)")

        try:
            return Decoded(data.decode("utf-8"))
        except UnicodeDecodeError:
            return DecodeError("decrypted payload is not valid UTF-8")


def _b64decode(blob: str) -> bytes | None:
    """Decode URL-safe or standard base64; ``None`` when invalid."""
    text = blob.strip().replace("+", "-").replace("/", "_")
    text += "=" * (-len(text) % 4)
    try:
        return base64.b64decode(text, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError):
        return None
