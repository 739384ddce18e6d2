"""X-Line-Signature verification.

LINE signs every webhook with base64(HMAC-SHA256(channel_secret, raw_body)).
The digest must be computed over the exact bytes received; re-serializing the
JSON first changes whitespace and key order and breaks the signature.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac

from src.config import ConfigurationError

SIGNATURE_HEADER = "x-line-signature"


class SignatureError(Exception):
    """Base for signature problems that mean the request is not authenticated."""


class MissingSignatureError(SignatureError):
    def __init__(self) -> None:
        super().__init__("Missing signature")


class MalformedSignatureError(SignatureError):
    def __init__(self) -> None:
        super().__init__("Signature is not valid base64")


def compute_signature(body: bytes, secret: str) -> str:
    """Return the base64 HMAC-SHA256 digest LINE would send for ``body``."""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(body: bytes, signature: str | None, secret: str) -> bool:
    """Verify ``signature`` against ``body``.

    Returns False on a plain mismatch. Raises ConfigurationError when the
    secret is empty, MissingSignatureError when no signature was supplied and
    MalformedSignatureError when it does not decode as base64.
    """
    if not secret:
        raise ConfigurationError(["LINE_CHANNEL_SECRET"])
    if not signature:
        raise MissingSignatureError()

    try:
        supplied = base64.b64decode(signature, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedSignatureError() from exc

    expected = base64.b64decode(compute_signature(body, secret))
    # Length is public (always 32 bytes for SHA-256)
    if len(supplied) != len(expected):
        return False
    return hmac.compare_digest(supplied, expected)
