import hashlib
import hmac
from typing import Optional

from wa_relay.logging_config import get_logger

logger = get_logger("signature")

SIGNATURE_PREFIX = "sha256="


def compute_signature(raw_body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of the raw request body."""
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_signature(raw_body: bytes, signature_header: Optional[str], secret: Optional[str]) -> bool:
    """Check an ``x-hub-signature-256`` header against the raw body.

    Malformed or missing input is reported as not authentic, never raised.
    """
    if not secret:
        logger.error("APP_SECRET not configured")
        return False
    if not signature_header:
        return False

    signature = signature_header.removeprefix(SIGNATURE_PREFIX)
    # compare_digest only accepts ASCII str
    if not signature.isascii():
        return False

    expected = compute_signature(raw_body or b"", secret)
    return hmac.compare_digest(expected, signature)
