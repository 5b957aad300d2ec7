import hashlib
import secrets
import string
import time
from typing import Optional

PLATFORM_TAG = "whatsapp"
TOKEN_LENGTH = 13

_BASE36_ALPHABET = string.digits + string.ascii_lowercase


def to_base36(value: int) -> str:
    """Encode a non-negative integer in lowercase base 36."""
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def random_token(length: int = TOKEN_LENGTH) -> str:
    return "".join(secrets.choice(_BASE36_ALPHABET) for _ in range(length))


def generate_session_id(user_id: str, *, now_ms: Optional[int] = None, token: Optional[str] = None) -> str:
    """Build ``<random>-<timestamp>-<sha256>-whatsapp`` for a user.

    The digest covers the user id salted with the random token and timestamp,
    so the id cannot be mapped back to the phone number without the store.
    """
    token = token if token is not None else random_token()
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    timestamp = to_base36(now_ms)
    digest = hashlib.sha256(f"{user_id}{token}{timestamp}".encode("utf-8")).hexdigest()
    return f"{token}-{timestamp}-{digest}-{PLATFORM_TAG}"
