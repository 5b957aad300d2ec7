"""Error taxonomy shared by the webhook pipeline and notification endpoints."""

from typing import Optional


class RelayError(Exception):
    """Base error for relay failures."""

    code = "relay_error"

    def __init__(self, message: str, context: Optional[dict] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)


class AuthenticityFailure(RelayError):
    """Webhook signature missing or invalid."""

    code = "authenticity_failure"


class StorageUnavailable(RelayError):
    """Remote or local snapshot storage could not be read or written."""

    code = "storage_unavailable"


class CorruptSnapshot(RelayError):
    """Session snapshot exists but is not a JSON object of strings."""

    code = "corrupt_snapshot"


class BackendFailure(RelayError):
    """Conversational backend call failed or returned an invalid structure."""

    code = "backend_failure"


class TransportFailure(RelayError):
    """Outbound WhatsApp or Telegram delivery failed."""

    code = "transport_failure"
