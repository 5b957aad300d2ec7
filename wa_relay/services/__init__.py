from wa_relay.services.errors import (
    AuthenticityFailure,
    BackendFailure,
    CorruptSnapshot,
    RelayError,
    StorageUnavailable,
    TransportFailure,
)
from wa_relay.services.session_id import generate_session_id
from wa_relay.services.session_store import SessionStore
from wa_relay.services.signature import verify_signature
