import hmac
import json
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from wa_relay.config import Settings, get_settings
from wa_relay.dependencies import get_relay_service
from wa_relay.logging_config import get_logger
from wa_relay.schemas.whatsapp import WhatsAppWebhookPayload
from wa_relay.services.errors import AuthenticityFailure, RelayError
from wa_relay.services.relay_service import RelayService
from wa_relay.services.signature import verify_signature

logger = get_logger("webhook")

router = APIRouter()

VERIFY_MODE = "subscribe"
SIGNATURE_HEADER = "x-hub-signature-256"


def _ok() -> PlainTextResponse:
    return PlainTextResponse("OK", status_code=status.HTTP_200_OK)


def _tokens_match(provided: Optional[str], expected: Optional[str]) -> bool:
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def parse_webhook_payload(raw_body: bytes) -> Optional[WhatsAppWebhookPayload]:
    """Decode the envelope; None if it is not JSON or not shaped like one."""
    try:
        data = json.loads(raw_body or b"{}")
    except ValueError as e:
        logger.warning(f"Webhook body is not valid JSON: {e}")
        return None
    if not isinstance(data, dict):
        logger.warning("Webhook body is not a JSON object")
        return None
    try:
        return WhatsAppWebhookPayload.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Unexpected webhook envelope: {e}")
        return None


def require_authentic(raw_body: bytes, signature: Optional[str], secret: Optional[str]) -> None:
    if not verify_signature(raw_body, signature, secret):
        raise AuthenticityFailure("Signature verification failed")


@router.get("/webhook", response_class=PlainTextResponse)
@router.get("/webhooks/whatsapp", response_class=PlainTextResponse, include_in_schema=False)
async def verify_webhook(request: Request, settings: Settings = Depends(get_settings)):
    """Subscription handshake: echo hub.challenge when mode and token match."""
    params = request.query_params
    mode = params.get("hub.mode")
    token = params.get("hub.verify_token")
    challenge = params.get("hub.challenge")

    if mode == VERIFY_MODE and _tokens_match(token, settings.webhook_verify_token):
        logger.info("Webhook verified successfully!")
        return PlainTextResponse(challenge or "", status_code=status.HTTP_200_OK)

    logger.warning("Webhook verification failed", extra={"context": {"mode": mode}})
    return PlainTextResponse("Forbidden", status_code=status.HTTP_403_FORBIDDEN)


@router.post("/webhook", response_class=PlainTextResponse)
@router.post("/webhooks/whatsapp", response_class=PlainTextResponse, include_in_schema=False)
async def receive_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    relay: RelayService = Depends(get_relay_service),
):
    """
    Handle WhatsApp message deliveries:
    - no message / non-text message -> acknowledge, nothing else
    - text message -> verify signature, relay through the agent
    """
    raw_body = await request.body()

    # The platform redelivers anything that is not acknowledged with 200.
    payload = parse_webhook_payload(raw_body)
    if payload is None:
        return _ok()

    message = payload.first_message()
    if message is None:
        return _ok()

    if not message.is_text:
        logger.info("Ignoring non-text message", extra={"context": {"type": message.type}})
        return _ok()

    try:
        require_authentic(raw_body, request.headers.get(SIGNATURE_HEADER), settings.app_secret)
    except AuthenticityFailure as e:
        logger.warning(e.message, extra={"context": {"wa_message_id": message.id}})
        return PlainTextResponse("Unexpected request", status_code=status.HTTP_403_FORBIDDEN)

    if not message.from_user:
        logger.warning("Text message without sender", extra={"context": {"wa_message_id": message.id}})
        return _ok()

    try:
        await relay.handle_text_message(message, payload.phone_number_id())
    except RelayError as e:
        logger.error(
            "Error processing WhatsApp message",
            extra={"context": {"code": e.code, "error": e.message, **e.context}},
            exc_info=True,
        )
        return PlainTextResponse("Internal Server Error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    except Exception as e:
        logger.error(f"Error processing WhatsApp message: {e}", exc_info=True)
        return PlainTextResponse("Internal Server Error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return _ok()
