from typing import Optional, Sequence

import httpx

from wa_relay.config import Settings
from wa_relay.logging_config import get_logger
from wa_relay.services.errors import TransportFailure

logger = get_logger("whatsapp_service")


def build_text_payload(to: Optional[str], body: str) -> dict:
    payload = {"messaging_product": "whatsapp", "text": {"body": body}}
    if to:
        payload["to"] = to
    return payload


def build_template_payload(
    to: Optional[str],
    template_name: str,
    language_code: str,
    parameters: Sequence[Optional[str]],
) -> dict:
    """Template message with a single body component.

    Absent values are left out of the payload rather than sent as null; the
    Graph API rejects the message itself if it cannot be delivered.
    """
    body_parameters = []
    for value in parameters:
        parameter = {"type": "text"}
        if value is not None:
            parameter["text"] = str(value)
        body_parameters.append(parameter)

    payload = {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "type": "template",
        "template": {
            "name": template_name,
            "language": {"code": language_code},
            "components": [{"type": "body", "parameters": body_parameters}],
        },
    }
    if to:
        payload["to"] = to
    return payload


def build_read_receipt_payload(message_id: str) -> dict:
    return {"messaging_product": "whatsapp", "status": "read", "message_id": message_id}


class WhatsAppService:
    """Client for the WhatsApp Cloud API messages endpoint."""

    def __init__(
        self,
        access_token: Optional[str],
        phone_number_id: Optional[str] = None,
        base_url: str = "https://graph.facebook.com",
        api_version: str = "v22.0",
        read_api_version: str = "v18.0",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout_seconds: float = 30.0,
    ):
        self.access_token = access_token
        self.phone_number_id = phone_number_id
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self.read_api_version = read_api_version
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def messages_url(self, phone_number_id: Optional[str] = None, api_version: Optional[str] = None) -> str:
        phone_number_id = phone_number_id or self.phone_number_id
        if not phone_number_id:
            raise TransportFailure("WhatsApp business phone number id is not configured")
        return f"{self.base_url}/{api_version or self.api_version}/{phone_number_id}/messages"

    async def _post(self, url: str, payload: dict) -> dict:
        if not self.access_token:
            logger.error("WhatsApp access token is missing (GRAPH_API_TOKEN env var not set)")
            raise TransportFailure("WhatsApp access token is not configured")

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(
                    url,
                    headers={
                        "Authorization": f"Bearer {self.access_token}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except httpx.HTTPError as exc:
            logger.error(f"WhatsApp request error: {exc}")
            raise TransportFailure(f"WhatsApp request failed: {exc}") from exc

        if response.status_code >= 400:
            logger.error(
                "WhatsApp API error",
                extra={"context": {"status": response.status_code, "body": response.text[:500]}},
            )
            raise TransportFailure(
                f"WhatsApp API error: {response.status_code}",
                context={"status": response.status_code, "body": response.text[:500]},
            )

        try:
            return response.json()
        except ValueError:
            return {}

    async def send_text(self, to: Optional[str], body: str, *, phone_number_id: Optional[str] = None) -> dict:
        """Send a freeform text message."""
        result = await self._post(self.messages_url(phone_number_id), build_text_payload(to, body))
        logger.info("WhatsApp text sent", extra={"context": {"to": to}})
        return result

    async def send_template(
        self,
        to: Optional[str],
        template_name: str,
        language_code: str,
        parameters: Sequence[Optional[str]],
        *,
        phone_number_id: Optional[str] = None,
    ) -> dict:
        """Send a pre-approved template message."""
        payload = build_template_payload(to, template_name, language_code, parameters)
        result = await self._post(self.messages_url(phone_number_id), payload)
        logger.info("WhatsApp template sent", extra={"context": {"to": to, "template": template_name}})
        return result

    async def mark_as_read(self, message_id: str, *, phone_number_id: Optional[str] = None) -> dict:
        """Mark an inbound message as read."""
        url = self.messages_url(phone_number_id, api_version=self.read_api_version)
        return await self._post(url, build_read_receipt_payload(message_id))


def build_whatsapp_service(settings: Settings) -> WhatsAppService:
    return WhatsAppService(
        access_token=settings.graph_api_token,
        phone_number_id=settings.phone_id,
        base_url=settings.graph_api_base_url,
        api_version=settings.graph_api_version,
        read_api_version=settings.graph_api_read_version,
    )
