from wa_relay.schemas.notification import FulfillmentResponse
from wa_relay.schemas.whatsapp import WhatsAppMessage, WhatsAppWebhookPayload

__all__ = ["FulfillmentResponse", "WhatsAppMessage", "WhatsAppWebhookPayload"]
