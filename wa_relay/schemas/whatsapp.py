from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class WhatsAppText(BaseModel):
    body: Optional[str] = None


class WhatsAppMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    from_user: Optional[str] = Field(default=None, alias="from")  # "from" is reserved in Python
    id: Optional[str] = None
    type: Optional[str] = None
    timestamp: Optional[str] = None
    text: Optional[WhatsAppText] = None

    @property
    def is_text(self) -> bool:
        return self.type == "text"

    @property
    def body(self) -> Optional[str]:
        return self.text.body if self.text else None


class WhatsAppMetadata(BaseModel):
    display_phone_number: Optional[str] = None
    phone_number_id: Optional[str] = None


class WhatsAppValue(BaseModel):
    model_config = ConfigDict(extra="allow")

    messaging_product: Optional[str] = None
    metadata: Optional[WhatsAppMetadata] = None
    messages: Optional[list[WhatsAppMessage]] = None


class WhatsAppChange(BaseModel):
    field: Optional[str] = None
    value: Optional[WhatsAppValue] = None


class WhatsAppEntry(BaseModel):
    id: Optional[str] = None
    changes: list[WhatsAppChange] = []


class WhatsAppWebhookPayload(BaseModel):
    """Envelope posted by the WhatsApp Cloud API; only the first message is relevant."""

    model_config = ConfigDict(extra="allow")

    object: Optional[str] = None
    entry: list[WhatsAppEntry] = []

    def first_value(self) -> Optional[WhatsAppValue]:
        if not self.entry or not self.entry[0].changes:
            return None
        return self.entry[0].changes[0].value

    def first_message(self) -> Optional[WhatsAppMessage]:
        value = self.first_value()
        if value is None or not value.messages:
            return None
        return value.messages[0]

    def phone_number_id(self) -> Optional[str]:
        value = self.first_value()
        if value is None or value.metadata is None:
            return None
        return value.metadata.phone_number_id
