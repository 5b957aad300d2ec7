"""Templated business notifications keyed by session id.

Every event kind (lead, accident, tech question, complaint) is the same flow:
reverse-resolve the session to the user's phone, fill a WhatsApp template with
the event fields, send it. Kinds differ only by their NotificationTemplate.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from wa_relay.logging_config import get_logger
from wa_relay.services.errors import RelayError
from wa_relay.services.session_store import SessionStore
from wa_relay.services.whatsapp_service import WhatsAppService

logger = get_logger("notification_service")

# Placeholder in a parameter list for the phone number resolved from the session.
IDENTITY = "@identity"

SUCCESS_SOON = "Your request has been successfully created, please wait, we will contact you soon."
SUCCESS_SHORTLY = "Your request has been successfully created, please wait, we will contact you shortly."
FAILURE_TEXT = "Failed to create the request, please contact support."


@dataclass(frozen=True)
class NotificationTemplate:
    kind: str
    template_name: str
    parameters: tuple[str, ...]
    success_text: str = SUCCESS_SHORTLY
    failure_text: str = FAILURE_TEXT
    language_code: Optional[str] = None

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(name for name in self.parameters if name != IDENTITY)

    def render_parameters(self, body: Mapping[str, Any], user_id: Optional[str]) -> list[Optional[str]]:
        values: list[Optional[str]] = []
        for name in self.parameters:
            value = user_id if name == IDENTITY else body.get(name)
            values.append(None if value is None else str(value))
        return values


NOTIFICATION_TEMPLATES: dict[str, NotificationTemplate] = {
    template.kind: template
    for template in (
        NotificationTemplate(
            kind="lead",
            template_name="new_lead_notification",
            parameters=("name", "company", IDENTITY, "surface", "period", "location"),
            success_text=SUCCESS_SOON,
        ),
        NotificationTemplate(
            kind="accident",
            template_name="new_accident_notification",
            parameters=("name", "organization", "problem", IDENTITY),
            failure_text="Failed to create request, please contact support.",
        ),
        NotificationTemplate(
            kind="tech",
            template_name="new_manager_notification",
            parameters=(IDENTITY, "question"),
        ),
        NotificationTemplate(
            kind="complaint",
            template_name="new_manager_notification",
            parameters=(IDENTITY, "question"),
            failure_text="Failed to create request, please contact support.",
        ),
    )
}

# Function names of the earlier per-event deployments.
LEGACY_ROUTES = {
    "newLead": "lead",
    "newAccident": "accident",
    "newTech": "tech",
    "newCom": "complaint",
}


def get_template(kind: str) -> Optional[NotificationTemplate]:
    return NOTIFICATION_TEMPLATES.get(LEGACY_ROUTES.get(kind, kind))


class NotificationService:
    def __init__(
        self,
        store: SessionStore,
        whatsapp: WhatsAppService,
        language_code: str = "ru",
        recipient_override: Optional[str] = None,
    ):
        self.store = store
        self.whatsapp = whatsapp
        self.language_code = language_code
        self.recipient_override = recipient_override

    async def notify(
        self,
        template: NotificationTemplate,
        session_id: Optional[str],
        body: Mapping[str, Any],
    ) -> str:
        """Send the event notification and return the caller-facing fulfillment text.

        An unknown session id is not rejected: the message goes out with an
        absent phone number and the transport decides what to do with it.
        Store failures produce the failure text; delivery failures are logged
        only.
        """
        try:
            user_id = await self.store.reverse_resolve(session_id)
        except RelayError as exc:
            logger.error(
                "Session lookup failed",
                extra={"context": {"kind": template.kind, "error": exc.message, "code": exc.code}},
            )
            return template.failure_text

        if user_id is None:
            logger.warning("Unknown session id", extra={"context": {"kind": template.kind, "session_id": session_id}})

        recipient = self.recipient_override or user_id
        parameters = template.render_parameters(body, user_id)
        try:
            await self.whatsapp.send_template(
                recipient,
                template.template_name,
                template.language_code or self.language_code,
                parameters,
            )
        except RelayError as exc:
            logger.error(
                "Error sending message",
                extra={"context": {"kind": template.kind, "error": exc.message}},
            )
        else:
            logger.info("Message sent successfully", extra={"context": {"kind": template.kind}})

        return template.success_text
