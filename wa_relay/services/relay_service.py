"""Inbound text relay: session -> agent -> reply -> receipts and operator copies."""

import asyncio
from dataclasses import dataclass
from typing import Optional, Sequence

from wa_relay.logging_config import LoggerAdapter, get_logger
from wa_relay.schemas.whatsapp import WhatsAppMessage
from wa_relay.services.agent.base import ConversationAgent
from wa_relay.services.session_store import SessionStore
from wa_relay.services.telegram_service import TelegramService, format_transcript
from wa_relay.services.whatsapp_service import WhatsAppService

logger = get_logger("relay_service")

QUOTE_CHARS = ("\"", "'")


def sanitize_reply(text: Optional[str]) -> str:
    """Undo the agent's over-escaping: drop backslashes, then one pair of outer quotes."""
    cleaned = (text or "").replace("\\", "").strip()
    if cleaned[:1] in QUOTE_CHARS:
        cleaned = cleaned[1:]
    if cleaned[-1:] in QUOTE_CHARS:
        cleaned = cleaned[:-1]
    return cleaned


@dataclass
class RelayResult:
    session_id: str
    reply: str
    read_receipt_sent: bool = False
    notifications_sent: int = 0


class RelayService:
    def __init__(
        self,
        store: SessionStore,
        agent: ConversationAgent,
        whatsapp: WhatsAppService,
        telegram: TelegramService,
        notify_chat_ids: Sequence[str] = (),
    ):
        self.store = store
        self.agent = agent
        self.whatsapp = whatsapp
        self.telegram = telegram
        self.notify_chat_ids = list(notify_chat_ids)

    async def handle_text_message(self, message: WhatsAppMessage, phone_number_id: Optional[str]) -> RelayResult:
        """Relay one authenticated text message.

        Session lookup, agent call and the reply to the user must succeed and
        run in that order; their errors propagate. The read receipt and the
        operator notifications run afterwards, concurrently, and only log
        their failures.
        """
        user_id = message.from_user
        user_text = message.body or ""
        log = LoggerAdapter(logger, {"wa_message_id": message.id})

        session_id = await self.store.resolve_or_create(user_id)
        log.info("Session resolved", context={"session_id": session_id})

        response = await self.agent.detect_intent(user_text, session_id)
        reply = sanitize_reply(response.content)

        await self.whatsapp.send_text(user_id, reply, phone_number_id=phone_number_id)
        log.info("Reply delivered", context={"session_id": session_id, "intent": response.intent})

        read_receipt_sent, notifications_sent = await asyncio.gather(
            self._mark_read(message, phone_number_id, log),
            self._notify_operators(format_transcript(user_id, user_text, reply), log),
        )
        return RelayResult(
            session_id=session_id,
            reply=reply,
            read_receipt_sent=read_receipt_sent,
            notifications_sent=notifications_sent,
        )

    async def _mark_read(self, message: WhatsAppMessage, phone_number_id: Optional[str], log: LoggerAdapter) -> bool:
        if not message.id:
            return False
        try:
            await self.whatsapp.mark_as_read(message.id, phone_number_id=phone_number_id)
        except Exception as exc:
            log.warning("Read receipt failed", context={"error": str(exc)}, exc_info=True)
            return False
        return True

    async def _notify_operators(self, text: str, log: LoggerAdapter) -> int:
        delivered = 0
        for chat_id in self.notify_chat_ids:
            try:
                result = await self.telegram.send_message(chat_id, text)
            except Exception as exc:
                log.warning("Operator notification failed", context={"chat_id": chat_id, "error": str(exc)})
                continue
            if result.get("ok"):
                delivered += 1
        return delivered
