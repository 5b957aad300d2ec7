from typing import Optional

import httpx

from wa_relay.config import Settings
from wa_relay.logging_config import get_logger

logger = get_logger("telegram_service")


class TelegramService:
    """Service for sending operator notifications to Telegram."""

    BASE_URL = "https://api.telegram.org/bot{token}"

    def __init__(self, bot_token: Optional[str], transport: Optional[httpx.AsyncBaseTransport] = None):
        self.bot_token = bot_token
        self.base_url = self.BASE_URL.format(token=bot_token)
        self._transport = transport

    async def _make_request(self, method: str, data: Optional[dict] = None) -> dict:
        """Make request to Telegram API. Errors are reported in the result, not raised."""
        if not self.bot_token:
            logger.warning(f"Telegram not configured, skipping {method}")
            return {"ok": False, "error": "bot_token_missing"}

        url = f"{self.base_url}/{method}"
        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
                response = await client.post(url, json=data or {})
                return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Telegram API error: {e}")
            return {"ok": False, "error": str(e)}

    async def send_message(self, chat_id: Optional[str], text: str, parse_mode: Optional[str] = None) -> dict:
        """Send message to Telegram chat."""
        if not chat_id:
            return {"ok": False, "error": "chat_id_missing"}

        data = {"chat_id": chat_id, "text": text}
        if parse_mode:
            data["parse_mode"] = parse_mode

        result = await self._make_request("sendMessage", data)
        if not result.get("ok"):
            logger.error(
                "Telegram error",
                extra={"context": {"chat_id": chat_id, "error": result.get("error") or result.get("description")}},
            )
        return result


def format_transcript(user_id: str, user_text: str, reply_text: str) -> str:
    """Operator transcript of one exchange."""
    return f"{user_id} \n Пользователь: {user_text} \n\n Ответ: {reply_text}"


def build_telegram_service(settings: Settings) -> TelegramService:
    return TelegramService(settings.bot_token)
