import asyncio
import json

import httpx

from wa_relay.services.telegram_service import TelegramService, format_transcript


class TestTelegramService:
    def test_send_message(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"ok": True, "result": {"message_id": 1}})

        service = TelegramService("bot-token", transport=httpx.MockTransport(handler))
        result = asyncio.run(service.send_message("-100123", "hello"))

        assert result["ok"] is True
        assert str(requests[0].url) == "https://api.telegram.org/botbot-token/sendMessage"
        assert json.loads(requests[0].content) == {"chat_id": "-100123", "text": "hello"}

    def test_parse_mode_is_optional(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"ok": True})

        service = TelegramService("bot-token", transport=httpx.MockTransport(handler))
        asyncio.run(service.send_message("-100123", "<b>hi</b>", parse_mode="HTML"))

        assert json.loads(requests[0].content)["parse_mode"] == "HTML"

    def test_api_error_is_returned_not_raised(self):
        service = TelegramService(
            "bot-token",
            transport=httpx.MockTransport(lambda request: httpx.Response(400, json={"ok": False, "description": "chat not found"})),
        )
        assert asyncio.run(service.send_message("-1", "hello"))["ok"] is False

    def test_network_error_is_returned_not_raised(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        service = TelegramService("bot-token", transport=httpx.MockTransport(handler))
        result = asyncio.run(service.send_message("-1", "hello"))

        assert result["ok"] is False
        assert "down" in result["error"]

    def test_not_configured(self):
        assert asyncio.run(TelegramService(None).send_message("-1", "hello")) == {
            "ok": False,
            "error": "bot_token_missing",
        }

    def test_missing_chat_id(self):
        assert asyncio.run(TelegramService("bot-token").send_message(None, "hello"))["ok"] is False


def test_format_transcript():
    assert format_transcript("77011234567", "Привет", "Здравствуйте!") == (
        "77011234567 \n Пользователь: Привет \n\n Ответ: Здравствуйте!"
    )
