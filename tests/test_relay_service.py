import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import FakeAgent
from wa_relay.schemas.whatsapp import WhatsAppMessage
from wa_relay.services.errors import BackendFailure, StorageUnavailable, TransportFailure
from wa_relay.services.relay_service import RelayService, sanitize_reply

USER = "77011234567"


def _message(text="Hello", message_id="wamid.in.1"):
    return WhatsAppMessage.model_validate(
        {"from": USER, "id": message_id, "type": "text", "text": {"body": text}}
    )


class TestSanitizeReply:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ('"Hello"', "Hello"),
            ("'Hello'", "Hello"),
            ('  "Hello"  ', "Hello"),
            ('\\"Hello\\"', "Hello"),
            ("Line\\n two", "Linen two"),
            ('""Hello""', '"Hello"'),
            ('"Hello', "Hello"),
            ("Hello'", "Hello"),
            ("'", ""),
            ("", ""),
            (None, ""),
            ("It's fine", "It's fine"),
        ],
    )
    def test_sanitize(self, raw, expected):
        assert sanitize_reply(raw) == expected


@pytest.fixture
def relay(store, fake_agent, whatsapp, telegram):
    return RelayService(store, fake_agent, whatsapp, telegram, notify_chat_ids=["chat-main", "chat-test"])


class TestHandleTextMessage:
    def test_happy_path(self, relay, store, fake_agent, whatsapp, telegram):
        fake_agent.reply = '"Hi there"'

        result = asyncio.run(relay.handle_text_message(_message(), "business-phone-id"))

        assert fake_agent.calls == [("Hello", result.session_id)]
        assert asyncio.run(store.reverse_resolve(result.session_id)) == USER
        whatsapp.send_text.assert_awaited_once_with(USER, "Hi there", phone_number_id="business-phone-id")
        whatsapp.mark_as_read.assert_awaited_once_with("wamid.in.1", phone_number_id="business-phone-id")
        assert telegram.send_message.await_count == 2
        chat_ids = [call.args[0] for call in telegram.send_message.await_args_list]
        assert chat_ids == ["chat-main", "chat-test"]
        transcript = telegram.send_message.await_args_list[0].args[1]
        assert transcript == f"{USER} \n Пользователь: Hello \n\n Ответ: Hi there"
        assert result.reply == "Hi there"
        assert result.read_receipt_sent is True
        assert result.notifications_sent == 2

    def test_reuses_existing_session(self, relay, store, fake_agent):
        session_id = asyncio.run(store.resolve_or_create(USER))

        asyncio.run(relay.handle_text_message(_message(), "business-phone-id"))

        assert fake_agent.calls == [("Hello", session_id)]

    def test_read_receipt_failure_is_best_effort(self, relay, whatsapp, telegram):
        whatsapp.mark_as_read = AsyncMock(side_effect=TransportFailure("read failed"))

        result = asyncio.run(relay.handle_text_message(_message(), "business-phone-id"))

        assert result.read_receipt_sent is False
        assert telegram.send_message.await_count == 2

    def test_telegram_failure_is_best_effort(self, relay, telegram):
        telegram.send_message = AsyncMock(side_effect=[{"ok": False, "error": "boom"}, RuntimeError("down")])

        result = asyncio.run(relay.handle_text_message(_message(), "business-phone-id"))

        assert result.notifications_sent == 0

    def test_reply_failure_propagates_and_skips_side_calls(self, relay, whatsapp, telegram):
        whatsapp.send_text = AsyncMock(side_effect=TransportFailure("send failed"))

        with pytest.raises(TransportFailure):
            asyncio.run(relay.handle_text_message(_message(), "business-phone-id"))

        whatsapp.mark_as_read.assert_not_awaited()
        telegram.send_message.assert_not_awaited()

    def test_backend_failure_stops_before_reply(self, store, whatsapp, telegram):
        agent = FakeAgent()
        agent.detect_intent = AsyncMock(side_effect=BackendFailure("agent down"))
        relay = RelayService(store, agent, whatsapp, telegram, notify_chat_ids=["chat-main"])

        with pytest.raises(BackendFailure):
            asyncio.run(relay.handle_text_message(_message(), "business-phone-id"))

        whatsapp.send_text.assert_not_awaited()

    def test_store_failure_stops_before_agent(self, fake_agent, whatsapp, telegram):
        store = AsyncMock()
        store.resolve_or_create.side_effect = StorageUnavailable("bucket down")
        relay = RelayService(store, fake_agent, whatsapp, telegram)

        with pytest.raises(StorageUnavailable):
            asyncio.run(relay.handle_text_message(_message(), "business-phone-id"))

        assert fake_agent.calls == []
        whatsapp.send_text.assert_not_awaited()

    def test_message_without_id_skips_read_receipt(self, relay, whatsapp):
        message = WhatsAppMessage.model_validate({"from": USER, "type": "text", "text": {"body": "Hello"}})

        result = asyncio.run(relay.handle_text_message(message, "business-phone-id"))

        assert result.read_receipt_sent is False
        whatsapp.mark_as_read.assert_not_awaited()
