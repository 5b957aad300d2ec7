"""FastAPI dependency providers wiring the services together per request."""

from fastapi import Depends

from wa_relay.config import Settings, get_settings
from wa_relay.services.agent import ConversationAgent
from wa_relay.services.agent.dialogflow_cx import build_dialogflow_agent
from wa_relay.services.blob_storage import BlobStorage, build_blob_storage
from wa_relay.services.notification_service import NotificationService
from wa_relay.services.relay_service import RelayService
from wa_relay.services.session_store import SessionStore, build_session_store
from wa_relay.services.telegram_service import TelegramService, build_telegram_service
from wa_relay.services.whatsapp_service import WhatsAppService, build_whatsapp_service


def get_blob_storage(settings: Settings = Depends(get_settings)) -> BlobStorage:
    return build_blob_storage(settings)


def get_session_store(
    settings: Settings = Depends(get_settings),
    storage: BlobStorage = Depends(get_blob_storage),
) -> SessionStore:
    return build_session_store(settings, storage)


def get_conversation_agent(settings: Settings = Depends(get_settings)) -> ConversationAgent:
    return build_dialogflow_agent(settings)


def get_whatsapp_service(settings: Settings = Depends(get_settings)) -> WhatsAppService:
    return build_whatsapp_service(settings)


def get_telegram_service(settings: Settings = Depends(get_settings)) -> TelegramService:
    return build_telegram_service(settings)


def get_relay_service(
    settings: Settings = Depends(get_settings),
    store: SessionStore = Depends(get_session_store),
    agent: ConversationAgent = Depends(get_conversation_agent),
    whatsapp: WhatsAppService = Depends(get_whatsapp_service),
    telegram: TelegramService = Depends(get_telegram_service),
) -> RelayService:
    notify_chat_ids = [chat_id for chat_id in (settings.chat_id, settings.test_id) if chat_id]
    return RelayService(store, agent, whatsapp, telegram, notify_chat_ids=notify_chat_ids)


def get_notification_service(
    settings: Settings = Depends(get_settings),
    store: SessionStore = Depends(get_session_store),
    whatsapp: WhatsAppService = Depends(get_whatsapp_service),
) -> NotificationService:
    return NotificationService(
        store,
        whatsapp,
        language_code=settings.notification_language_code,
        recipient_override=settings.notify_recipient,
    )
