import itertools
from typing import Optional
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from wa_relay.config import Settings, get_settings
from wa_relay.dependencies import (
    get_conversation_agent,
    get_session_store,
    get_telegram_service,
    get_whatsapp_service,
)
from wa_relay.main import app
from wa_relay.services.agent.base import AgentResponse, ConversationAgent
from wa_relay.services.blob_storage import BlobStorage
from wa_relay.services.errors import StorageUnavailable
from wa_relay.services.session_store import SessionStore
from wa_relay.services.telegram_service import TelegramService
from wa_relay.services.whatsapp_service import WhatsAppService

APP_SECRET = "test-app-secret"
VERIFY_TOKEN = "test-verify-token"


class MemoryBlobStorage(BlobStorage):
    """In-memory object store that records every put."""

    def __init__(self, objects: Optional[dict] = None):
        self.objects = dict(objects or {})
        self.puts: list[tuple[str, bytes]] = []

    async def get(self, key: str) -> Optional[bytes]:
        return self.objects.get(key)

    async def put(self, key: str, data: bytes) -> None:
        self.puts.append((key, data))
        self.objects[key] = data


class UnavailableBlobStorage(BlobStorage):
    async def get(self, key: str) -> Optional[bytes]:
        raise StorageUnavailable("bucket unreachable")

    async def put(self, key: str, data: bytes) -> None:
        raise StorageUnavailable("bucket unreachable")


class FakeAgent(ConversationAgent):
    def __init__(self, reply: str = "Hi there"):
        self.reply = reply
        self.calls: list[tuple[str, str]] = []

    async def detect_intent(self, text: str, session_id: str) -> AgentResponse:
        self.calls.append((text, session_id))
        return AgentResponse(content=self.reply, session_id=session_id, intent="greeting")


def make_clock(start: int = 1_700_000_000_000):
    counter = itertools.count(start)
    return lambda: next(counter)


@pytest.fixture
def clock():
    return make_clock()


@pytest.fixture
def memory_storage():
    return MemoryBlobStorage()


@pytest.fixture
def store(tmp_path, memory_storage, clock):
    return SessionStore(memory_storage, tmp_path / "sessions.json", clock=clock)


@pytest.fixture
def fake_agent():
    return FakeAgent()


@pytest.fixture
def whatsapp():
    service = Mock(spec=WhatsAppService)
    service.send_text = AsyncMock(return_value={"messages": [{"id": "wamid.reply"}]})
    service.send_template = AsyncMock(return_value={"messages": [{"id": "wamid.template"}]})
    service.mark_as_read = AsyncMock(return_value={"success": True})
    return service


@pytest.fixture
def telegram():
    service = Mock(spec=TelegramService)
    service.send_message = AsyncMock(return_value={"ok": True})
    return service


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        graph_api_token="graph-token",
        phone_id="business-phone-id",
        webhook_verify_token=VERIFY_TOKEN,
        app_secret=APP_SECRET,
        chat_id="chat-main",
        test_id="chat-test",
        session_storage_backend="local",
        local_storage_dir=str(tmp_path / "bucket"),
        sessions_cache_dir=str(tmp_path / "cache"),
    )


@pytest.fixture
def client(test_settings, store, fake_agent, whatsapp, telegram):
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_session_store] = lambda: store
    app.dependency_overrides[get_conversation_agent] = lambda: fake_agent
    app.dependency_overrides[get_whatsapp_service] = lambda: whatsapp
    app.dependency_overrides[get_telegram_service] = lambda: telegram
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
