from typing import Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # WhatsApp Cloud (Graph) API
    graph_api_token: Optional[str] = None
    graph_api_base_url: str = "https://graph.facebook.com"
    graph_api_version: str = "v22.0"
    graph_api_read_version: str = "v18.0"
    phone_id: Optional[str] = None
    notify_recipient: Optional[str] = None
    notification_language_code: str = "ru"

    # Inbound webhook
    webhook_verify_token: Optional[str] = None
    app_secret: Optional[str] = None

    # Dialogflow CX
    project_id: Optional[str] = None
    location: str = "global"
    agent_id: Optional[str] = None
    agent_path: Optional[str] = None
    dialogflow_language_code: str = "en"

    # Session snapshot storage
    session_storage_backend: Literal["gcs", "local"] = "gcs"
    bucket_name: Optional[str] = None
    local_storage_dir: str = "./blob-storage"
    sessions_file_name: str = "sessions.json"
    sessions_cache_dir: str = "."

    # Telegram operator notifications
    bot_token: Optional[str] = None
    chat_id: Optional[str] = None
    test_id: Optional[str] = None

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()


def get_settings() -> Settings:
    return settings
