from fastapi import FastAPI

from wa_relay.config import settings
from wa_relay.logging_config import setup_logging
from wa_relay.routers import notifications, webhook

setup_logging(settings.log_level)

app = FastAPI(
    title="WhatsApp Relay",
    description="WhatsApp webhook relay to a Dialogflow CX agent",
    version="0.1.0",
)

app.include_router(webhook.router)
app.include_router(notifications.router)


@app.get("/health")
async def health():
    return {"status": "ok"}
