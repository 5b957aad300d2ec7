from typing import Optional

import anyio
import google.auth
import httpx
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account

from wa_relay.config import Settings
from wa_relay.logging_config import get_logger
from wa_relay.services.agent.base import AgentResponse, ConversationAgent
from wa_relay.services.errors import BackendFailure

logger = get_logger("agent.dialogflow_cx")

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


def extract_response_text(query_result: dict) -> str:
    """Join the text lines of every text response message."""
    lines: list[str] = []
    for message in query_result.get("responseMessages") or []:
        text = message.get("text") if isinstance(message, dict) else None
        if not text:
            continue
        lines.extend(str(line) for line in text.get("text") or [])
    return "\n".join(lines)


class DialogflowCXAgent(ConversationAgent):
    """Dialogflow CX agent reached through the v3 REST API."""

    def __init__(
        self,
        project_id: str,
        location: str,
        agent_id: str,
        credentials_path: Optional[str] = None,
        language_code: str = "en",
        credentials=None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout_seconds: float = 30.0,
    ):
        self.project_id = project_id
        self.location = location or "global"
        self.agent_id = agent_id
        self.credentials_path = credentials_path
        self.language_code = language_code
        self.timeout_seconds = timeout_seconds
        self._credentials = credentials
        self._transport = transport

    @property
    def api_host(self) -> str:
        if self.location == "global":
            return "dialogflow.googleapis.com"
        return f"{self.location}-dialogflow.googleapis.com"

    def session_path(self, session_id: str) -> str:
        return f"projects/{self.project_id}/locations/{self.location}/agents/{self.agent_id}/sessions/{session_id}"

    def _load_credentials(self):
        if self.credentials_path:
            return service_account.Credentials.from_service_account_file(
                self.credentials_path, scopes=[CLOUD_PLATFORM_SCOPE]
            )
        credentials, _ = google.auth.default(scopes=[CLOUD_PLATFORM_SCOPE])
        return credentials

    def _access_token(self) -> str:
        if self._credentials is None:
            self._credentials = self._load_credentials()
        if not self._credentials.valid:
            self._credentials.refresh(GoogleAuthRequest())
        return self._credentials.token

    async def detect_intent(self, text: str, session_id: str) -> AgentResponse:
        """Send text to the agent and return its joined text reply."""
        if not self.project_id or not self.agent_id:
            raise BackendFailure("Dialogflow agent is not configured (PROJECT_ID/AGENT_ID env vars not set)")

        try:
            token = await anyio.to_thread.run_sync(self._access_token)
        except (GoogleAuthError, OSError, ValueError) as exc:
            logger.error(f"Dialogflow authentication failed: {exc}")
            raise BackendFailure(f"Dialogflow authentication failed: {exc}") from exc

        url = f"https://{self.api_host}/v3/{self.session_path(session_id)}:detectIntent"
        payload = {
            "queryInput": {
                "text": {"text": text},
                "languageCode": self.language_code,
            }
        }
        logger.debug(f"Dialogflow request: session={session_id}, text_length={len(text)}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(
                    url,
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except httpx.HTTPError as exc:
            logger.error(f"Dialogflow request error: {exc}")
            raise BackendFailure(f"Dialogflow request failed: {exc}") from exc

        if response.status_code != 200:
            logger.error(f"Dialogflow error: {response.status_code} - {response.text}")
            raise BackendFailure(f"Dialogflow API error: {response.status_code} - {response.text}")

        try:
            data = response.json()
        except ValueError as exc:
            raise BackendFailure("Dialogflow returned a non-JSON body") from exc

        query_result = data.get("queryResult") if isinstance(data, dict) else None
        if not query_result:
            raise BackendFailure("Response is undefined or invalid")

        intent = (query_result.get("match") or {}).get("intent") or {}
        content = extract_response_text(query_result)
        logger.debug(f"Dialogflow content: {content[:100] if content else 'EMPTY'}")

        return AgentResponse(content=content, session_id=session_id, intent=intent.get("displayName"))


def build_dialogflow_agent(settings: Settings) -> DialogflowCXAgent:
    return DialogflowCXAgent(
        project_id=settings.project_id or "",
        location=settings.location,
        agent_id=settings.agent_id or "",
        credentials_path=settings.agent_path,
        language_code=settings.dialogflow_language_code,
    )
