from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class AgentResponse:
    content: str
    session_id: str
    intent: Optional[str] = None


class ConversationAgent(ABC):
    """Abstract base class for conversational backends."""

    @abstractmethod
    async def detect_intent(self, text: str, session_id: str) -> AgentResponse:
        """Send user text within a session and return the agent's reply."""
        pass
