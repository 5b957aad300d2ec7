from wa_relay.services.agent.base import AgentResponse, ConversationAgent
from wa_relay.services.agent.dialogflow_cx import DialogflowCXAgent

__all__ = ["AgentResponse", "ConversationAgent", "DialogflowCXAgent"]
