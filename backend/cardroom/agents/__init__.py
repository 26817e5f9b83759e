"""Table players: gateway contract, LLM-backed players and the agent catalog."""

from cardroom.agents.gateway import (
    AgentGateway,
    AgentReply,
    GatewayError,
    StreamChunk,
    StreamingAgentGateway,
    StreamMessage,
)
from cardroom.agents.registry import DEFAULT_PROFILES, AgentProfile, AgentRegistry

__all__ = [
    "AgentGateway",
    "AgentProfile",
    "AgentRegistry",
    "AgentReply",
    "DEFAULT_PROFILES",
    "GatewayError",
    "StreamChunk",
    "StreamMessage",
    "StreamingAgentGateway",
]
