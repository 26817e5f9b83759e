"""Contract between the table and whatever produces a player's replies.

A gateway answers a prompt with an :class:`AgentReply`. Streaming gateways
additionally yield :class:`StreamChunk` fragments first and then exactly one
terminal :class:`AgentReply`.
"""

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


class AgentReply(BaseModel):
    """Structured reply from a table player."""

    decision: str
    rationale: str | None = None
    raw: str = ""


class StreamChunk(BaseModel):
    """Incremental text fragment from a streaming gateway."""

    text: str


StreamMessage = StreamChunk | AgentReply


class GatewayError(Exception):
    """The gateway could not produce a reply (transport, auth, rate limit)."""

    def __init__(self, agent_id: str, message: str):
        super().__init__(f"{agent_id}: {message}")
        self.agent_id = agent_id


@runtime_checkable
class AgentGateway(Protocol):
    """Anything that can answer a prompt."""

    async def ask(self, prompt: str) -> AgentReply: ...


@runtime_checkable
class StreamingAgentGateway(AgentGateway, Protocol):
    """A gateway that can also stream its reasoning as it is produced."""

    def ask_stream(self, prompt: str) -> AsyncIterator[StreamMessage]: ...
