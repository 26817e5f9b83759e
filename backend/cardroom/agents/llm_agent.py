"""PydanticAI-backed table player."""

import logging
import os
from collections.abc import AsyncIterator, Callable

from pydantic_ai import Agent

from cardroom.agents.gateway import AgentReply, GatewayError, StreamChunk, StreamMessage
from cardroom.config import Settings, get_settings
from cardroom.table import parsing

logger = logging.getLogger(__name__)

PLAYER_SYSTEM_PROMPT = (
    "You are a blackjack player. Answer in the exact reply format requested."
)

# Deterministic, short answers
PLAYER_MODEL_SETTINGS = {"temperature": 0.0, "max_tokens": 500}


def _setup_api_keys(settings: Settings) -> None:
    """Expose configured API keys to the provider SDKs."""
    if settings.openai_api_key:
        os.environ["OPENAI_API_KEY"] = settings.openai_api_key
    if settings.anthropic_api_key:
        os.environ["ANTHROPIC_API_KEY"] = settings.anthropic_api_key


def create_player_agent(model_string: str) -> Agent[None, str]:
    """Create a plain-text PydanticAI agent for the table."""
    return Agent(
        model=model_string,
        output_type=str,
        system_prompt=PLAYER_SYSTEM_PROMPT,
    )


class LLMAgentGateway:
    """Gateway that forwards prompts to an LLM through PydanticAI.

    The underlying agent is created on first use so that listing the catalog
    never touches provider credentials.
    """

    def __init__(
        self,
        agent_id: str,
        model_string: str,
        settings: Settings | None = None,
        create_fn: Callable[[str], Agent[None, str]] = create_player_agent,
    ):
        self.agent_id = agent_id
        self.model_string = model_string
        self._settings = settings
        self._create_fn = create_fn
        self._agent: Agent[None, str] | None = None

    def get_agent(self) -> Agent[None, str]:
        """Get or create the agent instance."""
        if self._agent is None:
            _setup_api_keys(self._settings or get_settings())
            self._agent = self._create_fn(self.model_string)
        return self._agent

    async def ask(self, prompt: str) -> AgentReply:
        agent = self.get_agent()
        try:
            result = await agent.run(prompt, model_settings=PLAYER_MODEL_SETTINGS)
        except Exception as e:
            logger.error("Agent %s request failed: %s", self.agent_id, e)
            raise GatewayError(self.agent_id, str(e)) from e
        return parsing.parse_reply(result.output)

    async def ask_stream(self, prompt: str) -> AsyncIterator[StreamMessage]:
        agent = self.get_agent()
        parts: list[str] = []
        try:
            async with agent.run_stream(
                prompt, model_settings=PLAYER_MODEL_SETTINGS
            ) as result:
                async for delta in result.stream_text(delta=True):
                    if not delta:
                        continue
                    parts.append(delta)
                    yield StreamChunk(text=delta)
        except Exception as e:
            logger.error("Agent %s stream failed: %s", self.agent_id, e)
            raise GatewayError(self.agent_id, str(e)) from e
        yield parsing.parse_reply("".join(parts))
