"""Catalog of table players and lookup of their gateways."""

import logging

from pydantic import BaseModel

from cardroom.agents.gateway import AgentGateway
from cardroom.agents.llm_agent import LLMAgentGateway
from cardroom.config import Settings
from cardroom.llm_providers import (
    AnthropicModel,
    LLMProvider,
    OpenAIModel,
    get_model_string,
    get_provider_for_model,
)
from cardroom.table.exceptions import UnknownAgentError

logger = logging.getLogger(__name__)


class AgentProfile(BaseModel):
    """Public description of a table player."""

    id: str
    name: str
    provider: LLMProvider
    model: str


def _profile(agent_id: str, name: str, model: OpenAIModel | AnthropicModel) -> AgentProfile:
    return AgentProfile(
        id=agent_id,
        name=name,
        provider=get_provider_for_model(model),
        model=get_model_string(model),
    )


DEFAULT_PROFILES: list[AgentProfile] = [
    _profile("openai-gpt-4o-mini", "GPT-4o mini", OpenAIModel.GPT_4O_MINI),
    _profile("openai-gpt-4o", "GPT-4o", OpenAIModel.GPT_4O),
    _profile("anthropic-claude-haiku-4-5", "Claude Haiku 4.5", AnthropicModel.CLAUDE_HAIKU_4_5),
]


class AgentRegistry:
    """Maps agent ids to gateways.

    Gateways for catalog profiles are built lazily; explicitly registered
    gateways (tests, local bots) take precedence.
    """

    def __init__(
        self,
        profiles: list[AgentProfile] | None = None,
        settings: Settings | None = None,
    ):
        self._profiles: dict[str, AgentProfile] = {
            p.id: p for p in (DEFAULT_PROFILES if profiles is None else profiles)
        }
        self._gateways: dict[str, AgentGateway] = {}
        self._settings = settings

    def register(self, profile: AgentProfile, gateway: AgentGateway | None = None) -> None:
        self._profiles[profile.id] = profile
        if gateway is not None:
            self._gateways[profile.id] = gateway
        else:
            self._gateways.pop(profile.id, None)

    def profiles(self) -> list[AgentProfile]:
        return list(self._profiles.values())

    def resolve(self, agent_id: str) -> AgentProfile:
        """Find a profile by id, case-insensitively, or by its model name.

        Raises:
            UnknownAgentError: nothing matches
        """
        profile = self._profiles.get(agent_id)
        if profile is not None:
            return profile

        wanted = (agent_id or "").strip().lower()
        for candidate in self._profiles.values():
            model_name = candidate.model.split(":", 1)[-1].lower()
            if wanted in (candidate.id.lower(), candidate.model.lower(), model_name):
                return candidate
        raise UnknownAgentError(agent_id)

    def has(self, agent_id: str) -> bool:
        try:
            self.resolve(agent_id)
        except UnknownAgentError:
            return False
        return True

    def require(self, agent_id: str) -> AgentGateway:
        """Return the gateway for agent_id or raise UnknownAgentError."""
        profile = self.resolve(agent_id)

        gateway = self._gateways.get(profile.id)
        if gateway is None:
            logger.debug("Creating gateway for %s (%s)", profile.id, profile.model)
            gateway = LLMAgentGateway(profile.id, profile.model, settings=self._settings)
            self._gateways[profile.id] = gateway
        return gateway
