"""LLM Provider and Model Enums for easy model selection and hotswapping.

This module provides enums for all supported LLM providers and their models,
so table players can be backed by any of them without touching the table code.
"""

from enum import StrEnum


class LLMProvider(StrEnum):
    """Supported LLM providers."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"


class OpenAIModel(StrEnum):
    """OpenAI models available via API."""

    GPT_4O = "gpt-4o"
    GPT_4O_MINI = "gpt-4o-mini"


class AnthropicModel(StrEnum):
    """Anthropic Claude models available via API."""

    CLAUDE_SONNET_4_5 = "claude-sonnet-4-5"
    CLAUDE_HAIKU_4_5 = "claude-haiku-4-5"


# =============================================================================
# Helper Functions
# =============================================================================


def get_model_string(model: OpenAIModel | AnthropicModel) -> str:
    """Get the PydanticAI model string for any supported model."""
    if isinstance(model, OpenAIModel):
        return f"openai:{model.value}"
    elif isinstance(model, AnthropicModel):
        return f"anthropic:{model.value}"
    return model.value


def get_provider_for_model(model: OpenAIModel | AnthropicModel) -> LLMProvider:
    """Determine the provider for a given model."""
    if isinstance(model, OpenAIModel):
        return LLMProvider.OPENAI
    elif isinstance(model, AnthropicModel):
        return LLMProvider.ANTHROPIC
    else:
        raise ValueError(f"Unknown model type: {type(model)}")
