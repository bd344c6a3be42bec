"""Model layer: providers, response normalization, prompt and decision client."""

from phone_pilot.model.client import DecisionClient
from phone_pilot.model.prompt import PromptBuilder
from phone_pilot.model.providers import (
    AnthropicProvider,
    ModelProvider,
    ModelRequest,
    OpenAICompatibleProvider,
    create_provider,
)
from phone_pilot.model.response import ProviderReply, normalize_reply

__all__ = [
    "DecisionClient",
    "PromptBuilder",
    "AnthropicProvider",
    "ModelProvider",
    "ModelRequest",
    "OpenAICompatibleProvider",
    "create_provider",
    "ProviderReply",
    "normalize_reply",
]
