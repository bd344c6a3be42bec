"""Model providers for OpenAI-compatible and Anthropic message APIs."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import openai
import requests
from openai import OpenAI

from phone_pilot.config.settings import PROVIDER_ANTHROPIC, ProviderSettings
from phone_pilot.errors import DecisionError
from phone_pilot.model.response import ProviderReply, normalize_reply
from phone_pilot.tools.catalog import ToolCatalog

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


@dataclass
class ModelRequest:
    """One provider-agnostic request."""

    system_prompt: str
    user_prompt: str
    tools: Optional[ToolCatalog] = None
    image_base64: Optional[str] = None


class MessageBuilder:
    """Helper class for building conversation messages."""

    @staticmethod
    def create_system_message(content: str) -> Dict[str, Any]:
        """Create a system message."""
        return {"role": "system", "content": content}

    @staticmethod
    def create_user_message(text: str, image_base64: Optional[str] = None) -> Dict[str, Any]:
        """
        Create an OpenAI-style user message with optional image.

        Args:
            text: Text content.
            image_base64: Optional base64-encoded PNG.

        Returns:
            Message dictionary.
        """
        content: List[Dict[str, Any]] = []

        if image_base64:
            content.append(
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:image/png;base64,{image_base64}"},
                }
            )

        content.append({"type": "text", "text": text})

        return {"role": "user", "content": content}

    @staticmethod
    def create_anthropic_user_message(text: str, image_base64: Optional[str] = None) -> Dict[str, Any]:
        """Create a user message in Anthropic content-block form."""
        content: List[Dict[str, Any]] = []

        if image_base64:
            content.append(
                {
                    "type": "image",
                    "source": {"type": "base64", "media_type": "image/png", "data": image_base64},
                }
            )

        content.append({"type": "text", "text": text})

        return {"role": "user", "content": content}


class ModelProvider:
    """Base class: one configured endpoint, one request at a time."""

    def __init__(self, settings: ProviderSettings):
        self.settings = settings

    @property
    def name(self) -> str:
        return f"{self.settings.provider}:{self.settings.model}"

    def complete(self, request: ModelRequest) -> ProviderReply:
        """
        Send a request and return the normalized reply.

        Raises:
            DecisionError: On network failure, non-2xx status or a provider error body.
        """
        raise NotImplementedError


class OpenAICompatibleProvider(ModelProvider):
    """
    Provider for OpenAI, SiliconFlow and any OpenAI-compatible endpoint.

    Args:
        settings: Provider settings.
        client: Optional pre-built OpenAI client.
    """

    def __init__(self, settings: ProviderSettings, client: Optional[OpenAI] = None):
        super().__init__(settings)
        self.client = client or OpenAI(
            base_url=settings.base_url,
            api_key=settings.api_key or "EMPTY",
            timeout=settings.timeout,
        )

    def complete(self, request: ModelRequest) -> ProviderReply:
        messages = []
        if request.system_prompt:
            messages.append(MessageBuilder.create_system_message(request.system_prompt))
        messages.append(MessageBuilder.create_user_message(request.user_prompt, request.image_base64))
        kwargs: Dict[str, Any] = {
            "model": self.settings.model,
            "messages": messages,
            "max_tokens": self.settings.max_tokens,
            "temperature": self.settings.temperature,
        }
        if request.tools is not None and len(request.tools):
            kwargs["tools"] = request.tools.to_openai_tools()
            kwargs["tool_choice"] = "auto"

        try:
            response = self.client.chat.completions.create(**kwargs)
        except openai.APIStatusError as e:
            raise DecisionError(f"API error: {e.status_code} - {e.message}") from e
        except openai.APIError as e:
            raise DecisionError(f"API 请求失败: {e}") from e

        reply = normalize_reply(response.model_dump())
        if reply.error:
            raise DecisionError(f"API error: {reply.error}")
        return reply


class AnthropicProvider(ModelProvider):
    """
    Provider for the Anthropic messages API.

    The response is a content-block array; tool calls arrive as ``tool_use`` blocks
    whose ``input`` is already a JSON object.
    """

    def __init__(self, settings: ProviderSettings, session: Optional[requests.Session] = None):
        super().__init__(settings)
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.settings.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def complete(self, request: ModelRequest) -> ProviderReply:
        body: Dict[str, Any] = {
            "model": self.settings.model,
            "max_tokens": self.settings.max_tokens,
            "temperature": self.settings.temperature,
            "messages": [
                MessageBuilder.create_anthropic_user_message(request.user_prompt, request.image_base64)
            ],
        }
        if request.system_prompt:
            body["system"] = request.system_prompt
        if request.tools is not None and len(request.tools):
            body["tools"] = request.tools.to_anthropic_tools()

        try:
            response = self.session.post(
                f"{self.settings.base_url}/messages",
                headers=self._headers(),
                json=body,
                timeout=self.settings.timeout,
            )
        except requests.RequestException as e:
            raise DecisionError(f"API 请求失败: {e}") from e

        if not response.ok:
            raise DecisionError(f"API error: {response.status_code} - {response.text[:500]}")

        try:
            payload = response.json()
        except ValueError as e:
            raise DecisionError(f"响应不是合法 JSON: {e}") from e

        reply = normalize_reply(payload)
        if reply.error:
            raise DecisionError(f"API error: {reply.error}")
        return reply


def create_provider(settings: ProviderSettings) -> ModelProvider:
    """Pick the provider implementation for the configured service."""
    if settings.provider == PROVIDER_ANTHROPIC:
        return AnthropicProvider(settings)
    return OpenAICompatibleProvider(settings)
