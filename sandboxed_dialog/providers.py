"""
Model providers

The dialog only depends on ModelProvider. AnthropicProvider talks to Claude
through the Anthropic SDK, either with an API key or through Bedrock.
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Sequence

from .exceptions import ProviderError
from .messages import Message, Role

logger = logging.getLogger(__name__)


class ModelProvider(ABC):
    """Backend that turns a message list into a reply"""

    @abstractmethod
    async def query(self, messages: Sequence[Message]) -> Message:
        """Return the complete assistant reply"""

    @abstractmethod
    def stream(self, messages: Sequence[Message]) -> AsyncIterator[str]:
        """Yield the assistant reply as text fragments"""


@dataclass
class ProviderConfig:
    """Provider configuration"""
    model: str = "claude-sonnet-4-5"
    max_tokens: int = 4096
    temperature: float | None = None

    @classmethod
    def from_env(cls) -> "ProviderConfig":
        """Read SANDBOXED_DIALOG_MODEL / SANDBOXED_DIALOG_MAX_TOKENS overrides"""
        config = cls()
        model = os.environ.get("SANDBOXED_DIALOG_MODEL")
        if model:
            config.model = model
        max_tokens = os.environ.get("SANDBOXED_DIALOG_MAX_TOKENS")
        if max_tokens:
            config.max_tokens = int(max_tokens)
        return config


class AnthropicProvider(ModelProvider):
    """
    Claude via the Anthropic SDK

    With an api_key the public API is used, otherwise AnthropicBedrock picks
    up AWS credentials from the environment.

    Usage:
        provider = AnthropicProvider(api_key=os.environ.get("ANTHROPIC_API_KEY"))
        reply = await provider.query([Message("user", "Hello")])
    """

    def __init__(
        self,
        api_key: str | None = None,
        config: ProviderConfig | None = None,
        client=None
    ):
        self.api_key = api_key
        self.config = config or ProviderConfig()
        self._client = client

    @property
    def client(self):
        """Lazily build the async Anthropic client"""
        if self._client is None:
            try:
                import anthropic
            except ImportError:
                raise ImportError(
                    "Anthropic SDK not installed. Run: pip install anthropic"
                )
            if self.api_key:
                self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
            else:
                self._client = anthropic.AsyncAnthropicBedrock()
        return self._client

    def _build_request(self, messages: Sequence[Message]) -> dict:
        """Leading system messages go to the system parameter"""
        system_parts: list[str] = []
        conversation: list[dict] = []
        for message in messages:
            if message.role == Role.SYSTEM.value and not conversation:
                system_parts.append(message.content)
            elif message.role == Role.SYSTEM.value:
                conversation.append({"role": Role.USER.value, "content": message.content})
            else:
                conversation.append(message.to_dict())

        request = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "messages": conversation,
        }
        if system_parts:
            request["system"] = "\n\n".join(system_parts)
        if self.config.temperature is not None:
            request["temperature"] = self.config.temperature
        return request

    async def query(self, messages: Sequence[Message]) -> Message:
        request = self._build_request(messages)
        logger.info(f"Querying {self.config.model} with {len(request['messages'])} messages")
        try:
            response = await self.client.messages.create(**request)
        except Exception as e:
            raise ProviderError(f"Anthropic request failed: {e}", e) from e

        text = "".join(
            block.text for block in response.content if hasattr(block, "text")
        )
        return Message(role=Role.ASSISTANT.value, content=text)

    async def stream(self, messages: Sequence[Message]) -> AsyncIterator[str]:
        request = self._build_request(messages)
        logger.info(f"Streaming {self.config.model} with {len(request['messages'])} messages")
        try:
            async with self.client.messages.stream(**request) as stream:
                async for text in stream.text_stream:
                    yield text
        except Exception as e:
            raise ProviderError(f"Anthropic stream failed: {e}", e) from e
