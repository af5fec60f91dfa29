"""Text-completion client abstraction with OpenAI and Anthropic backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from support_relay.config import AnthropicConfig, OpenAIConfig
from support_relay.core.errors import UpstreamUnavailable
from support_relay.log import get_logger

logger = get_logger(__name__)


@dataclass
class AIResponse:
    """Unified response from any AI backend."""

    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    raw: Any = None  # Backend-specific raw response


class AIClient(ABC):
    """Abstract base class for AI backends.

    Implementations raise ``UpstreamUnavailable`` for any provider failure so
    callers only have one error type to recover from.
    """

    @abstractmethod
    async def chat(
        self,
        system: str,
        messages: list[dict[str, Any]],
        model: str,
        max_tokens: int = 150,
        temperature: float = 0.7,
    ) -> AIResponse:
        """Send a system prompt plus user/assistant messages and return the completion."""
        ...

    @property
    @abstractmethod
    def backend_name(self) -> str:
        ...

    async def health_check(self) -> bool:
        return True


class OpenAIClient(AIClient):
    """OpenAI chat-completions backend."""

    def __init__(self, config: OpenAIConfig, timeout: float = 20.0):
        from openai import AsyncOpenAI

        self._client = AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            max_retries=config.max_retries,
            timeout=timeout,
        )

    @property
    def backend_name(self) -> str:
        return "openai"

    async def chat(
        self,
        system: str,
        messages: list[dict[str, Any]],
        model: str,
        max_tokens: int = 150,
        temperature: float = 0.7,
    ) -> AIResponse:
        import openai

        logger.debug("api_request", backend="openai", model=model, message_count=len(messages))
        try:
            completion = await self._client.chat.completions.create(
                model=model,
                messages=[{"role": "system", "content": system}, *messages],
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except openai.OpenAIError as e:
            raise UpstreamUnavailable(f"openai: {e}") from e

        usage = completion.usage
        text = completion.choices[0].message.content if completion.choices else ""
        logger.debug(
            "api_response",
            backend="openai",
            model=model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )
        return AIResponse(
            text=text or "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            raw=completion,
        )

    async def health_check(self) -> bool:
        try:
            await self._client.models.list()
        except Exception as e:
            logger.warning("ai_health_check_failed", backend="openai", error=str(e))
            return False
        return True


class AnthropicClient(AIClient):
    """Anthropic API backend using the official SDK."""

    def __init__(self, config: AnthropicConfig, timeout: float = 20.0):
        import anthropic

        self._client = anthropic.AsyncAnthropic(
            api_key=config.api_key,
            base_url=config.base_url,
            max_retries=config.max_retries,
            timeout=timeout,
        )

    @property
    def backend_name(self) -> str:
        return "anthropic"

    async def chat(
        self,
        system: str,
        messages: list[dict[str, Any]],
        model: str,
        max_tokens: int = 150,
        temperature: float = 0.7,
    ) -> AIResponse:
        import anthropic

        logger.debug("api_request", backend="anthropic", model=model, message_count=len(messages))
        try:
            response = await self._client.messages.create(
                model=model,
                max_tokens=max_tokens,
                system=system,
                messages=messages,
                temperature=temperature,
            )
        except anthropic.AnthropicError as e:
            raise UpstreamUnavailable(f"anthropic: {e}") from e

        text = "".join(block.text for block in response.content if block.type == "text")
        logger.debug(
            "api_response",
            backend="anthropic",
            model=model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            stop_reason=response.stop_reason,
        )
        return AIResponse(
            text=text,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            raw=response,
        )
