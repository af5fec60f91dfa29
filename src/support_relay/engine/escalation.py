"""Generative-AI fallback for messages the pattern bot is not confident about."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from support_relay.ai.client import AIClient
from support_relay.config import AIConfig
from support_relay.core.errors import UpstreamUnavailable
from support_relay.log import get_logger

logger = get_logger(__name__)

AI_CONFIDENCE = 0.85
FALLBACK_CONFIDENCE = 0.3


@dataclass(frozen=True)
class EscalationResult:
    response: str
    confidence: float
    fallback: bool = False
    tokens_used: int = 0


class EscalationProcessor:
    """Asks the AI collaborator for an answer; never raises.

    Timeouts, provider errors and empty completions all produce the configured
    apology with a low confidence.
    """

    def __init__(self, ai_client: AIClient | None, config: AIConfig):
        self._ai_client = ai_client
        self._config = config

    async def process(self, text: str) -> EscalationResult:
        if self._ai_client is None:
            logger.warning("ai_not_configured")
            return self._fallback()

        try:
            response = await asyncio.wait_for(
                self._ai_client.chat(
                    system=self._config.system_prompt,
                    messages=[{"role": "user", "content": text}],
                    model=self._config.model,
                    max_tokens=self._config.max_tokens,
                    temperature=self._config.temperature,
                ),
                timeout=self._config.timeout,
            )
        except asyncio.TimeoutError:
            logger.error("ai_timeout", timeout=self._config.timeout)
            return self._fallback()
        except UpstreamUnavailable as e:
            logger.error("ai_unavailable", error=e.message)
            return self._fallback()
        except Exception as e:
            logger.exception("ai_unexpected_error", error=str(e))
            return self._fallback()

        reply = response.text.strip()
        if not reply:
            logger.warning("ai_empty_completion", model=self._config.model)
            return self._fallback()

        return EscalationResult(
            response=reply,
            confidence=AI_CONFIDENCE,
            tokens_used=response.input_tokens + response.output_tokens,
        )

    def _fallback(self) -> EscalationResult:
        return EscalationResult(
            response=self._config.fallback_reply,
            confidence=FALLBACK_CONFIDENCE,
            fallback=True,
        )
