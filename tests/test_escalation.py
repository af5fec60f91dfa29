"""Tests for the AI escalation tier."""

from __future__ import annotations

import pytest

from support_relay.core.errors import UpstreamUnavailable
from support_relay.engine.escalation import AI_CONFIDENCE, FALLBACK_CONFIDENCE, EscalationProcessor

from conftest import FakeAIClient


@pytest.mark.asyncio
async def test_successful_reply(ai_config):
    client = FakeAIClient(reply="  Altın 2 gün içinde teslim edilir.  ")
    processor = EscalationProcessor(client, ai_config)

    result = await processor.process("altın ne zaman gelir")

    assert result.response == "Altın 2 gün içinde teslim edilir."
    assert result.confidence == AI_CONFIDENCE
    assert result.fallback is False
    assert result.tokens_used == 15


@pytest.mark.asyncio
async def test_request_carries_prompt_and_token_budget(ai_config):
    client = FakeAIClient()
    await EscalationProcessor(client, ai_config).process("merhaba")

    call = client.calls[0]
    assert call["system"] == ai_config.system_prompt
    assert call["messages"] == [{"role": "user", "content": "merhaba"}]
    assert call["model"] == "test-model"
    assert call["max_tokens"] == 150


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "client",
    [
        FakeAIClient(error=UpstreamUnavailable("quota exceeded")),
        FakeAIClient(error=RuntimeError("boom")),
        FakeAIClient(reply="   "),
        FakeAIClient(delay=5.0),
        None,
    ],
    ids=["upstream", "unexpected", "empty", "timeout", "unconfigured"],
)
async def test_failures_become_fallback(ai_config, client):
    result = await EscalationProcessor(client, ai_config).process("kargo nerede")

    assert result.response == ai_config.fallback_reply
    assert result.confidence == FALLBACK_CONFIDENCE
    assert result.fallback is True
