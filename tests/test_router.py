"""Tests for conversation routing across the bot, AI and human tiers."""

from __future__ import annotations

import asyncio

import pytest

from support_relay.core.errors import ValidationError
from support_relay.core.types import ConversationMode, Role
from support_relay.engine.escalation import FALLBACK_CONFIDENCE
from support_relay.engine.router import RouteResult, validate_client_id
from support_relay.storage.models import Message

from conftest import ADMIN_ID


class TestAutomatedTiers:
    @pytest.mark.asyncio
    async def test_confident_match_answers_as_bot(self, relay, ai_client):
        await relay.matcher.train(["altın", "fiyat"], "R1", confidence=0.8)

        result = await relay.router.handle("c1", "altın fiyat nedir")

        assert result.reply.role is Role.BOT
        assert result.reply.content == "R1"
        assert result.reply.confidence == pytest.approx(0.8)
        assert result.escalated is False
        assert ai_client.calls == []

    @pytest.mark.asyncio
    async def test_bot_reply_reinforces_pattern(self, relay):
        pattern = await relay.matcher.train(["altın", "fiyat"], "R1", confidence=0.8)

        await relay.router.handle("c1", "altın fiyat nedir")

        reinforced = relay.matcher.patterns[0]
        assert reinforced.id == pattern.id
        assert reinforced.usage == 1
        assert reinforced.confidence == pytest.approx(0.85)

    @pytest.mark.asyncio
    async def test_low_confidence_escalates_to_ai(self, relay, ai_client):
        await relay.matcher.train(["altın", "fiyat"], "R1", confidence=0.8)

        result = await relay.router.handle("c1", "kargo ne zaman gelir")

        assert result.reply.role is Role.AI
        assert result.reply.content == "AI cevabı"
        assert result.reply.confidence == pytest.approx(0.85)
        assert result.escalated is True
        assert len(ai_client.calls) == 1

    @pytest.mark.asyncio
    async def test_ai_failure_still_replies(self, relay, ai_client):
        ai_client.error = RuntimeError("quota")

        result = await relay.router.handle("c1", "kargo ne zaman gelir")

        assert result.reply.role is Role.AI
        assert result.reply.content == relay.config.ai.fallback_reply
        assert result.reply.confidence == FALLBACK_CONFIDENCE

    @pytest.mark.asyncio
    async def test_messages_and_analytics_recorded(self, relay):
        await relay.matcher.train(["altın", "fiyat"], "R1", confidence=0.8)

        await relay.router.handle("c1", "altın fiyat")
        await relay.router.handle("c1", "kargo")

        history = await relay.messages.history("c1")
        assert [m.role for m in history] == [Role.USER, Role.BOT, Role.USER, Role.AI]
        today = await relay.analytics.day()
        assert (today.total, today.bot, today.ai, today.admin) == (2, 1, 1, 0)

    @pytest.mark.asyncio
    async def test_admin_is_notified(self, relay, channel):
        await relay.router.handle("c1", "kargo nerede")

        chat_id, text = channel.sent[-1]
        assert chat_id == ADMIN_ID
        assert "kargo nerede" in text

    @pytest.mark.asyncio
    async def test_notification_failure_is_not_fatal(self, relay, channel):
        channel.fail = True

        result = await relay.router.handle("c1", "kargo nerede")

        assert result.reply is not None

    @pytest.mark.asyncio
    async def test_concurrent_messages_keep_replies_adjacent(self, relay, ai_client):
        ai_client.delay = 0.01

        await asyncio.gather(*(relay.router.handle("c1", f"soru {i}") for i in range(5)))

        roles = [m.role for m in await relay.messages.history("c1")]
        assert roles == [Role.USER, Role.AI] * 5

    def test_result_dict_shape(self):
        user = Message(client_id="c1", role=Role.USER, content="a", timestamp=10, id=1)
        reply = Message(client_id="c1", role=Role.BOT, content="R1", timestamp=11, confidence=0.8, id=2)

        assert RouteResult(user_message=user, mode=ConversationMode.AUTO, reply=reply).to_dict() == {
            "reply": "R1",
            "role": "bot",
            "confidence": 0.8,
            "timestamp": 11,
            "messageId": 2,
            "mode": "auto",
        }


class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "x" * 1001])
    async def test_text_length_enforced(self, relay, text):
        with pytest.raises(ValidationError) as exc:
            await relay.router.handle("c1", text)
        assert exc.value.field == "text"
        assert await relay.messages.count() == 0

    @pytest.mark.parametrize("client_id", ["", "has space", "a/b", "x" * 129, None])
    def test_bad_client_ids(self, client_id):
        with pytest.raises(ValidationError):
            validate_client_id(client_id)

    @pytest.mark.parametrize("client_id", ["c1", "user_1700000000000_abc-def", "x" * 128])
    def test_good_client_ids(self, client_id):
        assert validate_client_id(client_id) == client_id


class TestHumanMode:
    @pytest.mark.asyncio
    async def test_takeover_stops_automated_replies(self, relay, ai_client, admin_token, channel):
        await relay.matcher.train(["altın", "fiyat"], "R1", confidence=0.8)
        await relay.router.handle("c1", "merhaba")
        await relay.takeovers.takeover("c1", admin_token)
        calls_before = len(ai_client.calls)

        result = await relay.router.handle("c1", "altın fiyat nedir")

        assert result.mode is ConversationMode.HUMAN
        assert result.reply is None
        assert result.to_dict()["reply"] is None
        assert len(ai_client.calls) == calls_before
        assert relay.matcher.patterns[0].usage == 0
        last = (await relay.messages.history("c1"))[-1]
        assert (last.role, last.content) == (Role.USER, "altın fiyat nedir")
        assert "altın fiyat nedir" in channel.sent[-1][1]

    @pytest.mark.asyncio
    async def test_release_restores_automation(self, relay, admin_token):
        await relay.router.handle("c1", "merhaba")
        await relay.takeovers.takeover("c1", admin_token)
        await relay.takeovers.release("c1", admin_token)

        result = await relay.router.handle("c1", "tekrar merhaba")

        assert result.mode is ConversationMode.AUTO
        assert result.reply.role is Role.AI

    @pytest.mark.asyncio
    async def test_other_conversations_unaffected(self, relay, admin_token):
        await relay.router.handle("c1", "merhaba")
        await relay.takeovers.takeover("c1", admin_token)

        result = await relay.router.handle("c2", "merhaba")

        assert result.mode is ConversationMode.AUTO
        assert result.reply is not None
