"""Tests for admin takeover, replies and release."""

from __future__ import annotations

import pytest

from support_relay.core.errors import NotFound, SessionExpired, SessionNotFound, ValidationError
from support_relay.core.types import ConversationMode, Role, TakeoverStatus
from support_relay.engine.takeover import ADMIN_GREETING, RELEASE_NOTICE

from conftest import ADMIN_ID


@pytest.mark.asyncio
async def test_takeover_appends_greeting(relay, admin_token):
    await relay.router.handle("c1", "merhaba")

    greeting = await relay.takeovers.takeover("c1", admin_token)

    assert greeting.role is Role.ADMIN
    assert greeting.content == ADMIN_GREETING
    assert greeting.confidence == 1.0
    assert greeting.admin_id == ADMIN_ID
    assert await relay.takeovers.mode("c1") is ConversationMode.HUMAN


@pytest.mark.asyncio
async def test_takeover_requires_session(relay):
    await relay.router.handle("c1", "merhaba")

    with pytest.raises(SessionNotFound):
        await relay.takeovers.takeover("c1", None)
    assert await relay.takeovers.mode("c1") is ConversationMode.AUTO


@pytest.mark.asyncio
async def test_expired_session_rejected(relay, admin_token, clock):
    await relay.router.handle("c1", "merhaba")
    clock.advance(hours=25)

    with pytest.raises(SessionExpired):
        await relay.takeovers.takeover("c1", admin_token)


@pytest.mark.asyncio
async def test_unknown_conversation(relay, admin_token):
    with pytest.raises(NotFound):
        await relay.takeovers.takeover("nobody", admin_token)
    with pytest.raises(NotFound):
        await relay.takeovers.respond("nobody", admin_token, "selam")


@pytest.mark.asyncio
async def test_reclaim_replaces_record(relay, admin_token, clock):
    await relay.router.handle("c1", "merhaba")
    await relay.takeovers.takeover("c1", admin_token)
    clock.advance(minutes=1)

    await relay.takeovers.takeover("c1", admin_token)

    record = await relay.takeovers.get("c1")
    assert record.status is TakeoverStatus.ACTIVE
    assert record.timestamp == clock.now_ms()


@pytest.mark.asyncio
async def test_respond_without_takeover(relay, admin_token):
    await relay.router.handle("c1", "merhaba")

    message = await relay.takeovers.respond("c1", admin_token, "  Size yardımcı olayım.  ")

    assert message.role is Role.ADMIN
    assert message.content == "Size yardımcı olayım."
    assert message.confidence == 1.0
    assert (await relay.analytics.day()).admin == 1
    assert await relay.takeovers.mode("c1") is ConversationMode.AUTO


@pytest.mark.asyncio
async def test_respond_validates_text(relay, admin_token):
    await relay.router.handle("c1", "merhaba")

    with pytest.raises(ValidationError):
        await relay.takeovers.respond("c1", admin_token, " ")


@pytest.mark.asyncio
async def test_release(relay, admin_token):
    await relay.router.handle("c1", "merhaba")
    await relay.takeovers.takeover("c1", admin_token)

    notice = await relay.takeovers.release("c1", admin_token)

    assert notice.role is Role.SYSTEM
    assert notice.content == RELEASE_NOTICE
    assert (await relay.takeovers.get("c1")).status is TakeoverStatus.RELEASED
    assert await relay.takeovers.active_conversations() == set()


@pytest.mark.asyncio
async def test_release_without_active_takeover(relay, admin_token):
    await relay.router.handle("c1", "merhaba")

    with pytest.raises(NotFound):
        await relay.takeovers.release("c1", admin_token)
