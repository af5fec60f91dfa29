"""Tests for the message log and the polling protocol built on it."""

from __future__ import annotations

import asyncio

import pytest

from support_relay.core.errors import SessionNotFound
from support_relay.core.types import Role
from support_relay.engine.auth import AdminSessionAuthority
from support_relay.engine.sync import SyncGateway, normalize_watermark
from support_relay.storage.auth_repo import AuthRepository
from support_relay.storage.message_repo import MessageStore

from conftest import ADMIN_ID


@pytest.fixture
def authority(db, channel, clock) -> AdminSessionAuthority:
    return AdminSessionAuthority(AuthRepository(db), channel, clock, admin_identity=ADMIN_ID)


@pytest.fixture
def gateway(store, authority) -> SyncGateway:
    return SyncGateway(store, authority)


class TestAppend:
    @pytest.mark.asyncio
    async def test_append_returns_stored_message(self, store, clock):
        message = await store.append("client-1", Role.AI, "cevap", confidence=0.85)

        assert message.id is not None
        assert message.timestamp == clock.now_ms()
        assert (await store.get(message.id)) == message

    @pytest.mark.asyncio
    async def test_timestamps_strictly_increase_on_frozen_clock(self, store):
        first = await store.append("c1", Role.USER, "a")
        second = await store.append("c2", Role.USER, "b")
        third = await store.append("c1", Role.BOT, "c")

        assert first.timestamp < second.timestamp < third.timestamp

    @pytest.mark.asyncio
    async def test_timestamps_survive_clock_going_backwards(self, store, clock):
        first = await store.append("c1", Role.USER, "a")
        clock.advance(minutes=-5)
        second = await store.append("c1", Role.USER, "b")

        assert second.timestamp > first.timestamp

    @pytest.mark.asyncio
    async def test_concurrent_appends_are_all_kept(self, store):
        await asyncio.gather(
            *(store.append("same-client", Role.USER, f"mesaj {i}") for i in range(25))
        )

        history = await store.history("same-client")
        assert len(history) == 25
        assert {m.content for m in history} == {f"mesaj {i}" for i in range(25)}
        timestamps = [m.timestamp for m in history]
        assert timestamps == sorted(set(timestamps))

    @pytest.mark.asyncio
    async def test_reload_continues_after_last_timestamp(self, db, store, clock):
        last = await store.append("c1", Role.USER, "a")
        clock.advance(hours=-1)

        reopened = MessageStore(db, clock)
        await reopened.initialize()
        message = await reopened.append("c1", Role.USER, "b")

        assert message.timestamp > last.timestamp


class TestSummaries:
    @pytest.mark.asyncio
    async def test_grouped_by_client_most_recent_first(self, store, clock):
        await store.append("alpha", Role.USER, "Merhaba")
        clock.advance(seconds=1)
        await store.append("beta", Role.USER, "Kargo")
        clock.advance(seconds=1)
        await store.append("alpha", Role.BOT, "Hoş geldiniz")

        summaries = await store.summaries()

        assert [s.client_id for s in summaries] == ["alpha", "beta"]
        assert summaries[0].message_count == 2
        assert summaries[0].roles == ["bot", "user"]

    @pytest.mark.asyncio
    async def test_filter_matches_content_case_insensitively(self, store):
        await store.append("alpha", Role.USER, "ALTIN transferi")
        await store.append("beta", Role.USER, "Şifremi unuttum")

        assert [s.client_id for s in await store.summaries(text_filter="şifremi")] == ["beta"]
        assert [s.client_id for s in await store.summaries(text_filter="transfer")] == ["alpha"]
        assert [s.client_id for s in await store.summaries(text_filter="alp")] == ["alpha"]


class TestPolling:
    @pytest.mark.asyncio
    async def test_poll_returns_only_newer_messages(self, store, gateway):
        first = await store.append("c1", Role.USER, "a")
        second = await store.append("c1", Role.AI, "b")
        await store.append("c2", Role.USER, "other client")

        result = await gateway.poll("c1", first.timestamp)

        assert [m.id for m in result.new_messages] == [second.id]
        assert result.last_timestamp == second.timestamp

    @pytest.mark.asyncio
    async def test_poll_is_idempotent_when_nothing_new(self, store, gateway):
        message = await store.append("c1", Role.USER, "a")

        first = await gateway.poll("c1", message.timestamp)
        second = await gateway.poll("c1", message.timestamp)

        assert first.new_messages == second.new_messages == []
        assert first.last_timestamp == second.last_timestamp == message.timestamp

    @pytest.mark.asyncio
    async def test_watermark_never_skips_messages(self, store, gateway):
        watermark = 0
        seen: list[int] = []
        for i in range(5):
            await store.append("c1", Role.USER, f"m{i}")
            result = await gateway.poll("c1", watermark)
            seen.extend(m.id for m in result.new_messages)
            watermark = result.last_timestamp

        assert seen == [m.id for m in await store.history("c1")]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("after", [None, -1, -1000])
    async def test_missing_or_negative_watermark_means_everything(self, store, gateway, after):
        await store.append("c1", Role.USER, "a")

        result = await gateway.poll("c1", after)

        assert len(result.new_messages) == 1

    def test_normalize_watermark(self):
        assert normalize_watermark(None) == 0
        assert normalize_watermark(-5) == 0
        assert normalize_watermark(17) == 17

    @pytest.mark.asyncio
    async def test_admin_poll_requires_session(self, gateway):
        with pytest.raises(SessionNotFound):
            await gateway.poll_admin(0, None)

    @pytest.mark.asyncio
    async def test_admin_poll_spans_all_clients(self, store, gateway, authority, channel):
        await store.append("c1", Role.USER, "a")
        await store.append("c2", Role.USER, "b")
        await authority.request_code(ADMIN_ID)
        session = await authority.verify_code(ADMIN_ID, channel.last_code())

        result = await gateway.poll_admin(0, session.token)

        assert {m.client_id for m in result.new_messages} == {"c1", "c2"}

    @pytest.mark.asyncio
    async def test_poll_dict_shape(self, store, gateway):
        message = await store.append("c1", Role.BOT, "R1", confidence=0.8)

        data = (await gateway.poll("c1", 0)).to_dict()

        assert data["lastTimestamp"] == message.timestamp
        assert data["newMessages"][0] == {
            "id": message.id,
            "timestamp": message.timestamp,
            "clientId": "c1",
            "role": "bot",
            "content": "R1",
            "confidence": 0.8,
        }
