"""Tests for usage counters, period stats, performance and feedback."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from support_relay.core.errors import NotFound, ValidationError
from support_relay.core.types import Feedback, Role, StatsPeriod
from support_relay.engine.analytics import period_bounds, role_distribution
from support_relay.storage.models import DailyAnalytics


class TestPeriods:
    @pytest.mark.parametrize(
        "period,today,expected",
        [
            (StatsPeriod.DAILY, date(2024, 5, 15), (date(2024, 5, 15), date(2024, 5, 15))),
            # Wednesday -> Monday..Sunday
            (StatsPeriod.WEEKLY, date(2024, 5, 15), (date(2024, 5, 13), date(2024, 5, 19))),
            (StatsPeriod.WEEKLY, date(2024, 5, 19), (date(2024, 5, 13), date(2024, 5, 19))),
            (StatsPeriod.MONTHLY, date(2024, 2, 10), (date(2024, 2, 1), date(2024, 2, 29))),
        ],
    )
    def test_period_bounds(self, period, today, expected):
        assert period_bounds(period, today) == expected

    def test_role_distribution(self):
        assert role_distribution(DailyAnalytics(date="d")) is None
        assert role_distribution(DailyAnalytics(date="d", total=4, bot=2, ai=1, admin=1)) == {
            "bot": 50,
            "ai": 25,
            "admin": 25,
        }


class TestCounters:
    @pytest.mark.asyncio
    async def test_record_counts_responder_roles(self, relay):
        for role in (Role.BOT, Role.BOT, Role.AI, Role.ADMIN):
            await relay.analytics.record(role)

        today = await relay.analytics.day()
        assert (today.total, today.bot, today.ai, today.admin) == (4, 2, 1, 1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [Role.USER, Role.SYSTEM])
    async def test_non_responders_rejected(self, relay, role):
        with pytest.raises(ValueError):
            await relay.analytics.record(role)

    @pytest.mark.asyncio
    async def test_buckets_follow_utc_day(self, relay, clock):
        clock.set(datetime(2024, 1, 1, 23, 59, tzinfo=timezone.utc))
        await relay.analytics.record(Role.BOT)
        clock.advance(minutes=2)
        await relay.analytics.record(Role.AI)

        assert (await relay.analytics.day(date(2024, 1, 1))).total == 1
        assert (await relay.analytics.day(date(2024, 1, 2))).total == 1

    @pytest.mark.asyncio
    async def test_weekly_sums_days_in_week(self, relay, clock):
        # 2024-01-01 is a Monday
        clock.set(datetime(2024, 1, 1, 9, tzinfo=timezone.utc))
        await relay.analytics.record(Role.BOT)
        clock.set(datetime(2024, 1, 3, 9, tzinfo=timezone.utc))
        await relay.analytics.record(Role.AI)
        clock.set(datetime(2024, 1, 8, 9, tzinfo=timezone.utc))
        await relay.analytics.record(Role.ADMIN)

        clock.set(datetime(2024, 1, 7, 9, tzinfo=timezone.utc))
        stats = (await relay.analytics.stats_for_period(StatsPeriod.WEEKLY)).to_dict()

        assert stats["start"] == "2024-01-01"
        assert stats["end"] == "2024-01-07"
        assert stats["stats"] == {
            "total": 2,
            "bot": 1,
            "ai": 1,
            "admin": 0,
            "roleDistribution": {"bot": 50, "ai": 50, "admin": 0},
        }

    @pytest.mark.asyncio
    async def test_empty_period_has_no_distribution(self, relay):
        stats = (await relay.analytics.stats_for_period(StatsPeriod.MONTHLY)).to_dict()
        assert stats["stats"] == {"total": 0, "bot": 0, "ai": 0, "admin": 0}


class TestPerformance:
    @pytest.mark.asyncio
    async def test_latency_and_escalation_rate(self, relay, clock):
        await relay.messages.append("c1", Role.USER, "soru")
        clock.advance(seconds=2)
        await relay.messages.append("c1", Role.AI, "cevap")
        await relay.analytics.record(Role.AI)
        clock.advance(seconds=1)
        await relay.messages.append("c2", Role.USER, "soru")
        clock.advance(seconds=1)
        await relay.messages.append("c2", Role.BOT, "cevap")
        await relay.analytics.record(Role.BOT)

        report = await relay.analytics.performance()

        assert report.samples == 2
        assert report.average_response_ms == pytest.approx(1500)
        assert report.escalation_rate == pytest.approx(0.5)
        assert report.active_conversations == 2
        assert report.total_messages == 4

    @pytest.mark.asyncio
    async def test_window_excludes_old_messages(self, relay, clock):
        await relay.messages.append("old", Role.USER, "soru")
        await relay.messages.append("old", Role.AI, "cevap")
        clock.advance(hours=25)

        report = await relay.analytics.performance()

        assert report.samples == 0
        assert report.active_conversations == 0
        assert report.total_messages == 2
        assert report.to_dict()["escalationRate"] == 0.0


class TestFeedback:
    @pytest.mark.asyncio
    async def test_feedback_on_bot_reply_adjusts_pattern(self, relay):
        pattern = await relay.matcher.train(["altın", "fiyat"], "R1", confidence=0.8)
        result = await relay.router.handle("c1", "altın fiyat")

        await relay.analytics.record_feedback(result.reply.id, Feedback.NEGATIVE, client_id="c1")

        updated = next(p for p in relay.matcher.patterns if p.id == pattern.id)
        # +0.05 from the match, -0.05 from the rating
        assert updated.confidence == pytest.approx(0.8)
        assert updated.usage == 2

    @pytest.mark.asyncio
    async def test_feedback_is_stored(self, relay):
        result = await relay.router.handle("c1", "kargo")

        record = await relay.analytics.record_feedback(result.reply.id, Feedback.POSITIVE, comment="Teşekkürler")

        assert record.client_id == "c1"
        stored = await relay.analytics.feedback_for(result.reply.id)
        assert [(r.rating, r.comment) for r in stored] == [("positive", "Teşekkürler")]

    @pytest.mark.asyncio
    async def test_unknown_message(self, relay):
        with pytest.raises(NotFound):
            await relay.analytics.record_feedback(999, Feedback.POSITIVE)

    @pytest.mark.asyncio
    async def test_message_of_another_client(self, relay):
        result = await relay.router.handle("c1", "kargo")

        with pytest.raises(NotFound):
            await relay.analytics.record_feedback(result.reply.id, Feedback.POSITIVE, client_id="c2")

    @pytest.mark.asyncio
    async def test_comment_length(self, relay):
        result = await relay.router.handle("c1", "kargo")

        with pytest.raises(ValidationError):
            await relay.analytics.record_feedback(result.reply.id, Feedback.POSITIVE, comment="x" * 501)
