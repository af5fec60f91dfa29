"""Usage analytics: day buckets per responder tier, latency and escalation rate."""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Optional

from support_relay.core.clock import Clock
from support_relay.core.errors import NotFound, ValidationError
from support_relay.core.types import RESPONDER_ROLES, Feedback, Role, StatsPeriod
from support_relay.engine.matcher import KnowledgeMatcher
from support_relay.log import get_logger
from support_relay.storage.analytics_repo import AnalyticsRepository
from support_relay.storage.message_repo import MessageStore
from support_relay.storage.models import DailyAnalytics, FeedbackRecord

logger = get_logger(__name__)

PERFORMANCE_WINDOW = timedelta(hours=24)


@dataclass
class PeriodStats:
    period: StatsPeriod
    start: str
    end: str
    totals: DailyAnalytics
    role_distribution: Optional[dict[str, int]] = None

    def to_dict(self) -> dict[str, Any]:
        stats: dict[str, Any] = {
            "total": self.totals.total,
            "bot": self.totals.bot,
            "ai": self.totals.ai,
            "admin": self.totals.admin,
        }
        if self.role_distribution is not None:
            stats["roleDistribution"] = self.role_distribution
        return {"period": self.period.value, "start": self.start, "end": self.end, "stats": stats}


@dataclass
class Performance:
    average_response_ms: float
    escalation_rate: float
    active_conversations: int
    total_messages: int
    samples: int = 0
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "averageResponseMs": round(self.average_response_ms, 1),
            "escalationRate": round(self.escalation_rate, 4),
            "activeConversations": self.active_conversations,
            "totalMessages": self.total_messages,
            "samples": self.samples,
            **self.extra,
        }


def period_bounds(period: StatsPeriod, today: date) -> tuple[date, date]:
    """Inclusive day range for a period. Weeks run Monday to Sunday."""
    if period is StatsPeriod.DAILY:
        return today, today
    if period is StatsPeriod.WEEKLY:
        start = today - timedelta(days=today.weekday())
        return start, start + timedelta(days=6)
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)


def role_distribution(totals: DailyAnalytics) -> Optional[dict[str, int]]:
    if totals.total <= 0:
        return None
    return {
        "bot": round(totals.bot / totals.total * 100),
        "ai": round(totals.ai / totals.total * 100),
        "admin": round(totals.admin / totals.total * 100),
    }


class AnalyticsAggregator:
    """Append-only counters bucketed by UTC calendar day."""

    def __init__(
        self,
        repo: AnalyticsRepository,
        messages: MessageStore,
        matcher: KnowledgeMatcher,
        clock: Clock,
    ):
        self._repo = repo
        self._messages = messages
        self._matcher = matcher
        self._clock = clock

    def today(self) -> date:
        return self._clock.now().date()

    async def record(self, role: Role) -> None:
        if role not in RESPONDER_ROLES:
            raise ValueError(f"Only responder roles are counted, got {role!r}")
        await self._repo.increment(self.today().isoformat(), role)

    async def day(self, day: Optional[date] = None) -> DailyAnalytics:
        return await self._repo.get((day or self.today()).isoformat())

    async def stats_for_period(self, period: StatsPeriod) -> PeriodStats:
        start, end = period_bounds(period, self.today())
        totals = DailyAnalytics(date=start.isoformat())
        for bucket in await self._repo.range(start.isoformat(), end.isoformat()):
            totals = totals + bucket
        return PeriodStats(
            period=period,
            start=start.isoformat(),
            end=end.isoformat(),
            totals=totals,
            role_distribution=role_distribution(totals),
        )

    async def performance(self) -> Performance:
        since = self._clock.now_ms() - int(PERFORMANCE_WINDOW.total_seconds() * 1000)
        recent = await self._messages.all_after(since)

        by_client: dict[str, list] = {}
        for message in recent:
            by_client.setdefault(message.client_id, []).append(message)

        latencies: list[int] = []
        for conversation in by_client.values():
            for previous, current in zip(conversation, conversation[1:]):
                if previous.role is Role.USER and current.role is not Role.USER:
                    latencies.append(current.timestamp - previous.timestamp)

        today = await self.day()
        escalation_rate = (today.ai + today.admin) / today.total if today.total else 0.0
        return Performance(
            average_response_ms=sum(latencies) / len(latencies) if latencies else 0.0,
            escalation_rate=escalation_rate,
            active_conversations=len(by_client),
            total_messages=await self._messages.count(),
            samples=len(latencies),
            extra={"patterns": self._matcher.stats()},
        )

    async def record_feedback(
        self,
        message_id: int,
        rating: Feedback,
        comment: Optional[str] = None,
        client_id: Optional[str] = None,
    ) -> FeedbackRecord:
        """Store a rating for a message; bot replies also feed back into their pattern."""
        if comment is not None and len(comment) > 500:
            raise ValidationError("comment", "must be at most 500 characters")

        message = await self._messages.get(message_id)
        if message is None or (client_id and message.client_id != client_id):
            raise NotFound("Message not found")

        if message.role is Role.BOT:
            pattern = await self._matcher.find_by_response(message.content)
            if pattern is not None:
                await self._matcher.record_usage(pattern, rating)

        record = FeedbackRecord(
            message_id=message_id,
            client_id=client_id or message.client_id,
            rating=rating.value,
            comment=comment,
            timestamp=self._clock.now_ms(),
        )
        await self._repo.save_feedback(record)
        logger.info("feedback_recorded", message_id=message_id, rating=rating.value)
        return record

    async def feedback_for(self, message_id: int) -> list[FeedbackRecord]:
        return await self._repo.feedback_for(message_id)
