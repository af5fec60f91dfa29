"""Conversation listings for the admin dashboard and the Telegram console."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional

from support_relay.core.clock import Clock
from support_relay.core.errors import ValidationError
from support_relay.core.types import ConversationMode
from support_relay.engine.analytics import AnalyticsAggregator
from support_relay.engine.takeover import TakeoverManager
from support_relay.storage.message_repo import MessageStore
from support_relay.storage.models import ConversationSummary

ACTIVE_WINDOW = timedelta(minutes=30)
MAX_PAGE_SIZE = 100


@dataclass
class ConversationPage:
    conversations: list[ConversationSummary]
    modes: dict[str, ConversationMode]
    total: int
    page: int
    limit: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "conversations": [summary_to_dict(c, self.modes.get(c.client_id)) for c in self.conversations],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
        }


def summary_to_dict(summary: ConversationSummary, mode: Optional[ConversationMode] = None) -> dict[str, Any]:
    return {
        "clientId": summary.client_id,
        "messageCount": summary.message_count,
        "startTime": summary.start_time,
        "lastActivity": summary.last_activity,
        "lastMessage": summary.last_message.to_dict() if summary.last_message else None,
        "roles": summary.roles,
        "mode": (mode or ConversationMode.AUTO).value,
    }


class ConversationDirectory:
    def __init__(
        self,
        messages: MessageStore,
        takeovers: TakeoverManager,
        analytics: AnalyticsAggregator,
        clock: Clock,
    ):
        self._messages = messages
        self._takeovers = takeovers
        self._analytics = analytics
        self._clock = clock

    async def list_conversations(self, page: int = 1, limit: int = 20, text_filter: Optional[str] = None) -> ConversationPage:
        if page < 1:
            raise ValidationError("page", "must be at least 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError("limit", f"must be between 1 and {MAX_PAGE_SIZE}")

        summaries = await self._messages.summaries(text_filter=text_filter or None)
        start = (page - 1) * limit
        selected = summaries[start : start + limit]
        await self._attach_last_messages(selected)
        return ConversationPage(
            conversations=selected,
            modes=await self._modes(),
            total=len(summaries),
            page=page,
            limit=limit,
        )

    async def active(self, window: timedelta = ACTIVE_WINDOW) -> list[ConversationSummary]:
        """Conversations with any message inside ``window``, most recent first."""
        since = self._clock.now_ms() - int(window.total_seconds() * 1000)
        summaries = await self._messages.summaries(since=since)
        await self._attach_last_messages(summaries)
        return summaries

    async def dashboard(self) -> dict[str, Any]:
        active = await self.active()
        today = await self._analytics.day()
        modes = await self._modes()
        return {
            "stats": {
                "today": {"total": today.total, "bot": today.bot, "ai": today.ai, "admin": today.admin},
                "activeConversations": len(active),
                "totalMessages": await self._messages.count(),
            },
            "activeChats": [summary_to_dict(s, modes.get(s.client_id)) for s in active],
        }

    async def _modes(self) -> dict[str, ConversationMode]:
        return {cid: ConversationMode.HUMAN for cid in await self._takeovers.active_conversations()}

    async def _attach_last_messages(self, summaries: list[ConversationSummary]) -> None:
        for summary in summaries:
            summary.last_message = await self._messages.last_message(summary.client_id)
