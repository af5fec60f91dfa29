"""Data models for storage layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from support_relay.core.types import PatternSource, Role, TakeoverStatus


@dataclass(frozen=True, slots=True)
class Message:
    client_id: str
    role: Role
    content: str
    timestamp: int  # ms since epoch, strictly increasing in append order
    confidence: Optional[float] = None
    admin_id: Optional[str] = None
    id: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "clientId": self.client_id,
            "role": self.role.value,
            "content": self.content,
        }
        if self.confidence is not None:
            data["confidence"] = self.confidence
        if self.admin_id is not None:
            data["adminId"] = self.admin_id
        return data


@dataclass
class Pattern:
    keywords: list[str]
    response: str
    confidence: float
    usage: int = 0
    success_rate: float = 0.8
    source: PatternSource = PatternSource.DEFAULT
    created_at: int = 0
    created_by: Optional[str] = None
    id: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "keywords": list(self.keywords),
            "response": self.response,
            "confidence": self.confidence,
            "usage": self.usage,
            "successRate": self.success_rate,
            "source": self.source.value,
            "createdAt": self.created_at,
            "createdBy": self.created_by,
        }


@dataclass
class DailyAnalytics:
    date: str  # ISO date, UTC
    total: int = 0
    bot: int = 0
    ai: int = 0
    admin: int = 0

    def __add__(self, other: DailyAnalytics) -> DailyAnalytics:
        return DailyAnalytics(
            date=self.date,
            total=self.total + other.total,
            bot=self.bot + other.bot,
            ai=self.ai + other.ai,
            admin=self.admin + other.admin,
        )


@dataclass(frozen=True, slots=True)
class PendingCode:
    identity: str
    code: str
    expires: int


@dataclass(frozen=True, slots=True)
class AdminSession:
    token: str
    admin_id: str
    created: int
    expires: int


@dataclass(frozen=True, slots=True)
class Takeover:
    conversation_id: str
    admin_id: str
    timestamp: int
    status: TakeoverStatus


@dataclass(frozen=True, slots=True)
class FeedbackRecord:
    message_id: int
    rating: str
    timestamp: int
    client_id: Optional[str] = None
    comment: Optional[str] = None


@dataclass
class ConversationSummary:
    client_id: str
    message_count: int
    start_time: int
    last_activity: int
    last_message: Optional[Message] = None
    roles: list[str] = field(default_factory=list)
