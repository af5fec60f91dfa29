"""Shared types and enumerations."""

from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    USER = "user"
    BOT = "bot"
    AI = "ai"
    ADMIN = "admin"
    SYSTEM = "system"


# Roles that answer a user and are counted by analytics
RESPONDER_ROLES = frozenset({Role.BOT, Role.AI, Role.ADMIN})


class Feedback(StrEnum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class ConversationMode(StrEnum):
    AUTO = "auto"
    HUMAN = "human"


class TakeoverStatus(StrEnum):
    ACTIVE = "active"
    RELEASED = "released"


class PatternSource(StrEnum):
    DEFAULT = "default"
    ADMIN = "admin"
    LEARNED = "learned"


class StatsPeriod(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
