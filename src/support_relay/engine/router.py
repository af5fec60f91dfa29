"""Conversation router: picks the responder tier for every inbound user message."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

from support_relay.core.errors import ValidationError
from support_relay.core.locks import KeyedLock
from support_relay.core.types import ConversationMode, Feedback, Role
from support_relay.engine.analytics import AnalyticsAggregator
from support_relay.engine.escalation import EscalationProcessor
from support_relay.engine.matcher import KnowledgeMatcher
from support_relay.engine.takeover import TakeoverManager, validate_text
from support_relay.log import get_logger
from support_relay.messenger.notifier import Notifier
from support_relay.storage.message_repo import MessageStore
from support_relay.storage.models import Message

logger = get_logger(__name__)

CLIENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def validate_client_id(client_id: Optional[str]) -> str:
    if not client_id or not CLIENT_ID_PATTERN.match(client_id):
        raise ValidationError("clientId", "must be 1-128 characters of letters, digits, '-' or '_'")
    return client_id


@dataclass(frozen=True)
class RouteResult:
    user_message: Message
    mode: ConversationMode
    reply: Optional[Message] = None
    escalated: bool = False
    match_confidence: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        if self.reply is None:
            return {
                "reply": None,
                "role": None,
                "confidence": None,
                "timestamp": self.user_message.timestamp,
                "mode": self.mode.value,
            }
        return {
            "reply": self.reply.content,
            "role": self.reply.role.value,
            "confidence": self.reply.confidence,
            "timestamp": self.reply.timestamp,
            "messageId": self.reply.id,
            "mode": self.mode.value,
        }


class ConversationRouter:
    """user message -> store -> (human? stop) -> matcher -> AI if unsure -> store -> analytics -> notify.

    Each conversation is handled under its own lock so the user message and
    its reply stay adjacent and a concurrent takeover is observed.
    """

    def __init__(
        self,
        messages: MessageStore,
        matcher: KnowledgeMatcher,
        escalation: EscalationProcessor,
        takeovers: TakeoverManager,
        analytics: AnalyticsAggregator,
        notifier: Notifier,
        conversation_locks: KeyedLock,
        reinforce_on_match: bool = True,
    ):
        self._messages = messages
        self._matcher = matcher
        self._escalation = escalation
        self._takeovers = takeovers
        self._analytics = analytics
        self._notifier = notifier
        self._locks = conversation_locks
        self._reinforce_on_match = reinforce_on_match

    async def handle(self, client_id: str, text: str) -> RouteResult:
        client_id = validate_client_id(client_id)
        text = validate_text(text)

        async with self._locks.hold(client_id):
            user_message = await self._messages.append(client_id, Role.USER, text)

            if await self._takeovers.mode(client_id) is ConversationMode.HUMAN:
                logger.info("message_held_for_admin", client_id=client_id)
                await self._notifier.awaiting_admin(client_id, text)
                return RouteResult(user_message=user_message, mode=ConversationMode.HUMAN)

            match = self._matcher.analyze(text)
            if match.pattern is not None and not match.should_escalate:
                role, reply_text, confidence = Role.BOT, match.pattern.response, match.confidence
                if self._reinforce_on_match:
                    await self._matcher.record_usage(match.pattern, Feedback.POSITIVE)
            else:
                result = await self._escalation.process(text)
                role, reply_text, confidence = Role.AI, result.response, result.confidence

            reply = await self._messages.append(client_id, role, reply_text, confidence=confidence)

        await self._analytics.record(role)
        logger.info(
            "message_routed",
            client_id=client_id,
            role=role.value,
            match_confidence=round(match.confidence, 3),
            pattern_id=match.pattern.id if match.pattern else None,
        )
        await self._notifier.new_message(client_id, text, reply_text, role)

        return RouteResult(
            user_message=user_message,
            mode=ConversationMode.AUTO,
            reply=reply,
            escalated=role is Role.AI,
            match_confidence=match.confidence,
        )
