"""Human admin control over individual conversations."""

from __future__ import annotations

from support_relay.core.clock import Clock
from support_relay.core.errors import NotFound, ValidationError
from support_relay.core.locks import KeyedLock
from support_relay.core.types import ConversationMode, Role, TakeoverStatus
from support_relay.engine.analytics import AnalyticsAggregator
from support_relay.engine.auth import AdminSessionAuthority
from support_relay.log import get_logger
from support_relay.storage.message_repo import MessageStore
from support_relay.storage.models import Message, Takeover
from support_relay.storage.takeover_repo import TakeoverRepository

logger = get_logger(__name__)

ADMIN_GREETING = "Merhaba! Ben gerçek bir destek uzmanıyım. Size nasıl yardımcı olabilirim?"
RELEASE_NOTICE = "Destek uzmanı sohbetten ayrıldı. Asistanımız size yardımcı olmaya devam edecek."
MAX_TEXT_LENGTH = 1000


def validate_text(text: str, field: str = "text") -> str:
    if text is None or not 1 <= len(text.strip()) <= MAX_TEXT_LENGTH:
        raise ValidationError(field, f"must be 1-{MAX_TEXT_LENGTH} characters")
    return text.strip()


class TakeoverManager:
    """Claims, answers and releases conversations on behalf of an admin.

    Shares the router's per-conversation lock so a claim never interleaves
    with an automated reply to the same conversation.
    """

    def __init__(
        self,
        repo: TakeoverRepository,
        messages: MessageStore,
        analytics: AnalyticsAggregator,
        auth: AdminSessionAuthority,
        clock: Clock,
        conversation_locks: KeyedLock,
    ):
        self._repo = repo
        self._messages = messages
        self._analytics = analytics
        self._auth = auth
        self._clock = clock
        self._locks = conversation_locks

    async def mode(self, conversation_id: str) -> ConversationMode:
        takeover = await self._repo.get(conversation_id)
        if takeover is not None and takeover.status is TakeoverStatus.ACTIVE:
            return ConversationMode.HUMAN
        return ConversationMode.AUTO

    async def get(self, conversation_id: str) -> Takeover | None:
        return await self._repo.get(conversation_id)

    async def takeover(self, conversation_id: str, token: str | None) -> Message:
        """Claim a conversation. Re-claiming replaces the current record."""
        session = await self._auth.verify_session(token)
        await self._require_conversation(conversation_id)

        async with self._locks.hold(conversation_id):
            await self._repo.upsert(
                Takeover(
                    conversation_id=conversation_id,
                    admin_id=session.admin_id,
                    timestamp=self._clock.now_ms(),
                    status=TakeoverStatus.ACTIVE,
                )
            )
            greeting = await self._messages.append(
                conversation_id,
                Role.ADMIN,
                ADMIN_GREETING,
                confidence=1.0,
                admin_id=session.admin_id,
            )
        logger.info("conversation_taken_over", conversation_id=conversation_id, admin_id=session.admin_id)
        return greeting

    async def respond(self, conversation_id: str, token: str | None, text: str) -> Message:
        """Post an admin reply. Does not require a prior takeover."""
        session = await self._auth.verify_session(token)
        text = validate_text(text)
        await self._require_conversation(conversation_id)

        async with self._locks.hold(conversation_id):
            message = await self._messages.append(
                conversation_id,
                Role.ADMIN,
                text,
                confidence=1.0,
                admin_id=session.admin_id,
            )
        await self._analytics.record(Role.ADMIN)
        logger.info("admin_responded", conversation_id=conversation_id, admin_id=session.admin_id)
        return message

    async def release(self, conversation_id: str, token: str | None) -> Message:
        """Hand the conversation back to the automated tiers."""
        session = await self._auth.verify_session(token)

        async with self._locks.hold(conversation_id):
            current = await self._repo.get(conversation_id)
            if current is None or current.status is not TakeoverStatus.ACTIVE:
                raise NotFound("No active takeover for this conversation")
            await self._repo.upsert(
                Takeover(
                    conversation_id=conversation_id,
                    admin_id=session.admin_id,
                    timestamp=self._clock.now_ms(),
                    status=TakeoverStatus.RELEASED,
                )
            )
            notice = await self._messages.append(conversation_id, Role.SYSTEM, RELEASE_NOTICE)
        logger.info("conversation_released", conversation_id=conversation_id, admin_id=session.admin_id)
        return notice

    async def active_conversations(self) -> set[str]:
        return await self._repo.active_ids()

    async def _require_conversation(self, conversation_id: str) -> None:
        if not await self._messages.exists(conversation_id):
            raise NotFound("Conversation not found")
