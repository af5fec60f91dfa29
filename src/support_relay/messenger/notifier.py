"""Best-effort admin notifications about chat traffic."""

from __future__ import annotations

import asyncio

from support_relay.core.errors import UpstreamUnavailable
from support_relay.core.types import Role
from support_relay.log import get_logger
from support_relay.messenger.base import NotificationChannel

logger = get_logger(__name__)

PREVIEW_LENGTH = 100

_ROLE_LABELS = {Role.BOT: "Bot", Role.AI: "AI", Role.ADMIN: "Admin", Role.SYSTEM: "Sistem"}


def preview(text: str, length: int = PREVIEW_LENGTH) -> str:
    return text if len(text) <= length else text[:length] + "..."


class Notifier:
    """Pushes chat events to the admin. Failures are logged, never raised."""

    def __init__(self, channel: NotificationChannel, admin_chat_id: str, timeout: float = 10.0):
        self._channel = channel
        self._admin_chat_id = admin_chat_id
        self._timeout = timeout

    async def new_message(self, client_id: str, user_text: str, reply: str, role: Role) -> None:
        text = (
            "💬 Yeni mesaj aldınız\n\n"
            f"👤 Kullanıcı ({client_id[-6:]}): \"{preview(user_text)}\"\n"
            f"🤖 {_ROLE_LABELS.get(role, role.value)}: \"{preview(reply)}\""
        )
        await self._push(text, event="new_message")

    async def awaiting_admin(self, client_id: str, user_text: str) -> None:
        text = (
            "👨‍💼 Devralınan sohbette yeni mesaj\n\n"
            f"👤 {client_id}: \"{preview(user_text)}\"\n"
            "Yanıt bekleniyor."
        )
        await self._push(text, event="awaiting_admin")

    async def send(self, text: str, parse_mode: str | None = None) -> bool:
        return await self._push(text, event="admin_message", parse_mode=parse_mode)

    async def _push(self, text: str, event: str, parse_mode: str | None = None) -> bool:
        if not self._channel.enabled or not self._admin_chat_id:
            return False
        try:
            await asyncio.wait_for(
                self._channel.send_text(self._admin_chat_id, text, parse_mode=parse_mode),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("notification_timeout", notify_event=event, timeout=self._timeout)
            return False
        except UpstreamUnavailable as e:
            logger.warning("notification_failed", notify_event=event, error=e.message)
            return False
        return True
