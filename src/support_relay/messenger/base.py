"""Abstract push-notification channel interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from support_relay.core.errors import UpstreamUnavailable
from support_relay.log import get_logger

logger = get_logger(__name__)


class NotificationChannel(ABC):
    """Outbound text channel to a known recipient (the admin).

    ``send_text`` raises ``UpstreamUnavailable`` when delivery fails; callers
    decide whether that is fatal.
    """

    @abstractmethod
    async def start(self) -> None:
        ...

    @abstractmethod
    async def stop(self) -> None:
        ...

    @abstractmethod
    async def send_text(self, chat_id: str, text: str, parse_mode: Optional[str] = None) -> None:
        ...

    @property
    @abstractmethod
    def channel_name(self) -> str:
        ...

    @property
    def enabled(self) -> bool:
        return True

    async def health_check(self) -> bool:
        return True


class NullChannel(NotificationChannel):
    """Stands in when no messaging channel is configured. Nothing can be delivered."""

    async def start(self) -> None:
        logger.info("notification_channel_disabled")

    async def stop(self) -> None:
        return None

    async def send_text(self, chat_id: str, text: str, parse_mode: Optional[str] = None) -> None:
        raise UpstreamUnavailable("No notification channel configured")

    @property
    def channel_name(self) -> str:
        return "null"

    @property
    def enabled(self) -> bool:
        return False

    async def health_check(self) -> bool:
        return False
