"""Polling catch-up for widgets and the admin console."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from support_relay.engine.auth import AdminSessionAuthority
from support_relay.storage.message_repo import MessageStore
from support_relay.storage.models import Message


@dataclass(frozen=True)
class PollResult:
    new_messages: list[Message]
    last_timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "newMessages": [m.to_dict() for m in self.new_messages],
            "lastTimestamp": self.last_timestamp,
        }


def normalize_watermark(after: Optional[int]) -> int:
    if after is None or after < 0:
        return 0
    return after


def _result(messages: list[Message], after: int) -> PollResult:
    last = max((m.timestamp for m in messages), default=after)
    return PollResult(new_messages=messages, last_timestamp=last)


class SyncGateway:
    """Returns messages newer than a caller-held watermark.

    Safe to retry: the same ``after`` always yields the same or a longer list,
    never anything at or below the watermark.
    """

    def __init__(self, messages: MessageStore, auth: AdminSessionAuthority):
        self._messages = messages
        self._auth = auth

    async def poll(self, client_id: str, after: Optional[int]) -> PollResult:
        watermark = normalize_watermark(after)
        return _result(await self._messages.after(client_id, watermark), watermark)

    async def poll_admin(self, after: Optional[int], token: str | None) -> PollResult:
        await self._auth.verify_session(token)
        watermark = normalize_watermark(after)
        return _result(await self._messages.all_after(watermark), watermark)

    async def history(self, client_id: str) -> list[Message]:
        return await self._messages.history(client_id)
