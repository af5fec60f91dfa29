"""Shared fixtures: in-memory storage, a manual clock and fake collaborators."""

from __future__ import annotations

import asyncio
import re
from typing import Any, Optional

import pytest
import pytest_asyncio

from support_relay.ai.client import AIClient, AIResponse
from support_relay.app import SupportRelayApp
from support_relay.config import (
    AIConfig,
    AppConfig,
    HousekeepingConfig,
    MatcherConfig,
    StorageConfig,
    TelegramConfig,
)
from support_relay.core.clock import ManualClock
from support_relay.core.errors import UpstreamUnavailable
from support_relay.messenger.base import NotificationChannel
from support_relay.storage.database import Database
from support_relay.storage.message_repo import MessageStore
from support_relay.storage.pattern_repo import PatternRepository

ADMIN_ID = "7001"

_CODE_RE = re.compile(r"\b(\d{6})\b")


class FakeAIClient(AIClient):
    """Scripted AI backend. Set ``reply``, ``error`` or ``delay`` per test."""

    def __init__(self, reply: str = "AI cevabı", error: Optional[Exception] = None, delay: float = 0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls: list[dict[str, Any]] = []

    @property
    def backend_name(self) -> str:
        return "fake"

    async def chat(self, system, messages, model, max_tokens=150, temperature=0.7) -> AIResponse:
        self.calls.append(
            {"system": system, "messages": messages, "model": model, "max_tokens": max_tokens}
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return AIResponse(text=self.reply, input_tokens=10, output_tokens=5)


class FakeChannel(NotificationChannel):
    """Records everything sent; ``fail`` makes every send raise."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[tuple[str, str]] = []
        self.started = False

    @property
    def channel_name(self) -> str:
        return "fake"

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.started = False

    async def send_text(self, chat_id: str, text: str, parse_mode: Optional[str] = None) -> None:
        if self.fail:
            raise UpstreamUnavailable("channel down")
        self.sent.append((chat_id, text))

    def last_code(self) -> str:
        for _, text in reversed(self.sent):
            match = _CODE_RE.search(text)
            if match and "kod" in text:
                return match.group(1)
        raise AssertionError("no auth code was sent")


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def ai_client() -> FakeAIClient:
    return FakeAIClient()


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def ai_config() -> AIConfig:
    return AIConfig(model="test-model", timeout=0.5, fallback_reply="Üzgünüm, şu an yanıt veremiyorum.")


@pytest.fixture
def app_config(ai_config) -> AppConfig:
    return AppConfig(
        storage=StorageConfig(db_path=":memory:"),
        matcher=MatcherConfig(threshold=0.7, seed_defaults=False),
        ai=ai_config,
        telegram=TelegramConfig(admin_id=ADMIN_ID, mode="disabled"),
        housekeeping=HousekeepingConfig(enabled=False),
    )


@pytest_asyncio.fixture
async def db():
    database = Database(":memory:")
    await database.initialize()
    yield database
    await database.close()


@pytest_asyncio.fixture
async def store(db, clock) -> MessageStore:
    message_store = MessageStore(db, clock)
    await message_store.initialize()
    return message_store


@pytest.fixture
def pattern_repo(db) -> PatternRepository:
    return PatternRepository(db)


@pytest_asyncio.fixture
async def relay(app_config, ai_client, channel, clock):
    """A fully wired, started application on an in-memory database."""
    app = SupportRelayApp(app_config, ai_client=ai_client, channel=channel, clock=clock)
    await app.start()
    yield app
    await app.stop()


async def login(relay: SupportRelayApp, channel: FakeChannel) -> str:
    """Run the one-time-code flow and return a session token."""
    assert await relay.auth.request_code(ADMIN_ID)
    session = await relay.auth.verify_code(ADMIN_ID, channel.last_code())
    return session.token


@pytest_asyncio.fixture
async def admin_token(relay, channel) -> str:
    return await login(relay, channel)
