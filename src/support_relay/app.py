"""Application orchestrator - wires all components and manages lifecycle."""

from __future__ import annotations

from datetime import timedelta

from support_relay.ai.client import AIClient, AnthropicClient, OpenAIClient
from support_relay.config import AppConfig
from support_relay.core.clock import Clock, SystemClock
from support_relay.core.locks import KeyedLock
from support_relay.engine.analytics import AnalyticsAggregator
from support_relay.engine.auth import AdminSessionAuthority
from support_relay.engine.directory import ConversationDirectory
from support_relay.engine.escalation import EscalationProcessor
from support_relay.engine.matcher import KnowledgeMatcher
from support_relay.engine.router import ConversationRouter
from support_relay.engine.sync import SyncGateway
from support_relay.engine.takeover import TakeoverManager
from support_relay.log import get_logger
from support_relay.messenger.base import NotificationChannel, NullChannel
from support_relay.messenger.commands import AdminConsole
from support_relay.messenger.notifier import Notifier
from support_relay.services.housekeeping import HousekeepingService
from support_relay.storage.analytics_repo import AnalyticsRepository
from support_relay.storage.auth_repo import AuthRepository
from support_relay.storage.database import Database
from support_relay.storage.message_repo import MessageStore
from support_relay.storage.pattern_repo import PatternRepository
from support_relay.storage.takeover_repo import TakeoverRepository

logger = get_logger(__name__)

_UNSET = object()


def create_ai_client(config: AppConfig) -> AIClient | None:
    """Build the configured AI backend, or None when its credentials are missing."""
    match config.ai.backend:
        case "openai":
            if not config.openai:
                logger.warning("ai_backend_unconfigured", backend="openai")
                return None
            return OpenAIClient(config.openai, timeout=config.ai.timeout)
        case "anthropic":
            if not config.anthropic:
                logger.warning("ai_backend_unconfigured", backend="anthropic")
                return None
            return AnthropicClient(config.anthropic, timeout=config.ai.timeout)
        case _:
            raise ValueError(f"Unknown AI backend: {config.ai.backend}")


def create_channel(config: AppConfig) -> NotificationChannel:
    if config.telegram.mode == "disabled" or not config.telegram.token:
        return NullChannel()
    from support_relay.messenger.telegram import TelegramChannel

    return TelegramChannel(config.telegram)


class SupportRelayApp:
    """Top-level application orchestrator.

    Collaborators (AI client, channel, clock) can be injected; by default they
    are built from ``config``.
    """

    def __init__(
        self,
        config: AppConfig,
        ai_client: AIClient | None | object = _UNSET,
        channel: NotificationChannel | None = None,
        clock: Clock | None = None,
    ):
        self.config = config
        self.clock = clock or SystemClock()
        self.ai_client: AIClient | None = (
            create_ai_client(config) if ai_client is _UNSET else ai_client  # type: ignore[assignment]
        )
        self.channel = channel or create_channel(config)

        self.db = Database(config.storage.db_path)
        self.messages = MessageStore(self.db, self.clock)
        self.conversation_locks = KeyedLock()

        self.matcher = KnowledgeMatcher(
            PatternRepository(self.db), self.clock, threshold=config.matcher.threshold
        )
        self.escalation = EscalationProcessor(self.ai_client, config.ai)
        self.analytics = AnalyticsAggregator(
            AnalyticsRepository(self.db), self.messages, self.matcher, self.clock
        )
        self.auth = AdminSessionAuthority(
            AuthRepository(self.db),
            self.channel,
            self.clock,
            admin_identity=config.telegram.admin_id,
            code_ttl=timedelta(seconds=config.auth.code_ttl_seconds),
            session_ttl=timedelta(hours=config.auth.session_ttl_hours),
            send_timeout=config.telegram.timeout,
        )
        self.takeovers = TakeoverManager(
            TakeoverRepository(self.db),
            self.messages,
            self.analytics,
            self.auth,
            self.clock,
            self.conversation_locks,
        )
        self.notifier = Notifier(self.channel, config.telegram.admin_id, timeout=config.telegram.timeout)
        self.router = ConversationRouter(
            self.messages,
            self.matcher,
            self.escalation,
            self.takeovers,
            self.analytics,
            self.notifier,
            self.conversation_locks,
            reinforce_on_match=config.matcher.reinforce_on_match,
        )
        self.sync = SyncGateway(self.messages, self.auth)
        self.directory = ConversationDirectory(self.messages, self.takeovers, self.analytics, self.clock)
        self.console = AdminConsole(
            admin_chat_id=config.telegram.admin_id,
            analytics=self.analytics,
            directory=self.directory,
            db=self.db,
            clock=self.clock,
            public_url=config.server.public_url,
            ai_client=self.ai_client,
        )
        self.housekeeping = (
            HousekeepingService(config.housekeeping, self.auth, self.notifier, self.console)
            if config.housekeeping.enabled
            else None
        )
        self.started_at = self.clock.now()

    async def start(self) -> None:
        """Initialize and start all components."""
        # 1. Database and in-memory state
        await self.db.initialize()
        await self.messages.initialize()
        await self.matcher.load(seed_defaults=self.config.matcher.seed_defaults)

        # 2. Messaging channel; the relay keeps working without it
        attach = getattr(self.channel, "attach_console", None)
        if attach is not None:
            attach(self.console)
        try:
            await self.channel.start()
        except Exception as e:
            logger.error("channel_start_failed", channel=self.channel.channel_name, error=str(e))

        # 3. Background jobs
        if self.housekeeping is not None:
            await self.housekeeping.start()

        self.started_at = self.clock.now()
        logger.info(
            "support_relay_started",
            ai_backend=self.ai_client.backend_name if self.ai_client else None,
            channel=self.channel.channel_name,
            patterns=len(self.matcher.patterns),
        )

    async def stop(self) -> None:
        """Gracefully shut down all components."""
        if self.housekeeping is not None:
            await self.housekeeping.stop()
        try:
            await self.channel.stop()
        except Exception as e:
            logger.error("channel_stop_error", error=str(e))
        await self.db.close()
        logger.info("support_relay_stopped")

    def uptime_seconds(self) -> float:
        return (self.clock.now() - self.started_at).total_seconds()
