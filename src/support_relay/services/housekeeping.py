"""APScheduler-based periodic maintenance: auth purge and the daily admin digest."""

from __future__ import annotations

from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from support_relay.config import HousekeepingConfig
from support_relay.log import get_logger

if TYPE_CHECKING:
    from support_relay.engine.auth import AdminSessionAuthority
    from support_relay.messenger.commands import AdminConsole
    from support_relay.messenger.notifier import Notifier

logger = get_logger(__name__)

PURGE_JOB_ID = "auth_purge"
DIGEST_JOB_ID = "daily_digest"


class HousekeepingService:
    """Background jobs started alongside the HTTP app."""

    def __init__(
        self,
        config: HousekeepingConfig,
        auth: AdminSessionAuthority,
        notifier: Notifier,
        console: AdminConsole | None = None,
    ):
        self._config = config
        self._auth = auth
        self._notifier = notifier
        self._console = console
        self._scheduler = AsyncIOScheduler(timezone=config.timezone)

    async def start(self) -> None:
        self._scheduler.add_job(
            self.purge_auth,
            IntervalTrigger(minutes=self._config.purge_interval_minutes),
            id=PURGE_JOB_ID,
            replace_existing=True,
        )
        if self._config.digest_cron and self._console is not None:
            self._scheduler.add_job(
                self.send_digest,
                CronTrigger.from_crontab(self._config.digest_cron, timezone=self._config.timezone),
                id=DIGEST_JOB_ID,
                replace_existing=True,
            )
        self._scheduler.start()
        logger.info(
            "housekeeping_started",
            purge_interval_minutes=self._config.purge_interval_minutes,
            digest_cron=self._config.digest_cron,
        )

    async def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("housekeeping_stopped")

    async def health_check(self) -> bool:
        return self._scheduler.running

    async def purge_auth(self) -> None:
        try:
            await self._auth.purge_expired()
        except Exception as e:
            logger.error("auth_purge_failed", error=str(e))

    async def send_digest(self) -> None:
        if self._console is None:
            return
        reply = await self._console.digest()
        sent = await self._notifier.send(reply.text, parse_mode=reply.parse_mode)
        logger.info("daily_digest", sent=sent)
