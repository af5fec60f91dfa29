"""Telegram control channel using python-telegram-bot v21+."""

from __future__ import annotations

from typing import Any, Optional

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, LinkPreviewOptions, Update
from telegram.error import TelegramError
from telegram.ext import Application, CallbackQueryHandler, MessageHandler as TGMessageHandler, filters

from support_relay.config import TelegramConfig
from support_relay.core.errors import UpstreamUnavailable
from support_relay.log import get_logger
from support_relay.messenger.base import NotificationChannel
from support_relay.messenger.commands import AdminConsole, ConsoleReply

logger = get_logger(__name__)


def build_markup(reply: ConsoleReply) -> Optional[InlineKeyboardMarkup]:
    if not reply.buttons:
        return None
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton(b.text, callback_data=b.callback_data, url=b.url) for b in row]
            for row in reply.buttons
        ]
    )


class TelegramChannel(NotificationChannel):
    """Pushes notifications to the admin and serves the admin console.

    In ``polling`` mode updates are pulled by the updater; in ``webhook`` mode
    the HTTP layer hands raw update payloads to :meth:`process_webhook`.
    """

    def __init__(self, config: TelegramConfig):
        self._config = config
        self._app: Application | None = None  # type: ignore[type-arg]
        self._console: AdminConsole | None = None

    @property
    def channel_name(self) -> str:
        return "telegram"

    def attach_console(self, console: AdminConsole) -> None:
        self._console = console

    async def start(self) -> None:
        if not self._config.token:
            raise ValueError("Telegram bot token not configured")

        builder = Application.builder().token(self._config.token)
        if self._config.mode == "webhook":
            builder = builder.updater(None)
        self._app = builder.build()

        self._app.add_handler(TGMessageHandler(filters.TEXT, self._on_telegram_message))
        self._app.add_handler(CallbackQueryHandler(self._on_callback_query))

        await self._app.initialize()
        await self._app.start()

        if self._config.mode == "webhook":
            if not self._config.webhook_url:
                raise ValueError("telegram.webhook_url is required in webhook mode")
            await self._app.bot.set_webhook(self._config.webhook_url)
            logger.info("telegram_webhook_set", url=self._config.webhook_url)
        else:
            await self._app.updater.start_polling(drop_pending_updates=True)  # type: ignore[union-attr]
        logger.info("telegram_channel_started", mode=self._config.mode)

    async def stop(self) -> None:
        if self._app:
            if self._app.updater and self._app.updater.running:
                await self._app.updater.stop()
            await self._app.stop()
            await self._app.shutdown()
            self._app = None
            logger.info("telegram_channel_stopped")

    async def send_text(self, chat_id: str, text: str, parse_mode: Optional[str] = None) -> None:
        await self._send(chat_id, text, parse_mode=parse_mode)

    async def send_reply(self, chat_id: str, reply: ConsoleReply) -> None:
        await self._send(
            chat_id,
            reply.text,
            parse_mode=reply.parse_mode or None,
            reply_markup=build_markup(reply),
        )

    async def health_check(self) -> bool:
        if not self._app:
            return False
        try:
            await self._app.bot.get_me()
        except TelegramError as e:
            logger.warning("telegram_health_check_failed", error=str(e))
            return False
        return True

    async def process_webhook(self, payload: dict[str, Any]) -> None:
        if not self._app:
            raise UpstreamUnavailable("Telegram channel not started")
        update = Update.de_json(payload, self._app.bot)
        await self._app.process_update(update)

    async def _send(self, chat_id: str, text: str, **kwargs: Any) -> None:
        if not self._app:
            raise UpstreamUnavailable("Telegram channel not started")
        try:
            await self._app.bot.send_message(
                chat_id=int(chat_id),
                text=text,
                link_preview_options=LinkPreviewOptions(is_disabled=True),
                **kwargs,
            )
        except (TelegramError, ValueError) as e:
            raise UpstreamUnavailable(f"telegram: {e}") from e

    async def _on_telegram_message(self, update: Update, context: Any) -> None:
        if not update.message or not update.message.text or not self._console:
            return
        chat_id = str(update.message.chat_id)
        reply = await self._console.handle_text(chat_id, update.message.text)
        await self._reply_safely(chat_id, reply)

    async def _on_callback_query(self, update: Update, context: Any) -> None:
        query = update.callback_query
        if not query or not query.message or not self._console:
            return
        await query.answer()
        chat_id = str(query.message.chat.id)
        reply = await self._console.handle_callback(chat_id, query.data or "")
        if reply is not None:
            await self._reply_safely(chat_id, reply)

    async def _reply_safely(self, chat_id: str, reply: ConsoleReply) -> None:
        try:
            await self.send_reply(chat_id, reply)
        except UpstreamUnavailable as e:
            logger.error("telegram_reply_failed", chat_id=chat_id, error=e.message)
