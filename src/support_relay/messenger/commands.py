"""Admin console served over the Telegram control channel.

Rendering is independent of python-telegram-bot: every command returns a
``ConsoleReply`` (HTML text plus optional inline buttons) that the channel
adapter turns into a Telegram message.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Awaitable, Callable, Optional

from support_relay.ai.client import AIClient
from support_relay.core.clock import Clock, ms_to_datetime
from support_relay.core.types import Role, StatsPeriod
from support_relay.engine.analytics import AnalyticsAggregator
from support_relay.engine.directory import ConversationDirectory
from support_relay.log import get_logger
from support_relay.storage.database import Database

logger = get_logger(__name__)

ACTIVE_LIST_LIMIT = 10

_ROLE_ICONS = {
    Role.USER.value: "👤",
    Role.BOT.value: "🤖",
    Role.AI.value: "🧠",
    Role.ADMIN.value: "👨‍💼",
    Role.SYSTEM.value: "⚙️",
}


@dataclass(frozen=True)
class Button:
    text: str
    callback_data: Optional[str] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class ConsoleReply:
    text: str
    buttons: list[list[Button]] = field(default_factory=list)
    parse_mode: str = "HTML"


def _percent(part: int, total: int) -> int:
    return round(part / total * 100) if total else 0


class AdminConsole:
    """Handles commands from the admin's Telegram chat. Other chats are refused."""

    def __init__(
        self,
        admin_chat_id: str,
        analytics: AnalyticsAggregator,
        directory: ConversationDirectory,
        db: Database,
        clock: Clock,
        public_url: str,
        ai_client: AIClient | None = None,
    ):
        self._admin_chat_id = admin_chat_id
        self._analytics = analytics
        self._directory = directory
        self._db = db
        self._clock = clock
        self._public_url = public_url.rstrip("/")
        self._ai_client = ai_client
        self._commands: dict[str, Callable[[], Awaitable[ConsoleReply]]] = {
            "start": self.start,
            "help": self.help,
            "stats": self.stats,
            "active": self.active,
            "ping": self.ping,
            "admin": self.admin,
        }

    def is_admin(self, chat_id: str) -> bool:
        return bool(self._admin_chat_id) and chat_id == self._admin_chat_id

    async def handle_text(self, chat_id: str, text: str) -> ConsoleReply:
        """Dispatch a message from ``chat_id``; ``/command arg...`` or plain text."""
        if not self.is_admin(chat_id):
            logger.warning("telegram_unauthorized_chat", chat_id=chat_id)
            return ConsoleReply(text="❌ Bu bot sadece yetkilendirilmiş kullanıcılar için.", parse_mode="")

        text = text.strip()
        if not text.startswith("/"):
            return ConsoleReply(
                text=(
                    "💬 <b>Mesaj Alındı</b>\n\n"
                    "🤖 Ben bir bot olduğum için sohbet edemem.\n\n"
                    "Komutlar için /help yazın."
                )
            )

        # "/stats@my_bot extra" -> "stats"
        command = text[1:].split()[0].split("@")[0].lower() if len(text) > 1 else ""
        handler = self._commands.get(command)
        if handler is None:
            return ConsoleReply(
                text=f"❓ Bilinmeyen komut: /{command}\n\nYardım için /help yazın.", parse_mode=""
            )
        return await self._run(command, handler)

    async def handle_callback(self, chat_id: str, data: str) -> Optional[ConsoleReply]:
        """Inline button presses carry ``cmd_<command>``."""
        if not self.is_admin(chat_id) or not data.startswith("cmd_"):
            return None
        command = data.removeprefix("cmd_")
        handler = self._commands.get(command)
        if handler is None:
            return None
        return await self._run(command, handler)

    async def _run(self, command: str, handler: Callable[[], Awaitable[ConsoleReply]]) -> ConsoleReply:
        try:
            return await handler()
        except Exception as e:
            logger.exception("telegram_command_failed", command=command)
            return ConsoleReply(text=f"❌ Komut çalıştırılamadı: {e}", parse_mode="")

    async def start(self) -> ConsoleReply:
        return ConsoleReply(
            text=(
                "🤖 <b>HayDay Chat Bot'a Hoş Geldiniz!</b>\n\n"
                "Ben HayDay Malzemeleri'nin resmi destek botuyum.\n\n"
                "<b>📋 Mevcut Komutlar:</b>\n"
                "/help - Yardım menüsü\n"
                "/stats - Sistem istatistikleri\n"
                "/active - Aktif sohbetler\n"
                "/admin - Admin paneli\n"
                "/ping - Sistem durumu\n\n"
                f'🔗 <a href="{self._public_url}">Chat Sistemi</a> • '
                f'<a href="{self._public_url}/admin.html">Admin Panel</a>'
            )
        )

    async def help(self) -> ConsoleReply:
        return ConsoleReply(
            text=(
                "🆘 <b>HayDay Chat Bot - Yardım</b>\n\n"
                "<b>📊 İstatistik Komutları:</b>\n"
                "/stats - Günlük mesaj istatistikleri\n"
                "/active - Aktif sohbet listesi\n"
                "/ping - Sistem sağlık durumu\n\n"
                "<b>🛠️ Yönetim Komutları:</b>\n"
                "/admin - Admin paneline git\n"
                "/start - Ana menü\n"
                "/help - Bu yardım mesajı"
            ),
            buttons=[
                [Button("📊 İstatistikler", callback_data="cmd_stats"), Button("💬 Aktif Chatler", callback_data="cmd_active")],
                [Button("🛠️ Admin Panel", url=f"{self._public_url}/admin.html")],
            ],
        )

    async def stats(self) -> ConsoleReply:
        today_date = self._analytics.today()
        yesterday_date = today_date - timedelta(days=1)
        today = await self._analytics.day(today_date)
        yesterday = await self._analytics.day(yesterday_date)
        week = await self._analytics.stats_for_period(StatsPeriod.WEEKLY)

        diff = today.total - yesterday.total
        trend = "📈" if diff > 0 else "📉" if diff < 0 else "➡️"
        text = (
            "📊 <b>Sistem İstatistikleri</b>\n\n"
            f"<b>📈 Bugün ({today_date:%d/%m})</b>\n"
            f"💬 Toplam: {today.total} mesaj\n"
            f"🤖 ChatBot: {today.bot} ({_percent(today.bot, today.total)}%)\n"
            f"🧠 AI: {today.ai} ({_percent(today.ai, today.total)}%)\n"
            f"👨‍💼 Admin: {today.admin} ({_percent(today.admin, today.total)}%)\n\n"
            f"<b>📊 Dün ({yesterday_date:%d/%m})</b>\n"
            f"💬 Toplam: {yesterday.total} mesaj\n"
            f"{trend} {diff:+d}\n\n"
            "<b>📅 Bu Hafta</b>\n"
            f"💬 Toplam: {week.totals.total} mesaj\n"
            f"📊 Günlük Ort: {round(week.totals.total / 7)} mesaj\n\n"
            f"⏰ Son güncelleme: {self._clock.now():%H:%M:%S} UTC"
        )
        return ConsoleReply(
            text=text,
            buttons=[[Button("🔄 Yenile", callback_data="cmd_stats"), Button("💬 Aktif Chatler", callback_data="cmd_active")]],
        )

    async def active(self) -> ConsoleReply:
        active = await self._directory.active()
        refresh = [Button("🔄 Yenile", callback_data="cmd_active")]
        if not active:
            return ConsoleReply(
                text="🌙 <b>Aktif sohbet yok</b>\n\nSon 30 dakikada hiç mesaj alınmadı.",
                buttons=[refresh],
            )

        lines = [f"💬 <b>Aktif Sohbetler ({len(active)})</b>\n"]
        for index, summary in enumerate(active[:ACTIVE_LIST_LIMIT], start=1):
            icons = "".join(_ROLE_ICONS.get(role, "❓") for role in summary.roles)
            last = summary.last_message
            content = last.content if last else "Mesaj yok"
            excerpt = content[:40] + ("..." if len(content) > 40 else "")
            lines.append(f"{index}. <b>{summary.client_id[-6:]}</b> {icons}")
            lines.append(f"   ⏰ {ms_to_datetime(summary.last_activity):%H:%M} • {summary.message_count} mesaj")
            lines.append(f'   💭 "{excerpt}"\n')
        if len(active) > ACTIVE_LIST_LIMIT:
            lines.append(f"<i>... ve {len(active) - ACTIVE_LIST_LIMIT} sohbet daha</i>\n")
        lines.append(f"🔄 Son güncelleme: {self._clock.now():%H:%M:%S} UTC")

        return ConsoleReply(
            text="\n".join(lines),
            buttons=[refresh + [Button("📊 İstatistikler", callback_data="cmd_stats")]],
        )

    async def ping(self) -> ConsoleReply:
        started = time.perf_counter()
        await self._db.ping()
        db_ms = (time.perf_counter() - started) * 1000

        if self._ai_client is None:
            ai_status = "❓ Yapılandırılmadı"
        elif await self._ai_client.health_check():
            ai_status = "✅ Bağlı"
        else:
            ai_status = "❌ Bağlantı sorunu"

        performance = await self._analytics.performance()
        text = (
            "🏥 <b>Sistem Durumu</b>\n\n"
            f"💾 Database: {db_ms:.1f}ms\n"
            f"🧠 AI: {ai_status}\n"
            f"📈 Mesaj Sayısı: {performance.total_messages}\n"
            f"⏱️ Ort. yanıt süresi: {performance.average_response_ms / 1000:.1f}s\n\n"
            f"🕐 Kontrol zamanı: {self._clock.now():%H:%M:%S} UTC"
        )
        return ConsoleReply(text=text, buttons=[[Button("🔄 Tekrar Test Et", callback_data="cmd_ping")]])

    async def admin(self) -> ConsoleReply:
        admin_url = f"{self._public_url}/admin.html"
        return ConsoleReply(
            text=(
                "🛠️ <b>HayDay Chat Admin</b>\n\n"
                "<b>🔗 Hızlı Bağlantılar:</b>\n"
                f'• <a href="{admin_url}">Admin Dashboard</a>\n'
                f'• <a href="{self._public_url}">Chat Sistemi</a>\n'
                f'• <a href="{self._public_url}/login.html">Admin Girişi</a>'
            ),
            buttons=[
                [Button("🛠️ Admin Panel", url=admin_url), Button("💬 Chat Sistemi", url=self._public_url)],
                [Button("📊 İstatistikler", callback_data="cmd_stats"), Button("🏥 Sistem Durumu", callback_data="cmd_ping")],
            ],
        )

    async def digest(self) -> ConsoleReply:
        """Daily summary pushed by the housekeeping service."""
        return await self.stats()
