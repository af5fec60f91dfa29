"""Two-step admin authentication: one-time code over Telegram, then a session token."""

from __future__ import annotations

import asyncio
import hmac
import re
import secrets
from datetime import timedelta

from support_relay.core.clock import Clock
from support_relay.core.errors import (
    CodeExpired,
    CodeMismatch,
    CodeNotFound,
    Forbidden,
    SessionExpired,
    SessionNotFound,
    UpstreamUnavailable,
)
from support_relay.log import get_logger
from support_relay.messenger.base import NotificationChannel
from support_relay.storage.auth_repo import AuthRepository
from support_relay.storage.models import AdminSession, PendingCode

logger = get_logger(__name__)

CODE_PATTERN = re.compile(r"[0-9]{6}")


def generate_code() -> str:
    """A uniformly random 6-digit numeric code (100000-999999)."""
    return str(100000 + secrets.randbelow(900000))


class AdminSessionAuthority:
    """Issues one-time codes and fixed-TTL session tokens for the single configured admin.

    Sessions expire ``session_ttl`` after creation and are never extended.
    """

    def __init__(
        self,
        repo: AuthRepository,
        channel: NotificationChannel,
        clock: Clock,
        admin_identity: str,
        code_ttl: timedelta = timedelta(minutes=5),
        session_ttl: timedelta = timedelta(hours=24),
        send_timeout: float = 10.0,
    ):
        self._repo = repo
        self._channel = channel
        self._clock = clock
        self._admin_identity = admin_identity
        self._code_ttl_ms = int(code_ttl.total_seconds() * 1000)
        self._session_ttl_ms = int(session_ttl.total_seconds() * 1000)
        self._send_timeout = send_timeout

    def _check_identity(self, identity: str) -> None:
        if not self._admin_identity or identity != self._admin_identity:
            logger.warning("admin_identity_rejected", identity=identity)
            raise Forbidden("Unauthorized")

    async def request_code(self, identity: str) -> bool:
        """Generate and push a code. Returns False, without detail, if the push fails."""
        self._check_identity(identity)

        code = generate_code()
        expires = self._clock.now_ms() + self._code_ttl_ms
        await self._repo.put_code(PendingCode(identity=identity, code=code, expires=expires))

        message = (
            "🔐 HayDay Admin Panel\n\n"
            f"🔑 Giriş kodunuz: {code}\n"
            f"⏰ {self._code_ttl_ms // 60000} dakika geçerli"
        )
        try:
            await asyncio.wait_for(
                self._channel.send_text(identity, message), timeout=self._send_timeout
            )
        except (UpstreamUnavailable, asyncio.TimeoutError) as e:
            logger.error("auth_code_push_failed", identity=identity, error=str(e))
            await self._repo.delete_code(identity)
            return False

        logger.info("auth_code_sent", identity=identity)
        return True

    async def verify_code(self, identity: str, code: str) -> AdminSession:
        self._check_identity(identity)

        pending = await self._repo.get_code(identity)
        if pending is None:
            raise CodeNotFound()
        if self._clock.now_ms() > pending.expires:
            await self._repo.delete_code(identity)
            logger.info("auth_code_expired", identity=identity)
            raise CodeExpired()
        candidate = code.strip()
        if not CODE_PATTERN.fullmatch(candidate) or not hmac.compare_digest(
            pending.code.encode(), candidate.encode()
        ):
            logger.warning("auth_code_mismatch", identity=identity)
            raise CodeMismatch()

        await self._repo.delete_code(identity)
        created = self._clock.now_ms()
        session = AdminSession(
            token=secrets.token_urlsafe(32),
            admin_id=identity,
            created=created,
            expires=created + self._session_ttl_ms,
        )
        await self._repo.put_session(session)
        logger.info("admin_session_created", admin_id=identity, expires=session.expires)
        return session

    async def verify_session(self, token: str | None) -> AdminSession:
        if not token:
            raise SessionNotFound()
        session = await self._repo.get_session(token)
        if session is None:
            raise SessionNotFound()
        if self._clock.now_ms() > session.expires:
            raise SessionExpired()
        return session

    async def purge_expired(self) -> tuple[int, int]:
        codes, sessions = await self._repo.purge_expired(self._clock.now_ms())
        if codes or sessions:
            logger.info("auth_purged", codes=codes, sessions=sessions)
        return codes, sessions
