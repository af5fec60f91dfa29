"""Per-client-IP request budget for the public chat and admin API."""

from __future__ import annotations

import math
import time

from fastapi import Request
from fastapi.responses import JSONResponse
from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

from support_relay.config import RateLimitConfig
from support_relay.log import get_logger

logger = get_logger(__name__)

LIMITED_PREFIXES = ("/conversations", "/admin", "/patterns")
TOO_MANY_REQUESTS = "Too many requests, please try again later."


class RequestLimiter:
    """Fixed window of ``max_requests`` per ``window_seconds`` for each client address.

    Health checks, CORS preflights and the Telegram webhook are not counted.
    """

    def __init__(self, config: RateLimitConfig):
        self._config = config
        self._item = RateLimitItemPerSecond(config.max_requests, config.window_seconds)
        self._limiter = FixedWindowRateLimiter(MemoryStorage())

    def applies_to(self, path: str) -> bool:
        return self._config.enabled and path.startswith(LIMITED_PREFIXES)

    def hit(self, key: str) -> bool:
        return self._limiter.hit(self._item, key)

    def retry_after(self, key: str) -> int:
        reset_time, _ = self._limiter.get_window_stats(self._item, key)
        return max(1, math.ceil(reset_time - time.time()))

    def rejection(self, request: Request) -> JSONResponse | None:
        """Count the request; return a 429 response once the budget is spent."""
        if request.method == "OPTIONS" or not self.applies_to(request.url.path):
            return None
        key = request.client.host if request.client else "unknown"
        if self.hit(key):
            return None
        logger.warning("rate_limited", client=key, path=request.url.path)
        return JSONResponse(
            status_code=429,
            content={"error": TOO_MANY_REQUESTS},
            headers={"Retry-After": str(self.retry_after(key))},
        )
