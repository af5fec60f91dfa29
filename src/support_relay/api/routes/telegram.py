"""Telegram webhook receiver, used when ``telegram.mode`` is ``webhook``."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request

from support_relay.api.deps import get_relay
from support_relay.app import SupportRelayApp
from support_relay.core.errors import NotFound, UpstreamUnavailable
from support_relay.log import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Telegram"])


@router.post("/webhook/telegram")
async def telegram_webhook(request: Request, relay: SupportRelayApp = Depends(get_relay)) -> dict[str, Any]:
    process = getattr(relay.channel, "process_webhook", None)
    if process is None or relay.config.telegram.mode != "webhook":
        raise NotFound("Telegram webhook is not enabled")

    payload = await request.json()
    try:
        await process(payload)
    except UpstreamUnavailable as e:
        # Telegram retries non-2xx deliveries; acknowledge and log instead
        logger.error("telegram_webhook_failed", error=e.message)
    return {"ok": True}
