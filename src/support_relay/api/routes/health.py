from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from support_relay.api.deps import get_relay
from support_relay.app import SupportRelayApp
from support_relay.log import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/ping")
async def ping(relay: SupportRelayApp = Depends(get_relay)) -> dict[str, Any]:
    return {"status": "ok", "timestamp": relay.clock.now_ms()}


@router.get("/health")
async def health(relay: SupportRelayApp = Depends(get_relay)) -> JSONResponse:
    """Component status. 503 only when the message store is unreachable."""
    try:
        await relay.db.ping()
        database = True
    except Exception as e:
        logger.error("health_database_failed", error=str(e))
        database = False

    checks: dict[str, Any] = {
        "database": database,
        "ai": relay.ai_client.backend_name if relay.ai_client else None,
        "channel": relay.channel.channel_name if relay.channel.enabled else None,
        "scheduler": await relay.housekeeping.health_check() if relay.housekeeping else None,
    }
    return JSONResponse(
        status_code=200 if database else 503,
        content={
            "status": "ok" if database else "degraded",
            "uptime": round(relay.uptime_seconds(), 1),
            "patterns": len(relay.matcher.patterns),
            "checks": checks,
        },
    )
