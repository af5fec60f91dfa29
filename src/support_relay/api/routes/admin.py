"""Admin console endpoints. Everything except the login pair needs a bearer session."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from support_relay.api.deps import bearer_token, get_relay, require_session
from support_relay.api.schemas import PatternIn, RequestCodeIn, RespondIn, VerifyCodeIn
from support_relay.app import SupportRelayApp
from support_relay.core.types import StatsPeriod
from support_relay.storage.models import AdminSession

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/auth/request-code")
async def request_code(body: RequestCodeIn, relay: SupportRelayApp = Depends(get_relay)) -> dict[str, Any]:
    return {"success": await relay.auth.request_code(body.identity.strip())}


@router.post("/auth/verify-code")
async def verify_code(body: VerifyCodeIn, relay: SupportRelayApp = Depends(get_relay)) -> dict[str, Any]:
    session = await relay.auth.verify_code(body.identity.strip(), body.code)
    return {"token": session.token, "expires": session.expires}


@router.get("/poll")
async def poll_all(
    after: Optional[int] = None,
    token: Optional[str] = Depends(bearer_token),
    relay: SupportRelayApp = Depends(get_relay),
) -> dict[str, Any]:
    result = await relay.sync.poll_admin(after, token)
    return result.to_dict()


@router.post("/conversations/{conversation_id}/takeover")
async def takeover(
    conversation_id: str,
    token: Optional[str] = Depends(bearer_token),
    relay: SupportRelayApp = Depends(get_relay),
) -> dict[str, Any]:
    greeting = await relay.takeovers.takeover(conversation_id, token)
    return {"success": True, "mode": "human", "message": greeting.to_dict()}


@router.post("/conversations/{conversation_id}/respond")
async def respond(
    conversation_id: str,
    body: RespondIn,
    token: Optional[str] = Depends(bearer_token),
    relay: SupportRelayApp = Depends(get_relay),
) -> dict[str, Any]:
    message = await relay.takeovers.respond(conversation_id, token, body.text)
    return {"success": True, "message": message.to_dict()}


@router.post("/conversations/{conversation_id}/release")
async def release(
    conversation_id: str,
    token: Optional[str] = Depends(bearer_token),
    relay: SupportRelayApp = Depends(get_relay),
) -> dict[str, Any]:
    notice = await relay.takeovers.release(conversation_id, token)
    return {"success": True, "mode": "auto", "message": notice.to_dict()}


@router.get("/conversations")
async def list_conversations(
    page: int = 1,
    limit: int = 20,
    text_filter: Optional[str] = Query(default=None, alias="filter"),
    session: AdminSession = Depends(require_session),
    relay: SupportRelayApp = Depends(get_relay),
) -> dict[str, Any]:
    result = await relay.directory.list_conversations(page=page, limit=limit, text_filter=text_filter)
    return result.to_dict()


@router.get("/dashboard")
async def dashboard(
    session: AdminSession = Depends(require_session),
    relay: SupportRelayApp = Depends(get_relay),
) -> dict[str, Any]:
    return await relay.directory.dashboard()


@router.get("/analytics")
async def analytics(
    period: StatsPeriod = StatsPeriod.DAILY,
    session: AdminSession = Depends(require_session),
    relay: SupportRelayApp = Depends(get_relay),
) -> dict[str, Any]:
    stats = await relay.analytics.stats_for_period(period)
    return stats.to_dict()


@router.get("/analytics/performance")
async def performance(
    session: AdminSession = Depends(require_session),
    relay: SupportRelayApp = Depends(get_relay),
) -> dict[str, Any]:
    report = await relay.analytics.performance()
    return report.to_dict()


@router.post("/patterns")
async def add_pattern(
    body: PatternIn,
    session: AdminSession = Depends(require_session),
    relay: SupportRelayApp = Depends(get_relay),
) -> dict[str, Any]:
    pattern = await relay.matcher.train(
        body.keywords, body.response, confidence=body.confidence, admin_id=session.admin_id
    )
    return {"success": True, "pattern": pattern.to_dict()}
