"""End-user widget endpoints."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends

from support_relay.api.deps import get_relay
from support_relay.api.schemas import FeedbackIn, MessageIn
from support_relay.app import SupportRelayApp
from support_relay.engine.router import validate_client_id

router = APIRouter(prefix="/conversations", tags=["Chat"])


@router.post("/{client_id}/messages")
async def send_message(
    client_id: str, body: MessageIn, relay: SupportRelayApp = Depends(get_relay)
) -> dict[str, Any]:
    result = await relay.router.handle(client_id, body.text)
    return result.to_dict()


@router.get("/{client_id}/messages")
async def get_history(client_id: str, relay: SupportRelayApp = Depends(get_relay)) -> dict[str, Any]:
    history = await relay.sync.history(validate_client_id(client_id))
    return {"history": [m.to_dict() for m in history]}


@router.get("/{client_id}/poll")
async def poll(
    client_id: str, after: Optional[int] = None, relay: SupportRelayApp = Depends(get_relay)
) -> dict[str, Any]:
    result = await relay.sync.poll(validate_client_id(client_id), after)
    return result.to_dict()


@router.post("/{client_id}/feedback")
async def feedback(
    client_id: str, body: FeedbackIn, relay: SupportRelayApp = Depends(get_relay)
) -> dict[str, Any]:
    record = await relay.analytics.record_feedback(
        body.message_id,
        body.rating,
        comment=body.comment,
        client_id=validate_client_id(client_id),
    )
    return {"success": True, "messageId": record.message_id, "rating": record.rating}
