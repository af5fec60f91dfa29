from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from support_relay.api.deps import get_relay
from support_relay.api.schemas import LearnIn
from support_relay.app import SupportRelayApp
from support_relay.engine.takeover import validate_text

router = APIRouter(prefix="/patterns", tags=["Patterns"])


@router.get("")
async def list_patterns(relay: SupportRelayApp = Depends(get_relay)) -> dict[str, Any]:
    return {
        "patterns": [p.to_dict() for p in relay.matcher.patterns],
        "stats": relay.matcher.stats(),
    }


@router.post("/learn")
async def learn(body: LearnIn, relay: SupportRelayApp = Depends(get_relay)) -> dict[str, Any]:
    user_message = validate_text(body.interaction.user_message, field="interaction.userMessage")
    pattern = await relay.matcher.learn(user_message, body.interaction.ai_response, body.feedback)
    return {"success": True, "pattern": pattern.to_dict() if pattern else None}
