"""FastAPI dependencies: the running application and the admin session."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from support_relay.app import SupportRelayApp
from support_relay.storage.models import AdminSession

# Missing credentials are reported by the session authority, not by FastAPI
security = HTTPBearer(auto_error=False)


def get_relay(request: Request) -> SupportRelayApp:
    return request.app.state.relay


def bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    return credentials.credentials if credentials else None


async def require_session(
    token: Optional[str] = Depends(bearer_token),
    relay: SupportRelayApp = Depends(get_relay),
) -> AdminSession:
    """Resolve the bearer token to a live admin session or fail with 401."""
    return await relay.auth.verify_session(token)
