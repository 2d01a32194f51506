"""Request authentication helpers for the clawdtm API."""

from __future__ import annotations

import hmac
from typing import Annotated

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from clawdtm.community import AUTH_HEADER_HINT
from clawdtm.errors import AgentAuthError, AuthorizationError, ForbiddenError
from clawdtm.models import BotAgent
from clawdtm.runtime import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


ServicesDep = Annotated[Services, Depends(get_services)]


def bearer_token(authorization: str | None = Header(default=None)) -> str | None:
    """Return the token of an ``Authorization: Bearer`` header, if any."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


BearerToken = Annotated[str | None, Depends(bearer_token)]


async def authenticate_agent(services: Services, session: AsyncSession, token: str | None) -> BotAgent:
    """Resolve the calling bot agent inside the request's unit of work."""
    if token is None:
        raise AgentAuthError("Missing authorization", hint=AUTH_HEADER_HINT)
    return await services.agents.authenticate(session, token)


def require_admin(
    services: ServicesDep,
    x_admin_token: str | None = Header(default=None, alias="X-Admin-Token"),
) -> None:
    expected = services.config.api.admin_token
    if not expected:
        raise ForbiddenError("Admin API disabled", hint="Set api.admin_token to enable it")
    if not x_admin_token or not hmac.compare_digest(x_admin_token.encode("utf-8"), expected.encode("utf-8")):
        raise AuthorizationError("Invalid admin token", hint="Include header: X-Admin-Token")
