"""Bot agent registration and profile endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body
from fastapi.responses import JSONResponse

from clawdtm.api.auth import BearerToken, ServicesDep, authenticate_agent
from clawdtm.api.schemas import RegisterAgentRequest
from clawdtm.community import agent_status_payload
from clawdtm.db import session_scope
from clawdtm.errors import ValidationFailedError

router = APIRouter(prefix="/api/v1/agents", tags=["agents"])


@router.post("/register", status_code=201)
async def register_agent(services: ServicesDep, payload: RegisterAgentRequest = Body(...)) -> JSONResponse:
    if not payload.name:
        raise ValidationFailedError("Missing required field: name", hint="Provide a name for your agent")
    async with session_scope(services.session_factory) as session:
        issued = await services.agents.register(session, payload.name, payload.description)
    return JSONResponse(status_code=201, content=issued.to_payload())


async def _status(services: ServicesDep, token: BearerToken) -> dict[str, Any]:
    async with session_scope(services.session_factory) as session:
        agent = await authenticate_agent(services, session, token)
        return agent_status_payload(agent)


@router.get("/status")
async def agent_status(services: ServicesDep, token: BearerToken) -> dict[str, Any]:
    return await _status(services, token)


@router.get("/me")
async def agent_me(services: ServicesDep, token: BearerToken) -> dict[str, Any]:
    return await _status(services, token)
