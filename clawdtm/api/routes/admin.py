"""Operator endpoints guarded by the ``X-Admin-Token`` header."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query

from clawdtm.api.auth import ServicesDep, require_admin
from clawdtm.api.schemas import ClaimRequest, DisplayNameRequest, HideRequest, OwnerAgentRequest
from clawdtm.catalog.sync import MODE_FULL, MODE_INCREMENTAL
from clawdtm.community import agent_status_payload
from clawdtm.db import session_scope
from clawdtm.errors import ValidationFailedError
from clawdtm.jobs import run_job

router = APIRouter(prefix="/api/v1/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/sync")
async def sync_status(services: ServicesDep) -> dict[str, Any]:
    state = await services.sync_state.load()
    return {"success": True, "state": state.to_dict()}


@router.post("/sync")
async def trigger_sync(
    services: ServicesDep,
    mode: str = MODE_INCREMENTAL,
    max_batches: int | None = Query(default=None, ge=1),
) -> dict[str, Any]:
    if mode not in (MODE_INCREMENTAL, MODE_FULL):
        raise ValidationFailedError("Invalid mode", hint="mode must be incremental or full")
    if max_batches is None:
        max_batches = services.config.sync.full_max_batches if mode == MODE_FULL else services.config.sync.max_batches
    report = await services.sync.run(max_batches=max_batches, mode=mode)
    return {"success": True, "report": report.to_dict()}


@router.post("/sync/reset")
async def reset_sync(services: ServicesDep) -> dict[str, Any]:
    state = await services.sync_state.reset()
    return {"success": True, "state": state.to_dict()}


@router.post("/sync/enrich")
async def enrich_authors(services: ServicesDep, limit: int = Query(default=50, ge=1, le=500)) -> dict[str, Any]:
    report = await services.sync.enrich_authors(limit=limit)
    return {"success": True, "report": report.to_dict()}


@router.get("/skills/hidden")
async def list_hidden(services: ServicesDep) -> dict[str, Any]:
    async with session_scope(services.session_factory) as session:
        hidden = await services.moderation.list_hidden(session)
    return {"success": True, "skills": hidden}


@router.post("/skills/{slug}/hide")
async def hide_skill(services: ServicesDep, slug: str, payload: HideRequest | None = Body(default=None)) -> dict[str, Any]:
    async with session_scope(services.session_factory) as session:
        skill = await services.moderation.hide(session, slug, payload.reason if payload else None)
        return {"success": True, "slug": skill.slug, "hidden": True, "hidden_reason": skill.hidden_reason}


@router.post("/skills/{slug}/unhide")
async def unhide_skill(services: ServicesDep, slug: str) -> dict[str, Any]:
    async with session_scope(services.session_factory) as session:
        skill = await services.moderation.unhide(session, slug)
        return {"success": True, "slug": skill.slug, "hidden": False}


@router.post("/jobs/{name}")
async def trigger_job(services: ServicesDep, name: str) -> dict[str, Any]:
    try:
        result = await run_job(services, name)
    except KeyError:
        raise ValidationFailedError("Unknown job", hint=f'No job named "{name}"') from None
    return {"success": True, "job": name, "result": result}


@router.put("/users/{external_id}/display-name")
async def set_display_name(services: ServicesDep, external_id: str, payload: DisplayNameRequest) -> dict[str, Any]:
    async with session_scope(services.session_factory) as session:
        user = await services.users.set_display_name(session, external_id, payload.display_name)
        return {"success": True, "display_name": user.display_name}


@router.get("/users/{external_id}/agents")
async def list_owned_agents(services: ServicesDep, external_id: str) -> dict[str, Any]:
    async with session_scope(services.session_factory) as session:
        owner = await services.users.ensure_user(session, external_id)
        agents = await services.agents.list_for_owner(session, owner)
        return {"success": True, "agents": [agent_status_payload(agent)["agent"] for agent in agents]}


@router.post("/users/{external_id}/agents")
async def create_owned_agent(services: ServicesDep, external_id: str, payload: OwnerAgentRequest) -> dict[str, Any]:
    async with session_scope(services.session_factory) as session:
        owner = await services.users.ensure_user(session, external_id)
        issued = await services.agents.create_for_owner(session, owner, payload.name, payload.description)
        return issued.to_payload()


@router.post("/users/{external_id}/agents/claim")
async def claim_agent(services: ServicesDep, external_id: str, payload: ClaimRequest) -> dict[str, Any]:
    async with session_scope(services.session_factory) as session:
        owner = await services.users.ensure_user(session, external_id)
        agent = await services.agents.claim(session, payload.claim_code, owner)
        return agent_status_payload(agent)


@router.post("/users/{external_id}/agents/{agent_id}/regenerate")
async def regenerate_agent_key(services: ServicesDep, external_id: str, agent_id: UUID) -> dict[str, Any]:
    async with session_scope(services.session_factory) as session:
        owner = await services.users.ensure_user(session, external_id)
        issued = await services.agents.regenerate_key(session, agent_id, owner)
        return issued.to_payload()


@router.delete("/users/{external_id}/agents/{agent_id}")
async def revoke_agent(services: ServicesDep, external_id: str, agent_id: UUID) -> dict[str, Any]:
    async with session_scope(services.session_factory) as session:
        owner = await services.users.ensure_user(session, external_id)
        agent = await services.agents.revoke(session, agent_id, owner)
        return {"success": True, "agent_id": str(agent.id), "revoked": True}
