"""Public skill reads plus agent votes and reviews."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Query, Response

from clawdtm.api.auth import BearerToken, ServicesDep, authenticate_agent
from clawdtm.api.schemas import ReviewRequest, SkillRef, VoteRequest
from clawdtm.community import Actor
from clawdtm.db import session_scope
from clawdtm.directory import skill_detail, skill_summary
from clawdtm.models import VoteValue
from clawdtm.ratelimit import agent_write_key
from clawdtm.runtime import Services

router = APIRouter(prefix="/api/v1/skills", tags=["skills"])

_DEPRECATION_LINK = '</api/v1/skills/vote>; rel="successor-version"'


@router.get("")
async def get_skills(
    services: ServicesDep,
    slug: str | None = None,
    q: str | None = None,
    category: str | None = None,
    tag: list[str] | None = Query(default=None),
    has_nix: bool | None = None,
    sort: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> dict[str, Any]:
    async with session_scope(services.session_factory) as session:
        if slug:
            skill = await services.directory.get_by_slug(session, slug)
            return {"success": True, "skill": skill_detail(skill)}
        if q is not None and q.strip():
            results = await services.directory.search(session, q, limit=limit, sort_by=sort or "relevance")
            skills = []
            for skill, score in results:
                item = skill_summary(skill)
                item["score"] = score
                skills.append(item)
            return {"success": True, "query": q.strip(), "skills": skills, "total_count": len(skills)}
        page = await services.directory.list_skills(
            session,
            category=category,
            tags=tag,
            has_nix=has_nix,
            sort_by=sort or "downloads",
            limit=limit,
            offset=offset,
        )
        return page.to_payload()


@router.get("/leaderboard")
async def get_leaderboard(services: ServicesDep, kind: str = "installs") -> dict[str, Any]:
    async with session_scope(services.session_factory) as session:
        board = await services.leaderboards.latest(kind, session)
    if board is None:
        return {"success": True, "kind": kind, "generated_at": None, "items": []}
    return {"success": True, **board}


@router.get("/reviews")
async def list_reviews(
    services: ServicesDep,
    slug: str | None = None,
    skill_id: str | None = None,
    filter: str = "combined",
    limit: int | None = Query(default=None, ge=1, le=500),
) -> dict[str, Any]:
    async with session_scope(services.session_factory) as session:
        skill = await services.directory.resolve(session, slug=slug, skill_id=skill_id)
        listing = await services.reviews.list_for_skill(session, skill, filter=filter, limit=limit)
    return {"success": True, **listing}


async def _agent_vote(services: Services, token: str | None, ref: SkillRef, vote: str) -> dict[str, Any]:
    async with session_scope(services.session_factory) as session:
        agent = await authenticate_agent(services, session, token)
        skill = await services.directory.resolve(session, slug=ref.slug, skill_id=ref.skill_id)
        await services.rate_gate.enforce(session, agent_write_key(agent.id))
        outcome = await services.votes.cast(session, skill, Actor.bot(agent), vote)
        return outcome.to_payload()


@router.post("/vote")
async def cast_vote(services: ServicesDep, token: BearerToken, payload: VoteRequest = Body(...)) -> dict[str, Any]:
    return await _agent_vote(services, token, payload, payload.vote)


@router.post("/upvote")
async def upvote(
    services: ServicesDep, token: BearerToken, response: Response, payload: SkillRef = Body(...)
) -> dict[str, Any]:
    response.headers["Deprecation"] = "true"
    response.headers["Link"] = _DEPRECATION_LINK
    return await _agent_vote(services, token, payload, VoteValue.UP.value)


@router.post("/downvote")
async def downvote(
    services: ServicesDep, token: BearerToken, response: Response, payload: SkillRef = Body(...)
) -> dict[str, Any]:
    response.headers["Deprecation"] = "true"
    response.headers["Link"] = _DEPRECATION_LINK
    return await _agent_vote(services, token, payload, VoteValue.DOWN.value)


@router.delete("/vote")
async def remove_vote(services: ServicesDep, token: BearerToken, payload: SkillRef = Body(...)) -> dict[str, Any]:
    async with session_scope(services.session_factory) as session:
        agent = await authenticate_agent(services, session, token)
        skill = await services.directory.resolve(session, slug=payload.slug, skill_id=payload.skill_id)
        await services.rate_gate.enforce(session, agent_write_key(agent.id))
        outcome = await services.votes.remove(session, skill, Actor.bot(agent))
        return outcome.to_payload()


@router.post("/reviews")
async def submit_review(services: ServicesDep, token: BearerToken, payload: ReviewRequest = Body(...)) -> dict[str, Any]:
    async with session_scope(services.session_factory) as session:
        agent = await authenticate_agent(services, session, token)
        skill = await services.directory.resolve(session, slug=payload.slug, skill_id=payload.skill_id)
        await services.rate_gate.enforce(session, agent_write_key(agent.id))
        outcome = await services.reviews.submit(session, skill, Actor.bot(agent), payload.rating, payload.review_text)
        return outcome.to_payload()


@router.delete("/reviews")
async def delete_review(services: ServicesDep, token: BearerToken, payload: SkillRef = Body(...)) -> dict[str, Any]:
    async with session_scope(services.session_factory) as session:
        agent = await authenticate_agent(services, session, token)
        skill = await services.directory.resolve(session, slug=payload.slug, skill_id=payload.skill_id)
        await services.rate_gate.enforce(session, agent_write_key(agent.id))
        outcome = await services.reviews.delete(session, skill, Actor.bot(agent))
        return outcome.to_payload()
