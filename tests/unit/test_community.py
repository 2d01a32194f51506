"""Unit tests for bot agents, users, votes and reviews."""

from __future__ import annotations

import pytest

from clawdtm.community import (
    API_KEY_PREFIX,
    Actor,
    AgentService,
    ReviewService,
    generate_api_key,
    hash_api_key,
    parse_vote,
    validate_display_name,
)
from clawdtm.errors import AgentAuthError, ForbiddenError, NotFoundError, RateLimitedError, ValidationFailedError
from clawdtm.models import AgentStatus, VoteValue
from clawdtm.ratelimit import RateGate


# --- agents -----------------------------------------------------------------


def test_api_keys_have_prefix_and_fixed_length() -> None:
    key = generate_api_key()
    assert key.startswith(API_KEY_PREFIX)
    assert len(key) == len(API_KEY_PREFIX) + 40
    assert generate_api_key() != key
    assert len(hash_api_key(key)) == 64


@pytest.mark.asyncio
async def test_register_issues_key_and_claim_code(services, session) -> None:
    issued = await services.agents.register(session, "  scout-bot ", "finds things")
    agent = issued.agent
    assert agent.name == "scout-bot"
    assert agent.status == AgentStatus.UNVERIFIED.value
    assert agent.claim_code.startswith("claw-")
    assert agent.api_key_hash == hash_api_key(issued.api_key)
    assert agent.api_key_prefix == issued.api_key[:16] + "..."

    payload = issued.to_payload()
    assert payload["agent"]["api_key"] == issued.api_key
    assert payload["agent"]["claim_code"] == agent.claim_code
    assert "SAVE YOUR API KEY" in payload["important"]


@pytest.mark.asyncio
@pytest.mark.parametrize("name", [None, "", "x", " y ", "n" * 51])
async def test_register_rejects_bad_names(services, session, name) -> None:
    with pytest.raises(ValidationFailedError, match="Invalid name"):
        await services.agents.register(session, name)


@pytest.mark.asyncio
async def test_registration_is_rate_limited(session, clock) -> None:
    agents = AgentService(RateGate(now_fn=clock), registrations_per_window=2, window_seconds=60, now_fn=clock)
    await agents.register(session, "bot-one")
    await agents.register(session, "bot-two")
    with pytest.raises(RateLimitedError) as exc_info:
        await agents.register(session, "bot-three")
    assert exc_info.value.retry_after == 30

    clock.advance(seconds=30)
    await agents.register(session, "bot-three")


@pytest.mark.asyncio
async def test_authenticate(services, session) -> None:
    issued = await services.agents.register(session, "auth-bot")
    assert (await services.agents.authenticate(session, issued.api_key)).id == issued.agent.id

    with pytest.raises(AgentAuthError, match="Missing authorization"):
        await services.agents.authenticate(session, None)
    with pytest.raises(AgentAuthError, match="Invalid API key format"):
        await services.agents.authenticate(session, "sk_live_nope")
    with pytest.raises(AgentAuthError, match="^Invalid API key$"):
        await services.agents.authenticate(session, generate_api_key())


@pytest.mark.asyncio
async def test_claim_verifies_agent(services, session) -> None:
    issued = await services.agents.register(session, "claimable")
    owner = await services.users.ensure_user(session, "user_owner")

    agent = await services.agents.claim(session, f" {issued.agent.claim_code} ", owner)
    assert agent.is_verified
    assert agent.owner_user_id == owner.id
    assert agent.claim_code is None

    with pytest.raises(NotFoundError):
        await services.agents.claim(session, "claw-unknown", owner)


@pytest.mark.asyncio
async def test_owner_can_regenerate_and_revoke(services, session) -> None:
    owner = await services.users.ensure_user(session, "user_owner")
    stranger = await services.users.ensure_user(session, "user_stranger")
    issued = await services.agents.create_for_owner(session, owner, "owned-bot")
    assert issued.agent.is_verified
    assert issued.agent.claim_code is None
    assert "claim_code" not in issued.to_payload()["agent"]

    with pytest.raises(ForbiddenError):
        await services.agents.revoke(session, issued.agent.id, stranger)

    fresh = await services.agents.regenerate_key(session, issued.agent.id, owner)
    assert "old key no longer works" in fresh.notice
    with pytest.raises(AgentAuthError):
        await services.agents.authenticate(session, issued.api_key)
    await services.agents.authenticate(session, fresh.api_key)

    assert [agent.id for agent in await services.agents.list_for_owner(session, owner)] == [issued.agent.id]
    await services.agents.revoke(session, issued.agent.id, owner)
    with pytest.raises(AgentAuthError, match="revoked"):
        await services.agents.authenticate(session, fresh.api_key)
    assert await services.agents.list_for_owner(session, owner) == []


# --- votes ------------------------------------------------------------------


def test_parse_vote() -> None:
    assert parse_vote(" UP ") is VoteValue.UP
    with pytest.raises(ValidationFailedError):
        parse_vote("sideways")


@pytest.mark.asyncio
async def test_vote_lifecycle_updates_counters(services, session, add_skill) -> None:
    skill = await add_skill("voted")
    human = Actor.human(await services.users.ensure_user(session, "user_1"))

    outcome = await services.votes.cast(session, skill, human, "up")
    assert outcome.action == "created"
    assert (skill.upvotes, skill.human_upvotes, skill.downvotes) == (1, 1, 0)

    assert (await services.votes.cast(session, skill, human, VoteValue.UP)).action == "unchanged"

    outcome = await services.votes.cast(session, skill, human, "down")
    assert outcome.action == "changed"
    assert (skill.upvotes, skill.downvotes, skill.net_score) == (0, 1, -1)
    assert outcome.to_payload()["votes"]["human"] == {"upvotes": 0, "downvotes": 1}

    assert (await services.votes.remove(session, skill, human)).action == "removed"
    assert (skill.upvotes, skill.downvotes) == (0, 0)
    assert (await services.votes.remove(session, skill, human)).action == "not_found"


@pytest.mark.asyncio
async def test_bot_votes_split_by_verification(services, session, add_skill) -> None:
    skill = await add_skill("bot-voted")
    owner = await services.users.ensure_user(session, "user_owner")
    unverified = (await services.agents.register(session, "stray-bot")).agent
    verified = (await services.agents.create_for_owner(session, owner, "good-bot")).agent

    await services.votes.cast(session, skill, Actor.bot(unverified), "up")
    await services.votes.cast(session, skill, Actor.bot(verified), "up")
    await services.votes.cast(session, skill, Actor.bot(verified), "up")

    assert (skill.upvotes, skill.bot_upvotes, skill.verified_bot_upvotes, skill.human_upvotes) == (2, 2, 1, 0)
    assert verified.vote_count == 1
    assert verified.last_active_at is not None
    assert await services.votes.vote_of(session, skill, Actor.bot(verified)) == "up"


# --- reviews ----------------------------------------------------------------


@pytest.mark.parametrize("rating", [0, 6, 3.5, True, "5", None, float("nan"), float("inf"), float("-inf"), 10**400])
def test_review_rating_must_be_integer_in_range(rating) -> None:
    with pytest.raises(ValidationFailedError, match="Rating must be an integer"):
        ReviewService().validate(rating, "")


def test_review_text_is_trimmed_and_capped() -> None:
    reviews = ReviewService()
    assert reviews.validate(4.0, "  solid  ") == (4, "solid")
    assert reviews.validate(5, None) == (5, "")
    with pytest.raises(ValidationFailedError, match="at most 1000"):
        reviews.validate(5, "x" * 1001)


@pytest.mark.asyncio
async def test_reviews_aggregate_by_reviewer_type(services, session, add_skill, clock) -> None:
    skill = await add_skill("reviewed")
    user = await services.users.ensure_user(session, "user_1")
    await services.users.set_display_name(session, "user_1", "Jane")
    bot = (await services.agents.register(session, "critic-bot")).agent

    created = await services.reviews.submit(session, skill, Actor.human(user), 5, "great")
    assert created.action == "created"
    clock.advance(minutes=1)
    bot_review = await services.reviews.submit(session, skill, Actor.bot(bot), 2, "meh")
    assert bot_review.to_payload()["note"].startswith("Your agent is unverified")

    assert (skill.review_count, skill.human_review_count, skill.bot_review_count) == (2, 1, 1)
    assert skill.avg_rating == 3.5
    assert skill.avg_rating_human == 5.0
    assert skill.avg_rating_bot == 2.0
    assert skill.avg_rating_verified_bot is None

    updated = await services.reviews.submit(session, skill, Actor.bot(bot), 4, "better now")
    assert updated.action == "updated"
    assert "note" not in updated.to_payload()
    assert skill.review_count == 2
    assert skill.avg_rating == 4.5

    listing = await services.reviews.list_for_skill(session, skill)
    assert [review["reviewer_name"] for review in listing["reviews"]] == ["critic-bot", "Jane"]
    human_only = await services.reviews.list_for_skill(session, skill, filter="human")
    assert [review["rating"] for review in human_only["reviews"]] == [5]
    assert human_only["stats"]["avg_rating_human"] == 5.0

    with pytest.raises(ValidationFailedError, match="Invalid filter"):
        await services.reviews.list_for_skill(session, skill, filter="robots")


@pytest.mark.asyncio
async def test_deleting_review_resets_averages(services, session, add_skill) -> None:
    skill = await add_skill("solo")
    actor = Actor.human(await services.users.ensure_user(session, "user_1"))
    await services.reviews.submit(session, skill, actor, 3)
    assert (await services.reviews.delete(session, skill, actor)).action == "deleted"
    assert skill.review_count == 0
    assert skill.avg_rating is None
    assert (await services.reviews.delete(session, skill, actor)).action == "not_found"


# --- users ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_upsert_from_identity(services, session) -> None:
    user, created = await services.users.upsert_from_identity(session, "user_9", email="a@example.com", name="Ann")
    assert created
    assert user.public_name == "Ann"
    same, created = await services.users.upsert_from_identity(session, "user_9", email="b@example.com", name="Ann B")
    assert not created
    assert same.id == user.id
    assert same.email == "b@example.com"


@pytest.mark.asyncio
async def test_deleting_user_removes_votes_and_reviews(services, session, add_skill) -> None:
    skill = await add_skill("orphaned")
    user = await services.users.ensure_user(session, "user_gone")
    other = await services.users.ensure_user(session, "user_stays")
    await services.votes.cast(session, skill, Actor.human(user), "up")
    await services.votes.cast(session, skill, Actor.human(other), "down")
    await services.reviews.submit(session, skill, Actor.human(user), 5)

    assert await services.users.delete_by_external_id(session, "user_gone") is True
    assert (skill.upvotes, skill.downvotes, skill.review_count) == (0, 1, 0)
    assert await services.users.get_by_external_id(session, "user_gone") is None
    assert await services.users.delete_by_external_id(session, "user_gone") is False


@pytest.mark.asyncio
async def test_deleting_owner_unverifies_their_agents(services, session, add_skill) -> None:
    before = await add_skill("before")
    after = await add_skill("after")
    owner = await services.users.ensure_user(session, "user_owner")
    issued = await services.agents.create_for_owner(session, owner, "owned-bot")
    await services.votes.cast(session, before, Actor.bot(issued.agent), "up")

    assert await services.users.delete_by_external_id(session, "user_owner") is True
    agent = await services.agents.authenticate(session, issued.api_key)
    assert (agent.status, agent.owner_user_id) == (AgentStatus.UNVERIFIED.value, None)
    assert not agent.is_verified

    await services.votes.cast(session, after, Actor.bot(agent), "up")
    assert (after.bot_upvotes, after.verified_bot_upvotes) == (1, 0)
    assert before.verified_bot_upvotes == 1


@pytest.mark.parametrize("name", ["x", " ", "n" * 51, "<script>", "semi;colon"])
def test_display_name_rejects(name) -> None:
    with pytest.raises(ValidationFailedError):
        validate_display_name(name)


def test_display_name_is_trimmed() -> None:
    assert validate_display_name("  Jane O'Neil-Smith Jr. ") == "Jane O'Neil-Smith Jr."
