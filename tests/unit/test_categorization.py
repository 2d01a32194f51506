"""Unit tests for keyword scoring, the classifier and the batch runner."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from clawdtm.categorization import (
    OTHER,
    SKILL_CATEGORIES,
    CategorizationRunner,
    SkillClassifier,
    categorize_by_keywords,
    score_categories,
)
from clawdtm.config.models import LLMSettings
from clawdtm.integrations.llm import LLMClient
from clawdtm.models import CachedSkill, CategorizationStatus


def _completion(content: str) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=7),
    )


def _llm_classifier(monkeypatch: pytest.MonkeyPatch, mock: AsyncMock) -> SkillClassifier:
    monkeypatch.setattr("clawdtm.integrations.llm.acompletion", mock)
    return SkillClassifier(LLMClient(LLMSettings(model="test-model")), max_tags=3)


def test_vocabulary_is_fixed_and_ends_with_other() -> None:
    assert SKILL_CATEGORIES[-1] == OTHER
    assert "devops" in SKILL_CATEGORIES
    assert len(SKILL_CATEGORIES) == 13


def test_keywords_pick_highest_scoring_category() -> None:
    result = categorize_by_keywords(
        slug="docker-deploy",
        name="Docker Deploy",
        description="Deploy containers to Kubernetes",
        tags=["latest", "docker", "k8s"],
    )
    assert result.category == "devops"
    assert result.tags == ["docker", "k8s"]
    assert result.best_score == result.scores["devops"]


def test_tag_matches_weigh_double() -> None:
    scores = score_categories("plain words", ["nix", "flake"])
    assert scores["nix"] == 4
    assert categorize_by_keywords(slug="plain", tags=["nix"]).category == "nix"


def test_ties_keep_earlier_category() -> None:
    # "api" is a keyword of both dev-tools and web
    result = categorize_by_keywords(slug="api")
    assert result.scores["dev-tools"] == result.scores["web"] == 1
    assert result.category == "dev-tools"


def test_no_keywords_means_other() -> None:
    assert categorize_by_keywords(slug="zzqx", description="").category == OTHER


@pytest.mark.asyncio
async def test_classifier_without_llm_uses_keywords() -> None:
    skill = CachedSkill(slug="gmail-helper", name="Gmail Helper", description="Send email from chat", tags=["email"])
    result = await SkillClassifier().classify(skill)
    assert result.category == "communication"
    assert result.model == "keywords"


@pytest.mark.asyncio
async def test_classifier_uses_model_answer(monkeypatch) -> None:
    mock = AsyncMock(return_value=_completion('{"category": "Web", "tags": ["Scraping", "latest", "html"], "reasoning": "scrapes"}'))
    classifier = _llm_classifier(monkeypatch, mock)
    skill = CachedSkill(slug="scraper", name="Scraper", description="Scrape pages", tags=["crawl"])

    result = await classifier.classify(skill)
    assert result.category == "web"
    assert result.tags == ["scraping", "html"]
    assert (result.model, result.input_tokens, result.output_tokens) == ("test-model", 12, 7)
    assert result.fell_back is False

    kwargs = mock.await_args.kwargs
    assert kwargs["response_format"] == {"type": "json_object"}
    assert "slug: scraper" in kwargs["messages"][1]["content"]
    assert "dev-tools" in kwargs["messages"][0]["content"]


@pytest.mark.asyncio
async def test_unknown_model_category_falls_back_to_keywords(monkeypatch) -> None:
    classifier = _llm_classifier(monkeypatch, AsyncMock(return_value=_completion('{"category": "games", "tags": 5}')))
    skill = CachedSkill(slug="docker-helper", name="Docker Helper", description=None, tags=["docker"])

    result = await classifier.classify(skill)
    assert result.category == "devops"
    assert result.fell_back is True
    assert result.tags == ["docker"]
    assert "'games' not in vocabulary" in result.reasoning


@pytest.mark.asyncio
async def test_runner_categorizes_pending_skills(services, session, add_skill, fetch_skill) -> None:
    await add_skill("docker-deploy", description="Deploy with docker", downloads=5)
    await add_skill("web-scraper", description="Scrape the web", category="uncategorized", downloads=9, tags=["html", "v1.0"])
    await add_skill("done", category="utility")
    await add_skill("hidden-skill", description="docker", hidden=True)
    await session.commit()

    assert [skill.slug for skill in await services.categorizer.pending(10)] == ["web-scraper", "docker-deploy"]
    report = await services.categorizer.run(limit=10)
    assert report.to_dict() == {"processed": 2, "succeeded": 2, "failed": 0, "skipped": 0}

    scraper = await fetch_skill("web-scraper")
    assert scraper.category == "web"
    assert scraper.tags == ["html"]
    assert (await fetch_skill("docker-deploy")).category == "devops"
    assert (await fetch_skill("done")).category == "utility"
    assert (await fetch_skill("hidden-skill")).category is None

    history = await services.categorizer.history(scraper.id)
    assert [(row.status, row.model) for row in history] == [(CategorizationStatus.SUCCESS.value, "keywords")]
    assert (await services.sync_state.load()).category_counts == {"devops": 1, "utility": 1, "web": 1}


@pytest.mark.asyncio
async def test_runner_logs_model_errors_and_leaves_skill(services, session, add_skill, fetch_skill, monkeypatch, clock) -> None:
    skill = await add_skill("flaky")
    await session.commit()
    classifier = _llm_classifier(monkeypatch, AsyncMock(side_effect=RuntimeError("provider exploded")))
    runner = CategorizationRunner(services.session_factory, classifier, services.sync_state, now_fn=clock)

    report = await runner.run()
    assert (report.processed, report.failed, report.succeeded) == (1, 1, 0)
    assert (await fetch_skill("flaky")).category is None

    [row] = await runner.history(skill.id)
    assert row.status == CategorizationStatus.ERROR.value
    assert row.model == "test-model"
    assert "provider exploded" in row.error_message
