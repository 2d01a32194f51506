"""Assign a category and tags to one skill, by keywords or through the LLM."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from clawdtm.catalog.tags import meaningful_tags, normalize_tags
from clawdtm.categorization.keywords import SKILL_CATEGORIES, categorize_by_keywords
from clawdtm.integrations.llm import LLMClient
from clawdtm.models import CachedSkill

logger = logging.getLogger(__name__)

KEYWORD_MODEL = "keywords"

SYSTEM_PROMPT = (
    "You categorize skills (plugins) for an AI coding assistant. "
    "Pick exactly one category from this list: {categories}. "
    "Also suggest up to {max_tags} short lowercase tags. "
    'Answer with a JSON object: {{"category": "...", "tags": ["..."], "reasoning": "..."}}.'
)


@dataclass
class Classification:
    category: str
    tags: list[str]
    reasoning: str = ""
    model: str = KEYWORD_MODEL
    input_tokens: int | None = None
    output_tokens: int | None = None
    fell_back: bool = False


def _skill_prompt(skill: CachedSkill) -> str:
    lines = [f"slug: {skill.slug}", f"name: {skill.name or skill.slug}"]
    if skill.description:
        lines.append(f"description: {skill.description[:2000]}")
    if skill.tags:
        lines.append(f"tags: {', '.join(skill.tags)}")
    return "\n".join(lines)


class SkillClassifier:
    """Keyword scorer by default; with an LLM client, the model decides and keywords are the fallback."""

    def __init__(self, llm: LLMClient | None = None, *, max_tags: int = 10) -> None:
        self.llm = llm
        self.max_tags = max_tags

    def by_keywords(self, skill: CachedSkill) -> Classification:
        result = categorize_by_keywords(
            slug=skill.slug,
            name=skill.name,
            description=skill.description,
            tags=skill.tags or [],
            max_tags=self.max_tags,
        )
        return Classification(
            category=result.category,
            tags=result.tags,
            reasoning=f"keyword score {result.best_score}",
        )

    async def classify(self, skill: CachedSkill) -> Classification:
        if self.llm is None:
            return self.by_keywords(skill)
        messages = [
            {
                "role": "system",
                "content": SYSTEM_PROMPT.format(categories=", ".join(SKILL_CATEGORIES), max_tags=self.max_tags),
            },
            {"role": "user", "content": _skill_prompt(skill)},
        ]
        response = await self.llm.complete(messages, json_mode=True)
        answer = self.llm.decode_json(response)
        category = str(answer.get("category") or "").strip().lower()
        try:
            suggested = normalize_tags(answer.get("tags"))
        except TypeError:
            suggested = []
        tags = meaningful_tags(suggested, limit=self.max_tags) or meaningful_tags(skill.tags or [], limit=self.max_tags)
        reasoning = str(answer.get("reasoning") or "")
        if category not in SKILL_CATEGORIES:
            logger.info("model answered unknown category slug=%s category=%r", skill.slug, category)
            fallback = self.by_keywords(skill)
            category = fallback.category
            reasoning = f"model category {answer.get('category')!r} not in vocabulary; {fallback.reasoning}"
            fell_back = True
        else:
            fell_back = False
        return Classification(
            category=category,
            tags=tags,
            reasoning=reasoning,
            model=response.model,
            input_tokens=response.prompt_tokens,
            output_tokens=response.completion_tokens,
            fell_back=fell_back,
        )
