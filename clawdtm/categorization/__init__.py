"""Skill categorization: keyword scorer, LLM classifier and batch runner."""

from clawdtm.categorization.classifier import Classification, SkillClassifier
from clawdtm.categorization.keywords import (
    CATEGORY_KEYWORDS,
    OTHER,
    SKILL_CATEGORIES,
    categorize_by_keywords,
    score_categories,
)
from clawdtm.categorization.runner import CategorizationReport, CategorizationRunner

__all__ = [
    "CATEGORY_KEYWORDS",
    "categorize_by_keywords",
    "CategorizationReport",
    "CategorizationRunner",
    "Classification",
    "OTHER",
    "score_categories",
    "SKILL_CATEGORIES",
    "SkillClassifier",
]
