"""Keyword scoring over the fixed category vocabulary."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from clawdtm.catalog.tags import meaningful_tags

OTHER = "other"

CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "dev-tools": (
        "code", "programming", "developer", "git", "github", "gitlab", "debug", "compile", "build",
        "swift", "python", "javascript", "typescript", "rust", "go", "java", "c++", "c#",
        "ide", "editor", "vscode", "vim", "emacs", "terminal", "cli", "sdk", "api", "framework",
        "library", "package", "dependency", "test", "testing", "lint", "format", "refactor",
    ),
    "automation": (
        "automate", "workflow", "schedule", "cron", "task", "job", "pipeline", "trigger",
        "event", "webhook", "integration", "zapier", "ifttt", "script", "batch", "process",
    ),
    "productivity": (
        "note", "todo", "task", "reminder", "calendar", "schedule", "organize", "manage",
        "notion", "obsidian", "roam", "evernote", "todoist", "asana", "trello", "jira",
        "time", "track", "focus", "pomodoro", "productivity", "efficiency",
    ),
    "data": (
        "data", "database", "sql", "query", "analyze", "analysis", "process", "transform",
        "csv", "json", "xml", "excel", "spreadsheet", "table", "chart", "graph", "visualize",
        "etl", "extract", "load", "warehouse", "bigquery", "snowflake",
    ),
    "web": (
        "web", "http", "https", "api", "rest", "graphql", "scrape", "crawl", "browser",
        "chrome", "firefox", "safari", "selenium", "puppeteer", "playwright", "fetch",
        "request", "response", "url", "link", "html", "css", "javascript", "frontend",
    ),
    "ai-ml": (
        "ai", "artificial intelligence", "machine learning", "ml", "llm", "gpt", "claude",
        "openai", "anthropic", "model", "neural", "deep learning", "nlp", "natural language",
        "chatbot", "assistant", "generation", "image generation", "text generation", "embedding",
    ),
    "devops": (
        "deploy", "deployment", "ci", "cd", "ci/cd", "docker", "kubernetes", "k8s",
        "container", "infrastructure", "terraform", "ansible", "puppet", "chef",
        "aws", "azure", "gcp", "cloud", "server", "monitor", "log", "metrics",
    ),
    "security": (
        "security", "auth", "authentication", "authorization", "encrypt", "decrypt",
        "password", "token", "jwt", "oauth", "ssl", "tls", "vpn", "firewall", "scan",
        "vulnerability", "penetration", "audit", "compliance",
    ),
    "communication": (
        "email", "mail", "gmail", "outlook", "message", "chat", "slack", "discord",
        "teams", "zoom", "meet", "call", "sms", "notification", "alert", "push",
        "twitter", "x", "social", "linkedin", "facebook", "instagram",
    ),
    "file-management": (
        "file", "folder", "directory", "upload", "download", "storage", "drive",
        "dropbox", "onedrive", "s3", "gcs", "azure blob", "backup", "sync", "copy",
        "move", "delete", "archive", "compress", "zip", "tar", "gzip",
    ),
    "nix": ("nix", "nixos", "nixpkgs", "flake", "nix-shell", "nix-build"),
    "utility": (
        "utility", "tool", "helper", "util", "convert", "format", "parse", "validate",
        "hash", "encode", "decode", "random", "uuid", "date", "time", "string", "number",
    ),
    OTHER: (),
}

SKILL_CATEGORIES: tuple[str, ...] = tuple(CATEGORY_KEYWORDS)

_PATTERNS: dict[str, list[re.Pattern[str]]] = {
    category: [re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE) for keyword in keywords]
    for category, keywords in CATEGORY_KEYWORDS.items()
}


@dataclass(frozen=True)
class KeywordResult:
    category: str
    tags: list[str]
    scores: dict[str, int] = field(default_factory=dict)

    @property
    def best_score(self) -> int:
        return self.scores.get(self.category, 0)


def score_categories(text: str, tags: Iterable[str] = ()) -> dict[str, int]:
    """+1 per keyword found in ``text``, +2 per tag equal to a keyword."""
    lowered_tags = [tag.lower() for tag in tags if isinstance(tag, str)]
    scores: dict[str, int] = {}
    for category in SKILL_CATEGORIES:
        keywords = CATEGORY_KEYWORDS[category]
        score = sum(1 for pattern in _PATTERNS[category] if pattern.search(text))
        score += sum(2 for tag in lowered_tags if tag in keywords)
        scores[category] = score
    return scores


def categorize_by_keywords(
    *,
    slug: str,
    name: str | None = None,
    description: str | None = None,
    tags: Iterable[str] = (),
    max_tags: int = 10,
) -> KeywordResult:
    tags = list(tags)
    text = " ".join(part for part in (name, slug, description) if part).lower()
    scores = score_categories(text, tags)
    best, best_score = OTHER, 0
    for category in SKILL_CATEGORIES:
        # strict comparison keeps the earlier category on ties
        if scores[category] > best_score:
            best, best_score = category, scores[category]
    return KeywordResult(category=best, tags=meaningful_tags(tags, limit=max_tags), scores=scores)
