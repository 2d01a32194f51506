"""Boundary adapter for untyped catalog payloads.

The catalog API has changed shape several times: display names moved between
``displayName`` and ``name``, tags were a list in some versions and a
``{tag: versionId}`` map in others, ``latestVersion`` is either a string or an
object, and timestamps arrive as epoch milliseconds or ISO-8601 strings. Every
shape is mapped here to one ``CatalogRecord``; anything that does not validate
raises ``RecordValidationError`` so the caller can quarantine it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from clawdtm.catalog.tags import normalize_tags
from clawdtm.clock import from_epoch_ms
from clawdtm.errors import CatalogFetchError, RecordValidationError


def parse_timestamp(value: Any) -> datetime | None:
    """Epoch milliseconds or ISO-8601 string to aware UTC datetime; unparseable values yield None."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if value <= 0:
            return None
        return from_epoch_ms(value)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    return None


class _RawStats(BaseModel):
    model_config = ConfigDict(extra="ignore")

    downloads: float | None = None
    stars: float | None = None
    installs: float | None = None
    installsAllTime: float | None = None
    installsCurrent: float | None = None


class _RawLatestVersion(BaseModel):
    model_config = ConfigDict(extra="ignore")

    version: str


class _RawCatalogSkill(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str | int | None = None
    underscore_id: str | None = Field(default=None, alias="_id")
    slug: str
    displayName: str | None = None
    name: str | None = None
    summary: str | None = None
    description: str | None = None
    ownerHandle: str | None = None
    author: str | None = None
    stats: _RawStats | None = None
    tags: Any = None
    category: str | None = None
    latestVersion: str | _RawLatestVersion | None = None
    version: str | None = None
    hasNix: bool | None = None
    nix: bool | None = None
    createdAt: Any = None
    updatedAt: Any = None

    @field_validator("slug")
    @classmethod
    def _slug_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("slug must not be blank")
        return value


def _stat(value: float | None) -> int | None:
    if value is None:
        return None
    if value < 0:
        raise ValueError("stats must not be negative")
    return int(value)


class CatalogRecord(BaseModel):
    """Canonical catalog record, ready for the reconciler."""

    model_config = ConfigDict(frozen=True)

    external_id: str | None
    slug: str
    name: str
    description: str | None = None
    author: str | None = None
    author_handle: str | None = None
    downloads: int = 0
    stars: int = 0
    installs: int = 0
    tags: tuple[str, ...] = ()
    category: str | None = None
    version: str | None = None
    has_nix: bool = False
    external_created_at: datetime | None = None
    external_updated_at: datetime | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> CatalogRecord:
        """Validate one raw catalog item."""
        if not isinstance(payload, dict):
            raise RecordValidationError(f"catalog record must be an object, got {type(payload).__name__}")
        slug_hint = payload.get("slug") if isinstance(payload.get("slug"), str) else None
        try:
            raw = _RawCatalogSkill.model_validate(payload)
            stats = raw.stats or _RawStats()
            installs = _stat(stats.installsAllTime)
            if installs is None:
                installs = _stat(stats.installs)
            if installs is None:
                installs = _stat(stats.installsCurrent)
            if isinstance(raw.latestVersion, _RawLatestVersion):
                version = raw.latestVersion.version
            else:
                version = raw.latestVersion or raw.version
            external_id = raw.id if raw.id is not None else raw.underscore_id
            return cls(
                external_id=str(external_id) if external_id is not None else raw.slug,
                slug=raw.slug,
                name=(raw.displayName or raw.name or raw.slug).strip(),
                description=raw.summary if raw.summary is not None else raw.description,
                author=raw.ownerHandle or raw.author or None,
                author_handle=raw.ownerHandle,
                downloads=_stat(stats.downloads) or 0,
                stars=_stat(stats.stars) or 0,
                installs=installs or 0,
                tags=tuple(normalize_tags(raw.tags)),
                category=(raw.category or "").strip().lower() or None,
                version=version,
                has_nix=bool(raw.hasNix if raw.hasNix is not None else raw.nix),
                external_created_at=parse_timestamp(raw.createdAt),
                external_updated_at=parse_timestamp(raw.updatedAt),
            )
        except (ValidationError, ValueError, TypeError) as exc:
            raise RecordValidationError(f"invalid catalog record: {exc}", slug=slug_hint) from exc

    def catalog_fields(self) -> dict[str, Any]:
        """Column values the reconciler owns on ``CachedSkill``."""
        return {
            "external_id": self.external_id,
            "slug": self.slug,
            "name": self.name,
            "description": self.description,
            "author": self.author,
            "author_handle": self.author_handle,
            "downloads": self.downloads,
            "stars": self.stars,
            "installs": self.installs,
            "tags": list(self.tags),
            "version": self.version,
            "has_nix": self.has_nix,
            "external_created_at": self.external_created_at,
            "external_updated_at": self.external_updated_at,
        }


@dataclass
class CatalogPage:
    """One page of raw catalog records plus its continuation."""

    records: list[Any] = field(default_factory=list)
    next_cursor: str | None = None
    has_more: bool = False


def parse_page(payload: Any) -> CatalogPage:
    """Read the page envelope: records under skills/data/items, cursor under cursor/nextCursor."""
    if not isinstance(payload, dict):
        raise CatalogFetchError("catalog page is not a JSON object", attempts=1)
    records: Any = None
    for key in ("skills", "data", "items"):
        if payload.get(key) is not None:
            records = payload[key]
            break
    if records is None:
        records = []
    if not isinstance(records, list):
        raise CatalogFetchError("catalog page records are not a list", attempts=1)
    cursor = payload.get("cursor")
    if cursor is None:
        cursor = payload.get("nextCursor")
    next_cursor = str(cursor) if cursor not in (None, "") else None
    has_more_raw = payload.get("hasMore")
    has_more = bool(has_more_raw) if has_more_raw is not None else next_cursor is not None
    return CatalogPage(records=records, next_cursor=next_cursor, has_more=has_more and next_cursor is not None)
