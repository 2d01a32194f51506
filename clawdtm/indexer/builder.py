"""Static JSON export of the visible skills directory."""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from datetime import timezone
from pathlib import Path
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clawdtm.clock import NowFn, utcnow
from clawdtm.db import SessionFactory, session_scope
from clawdtm.directory.listing import skill_summary
from clawdtm.logs import log_json
from clawdtm.models import CachedSkill

logger = logging.getLogger(__name__)

INDEX_VERSION = "1.0"
_TOKEN = re.compile(r"[a-z0-9][a-z0-9+#.-]*")


def _iso(value: Any) -> Any:
    if hasattr(value, "astimezone"):
        return value.astimezone(timezone.utc).isoformat()
    return value


class IndexBuilder:
    """Build index payload from the cached skills table."""

    def __init__(self, session_factory: SessionFactory | None = None, *, now_fn: NowFn = utcnow) -> None:
        self._session_factory = session_factory
        self._now = now_fn

    async def build(self, session: AsyncSession) -> dict[str, Any]:
        """Build complete index payload over visible skills, ordered by slug."""
        rows = await session.scalars(select(CachedSkill).where(CachedSkill.hidden.is_(False)).order_by(CachedSkill.slug))
        skills = []
        for skill in rows.all():
            payload = skill_summary(skill)
            payload["updated_at"] = _iso(payload["updated_at"])
            skills.append(payload)
        return {
            "version": INDEX_VERSION,
            "generated_at": self._now().astimezone(timezone.utc).isoformat(),
            "total_skills": len(skills),
            "skills": skills,
            "search_index": self._build_search_index(skills),
        }

    @staticmethod
    def _build_search_index(skills: list[dict[str, Any]]) -> dict[str, list[str]]:
        index: dict[str, list[str]] = {}
        for item in skills:
            tags = [tag for tag in item.get("tags", []) if isinstance(tag, str)]
            parts = [item["slug"], str(item.get("name") or ""), str(item.get("description") or ""), " ".join(tags)]
            search_text = " ".join(part for part in parts if part).lower()
            index[item["slug"]] = list(dict.fromkeys(_TOKEN.findall(search_text)))
        return index

    async def write(self, path: str | Path) -> dict[str, Any]:
        """Build with a fresh session and replace ``path`` atomically."""
        if self._session_factory is None:
            raise RuntimeError("IndexBuilder.write needs a session factory")
        async with session_scope(self._session_factory) as session:
            index = await self.build(session)
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(index, handle, ensure_ascii=False, indent=2, default=str)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        log_json(logger, logging.INFO, "index_written", path=str(target), total_skills=index["total_skills"])
        return index
