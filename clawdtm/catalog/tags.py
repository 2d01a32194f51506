"""Tag normalization and the "meaningful tag" filter."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

EXCLUDED_TAGS = frozenset({"latest", "stable", "beta", "alpha", "dev", "main", "master"})
MIN_TAG_LENGTH = 2
MAX_TAG_LENGTH = 30

_VERSION_TAG = re.compile(r"^v?\d+\.\d+(\.\d+)?(-.*)?$")


def normalize_tags(raw: Any) -> list[str]:
    """Map every accepted tag shape to a list of lowercase, trimmed, unique strings.

    Accepts ``None``, a list/tuple of strings, a mapping whose keys are the tag
    names (older catalog versions map tag -> version id), or a comma separated
    string. Non-string items are ignored. Order of first appearance is kept.
    """
    if raw is None:
        return []
    items: Iterable[Any]
    if isinstance(raw, str):
        items = raw.split(",")
    elif isinstance(raw, Mapping):
        items = raw.keys()
    elif isinstance(raw, (list, tuple)):
        items = raw
    else:
        raise TypeError(f"unsupported tags shape: {type(raw).__name__}")
    seen: dict[str, None] = {}
    for item in items:
        if not isinstance(item, str):
            continue
        tag = item.strip().lower()
        if tag and tag not in seen:
            seen[tag] = None
    return list(seen)


def is_version_tag(tag: str) -> bool:
    return bool(_VERSION_TAG.match(tag))


def is_meaningful_tag(tag: str) -> bool:
    normalized = tag.strip().lower()
    if len(normalized) < MIN_TAG_LENGTH or len(normalized) > MAX_TAG_LENGTH:
        return False
    if normalized in EXCLUDED_TAGS:
        return False
    return not is_version_tag(normalized)


def meaningful_tags(tags: Iterable[str], limit: int | None = None) -> list[str]:
    result = [tag.strip().lower() for tag in tags if isinstance(tag, str) and is_meaningful_tag(tag)]
    if limit is not None:
        return result[:limit]
    return result
