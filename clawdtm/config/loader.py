"""Load ``ClawdtmConfig`` from defaults, a YAML file, the environment and overrides.

Later layers win: YAML over defaults, ``CLAWDTM_<SECTION>__<KEY>`` variables
over YAML, explicit overrides over everything. ``CLAWDTM_DATABASE_URL`` is
also honoured because Alembic reads the same variable.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from clawdtm.config.models import ClawdtmConfig

CONFIG_ENV_VAR = "CLAWDTM_CONFIG"
DATABASE_URL_ENV_VAR = "CLAWDTM_DATABASE_URL"
DEFAULT_CONFIG_FILENAME = "clawdtm.yaml"
ENV_PREFIX = "CLAWDTM_"
# share the prefix but are not nested config keys
_NON_CONFIG_ENV = frozenset({CONFIG_ENV_VAR, DATABASE_URL_ENV_VAR, "CLAWDTM_LOG_LEVEL"})


class ConfigLoadError(ValueError):
    """Raised when the config file cannot be parsed."""


def resolve_config_path(cli_path: str | None = None) -> Path:
    """``CLAWDTM_CONFIG`` first, then the CLI path, then ./clawdtm.yaml."""
    env_path = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if env_path:
        return Path(env_path)
    if cli_path and cli_path.strip():
        return Path(cli_path.strip())
    return Path.cwd() / DEFAULT_CONFIG_FILENAME


def read_config_file(path: Path) -> dict[str, Any]:
    """Parse ``path``; a missing or empty file is an empty mapping."""
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        where = f"{path}:{mark.line + 1}:{mark.column + 1}" if mark is not None else str(path)
        raise ConfigLoadError(f"Invalid YAML at {where}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigLoadError(f"Config root must be mapping: {path}")
    return data


def _parse_env_value(raw: str) -> Any:
    value = raw.strip()
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    if value.lower() in ("null", "none"):
        return None
    if value[:1] in ("[", "{"):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    for number in (int, float):
        try:
            return number(value)
        except ValueError:
            continue
    return value


def env_overrides(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Nested overrides from ``CLAWDTM_SECTION__KEY=value`` variables."""
    environ = dict(os.environ) if environ is None else environ
    overrides: dict[str, Any] = {}
    for name, raw in environ.items():
        if not name.startswith(ENV_PREFIX) or name in _NON_CONFIG_ENV:
            continue
        path = [part.lower() for part in name[len(ENV_PREFIX) :].split("__") if part]
        if len(path) < 2:
            continue
        node = overrides
        for part in path[:-1]:
            node = node.setdefault(part, {})
            if not isinstance(node, dict):
                break
        else:
            node[path[-1]] = _parse_env_value(raw)
    database_url = environ.get(DATABASE_URL_ENV_VAR, "").strip()
    if database_url:
        overrides.setdefault("database", {}).setdefault("url", database_url)
    return overrides


def merge_config(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    """Recursive dict merge; ``updates`` wins on conflicts."""
    merged = dict(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: str | None = None, overrides: dict[str, Any] | None = None) -> ClawdtmConfig:
    data = read_config_file(resolve_config_path(config_path))
    data = merge_config(data, env_overrides())
    data = merge_config(data, overrides or {})
    return ClawdtmConfig.model_validate(data)
