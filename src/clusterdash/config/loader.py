"""YAML config loader with environment variable interpolation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from clusterdash.config.models import DashboardConfig
from clusterdash.errors import ConfigInvalid

CONFIG_FILENAME = ".clusterdash.yaml"
CONFIG_ENV_VAR = "CLUSTERDASH_CONFIG"

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _interpolate_env(value: str) -> str:
    """Replace ${VAR} and ${VAR:-default} patterns with environment values."""

    def _replace(match: re.Match[str]) -> str:
        expr = match.group(1)
        if ":-" in expr:
            var_name, default = expr.split(":-", 1)
            return os.environ.get(var_name.strip(), default)
        return os.environ.get(expr.strip(), match.group(0))

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(data: Any) -> Any:
    """Walk a nested data structure and interpolate env vars in strings."""
    if isinstance(data, str):
        return _interpolate_env(data)
    if isinstance(data, dict):
        return {k: _interpolate_recursive(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_interpolate_recursive(item) for item in data]
    return data


def find_config_file(start: Path | None = None) -> Path | None:
    """Locate the config file.

    ``$CLUSTERDASH_CONFIG`` wins; otherwise walk up from *start* (default cwd)
    looking for .clusterdash.yaml.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    current = (start or Path.cwd()).resolve()
    for ancestor in [current, *current.parents]:
        candidate = ancestor / CONFIG_FILENAME
        if candidate.exists():
            return candidate
    return None


def _format_errors(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "<root>"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def parse_config(data: Any, source: str = "<memory>") -> DashboardConfig:
    """Validate an already-parsed mapping, raising ConfigInvalid on error."""
    if not isinstance(data, dict):
        raise ConfigInvalid(f"Invalid configuration in {source}: top level must be a mapping")
    try:
        return DashboardConfig(**_interpolate_recursive(data))
    except ValidationError as exc:
        raise ConfigInvalid(f"Invalid configuration in {source}: {_format_errors(exc)}") from exc


def load_config(path: Path | None = None) -> DashboardConfig:
    """Load and validate .clusterdash.yaml, applying env-var interpolation."""
    config_path = path or find_config_file()
    if not config_path or not config_path.exists():
        raise FileNotFoundError(
            f"Could not find {CONFIG_FILENAME}. Create one from .clusterdash.yaml.example or specify a path."
        )
    with config_path.open("r", encoding="utf-8") as fh:
        try:
            raw = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigInvalid(f"Could not parse {config_path}: {exc}") from exc
    return parse_config(raw, source=str(config_path))
