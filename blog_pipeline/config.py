from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import yaml
from pydantic import ValidationError

from .config_schema import AppConfig
from .errors import ConfigError


@dataclass(frozen=True)
class ApiSettings:
    base_url: str
    token: str | None = None


def load_config(path: str | Path | None) -> AppConfig:
    """
    Load a YAML config file and validate it into a typed AppConfig.

    A None path yields the defaults. Raises ConfigError with a readable
    validation message on failure.
    """
    if path is None:
        return AppConfig()

    p = Path(path)

    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")

    try:
        raw_text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {p}") from e

    try:
        data = yaml.safe_load(raw_text)
    except Exception as e:  # PyYAML can raise multiple exception types
        raise ConfigError(f"Failed to parse YAML in {p}: {e}") from e

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ConfigError(f"Top-level YAML in {p} must be a mapping/object")

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(_format_pydantic_errors(e, p)) from e


def resolve_api_settings(
    config: AppConfig, *, environ: Mapping[str, str] | None = None
) -> ApiSettings:
    """
    Resolve the backend base URL and optional bearer token.

    An explicit api.base_url wins over the environment. A missing base URL is a
    misconfiguration and raises ConfigError.
    """
    env = os.environ if environ is None else environ

    base_url = config.api.base_url
    if not base_url:
        base_url = (env.get(config.api.base_url_env) or "").strip().rstrip("/")

    if not base_url:
        raise ConfigError(
            f"Missing backend base URL: set api.base_url or {config.api.base_url_env}"
        )

    token = (env.get(config.api.token_env) or "").strip() or None
    return ApiSettings(base_url=base_url, token=token)


def _format_pydantic_errors(err: ValidationError, path: Path) -> str:
    lines: list[str] = [f"Invalid configuration in {path}:"]
    for item in err.errors():
        loc = ".".join(str(part) for part in item.get("loc", [])) or "<root>"
        msg = item.get("msg", "invalid value")
        lines.append(f"- {loc}: {msg}")
    return "\n".join(lines)
