# flowpatch/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, Sequence

URL_VARS = ("N8N_API_URL", "N8N_HOST", "N8N_BASE_URL", "N8N_URL")
KEY_VARS = ("N8N_API_KEY", "N8N_KEY", "API_KEY")
DEFAULT_TIMEOUT = 30.0


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class ApiConfig:
    base_url: str
    api_key: str
    timeout: float = DEFAULT_TIMEOUT


def _first_env(names: Sequence[str]) -> Optional[str]:
    for name in names:
        val = os.getenv(name)
        if val:
            return val
    return None


def load_config() -> ApiConfig:
    """Read the n8n connection settings from the environment."""
    base_url = _first_env(URL_VARS)
    if not base_url:
        raise ConfigError(
            f"Missing n8n API URL. Set one of: {', '.join(URL_VARS)} "
            "(without /api/v1, it is added automatically)"
        )
    api_key = _first_env(KEY_VARS)
    if not api_key:
        raise ConfigError(f"Missing n8n API key. Set one of: {', '.join(KEY_VARS)}")

    raw_timeout = os.getenv("N8N_TIMEOUT")
    try:
        timeout = float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT
    except ValueError as e:
        raise ConfigError(f"N8N_TIMEOUT must be a number of seconds, got {raw_timeout!r}") from e

    return ApiConfig(base_url=base_url, api_key=api_key, timeout=timeout)
