"""
Configuration and environment loading for Twenty Questions.

- Loads settings.yml (YAML) from repo root if present; falls back to environment variables.
- Exposes SETTINGS with keys used across the project (provider key, relay defaults, oracle URL, tuning knobs).
"""
from dataclasses import dataclass
import logging
import os
from typing import Any, Callable

import yaml
from dotenv import load_dotenv

load_dotenv()

log = logging.getLogger("config")


def _repo_root() -> str:
    # this file: src/twenty_questions/config.py → repo root is two levels up
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))


def _load_yaml(path: str) -> dict:
    if not os.path.isfile(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        log.exception("Failed to read %s; using environment only", path)
        return {}
    return data if isinstance(data, dict) else {}


_cfg = _load_yaml(os.path.join(_repo_root(), "settings.yml"))


def _get(name: str, default: Any, cast: Callable[[Any], Any] | None = None) -> Any:
    if name in _cfg:
        val = _cfg[name]
        return cast(val) if cast and val is not None else val
    env = os.environ.get(name)
    if env is not None and env != "":
        return cast(env) if cast else env
    return default


@dataclass(frozen=True)
class Settings:
    # Provider side (used only by the relay)
    openai_api_key: str
    openai_base_url: str
    model: str
    relay_max_tokens: int
    relay_temperature: float
    relay_n: int

    # Client side
    oracle_url: str
    oracle_timeout_s: float | None
    scores_path: str

    # Game tuning knobs
    guess_threshold: int
    guess_probability: float
    session_ttl_s: int


SETTINGS = Settings(
    openai_api_key=_get("OPENAI_API_KEY", ""),
    openai_base_url=_get("TWENTYQ_OPENAI_BASE_URL", "https://api.openai.com/v1"),
    model=_get("TWENTYQ_MODEL", "gpt-4.1-mini"),
    relay_max_tokens=int(_get("TWENTYQ_RELAY_MAX_TOKENS", 500, cast=int)),
    relay_temperature=float(_get("TWENTYQ_RELAY_TEMPERATURE", 0.7, cast=float)),
    relay_n=int(_get("TWENTYQ_RELAY_N", 1, cast=int)),
    oracle_url=_get("TWENTYQ_ORACLE_URL", "http://127.0.0.1:8000/api/oracle"),
    oracle_timeout_s=_get("TWENTYQ_ORACLE_TIMEOUT_S", None, cast=float),
    scores_path=_get("TWENTYQ_SCORES_PATH", "scores.json"),
    guess_threshold=int(_get("TWENTYQ_GUESS_THRESHOLD", 15, cast=int)),
    guess_probability=float(_get("TWENTYQ_GUESS_PROBABILITY", 0.3, cast=float)),
    session_ttl_s=int(_get("TWENTYQ_SESSION_TTL_S", 3600, cast=int)),
)
