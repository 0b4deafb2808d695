from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

DEFAULT_AI_MODEL = "gpt-5-mini"
DEFAULT_AI_TIMEOUT_S = 60.0
DEFAULT_EXPORT_DIR = "exports"


@dataclass(frozen=True)
class QuoteConfig:
    openai_api_key: Optional[str]
    ai_model: str
    ai_timeout_s: float
    ai_enabled: bool
    export_dir: Path
    log_level: str
    log_json: bool

    @property
    def ai_available(self) -> bool:
        return self.ai_enabled and bool(self.openai_api_key)


def _truthy(value: Optional[str], *, default: bool) -> bool:
    if value is None or not str(value).strip():
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "y", "on"}


def _as_optional_str(value: Optional[str]) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()


def _as_positive_float(value: Optional[str], *, key: str, default: float) -> float:
    if value is None or not str(value).strip():
        return default
    try:
        f = float(value)
    except ValueError:
        raise ValueError(f"{key} must be a number (got {value!r})") from None
    if f <= 0:
        raise ValueError(f"{key} must be > 0 (got {value!r})")
    return f


def load_config(env: Optional[Mapping[str, str]] = None, *, dotenv_path: Optional[Path] = None) -> QuoteConfig:
    """
    Read settings from the environment (after loading `.env` when present).

    Passing `env` skips `.env` loading entirely and reads only from the given mapping, which keeps
    tests independent of the developer's shell.
    """
    if env is None:
        load_dotenv(dotenv_path=dotenv_path)
        env = os.environ

    return QuoteConfig(
        openai_api_key=_as_optional_str(env.get("OPENAI_API_KEY")),
        ai_model=_as_optional_str(env.get("QUOTE_AI_MODEL")) or DEFAULT_AI_MODEL,
        ai_timeout_s=_as_positive_float(
            env.get("QUOTE_AI_TIMEOUT_S"), key="QUOTE_AI_TIMEOUT_S", default=DEFAULT_AI_TIMEOUT_S
        ),
        ai_enabled=_truthy(env.get("QUOTE_AI_ENABLED"), default=True),
        export_dir=Path(_as_optional_str(env.get("QUOTE_EXPORT_DIR")) or DEFAULT_EXPORT_DIR),
        log_level=(_as_optional_str(env.get("QUOTE_LOG_LEVEL")) or "INFO").upper(),
        log_json=_truthy(env.get("QUOTE_LOG_JSON"), default=False),
    )
