"""Engine settings, read from the environment at start-up."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_DEFAULT_API_URL = "https://api.openai.com"
_DEFAULT_MODEL = "gpt-3.5-turbo"
_DEFAULT_TEMPERATURE = 0.5
_DEFAULT_MAX_TOKENS = 2500
_DEFAULT_TOKEN_LIMIT = 4000  # context window of the default model
_DEFAULT_ID_FLOOR = 1000
_DEFAULT_ID_SPAN = 899999


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", name, raw)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", name, raw)
        return default


def _positive(value: int, name: str, default: int) -> int:
    if value > 0:
        return value
    logger.warning("Ignoring non-positive %s=%d", name, value)
    return default


@dataclass
class EngineSettings:
    """Runtime configuration for the session engine."""

    data_dir: Path = Path("data")
    rules_path: Path | None = None
    api_url: str = _DEFAULT_API_URL
    api_key: str = ""
    model: str = _DEFAULT_MODEL
    temperature: float = _DEFAULT_TEMPERATURE
    max_tokens: int = _DEFAULT_MAX_TOKENS
    candidates: int = 1
    token_limit: int = _DEFAULT_TOKEN_LIMIT
    request_timeout: float = 30.0
    id_floor: int = _DEFAULT_ID_FLOOR
    id_span: int = _DEFAULT_ID_SPAN

    @classmethod
    def from_env(cls) -> EngineSettings:
        rules = os.getenv("CHAT_RULES_PATH")
        return cls(
            data_dir=Path(os.getenv("CHAT_DATA_DIR") or "data"),
            rules_path=Path(rules) if rules else None,
            api_url=os.getenv("CHAT_API_URL") or _DEFAULT_API_URL,
            api_key=os.getenv("CHAT_API_KEY", ""),
            model=os.getenv("CHAT_MODEL") or _DEFAULT_MODEL,
            temperature=_env_float("CHAT_TEMPERATURE", _DEFAULT_TEMPERATURE),
            max_tokens=_env_int("CHAT_MAX_TOKENS", _DEFAULT_MAX_TOKENS),
            candidates=_env_int("CHAT_CANDIDATES", 1),
            token_limit=_env_int("CHAT_TOKEN_LIMIT", _DEFAULT_TOKEN_LIMIT),
            request_timeout=_env_float("CHAT_REQUEST_TIMEOUT", 30.0),
            id_floor=_env_int("CHAT_ID_FLOOR", _DEFAULT_ID_FLOOR),
            id_span=_positive(_env_int("CHAT_ID_SPAN", _DEFAULT_ID_SPAN), "CHAT_ID_SPAN", _DEFAULT_ID_SPAN),
        )
