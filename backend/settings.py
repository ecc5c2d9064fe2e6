"""
Environment-driven configuration for the provider client and the HTTP server.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

load_dotenv(dotenv_path=Path(__file__).resolve().parent / ".env")


DEFAULT_API_URL = "https://api.deepseek.com/v1"
DEFAULT_MODEL = "deepseek-chat"


def _env_int(name: str, default: int, min_value: Optional[int] = None, max_value: Optional[int] = None) -> int:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if min_value is not None:
        value = max(min_value, value)
    if max_value is not None:
        value = min(max_value, value)
    return value


def _env_float(name: str, default: float, min_value: Optional[float] = None, max_value: Optional[float] = None) -> float:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if min_value is not None:
        value = max(min_value, value)
    if max_value is not None:
        value = min(max_value, value)
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off")


class AIConfig(BaseModel):
    """Completion provider configuration. Timeouts and delays are in seconds."""

    model_config = ConfigDict(protected_namespaces=())

    api_key: str = ""
    base_url: str = DEFAULT_API_URL
    model: str = DEFAULT_MODEL
    max_tokens: int = 2000
    temperature: float = 0.2
    top_p: float = 0.9
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0
    timeout: float = 30.0
    seed: Optional[int] = None
    enable_retries: bool = True
    max_retries: int = 3
    retry_delay: float = 1.0


class ServerSettings(BaseModel):
    port: int = 3001
    cors_origin: str = "http://localhost:3000"
    log_level: str = "info"
    enable_logging: bool = True


def load_ai_config() -> AIConfig:
    seed_raw = os.getenv("AI_SEED")
    return AIConfig(
        api_key=os.getenv("AI_API_KEY", ""),
        base_url=os.getenv("AI_API_URL") or DEFAULT_API_URL,
        model=os.getenv("AI_MODEL") or DEFAULT_MODEL,
        max_tokens=_env_int("AI_MAX_TOKENS", 2000, 100, 32000),
        temperature=_env_float("AI_TEMPERATURE", 0.2, 0.0, 2.0),
        top_p=_env_float("AI_TOP_P", 0.9, 0.0, 1.0),
        frequency_penalty=_env_float("AI_FREQUENCY_PENALTY", 0.0, -2.0, 2.0),
        presence_penalty=_env_float("AI_PRESENCE_PENALTY", 0.0, -2.0, 2.0),
        # AI_TIMEOUT is given in milliseconds
        timeout=_env_int("AI_TIMEOUT", 30000, 1000, 120000) / 1000.0,
        seed=int(seed_raw) if seed_raw and seed_raw.strip().lstrip("-").isdigit() else None,
        enable_retries=_env_bool("AI_ENABLE_RETRIES", True),
        max_retries=_env_int("AI_MAX_RETRIES", 3, 0, 6),
        retry_delay=_env_float("AI_RETRY_DELAY_SEC", 1.0, 0.0, 30.0),
    )


def load_server_settings() -> ServerSettings:
    return ServerSettings(
        port=_env_int("PORT", 3001, 1, 65535),
        cors_origin=os.getenv("CORS_ORIGIN", "http://localhost:3000"),
        log_level=(os.getenv("LOG_LEVEL") or "info").lower(),
        enable_logging=os.getenv("ENABLE_LOGGING", "true").strip().lower() != "false",
    )


def _out_of_range(raw: str, parse, low, high) -> bool:
    try:
        value = parse(raw)
    except ValueError:
        return True
    return value < low or value > high


def validate_ai_config() -> tuple[bool, list[str]]:
    """Check the raw AI_* environment; returns (valid, errors)."""
    errors: list[str] = []

    for name in ("AI_API_KEY", "AI_API_URL", "AI_MODEL"):
        if not os.getenv(name):
            errors.append(f"{name} is required")

    max_tokens = os.getenv("AI_MAX_TOKENS")
    if max_tokens and _out_of_range(max_tokens, int, 100, 32000):
        errors.append("AI_MAX_TOKENS must be between 100 and 32000")

    temperature = os.getenv("AI_TEMPERATURE")
    if temperature and _out_of_range(temperature, float, 0, 2):
        errors.append("AI_TEMPERATURE must be between 0 and 2")

    top_p = os.getenv("AI_TOP_P")
    if top_p and _out_of_range(top_p, float, 0, 1):
        errors.append("AI_TOP_P must be between 0 and 1")

    timeout = os.getenv("AI_TIMEOUT")
    if timeout and _out_of_range(timeout, int, 1000, 120000):
        errors.append("AI_TIMEOUT must be between 1000 and 120000 milliseconds")

    return not errors, errors
