"""Configuration helpers and defaults."""
from __future__ import annotations

from os import getenv
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_MODEL = "gemma:2b"
DEFAULT_PROVIDER = "echo"
DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_MAX_STEPS = 6
DEFAULT_REQUEST_TIMEOUT_MS = 120_000
DEFAULT_TEMPERATURE = 0
DEFAULT_MAX_CONSECUTIVE_FAILURES = 3

# Observation size cap, keeps a chatty capability from flooding the context
DEFAULT_TOOL_OUTPUT_LIMIT = 8000

DEFAULT_LOG_PATH = ".foreman-log.jsonl"
DEFAULT_AUDIT_PATH = ".foreman-audit.jsonl"

# Track if we've loaded .env
_dotenv_loaded = False


def ensure_dotenv_loaded() -> None:
    """Load .env file from current directory if not already loaded."""
    global _dotenv_loaded
    if _dotenv_loaded:
        return

    env_file = Path.cwd() / ".env"
    if env_file.exists():
        load_dotenv(env_file)
    else:
        # Also try parent directories up to home
        for parent in Path.cwd().parents:
            env_file = parent / ".env"
            if env_file.exists():
                load_dotenv(env_file)
                break
            if parent == Path.home():
                break

    _dotenv_loaded = True


def resolve_base_url() -> Optional[str]:
    """Chat endpoint base URL from the environment, if configured."""
    ensure_dotenv_loaded()
    raw = getenv("FOREMAN_BASE_URL") or getenv("OLLAMA_HOST")
    if not raw:
        return None
    if not raw.startswith(("http://", "https://")):
        raw = f"http://{raw}"
    return raw.rstrip("/")


def detect_provider() -> str:
    """Autodetect provider based on available environment variables."""
    if resolve_base_url():
        return "ollama"
    return "echo"


def resolve_model() -> str:
    ensure_dotenv_loaded()
    return getenv("FOREMAN_MODEL") or DEFAULT_MODEL


def env_int(name: str, fallback: int) -> int:
    raw = getenv(name)
    if raw is None:
        return fallback
    try:
        value = int(raw)
    except ValueError:
        return fallback
    return value if value > 0 else fallback


def env_list(name: str) -> list[str]:
    raw = getenv(name, "")
    parts = [part.strip() for part in raw.split(",")]
    return [part for part in parts if part]
