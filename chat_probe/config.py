"""
Configuration constants and Pydantic models for chat-probe.
"""

import logging
import os
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict


# ─────────────────────────────────────────────────────────────────────
# DEFAULTS
# ─────────────────────────────────────────────────────────────────────

DEFAULT_PROVIDER: str = "ollama"
DEFAULT_OLLAMA_HOST: str = "http://127.0.0.1:11434"
DEFAULT_PROMPT: str = "Hello! Please introduce yourself in one sentence."
DEFAULT_TIMEOUT_SECONDS: int = 300  # 5 minutes

# Ollama does not report these through /api/tags
DEFAULT_CONTEXT_WINDOW: int = 128000
DEFAULT_MAX_TOKENS: int = 8192


# ─────────────────────────────────────────────────────────────────────
# INTERNAL CONSTANTS
# ─────────────────────────────────────────────────────────────────────

MODELS_JSON_FILENAME: str = "models.json"
AUTH_JSON_FILENAME: str = "auth.json"
WORKDIR_PREFIX: str = "chat-probe-"
OPENAI_COMPLETIONS_API: str = "openai-completions"


# ─────────────────────────────────────────────────────────────────────
# ENVIRONMENT LOADING
# ─────────────────────────────────────────────────────────────────────

def get_ollama_host() -> str:
    """
    Get the Ollama host from environment or default.

    OLLAMA_HOST is often set without a scheme (e.g. "0.0.0.0:11434");
    http:// is assumed in that case.
    """
    host = os.environ.get("OLLAMA_HOST", "").strip()
    if not host:
        return DEFAULT_OLLAMA_HOST
    if "://" not in host:
        host = f"http://{host}"
    return host.rstrip("/")


def get_probe_provider() -> str:
    """Get the provider to probe (CHAT_PROBE_PROVIDER, default: ollama)."""
    return os.environ.get("CHAT_PROBE_PROVIDER", "").strip() or DEFAULT_PROVIDER


def get_probe_prompt() -> str:
    """Get the single user prompt sent by the probe."""
    return os.environ.get("CHAT_PROBE_PROMPT", "").strip() or DEFAULT_PROMPT


def get_timeout_seconds() -> int:
    """
    Get request timeout in seconds.

    Set CHAT_PROBE_TIMEOUT in .env (default: 300).
    """
    try:
        value = int(os.environ.get("CHAT_PROBE_TIMEOUT", str(DEFAULT_TIMEOUT_SECONDS)))
    except ValueError:
        return DEFAULT_TIMEOUT_SECONDS
    return value if value > 0 else DEFAULT_TIMEOUT_SECONDS


def get_log_level() -> int:
    """
    Get log level from CHAT_PROBE_LOG_LEVEL (name or number).

    Defaults to WARNING so streamed output stays readable.
    """
    raw = os.environ.get("CHAT_PROBE_LOG_LEVEL", "").strip()
    if not raw:
        return logging.WARNING
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw.upper())
    return level if isinstance(level, int) else logging.WARNING


def get_env_api_key(provider: str) -> Optional[str]:
    """Look up <PROVIDER>_API_KEY, e.g. OLLAMA_API_KEY for "ollama"."""
    name = provider.upper().replace("-", "_") + "_API_KEY"
    value = os.environ.get(name, "").strip()
    return value or None


# ─────────────────────────────────────────────────────────────────────
# DATA MODELS
# ─────────────────────────────────────────────────────────────────────

Role = Literal["system", "user", "assistant"]


class Message(BaseModel):
    """A single message in a conversation."""
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class Model(BaseModel):
    """
    One usable model from a registry snapshot.

    (provider, id) is unique within a snapshot.
    """
    model_config = ConfigDict(frozen=True)

    provider: str
    id: str
    base_url: str
    api: str = OPENAI_COMPLETIONS_API
    name: Optional[str] = None
    reasoning: bool = False
    context_window: int = DEFAULT_CONTEXT_WINDOW
    max_tokens: int = DEFAULT_MAX_TOKENS

    @property
    def key(self) -> str:
        return f"{self.provider}/{self.id}"


class ChatContext(BaseModel):
    """Conversation passed by value into a streaming request."""
    model_config = ConfigDict(frozen=True)

    messages: tuple[Message, ...] = ()
    system_prompt: Optional[str] = None

    def to_openai_messages(self) -> list[dict]:
        """Convert to OpenAI API message format."""
        result = []
        if self.system_prompt:
            result.append({"role": "system", "content": self.system_prompt})
        result.extend({"role": m.role, "content": m.content} for m in self.messages)
        return result
