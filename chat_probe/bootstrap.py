"""
Bootstrap: ensure models.json exists in the working directory.

Providers come from three places, later ones winning by name:
existing models.json (merge mode only), the implicit Ollama provider
discovered from a running Ollama server, and explicit options.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

import httpx

from chat_probe.config import (
    DEFAULT_CONTEXT_WINDOW,
    DEFAULT_MAX_TOKENS,
    MODELS_JSON_FILENAME,
    OPENAI_COMPLETIONS_API,
    get_ollama_host,
)
from chat_probe.errors import ConfigError

logger = logging.getLogger(__name__)

OLLAMA_TAGS_TIMEOUT_SECONDS: float = 5.0
_REASONING_HINTS = ("r1", "reasoning", "think")


# ─────────────────────────────────────────────────────────────────────
# OLLAMA DISCOVERY
# ─────────────────────────────────────────────────────────────────────

def _is_reasoning_model(name: str) -> bool:
    lowered = name.lower()
    return any(hint in lowered for hint in _REASONING_HINTS)


async def fetch_ollama_models(host: str) -> list[dict]:
    """
    Fetch installed models from an Ollama server via /api/tags.

    Returns model entries in models.json shape. Returns [] if the server
    is unreachable or answers with something unexpected.
    """
    try:
        async with httpx.AsyncClient(timeout=OLLAMA_TAGS_TIMEOUT_SECONDS) as client:
            response = await client.get(f"{host}/api/tags")
            response.raise_for_status()
            data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Ollama not reachable at {host}: {e}")
        return []

    # Ollama returns {"models": [{"name": "llama3:8b", ...}, ...]}
    tags = data.get("models", []) if isinstance(data, dict) else []
    entries = []
    for tag in tags:
        name = tag.get("name") if isinstance(tag, dict) else None
        if not name:
            continue
        entries.append({
            "id": name,
            "name": name,
            "reasoning": _is_reasoning_model(name),
            "input": ["text"],
            "contextWindow": DEFAULT_CONTEXT_WINDOW,
            "maxTokens": DEFAULT_MAX_TOKENS,
        })
    logger.info(f"Discovered {len(entries)} Ollama model(s) at {host}")
    return entries


async def build_implicit_ollama_provider(host: str) -> Optional[dict]:
    """Build the implicit "ollama" provider entry, or None if no models."""
    models = await fetch_ollama_models(host)
    if not models:
        return None
    return {
        "baseUrl": f"{host}/v1",
        "api": OPENAI_COMPLETIONS_API,
        "models": models,
    }


# ─────────────────────────────────────────────────────────────────────
# MODELS.JSON
# ─────────────────────────────────────────────────────────────────────

def read_models_json(path: Path) -> dict:
    """Read an existing models.json. Missing file reads as no providers."""
    if not path.exists():
        return {"providers": {}}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("providers", {}), dict):
        raise ConfigError(f"Expected an object with a 'providers' map in {path}")
    data.setdefault("providers", {})
    return data


async def ensure_models_json(
    options: Optional[dict],
    working_dir: Union[str, os.PathLike],
) -> Path:
    """
    Write or confirm models.json under working_dir.

    Args:
        options: Configuration map; {} is valid. Recognised keys:
            providers (dict), mode ("merge" | "replace"),
            discover_ollama (bool), ollama_host (str)
        working_dir: Directory that holds models.json

    Returns:
        Path to models.json

    Raises:
        ConfigError: If the file cannot be read or written
    """
    options = options or {}
    mode = options.get("mode", "merge")
    if mode not in ("merge", "replace"):
        raise ConfigError(f"Unknown models.json mode: {mode!r}")

    directory = Path(working_dir)
    path = directory / MODELS_JSON_FILENAME
    explicit: dict = dict(options.get("providers") or {})

    providers: dict = {}
    if mode == "merge":
        providers.update(read_models_json(path)["providers"])

    if options.get("discover_ollama", True) and "ollama" not in explicit:
        host = (options.get("ollama_host") or get_ollama_host()).rstrip("/")
        implicit = await build_implicit_ollama_provider(host)
        if implicit is not None:
            providers["ollama"] = implicit

    providers.update(explicit)

    content = json.dumps({"providers": providers}, indent=2, ensure_ascii=False) + "\n"

    try:
        directory.mkdir(parents=True, exist_ok=True)
        if path.exists() and path.read_text(encoding="utf-8") == content:
            logger.debug(f"{path} is up to date")
            return path
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot write {path}: {e}") from e

    logger.info(f"Wrote {path} with {len(providers)} provider(s)")
    return path
