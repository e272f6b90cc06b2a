"""
CredentialStore - provider -> API key mapping scoped to a working directory.

The store is an immutable value. Runtime keys are added by building a
new store with with_runtime_api_key(), so the orchestrator holds its
credentials explicitly instead of mutating process-wide state.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from chat_probe.config import AUTH_JSON_FILENAME, get_env_api_key
from chat_probe.errors import ConfigError

logger = logging.getLogger(__name__)


def _parse_auth_entry(provider: str, entry) -> Optional[str]:
    """Extract a key from {"type": "api_key", "key": "..."} or a bare string."""
    if isinstance(entry, str):
        return entry or None
    if isinstance(entry, dict):
        if entry.get("type", "api_key") != "api_key":
            logger.debug(f"Skipping non-api_key credential for '{provider}'")
            return None
        key = entry.get("key")
        return key if isinstance(key, str) and key else None
    return None


class CredentialStore(BaseModel):
    """Credentials for the current process. Never written back to disk."""
    model_config = ConfigDict(frozen=True)

    stored: dict[str, str] = Field(default_factory=dict, repr=False)
    runtime: dict[str, str] = Field(default_factory=dict, repr=False)

    @classmethod
    def discover(cls, working_dir: Union[str, os.PathLike]) -> "CredentialStore":
        """
        Load auth.json from working_dir.

        A missing file gives an empty store.

        Raises:
            ConfigError: If auth.json exists but cannot be read or parsed
        """
        path = Path(working_dir) / AUTH_JSON_FILENAME
        if not path.exists():
            return cls()

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            raise ConfigError(f"Cannot read {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Expected an object in {path}")

        stored = {}
        for provider, entry in data.items():
            key = _parse_auth_entry(provider, entry)
            if key:
                stored[provider] = key
        logger.info(f"Loaded credentials for {len(stored)} provider(s) from {path}")
        return cls(stored=stored)

    def with_runtime_api_key(self, provider: str, secret: str) -> "CredentialStore":
        """Return a copy with a process-lifetime key for provider."""
        if not provider:
            raise ValueError("provider must be non-empty")
        if not secret:
            raise ValueError("secret must be non-empty")
        runtime = dict(self.runtime)
        runtime[provider] = secret
        return self.model_copy(update={"runtime": runtime})

    def get_api_key(self, provider: str) -> Optional[str]:
        """Resolve a key: runtime, then auth.json, then <PROVIDER>_API_KEY."""
        if provider in self.runtime:
            return self.runtime[provider]
        if provider in self.stored:
            return self.stored[provider]
        return get_env_api_key(provider)

    def has_credentials(self, provider: str) -> bool:
        return self.get_api_key(provider) is not None

    def providers(self) -> list[str]:
        """Providers with a stored or runtime key (env keys are not listed)."""
        return sorted(set(self.stored) | set(self.runtime))

    def __repr__(self) -> str:
        return f"CredentialStore(providers={self.providers()!r})"

    __str__ = __repr__
