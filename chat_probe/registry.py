"""
ModelRegistry - snapshot of models defined in models.json.

Discovery never fails on an empty result; an empty snapshot is valid.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from chat_probe.bootstrap import read_models_json
from chat_probe.config import (
    DEFAULT_CONTEXT_WINDOW,
    DEFAULT_MAX_TOKENS,
    MODELS_JSON_FILENAME,
    OPENAI_COMPLETIONS_API,
    Model,
)
from chat_probe.credentials import CredentialStore
from chat_probe.errors import ConfigError

logger = logging.getLogger(__name__)


def filter_by_provider(models: list[Model], provider_id: str) -> list[Model]:
    """Return models for provider_id, preserving input order."""
    return [m for m in models if m.provider == provider_id]


def _build_model(provider: str, provider_entry: dict, entry: dict) -> Model:
    """Build a Model; provider baseUrl/api are inherited unless overridden."""
    return Model(
        provider=provider,
        id=entry["id"],
        base_url=entry.get("baseUrl") or provider_entry["baseUrl"],
        api=entry.get("api") or provider_entry.get("api") or OPENAI_COMPLETIONS_API,
        name=entry.get("name"),
        reasoning=bool(entry.get("reasoning", False)),
        context_window=entry.get("contextWindow", DEFAULT_CONTEXT_WINDOW),
        max_tokens=entry.get("maxTokens", DEFAULT_MAX_TOKENS),
    )


class ModelRegistry:
    """
    Models from one discovery call, in file order.

    Holds the credential store it was discovered with so callers can
    resolve a key for the selected model.
    """

    def __init__(self, models: list[Model], credentials: CredentialStore):
        self._models = list(models)
        self._credentials = credentials

    @classmethod
    def discover(
        cls,
        credentials: CredentialStore,
        working_dir: Union[str, os.PathLike],
    ) -> "ModelRegistry":
        """
        Load models.json from working_dir.

        Raises:
            ConfigError: If models.json is unreadable or has invalid entries
        """
        path = Path(working_dir) / MODELS_JSON_FILENAME
        providers = read_models_json(path)["providers"]

        models: list[Model] = []
        seen: set[tuple[str, str]] = set()
        for provider, provider_entry in providers.items():
            if not isinstance(provider_entry, dict):
                raise ConfigError(f"Provider '{provider}' in {path} must be an object")
            for entry in provider_entry.get("models", []):
                try:
                    model = _build_model(provider, provider_entry, entry)
                except (KeyError, TypeError, ValidationError) as e:
                    raise ConfigError(
                        f"Invalid model entry for provider '{provider}' in {path}: {e}"
                    ) from e

                if (model.provider, model.id) in seen:
                    logger.warning(f"Duplicate model {model.key} in {path}, keeping first")
                    continue
                seen.add((model.provider, model.id))
                models.append(model)

        logger.info(f"Registry snapshot: {len(models)} model(s)")
        return cls(models, credentials)

    def get_all(self) -> list[Model]:
        return list(self._models)

    def get_available(self) -> list[Model]:
        """Models whose provider has a usable credential."""
        return [m for m in self._models if self._credentials.has_credentials(m.provider)]

    def find(self, provider: str, model_id: str) -> Optional[Model]:
        for model in self._models:
            if model.provider == provider and model.id == model_id:
                return model
        return None

    def api_key_for(self, model: Model) -> Optional[str]:
        return self._credentials.get_api_key(model.provider)
