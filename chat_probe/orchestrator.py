"""
Probe orchestration: bootstrap -> credentials -> discovery -> stream.

run_probe() never lets component errors escape; every run ends in one
outcome (Success, Failure or DiscoveryEmpty).
"""

import logging
import os
from typing import Literal, Optional, Protocol, Union

from pydantic import BaseModel, ConfigDict, Field

from chat_probe.accumulator import Failure, RequestOutcome, Success, accumulate, failure_from
from chat_probe.adapters.base import ChatStreamer
from chat_probe.adapters.openai_compat import OpenAICompatClient
from chat_probe.bootstrap import ensure_models_json
from chat_probe.config import (
    DEFAULT_PROVIDER,
    DEFAULT_TIMEOUT_SECONDS,
    ChatContext,
    Message,
    Model,
    get_env_api_key,
    get_probe_prompt,
    get_probe_provider,
    get_timeout_seconds,
)
from chat_probe.credentials import CredentialStore
from chat_probe.registry import ModelRegistry, filter_by_provider

logger = logging.getLogger(__name__)

# Ollama ignores the key but OpenAI-style clients expect one
OLLAMA_PLACEHOLDER_KEY = "ollama"


class DiscoveryEmpty(BaseModel):
    """No models matched the provider. Informational, not an error."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["discovery_empty"] = "discovery_empty"
    provider: str

    @property
    def message(self) -> str:
        return f"No models found for provider '{self.provider}'"


ProbeOutcome = Union[Success, Failure, DiscoveryEmpty]


class ProbeSettings(BaseModel):
    """Everything one probe run needs, passed by value."""
    model_config = ConfigDict(frozen=True)

    provider: str = DEFAULT_PROVIDER
    runtime_api_key: Optional[str] = None
    prompt: str
    bootstrap_options: dict = Field(default_factory=dict)
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "ProbeSettings":
        provider = get_probe_provider()
        key = get_env_api_key(provider)
        if key is None and provider == "ollama":
            key = OLLAMA_PLACEHOLDER_KEY
        return cls(
            provider=provider,
            runtime_api_key=key,
            prompt=get_probe_prompt(),
            timeout_seconds=get_timeout_seconds(),
        )


class ProbeReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    outcome: ProbeOutcome
    stage: str
    models: list[Model] = Field(default_factory=list)
    selected: Optional[Model] = None

    @property
    def ok(self) -> bool:
        return not isinstance(self.outcome, Failure)


class ProbeReporter(Protocol):
    """Progress observer. Purely a side channel; never alters the outcome."""

    def step(self, number: int, title: str) -> None: ...
    def step_done(self, message: str) -> None: ...
    def models_found(self, models: list[Model]) -> None: ...
    def request_started(self, model: Model, prompt: str) -> None: ...
    def delta(self, text: str) -> None: ...


class NullReporter:
    def step(self, number: int, title: str) -> None:
        pass

    def step_done(self, message: str) -> None:
        pass

    def models_found(self, models: list[Model]) -> None:
        pass

    def request_started(self, model: Model, prompt: str) -> None:
        pass

    def delta(self, text: str) -> None:
        pass


def _failure(stage: str, exc: Exception, **kwargs) -> ProbeReport:
    logger.error(f"Probe failed during {stage}: {exc}")
    return ProbeReport(outcome=failure_from(exc), stage=stage, **kwargs)


async def run_probe(
    settings: ProbeSettings,
    working_dir: Union[str, os.PathLike],
    client: Optional[ChatStreamer] = None,
    reporter: Optional[ProbeReporter] = None,
) -> ProbeReport:
    """
    Run one end-to-end probe against settings.provider.

    Args:
        settings: Provider, credential and prompt to use
        working_dir: Directory for models.json / auth.json
        client: Streaming backend (default: OpenAICompatClient)
        reporter: Optional progress observer

    Returns:
        ProbeReport with exactly one outcome
    """
    reporter = reporter or NullReporter()
    client = client or OpenAICompatClient(timeout_seconds=settings.timeout_seconds)

    # 1. models.json
    reporter.step(1, "Generating models.json")
    try:
        path = await ensure_models_json(settings.bootstrap_options, working_dir)
    except Exception as e:
        return _failure("bootstrap", e)
    reporter.step_done(f"{path.name} generated")

    # 2. credentials
    reporter.step(2, "Setting up credentials")
    try:
        credentials = CredentialStore.discover(working_dir)
        if settings.runtime_api_key:
            credentials = credentials.with_runtime_api_key(
                settings.provider, settings.runtime_api_key
            )
    except Exception as e:
        return _failure("credentials", e)
    reporter.step_done("Credentials configured")

    # 3. discovery
    reporter.step(3, "Discovering models")
    try:
        registry = ModelRegistry.discover(credentials, working_dir)
    except Exception as e:
        return _failure("discovery", e)
    models = filter_by_provider(registry.get_all(), settings.provider)

    if not models:
        logger.info(f"No models for provider '{settings.provider}'")
        return ProbeReport(
            outcome=DiscoveryEmpty(provider=settings.provider),
            stage="discovery",
        )
    reporter.models_found(models)

    # 4. request
    model = models[0]
    reporter.step(4, f"Sending test request to {model.key}")
    reporter.request_started(model, settings.prompt)
    context = ChatContext(messages=(Message(role="user", content=settings.prompt),))

    try:
        stream = client.stream(model, context, api_key=registry.api_key_for(model))
    except Exception as e:
        return _failure("stream", e, models=models, selected=model)

    outcome: RequestOutcome = await accumulate(stream, on_delta=reporter.delta)
    if isinstance(outcome, Failure):
        logger.error(f"Stream from {model.key} failed: {outcome.message}")
    return ProbeReport(outcome=outcome, stage="stream", models=models, selected=model)
