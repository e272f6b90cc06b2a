"""Shared test fixtures for chat-probe tests."""

import json
import pytest
from typing import AsyncGenerator


# ─────────────────────────────────────────────────────────────────────
# MOCK DATA
# ─────────────────────────────────────────────────────────────────────

MOCK_OLLAMA_HOST = "http://ollama.test:11434"
MOCK_OLLAMA_BASE_URL = f"{MOCK_OLLAMA_HOST}/v1"
MOCK_LMSTUDIO_BASE_URL = "http://192.168.1.10:1234/v1"

MOCK_MODEL_1 = "llama3:8b"
MOCK_MODEL_2 = "qwen2.5:7b"

MOCK_TAGS_RESPONSE = {
    "models": [
        {"name": MOCK_MODEL_1, "size": 4661224676},
        {"name": MOCK_MODEL_2, "size": 4683087332},
        {"name": "deepseek-r1:8b", "size": 4920738407},
    ]
}

MOCK_PROVIDERS = {
    "lmstudio": {
        "baseUrl": MOCK_LMSTUDIO_BASE_URL,
        "api": "openai-completions",
        "models": [{"id": "phi-3-mini"}],
    },
    "ollama": {
        "baseUrl": MOCK_OLLAMA_BASE_URL,
        "api": "openai-completions",
        "models": [
            {"id": MOCK_MODEL_1, "name": MOCK_MODEL_1},
            {"id": MOCK_MODEL_2, "name": MOCK_MODEL_2},
        ],
    },
}

MOCK_STREAMING_CHUNKS = [
    'data: {"id":"chatcmpl-1","object":"chat.completion.chunk","model":"llama3:8b","choices":[{"index":0,"delta":{"role":"assistant","content":""},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-1","object":"chat.completion.chunk","model":"llama3:8b","choices":[{"index":0,"delta":{"content":"I am"},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-1","object":"chat.completion.chunk","model":"llama3:8b","choices":[{"index":0,"delta":{"content":" a helpful"},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-1","object":"chat.completion.chunk","model":"llama3:8b","choices":[{"index":0,"delta":{"content":" assistant."},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-1","object":"chat.completion.chunk","model":"llama3:8b","choices":[{"index":0,"delta":{},"finish_reason":"stop"}]}',
    'data: {"id":"chatcmpl-1","object":"chat.completion.chunk","model":"llama3:8b","choices":[],"usage":{"prompt_tokens":12,"completion_tokens":7,"total_tokens":19}}',
    'data: [DONE]',
]


def sse_body(lines: list[str]) -> str:
    """Join SSE data lines into a response body."""
    return "".join(f"{line}\n\n" for line in lines)


# ─────────────────────────────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────────────────────────────

async def chunk_source(chunks, error: Exception = None) -> AsyncGenerator:
    """Yield chunks, then raise error if given."""
    for chunk in chunks:
        yield chunk
    if error is not None:
        raise error


# ─────────────────────────────────────────────────────────────────────
# FIXTURES
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def ollama_model():
    from chat_probe.config import Model
    return Model(provider="ollama", id=MOCK_MODEL_1, base_url=MOCK_OLLAMA_BASE_URL)


@pytest.fixture
def user_context():
    from chat_probe.config import ChatContext, Message
    return ChatContext(messages=(Message(role="user", content="Hi"),))


@pytest.fixture
def models_json(tmp_path):
    """Write MOCK_PROVIDERS to tmp_path/models.json and return tmp_path."""
    (tmp_path / "models.json").write_text(json.dumps({"providers": MOCK_PROVIDERS}))
    return tmp_path


@pytest.fixture(autouse=True)
def clean_env(request, monkeypatch):
    """Keep the developer's environment out of unit tests."""
    if request.node.get_closest_marker("integration"):
        return
    for name in (
        "OLLAMA_HOST",
        "OLLAMA_API_KEY",
        "LMSTUDIO_API_KEY",
        "ANTHROPIC_API_KEY",
        "CHAT_PROBE_PROVIDER",
        "CHAT_PROBE_PROMPT",
        "CHAT_PROBE_TIMEOUT",
        "CHAT_PROBE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
