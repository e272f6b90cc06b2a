"""Tests for models.json bootstrap: Ollama discovery, merge/replace, errors."""

import json
import pytest
import respx
import httpx

from chat_probe.bootstrap import ensure_models_json, fetch_ollama_models
from chat_probe.errors import ConfigError

from tests.conftest import MOCK_OLLAMA_HOST, MOCK_TAGS_RESPONSE, MOCK_PROVIDERS


def read(path):
    return json.loads(path.read_text())


# ─────────────────────────────────────────────────────────────────────
# Ollama discovery
# ─────────────────────────────────────────────────────────────────────


class TestFetchOllamaModels:
    @pytest.mark.asyncio
    @respx.mock
    async def test_maps_tags_to_entries(self):
        respx.get(f"{MOCK_OLLAMA_HOST}/api/tags").mock(
            return_value=httpx.Response(200, json=MOCK_TAGS_RESPONSE)
        )

        entries = await fetch_ollama_models(MOCK_OLLAMA_HOST)

        assert [e["id"] for e in entries] == ["llama3:8b", "qwen2.5:7b", "deepseek-r1:8b"]
        assert entries[0]["reasoning"] is False
        assert entries[2]["reasoning"] is True
        assert entries[0]["input"] == ["text"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_unreachable_returns_empty(self):
        respx.get(f"{MOCK_OLLAMA_HOST}/api/tags").mock(
            side_effect=httpx.ConnectError("Connection refused")
        )

        assert await fetch_ollama_models(MOCK_OLLAMA_HOST) == []

    @pytest.mark.asyncio
    @respx.mock
    async def test_http_error_returns_empty(self):
        respx.get(f"{MOCK_OLLAMA_HOST}/api/tags").mock(
            return_value=httpx.Response(500, text="boom")
        )

        assert await fetch_ollama_models(MOCK_OLLAMA_HOST) == []

    @pytest.mark.asyncio
    @respx.mock
    async def test_skips_entries_without_name(self):
        respx.get(f"{MOCK_OLLAMA_HOST}/api/tags").mock(
            return_value=httpx.Response(200, json={"models": [{"size": 1}, {"name": "a"}]})
        )

        entries = await fetch_ollama_models(MOCK_OLLAMA_HOST)
        assert [e["id"] for e in entries] == ["a"]


# ─────────────────────────────────────────────────────────────────────
# ensure_models_json
# ─────────────────────────────────────────────────────────────────────


class TestEnsureModelsJson:
    @pytest.mark.asyncio
    @respx.mock
    async def test_writes_implicit_ollama_provider(self, tmp_path):
        respx.get(f"{MOCK_OLLAMA_HOST}/api/tags").mock(
            return_value=httpx.Response(200, json=MOCK_TAGS_RESPONSE)
        )

        path = await ensure_models_json({"ollama_host": MOCK_OLLAMA_HOST}, tmp_path)

        assert path == tmp_path / "models.json"
        ollama = read(path)["providers"]["ollama"]
        assert ollama["baseUrl"] == f"{MOCK_OLLAMA_HOST}/v1"
        assert ollama["api"] == "openai-completions"
        assert len(ollama["models"]) == 3

    @pytest.mark.asyncio
    @respx.mock
    async def test_uses_ollama_host_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("OLLAMA_HOST", "ollama.test:11434")
        route = respx.get(f"{MOCK_OLLAMA_HOST}/api/tags").mock(
            return_value=httpx.Response(200, json=MOCK_TAGS_RESPONSE)
        )

        await ensure_models_json({}, tmp_path)

        assert route.called

    @pytest.mark.asyncio
    @respx.mock
    async def test_unreachable_ollama_still_writes_file(self, tmp_path):
        respx.get(f"{MOCK_OLLAMA_HOST}/api/tags").mock(
            side_effect=httpx.ConnectError("Connection refused")
        )

        path = await ensure_models_json({"ollama_host": MOCK_OLLAMA_HOST}, tmp_path)

        assert read(path) == {"providers": {}}

    @pytest.mark.asyncio
    async def test_explicit_providers_without_discovery(self, tmp_path):
        path = await ensure_models_json(
            {"providers": MOCK_PROVIDERS, "discover_ollama": False}, tmp_path
        )

        assert read(path)["providers"] == MOCK_PROVIDERS

    @pytest.mark.asyncio
    async def test_explicit_ollama_skips_discovery(self, tmp_path):
        # No routes: any HTTP call here would fail the test
        with respx.mock(assert_all_called=False) as mock:
            await ensure_models_json({"providers": MOCK_PROVIDERS}, tmp_path)
            assert not mock.calls

    @pytest.mark.asyncio
    async def test_merge_keeps_existing_providers(self, tmp_path):
        existing = {"providers": {"custom": {"baseUrl": "http://c/v1", "models": [{"id": "m"}]}}}
        (tmp_path / "models.json").write_text(json.dumps(existing))

        path = await ensure_models_json(
            {"providers": {"ollama": MOCK_PROVIDERS["ollama"]}, "discover_ollama": False},
            tmp_path,
        )

        providers = read(path)["providers"]
        assert set(providers) == {"custom", "ollama"}

    @pytest.mark.asyncio
    async def test_replace_drops_existing_providers(self, tmp_path):
        existing = {"providers": {"custom": {"baseUrl": "http://c/v1", "models": [{"id": "m"}]}}}
        (tmp_path / "models.json").write_text(json.dumps(existing))

        path = await ensure_models_json(
            {
                "providers": {"ollama": MOCK_PROVIDERS["ollama"]},
                "mode": "replace",
                "discover_ollama": False,
            },
            tmp_path,
        )

        assert set(read(path)["providers"]) == {"ollama"}

    @pytest.mark.asyncio
    async def test_idempotent(self, tmp_path):
        options = {"providers": MOCK_PROVIDERS, "discover_ollama": False}
        first = await ensure_models_json(options, tmp_path)
        mtime = first.stat().st_mtime_ns
        content = first.read_text()

        second = await ensure_models_json(options, tmp_path)

        assert second.read_text() == content
        assert second.stat().st_mtime_ns == mtime

    @pytest.mark.asyncio
    async def test_creates_missing_directory(self, tmp_path):
        target = tmp_path / "nested" / "agent"
        path = await ensure_models_json({"discover_ollama": False}, target)
        assert path.exists()

    @pytest.mark.asyncio
    async def test_invalid_existing_json_raises(self, tmp_path):
        (tmp_path / "models.json").write_text("{not json")

        with pytest.raises(ConfigError, match="Invalid JSON"):
            await ensure_models_json({"discover_ollama": False}, tmp_path)

    @pytest.mark.asyncio
    async def test_unknown_mode_raises(self, tmp_path):
        with pytest.raises(ConfigError, match="Unknown models.json mode"):
            await ensure_models_json({"mode": "append"}, tmp_path)

    @pytest.mark.asyncio
    async def test_unwritable_directory_raises(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")

        with pytest.raises(ConfigError, match="Cannot write"):
            await ensure_models_json({"discover_ollama": False}, blocker / "sub")
