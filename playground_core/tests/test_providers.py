import asyncio

import pytest

from playground_core.agents.factory import create_orchestrator
from playground_core.providers import create_adapter, list_models
from playground_core.providers.gemini_adapter import GeminiAdapter
from playground_core.providers.openai_adapter import OpenAIAdapter
from playground_core.providers.registry import OPENAI_CONFIG


class DummySettings:
    default_provider = "gemini"
    openai_api_key = "sk-openai-0123456789"
    openai_base_url = "https://proxy.local/v1"
    openai_model = "gpt-4o-mini"
    gemini_api_key = "gm-gemini-0123456789"
    gemini_base_url = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model = "gemini-2.5-flash"
    openrouter_api_key = "or-0123456789"
    openrouter_base_url = "https://openrouter.ai/api/v1"
    openrouter_model = "anthropic/some-model"
    temperature = 0.2
    max_tokens = 1000
    http_timeout = 5.0
    retry_max_retries = 1
    retry_delay = 0.5
    retry_strategy = "fixed"
    max_tool_rounds = 4
    system_prompt = "be helpful"


def test_create_adapter_default(monkeypatch):
    monkeypatch.setattr("playground_core.providers.settings", DummySettings())
    adapter = create_adapter()
    assert isinstance(adapter, GeminiAdapter)
    assert adapter.model == "gemini-2.5-flash"
    assert adapter.config.temperature == 0.2


def test_create_adapter_explicit(monkeypatch):
    monkeypatch.setattr("playground_core.providers.settings", DummySettings())
    adapter = create_adapter("OpenAI")
    assert isinstance(adapter, OpenAIAdapter)
    assert adapter.config.base_url == "https://proxy.local/v1"
    assert adapter.config.api_key == "sk-openai-0123456789"


def test_openrouter_uses_openai_family(monkeypatch):
    monkeypatch.setattr("playground_core.providers.settings", DummySettings())
    adapter = create_adapter("openrouter")
    assert isinstance(adapter, OpenAIAdapter)
    assert adapter.name == "openrouter"
    assert adapter.model == "anthropic/some-model"


def test_create_adapter_unknown(monkeypatch):
    monkeypatch.setattr("playground_core.providers.settings", DummySettings())
    with pytest.raises(KeyError):
        create_adapter("nope")


def test_list_models():
    class Transport:
        async def get_json(self, url, headers):
            self.url = url
            return {"data": [{"id": "gpt-4o"}]}

    transport = Transport()
    adapter = OpenAIAdapter(OPENAI_CONFIG.with_overrides(api_key="sk-test-0123456789"))
    assert asyncio.run(list_models(adapter, transport)) == ["gpt-4o"]
    assert transport.url == "https://api.openai.com/v1/models"


def test_create_orchestrator_from_settings(monkeypatch, tmp_path):
    dummy = DummySettings()
    dummy.storage_root = str(tmp_path)
    monkeypatch.setattr("playground_core.providers.settings", dummy)
    monkeypatch.setattr("playground_core.agents.factory.settings", dummy)
    monkeypatch.setattr("playground_core.infrastructure.storage.json_store.settings", dummy)

    orch = create_orchestrator("openai", session_id="s-test")
    assert isinstance(orch.adapter, OpenAIAdapter)
    assert orch.conversation.system_prompt == "be helpful"
    assert orch.conversation.messages == []
    assert (tmp_path / "sessions").exists()


def test_retry_setting_counts_retries_after_first_call(monkeypatch, tmp_path):
    dummy = DummySettings()
    dummy.storage_root = str(tmp_path)
    monkeypatch.setattr("playground_core.providers.settings", dummy)
    monkeypatch.setattr("playground_core.agents.factory.settings", dummy)

    orch = create_orchestrator("openai")
    assert orch._retry_policy.max_retries == dummy.retry_max_retries
    assert orch._retry_policy.strategy == "fixed"
