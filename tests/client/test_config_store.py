import json

from readerai.client.config_store import AI_CONFIG_STORAGE_KEY, ConfigStore, JsonKeyValueStore
from readerai.provider.registry import Provider, default_model
from readerai.schemas.chat import AIConfig


def test_missing_store_yields_default_config(tmp_path):
    store = ConfigStore(JsonKeyValueStore(tmp_path / "client.json"))
    config = store.load(allow_local_providers=True)

    assert config.provider is Provider.GATEWAY
    assert config.model == default_model(Provider.GATEWAY)
    assert config.api_key == ""


def test_saved_config_is_stored_under_fixed_key(tmp_path):
    path = tmp_path / "client.json"
    store = ConfigStore(JsonKeyValueStore(path))
    config = AIConfig(provider=Provider.GOOGLE, model="gemini-2.5-pro", api_key="g-key")

    store.save(config)

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert json.loads(raw[AI_CONFIG_STORAGE_KEY]) == {
        "provider": "google",
        "model": "gemini-2.5-pro",
        "apiKey": "g-key",
    }
    assert store.load(allow_local_providers=False) == config


def test_corrupt_or_partial_data_is_tolerated(tmp_path):
    kv = JsonKeyValueStore(tmp_path / "client.json")
    store = ConfigStore(kv)

    kv.set(AI_CONFIG_STORAGE_KEY, "{not json")
    assert store.load(allow_local_providers=True) == AIConfig()

    kv.set(AI_CONFIG_STORAGE_KEY, json.dumps({"provider": "openai", "model": "  ", "apiKey": 7}))
    config = store.load(allow_local_providers=True)
    assert config.provider is Provider.OPENAI
    assert config.model == default_model(Provider.OPENAI)
    assert config.api_key == ""


def test_local_provider_requires_permission(tmp_path):
    kv = JsonKeyValueStore(tmp_path / "client.json")
    kv.set(AI_CONFIG_STORAGE_KEY, json.dumps({"provider": "codex", "model": "codex-local"}))
    store = ConfigStore(kv)

    assert store.load(allow_local_providers=True).provider is Provider.CODEX
    assert store.load(allow_local_providers=False).provider is Provider.GATEWAY


def test_unreadable_file_is_ignored(tmp_path):
    path = tmp_path / "client.json"
    path.write_text("[]", encoding="utf-8")
    assert JsonKeyValueStore(path).get(AI_CONFIG_STORAGE_KEY) is None
