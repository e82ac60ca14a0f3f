import json

import pytest

from config.constants import KEY_QUEUE_NAMESPACE, KEY_QUEUE_STORAGE_KEY
from services.key_queue_manager import KeyQueueManager, UnknownProviderError
from shared_context.key_value_store import (
    JsonFileKeyValueStore,
    MemoryKeyValueStore,
    RedisKeyValueStore,
    create_key_value_store,
)


class FlakyStore(MemoryKeyValueStore):
    """Armazenamento cujas gravações podem ser desligadas para simular falha de I/O"""

    def __init__(self):
        super().__init__()
        self.fail_writes = False

    def set(self, namespace, key, value):
        if self.fail_writes:
            raise OSError("disco cheio")
        super().set(namespace, key, value)


def test_add_key_is_idempotent(key_manager):
    assert key_manager.add_key("OpenAI", "sk-a") is True
    assert key_manager.add_key("OpenAI", "sk-a") is False

    assert key_manager.get_provider_keys("OpenAI") == ["sk-a"]


def test_add_key_rejects_empty_and_unknown_provider(key_manager):
    with pytest.raises(ValueError):
        key_manager.add_key("OpenAI", "   ")
    with pytest.raises(UnknownProviderError):
        key_manager.add_key("Inexistente", "sk-a")


def test_provider_name_is_case_insensitive(key_manager):
    key_manager.add_key("openai", "sk-a")

    assert key_manager.get_provider_keys("OpenAI") == ["sk-a"]
    assert key_manager.has_key("OPENAI")


def test_next_available_key_is_fifo_and_not_rotated(key_manager):
    key_manager.add_key("Claude", "k1")
    key_manager.add_key("Claude", "k2")

    assert key_manager.next_available_key("Claude") == "k1"
    assert key_manager.next_available_key("Claude") == "k1"


def test_mark_invalid_removes_key_and_survives_reload(store, registry):
    manager = KeyQueueManager(store, registry)
    manager.add_key("Gemini", "g1")
    manager.add_key("Gemini", "g2")

    assert manager.mark_invalid("g1", "Gemini") is True
    assert manager.mark_invalid("g1", "Gemini") is False
    assert manager.next_available_key("Gemini") == "g2"

    reloaded = KeyQueueManager(store, registry)
    assert reloaded.get_provider_keys("Gemini") == ["g2"]
    assert json.loads(store.get(KEY_QUEUE_NAMESPACE, KEY_QUEUE_STORAGE_KEY)) == {"Gemini": ["g2"]}


def test_mark_invalid_last_key_leaves_provider_without_key(key_manager):
    key_manager.add_key("Grok", "x1")
    key_manager.mark_invalid("x1", "Grok")

    assert key_manager.next_available_key("Grok") is None
    assert not key_manager.has_key("Grok")


def test_explicit_add_reenables_invalidated_key(key_manager):
    key_manager.add_key("OpenAI", "sk-a")
    key_manager.mark_invalid("sk-a", "OpenAI")

    assert key_manager.add_key("OpenAI", "sk-a") is True
    assert key_manager.next_available_key("OpenAI") == "sk-a"


def test_remove_key(key_manager):
    key_manager.add_key("DeepSeek", "d1")

    assert key_manager.remove_key("DeepSeek", "d1") is True
    assert key_manager.remove_key("DeepSeek", "d1") is False
    assert key_manager.get_provider_keys("DeepSeek") == []


def test_single_key_is_used_only_when_queue_is_empty(key_manager, store):
    key_manager.set_api_key("Claude", "avulsa")
    assert store.get("claude", "api_key") == "avulsa"
    assert key_manager.next_available_key("Claude") == "avulsa"

    key_manager.add_key("Claude", "fila")
    assert key_manager.next_available_key("Claude") == "fila"

    key_manager.mark_invalid("fila", "Claude")
    assert key_manager.next_available_key("Claude") == "avulsa"

    key_manager.mark_invalid("avulsa", "Claude")
    assert store.get("claude", "api_key") is None
    assert key_manager.next_available_key("Claude") is None


def test_write_failure_keeps_last_good_state_in_memory(registry):
    store = FlakyStore()
    manager = KeyQueueManager(store, registry)
    manager.add_key("OpenAI", "sk-a")

    store.fail_writes = True
    assert manager.add_key("OpenAI", "sk-b") is True
    assert manager.get_provider_keys("OpenAI") == ["sk-a", "sk-b"]

    store.fail_writes = False
    manager.add_key("OpenAI", "sk-c")
    assert json.loads(store.get(KEY_QUEUE_NAMESPACE, KEY_QUEUE_STORAGE_KEY)) == {"OpenAI": ["sk-a", "sk-b", "sk-c"]}


def test_corrupted_store_is_treated_as_previous_state(store, registry):
    manager = KeyQueueManager(store, registry)
    manager.add_key("OpenAI", "sk-a")

    store.set(KEY_QUEUE_NAMESPACE, KEY_QUEUE_STORAGE_KEY, "{não é json")

    assert manager.next_available_key("OpenAI") == "sk-a"


def test_json_file_store_persists_across_instances(tmp_path, registry):
    path = tmp_path / "keys" / "api_keys.json"

    first = KeyQueueManager(JsonFileKeyValueStore(path), registry)
    first.add_key("Perplexity", "p1")
    first.add_key("Perplexity", "p2")
    first.mark_invalid("p1", "Perplexity")

    second = KeyQueueManager(JsonFileKeyValueStore(path), registry)
    assert second.get_provider_keys("Perplexity") == ["p2"]


class FakeRedis:
    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value.encode("utf-8")

    def delete(self, key):
        self.data.pop(key, None)


def test_redis_store_prefixes_keys_and_decodes_bytes(registry):
    client = FakeRedis()
    manager = KeyQueueManager(RedisKeyValueStore(client, prefix="teste"), registry)

    manager.add_key("OpenAI", "sk-a")
    manager.set_api_key("Claude", "sk-ant")

    assert json.loads(client.data["teste:ai:ai_key_queues"]) == {"OpenAI": ["sk-a"]}
    assert client.data["teste:claude:api_key"] == b"sk-ant"
    assert manager.next_available_key("Claude") == "sk-ant"


def test_snapshots_reflect_persisted_state(store, key_manager):
    key_manager.add_key("Gemini", "g1")

    assert key_manager.snapshot() == {"Gemini": ["g1"]}
    assert json.loads(store.snapshot()["ai"]["ai_key_queues"]) == {"Gemini": ["g1"]}


def test_create_key_value_store_backends(tmp_path):
    assert isinstance(create_key_value_store({"key_store": {"backend": "memory"}}), MemoryKeyValueStore)

    file_store = create_key_value_store({"key_store": {"backend": "file", "path": str(tmp_path / "k.json")}})
    assert isinstance(file_store, JsonFileKeyValueStore)
