"""
Módulo Shared Context - Armazenamento persistente compartilhado entre sessões
"""

from .key_value_store import (
    JsonFileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
    RedisKeyValueStore,
    create_key_value_store,
)

__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "RedisKeyValueStore",
    "create_key_value_store",
]
