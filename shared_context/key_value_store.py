"""
Armazenamento chave-valor persistente - Guarda as filas de chaves de API por provedor
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path

import redis

from config.constants import DEFAULT_KEY_STORE_PATH, LOGGER_NAME, REDIS_DEFAULT_PORT

logger = logging.getLogger(LOGGER_NAME)


class KeyValueStore(ABC):
    """
    Interface de armazenamento chave-valor com namespaces.

    Falhas de I/O são propagadas como exceções; quem consome decide como degradar.
    """

    @abstractmethod
    def get(self, namespace: str, key: str) -> str | None:
        pass

    @abstractmethod
    def set(self, namespace: str, key: str, value: str) -> None:
        pass

    @abstractmethod
    def delete(self, namespace: str, key: str) -> None:
        pass


class MemoryKeyValueStore(KeyValueStore):
    """Armazenamento volátil em memória, útil para testes e modo efêmero"""

    def __init__(self, initial: dict[str, dict[str, str]] | None = None):
        self._data: dict[str, dict[str, str]] = {ns: dict(values) for ns, values in (initial or {}).items()}
        self._lock = threading.Lock()

    def get(self, namespace: str, key: str) -> str | None:
        with self._lock:
            return self._data.get(namespace, {}).get(key)

    def set(self, namespace: str, key: str, value: str) -> None:
        with self._lock:
            self._data.setdefault(namespace, {})[key] = value

    def delete(self, namespace: str, key: str) -> None:
        with self._lock:
            self._data.get(namespace, {}).pop(key, None)

    def snapshot(self) -> dict[str, dict[str, str]]:
        with self._lock:
            return {ns: dict(values) for ns, values in self._data.items()}


class JsonFileKeyValueStore(KeyValueStore):
    """
    Armazenamento em arquivo JSON ({namespace: {chave: valor}}).

    A escrita é atômica: grava em arquivo temporário no mesmo diretório e substitui o original.
    """

    def __init__(self, path: str | Path = DEFAULT_KEY_STORE_PATH):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> dict[str, dict[str, str]]:
        if not self.path.exists():
            return {}
        raw = self.path.read_text(encoding="utf-8")
        if not raw.strip():
            return {}
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"Conteúdo inválido em {self.path}: esperado objeto JSON")
        return data

    def _write(self, data: dict[str, dict[str, str]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, namespace: str, key: str) -> str | None:
        with self._lock:
            return self._read().get(namespace, {}).get(key)

    def set(self, namespace: str, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data.setdefault(namespace, {})[key] = value
            self._write(data)

    def delete(self, namespace: str, key: str) -> None:
        with self._lock:
            data = self._read()
            if key in data.get(namespace, {}):
                del data[namespace][key]
                self._write(data)


class RedisKeyValueStore(KeyValueStore):
    """Armazenamento em Redis, com chaves no formato <prefixo>:<namespace>:<chave>"""

    def __init__(self, redis_client: redis.Redis, prefix: str = "orquestra"):
        self.redis = redis_client
        self.prefix = prefix

    def _redis_key(self, namespace: str, key: str) -> str:
        return f"{self.prefix}:{namespace}:{key}"

    def get(self, namespace: str, key: str) -> str | None:
        value = self.redis.get(self._redis_key(namespace, key))
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(self, namespace: str, key: str, value: str) -> None:
        self.redis.set(self._redis_key(namespace, key), value)

    def delete(self, namespace: str, key: str) -> None:
        self.redis.delete(self._redis_key(namespace, key))


def create_key_value_store(config: dict) -> KeyValueStore:
    """Cria o armazenamento configurado em 'key_store'"""
    store_config = config.get("key_store", {})
    backend = store_config.get("backend", "file")

    if backend == "memory":
        logger.info("Armazenamento de chaves em memória (não persistente)")
        return MemoryKeyValueStore()

    if backend == "redis":
        client = redis.Redis(
            host=store_config.get("redis_host", "localhost"),
            port=store_config.get("redis_port", REDIS_DEFAULT_PORT),
            db=store_config.get("redis_db", 0),
            decode_responses=True,
            socket_timeout=2,
            socket_connect_timeout=2,
        )
        logger.info(f"Armazenamento de chaves no Redis em {store_config.get('redis_host', 'localhost')}")
        return RedisKeyValueStore(client, prefix=store_config.get("namespace", "orquestra"))

    path = store_config.get("path", DEFAULT_KEY_STORE_PATH)
    logger.info(f"Armazenamento de chaves em arquivo: {path}")
    return JsonFileKeyValueStore(path)
