"""
Gerenciador de filas de chaves de API - Armazena, rotaciona e invalida chaves por provedor
"""

import json
import logging
import threading

from config.constants import (
    KEY_QUEUE_NAMESPACE,
    KEY_QUEUE_STORAGE_KEY,
    LEGACY_KEY_STORAGE_KEY,
    LOGGER_NAME,
)
from shared_context.key_value_store import KeyValueStore
from utils.llm_abstraction import ProviderRegistry, masked

logger = logging.getLogger(LOGGER_NAME)


class UnknownProviderError(KeyError):
    """Provedor ausente do registro"""


class KeyQueueManager:
    """
    Fila ordenada de chaves candidatas por provedor.

    A ordem de inserção é a ordem de tentativa; uma chave continua sendo reutilizada até falhar.
    Toda mutação é um ciclo leitura-modificação-escrita sob o mesmo lock e é persistida no
    armazenamento chave-valor. Falhas do armazenamento nunca propagam: o último estado bom
    em memória continua valendo.
    """

    def __init__(self, store: KeyValueStore, registry: ProviderRegistry | None = None):
        self.store = store
        self.registry = registry
        self._queues: dict[str, list[str]] = {}
        self._invalid_keys: set[str] = set()
        self._unsaved = False
        self._lock = threading.RLock()

    def _canonical(self, provider: str) -> str:
        if self.registry is None:
            return provider
        resolved = self.registry.get(provider)
        if resolved is None:
            raise UnknownProviderError(provider)
        return resolved.name

    def _load(self) -> None:
        if self._unsaved:
            # Última gravação falhou: o estado em memória é o último estado bom
            return
        try:
            raw = self.store.get(KEY_QUEUE_NAMESPACE, KEY_QUEUE_STORAGE_KEY)
        except Exception as e:
            logger.warning(f"Falha ao ler filas de chaves, mantendo último estado válido: {str(e)}")
            return

        if raw is None:
            self._queues = {}
            return

        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Filas de chaves corrompidas no armazenamento, mantendo último estado válido: {str(e)}")
            return

        if not isinstance(data, dict):
            logger.warning("Filas de chaves com formato inesperado, mantendo último estado válido")
            return

        queues = {}
        for provider, keys in data.items():
            if not isinstance(keys, list):
                continue
            unique = []
            for key in keys:
                if isinstance(key, str) and key and key not in unique:
                    unique.append(key)
            queues[provider] = unique
        self._queues = queues

    def _save(self) -> None:
        try:
            self.store.set(KEY_QUEUE_NAMESPACE, KEY_QUEUE_STORAGE_KEY, json.dumps(self._queues))
            self._unsaved = False
        except Exception as e:
            self._unsaved = True
            logger.warning(f"Falha ao persistir filas de chaves, estado mantido apenas em memória: {str(e)}")

    def _legacy_key(self, provider: str) -> str | None:
        try:
            return self.store.get(provider.lower(), LEGACY_KEY_STORAGE_KEY)
        except Exception as e:
            logger.warning(f"Falha ao ler chave avulsa de {provider}: {str(e)}")
            return None

    def add_key(self, provider: str, api_key: str) -> bool:
        """Adiciona a chave ao fim da fila; retorna False se ela já estava presente"""
        provider = self._canonical(provider)
        api_key = (api_key or "").strip()
        if not api_key:
            raise ValueError("Chave de API não pode ser vazia")

        with self._lock:
            self._load()
            # Nova inclusão explícita reabilita uma chave invalidada anteriormente
            self._invalid_keys.discard(api_key)
            keys = self._queues.setdefault(provider, [])
            if api_key in keys:
                return False
            keys.append(api_key)
            self._save()

        logger.info(f"✅ Nova chave adicionada à fila do {provider}: {masked(api_key)}")
        return True

    def remove_key(self, provider: str, api_key: str) -> bool:
        """Remove a chave da fila; retorna False se ela não existia"""
        provider = self._canonical(provider)
        with self._lock:
            self._load()
            keys = self._queues.get(provider, [])
            if api_key not in keys:
                return False
            self._queues[provider] = [key for key in keys if key != api_key]
            self._save()

        logger.info(f"Chave removida da fila do {provider}: {masked(api_key)}")
        return True

    def set_api_key(self, provider: str, api_key: str) -> None:
        """Grava a chave avulsa do provedor, usada apenas quando a fila não tem chave utilizável"""
        provider = self._canonical(provider)
        with self._lock:
            self._invalid_keys.discard(api_key)
            try:
                self.store.set(provider.lower(), LEGACY_KEY_STORAGE_KEY, api_key)
            except Exception as e:
                logger.warning(f"Falha ao gravar chave avulsa de {provider}: {str(e)}")

    def get_provider_keys(self, provider: str) -> list[str]:
        provider = self._canonical(provider)
        with self._lock:
            self._load()
            return list(self._queues.get(provider, []))

    def next_available_key(self, provider: str) -> str | None:
        """Primeira chave da fila que não está no conjunto de inválidas, ou a chave avulsa"""
        provider = self._canonical(provider)
        with self._lock:
            self._load()
            for key in self._queues.get(provider, []):
                if key not in self._invalid_keys:
                    return key
            legacy = self._legacy_key(provider)
            if legacy and legacy not in self._invalid_keys:
                return legacy
            return None

    def has_key(self, provider: str) -> bool:
        return self.next_available_key(provider) is not None

    def is_invalid(self, api_key: str) -> bool:
        with self._lock:
            return api_key in self._invalid_keys

    def mark_invalid(self, api_key: str, provider: str) -> bool:
        """
        Invalida permanentemente uma chave após 401/403.

        Retorna True apenas na primeira invalidação da chave; repetições não têm efeito
        além de garantir que ela não esteja mais na fila persistida.
        """
        provider = self._canonical(provider)
        with self._lock:
            newly_invalid = api_key not in self._invalid_keys
            self._invalid_keys.add(api_key)

            self._load()
            keys = self._queues.get(provider, [])
            if api_key in keys:
                self._queues[provider] = [key for key in keys if key != api_key]
                self._save()

            if self._legacy_key(provider) == api_key:
                try:
                    self.store.delete(provider.lower(), LEGACY_KEY_STORAGE_KEY)
                except Exception as e:
                    logger.warning(f"Falha ao remover chave avulsa de {provider}: {str(e)}")

        if newly_invalid:
            logger.warning(f"🔥 Chave inválida removida do {provider}: {masked(api_key)}")
        return newly_invalid

    def snapshot(self) -> dict[str, list[str]]:
        with self._lock:
            self._load()
            return {provider: list(keys) for provider, keys in self._queues.items()}
