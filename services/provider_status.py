"""
Saúde dos provedores - Backoff entre chamadas e tabela secundária de status
"""

import logging
import random
import threading
import time
from collections.abc import Awaitable, Callable

from config.constants import (
    BACKOFF_JITTER_RATIO,
    DEFAULT_BACKOFF_BASE,
    DEFAULT_BACKOFF_MAX,
    DEFAULT_FAILED_PROVIDER_TTL,
    DEFAULT_LEGACY_ORDER,
    LOGGER_NAME,
)
from services.key_queue_manager import KeyQueueManager
from utils.llm_abstraction import masked

logger = logging.getLogger(LOGGER_NAME)


class ProviderHealth:
    """
    Conta falhas consecutivas por provedor entre chamadas e calcula o backoff exponencial
    limitado a aplicar antes de tentar novamente o mesmo provedor.
    """

    def __init__(
        self,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        backoff_max: float = DEFAULT_BACKOFF_MAX,
        jitter_ratio: float = BACKOFF_JITTER_RATIO,
    ):
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.jitter_ratio = jitter_ratio
        self._failures: dict[str, int] = {}
        self._lock = threading.Lock()

    def record_failure(self, provider: str) -> int:
        with self._lock:
            self._failures[provider] = self._failures.get(provider, 0) + 1
            return self._failures[provider]

    def record_success(self, provider: str) -> None:
        with self._lock:
            self._failures.pop(provider, None)

    def consecutive_failures(self, provider: str) -> int:
        with self._lock:
            return self._failures.get(provider, 0)

    def backoff_delay(self, provider: str) -> float:
        failures = self.consecutive_failures(provider)
        if failures == 0 or self.backoff_base <= 0:
            return 0.0
        delay = min(self.backoff_base * (2 ** (failures - 1)), self.backoff_max)
        return delay + random.uniform(0, delay * self.jitter_ratio)


class LegacyProviderTable:
    """
    Tabela secundária de fallback usada fora do caminho principal (inclui provedores locais).

    Um provedor marcado como falho fica inativo até expirar o TTL ou até reset() explícito.
    """

    def __init__(
        self,
        key_manager: KeyQueueManager,
        order: list[str] | None = None,
        failed_ttl: float = DEFAULT_FAILED_PROVIDER_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.key_manager = key_manager
        self.order = list(order or DEFAULT_LEGACY_ORDER)
        self.failed_ttl = failed_ttl
        self._clock = clock
        self._failed_at: dict[str, float] = {}
        self._lock = threading.Lock()

    def is_active(self, provider: str) -> bool:
        with self._lock:
            failed_at = self._failed_at.get(provider)
            if failed_at is None:
                return True
            if self._clock() - failed_at >= self.failed_ttl:
                del self._failed_at[provider]
                logger.info(f"API {provider} reativada após expirar o TTL de {self.failed_ttl}s")
                return True
            return False

    def mark_as_failed(self, provider: str) -> None:
        with self._lock:
            self._failed_at[provider] = self._clock()
        logger.warning(f"⚠️ API {provider} marcada como inativa temporariamente")

    def reset(self, provider: str) -> None:
        with self._lock:
            self._failed_at.pop(provider, None)

    def get_next_available_key(self) -> tuple[str, str] | None:
        for provider in self.order:
            if not self.is_active(provider):
                continue
            key = self.key_manager.next_available_key(provider)
            if key:
                return provider, key
        return None

    async def validate_key(self, provider: str, api_key: str, validator: Callable[[str], Awaitable[bool]]) -> bool:
        """Executa o validador e remove a chave da fila quando ela é recusada ou o validador falha"""
        try:
            valid = await validator(api_key)
        except Exception as e:
            logger.warning(f"Validador de {provider} falhou para {masked(api_key)}: {str(e)}")
            valid = False

        if not valid:
            self.key_manager.remove_key(provider, api_key)
            logger.warning(f"❌ Chave inválida removida de {provider}")
        return bool(valid)

    def list_status(self) -> dict[str, bool]:
        return {provider: self.is_active(provider) for provider in self.order}
