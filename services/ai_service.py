"""
AIService - Resolve uma resposta de LLM tentando provedores em ordem fixa de prioridade
"""

import asyncio
import logging

from config.constants import (
    AUTH_FAILURE_STATUSES,
    DEFAULT_PROVIDER_PRIORITY,
    DEFAULT_REQUEST_TIMEOUT,
    FALLBACK_PROVIDER_NAME,
    KEY_TEST_PROMPT,
    KEY_TEST_ROLE,
    LOGGER_NAME,
)
from models.ai_response import AIResponse, KeyTestResult, ProviderAvailability
from orchestrator.fallback_handler import FallbackHandler
from services.key_queue_manager import KeyQueueManager
from services.provider_status import ProviderHealth
from utils.llm_abstraction import (
    HttpTransport,
    LLMProvider,
    ProviderRegistry,
    build_provider_registry,
    call_provider,
    masked,
)

logger = logging.getLogger(LOGGER_NAME)


class AIService:
    """
    Resolvedor de fallback entre provedores.

    Provedores são tentados em sequência, nunca em paralelo; o primeiro sucesso encerra a busca.
    generate_response nunca lança exceção: sem chaves ou com todos os provedores falhando,
    devolve a resposta determinística marcada como degradada.
    """

    def __init__(
        self,
        key_manager: KeyQueueManager,
        transport: HttpTransport,
        registry: ProviderRegistry | None = None,
        priority: list[str] | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        health: ProviderHealth | None = None,
        fallback_handler: FallbackHandler | None = None,
    ):
        self.key_manager = key_manager
        self.transport = transport
        self.registry = registry or build_provider_registry()
        self.priority = list(priority or DEFAULT_PROVIDER_PRIORITY)
        self.request_timeout = request_timeout
        self.health = health or ProviderHealth()
        self.fallback_handler = fallback_handler or FallbackHandler()

    def _providers_for(self, order: list[str] | None) -> list[LLMProvider]:
        return self.registry.resolve_order(order if order is not None else self.priority)

    def has_any_key(self, order: list[str] | None = None) -> bool:
        return any(self.key_manager.has_key(provider.name) for provider in self._providers_for(order))

    def fallback_response(self, prompt: str, role: str) -> AIResponse:
        return AIResponse(
            success=True,
            content=self.fallback_handler.render(prompt, role),
            provider=FALLBACK_PROVIDER_NAME,
            degraded=True,
        )

    async def attempt_provider(self, provider_name: str, prompt: str, role: str) -> AIResponse | None:
        """
        Tenta um único provedor com sua próxima chave não testada.

        Em 401/403 a chave é invalidada e a próxima chave do mesmo provedor é tentada;
        qualquer outra falha encerra a tentativa. Retorna None quando o provedor não tem
        chave utilizável (nenhuma tentativa foi feita).
        """
        provider = self.registry.get(provider_name)
        if provider is None:
            return AIResponse(
                success=False,
                provider=provider_name,
                error=f"Provedor desconhecido: {provider_name}",
            )

        api_key = await asyncio.to_thread(self.key_manager.next_available_key, provider.name)
        if api_key is None:
            return None

        delay = self.health.backoff_delay(provider.name)
        if delay > 0:
            logger.info(f"Aguardando {delay:.2f}s antes de tentar {provider.name} novamente")
            await asyncio.sleep(delay)

        result = None
        while api_key is not None:
            result = await call_provider(provider, prompt, role, api_key, self.transport, self.request_timeout)
            if result.success:
                self.health.record_success(provider.name)
                return result
            if result.status_code not in AUTH_FAILURE_STATUSES:
                break
            await asyncio.to_thread(self.key_manager.mark_invalid, api_key, provider.name)
            api_key = await asyncio.to_thread(self.key_manager.next_available_key, provider.name)

        self.health.record_failure(provider.name)
        return result

    async def generate_response(self, prompt: str, role: str, provider_order: list[str] | None = None) -> AIResponse:
        """
        Gera resposta usando os provedores em ordem de prioridade com fallback automático

        Args:
            prompt: Texto do prompt
            role: Papel livre repassado ao provedor como enquadramento
            provider_order: Ordem alternativa de provedores (padrão: prioridade global)

        Returns:
            Primeira resposta bem-sucedida ou a resposta determinística degradada
        """
        providers = self._providers_for(provider_order)

        if not await asyncio.to_thread(self.has_any_key, provider_order):
            logger.info("Nenhuma chave de API configurada, usando resposta determinística")
            return self.fallback_response(prompt, role)

        for provider in providers:
            result = await self.attempt_provider(provider.name, prompt, role)
            if result is None:
                continue
            if result.success:
                logger.info(f"Resposta gerada com {provider.name} (papel: {role})")
                return result
            logger.warning(f"{provider.name} falhou, tentando próximo provedor: {result.error}")

        logger.error("Todos os provedores de LLM falharam, usando resposta determinística")
        return self.fallback_response(prompt, role)

    async def test_api_key(self, provider_name: str, api_key: str) -> KeyTestResult:
        provider = self.registry.get(provider_name)
        if provider is None:
            return KeyTestResult(success=False, error="Provider not found")

        result = await call_provider(
            provider, KEY_TEST_PROMPT, KEY_TEST_ROLE, api_key, self.transport, self.request_timeout
        )
        logger.info(f"Teste da chave {masked(api_key)} em {provider.name}: {'ok' if result.success else result.error}")
        return KeyTestResult(success=result.success, error=result.error)

    def get_available_providers(self) -> list[ProviderAvailability]:
        return [
            ProviderAvailability(name=provider.name, has_key=self.key_manager.has_key(provider.name))
            for provider in self._providers_for(None)
        ]
