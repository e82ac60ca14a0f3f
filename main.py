import asyncio
import logging
import os
from typing import Any

from config.logging_config import setup_logging

logger = setup_logging(logging.INFO)


class OrquestraSystem:
    """Sistema principal: monta todos os componentes a partir da configuração"""

    def __init__(
        self,
        config_path: str | None = None,
        config: dict[str, Any] | None = None,
        transport=None,
        store=None,
    ):
        from config.constants import (
            DEFAULT_BACKOFF_BASE,
            DEFAULT_BACKOFF_MAX,
            DEFAULT_FAILED_PROVIDER_TTL,
            DEFAULT_REQUEST_TIMEOUT,
        )
        from config.system_config import load_configuration
        from orchestrator.workflow import OrchestratorService
        from services.ai_service import AIService
        from services.key_queue_manager import KeyQueueManager
        from services.provider_status import LegacyProviderTable, ProviderHealth
        from services.zip_analyzer import ZipAnalyzer
        from shared_context.key_value_store import create_key_value_store
        from utils.llm_abstraction import AiohttpTransport, build_provider_registry

        self.config = config if config is not None else load_configuration(config_path)
        providers_config = self.config.get("providers", {})
        performance = self.config.get("performance", {})

        self.registry = build_provider_registry(self.config)
        self.store = store if store is not None else create_key_value_store(self.config)
        self.transport = transport if transport is not None else AiohttpTransport()

        self.key_manager = KeyQueueManager(self.store, self.registry)
        self.health = ProviderHealth(
            backoff_base=performance.get("backoff_base", DEFAULT_BACKOFF_BASE),
            backoff_max=performance.get("backoff_max", DEFAULT_BACKOFF_MAX),
        )
        self.ai_service = AIService(
            self.key_manager,
            self.transport,
            registry=self.registry,
            priority=providers_config.get("priority"),
            request_timeout=performance.get("request_timeout", DEFAULT_REQUEST_TIMEOUT),
            health=self.health,
        )
        self.legacy_table = LegacyProviderTable(
            self.key_manager,
            order=providers_config.get("legacy_order"),
            failed_ttl=providers_config.get("failed_ttl", DEFAULT_FAILED_PROVIDER_TTL),
        )
        self.orchestrator = OrchestratorService(self.ai_service, config=self.config)
        self.zip_analyzer = ZipAnalyzer(self.ai_service)

        logger.info(f"✅ Sistema inicializado com {len(self.orchestrator.pipeline)} agentes no pipeline")

    async def validate_legacy_key(self, provider: str, api_key: str) -> bool:
        """Valida uma chave da tabela secundária com uma chamada de teste real"""

        async def _validator(key: str) -> bool:
            result = await self.ai_service.test_api_key(provider, key)
            return result.success

        valid = await self.legacy_table.validate_key(provider, api_key, _validator)
        if not valid:
            self.legacy_table.mark_as_failed(provider)
        return valid

    def get_system_status(self) -> dict[str, Any]:
        return {
            "providers": [provider.model_dump() for provider in self.ai_service.get_available_providers()],
            "models": [self.registry.get(name).get_model_info() for name in self.registry.names()],
            "legacy_providers": self.legacy_table.list_status(),
            "sessions": len(self.orchestrator.list_sessions()),
            "agents": [agent.id for agent in self.orchestrator.pipeline],
        }

    async def close(self):
        try:
            await self.transport.close()
        except Exception as e:
            logger.warning(f"Erro ao fechar transporte HTTP: {str(e)}")


async def main():
    """Função principal de inicialização do servidor"""
    import uvicorn

    from api.server import app

    port = int(os.getenv("PORT", 8181))
    logger.info("Iniciando servidor API...")
    config = uvicorn.Config(app, host="0.0.0.0", port=port, log_level="info")
    server = uvicorn.Server(config)
    await server.serve()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
