"""
Fixtures compartilhadas: transporte HTTP falso, armazenamento em memória e serviços montados sem rede
"""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from orchestrator.pipeline import build_pipeline
from orchestrator.workflow import OrchestratorService
from services.ai_service import AIService
from services.key_queue_manager import KeyQueueManager
from services.provider_status import ProviderHealth
from shared_context.key_value_store import MemoryKeyValueStore
from utils.llm_abstraction import HttpTransport, TransportResponse, build_provider_registry

PROVIDER_HOSTS = {
    "api.openai.com": "OpenAI",
    "generativelanguage.googleapis.com": "Gemini",
    "api.deepseek.com": "DeepSeek",
    "api.x.ai": "Grok",
    "api.flowise.ai": "Flowise",
    "api.anthropic.com": "Claude",
    "api.perplexity.ai": "Perplexity",
    "api.groq.com": "Groq",
    "/api/generate": "Ollama",
}


def provider_for_url(url: str) -> str:
    for fragment, name in PROVIDER_HOSTS.items():
        if fragment in url:
            return name
    raise AssertionError(f"URL sem provedor conhecido: {url}")


def success_body(provider: str, text: str) -> str:
    if provider == "Gemini":
        data = {"candidates": [{"content": {"parts": [{"text": text}]}}]}
    elif provider == "Claude":
        data = {"content": [{"type": "text", "text": text}]}
    elif provider == "Flowise":
        data = {"text": text}
    elif provider == "Ollama":
        data = {"response": text}
    else:
        data = {"choices": [{"message": {"role": "assistant", "content": text}}]}
    return json.dumps(data)


def payload_strings(payload) -> list[str]:
    """Todas as strings de um corpo JSON, para procurar o prompt enviado"""
    if isinstance(payload, str):
        return [payload]
    if isinstance(payload, dict):
        return [s for value in payload.values() for s in payload_strings(value)]
    if isinstance(payload, list):
        return [s for value in payload for s in payload_strings(value)]
    return []


class FakeTransport(HttpTransport):
    """
    Transporte que registra cada chamada e responde via handler(provider, url, headers, payload).

    O handler pode devolver TransportResponse, uma string (sucesso 200 com esse texto) ou uma
    exceção, que é lançada. Sem handler, todo provedor responde com sucesso.
    """

    def __init__(self, handler=None):
        self.handler = handler
        self.calls: list[dict] = []
        self.closed = False

    async def post(self, url, headers, payload, timeout):
        provider = provider_for_url(url)
        self.calls.append({"provider": provider, "url": url, "headers": headers, "payload": payload})

        result = self.handler(provider, url, headers, payload) if self.handler else f"Resposta de {provider}"
        if isinstance(result, BaseException):
            raise result
        if isinstance(result, str):
            return TransportResponse(status=200, text=success_body(provider, result))
        return result

    async def close(self):
        self.closed = True

    @property
    def providers_called(self) -> list[str]:
        return [call["provider"] for call in self.calls]


def http_error(status: int, text: str = "erro") -> TransportResponse:
    return TransportResponse(status=status, text=text)


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def registry():
    return build_provider_registry()


@pytest.fixture
def key_manager(store, registry):
    return KeyQueueManager(store, registry)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def health():
    return ProviderHealth(backoff_base=0)


@pytest.fixture
def ai_service(key_manager, transport, registry, health):
    return AIService(key_manager, transport, registry=registry, health=health, request_timeout=5)


@pytest.fixture
def pipeline():
    return build_pipeline()


@pytest.fixture
def orchestrator(ai_service, pipeline):
    return OrchestratorService(ai_service, pipeline=pipeline)
