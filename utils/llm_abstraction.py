"""
Camada de Abstração LLM - Registro de provedores HTTP e execução de chamadas individuais
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from urllib.parse import urlencode

import aiohttp

from config.constants import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_TEMPERATURE,
    LOGGER_NAME,
    MASKED_KEY_PREFIX,
    UNAVAILABLE_CONTENT,
)
from models.ai_response import CallResult

logger = logging.getLogger(LOGGER_NAME)


def masked(api_key: str | None) -> str:
    """Versão segura da chave para logs e exibição"""
    if not api_key:
        return ""
    return api_key[:MASKED_KEY_PREFIX] + "..."


def _dig(data, *path):
    """Navega por dicts/listas retornando None quando o caminho não existe"""
    current = data
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or len(current) <= step:
                return None
        elif not isinstance(current, dict):
            return None
        current = current[step] if isinstance(step, int) else current.get(step)
        if current is None:
            return None
    return current


@dataclass(frozen=True)
class TransportResponse:
    status: int
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class HttpTransport(ABC):
    """Interface de transporte HTTP usada pelo chamador de provedores"""

    @abstractmethod
    async def post(self, url: str, headers: dict[str, str], payload: dict, timeout: float) -> TransportResponse:
        pass

    async def close(self) -> None:
        return None


class AiohttpTransport(HttpTransport):
    """Transporte HTTP baseado em aiohttp com timeout total por chamada"""

    def __init__(self):
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def post(self, url: str, headers: dict[str, str], payload: dict, timeout: float) -> TransportResponse:
        session = await self._get_session()
        async with session.post(
            url, headers=headers, json=payload, timeout=aiohttp.ClientTimeout(total=timeout)
        ) as response:
            text = await response.text()
            return TransportResponse(status=response.status, text=text)

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None


class LLMProvider(ABC):
    """
    Interface abstrata para provedores de LLM acessados via HTTP.

    Cada fornecedor implementa seu próprio formato de requisição e extração de resposta.
    """

    name: str = ""
    endpoint: str = ""
    model: str = ""
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS

    def build_url(self, api_key: str) -> str:
        return self.endpoint

    @abstractmethod
    def build_headers(self, api_key: str) -> dict[str, str]:
        pass

    @abstractmethod
    def build_request_body(self, prompt: str, role: str) -> dict:
        """
        Monta o corpo da requisição

        Args:
            prompt: Tarefa enviada ao modelo
            role: Papel livre usado como enquadramento de sistema/contexto

        Returns:
            Corpo JSON específico do provedor
        """
        pass

    @abstractmethod
    def parse_response(self, data) -> str | None:
        """Extrai o texto da resposta; None quando o campo esperado não existe"""
        pass

    def get_model_info(self) -> dict[str, str]:
        return {"name": self.name, "model": self.model, "endpoint": self.endpoint}


def _bearer_headers(api_key: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }


class OpenAICompatibleProvider(LLMProvider):
    """Base para APIs no formato chat/completions"""

    system_template = "Você é um {role} experiente. Responda de forma prática e concisa com código quando necessário."

    def build_headers(self, api_key: str) -> dict[str, str]:
        return _bearer_headers(api_key)

    def build_request_body(self, prompt: str, role: str) -> dict:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self.system_template.format(role=role)},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    def parse_response(self, data) -> str | None:
        return _dig(data, "choices", 0, "message", "content")


class OpenAIProvider(OpenAICompatibleProvider):
    name = "OpenAI"
    endpoint = "https://api.openai.com/v1/chat/completions"
    model = "gpt-4o-mini"


class DeepSeekProvider(OpenAICompatibleProvider):
    name = "DeepSeek"
    endpoint = "https://api.deepseek.com/v1/chat/completions"
    model = "deepseek-chat"
    system_template = "Você é um {role} especializado. Foque em soluções práticas e código eficiente."


class GrokProvider(OpenAICompatibleProvider):
    name = "Grok"
    endpoint = "https://api.x.ai/v1/chat/completions"
    model = "grok-beta"
    temperature = 0.8
    system_template = "Você é um {role} criativo e eficiente. Forneça soluções inovadoras."


class PerplexityProvider(OpenAICompatibleProvider):
    name = "Perplexity"
    endpoint = "https://api.perplexity.ai/chat/completions"
    model = "llama-3.1-sonar-large-128k-online"
    system_template = "Você é um {role} experiente. Responda de forma prática e concisa."

    def build_request_body(self, prompt: str, role: str) -> dict:
        body = super().build_request_body(prompt, role)
        body.update(
            {
                "top_p": 0.9,
                "return_images": False,
                "return_related_questions": False,
                "search_recency_filter": "month",
                "frequency_penalty": 1,
                "presence_penalty": 0,
            }
        )
        return body


class GroqProvider(OpenAICompatibleProvider):
    name = "Groq"
    endpoint = "https://api.groq.com/openai/v1/chat/completions"
    model = "llama-3.1-8b-instant"


class GeminiProvider(LLMProvider):
    """Gemini recebe a chave como parâmetro de query, não como cabeçalho"""

    name = "Gemini"
    endpoint = "https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-flash:generateContent"
    model = "gemini-1.5-flash"

    def build_url(self, api_key: str) -> str:
        return f"{self.endpoint}?{urlencode({'key': api_key})}"

    def build_headers(self, api_key: str) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def build_request_body(self, prompt: str, role: str) -> dict:
        return {
            "contents": [{"parts": [{"text": f"Contexto: Você é um {role} experiente.\n\nTarefa: {prompt}"}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
            },
        }

    def parse_response(self, data) -> str | None:
        return _dig(data, "candidates", 0, "content", "parts", 0, "text")


class FlowiseProvider(LLMProvider):
    name = "Flowise"
    endpoint = "https://api.flowise.ai/api/v1/prediction"

    def build_headers(self, api_key: str) -> dict[str, str]:
        return _bearer_headers(api_key)

    def build_request_body(self, prompt: str, role: str) -> dict:
        return {
            "question": f"Como {role}: {prompt}",
            "overrideConfig": {"temperature": self.temperature, "maxTokens": self.max_tokens},
        }

    def parse_response(self, data) -> str | None:
        return _dig(data, "text") or _dig(data, "answer")


class ClaudeProvider(LLMProvider):
    name = "Claude"
    endpoint = "https://api.anthropic.com/v1/messages"
    model = "claude-3-5-sonnet-20241022"

    def build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "x-api-key": api_key,
            "Content-Type": "application/json",
            "anthropic-version": "2023-06-01",
        }

    def build_request_body(self, prompt: str, role: str) -> dict:
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": f"Contexto: Você é um {role} experiente. Tarefa: {prompt}"}],
        }

    def parse_response(self, data) -> str | None:
        return _dig(data, "content", 0, "text")


class OllamaProvider(LLMProvider):
    """Provedor local/offline; ignora a chave"""

    name = "Ollama"
    model = "llama2"

    def __init__(self, host: str = "localhost:11434", model: str | None = None):
        self.host = host
        self.endpoint = f"http://{host}/api/generate"
        if model:
            self.model = model

    def build_headers(self, api_key: str) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def build_request_body(self, prompt: str, role: str) -> dict:
        return {"model": self.model, "prompt": f"Como {role}, responda: {prompt}", "stream": False}

    def parse_response(self, data) -> str | None:
        return _dig(data, "response")


PROVIDER_CLASSES: list[type[LLMProvider]] = [
    OpenAIProvider,
    GeminiProvider,
    DeepSeekProvider,
    GrokProvider,
    FlowiseProvider,
    ClaudeProvider,
    PerplexityProvider,
    GroqProvider,
    OllamaProvider,
]


def known_provider_names() -> list[str]:
    return [provider_class.name for provider_class in PROVIDER_CLASSES]


class ProviderRegistry:
    """
    Tabela imutável de provedores, com busca por nome sem diferenciar maiúsculas
    """

    def __init__(self, providers: list[LLMProvider]):
        self._providers: dict[str, LLMProvider] = {}
        for provider in providers:
            key = provider.name.lower()
            if key in self._providers:
                raise ValueError(f"Provedor duplicado no registro: {provider.name}")
            self._providers[key] = provider

    def get(self, name: str) -> LLMProvider | None:
        return self._providers.get(name.lower())

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._providers

    def names(self) -> list[str]:
        return [provider.name for provider in self._providers.values()]

    def resolve_order(self, names: list[str]) -> list[LLMProvider]:
        """Converte uma lista de nomes em provedores, ignorando nomes desconhecidos"""
        providers = []
        for name in names:
            provider = self.get(name)
            if provider is None:
                logger.warning(f"Provedor desconhecido ignorado: {name}")
                continue
            providers.append(provider)
        return providers


def build_provider_registry(config: dict | None = None) -> ProviderRegistry:
    config = config or {}
    ollama_host = config.get("providers", {}).get("ollama_host", "localhost:11434")
    providers = []
    for provider_class in PROVIDER_CLASSES:
        if provider_class is OllamaProvider:
            providers.append(OllamaProvider(host=ollama_host))
        else:
            providers.append(provider_class())
    return ProviderRegistry(providers)


async def call_provider(
    provider: LLMProvider,
    prompt: str,
    role: str,
    api_key: str,
    transport: HttpTransport,
    timeout: float = DEFAULT_REQUEST_TIMEOUT,
) -> CallResult:
    """
    Executa uma chamada contra um provedor com uma chave e normaliza sucesso ou falha.

    Nunca lança exceção: falhas de transporte e respostas não-2xx viram CallResult com success=False.
    Respostas 2xx sem o campo esperado viram sucesso com o texto padrão de conteúdo indisponível.
    """
    try:
        response = await transport.post(
            provider.build_url(api_key),
            provider.build_headers(api_key),
            provider.build_request_body(prompt, role),
            timeout,
        )
    except asyncio.TimeoutError:
        logger.warning(f"Timeout de {timeout}s no provedor {provider.name} (chave {masked(api_key)})")
        return CallResult(
            success=False, content="", provider=provider.name, error=f"Timeout após {timeout}s"
        )
    except Exception as e:
        logger.warning(f"Erro de transporte no provedor {provider.name}: {str(e)}")
        return CallResult(
            success=False,
            content="",
            provider=provider.name,
            error=str(e) or type(e).__name__,
        )

    if not response.ok:
        logger.warning(f"Provedor {provider.name} retornou HTTP {response.status} (chave {masked(api_key)})")
        return CallResult(
            success=False,
            content="",
            provider=provider.name,
            error=f"HTTP {response.status}: {response.text or 'sem corpo'}",
            status_code=response.status,
        )

    try:
        data = json.loads(response.text)
    except ValueError:
        logger.warning(f"Provedor {provider.name} retornou corpo que não é JSON")
        data = None

    content = provider.parse_response(data)
    if not isinstance(content, str) or not content:
        logger.warning(f"Campo de conteúdo ausente na resposta de {provider.name}")
        content = UNAVAILABLE_CONTENT

    return CallResult(success=True, content=content, provider=provider.name, status_code=response.status)
