"""
Módulo Utils - Provedores de LLM, transporte HTTP e utilitários de texto do Orquestra
"""

from .json_parser import JSONParseError, extract_json_from_response
from .llm_abstraction import (
    AiohttpTransport,
    HttpTransport,
    LLMProvider,
    ProviderRegistry,
    TransportResponse,
    build_provider_registry,
    call_provider,
    masked,
)
from .prompt_loader import PromptLoader

__all__ = [
    "AiohttpTransport",
    "HttpTransport",
    "LLMProvider",
    "ProviderRegistry",
    "TransportResponse",
    "build_provider_registry",
    "call_provider",
    "masked",
    "JSONParseError",
    "extract_json_from_response",
    "PromptLoader",
]
