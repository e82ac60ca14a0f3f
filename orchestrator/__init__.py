"""
Módulo Orchestrator - Responsável pela coordenação do pipeline de agentes
"""

from .fallback_handler import FallbackHandler
from .models import (
    AgentConfig,
    AgentExecution,
    ExecutionStatus,
    LogLevel,
    OrchestrationLog,
    OrchestrationSession,
    SessionStatus,
)

__all__ = [
    "AgentConfig",
    "AgentExecution",
    "ExecutionStatus",
    "FallbackHandler",
    "LogLevel",
    "OrchestrationLog",
    "OrchestrationSession",
    "SessionStatus",
]
