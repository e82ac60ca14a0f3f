"""
Modelos de dados para o orchestrator
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExecutionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    RETRYING = "retrying"


class SessionStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    PAUSED = "paused"


class LogLevel(str, Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    SUCCESS = "success"


class AgentConfig(BaseModel):
    """
    Definição estática de um estágio do pipeline
    """

    id: str
    display_name: str
    role: str
    description: str = ""
    prompt_template: str
    fallback_provider_order: list[str]
    dependency_ids: list[str] = Field(default_factory=list)
    output_directory: str

    model_config = {"frozen": True}


class AgentExecution(BaseModel):
    """
    Registro mutável da execução de um agente dentro de uma sessão
    """

    agent_id: str
    status: ExecutionStatus = ExecutionStatus.PENDING
    start_time: datetime | None = None
    end_time: datetime | None = None
    prompt: str | None = None
    output: str | None = None
    errors: list[str] = Field(default_factory=list)
    retry_count: int = 0
    auto_retry_count: int = 0
    used_provider_name: str | None = None


class OrchestrationLog(BaseModel):
    timestamp: datetime = Field(default_factory=_utcnow)
    level: LogLevel
    message: str
    agent_id: str | None = None


class OrchestrationSession(BaseModel):
    """
    Estado de uma execução do pipeline para uma ideia de projeto
    """

    id: str
    project_idea: str
    start_time: datetime = Field(default_factory=_utcnow)
    end_time: datetime | None = None
    status: SessionStatus = SessionStatus.RUNNING
    current_agent_index: int = 0
    agents: list[AgentExecution] = Field(default_factory=list)
    logs: list[OrchestrationLog] = Field(default_factory=list)

    def get_execution(self, agent_id: str) -> AgentExecution | None:
        for execution in self.agents:
            if execution.agent_id == agent_id:
                return execution
        return None
