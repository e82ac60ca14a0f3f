"""
Motor de sessões de orquestração: executa o pipeline fixo de agentes para uma ideia de projeto
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone

from config.constants import (
    DEFAULT_MAX_AUTO_RETRIES,
    DEFAULT_RETRY_DELAY,
    FALLBACK_PROVIDER_NAME,
    LOGGER_NAME,
    SYSTEM_AGENT_ID,
)
from config.logging_config import AgentAdapter
from models.ai_response import AIResponse
from orchestrator.models import (
    AgentConfig,
    AgentExecution,
    ExecutionStatus,
    LogLevel,
    OrchestrationLog,
    OrchestrationSession,
    SessionStatus,
)
from orchestrator.pipeline import build_pipeline
from orchestrator.recovery_system import RetryPolicy
from services.ai_service import AIService
from utils.prompt_loader import PromptLoader

logger = logging.getLogger(LOGGER_NAME)

_LOG_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.SUCCESS: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionNotFoundError(LookupError):
    pass


class OrchestratorService:
    """
    Orquestrador do pipeline de agentes.

    Agentes rodam estritamente em sequência dentro de uma sessão; cada um tenta sua própria
    ordem de fallback de provedores. Um agente que esgota a ordem com ao menos uma tentativa
    falha e interrompe a sessão. Um agente cuja ordem não tinha nenhuma chave utilizável é
    concluído com a resposta determinística (Mock System).
    """

    def __init__(
        self,
        ai_service: AIService,
        pipeline: list[AgentConfig] | None = None,
        retry_policy: RetryPolicy | None = None,
        config: dict | None = None,
    ):
        self.config = config or {}
        self.ai_service = ai_service
        self.pipeline = pipeline if pipeline is not None else build_pipeline(self.config)

        orchestrator_config = self.config.get("orchestrator", {})
        self.retry_policy = retry_policy or RetryPolicy(
            orchestrator_config.get("max_auto_retries", DEFAULT_MAX_AUTO_RETRIES),
            orchestrator_config.get("retry_delay", DEFAULT_RETRY_DELAY),
        )

        self._agents = {agent.id: agent for agent in self.pipeline}
        self._sessions: dict[str, OrchestrationSession] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._running: dict[str, asyncio.Task] = {}

    def create_session(self, project_idea: str) -> str:
        """
        Cria uma sessão com uma execução pendente por agente do pipeline

        Returns:
            ID da sessão criada
        """
        if not project_idea or not project_idea.strip():
            raise ValueError("A ideia do projeto não pode ser vazia")

        session_id = f"session-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"
        session = OrchestrationSession(
            id=session_id,
            project_idea=project_idea,
            agents=[AgentExecution(agent_id=agent.id) for agent in self.pipeline],
        )
        self._sessions[session_id] = session
        self._locks[session_id] = asyncio.Lock()
        self._add_log(session, LogLevel.INFO, f"Sessão criada para o projeto: {project_idea}")
        return session_id

    def get_session(self, session_id: str) -> OrchestrationSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def list_sessions(self) -> list[OrchestrationSession]:
        return list(self._sessions.values())

    def is_running(self, session_id: str) -> bool:
        task = self._running.get(session_id)
        return task is not None and not task.done()

    async def execute_session(self, session_id: str) -> OrchestrationSession:
        """
        Executa o pipeline a partir do primeiro agente não concluído.

        Só retorna quando o pipeline termina, falha ou é pausado. Uma segunda chamada concorrente
        para a mesma sessão aguarda a primeira terminar.
        """
        session = self.get_session(session_id)
        lock = self._locks.setdefault(session_id, asyncio.Lock())

        async with lock:
            if session.status == SessionStatus.COMPLETED:
                return session

            self._prepare_for_run(session)
            task = asyncio.create_task(self._run_pipeline(session))
            self._running[session_id] = task
            try:
                await task
            except asyncio.CancelledError:
                if session.status != SessionStatus.PAUSED:
                    raise
            finally:
                self._running.pop(session_id, None)

        return session

    def pause_session(self, session_id: str, interrupt: bool = True) -> OrchestrationSession:
        """
        Pausa a sessão.

        Com interrupt=True a chamada de provedor em andamento é cancelada e o agente volta para
        'pending'; caso contrário a pausa só vale antes do próximo agente.
        """
        session = self.get_session(session_id)
        if session.status != SessionStatus.RUNNING:
            return session

        session.status = SessionStatus.PAUSED
        self._add_log(session, LogLevel.INFO, "Sessão pausada")

        if interrupt:
            task = self._running.get(session_id)
            if task is not None and not task.done():
                task.cancel()

        return session

    async def resume_session(self, session_id: str) -> OrchestrationSession:
        """Retoma a sessão a partir do primeiro agente não concluído, reaproveitando as saídas já geradas."""
        session = self.get_session(session_id)
        if session.status == SessionStatus.COMPLETED:
            return session

        next_agent = self._first_pending_agent(session)
        if next_agent is not None:
            self._add_log(session, LogLevel.INFO, f"Sessão retomada a partir de {next_agent.display_name}")
        return await self.execute_session(session_id)

    def _first_pending_agent(self, session: OrchestrationSession) -> AgentConfig | None:
        for agent, execution in zip(self.pipeline, session.agents):
            if execution.status != ExecutionStatus.COMPLETED:
                return agent
        return None

    def _prepare_for_run(self, session: OrchestrationSession):
        session.status = SessionStatus.RUNNING
        session.end_time = None
        for execution in session.agents:
            if execution.status in (ExecutionStatus.FAILED, ExecutionStatus.RETRYING):
                execution.status = ExecutionStatus.PENDING
                execution.retry_count += 1
                execution.auto_retry_count = 0
            elif execution.status == ExecutionStatus.RUNNING:
                execution.status = ExecutionStatus.PENDING

    async def _run_pipeline(self, session: OrchestrationSession):
        for index, agent in enumerate(self.pipeline):
            execution = session.agents[index]
            if execution.status == ExecutionStatus.COMPLETED:
                continue

            if session.status == SessionStatus.PAUSED:
                self._add_log(session, LogLevel.INFO, f"Execução parada antes de {agent.display_name}", agent.id)
                return

            session.current_agent_index = index
            if not await self._run_agent(session, agent, execution):
                session.status = SessionStatus.FAILED
                session.end_time = _utcnow()
                self._add_log(session, LogLevel.ERROR, f"Pipeline interrompido: {agent.display_name} falhou", agent.id)
                return

        session.status = SessionStatus.COMPLETED
        session.end_time = _utcnow()
        self._add_log(session, LogLevel.SUCCESS, "Pipeline concluído com sucesso")

    async def _run_agent(self, session: OrchestrationSession, agent: AgentConfig, execution: AgentExecution) -> bool:
        missing = [
            dep_id
            for dep_id in agent.dependency_ids
            if (dep := session.get_execution(dep_id)) is None or dep.status != ExecutionStatus.COMPLETED
        ]
        if missing:
            error = f"Dependências não concluídas: {', '.join(missing)}"
            execution.errors.append(error)
            execution.status = ExecutionStatus.FAILED
            execution.end_time = _utcnow()
            self._add_log(session, LogLevel.ERROR, f"{agent.display_name}: {error}", agent.id)
            return False

        execution.status = ExecutionStatus.RUNNING
        execution.start_time = _utcnow()
        execution.end_time = None

        prompt = self._build_prompt(session, agent)
        execution.prompt = prompt
        self._add_log(session, LogLevel.INFO, f"{agent.display_name} ({agent.role}) iniciou", agent.id)

        try:
            while True:
                attempted, response = await self._try_fallback_order(session, agent, execution, prompt)

                if response is not None:
                    self._complete(session, agent, execution, response)
                    return True

                if not attempted:
                    self._add_log(
                        session,
                        LogLevel.WARN,
                        f"Nenhuma chave configurada para {agent.display_name}, usando resposta determinística",
                        agent.id,
                    )
                    self._complete(session, agent, execution, self.ai_service.fallback_response(prompt, agent.role))
                    return True

                if self.retry_policy.should_retry(execution):
                    execution.status = ExecutionStatus.RETRYING
                    execution.retry_count += 1
                    execution.auto_retry_count += 1
                    self._add_log(
                        session,
                        LogLevel.WARN,
                        f"{agent.display_name} esgotou os provedores, nova tentativa {execution.retry_count}",
                        agent.id,
                    )
                    # permanece em 'retrying' até a próxima rodada de tentativas começar
                    await asyncio.sleep(self.retry_policy.retry_delay)
                    execution.status = ExecutionStatus.RUNNING
                    continue

                execution.status = ExecutionStatus.FAILED
                execution.end_time = _utcnow()
                self._add_log(session, LogLevel.ERROR, f"{agent.display_name} falhou em todos os provedores", agent.id)
                return False

        except asyncio.CancelledError:
            execution.status = ExecutionStatus.PENDING
            execution.start_time = None
            self._add_log(session, LogLevel.WARN, f"{agent.display_name} interrompido pela pausa", agent.id)
            raise

    async def _try_fallback_order(
        self, session: OrchestrationSession, agent: AgentConfig, execution: AgentExecution, prompt: str
    ) -> tuple[bool, AIResponse | None]:
        attempted = False
        for provider_name in agent.fallback_provider_order:
            result = await self.ai_service.attempt_provider(provider_name, prompt, agent.role)
            if result is None:
                self._add_log(session, LogLevel.WARN, f"{provider_name} sem chave disponível, pulando", agent.id)
                continue

            attempted = True
            if result.success:
                return attempted, result

            execution.errors.append(f"{provider_name}: {result.error}")
            self._add_log(session, LogLevel.WARN, f"{provider_name} falhou: {result.error}", agent.id)

        return attempted, None

    def _complete(
        self, session: OrchestrationSession, agent: AgentConfig, execution: AgentExecution, response: AIResponse
    ):
        execution.status = ExecutionStatus.COMPLETED
        execution.output = response.content
        execution.used_provider_name = response.provider
        execution.end_time = _utcnow()

        suffix = " (modo degradado)" if response.provider == FALLBACK_PROVIDER_NAME else ""
        self._add_log(session, LogLevel.SUCCESS, f"{agent.display_name} concluído via {response.provider}{suffix}", agent.id)

    def _build_prompt(self, session: OrchestrationSession, agent: AgentConfig) -> str:
        return PromptLoader.render(
            agent.prompt_template,
            {
                "projectIdea": session.project_idea,
                "previousOutput": self._render_dependencies(session, agent),
            },
        )

    def _render_dependencies(self, session: OrchestrationSession, agent: AgentConfig) -> str:
        sections = []
        for dep_id in agent.dependency_ids:
            execution = session.get_execution(dep_id)
            dep_agent = self._agents.get(dep_id)
            name = dep_agent.display_name if dep_agent else dep_id
            sections.append(f"=== SAÍDA DE {name.upper()} ({dep_id}) ===\n{execution.output or ''}")
        return "\n\n".join(sections)

    def _add_log(self, session: OrchestrationSession, level: LogLevel, message: str, agent_id: str | None = None):
        session.logs.append(OrchestrationLog(level=level, message=message, agent_id=agent_id))
        AgentAdapter(logger, {"agent_id": agent_id or SYSTEM_AGENT_ID}).log(
            _LOG_LEVELS[level], f"[{session.id}] {message}"
        )
