"""
Política de retentativa de agentes que esgotaram sua ordem de fallback
"""

import logging

from config.constants import DEFAULT_MAX_AUTO_RETRIES, DEFAULT_RETRY_DELAY, LOGGER_NAME
from orchestrator.models import AgentExecution

logger = logging.getLogger(LOGGER_NAME)


class RetryPolicy:
    """
    Decide se um agente que falhou deve passar por 'retrying' e tentar de novo.

    Com max_auto_retries=0 (padrão) nenhuma retentativa automática acontece; a sessão
    falha e só pode continuar via resume_session. O orçamento é contado em
    auto_retry_count, separado do retry_count total, e vale por execução: retomadas
    manuais não o consomem e recomeçam com o orçamento inteiro.
    """

    def __init__(self, max_auto_retries: int = DEFAULT_MAX_AUTO_RETRIES, retry_delay: float = DEFAULT_RETRY_DELAY):
        self.max_auto_retries = max_auto_retries
        self.retry_delay = retry_delay

    def should_retry(self, execution: AgentExecution) -> bool:
        return execution.auto_retry_count < self.max_auto_retries
