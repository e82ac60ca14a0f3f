import logging
import logging.handlers
from pathlib import Path

from config.constants import LOGGER_NAME, SYSTEM_AGENT_ID

LOG_FILE = Path("orquestra.log")
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5


class _DefaultAgentFilter(logging.Filter):
    """Garante o campo agent_id em registros emitidos sem o AgentAdapter."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "agent_id"):
            record.agent_id = SYSTEM_AGENT_ID
        return True


def setup_logging(level: int = logging.INFO, log_file: Path | None = LOG_FILE) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    agent_filter = _DefaultAgentFilter()

    if log_file is not None:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - [%(agent_id)s] - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
        )
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8"
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(agent_filter)
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_formatter = logging.Formatter(
        "%(asctime)s - %(levelname)s - [%(agent_id)s] - %(message)s", datefmt="%H:%M:%S"
    )
    console_handler.setFormatter(console_formatter)
    console_handler.addFilter(agent_filter)
    logger.addHandler(console_handler)

    return logger


class AgentAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        agent_id = self.extra.get("agent_id", SYSTEM_AGENT_ID)
        kwargs["extra"] = {"agent_id": agent_id}
        return msg, kwargs
