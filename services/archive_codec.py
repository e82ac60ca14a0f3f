"""
Codec de arquivos ZIP: grava registros planos {path, content} e lê ZIPs enviados pelo usuário
"""

import asyncio
import io
import logging
import zipfile
from pathlib import PurePosixPath

from config.constants import (
    LOGGER_NAME,
    MAX_ARCHIVE_PATH_LENGTH,
    ORIGINAL_FILES_DIR,
    SESSION_LOG_FILENAME,
    TEXT_FILE_EXTENSIONS,
)
from models.archive_model import ArchiveEntry, ArchiveRecord
from orchestrator.models import AgentConfig, ExecutionStatus, OrchestrationSession

logger = logging.getLogger(LOGGER_NAME)


class ArchiveError(ValueError):
    pass


def is_text_file(filename: str) -> bool:
    return PurePosixPath(filename).suffix.lower() in TEXT_FILE_EXTENSIONS


def _write_sync(records: list[ArchiveRecord]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zipf:
        for record in records:
            zipf.writestr(record.path, record.content)
    return buffer.getvalue()


def _read_sync(data: bytes) -> list[ArchiveEntry]:
    try:
        zipf = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise ArchiveError(f"Arquivo ZIP inválido: {str(e)}") from e

    entries = []
    with zipf:
        for info in zipf.infolist():
            if len(info.filename) >= MAX_ARCHIVE_PATH_LENGTH:
                logger.warning(f"Ignorando entrada com caminho muito longo: {info.filename[:60]}...")
                continue
            if info.is_dir():
                entries.append(ArchiveEntry(filename=info.filename, is_directory=True))
                continue

            raw = zipf.read(info)
            content = None
            if is_text_file(info.filename):
                content = raw.decode("utf-8", errors="replace")
            entries.append(ArchiveEntry(filename=info.filename, content=content, raw=raw))

    return entries


async def write_archive(records: list[ArchiveRecord]) -> bytes:
    """Empacota os registros em um único blob ZIP"""
    data = await asyncio.to_thread(_write_sync, records)
    logger.info(f"ZIP gerado com {len(records)} arquivos ({len(data)} bytes)")
    return data


async def read_archive(data: bytes) -> list[ArchiveEntry]:
    """
    Lê um ZIP em memória.

    Apenas extensões de texto conhecidas são decodificadas; as demais entradas mantêm só os bytes.

    Raises:
        ArchiveError: Se os bytes não formarem um ZIP válido
    """
    if not data:
        raise ArchiveError("Arquivo ZIP vazio")
    entries = await asyncio.to_thread(_read_sync, data)
    logger.info(f"ZIP lido: {len(entries)} entradas")
    return entries


def _render_session_log(session: OrchestrationSession) -> str:
    lines = [
        f"# Sessão {session.id}",
        "",
        f"**Projeto:** {session.project_idea}",
        f"**Status:** {session.status.value}",
        f"**Início:** {session.start_time.isoformat()}",
    ]
    if session.end_time:
        lines.append(f"**Fim:** {session.end_time.isoformat()}")

    lines += ["", "## Agentes", ""]
    for execution in session.agents:
        provider = execution.used_provider_name or "-"
        lines.append(f"- {execution.agent_id}: {execution.status.value} (provedor: {provider})")
        for error in execution.errors:
            lines.append(f"  - erro: {error}")

    lines += ["", "## Log", ""]
    for log in session.logs:
        agent = f" [{log.agent_id}]" if log.agent_id else ""
        lines.append(f"- {log.timestamp.isoformat()} {log.level.value.upper()}{agent} {log.message}")

    return "\n".join(lines) + "\n"


def build_session_records(
    session: OrchestrationSession,
    pipeline: list[AgentConfig],
    extra_files: list[ArchiveRecord] = (),
) -> list[ArchiveRecord]:
    """
    Monta os entregáveis de uma sessão: um Markdown por agente concluído, o log da sessão e os
    arquivos originais enviados pelo usuário sob original/
    """
    directories = {agent.id: agent.output_directory.strip("/") for agent in pipeline}

    records = []
    for execution in session.agents:
        if execution.status != ExecutionStatus.COMPLETED or execution.output is None:
            continue
        directory = directories.get(execution.agent_id, execution.agent_id)
        records.append(ArchiveRecord(path=f"{directory}/{execution.agent_id}.md", content=execution.output))

    records.append(ArchiveRecord(path=SESSION_LOG_FILENAME, content=_render_session_log(session)))

    for extra in extra_files:
        records.append(ArchiveRecord(path=f"{ORIGINAL_FILES_DIR}/{extra.path.lstrip('/')}", content=extra.content))

    return records
