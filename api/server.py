import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel

from config.constants import DEFAULT_PIPELINE_TIMEOUT, LOGGER_NAME
from main import OrquestraSystem
from models.ai_response import AIResponse, KeyTestResult, ProviderAvailability
from orchestrator.models import OrchestrationSession
from orchestrator.workflow import SessionNotFoundError
from services.archive_codec import ArchiveError, build_session_records, write_archive
from services.key_queue_manager import UnknownProviderError
from services.zip_analyzer import PatchParseError
from utils.llm_abstraction import masked

logger = logging.getLogger(LOGGER_NAME)

app = FastAPI(title="Orquestra API", version="1.0.0")
system: Optional[OrquestraSystem] = None
_background_tasks: set[asyncio.Task] = set()


class GenerateRequest(BaseModel):
    prompt: str
    role: str = "assistant"
    provider_order: Optional[list[str]] = None


class KeyRequest(BaseModel):
    api_key: str


class SessionRequest(BaseModel):
    project_idea: str


@app.on_event("startup")
async def startup_event():
    global system
    if system is not None:
        return
    try:
        system = OrquestraSystem()
        logger.info("Sistema Orquestra inicializado via API")
    except Exception as e:
        logger.error(f"Falha na inicialização do sistema: {str(e)}")
        raise


@app.on_event("shutdown")
async def shutdown_event():
    global system
    for task in list(_background_tasks):
        task.cancel()
    if system:
        logger.info("Encerrando sistema Orquestra")
        await system.close()
    system = None


def _require_system() -> OrquestraSystem:
    if not system:
        raise HTTPException(status_code=503, detail="Sistema não inicializado")
    return system


def _pipeline_timeout(current: OrquestraSystem) -> float:
    return current.config.get("orchestrator", {}).get("request_timeout", DEFAULT_PIPELINE_TIMEOUT)


def _get_session(current: OrquestraSystem, session_id: str) -> OrchestrationSession:
    try:
        return current.orchestrator.get_session(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail=f"Sessão não encontrada: {session_id}")


async def _run_with_timeout(current: OrquestraSystem, session_id: str, coro) -> OrchestrationSession:
    timeout = _pipeline_timeout(current)
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError:
        # A execução cancelada deixa o agente em 'pending'; a sessão fica pausada e pode ser retomada
        current.orchestrator.pause_session(session_id, interrupt=False)
        logger.error(f"Timeout do pipeline após {timeout}s na sessão {session_id}")
        raise HTTPException(status_code=504, detail=f"Pipeline excedeu o tempo limite de {timeout} segundos")


def _start_in_background(coro):
    task = asyncio.create_task(coro)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)


@app.post("/api/generate", response_model=AIResponse)
async def generate(request: GenerateRequest):
    current = _require_system()
    if not request.prompt or not request.prompt.strip():
        raise HTTPException(status_code=400, detail="Prompt não pode estar vazio")
    return await current.ai_service.generate_response(request.prompt, request.role, request.provider_order)


@app.get("/api/providers", response_model=list[ProviderAvailability])
async def list_providers():
    return _require_system().ai_service.get_available_providers()


@app.get("/api/keys/{provider}")
async def list_keys(provider: str):
    current = _require_system()
    try:
        keys = current.key_manager.get_provider_keys(provider)
    except UnknownProviderError:
        raise HTTPException(status_code=404, detail=f"Provedor desconhecido: {provider}")
    return {"provider": provider, "keys": [masked(key) for key in keys]}


@app.post("/api/keys/{provider}")
async def add_key(provider: str, request: KeyRequest):
    current = _require_system()
    try:
        added = current.key_manager.add_key(provider, request.api_key)
    except UnknownProviderError:
        raise HTTPException(status_code=404, detail=f"Provedor desconhecido: {provider}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"provider": provider, "added": added}


@app.post("/api/keys/{provider}/remove")
async def remove_key(provider: str, request: KeyRequest):
    current = _require_system()
    try:
        removed = current.key_manager.remove_key(provider, request.api_key)
    except UnknownProviderError:
        raise HTTPException(status_code=404, detail=f"Provedor desconhecido: {provider}")
    return {"provider": provider, "removed": removed}


@app.post("/api/keys/{provider}/test", response_model=KeyTestResult)
async def test_key(provider: str, request: KeyRequest):
    current = _require_system()
    if not request.api_key or not request.api_key.strip():
        raise HTTPException(status_code=400, detail="Chave de API não pode ser vazia")
    return await current.ai_service.test_api_key(provider, request.api_key.strip())


@app.post("/api/sessions", response_model=OrchestrationSession)
async def create_session(request: SessionRequest):
    current = _require_system()
    try:
        session_id = current.orchestrator.create_session(request.project_idea)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return current.orchestrator.get_session(session_id)


@app.get("/api/sessions", response_model=list[OrchestrationSession])
async def list_sessions():
    return _require_system().orchestrator.list_sessions()


@app.get("/api/sessions/{session_id}", response_model=OrchestrationSession)
async def get_session(session_id: str):
    return _get_session(_require_system(), session_id)


@app.post("/api/sessions/{session_id}/execute", response_model=OrchestrationSession)
async def execute_session(
    session_id: str,
    background: bool = Query(False, description="Retorna imediatamente e executa em segundo plano"),
):
    current = _require_system()
    session = _get_session(current, session_id)
    if background:
        _start_in_background(current.orchestrator.execute_session(session_id))
        return session
    return await _run_with_timeout(current, session_id, current.orchestrator.execute_session(session_id))


@app.post("/api/sessions/{session_id}/pause", response_model=OrchestrationSession)
async def pause_session(session_id: str, interrupt: bool = Query(True)):
    current = _require_system()
    _get_session(current, session_id)
    return current.orchestrator.pause_session(session_id, interrupt=interrupt)


@app.post("/api/sessions/{session_id}/resume", response_model=OrchestrationSession)
async def resume_session(session_id: str, background: bool = Query(False)):
    current = _require_system()
    session = _get_session(current, session_id)
    if background:
        _start_in_background(current.orchestrator.resume_session(session_id))
        return session
    return await _run_with_timeout(current, session_id, current.orchestrator.resume_session(session_id))


@app.get("/api/sessions/{session_id}/archive")
async def download_session(session_id: str):
    current = _require_system()
    session = _get_session(current, session_id)
    records = build_session_records(session, current.orchestrator.pipeline)
    data = await write_archive(records)
    return Response(
        content=data,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{session_id}.zip"'},
    )


@app.post("/api/archives/patch")
async def patch_archive(
    file: UploadFile = File(...),
    instruction: str = Form(...),
    selected: Optional[str] = Form(None, description="Arquivos selecionados, separados por vírgula"),
):
    current = _require_system()
    if not instruction.strip():
        raise HTTPException(status_code=400, detail="Instrução não pode estar vazia")

    data = await file.read()
    selected_files = [name.strip() for name in selected.split(",") if name.strip()] if selected else None
    try:
        patched, patch = await current.zip_analyzer.patch_archive(data, instruction, selected_files)
    except (ArchiveError, PatchParseError) as e:
        raise HTTPException(status_code=422, detail=str(e))

    logger.info(f"ZIP {file.filename} corrigido: {len(patch.files)} arquivos alterados")
    return Response(
        content=patched,
        media_type="application/zip",
        headers={"Content-Disposition": 'attachment; filename="patched.zip"'},
    )


@app.get("/api/health")
async def health():
    if not system:
        return {"status": "not_initialized", "timestamp": datetime.now(timezone.utc).isoformat()}
    return {
        "status": "operational",
        **system.get_system_status(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
