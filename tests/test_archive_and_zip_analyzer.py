import io
import json
import zipfile

import pytest

from models.archive_model import ArchiveEntry, ArchiveRecord, PatchFile, PatchMove, ZipPatch
from orchestrator.models import SessionStatus
from services.archive_codec import ArchiveError, build_session_records, read_archive, write_archive
from services.zip_analyzer import PatchParseError, ZipAnalyzer
from utils.json_parser import JSONParseError, extract_json_from_response


def _zip_bytes(files: dict[str, bytes | str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zipf:
        for name, content in files.items():
            zipf.writestr(name, content)
    return buffer.getvalue()


def _unzip(data: bytes) -> dict[str, bytes]:
    with zipfile.ZipFile(io.BytesIO(data)) as zipf:
        return {name: zipf.read(name) for name in zipf.namelist()}


@pytest.mark.asyncio
async def test_read_archive_decodes_only_text_extensions():
    data = _zip_bytes({"src/app.py": "print('oi')", "logo.png": b"\x89PNG\r\n", "docs/": ""})

    entries = {entry.filename: entry for entry in await read_archive(data)}

    assert entries["src/app.py"].content == "print('oi')"
    assert entries["logo.png"].content is None
    assert entries["logo.png"].raw == b"\x89PNG\r\n"
    assert entries["docs/"].is_directory is True


@pytest.mark.asyncio
async def test_read_archive_skips_very_long_paths():
    data = _zip_bytes({"a" * 250 + ".txt": "x", "curto.txt": "y"})

    entries = await read_archive(data)

    assert [entry.filename for entry in entries] == ["curto.txt"]


@pytest.mark.asyncio
async def test_read_archive_rejects_invalid_bytes():
    with pytest.raises(ArchiveError):
        await read_archive(b"isto nao e um zip")
    with pytest.raises(ArchiveError):
        await read_archive(b"")


@pytest.mark.asyncio
async def test_write_archive_accepts_text_and_bytes():
    data = await write_archive([ArchiveRecord(path="a.md", content="# A"), ArchiveRecord(path="b.bin", content=b"\x00\x01")])

    assert _unzip(data) == {"a.md": b"# A", "b.bin": b"\x00\x01"}


@pytest.mark.asyncio
async def test_session_records_layout(orchestrator, pipeline):
    session = await orchestrator.execute_session(orchestrator.create_session("app de receitas"))
    assert session.status == SessionStatus.COMPLETED

    records = build_session_records(session, pipeline, [ArchiveRecord(path="briefing.txt", content="ideia")])
    paths = [record.path for record in records]

    assert paths[:7] == [
        "01-pm/ana-clara.md",
        "02-design/marina.md",
        "03-frontend/carlos.md",
        "04-devops/lucas.md",
        "05-qa/fernanda.md",
        "06-legal/beatriz.md",
        "07-release/camila.md",
    ]
    assert "SESSION_LOG.md" in paths
    assert "original/briefing.txt" in paths

    log = next(record for record in records if record.path == "SESSION_LOG.md").content
    assert session.id in log
    assert "app de receitas" in log


def test_session_records_skip_unfinished_agents(orchestrator, pipeline):
    session = orchestrator.get_session(orchestrator.create_session("app"))

    records = build_session_records(session, pipeline)

    assert [record.path for record in records] == ["SESSION_LOG.md"]


def test_extract_json_from_fenced_block_with_raw_newlines():
    response = 'Claro! Aqui está:\n```json\n{"files": [{"filename": "a.txt", "content": "linha 1\nlinha 2"}],}\n```'

    data = extract_json_from_response(response)

    assert data["files"][0]["content"] == "linha 1\nlinha 2"


def test_extract_json_without_fence():
    assert extract_json_from_response('resultado: {"delete": ["x"]} fim') == {"delete": ["x"]}


def test_extract_json_failures():
    with pytest.raises(JSONParseError):
        extract_json_from_response("")
    with pytest.raises(JSONParseError):
        extract_json_from_response("nenhum json aqui")


def test_parse_patch_accepts_from_to_aliases(ai_service):
    analyzer = ZipAnalyzer(ai_service)
    content = json.dumps({"files": [], "delete": ["old.txt"], "move": [{"from": "a.js", "to": "src/a.js"}]})

    patch = analyzer.parse_patch(content)

    assert patch.delete == ["old.txt"]
    assert patch.move[0].source == "a.js"
    assert patch.move[0].target == "src/a.js"


def test_parse_patch_rejects_invalid_documents(ai_service):
    analyzer = ZipAnalyzer(ai_service)

    with pytest.raises(PatchParseError):
        analyzer.parse_patch("# Documento sem JSON")
    with pytest.raises(PatchParseError):
        analyzer.parse_patch('{"files": [{"filename": "sem-conteudo.txt"}]}')


def test_apply_patch_deletes_moves_and_overwrites(ai_service):
    entries = [
        ArchiveEntry(filename="src/", is_directory=True),
        ArchiveEntry(filename="index.html", content="<html></html>", raw=b"<html></html>"),
        ArchiveEntry(filename="old.txt", content="velho", raw=b"velho"),
        ArchiveEntry(filename="app.js", content="var a = 1", raw=b"var a = 1"),
        ArchiveEntry(filename="logo.png", raw=b"\x89PNG"),
    ]
    patch = ZipPatch(
        files=[PatchFile(filename="index.html", content="<html>novo</html>"), PatchFile(filename="README.md", content="# Novo")],
        delete=["old.txt"],
        move=[PatchMove(source="app.js", target="src/app.js")],
    )

    records = {record.path: record.content for record in ZipAnalyzer(ai_service).apply_patch(entries, patch)}

    assert records == {
        "index.html": "<html>novo</html>",
        "src/app.js": "var a = 1",
        "logo.png": b"\x89PNG",
        "README.md": "# Novo",
    }


def test_build_prompt_lists_structure_and_selected_contents(ai_service):
    entries = [
        ArchiveEntry(filename="a.py", content="print(1)"),
        ArchiveEntry(filename="b.py", content="print(2)"),
        ArchiveEntry(filename="img.png", raw=b"..."),
    ]

    prompt = ZipAnalyzer(ai_service).build_prompt(entries, "renomeie tudo", selected=["a.py", "img.png"])

    assert "- b.py" in prompt
    assert "print(1)" in prompt
    assert "print(2)" not in prompt
    assert "(não é arquivo de texto)" in prompt
    assert prompt.endswith("Instrução: renomeie tudo")


@pytest.mark.asyncio
async def test_patch_archive_end_to_end(ai_service, key_manager, transport):
    key_manager.add_key("OpenAI", "sk")
    patch = {"files": [{"filename": "README.md", "content": "# Projeto"}], "delete": ["lixo.txt"], "move": []}
    transport.handler = lambda *args: f"```json\n{json.dumps(patch)}\n```"
    data = _zip_bytes({"lixo.txt": "x", "main.py": "print('oi')"})

    patched, used_patch = await ZipAnalyzer(ai_service).patch_archive(data, "adicione um README")

    assert _unzip(patched) == {"main.py": b"print('oi')", "README.md": b"# Projeto"}
    assert used_patch.files[0].filename == "README.md"
    assert transport.calls[0]["payload"]["messages"][0]["content"].startswith("Você é um ai-specialist")


@pytest.mark.asyncio
async def test_patch_archive_without_provider_is_rejected(ai_service):
    data = _zip_bytes({"main.py": "print('oi')"})

    with pytest.raises(PatchParseError):
        await ZipAnalyzer(ai_service).patch_archive(data, "melhore")
