"""
ZipAnalyzer - Fluxo de análise e correção de um ZIP enviado pelo usuário com uma única chamada de IA
"""

import logging

from pydantic import ValidationError

from config.constants import LOGGER_NAME, ZIP_ANALYZER_ROLE
from models.ai_response import AIResponse
from models.archive_model import ArchiveEntry, ArchiveRecord, ZipPatch
from services.ai_service import AIService
from services.archive_codec import read_archive, write_archive
from utils.json_parser import JSONParseError, extract_json_from_response

logger = logging.getLogger(LOGGER_NAME)

PATCH_INSTRUCTIONS = """Você é um assistente especializado em manipulação de projetos ZIP.
Analise a estrutura e o conteúdo dos arquivos fornecidos e responda SOMENTE com um JSON no formato:

{
  "files": [
    {"filename": "caminho/do/arquivo.txt", "content": "conteúdo do arquivo"}
  ],
  "delete": ["arquivo_para_deletar.txt"],
  "move": [
    {"from": "arquivo_antigo.txt", "to": "arquivo_novo.txt"}
  ]
}

- "files": arquivos novos ou modificados
- "delete": arquivos a serem removidos
- "move": arquivos a serem movidos ou renomeados

Responda APENAS com JSON válido, sem explicações."""


class PatchParseError(ValueError):
    pass


class ZipAnalyzer:
    def __init__(self, ai_service: AIService):
        self.ai_service = ai_service

    def build_prompt(self, entries: list[ArchiveEntry], instruction: str, selected: list[str] | None = None) -> str:
        """
        Monta o prompt com a estrutura do ZIP e o conteúdo dos arquivos selecionados.

        Sem seleção explícita, todos os arquivos (exceto pastas) entram no contexto.
        """
        chosen = set(selected) if selected else None

        context = ["Estrutura do ZIP:", ""]
        for entry in entries:
            suffix = " (pasta)" if entry.is_directory else ""
            context.append(f"- {entry.filename}{suffix}")

        context += ["", "Arquivos selecionados:"]
        for entry in entries:
            if entry.is_directory or (chosen is not None and entry.filename not in chosen):
                continue
            context.append(f"\nArquivo: {entry.filename}")
            if entry.content is not None:
                context.append(f"Conteúdo:\n{entry.content}")
            else:
                context.append("Conteúdo: (não é arquivo de texto)")
            context.append("----")

        return f"{PATCH_INSTRUCTIONS}\n\n" + "\n".join(context) + f"\n\nInstrução: {instruction}"

    async def analyze(
        self, entries: list[ArchiveEntry], instruction: str, selected: list[str] | None = None
    ) -> AIResponse:
        prompt = self.build_prompt(entries, instruction, selected)
        return await self.ai_service.generate_response(prompt, ZIP_ANALYZER_ROLE)

    def parse_patch(self, content: str) -> ZipPatch:
        """
        Converte a resposta da IA em um ZipPatch

        Raises:
            PatchParseError: Se a resposta não contiver um JSON de patch válido
        """
        try:
            data = extract_json_from_response(content)
            return ZipPatch.model_validate(data)
        except (JSONParseError, ValidationError) as e:
            raise PatchParseError(f"Resposta da IA não é um patch válido: {str(e)}") from e

    def apply_patch(self, entries: list[ArchiveEntry], patch: ZipPatch) -> list[ArchiveRecord]:
        """
        Aplica o patch sobre as entradas originais.

        Arquivos deletados são descartados, movidos são renomeados e os arquivos do patch
        sobrescrevem (ou criam) o caminho indicado. Binários são preservados byte a byte.
        """
        deleted = set(patch.delete)
        moves = {move.source: move.target for move in patch.move}

        records: dict[str, ArchiveRecord] = {}
        for entry in entries:
            if entry.is_directory or entry.filename in deleted:
                continue
            path = moves.get(entry.filename, entry.filename)
            content = entry.content if entry.content is not None else entry.raw
            records[path] = ArchiveRecord(path=path, content=content)

        for patch_file in patch.files:
            records[patch_file.filename] = ArchiveRecord(path=patch_file.filename, content=patch_file.content)

        logger.info(
            f"Patch aplicado: {len(patch.files)} arquivos gravados, {len(deleted)} removidos, {len(moves)} movidos"
        )
        return list(records.values())

    async def patch_archive(
        self, data: bytes, instruction: str, selected: list[str] | None = None
    ) -> tuple[bytes, ZipPatch]:
        """Lê o ZIP, pede o patch à IA, aplica e devolve o novo ZIP junto com o patch usado"""
        entries = await read_archive(data)
        response = await self.analyze(entries, instruction, selected)
        if response.degraded:
            raise PatchParseError("Nenhum provedor de IA disponível para analisar o ZIP")

        patch = self.parse_patch(response.content)
        records = self.apply_patch(entries, patch)
        return await write_archive(records), patch
