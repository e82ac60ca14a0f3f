from pydantic import BaseModel, ConfigDict, Field


class ArchiveRecord(BaseModel):
    """Registro plano consumido pelo codec de arquivos"""

    path: str
    content: str | bytes


class ArchiveEntry(BaseModel):
    """Entrada lida de um ZIP enviado pelo usuário"""

    filename: str
    content: str | None = Field(None, description="Texto decodificado, apenas para extensões de texto")
    raw: bytes = b""
    is_directory: bool = False


class PatchFile(BaseModel):
    filename: str
    content: str


class PatchMove(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(..., alias="from")
    target: str = Field(..., alias="to")


class ZipPatch(BaseModel):
    """Documento JSON devolvido pela IA no fluxo de análise e correção de ZIP"""

    files: list[PatchFile] = Field(default_factory=list)
    delete: list[str] = Field(default_factory=list)
    move: list[PatchMove] = Field(default_factory=list)
