from pydantic import BaseModel, Field


class AIResponse(BaseModel):
    """
    Resultado normalizado de uma chamada de LLM.

    Também é o resultado de cada tentativa individual contra um provedor (CallResult).
    """

    success: bool = Field(..., description="Se a chamada produziu conteúdo utilizável")
    content: str = Field("", description="Texto gerado pelo provedor")
    provider: str = Field(..., description="Nome do provedor que respondeu")
    error: str | None = Field(None, description="Mensagem de erro quando success é falso")
    status_code: int | None = Field(None, description="Status HTTP recebido, quando houve resposta")
    degraded: bool = Field(False, description="Resposta determinística gerada sem provedor real")


CallResult = AIResponse


class ProviderAvailability(BaseModel):
    name: str
    has_key: bool


class KeyTestResult(BaseModel):
    success: bool
    error: str | None = None
