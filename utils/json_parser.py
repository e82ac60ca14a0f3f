"""
Extração tolerante de JSON em respostas de LLM (blocos de código, texto ao redor, vírgulas sobrando)
"""

import json
import re

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_STRAY_CONTROL = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


class JSONParseError(Exception):
    def __init__(self, message: str, original_response: str = "", original_error: Exception | None = None):
        super().__init__(message)
        self.original_response = original_response
        self.original_error = original_error

    def __str__(self) -> str:
        details = [super().__str__(), f"Tamanho da resposta: {len(self.original_response)} caracteres"]
        if self.original_error:
            details.append(f"Erro original: {self.original_error}")
        if self.original_response:
            details.append(f"Início: {self.original_response[:200]}")
        return " | ".join(details)


def _balanced_object(text: str) -> str | None:
    """Retorna o primeiro objeto {...} balanceado, respeitando strings e escapes."""
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == '"':
            in_string = not in_string
        elif not in_string:
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]

    return text[start:]


def _escape_newlines_in_strings(text: str) -> str:
    # Modelos costumam devolver conteúdo de arquivo com quebras de linha cruas dentro das strings
    result = []
    in_string = False
    escaped = False
    for char in text:
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == '"':
            in_string = not in_string
        elif in_string and char in "\n\r\t":
            result.append({"\n": "\\n", "\r": "\\r", "\t": "\\t"}[char])
            continue
        result.append(char)
    return "".join(result)


def _candidates(response: str):
    for block in _FENCED_BLOCK.findall(response):
        obj = _balanced_object(block)
        if obj:
            yield obj
    obj = _balanced_object(response)
    if obj:
        yield obj


def extract_json_from_response(response: str) -> dict:
    """
    Extrai o primeiro objeto JSON de uma resposta de LLM

    Raises:
        JSONParseError: Se a resposta estiver vazia ou nenhum candidato puder ser decodificado
    """
    if not response or not response.strip():
        raise JSONParseError("Resposta vazia recebida do LLM", original_response=response or "")

    last_error: Exception | None = None
    for candidate in _candidates(response.strip()):
        cleaned = _STRAY_CONTROL.sub("", _escape_newlines_in_strings(candidate))
        for attempt in (cleaned, _TRAILING_COMMA.sub(r"\1", cleaned)):
            try:
                data = json.loads(attempt)
            except json.JSONDecodeError as e:
                last_error = e
                continue
            if isinstance(data, dict):
                return data

    raise JSONParseError(
        "Nenhum objeto JSON válido encontrado na resposta",
        original_response=response,
        original_error=last_error,
    )
