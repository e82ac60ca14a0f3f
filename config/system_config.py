import json
import logging
from pathlib import Path

import yaml

from config.constants import LOGGER_NAME, VALID_KEY_STORE_BACKENDS

_CONFIG_DIR = Path(__file__).parent
_DEFAULT_CONFIG_PATH = _CONFIG_DIR / "profiles" / "default.yaml"

logger = logging.getLogger(LOGGER_NAME)


def _validate_config(config: dict) -> None:
    """
    Valida se a configuração contém todos os campos obrigatórios.

    Raises:
        ValueError: Se campos obrigatórios estiverem faltando ou inválidos.
    """
    from utils.llm_abstraction import known_provider_names

    required_fields = [
        "providers",
        "key_store",
        "orchestrator",
        "performance",
    ]

    missing_fields = [field for field in required_fields if field not in config]
    if missing_fields:
        raise ValueError(f"Campos obrigatórios faltando na configuração: {', '.join(missing_fields)}")

    known = {name.lower() for name in known_provider_names()}

    priority = config["providers"].get("priority")
    if not isinstance(priority, list) or not priority:
        raise ValueError("'providers.priority' deve ser uma lista não vazia")
    unknown = [name for name in priority if str(name).lower() not in known]
    if unknown:
        raise ValueError(f"Provedores desconhecidos em 'providers.priority': {', '.join(map(str, unknown))}")

    legacy_order = config["providers"].get("legacy_order", [])
    unknown_legacy = [name for name in legacy_order if str(name).lower() not in known]
    if unknown_legacy:
        raise ValueError(f"Provedores desconhecidos em 'providers.legacy_order': {', '.join(map(str, unknown_legacy))}")

    timeout = config["performance"].get("request_timeout")
    if not isinstance(timeout, (int, float)) or isinstance(timeout, bool) or timeout <= 0:
        raise ValueError(f"request_timeout inválido: {timeout} (deve ser > 0)")

    backend = config["key_store"].get("backend")
    if backend not in VALID_KEY_STORE_BACKENDS:
        raise ValueError(
            f"Backend de chaves inválido: {backend} (use {', '.join(VALID_KEY_STORE_BACKENDS)})"
        )

    max_retries = config["orchestrator"].get("max_auto_retries", 0)
    if not isinstance(max_retries, int) or isinstance(max_retries, bool) or max_retries < 0:
        raise ValueError(f"max_auto_retries inválido: {max_retries} (deve ser >= 0)")

    retry_delay = config["orchestrator"].get("retry_delay", 0)
    if not isinstance(retry_delay, (int, float)) or isinstance(retry_delay, bool) or retry_delay < 0:
        raise ValueError(f"retry_delay inválido: {retry_delay} (deve ser >= 0)")

    for agent_id, agent_config in (config["orchestrator"].get("agents") or {}).items():
        fallback = (agent_config or {}).get("fallback")
        if fallback is None:
            continue
        unknown_fallback = [name for name in fallback if str(name).lower() not in known]
        if unknown_fallback:
            raise ValueError(f"Provedores desconhecidos no fallback de {agent_id}: {', '.join(map(str, unknown_fallback))}")


def load_configuration(config_path: str = None) -> dict:
    """
    Carrega a configuração do sistema a partir de arquivo YAML.

    Se config_path não for fornecido, usa config/profiles/default.yaml como padrão.
    Se o arquivo especificado não existir, usa default.yaml como fallback.

    Args:
        config_path: Caminho para o arquivo de configuração (YAML ou JSON)

    Returns:
        Dicionário com a configuração carregada

    Raises:
        FileNotFoundError: Se nem o arquivo especificado nem default.yaml existirem
        ValueError: Se o formato for inválido ou campos obrigatórios estiverem faltando
    """
    if not config_path:
        config_file = _DEFAULT_CONFIG_PATH
    else:
        config_file = Path(config_path)
        if not config_file.is_absolute():
            current_dir_file = Path.cwd() / config_path
            if current_dir_file.exists():
                config_file = current_dir_file
            else:
                config_file = _CONFIG_DIR.parent / config_path

    original_config_file = config_file

    if not config_file.exists():
        if config_path and config_file != _DEFAULT_CONFIG_PATH:
            logger.warning(
                f"Arquivo de configuração não encontrado: {config_file}. Usando fallback: {_DEFAULT_CONFIG_PATH}"
            )
            config_file = _DEFAULT_CONFIG_PATH

        if not config_file.exists():
            raise FileNotFoundError(
                f"Arquivo de configuração não encontrado: {original_config_file}. "
                f"Fallback default.yaml também não encontrado: {_DEFAULT_CONFIG_PATH}."
            )

    with open(config_file, encoding="utf-8") as f:
        config_path_str = str(config_file)
        if config_path_str.endswith((".yaml", ".yml")):
            config = yaml.safe_load(f)
        elif config_path_str.endswith(".json"):
            config = json.load(f)
        else:
            raise ValueError(
                f"Formato de configuração não suportado: {config_path_str}. Use YAML (.yaml, .yml) ou JSON (.json)."
            )

    if config is None:
        raise ValueError(f"Arquivo de configuração vazio ou inválido: {config_file}")

    _validate_config(config)

    return config


def merge_dicts(dict1, dict2):
    """Mescla dois dicionários de forma recursiva."""
    result = dict1.copy()
    for key, value in dict2.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_dicts(result[key], value)
        else:
            result[key] = value
    return result
