"""
Constantes do Orquestra - Valores padrão para configurações
"""

# === IDENTIFICAÇÃO ===
LOGGER_NAME = "orquestra"
SYSTEM_AGENT_ID = "system"

# === CONFIGURAÇÕES DE LLM ===
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2000
UNAVAILABLE_CONTENT = "Resposta não disponível"
KEY_TEST_PROMPT = "Responda apenas 'OK' se você conseguir me ouvir."
KEY_TEST_ROLE = "system-test"

# Ordem global de prioridade dos provedores
DEFAULT_PROVIDER_PRIORITY = [
    "OpenAI",
    "Gemini",
    "DeepSeek",
    "Grok",
    "Flowise",
    "Claude",
    "Perplexity",
]

# Tabela secundária (legada) usada fora do caminho principal de LLM
DEFAULT_LEGACY_ORDER = ["OpenAI", "Claude", "Gemini", "Groq", "Ollama"]

# Nome do provedor atribuído às respostas determinísticas de fallback
FALLBACK_PROVIDER_NAME = "Mock System"

# Status HTTP que invalidam permanentemente uma chave
AUTH_FAILURE_STATUSES = (401, 403)

# === CONFIGURAÇÕES DE RETRY E TIMEOUT ===
DEFAULT_REQUEST_TIMEOUT = 45  # segundos por chamada HTTP
DEFAULT_PIPELINE_TIMEOUT = 900  # 15 minutos para o pipeline completo
DEFAULT_BACKOFF_BASE = 0.5  # segundos
DEFAULT_BACKOFF_MAX = 8.0  # segundos
BACKOFF_JITTER_RATIO = 0.1
DEFAULT_MAX_AUTO_RETRIES = 0
DEFAULT_RETRY_DELAY = 0.0  # segundos em "retrying" antes de repetir a ordem de fallback
DEFAULT_FAILED_PROVIDER_TTL = 300  # 5 minutos

# === ARMAZENAMENTO DE CHAVES ===
KEY_QUEUE_NAMESPACE = "ai"
KEY_QUEUE_STORAGE_KEY = "ai_key_queues"
LEGACY_KEY_STORAGE_KEY = "api_key"
VALID_KEY_STORE_BACKENDS = ["memory", "file", "redis"]
DEFAULT_KEY_STORE_PATH = "config/api_keys.json"
REDIS_DEFAULT_PORT = 6379
MASKED_KEY_PREFIX = 8

# === ARQUIVOS ZIP ===
TEXT_FILE_EXTENSIONS = (
    ".html", ".js", ".css", ".txt", ".json", ".md",
    ".jsx", ".ts", ".tsx", ".py", ".php",
)
MAX_ARCHIVE_PATH_LENGTH = 200
ZIP_ANALYZER_ROLE = "ai-specialist"
ORIGINAL_FILES_DIR = "original"
SESSION_LOG_FILENAME = "SESSION_LOG.md"
