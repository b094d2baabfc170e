"""Application configuration with sensible defaults."""
import os
from pathlib import Path
from typing import List, Optional


class ConfigError(RuntimeError):
    """Raised when required startup configuration is missing."""


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Paths
BASE_DIR = Path(__file__).parent.parent
STORAGE_DIR = Path(os.getenv("STORAGE_DIR", str(BASE_DIR / "storage")))

# Documentation source (required, may be given on the command line instead)
DOCS_PATH = os.getenv("DOCS_PATH")
CRATE_NAME = os.getenv("CRATE_NAME")
INCLUDE_ALL_DOCS = _env_flag("INCLUDE_ALL_DOCS")

# OpenAI-compatible provider configuration
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_API_BASE = os.getenv("OPENAI_API_BASE", "https://api.openai.com/v1")
CHAT_MODEL = os.getenv("CHAT_MODEL", "gpt-4o-mini")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
PROVIDER_TIMEOUT = float(os.getenv("PROVIDER_TIMEOUT", "60.0"))

# RAG parameters (character-based to avoid tokenizer inconsistencies)
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "2400"))          # ≈600 tokens
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "320"))     # ≈80 tokens
RETRIEVAL_TOP_K = int(os.getenv("RETRIEVAL_TOP_K", "2"))
MAX_CONTEXT_CHARS = int(os.getenv("MAX_CONTEXT_CHARS", "6000"))
EMBEDDING_BATCH_SIZE = int(os.getenv("EMBEDDING_BATCH_SIZE", "64"))
EMBEDDING_COST_PER_MILLION_TOKENS = float(os.getenv("EMBEDDING_COST_PER_MILLION_TOKENS", "0.02"))
LOAD_CONCURRENCY = int(os.getenv("LOAD_CONCURRENCY", "8"))

# Persisted index artifacts (one set per crate under STORAGE_DIR/<crate>)
VECTOR_STORE_FILE = "vector_store.faiss"
DOC_STORE_FILE = "doc_store.json"
INDEX_STORE_FILE = "index_store.json"

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def storage_dir_for(crate_name: str, storage_root: Optional[Path] = None) -> Path:
    """Return the dedicated storage directory for a crate."""
    return Path(storage_root or STORAGE_DIR) / crate_name


def check_required(
    docs_path: Optional[str],
    crate_name: Optional[str],
    api_key: Optional[str],
) -> None:
    """Fail startup when any required parameter is absent.

    Raises:
        ConfigError: Listing every missing setting
    """
    missing: List[str] = []
    if not docs_path:
        missing.append("DOCS_PATH")
    if not crate_name:
        missing.append("CRATE_NAME")
    if not api_key:
        missing.append("OPENAI_API_KEY")

    if missing:
        raise ConfigError(
            f"Missing required configuration: {', '.join(missing)}. "
            "Set the environment variable(s) or pass the matching command line option."
        )
