# pdfchat/config.py
"""
Configuration for the PDF chat service.

Module-level constants are the documented defaults. Settings.from_env()
overlays environment variables (and a local .env file) on top of them
and validates the result once, at startup.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from pdfchat.errors import ConfigurationError

load_dotenv(dotenv_path=Path(__file__).parent.parent / ".env")


# ========== DOCUMENT PROCESSING ==========

# Character windows, not tokens
CHUNK_SIZE = 512
CHUNK_OVERLAP = 128

# Citation heuristic: page = chunk_index // CHUNKS_PER_PAGE + 1
CHUNKS_PER_PAGE = 2

# File upload limits
MAX_FILE_SIZE_MB = 50
ALLOWED_CONTENT_TYPES = ["application/pdf"]
ALLOWED_FILE_EXTENSIONS = [".pdf"]

# Upload throttling, per client identity
UPLOAD_RATE_LIMIT = 5
UPLOAD_RATE_WINDOW_SECONDS = 60


# ========== EMBEDDING CONFIGURATION ==========

EMBEDDING_MODEL = "text-embedding-3-small"
EMBED_BATCH_SIZE = 32
EMBED_MAX_CONCURRENCY = 4
EMBED_TIMEOUT_SECONDS = 30.0


# ========== RETRIEVAL CONFIGURATION ==========

TOP_K = 3

NO_CONTEXT_SENTINEL = "No relevant context found"


# ========== LLM CONFIGURATION ==========

LLM_MODEL = "gpt-4o-mini"
LLM_TEMPERATURE = 0.2
LLM_MAX_TOKENS = 200
LLM_TIMEOUT_SECONDS = 30.0


# ========== SESSION LIFECYCLE ==========

SESSION_IDLE_TIMEOUT_SECONDS = 1800
SESSION_SWEEP_INTERVAL_SECONDS = 60


# ========== SERVER ==========

PORT = 8000
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", "logs/app.log")


# ============================================================
# PARSING HELPERS
# ============================================================

def _read_int(env: Mapping[str, str], name: str, default: int, minimum: int = 1) -> int:

    raw = env.get(name)

    if raw is None or not raw.strip():
        return default

    try:
        value = int(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")

    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")

    return value


def _read_float(env: Mapping[str, str], name: str, default: float) -> float:

    raw = env.get(name)

    if raw is None or not raw.strip():
        return default

    try:
        value = float(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")

    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")

    return value


def validate_chunking(size: int, overlap: int) -> None:

    if size <= 0:
        raise ConfigurationError(f"Invalid chunk size: {size}")

    if overlap < 0 or overlap >= size:
        raise ConfigurationError(
            f"Chunk overlap must satisfy 0 <= overlap < size "
            f"(overlap={overlap}, size={size})"
        )


# ============================================================
# SETTINGS
# ============================================================

@dataclass(frozen=True)
class Settings:
    """
    Validated runtime configuration.

    openai_api_key is mandatory; the service refuses to start without it.
    """

    openai_api_key: str
    port: int = PORT
    max_file_size_mb: int = MAX_FILE_SIZE_MB
    upload_rate_limit: int = UPLOAD_RATE_LIMIT
    upload_rate_window_seconds: int = UPLOAD_RATE_WINDOW_SECONDS
    session_idle_timeout_seconds: int = SESSION_IDLE_TIMEOUT_SECONDS
    session_sweep_interval_seconds: int = SESSION_SWEEP_INTERVAL_SECONDS
    chunk_size: int = CHUNK_SIZE
    chunk_overlap: int = CHUNK_OVERLAP
    top_k: int = TOP_K
    embedding_model: str = EMBEDDING_MODEL
    embed_timeout_seconds: float = EMBED_TIMEOUT_SECONDS
    llm_model: str = LLM_MODEL
    llm_max_tokens: int = LLM_MAX_TOKENS
    llm_timeout_seconds: float = LLM_TIMEOUT_SECONDS

    def __post_init__(self):

        if not self.openai_api_key or not self.openai_api_key.strip():
            raise ConfigurationError(
                "OPENAI_API_KEY environment variable not set. "
                "Please set it before running the application."
            )

        validate_chunking(self.chunk_size, self.chunk_overlap)

        if self.top_k <= 0:
            raise ConfigurationError(f"TOP_K must be positive, got {self.top_k}")

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":

        env = os.environ if environ is None else environ

        return cls(
            openai_api_key=env.get("OPENAI_API_KEY", ""),
            port=_read_int(env, "PORT", PORT),
            max_file_size_mb=_read_int(env, "MAX_FILE_SIZE_MB", MAX_FILE_SIZE_MB),
            upload_rate_limit=_read_int(env, "UPLOAD_RATE_LIMIT", UPLOAD_RATE_LIMIT),
            upload_rate_window_seconds=_read_int(
                env, "UPLOAD_RATE_WINDOW_SECONDS", UPLOAD_RATE_WINDOW_SECONDS
            ),
            session_idle_timeout_seconds=_read_int(
                env, "SESSION_IDLE_TIMEOUT_SECONDS", SESSION_IDLE_TIMEOUT_SECONDS
            ),
            session_sweep_interval_seconds=_read_int(
                env, "SESSION_SWEEP_INTERVAL_SECONDS", SESSION_SWEEP_INTERVAL_SECONDS
            ),
            chunk_size=_read_int(env, "CHUNK_SIZE", CHUNK_SIZE),
            chunk_overlap=_read_int(env, "CHUNK_OVERLAP", CHUNK_OVERLAP, minimum=0),
            top_k=_read_int(env, "TOP_K", TOP_K),
            embedding_model=env.get("EMBEDDING_MODEL") or EMBEDDING_MODEL,
            embed_timeout_seconds=_read_float(
                env, "EMBED_TIMEOUT_SECONDS", EMBED_TIMEOUT_SECONDS
            ),
            llm_model=env.get("LLM_MODEL") or LLM_MODEL,
            llm_max_tokens=_read_int(env, "LLM_MAX_TOKENS", LLM_MAX_TOKENS),
            llm_timeout_seconds=_read_float(
                env, "LLM_TIMEOUT_SECONDS", LLM_TIMEOUT_SECONDS
            ),
        )


# ========== DESIGN TRADE-OFFS (DOCUMENTED) ==========

"""
TRADE-OFF DECISIONS:

1. Character-offset chunking (512 / 128):
   - No sentence or page awareness, so a chunk may cut a word in half
   - Deterministic and trivially aligned with citation metadata

2. Page citations from chunk position:
   - page = chunk_index // 2 + 1 is a heuristic, not a real page boundary
   - Kept for compatibility with existing clients

3. TOP_K = 3:
   - Small context keeps the 200-token answer budget focused

4. In-memory sessions with idle expiry:
   - Nothing survives a restart, single instance only
   - Idle sessions are swept so memory stays bounded
"""
