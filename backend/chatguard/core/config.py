"""
Configuration management.
Loads from config_local.py (gitignored) for secrets, with defaults.
"""
from typing import Optional

# Try to import local config (gitignored)
try:
    from chatguard.config_local import (
        DATABASE_DSN,
        OPENAI_API_KEY,
        OPENAI_BASE_URL,
        DEFAULT_LLM_MODEL,
        SESSION_COOKIE_NAME,
        SESSION_SECRET,
    )
    # Import tuning knobs with fallbacks if not present
    try:
        from chatguard.config_local import (
            DEFAULT_EMBEDDING_MODEL,
            CHAT_TEMPERATURE,
            CHAT_MAX_TOKENS,
            STORAGE_BASE_PATH,
            VECTOR_DB_BACKEND,
            VECTOR_COLLECTION_NAME,
            RAG_TOP_K,
            RAG_MIN_SIMILARITY_SCORE,
            DEFAULT_DAILY_LIMIT_USD,
            DEFAULT_MONTHLY_LIMIT_USD,
        )
    except ImportError:
        DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
        CHAT_TEMPERATURE = 0.7
        CHAT_MAX_TOKENS = 1000
        STORAGE_BASE_PATH = "data"
        VECTOR_DB_BACKEND = "chromadb"
        VECTOR_COLLECTION_NAME = "chat_messages"
        RAG_TOP_K = 5
        RAG_MIN_SIMILARITY_SCORE = 0.7
        DEFAULT_DAILY_LIMIT_USD = 0.045  # ~30 requests/day
        DEFAULT_MONTHLY_LIMIT_USD = 1.35  # 30 x daily limit
    try:
        from chatguard.config_local import (
            SESSION_MAX_AGE_HOURS,
            CORS_ORIGINS,
            LOG_LEVEL,
            LOG_FORMAT,
            EXPOSE_ERROR_DETAILS,
        )
    except ImportError:
        SESSION_MAX_AGE_HOURS = 24
        CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]
        LOG_LEVEL = "INFO"
        LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        EXPOSE_ERROR_DETAILS = False
except ImportError:
    # Fallback defaults (provider calls will fail at runtime if secrets not set)
    DATABASE_DSN: str = "sqlite:///data/chatguard.db"
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    DEFAULT_LLM_MODEL: str = "gpt-3.5-turbo"
    DEFAULT_EMBEDDING_MODEL: str = "text-embedding-3-small"
    CHAT_TEMPERATURE: float = 0.7
    CHAT_MAX_TOKENS: int = 1000
    SESSION_COOKIE_NAME: str = "chatguard_session"
    SESSION_SECRET: Optional[str] = None
    SESSION_MAX_AGE_HOURS: int = 24
    STORAGE_BASE_PATH: str = "data"  # Relative path (works everywhere)
    VECTOR_DB_BACKEND: str = "chromadb"  # "chromadb" or "none" (disables retrieval and storage)
    VECTOR_COLLECTION_NAME: str = "chat_messages"
    RAG_TOP_K: int = 5
    RAG_MIN_SIMILARITY_SCORE: float = 0.7  # Cosine similarity, higher is closer
    DEFAULT_DAILY_LIMIT_USD: float = 0.045  # ~30 requests/day
    DEFAULT_MONTHLY_LIMIT_USD: float = 1.35  # 30 x daily limit
    CORS_ORIGINS: list = ["http://localhost:3000", "http://127.0.0.1:3000"]
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    EXPOSE_ERROR_DETAILS: bool = False


def get_settings():
    """Return settings object (for FastAPI dependency injection if needed)."""
    return type("Settings", (), {
        "database_dsn": DATABASE_DSN,
        "openai_api_key": OPENAI_API_KEY,
        "openai_base_url": OPENAI_BASE_URL,
        "default_llm_model": DEFAULT_LLM_MODEL,
        "default_embedding_model": DEFAULT_EMBEDDING_MODEL,
        "chat_temperature": CHAT_TEMPERATURE,
        "chat_max_tokens": CHAT_MAX_TOKENS,
        "session_cookie_name": SESSION_COOKIE_NAME,
        "session_secret": SESSION_SECRET,
        "session_max_age_hours": SESSION_MAX_AGE_HOURS,
        "storage_base_path": STORAGE_BASE_PATH,
        "vector_db_backend": VECTOR_DB_BACKEND,
        "vector_collection_name": VECTOR_COLLECTION_NAME,
        "rag_top_k": RAG_TOP_K,
        "rag_min_similarity_score": RAG_MIN_SIMILARITY_SCORE,
        "default_daily_limit_usd": DEFAULT_DAILY_LIMIT_USD,
        "default_monthly_limit_usd": DEFAULT_MONTHLY_LIMIT_USD,
        "cors_origins": CORS_ORIGINS,
        "log_level": LOG_LEVEL,
        "log_format": LOG_FORMAT,
        "expose_error_details": EXPOSE_ERROR_DETAILS,
    })()
