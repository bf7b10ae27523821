"""
Composition root: builds the long-lived service objects used by routers.

Each getter is cached per process. Tests replace them through
app.dependency_overrides.
"""
from functools import lru_cache
from typing import Optional
import logging

from fastapi import HTTPException, status

from chatguard.core.config import (
    CHAT_TEMPERATURE,
    CHAT_MAX_TOKENS,
    DEFAULT_LLM_MODEL,
    RAG_TOP_K,
    RAG_MIN_SIMILARITY_SCORE,
)
from chatguard.core.database import SessionLocal
from chatguard.services.chat import ChatOrchestrator
from chatguard.services.llm.client import LLMClient
from chatguard.services.rag import ContextRetriever, EmbeddingService, VectorDB

logger = logging.getLogger(__name__)


@lru_cache()
def get_llm_client() -> LLMClient:
    try:
        return LLMClient()
    except ValueError as e:
        logger.error(f"Chat provider not configured: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Chat provider is not configured"
        )


@lru_cache()
def get_vector_db() -> VectorDB:
    return VectorDB.from_config()


@lru_cache()
def get_context_retriever() -> Optional[ContextRetriever]:
    """Retriever, or None when embeddings or the vector store are unavailable."""
    vector_db = get_vector_db()
    if not vector_db.is_configured:
        return None

    try:
        embedding_service = EmbeddingService()
    except ValueError as e:
        logger.warning(f"Embedding provider not configured, retrieval disabled: {e}")
        return None

    return ContextRetriever(
        embedding_service=embedding_service,
        vector_db=vector_db,
        top_k=RAG_TOP_K,
        min_score=RAG_MIN_SIMILARITY_SCORE,
    )


@lru_cache()
def get_chat_orchestrator() -> ChatOrchestrator:
    return ChatOrchestrator(
        llm_client=get_llm_client(),
        retriever=get_context_retriever(),
        session_factory=SessionLocal,
        chat_model=DEFAULT_LLM_MODEL,
        temperature=CHAT_TEMPERATURE,
        max_tokens=CHAT_MAX_TOKENS,
    )
