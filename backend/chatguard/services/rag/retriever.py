"""
Context retriever: similarity search over stored conversation messages.

Retrieval never fails the caller. When the vector store is unconfigured or
unreachable, search degrades to "no context".
"""
from typing import List, Dict, Any, Optional
import logging

from chatguard.core.exceptions import PersistenceError, RetrievalDegraded
from chatguard.core.results import StepResult
from chatguard.services.rag.embedding import EmbeddingService
from chatguard.services.rag.rag_models import EmbeddingResult, RetrievedMatch
from chatguard.services.rag.vector_db import VectorDB

logger = logging.getLogger(__name__)

CONTEXT_HEADER = "Relevant context from previous conversations:"


class ContextRetriever:
    """Embeds queries, searches the vector store and formats matches."""

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_db: VectorDB,
        top_k: int = 5,
        min_score: Optional[float] = None,
    ):
        self.embedding_service = embedding_service
        self.vector_db = vector_db
        self.top_k = top_k
        self.min_score = min_score

    @property
    def is_configured(self) -> bool:
        return self.vector_db.is_configured

    def embed(self, text: str) -> EmbeddingResult:
        """Embed text. Provider errors propagate."""
        return self.embedding_service.generate_embedding(text)

    def search(
        self,
        vector: List[float],
        top_k: Optional[int] = None,
        min_score: Optional[float] = None,
        filter_metadata: Optional[Dict[str, Any]] = None,
    ) -> StepResult[List[RetrievedMatch]]:
        """
        Query the index and keep matches with score >= min_score, at most top_k.

        Order is the index's (descending score); ties keep index order.
        """
        top_k = self.top_k if top_k is None else top_k
        min_score = self.min_score if min_score is None else min_score

        if not self.is_configured:
            reason = "vector store not configured"
            return StepResult.degraded(reason, value=[], exception=RetrievalDegraded(reason))
        if top_k <= 0:
            return StepResult.success([])

        try:
            raw = self.vector_db.query(vector, top_k=top_k, filter_metadata=filter_metadata)
        except Exception as e:
            logger.warning(f"Vector store query failed, continuing without context: {e}")
            return StepResult.degraded(f"vector store query failed: {e}", value=[], exception=RetrievalDegraded(str(e)))

        matches = [RetrievedMatch.from_query_result(result) for result in raw]
        if min_score is not None:
            matches = [match for match in matches if match.score >= min_score]

        return StepResult.success(matches[:top_k])

    def retrieve(
        self,
        vector: List[float],
        top_k: Optional[int] = None,
        min_score: Optional[float] = None,
        filter_metadata: Optional[Dict[str, Any]] = None,
    ) -> List[RetrievedMatch]:
        """Matches for `vector`; empty when the store is unavailable."""
        return self.search(vector, top_k, min_score, filter_metadata).value or []

    def store(self, vector_id: str, vector: List[float], metadata: Dict[str, Any]) -> StepResult[str]:
        """Best-effort upsert of one message embedding."""
        if not self.is_configured:
            return StepResult.degraded("vector store not configured")

        try:
            self.vector_db.upsert(
                ids=[vector_id],
                embeddings=[vector],
                documents=[metadata.get("content", "")],
                metadatas=[metadata],
            )
            return StepResult.success(vector_id)
        except Exception as e:
            logger.warning(f"Failed to store embedding {vector_id}: {e}")
            return StepResult.degraded(f"vector store upsert failed: {e}", exception=PersistenceError(str(e)))

    @staticmethod
    def format_context(matches: List[RetrievedMatch]) -> str:
        """Render matches as numbered lines: "{n}. [{role}]: {content}"."""
        return "\n".join(
            f"{index}. [{match.role}]: {match.content}"
            for index, match in enumerate(matches, start=1)
        )

    def build_context_message(self, matches: List[RetrievedMatch]) -> Optional[Dict[str, str]]:
        """Auxiliary system message carrying retrieved context, or None if no matches."""
        if not matches:
            return None
        return {
            "role": "system",
            "content": f"{CONTEXT_HEADER}\n{self.format_context(matches)}",
        }
