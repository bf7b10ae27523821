"""
RAG model classes.
"""
from dataclasses import dataclass
from typing import List, Optional


@dataclass
class EmbeddingResult:
    """Embedding vector plus the tokens it consumed."""
    embedding: List[float]
    total_tokens: int
    model: str


@dataclass
class RetrievedMatch:
    """One similarity search hit. Ephemeral, never persisted."""
    id: str
    score: float  # higher = closer
    content: str
    role: str  # "user" or "assistant"
    timestamp: str
    message_id: Optional[str] = None

    @classmethod
    def from_query_result(cls, result: dict) -> "RetrievedMatch":
        metadata = result.get('metadata') or {}
        return cls(
            id=result['id'],
            score=float(result.get('score') or 0.0),
            content=metadata.get('content') or "",
            role=metadata.get('role') or "user",
            timestamp=metadata.get('timestamp') or "",
            message_id=metadata.get('messageId') or result['id'],
        )
