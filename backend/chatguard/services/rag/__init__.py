"""
RAG (Retrieval-Augmented Generation) services.
"""
from chatguard.services.rag.vector_db import VectorDB, VectorDBBackend, ChromaDBBackend
from chatguard.services.rag.embedding import EmbeddingService
from chatguard.services.rag.retriever import ContextRetriever
from chatguard.services.rag.rag_models import EmbeddingResult, RetrievedMatch

__all__ = [
    "VectorDB",
    "VectorDBBackend",
    "ChromaDBBackend",
    "EmbeddingService",
    "ContextRetriever",
    "EmbeddingResult",
    "RetrievedMatch",
]
