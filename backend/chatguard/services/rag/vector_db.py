"""
Vector database abstraction layer for conversation memory.
Supports multiple backends via abstraction; ChromaDB is the bundled one.
"""
from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional
from pathlib import Path
import logging

logger = logging.getLogger(__name__)


class VectorDBBackend(ABC):
    """Abstract base class for vector database backends."""

    @abstractmethod
    def upsert(
        self,
        ids: List[str],
        embeddings: List[List[float]],
        documents: List[str],
        metadatas: List[Dict[str, Any]],
    ) -> None:
        """Insert or replace vectors.

        Args:
            ids: Unique vector IDs
            embeddings: Embedding vectors (each is a list of floats)
            documents: Source texts (one per vector)
            metadatas: Metadata dicts (one per vector)
        """
        pass

    @abstractmethod
    def query(
        self,
        query_embedding: List[float],
        top_k: int = 5,
        filter_metadata: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Search for similar vectors.

        Returns:
            List of dicts with keys: 'id', 'score', 'metadata', ordered by
            descending score (higher = closer)
        """
        pass

    @abstractmethod
    def count(self) -> int:
        """Number of vectors stored."""
        pass


class ChromaDBBackend(VectorDBBackend):
    """ChromaDB implementation of vector database backend."""

    def __init__(self, storage_path: Path, collection_name: str):
        """Initialize ChromaDB backend.

        Args:
            storage_path: Base path for ChromaDB storage
            collection_name: Collection holding message embeddings
        """
        import chromadb
        from chromadb.config import Settings

        self.storage_path = storage_path
        self.storage_path.mkdir(parents=True, exist_ok=True)
        self.collection_name = collection_name

        # Initialize ChromaDB client (persistent, file-based)
        self.client = chromadb.PersistentClient(
            path=str(storage_path),
            settings=Settings(
                anonymized_telemetry=False,
                allow_reset=True,
            )
        )
        # Cosine space so that similarity = 1 - distance
        self.collection = self.client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )
        logger.info(f"ChromaDB initialized at {storage_path} (collection={collection_name})")

    def upsert(
        self,
        ids: List[str],
        embeddings: List[List[float]],
        documents: List[str],
        metadatas: List[Dict[str, Any]],
    ) -> None:
        if not all([ids, embeddings, documents, metadatas]):
            raise ValueError("All parameters (ids, embeddings, documents, metadatas) must be provided")

        if not all(len(lst) == len(ids) for lst in [embeddings, documents, metadatas]):
            raise ValueError("All lists must have the same length")

        self.collection.upsert(
            ids=ids,
            embeddings=embeddings,
            documents=documents,
            metadatas=metadatas,
        )
        logger.info(f"Upserted {len(ids)} vectors to collection {self.collection_name}")

    def query(
        self,
        query_embedding: List[float],
        top_k: int = 5,
        filter_metadata: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        results = self.collection.query(
            query_embeddings=[query_embedding],
            n_results=top_k,
            where=filter_metadata or None,
        )

        # Transform ChromaDB results to standard format
        output = []
        if results['ids'] and len(results['ids'][0]) > 0:
            for i in range(len(results['ids'][0])):
                distance = results['distances'][0][i] if results.get('distances') else None
                output.append({
                    'id': results['ids'][0][i],
                    'score': 1.0 - distance if distance is not None else 0.0,
                    'metadata': results['metadatas'][0][i] if results.get('metadatas') else {},
                })

        return output

    def count(self) -> int:
        return self.collection.count()


class VectorDB:
    """Vector database abstraction layer.

    A VectorDB without a backend is "unconfigured": queries return nothing and
    writes are skipped.
    """

    def __init__(self, backend: Optional[VectorDBBackend] = None):
        self.backend = backend

    @classmethod
    def from_config(
        cls,
        backend_type: Optional[str] = None,
        storage_path: Optional[Path] = None,
        collection_name: Optional[str] = None,
    ) -> "VectorDB":
        """Build from settings.

        Args:
            backend_type: "chromadb" or "none". If None, uses VECTOR_DB_BACKEND from config.
            storage_path: Base path for vector DB storage. If None, uses STORAGE_BASE_PATH from config.
            collection_name: If None, uses VECTOR_COLLECTION_NAME from config.
        """
        from chatguard.core.config import VECTOR_DB_BACKEND, STORAGE_BASE_PATH, VECTOR_COLLECTION_NAME

        if backend_type is None:
            backend_type = VECTOR_DB_BACKEND
        if storage_path is None:
            storage_path = Path(STORAGE_BASE_PATH) / "chat_vectors"
        if collection_name is None:
            collection_name = VECTOR_COLLECTION_NAME

        if not backend_type or backend_type == "none":
            logger.info("Vector store not configured; retrieval disabled")
            return cls(None)

        if backend_type == "chromadb":
            try:
                return cls(ChromaDBBackend(storage_path, collection_name))
            except Exception as e:
                logger.error(f"Failed to initialize ChromaDB, retrieval disabled: {e}")
                return cls(None)

        raise ValueError(f"Unknown backend type: {backend_type}")

    @property
    def is_configured(self) -> bool:
        return self.backend is not None

    def upsert(
        self,
        ids: List[str],
        embeddings: List[List[float]],
        documents: List[str],
        metadatas: List[Dict[str, Any]],
    ) -> None:
        if not self.is_configured:
            return
        self.backend.upsert(ids, embeddings, documents, metadatas)

    def query(
        self,
        query_embedding: List[float],
        top_k: int = 5,
        filter_metadata: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        if not self.is_configured:
            return []
        return self.backend.query(query_embedding, top_k, filter_metadata)

    def count(self) -> int:
        if not self.is_configured:
            return 0
        return self.backend.count()
