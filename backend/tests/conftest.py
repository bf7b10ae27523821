"""
Shared fixtures: in-memory database, provider fakes and an API client.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from chatguard.core.database import Base, get_db
from chatguard.models import User, UsageRecord, ApiService, ApiOperation, UserQuota
from chatguard.services.llm.client import CompletionResult
from chatguard.services.rag import ContextRetriever, EmbeddingResult, VectorDB, VectorDBBackend


class FakeLLMClient:
    """Completion provider double: records calls and returns a canned reply."""

    def __init__(self, reply: Optional[str] = "Hello from the model", error: Optional[Exception] = None,
                 input_tokens: int = 50, output_tokens: int = 20):
        self.default_model = "gpt-3.5-turbo"
        self.reply = reply
        self.error = error
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.calls: List[Dict[str, Any]] = []

    def chat(self, messages, model=None, temperature=0.7, max_tokens=None):
        self.calls.append({
            "messages": messages,
            "model": model,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        if self.error is not None:
            raise self.error
        return CompletionResult(
            content=self.reply,
            model=model or self.default_model,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            total_tokens=self.input_tokens + self.output_tokens,
        )


class FakeEmbeddingService:
    """Embedding provider double."""

    def __init__(self, error: Optional[Exception] = None):
        self.default_model = "text-embedding-3-small"
        self.error = error
        self.texts: List[str] = []

    def generate_embedding(self, text: str, model: Optional[str] = None) -> EmbeddingResult:
        self.texts.append(text)
        if self.error is not None:
            raise self.error
        return EmbeddingResult(embedding=[0.1, 0.2, 0.3], total_tokens=max(1, len(text) // 4),
                               model=model or self.default_model)


class FakeVectorBackend(VectorDBBackend):
    """In-memory backend returning preset matches in the given order."""

    def __init__(self, results: Optional[List[Dict[str, Any]]] = None, fail_query: bool = False,
                 fail_upsert: bool = False):
        self.results = results or []
        self.fail_query = fail_query
        self.fail_upsert = fail_upsert
        self.upserts: List[Dict[str, Any]] = []
        self.queries: List[Dict[str, Any]] = []

    def upsert(self, ids, embeddings, documents, metadatas):
        if self.fail_upsert:
            raise ConnectionError("vector store unreachable")
        for vector_id, embedding, document, metadata in zip(ids, embeddings, documents, metadatas):
            self.upserts.append({"id": vector_id, "embedding": embedding, "document": document,
                                 "metadata": metadata})

    def query(self, query_embedding, top_k=5, filter_metadata=None):
        self.queries.append({"embedding": query_embedding, "top_k": top_k, "filter": filter_metadata})
        if self.fail_query:
            raise ConnectionError("vector store unreachable")
        return list(self.results[:top_k])

    def count(self):
        return len(self.upserts)


def make_match(match_id: str, score: float, content: str = "", role: str = "user") -> Dict[str, Any]:
    return {
        "id": match_id,
        "score": score,
        "metadata": {"content": content or f"content {match_id}", "role": role,
                     "timestamp": "2026-01-01T00:00:00+00:00", "messageId": match_id},
    }


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def user(db):
    user = User(email="alice@example.com", hashed_password="not-a-real-hash", full_name="Alice")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def fixed_now():
    return datetime(2026, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def add_usage(db):
    """Insert a ledger row directly with a chosen cost and timestamp."""
    def _add(user_id, cost, timestamp, service=ApiService.OPENAI,
             operation=ApiOperation.CHAT_COMPLETION, model="gpt-3.5-turbo"):
        record = UsageRecord(
            user_id=user_id,
            service=service,
            operation=operation,
            model=model,
            estimated_cost=Decimal(str(cost)),
            timestamp=timestamp,
        )
        db.add(record)
        db.commit()
        return record
    return _add


@pytest.fixture
def add_quota(db):
    def _add(user_id, last_reset_daily, last_reset_monthly=None, daily_limit="0.045",
             monthly_limit="1.35", current_daily="0", current_monthly="0"):
        quota = UserQuota(
            user_id=user_id,
            daily_limit=Decimal(daily_limit),
            monthly_limit=Decimal(monthly_limit),
            current_daily=Decimal(current_daily),
            current_monthly=Decimal(current_monthly),
            last_reset_daily=last_reset_daily,
            last_reset_monthly=last_reset_monthly or last_reset_daily,
        )
        db.add(quota)
        db.commit()
        db.refresh(quota)
        return quota
    return _add


@pytest.fixture
def fake_llm():
    return FakeLLMClient()


@pytest.fixture
def fake_embeddings():
    return FakeEmbeddingService()


@pytest.fixture
def fake_backend():
    return FakeVectorBackend()


@pytest.fixture
def retriever(fake_embeddings, fake_backend):
    return ContextRetriever(
        embedding_service=fake_embeddings,
        vector_db=VectorDB(fake_backend),
        top_k=5,
        min_score=0.7,
    )


@pytest.fixture
def unconfigured_retriever(fake_embeddings):
    return ContextRetriever(
        embedding_service=fake_embeddings,
        vector_db=VectorDB(None),
        top_k=5,
        min_score=0.7,
    )


@pytest.fixture
def orchestrator_factory(session_factory):
    from chatguard.services.chat import ChatOrchestrator

    def _build(llm=None, retriever=None):
        return ChatOrchestrator(
            llm_client=llm or FakeLLMClient(),
            retriever=retriever,
            session_factory=session_factory,
            chat_model="gpt-3.5-turbo",
            temperature=0.7,
            max_tokens=1000,
        )
    return _build


@pytest.fixture
def api_client(session_factory):
    """TestClient with the database and chat services replaced by test doubles.

    Returns a function taking the orchestrator to serve (and optionally the
    vector store reported by /health); lifespan is not run.
    """
    from chatguard.main import app
    from chatguard.api.deps import get_chat_orchestrator, get_vector_db

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def _client(orchestrator, vector_db=None):
        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_chat_orchestrator] = lambda: orchestrator
        app.dependency_overrides[get_vector_db] = lambda: vector_db or VectorDB(None)
        return TestClient(app)

    yield _client
    app.dependency_overrides.clear()


