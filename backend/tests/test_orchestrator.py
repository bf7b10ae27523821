"""
Tests for the chat turn orchestrator.
"""
from decimal import Decimal
import logging
from unittest.mock import patch

import pytest

from chatguard.core.clock import utc_now
from chatguard.core.exceptions import (
    NotFoundError,
    PersistenceError,
    QuotaExceededError,
    RetrievalDegraded,
    UpstreamProviderError,
    ValidationError,
)
from chatguard.core.results import StepStatus
from chatguard.models import ApiOperation, UsageRecord, UserQuota
from chatguard.services.chat import ChatRequest, DEFAULT_SYSTEM_PROMPT, generate_vector_id
from chatguard.services.rag import ContextRetriever, VectorDB
from chatguard.services.templates import TemplateRenderError

from conftest import FakeEmbeddingService, FakeLLMClient, FakeVectorBackend, make_match


def _request(message="What did we discuss?", **kwargs):
    return ChatRequest(message=message, **kwargs)


class TestPromptAssembly:
    def test_default_persona_without_template(self, db, orchestrator_factory, fake_llm):
        orchestrator = orchestrator_factory(llm=fake_llm)

        orchestrator.handle_turn(db, _request("Hi"))

        messages = fake_llm.calls[0]["messages"]
        assert messages[0] == {"role": "system", "content": DEFAULT_SYSTEM_PROMPT}
        assert DEFAULT_SYSTEM_PROMPT == "You are a helpful assistant."

    def test_message_order(self, db, orchestrator_factory, fake_llm):
        backend = FakeVectorBackend([make_match("m1", 0.9, content="We talked about Paris", role="assistant")])
        retriever = ContextRetriever(FakeEmbeddingService(), VectorDB(backend), top_k=5, min_score=0.7)
        orchestrator = orchestrator_factory(llm=fake_llm, retriever=retriever)
        history = [
            {"role": "user", "content": "first"},
            {"role": "assistant", "content": "second"},
            {"role": "user", "content": "third"},
        ]

        orchestrator.handle_turn(db, _request("current", conversation_history=history), dispatch=lambda fn: None)

        messages = fake_llm.calls[0]["messages"]
        assert [m["role"] for m in messages] == ["system", "system", "user", "assistant", "user", "user"]
        assert messages[0]["content"] == DEFAULT_SYSTEM_PROMPT
        assert messages[1]["content"] == (
            "Relevant context from previous conversations:\n1. [assistant]: We talked about Paris"
        )
        assert [m["content"] for m in messages[2:]] == ["first", "second", "third", "current"]

    def test_no_context_message_without_matches(self, db, orchestrator_factory, fake_llm):
        backend = FakeVectorBackend([make_match("low", 0.2)])
        retriever = ContextRetriever(FakeEmbeddingService(), VectorDB(backend), top_k=5, min_score=0.7)
        orchestrator = orchestrator_factory(llm=fake_llm, retriever=retriever)

        orchestrator.handle_turn(db, _request("hello"), dispatch=lambda fn: None)

        messages = fake_llm.calls[0]["messages"]
        assert len(messages) == 2
        assert messages[-1] == {"role": "user", "content": "hello"}

    def test_template_renders_system_message(self, db, orchestrator_factory, fake_llm):
        orchestrator = orchestrator_factory(llm=fake_llm)

        result = orchestrator.handle_turn(db, _request(
            "Review this",
            template_id="code-reviewer",
            template_variables={"programming_language": "Python"},
        ))

        system = fake_llm.calls[0]["messages"][0]["content"]
        assert system.startswith("You are an expert code reviewer with 10 years of experience in Python.")
        assert result.template_id == "code-reviewer"

    def test_completion_parameters(self, db, orchestrator_factory, fake_llm):
        orchestrator_factory(llm=fake_llm).handle_turn(db, _request("Hi"))
        call = fake_llm.calls[0]
        assert call["model"] == "gpt-3.5-turbo"
        assert call["temperature"] == 0.7
        assert call["max_tokens"] == 1000


class TestHardFailures:
    def test_missing_message(self, db, orchestrator_factory, fake_llm):
        with pytest.raises(ValidationError, match="No message provided"):
            orchestrator_factory(llm=fake_llm).handle_turn(db, _request("   "))
        assert fake_llm.calls == []

    def test_unknown_template(self, db, orchestrator_factory, fake_llm):
        with pytest.raises(NotFoundError):
            orchestrator_factory(llm=fake_llm).handle_turn(db, _request("Hi", template_id="nope"))
        assert fake_llm.calls == []

    def test_template_render_failure(self, db, orchestrator_factory, fake_llm):
        with pytest.raises(TemplateRenderError):
            orchestrator_factory(llm=fake_llm).handle_turn(db, _request(
                "Hi", template_id="code-reviewer", template_variables={"experience_years": "many"},
            ))

    def test_quota_rejection_makes_no_paid_calls(self, db, user, add_quota, add_usage, orchestrator_factory,
                                                 fake_llm):
        now = utc_now()
        add_quota(user.id, last_reset_daily=now)
        add_usage(user.id, "0.045", now)
        embeddings = FakeEmbeddingService()
        retriever = ContextRetriever(embeddings, VectorDB(FakeVectorBackend()), top_k=5, min_score=0.7)

        with pytest.raises(QuotaExceededError) as exc_info:
            orchestrator_factory(llm=fake_llm, retriever=retriever).handle_turn(db, _request("Hi"), user_id=user.id)

        assert exc_info.value.limit_check.allowed is False
        assert "Daily limit exceeded." in exc_info.value.message
        assert fake_llm.calls == []
        assert embeddings.texts == []
        assert db.query(UsageRecord).count() == 1

    def test_anonymous_turn_skips_quota(self, db, orchestrator_factory, fake_llm):
        orchestrator_factory(llm=fake_llm).handle_turn(db, _request("Hi"), user_id=None)
        assert db.query(UserQuota).count() == 0

    def test_provider_failure(self, db, orchestrator_factory):
        llm = FakeLLMClient(error=UpstreamProviderError("provider down"))
        with pytest.raises(UpstreamProviderError):
            orchestrator_factory(llm=llm).handle_turn(db, _request("Hi"))
        assert db.query(UsageRecord).count() == 0

    @pytest.mark.parametrize("reply", [None, ""])
    def test_empty_reply_is_upstream_failure(self, db, orchestrator_factory, reply):
        with pytest.raises(UpstreamProviderError, match="No reply from model"):
            orchestrator_factory(llm=FakeLLMClient(reply=reply)).handle_turn(db, _request("Hi"))


class TestUsageLogging:
    def test_logs_actual_completion_cost(self, db, user, orchestrator_factory):
        llm = FakeLLMClient(input_tokens=1000, output_tokens=500)

        result = orchestrator_factory(llm=llm).handle_turn(
            db, _request("Hi", conversation_id="conv-42"), user_id=user.id, dispatch=lambda fn: None,
        )

        row = db.query(UsageRecord).filter(UsageRecord.operation == ApiOperation.CHAT_COMPLETION).one()
        assert row.estimated_cost == Decimal("0.0025")
        assert row.user_id == user.id
        assert row.conversation_id == "conv-42"
        assert result.conversation_id == "conv-42"
        assert result.tokens_used == 1500

    def test_generates_conversation_id(self, db, orchestrator_factory):
        result = orchestrator_factory().handle_turn(db, _request("Hi"))
        assert result.conversation_id
        row = db.query(UsageRecord).one()
        assert row.conversation_id == result.conversation_id

    def test_logs_query_embedding_and_vector_query(self, db, user, orchestrator_factory, retriever):
        orchestrator_factory(retriever=retriever).handle_turn(db, _request("Hi"), user_id=user.id,
                                                               dispatch=lambda fn: None)
        operations = sorted(row.operation.value for row in db.query(UsageRecord).all())
        assert operations == ["chat_completion", "embedding", "query"]

    def test_estimate_without_retriever_logs_no_pricing_warning(self, db, orchestrator_factory, caplog):
        with caplog.at_level(logging.WARNING, logger="chatguard.services.pricing"):
            orchestrator_factory().handle_turn(db, _request("Hi"))

        pricing_warnings = [r for r in caplog.records if r.name.startswith("chatguard.services.pricing")]
        assert pricing_warnings == []

    def test_result_metadata(self, db, orchestrator_factory):
        result = orchestrator_factory().handle_turn(db, _request("Hi"))
        assert result.response == "Hello from the model"
        assert result.metadata["model"] == "gpt-3.5-turbo"
        assert result.metadata["tokensUsed"] == 70
        assert result.metadata["processingTime"] >= 0


class TestRetrievalDegradation:
    def test_unconfigured_store(self, db, orchestrator_factory, unconfigured_retriever, fake_llm):
        result = orchestrator_factory(llm=fake_llm, retriever=unconfigured_retriever).handle_turn(
            db, _request("Hi"))

        assert result.response == "Hello from the model"
        assert result.context_matches == 0
        assert result.follow_up_tasks == []
        assert len(fake_llm.calls[0]["messages"]) == 2

    def test_unreachable_store(self, db, orchestrator_factory, fake_llm):
        retriever = ContextRetriever(FakeEmbeddingService(), VectorDB(FakeVectorBackend(fail_query=True)))
        result = orchestrator_factory(llm=fake_llm, retriever=retriever).handle_turn(
            db, _request("Hi"), dispatch=lambda fn: None)
        assert result.response == "Hello from the model"
        assert len(fake_llm.calls[0]["messages"]) == 2

    def test_query_embedding_failure(self, db, orchestrator_factory, fake_llm):
        embeddings = FakeEmbeddingService(error=UpstreamProviderError("embedding down"))
        retriever = ContextRetriever(embeddings, VectorDB(FakeVectorBackend([make_match("a", 0.99)])))
        result = orchestrator_factory(llm=fake_llm, retriever=retriever).handle_turn(
            db, _request("Hi"), dispatch=lambda fn: None)
        assert result.context_matches == 0

        step = orchestrator_factory(retriever=retriever).retrieve_context(db, "Hi", None, "conv")
        assert step.status == StepStatus.DEGRADED
        assert isinstance(step.exception, RetrievalDegraded)

    def test_retrieval_is_scoped_to_user(self, db, user, orchestrator_factory, retriever, fake_backend):
        orchestrator_factory(retriever=retriever).handle_turn(db, _request("Hi"), user_id=user.id,
                                                               dispatch=lambda fn: None)
        assert fake_backend.queries[0]["filter"] == {"userId": str(user.id)}


class TestFollowUpTasks:
    def test_dispatched_not_run(self, db, user, orchestrator_factory, retriever, fake_backend):
        dispatched = []

        result = orchestrator_factory(retriever=retriever).handle_turn(
            db, _request("Hi"), user_id=user.id, dispatch=dispatched.append)

        assert [task.name for task in result.follow_up_tasks] == ["store_turn_embeddings", "reconcile_quota"]
        assert len(dispatched) == 2
        assert fake_backend.upserts == []

    def test_storage_task_embeds_both_messages(self, db, user, orchestrator_factory, retriever, fake_backend,
                                               fake_embeddings):
        dispatched = []
        orchestrator_factory(retriever=retriever).handle_turn(
            db, _request("Question?", conversation_id="conv-1"), user_id=user.id, dispatch=dispatched.append)

        result = dispatched[0]()

        assert result.ok
        assert len(result.value) == 2
        assert [u["metadata"]["role"] for u in fake_backend.upserts] == ["user", "assistant"]
        assert [u["metadata"]["content"] for u in fake_backend.upserts] == ["Question?", "Hello from the model"]
        assert all(u["metadata"]["conversationId"] == "conv-1" for u in fake_backend.upserts)
        assert all(u["metadata"]["userId"] == str(user.id) for u in fake_backend.upserts)
        assert fake_embeddings.texts[-2:] == ["Question?", "Hello from the model"]

        db.expire_all()
        operations = [row.operation.value for row in db.query(UsageRecord).all()]
        assert operations.count("embedding") == 3
        assert operations.count("upsert") == 2

    def test_storage_failure_is_degraded(self, db, orchestrator_factory):
        retriever = ContextRetriever(FakeEmbeddingService(), VectorDB(FakeVectorBackend(fail_upsert=True)))
        dispatched = []
        result = orchestrator_factory(retriever=retriever).handle_turn(db, _request("Hi"),
                                                                        dispatch=dispatched.append)

        outcome = dispatched[0]()

        assert result.response == "Hello from the model"
        assert outcome.status == StepStatus.DEGRADED

    def test_storage_embedding_failure_is_degraded(self, db, orchestrator_factory):
        embeddings = FakeEmbeddingService()
        retriever = ContextRetriever(embeddings, VectorDB(FakeVectorBackend()))
        orchestrator = orchestrator_factory(retriever=retriever)

        outcome = orchestrator.store_turn_embeddings(None, "conv", "Hi", "Hello")
        assert outcome.ok

        embeddings.error = UpstreamProviderError("embedding down")
        outcome = orchestrator.store_turn_embeddings(None, "conv", "Hi", "Hello")
        assert outcome.status == StepStatus.DEGRADED

    def test_reconcile_task_refreshes_snapshot(self, db, user, orchestrator_factory):
        dispatched = []
        orchestrator_factory().handle_turn(db, _request("Hi"), user_id=user.id, dispatch=dispatched.append)

        outcome = dispatched[-1]()

        assert outcome.ok
        db.expire_all()
        quota = db.query(UserQuota).filter(UserQuota.user_id == user.id).one()
        assert quota.current_daily > 0

    def test_reconcile_failure_is_logged_only(self, db, user, orchestrator_factory):
        orchestrator = orchestrator_factory()
        with patch("chatguard.services.chat.orchestrator.reconcile_user_quota", return_value=False):
            outcome = orchestrator.reconcile_quota(user.id)
        assert outcome.status == StepStatus.DEGRADED
        assert isinstance(outcome.exception, PersistenceError)

    def test_task_exceptions_are_contained(self, db, user, orchestrator_factory):
        dispatched = []
        orchestrator = orchestrator_factory()
        orchestrator.handle_turn(db, _request("Hi"), user_id=user.id, dispatch=dispatched.append)

        with patch("chatguard.services.chat.orchestrator.reconcile_user_quota", side_effect=RuntimeError("boom")):
            outcome = dispatched[-1]()

        assert outcome.status == StepStatus.DEGRADED
        assert "boom" in outcome.error

    def test_inline_when_no_dispatcher(self, db, user, orchestrator_factory, retriever, fake_backend):
        orchestrator_factory(retriever=retriever).handle_turn(db, _request("Hi"), user_id=user.id)
        assert len(fake_backend.upserts) == 2


class TestVectorIds:
    def test_timestamp_and_random_suffix(self):
        first, second = generate_vector_id(), generate_vector_id()
        assert first != second
        timestamp, suffix = first.split("-")
        assert timestamp.isdigit()
        assert len(suffix) == 8
