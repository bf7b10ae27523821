"""
Chat turn orchestration.

One turn runs: validate -> estimate -> quota guard -> retrieve context ->
assemble prompt -> completion -> log actual cost. Embedding storage and
quota reconciliation are returned as follow-up tasks and dispatched off
the response path.

Hard failures (validation, unknown template, quota rejection, provider
failure) raise. Retrieval, storage and reconciliation degrade and are logged.
"""
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import logging
import secrets
import time
import uuid

from sqlalchemy.orm import Session

from chatguard.core.clock import utc_now
from chatguard.core.config import CHAT_TEMPERATURE, CHAT_MAX_TOKENS, DEFAULT_EMBEDDING_MODEL
from chatguard.core.database import SessionLocal
from chatguard.core.exceptions import (
    NotFoundError,
    PersistenceError,
    QuotaExceededError,
    RetrievalDegraded,
    UpstreamProviderError,
    ValidationError,
)
from chatguard.core.results import StepResult
from chatguard.services.chat.chat_models import ChatRequest, ChatResult, FollowUpTask
from chatguard.services.consumption import (
    log_chat_completion,
    log_embedding,
    log_vector_query,
    log_vector_upsert,
)
from chatguard.services.llm.client import LLMClient
from chatguard.services.pricing import estimate_chat_turn_cost
from chatguard.services.quota import check_user_limits, reconcile_user_quota
from chatguard.services.rag import ContextRetriever, RetrievedMatch
from chatguard.services.templates import get_template_by_id, merge_with_defaults, render

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."
ANONYMOUS_SCOPE = "anonymous"


def generate_vector_id(now: Optional[datetime] = None) -> str:
    """Timestamp plus random suffix; not an idempotency key."""
    now = now or utc_now()
    return f"{int(now.timestamp() * 1000)}-{secrets.token_hex(4)}"


def _user_scope(user_id: Optional[int]) -> str:
    return str(user_id) if user_id is not None else ANONYMOUS_SCOPE


class ChatOrchestrator:
    """Runs chat turns against the completion provider under quota control."""

    def __init__(
        self,
        llm_client: LLMClient,
        retriever: Optional[ContextRetriever] = None,
        session_factory: Callable[[], Session] = SessionLocal,
        chat_model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        default_system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ):
        self.llm_client = llm_client
        self.retriever = retriever
        self.session_factory = session_factory
        self.chat_model = chat_model or llm_client.default_model
        self.temperature = CHAT_TEMPERATURE if temperature is None else temperature
        self.max_tokens = max_tokens or CHAT_MAX_TOKENS
        self.default_system_prompt = default_system_prompt

    @property
    def embedding_model(self) -> Optional[str]:
        if self.retriever is None:
            return None
        return self.retriever.embedding_service.default_model

    @property
    def retrieval_enabled(self) -> bool:
        return self.retriever is not None and self.retriever.is_configured

    # -- prompt building ---------------------------------------------------

    def resolve_system_prompt(self, request: ChatRequest) -> str:
        """
        Render the requested template, or fall back to the default persona.

        Raises:
            NotFoundError: Unknown template id
            TemplateRenderError: Missing required variable or type mismatch
        """
        if not request.template_id:
            return self.default_system_prompt

        template = get_template_by_id(request.template_id)
        if template is None:
            raise NotFoundError(f"Template '{request.template_id}' not found")

        variables = merge_with_defaults(template, request.template_variables)
        return render(template, variables).content

    def build_messages(
        self,
        system_prompt: str,
        context_message: Optional[Dict[str, str]],
        history: List[Dict[str, str]],
        message: str,
    ) -> List[Dict[str, str]]:
        """System prompt, optional context, history in order, then the user message."""
        messages = [{"role": "system", "content": system_prompt}]
        if context_message:
            messages.append(context_message)
        messages.extend({"role": item["role"], "content": item["content"]} for item in history)
        messages.append({"role": "user", "content": message})
        return messages

    # -- steps -------------------------------------------------------------

    def retrieve_context(
        self,
        db: Session,
        message: str,
        user_id: Optional[int],
        conversation_id: str,
    ) -> StepResult[List[RetrievedMatch]]:
        """Embed the message and search prior turns. Never raises."""
        if not self.retrieval_enabled:
            reason = "vector store not configured"
            return StepResult.degraded(reason, value=[], exception=RetrievalDegraded(reason))

        try:
            embedding = self.retriever.embed(message)
        except Exception as e:
            logger.warning(
                f"Query embedding failed, continuing without context "
                f"(user_id={user_id}, conversation_id={conversation_id}): {e}"
            )
            return StepResult.degraded(f"query embedding failed: {e}", value=[], exception=RetrievalDegraded(str(e)))

        log_embedding(
            db, embedding.model, embedding.total_tokens,
            user_id=user_id, conversation_id=conversation_id,
            metadata={"purpose": "query"},
        )

        result = self.retriever.search(
            embedding.embedding,
            filter_metadata={"userId": _user_scope(user_id)},
        )
        if result.ok:
            log_vector_query(
                db, user_id=user_id, conversation_id=conversation_id,
                metadata={"matches": len(result.value or [])},
            )
        return result

    def store_turn_embeddings(
        self,
        user_id: Optional[int],
        conversation_id: str,
        user_message: str,
        reply: str,
    ) -> StepResult[List[str]]:
        """Embed and store both sides of the turn. Opens its own session."""
        if not self.retrieval_enabled:
            return StepResult.degraded("vector store not configured")

        db = self.session_factory()
        stored: List[str] = []
        try:
            for role, content in (("user", user_message), ("assistant", reply)):
                embedding = self.retriever.embed(content)
                log_embedding(
                    db, embedding.model, embedding.total_tokens,
                    user_id=user_id, conversation_id=conversation_id,
                    metadata={"purpose": "storage", "role": role},
                )

                vector_id = generate_vector_id()
                result = self.retriever.store(vector_id, embedding.embedding, {
                    "content": content,
                    "role": role,
                    "timestamp": utc_now().isoformat(),
                    "messageId": vector_id,
                    "conversationId": conversation_id,
                    "userId": _user_scope(user_id),
                })
                if not result.ok:
                    return StepResult.degraded(result.error, value=stored, exception=result.exception)

                log_vector_upsert(db, user_id=user_id, conversation_id=conversation_id)
                stored.append(vector_id)

            return StepResult.success(stored)
        except Exception as e:
            logger.warning(
                f"Failed to store turn embeddings (user_id={user_id}, conversation_id={conversation_id}): {e}"
            )
            return StepResult.degraded(str(e), value=stored, exception=PersistenceError(str(e)))
        finally:
            db.close()

    def reconcile_quota(self, user_id: int) -> StepResult[bool]:
        """Refresh the user's cached usage snapshot. Opens its own session."""
        db = self.session_factory()
        try:
            if reconcile_user_quota(db, user_id):
                return StepResult.success(True)
            reason = f"quota reconciliation failed for user {user_id}"
            return StepResult.degraded(reason, value=False, exception=PersistenceError(reason))
        finally:
            db.close()

    # -- turn --------------------------------------------------------------

    def handle_turn(
        self,
        db: Session,
        request: ChatRequest,
        user_id: Optional[int] = None,
        dispatch: Optional[Callable[[Callable[[], Any]], Any]] = None,
    ) -> ChatResult:
        """
        Run one chat turn.

        Args:
            db: Database session for the request
            request: Chat request
            user_id: Authenticated user, or None for anonymous turns (not quota-checked)
            dispatch: Receives each follow-up task's run callable
                (e.g. BackgroundTasks.add_task). If None, tasks run inline.

        Returns:
            ChatResult

        Raises:
            ValidationError: Missing message or template render failure
            NotFoundError: Unknown template id
            QuotaExceededError: Projected spend exceeds a limit
            UpstreamProviderError: Completion failed or returned no reply
        """
        started = time.perf_counter()

        message = (request.message or "").strip()
        if not message:
            raise ValidationError("No message provided")

        conversation_id = request.conversation_id or uuid.uuid4().hex
        history = request.conversation_history or []

        system_prompt = self.resolve_system_prompt(request)

        estimated_cost = estimate_chat_turn_cost(
            self.chat_model,
            self.embedding_model or DEFAULT_EMBEDDING_MODEL,
            message,
            history_text="\n".join(item.get("content", "") for item in history),
            system_prompt=system_prompt,
            max_output_tokens=self.max_tokens,
        )

        if user_id is not None:
            limit_check = check_user_limits(db, user_id, estimated_cost)
            if not limit_check.allowed:
                raise QuotaExceededError(limit_check.reason, limit_check=limit_check)

        retrieval = self.retrieve_context(db, message, user_id, conversation_id)
        matches = retrieval.value or []
        context_message = self.retriever.build_context_message(matches) if matches else None

        messages = self.build_messages(system_prompt, context_message, history, message)

        completion = self.llm_client.chat(
            messages,
            model=self.chat_model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        if not completion.content:
            logger.error(f"Empty reply from model {completion.model} (conversation_id={conversation_id})")
            raise UpstreamProviderError("No reply from model")

        log_chat_completion(
            db, self.chat_model, completion.input_tokens, completion.output_tokens,
            user_id=user_id, conversation_id=conversation_id,
            metadata={"templateId": request.template_id, "contextMatches": len(matches)},
        )

        tasks: List[FollowUpTask] = []
        if self.retrieval_enabled:
            tasks.append(FollowUpTask(
                name="store_turn_embeddings",
                func=self.store_turn_embeddings,
                args=(user_id, conversation_id, message, completion.content),
            ))
        if user_id is not None:
            tasks.append(FollowUpTask(
                name="reconcile_quota",
                func=self.reconcile_quota,
                args=(user_id,),
            ))

        for task in tasks:
            if dispatch is None:
                task.run()
            else:
                dispatch(task.run)

        return ChatResult(
            response=completion.content,
            model=completion.model,
            conversation_id=conversation_id,
            processing_time_ms=int((time.perf_counter() - started) * 1000),
            tokens_used=completion.total_tokens or None,
            template_id=request.template_id,
            context_matches=len(matches),
            follow_up_tasks=tasks,
        )
