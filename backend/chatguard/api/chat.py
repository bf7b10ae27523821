"""
Chat endpoint.
"""
from fastapi import APIRouter, Depends, HTTPException, BackgroundTasks, status
import logging
from sqlalchemy.orm import Session
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Literal, Optional
from chatguard.core.config import EXPOSE_ERROR_DETAILS
from chatguard.core.database import get_db
from chatguard.core.auth import get_current_user_optional
from chatguard.core.exceptions import (
    ChatGuardError,
    NotFoundError,
    QuotaExceededError,
    UpstreamProviderError,
    ValidationError,
)
from chatguard.api.deps import get_chat_orchestrator
from chatguard.models.user import User
from chatguard.services.chat import ChatOrchestrator, ChatRequest

logger = logging.getLogger(__name__)

router = APIRouter()


class HistoryMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequestBody(BaseModel):
    """Request model for a chat turn (camelCase accepted)."""
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    template_id: Optional[str] = Field(None, alias="templateId")
    template_variables: Optional[Dict[str, Any]] = Field(None, alias="templateVariables")
    conversation_history: List[HistoryMessage] = Field(default_factory=list, alias="conversationHistory")
    conversation_id: Optional[str] = Field(None, alias="conversationId", max_length=64)


class ChatMetadata(BaseModel):
    model: str
    tokensUsed: Optional[int] = None
    processingTime: int


class ChatResponse(BaseModel):
    response: str
    templateId: Optional[str] = None
    conversationId: str
    metadata: ChatMetadata


def _internal_error(message: str, error: Exception) -> HTTPException:
    detail = {"error": message}
    if EXPOSE_ERROR_DETAILS:
        detail["details"] = str(error)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


@router.post("", response_model=ChatResponse)
def chat(
    body: ChatRequestBody,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_current_user_optional),
    orchestrator: ChatOrchestrator = Depends(get_chat_orchestrator),
):
    """Run one chat turn.

    Authenticated callers are checked against their spend limits before any
    paid call. Embedding storage and quota reconciliation run after the
    response is sent.
    """
    user_id = current_user.id if current_user else None
    request = ChatRequest(
        message=body.message,
        template_id=body.template_id,
        template_variables=body.template_variables,
        conversation_history=[item.model_dump() for item in body.conversation_history],
        conversation_id=body.conversation_id,
    )

    try:
        result = orchestrator.handle_turn(db, request, user_id=user_id, dispatch=background_tasks.add_task)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"error": e.message})
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail={"error": e.message})
    except QuotaExceededError as e:
        detail = {"error": "Usage limit exceeded", "reason": e.message}
        if e.limit_check is not None:
            detail["usage"] = e.limit_check.usage_snapshot()
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=detail)
    except UpstreamProviderError as e:
        logger.error(f"Chat completion failed for user {user_id}: {e.message}")
        raise _internal_error("Error communicating with the chat provider.", e)
    except ChatGuardError as e:
        logger.error(f"Chat turn failed for user {user_id}: {e.message}")
        raise _internal_error("Internal server error", e)
    except Exception as e:
        logger.exception(f"Unexpected error in chat turn for user {user_id}: {e}")
        raise _internal_error("Internal server error", e)

    return ChatResponse(
        response=result.response,
        templateId=result.template_id,
        conversationId=result.conversation_id,
        metadata=ChatMetadata(**result.metadata),
    )
