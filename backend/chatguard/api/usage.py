"""
Usage and limit status endpoints.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
import logging
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Dict, List, Optional
from datetime import datetime
from chatguard.core.config import EXPOSE_ERROR_DETAILS
from chatguard.core.database import get_db
from chatguard.core.auth import get_current_user_dependency
from chatguard.models.user import User
from chatguard.services.consumption import get_user_cost_stats, get_usage_history
from chatguard.services.quota import get_user_limit_status

logger = logging.getLogger(__name__)

router = APIRouter()


class WindowStatusResponse(BaseModel):
    spent: float
    limit: float
    remaining: float
    percentage: float


class UsageStatusResponse(BaseModel):
    daily: WindowStatusResponse
    monthly: WindowStatusResponse


class UsageStatsResponse(BaseModel):
    daily: float
    monthly: float
    total: float
    byService: Dict[str, float]
    byOperation: Dict[str, float]


class UsageHistoryItemResponse(BaseModel):
    id: str
    timestamp: datetime
    service: str
    operation: str
    model: Optional[str] = None
    inputTokens: Optional[int] = None
    outputTokens: Optional[int] = None
    totalTokens: Optional[int] = None
    estimatedCost: float
    conversationId: Optional[str] = None


class UsageHistoryResponse(BaseModel):
    items: List[UsageHistoryItemResponse]
    limit: int
    offset: int


def _window(window) -> WindowStatusResponse:
    return WindowStatusResponse(
        spent=float(window.spent),
        limit=float(window.limit),
        remaining=float(window.remaining),
        percentage=float(window.percentage),
    )


def _internal_error(message: str, error: Exception) -> HTTPException:
    detail = {"error": message}
    if EXPOSE_ERROR_DETAILS:
        detail["details"] = str(error)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


@router.get("", response_model=UsageStatusResponse)
def get_usage(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_dependency),
):
    """Spent, limit, remaining and percentage for the current day and month."""
    try:
        limit_status = get_user_limit_status(db, current_user.id)
    except Exception as e:
        logger.error(f"Failed to load usage status for user {current_user.id}: {e}")
        raise _internal_error("Failed to fetch usage data", e)

    return UsageStatusResponse(daily=_window(limit_status.daily), monthly=_window(limit_status.monthly))


@router.get("/stats", response_model=UsageStatsResponse)
def get_usage_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_dependency),
):
    """Ledger totals with breakdowns by service and operation."""
    try:
        stats = get_user_cost_stats(db, current_user.id)
    except Exception as e:
        logger.error(f"Failed to load usage stats for user {current_user.id}: {e}")
        raise _internal_error("Failed to fetch usage stats", e)

    return UsageStatsResponse(
        daily=float(stats.daily),
        monthly=float(stats.monthly),
        total=float(stats.total),
        byService={key: float(value) for key, value in stats.by_service.items()},
        byOperation={key: float(value) for key, value in stats.by_operation.items()},
    )


@router.get("/history", response_model=UsageHistoryResponse)
def get_history(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_dependency),
):
    """Ledger rows for the current user, newest first."""
    try:
        items = get_usage_history(db, current_user.id, limit=limit, offset=offset)
    except Exception as e:
        logger.error(f"Failed to load usage history for user {current_user.id}: {e}")
        raise _internal_error("Failed to fetch usage history", e)

    return UsageHistoryResponse(
        items=[
            UsageHistoryItemResponse(
                id=item.id,
                timestamp=item.timestamp,
                service=item.service,
                operation=item.operation,
                model=item.model,
                inputTokens=item.input_tokens,
                outputTokens=item.output_tokens,
                totalTokens=item.total_tokens,
                estimatedCost=float(item.estimated_cost),
                conversationId=item.conversation_id,
            )
            for item in items
        ],
        limit=limit,
        offset=offset,
    )
