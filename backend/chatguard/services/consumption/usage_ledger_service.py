"""
Usage ledger service: append-only log of priced operations plus aggregate queries.

The aggregates here are the only source of spend figures in the system; quota
checks and usage reports must go through them.

Writes never raise: a billing outage must not break the chat flow. Reads raise
on storage failure and leave the decision to the caller.
"""
from decimal import Decimal
from datetime import datetime
from typing import Optional, List, Dict, Any
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from chatguard.core.clock import as_utc, day_window, month_window, utc_now
from chatguard.core.logging_config import log_api_usage
from chatguard.models.usage_record import UsageRecord, ApiService, ApiOperation
from chatguard.services.consumption.consumption_models import (
    UsageEntry,
    UsageCostStats,
    UsageHistoryItem,
)
from chatguard.services.pricing import (
    calculate_chat_cost,
    calculate_embedding_cost,
    calculate_vector_store_cost,
)

logger = logging.getLogger(__name__)

GROUPABLE_FIELDS = {
    "service": UsageRecord.service,
    "operation": UsageRecord.operation,
    "model": UsageRecord.model,
}


def _to_decimal(value) -> Decimal:
    return Decimal(str(value or 0))


def _key(value) -> str:
    if value is None:
        return "unknown"
    return value.value if hasattr(value, "value") else str(value)


def record_usage(db: Session, entry: UsageEntry) -> Optional[str]:
    """
    Append one usage record.

    Args:
        db: Database session
        entry: Priced operation to record

    Returns:
        Record ID, or None if the write failed (failure is logged, not raised)
    """
    try:
        cost = _to_decimal(entry.estimated_cost)
        if cost < 0:
            raise ValueError(f"estimated_cost must be non-negative, got {cost}")

        record = UsageRecord(
            service=entry.service,
            operation=entry.operation,
            model=entry.model,
            input_tokens=entry.input_tokens,
            output_tokens=entry.output_tokens,
            total_tokens=entry.total_tokens,
            estimated_cost=cost,
            user_id=entry.user_id,
            conversation_id=entry.conversation_id,
            extra_metadata=entry.metadata,
            timestamp=entry.timestamp or utc_now(),
        )
        db.add(record)
        db.commit()

        log_api_usage(
            _key(entry.service),
            _key(entry.operation),
            cost,
            user_id=entry.user_id,
            conversation_id=entry.conversation_id,
            model=entry.model,
        )
        return record.id
    except Exception as e:
        logger.error(
            f"Failed to record {_key(entry.operation)} usage "
            f"(user_id={entry.user_id}, conversation_id={entry.conversation_id}): {e}"
        )
        try:
            db.rollback()
        except Exception as rollback_error:
            logger.warning(f"Rollback after failed usage write also failed: {rollback_error}")
        return None


def log_chat_completion(
    db: Session,
    model: str,
    input_tokens: int,
    output_tokens: int,
    user_id: Optional[int] = None,
    conversation_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    """Price and record a chat completion."""
    calc = calculate_chat_cost(model, input_tokens, output_tokens)
    return record_usage(db, UsageEntry(
        service=ApiService.OPENAI,
        operation=ApiOperation.CHAT_COMPLETION,
        model=model,
        input_tokens=calc.input_tokens,
        output_tokens=calc.output_tokens,
        total_tokens=calc.total_tokens,
        estimated_cost=calc.total_cost_usd,
        user_id=user_id,
        conversation_id=conversation_id,
        metadata=metadata,
    ))


def log_embedding(
    db: Session,
    model: str,
    tokens: int,
    user_id: Optional[int] = None,
    conversation_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    """Price and record an embedding call (input tokens only)."""
    calc = calculate_embedding_cost(model, tokens)
    return record_usage(db, UsageEntry(
        service=ApiService.OPENAI,
        operation=ApiOperation.EMBEDDING,
        model=model,
        input_tokens=calc.input_tokens,
        total_tokens=calc.total_tokens,
        estimated_cost=calc.total_cost_usd,
        user_id=user_id,
        conversation_id=conversation_id,
        metadata=metadata,
    ))


def log_vector_query(
    db: Session,
    user_id: Optional[int] = None,
    conversation_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    return record_usage(db, UsageEntry(
        service=ApiService.VECTOR_STORE,
        operation=ApiOperation.QUERY,
        estimated_cost=calculate_vector_store_cost("query"),
        user_id=user_id,
        conversation_id=conversation_id,
        metadata=metadata,
    ))


def log_vector_upsert(
    db: Session,
    user_id: Optional[int] = None,
    conversation_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    return record_usage(db, UsageEntry(
        service=ApiService.VECTOR_STORE,
        operation=ApiOperation.UPSERT,
        estimated_cost=calculate_vector_store_cost("upsert"),
        user_id=user_id,
        conversation_id=conversation_id,
        metadata=metadata,
    ))


def get_user_cost(
    db: Session,
    user_id: int,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None
) -> Decimal:
    """
    Sum of estimated cost for a user, optionally within [start_date, end_date].

    Args:
        db: Database session
        user_id: User ID
        start_date: Optional inclusive lower bound
        end_date: Optional inclusive upper bound

    Returns:
        Total cost in USD
    """
    query = db.query(func.sum(UsageRecord.estimated_cost)).filter(UsageRecord.user_id == user_id)

    if start_date:
        query = query.filter(UsageRecord.timestamp >= as_utc(start_date))

    if end_date:
        query = query.filter(UsageRecord.timestamp <= as_utc(end_date))

    return _to_decimal(query.scalar())


def get_user_daily_cost(db: Session, user_id: int, now: Optional[datetime] = None) -> Decimal:
    """Spend in the current UTC calendar day."""
    start, end = day_window(now)
    return get_user_cost(db, user_id, start, end)


def get_user_monthly_cost(db: Session, user_id: int, now: Optional[datetime] = None) -> Decimal:
    """Spend in the current UTC calendar month."""
    start, end = month_window(now)
    return get_user_cost(db, user_id, start, end)


def get_grouped_cost(
    db: Session,
    user_id: int,
    group_by: str,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None
) -> Dict[str, Decimal]:
    """
    Sum of estimated cost per value of `group_by` ("service", "operation" or "model").
    """
    column = GROUPABLE_FIELDS.get(group_by)
    if column is None:
        raise ValueError(f"Unsupported group_by field: {group_by}. Supported: {list(GROUPABLE_FIELDS.keys())}")

    query = db.query(column, func.sum(UsageRecord.estimated_cost)).filter(UsageRecord.user_id == user_id)
    if start_date:
        query = query.filter(UsageRecord.timestamp >= as_utc(start_date))
    if end_date:
        query = query.filter(UsageRecord.timestamp <= as_utc(end_date))

    grouped = {}
    for value, total in query.group_by(column).all():
        grouped[_key(value)] = _to_decimal(total)
    return grouped


def get_user_cost_stats(db: Session, user_id: int, now: Optional[datetime] = None) -> UsageCostStats:
    """Daily, monthly and all-time spend with breakdowns by service and operation."""
    return UsageCostStats(
        daily=get_user_daily_cost(db, user_id, now),
        monthly=get_user_monthly_cost(db, user_id, now),
        total=get_user_cost(db, user_id),
        by_service=get_grouped_cost(db, user_id, "service"),
        by_operation=get_grouped_cost(db, user_id, "operation"),
    )


def get_usage_history(
    db: Session,
    user_id: int,
    limit: int = 100,
    offset: int = 0
) -> List[UsageHistoryItem]:
    """Ledger rows for a user, newest first."""
    rows = (
        db.query(UsageRecord)
        .filter(UsageRecord.user_id == user_id)
        .order_by(UsageRecord.timestamp.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )

    history = []
    for row in rows:
        history.append(UsageHistoryItem(
            id=row.id,
            timestamp=as_utc(row.timestamp),
            service=_key(row.service),
            operation=_key(row.operation),
            model=row.model,
            input_tokens=row.input_tokens,
            output_tokens=row.output_tokens,
            total_tokens=row.total_tokens,
            estimated_cost=_to_decimal(row.estimated_cost),
            conversation_id=row.conversation_id,
        ))
    return history
