"""
Quota service: per-user daily and monthly spend limits.

Usage figures for every decision are recomputed from the usage ledger.
The current_daily / current_monthly columns on the quota row are a cached
snapshot for display and are refreshed on calendar transitions and after
each chat turn.

Calendar windows are UTC days and months. Resets compare date components,
never elapsed time.
"""
from decimal import Decimal
from datetime import datetime
from typing import Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from chatguard.core.clock import utc_now, is_new_day, is_new_month
from chatguard.core.config import DEFAULT_DAILY_LIMIT_USD, DEFAULT_MONTHLY_LIMIT_USD
from chatguard.core.logging_config import log_limit_check
from chatguard.models.user_quota import UserQuota
from chatguard.services.consumption import get_user_daily_cost, get_user_monthly_cost
from chatguard.services.quota.quota_models import (
    QuotaSnapshot,
    LimitCheckResult,
    LimitStatus,
    WindowStatus,
)

logger = logging.getLogger(__name__)


def default_daily_limit() -> Decimal:
    return Decimal(str(DEFAULT_DAILY_LIMIT_USD))


def default_monthly_limit() -> Decimal:
    return Decimal(str(DEFAULT_MONTHLY_LIMIT_USD))


def _format_usd(amount: Decimal) -> str:
    return f"${amount:.4f}"


def get_or_create_user_quota(db: Session, user_id: int) -> UserQuota:
    """
    Get quota row for a user.

    Creates the row with default limits if it doesn't exist.

    Args:
        db: Database session
        user_id: User ID

    Returns:
        UserQuota row
    """
    quota = db.query(UserQuota).filter(UserQuota.user_id == user_id).first()
    if quota:
        return quota

    now = utc_now()
    quota = UserQuota(
        user_id=user_id,
        daily_limit=default_daily_limit(),
        monthly_limit=default_monthly_limit(),
        current_daily=Decimal(0),
        current_monthly=Decimal(0),
        last_reset_daily=now,
        last_reset_monthly=now,
    )
    db.add(quota)
    try:
        db.commit()
    except IntegrityError:
        # Created concurrently by another request
        db.rollback()
        quota = db.query(UserQuota).filter(UserQuota.user_id == user_id).first()
        if not quota:
            raise
        return quota

    db.refresh(quota)
    logger.info(f"Created default quota for user {user_id}")
    return quota


def reset_daily_if_needed(db: Session, quota: UserQuota, now: Optional[datetime] = None) -> bool:
    """
    Refresh the daily snapshot from the ledger if a new calendar day has started.

    Returns:
        True if a transition was applied. Failures are logged and return False.
    """
    now = now or utc_now()
    if not is_new_day(quota.last_reset_daily, now):
        return False

    try:
        quota.current_daily = get_user_daily_cost(db, quota.user_id, now)
        quota.last_reset_daily = now
        db.commit()
        logger.info(f"Daily quota reset for user {quota.user_id}: current_daily={quota.current_daily}")
        return True
    except Exception as e:
        logger.error(f"Failed to reset daily counter for user {quota.user_id}: {e}")
        db.rollback()
        return False


def reset_monthly_if_needed(db: Session, quota: UserQuota, now: Optional[datetime] = None) -> bool:
    """Refresh the monthly snapshot from the ledger if a new calendar month has started."""
    now = now or utc_now()
    if not is_new_month(quota.last_reset_monthly, now):
        return False

    try:
        quota.current_monthly = get_user_monthly_cost(db, quota.user_id, now)
        quota.last_reset_monthly = now
        db.commit()
        logger.info(f"Monthly quota reset for user {quota.user_id}: current_monthly={quota.current_monthly}")
        return True
    except Exception as e:
        logger.error(f"Failed to reset monthly counter for user {quota.user_id}: {e}")
        db.rollback()
        return False


def check_user_limits(
    db: Session,
    user_id: int,
    estimated_cost: Optional[Decimal] = None,
    now: Optional[datetime] = None
) -> LimitCheckResult:
    """
    Check if a user can make a request that is expected to cost `estimated_cost`.

    Rejects when ledger usage plus the estimate strictly exceeds a limit
    (daily checked first, then monthly). Never writes to the ledger.
    On infrastructure errors the check fails open.

    Args:
        db: Database session
        user_id: User ID
        estimated_cost: Optional projected cost of the pending request
        now: Clock override

    Returns:
        LimitCheckResult object
    """
    now = now or utc_now()
    try:
        quota = get_or_create_user_quota(db, user_id)

        reset_daily_if_needed(db, quota, now)
        reset_monthly_if_needed(db, quota, now)

        snapshot = QuotaSnapshot.from_db_row(quota)

        actual_daily = get_user_daily_cost(db, user_id, now)
        actual_monthly = get_user_monthly_cost(db, user_id, now)

        estimate = Decimal(str(estimated_cost)) if estimated_cost else Decimal(0)
        projected_daily = actual_daily + estimate
        projected_monthly = actual_monthly + estimate

        result = LimitCheckResult(
            allowed=True,
            daily_usage=actual_daily,
            daily_limit=snapshot.daily_limit,
            monthly_usage=actual_monthly,
            monthly_limit=snapshot.monthly_limit,
        )

        if projected_daily > snapshot.daily_limit:
            result.allowed = False
            result.reason = (
                f"Daily limit exceeded. Current: {_format_usd(actual_daily)}, "
                f"Limit: {_format_usd(snapshot.daily_limit)}"
            )
        elif projected_monthly > snapshot.monthly_limit:
            result.allowed = False
            result.reason = (
                f"Monthly limit exceeded. Current: {_format_usd(actual_monthly)}, "
                f"Limit: {_format_usd(snapshot.monthly_limit)}"
            )

        log_limit_check(user_id, result.allowed, actual_daily, snapshot.daily_limit)
        return result

    except Exception as e:
        logger.error(f"Failed to check limits for user {user_id}, allowing request: {e}")
        try:
            db.rollback()
        except Exception as rollback_error:
            logger.warning(f"Rollback after failed limit check also failed: {rollback_error}")
        return LimitCheckResult(
            allowed=True,
            reason="Error checking limits, request allowed",
        )


def reconcile_user_quota(db: Session, user_id: int, now: Optional[datetime] = None) -> bool:
    """
    Recompute the cached usage snapshot from the ledger.

    Called after a chat turn has been logged. Errors are logged, not raised.

    Returns:
        True if the snapshot was written
    """
    now = now or utc_now()
    try:
        quota = get_or_create_user_quota(db, user_id)

        reset_daily_if_needed(db, quota, now)
        reset_monthly_if_needed(db, quota, now)

        quota.current_daily = get_user_daily_cost(db, user_id, now)
        quota.current_monthly = get_user_monthly_cost(db, user_id, now)
        db.commit()
        return True
    except Exception as e:
        logger.error(f"Failed to reconcile quota for user {user_id}: {e}")
        try:
            db.rollback()
        except Exception as rollback_error:
            logger.warning(f"Rollback after failed reconciliation also failed: {rollback_error}")
        return False


def set_user_limits(
    db: Session,
    user_id: int,
    daily_limit: Optional[Decimal] = None,
    monthly_limit: Optional[Decimal] = None
) -> UserQuota:
    """
    Set custom limits for a user (admin operation).

    Raises:
        ValueError: If a limit is negative
    """
    if daily_limit is not None and Decimal(str(daily_limit)) < 0:
        raise ValueError("Daily limit must be non-negative")
    if monthly_limit is not None and Decimal(str(monthly_limit)) < 0:
        raise ValueError("Monthly limit must be non-negative")

    quota = get_or_create_user_quota(db, user_id)

    if daily_limit is not None:
        quota.daily_limit = Decimal(str(daily_limit))
    if monthly_limit is not None:
        quota.monthly_limit = Decimal(str(monthly_limit))

    db.commit()
    db.refresh(quota)
    logger.info(f"Updated limits for user {user_id}: daily={quota.daily_limit}, monthly={quota.monthly_limit}")
    return quota


def _window_status(spent: Decimal, limit: Decimal, fallback_limit: Decimal) -> WindowStatus:
    # Zero limits fall back to the defaults so percentages stay defined
    limit = limit or fallback_limit
    remaining = max(Decimal(0), limit - spent)
    percentage = (spent / limit) * Decimal(100) if limit > 0 else Decimal(0)
    return WindowStatus(spent=spent, limit=limit, remaining=remaining, percentage=percentage)


def get_user_limit_status(db: Session, user_id: int, now: Optional[datetime] = None) -> LimitStatus:
    """
    Get current limit status for a user.

    Spend is recomputed from the ledger; storage errors propagate.
    """
    now = now or utc_now()
    quota = get_or_create_user_quota(db, user_id)

    reset_daily_if_needed(db, quota, now)
    reset_monthly_if_needed(db, quota, now)

    snapshot = QuotaSnapshot.from_db_row(quota)
    actual_daily = get_user_daily_cost(db, user_id, now)
    actual_monthly = get_user_monthly_cost(db, user_id, now)

    return LimitStatus(
        daily=_window_status(actual_daily, snapshot.daily_limit, default_daily_limit()),
        monthly=_window_status(actual_monthly, snapshot.monthly_limit, default_monthly_limit()),
    )
