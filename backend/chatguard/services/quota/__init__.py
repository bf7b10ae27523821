"""
Quota service for per-user spend limits.
"""
from chatguard.services.quota.quota_service import (
    get_or_create_user_quota,
    reset_daily_if_needed,
    reset_monthly_if_needed,
    check_user_limits,
    reconcile_user_quota,
    set_user_limits,
    get_user_limit_status,
)
from chatguard.services.quota.quota_models import (
    QuotaSnapshot,
    LimitCheckResult,
    LimitStatus,
    WindowStatus,
)

__all__ = [
    "get_or_create_user_quota",
    "reset_daily_if_needed",
    "reset_monthly_if_needed",
    "check_user_limits",
    "reconcile_user_quota",
    "set_user_limits",
    "get_user_limit_status",
    "QuotaSnapshot",
    "LimitCheckResult",
    "LimitStatus",
    "WindowStatus",
]
