"""
Usage ledger service for recording and aggregating priced operations.
"""
from chatguard.services.consumption.usage_ledger_service import (
    record_usage,
    log_chat_completion,
    log_embedding,
    log_vector_query,
    log_vector_upsert,
    get_user_cost,
    get_user_daily_cost,
    get_user_monthly_cost,
    get_grouped_cost,
    get_user_cost_stats,
    get_usage_history,
)
from chatguard.services.consumption.consumption_models import (
    UsageEntry,
    UsageCostStats,
    UsageHistoryItem,
)

__all__ = [
    "record_usage",
    "log_chat_completion",
    "log_embedding",
    "log_vector_query",
    "log_vector_upsert",
    "get_user_cost",
    "get_user_daily_cost",
    "get_user_monthly_cost",
    "get_grouped_cost",
    "get_user_cost_stats",
    "get_usage_history",
    "UsageEntry",
    "UsageCostStats",
    "UsageHistoryItem",
]
