"""
Consumption model classes for the usage ledger.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from datetime import datetime
from typing import Optional, Any

from chatguard.models.usage_record import ApiService, ApiOperation


@dataclass
class UsageEntry:
    """One priced operation to append to the ledger."""
    service: ApiService
    operation: ApiOperation
    estimated_cost: Decimal
    model: Optional[str] = None
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    user_id: Optional[int] = None
    conversation_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    timestamp: Optional[datetime] = None


@dataclass
class UsageCostStats:
    """Spend summary for a user."""
    daily: Decimal
    monthly: Decimal
    total: Decimal

    # Breakdown by service and by operation (all time)
    by_service: dict[str, Decimal] = field(default_factory=dict)
    by_operation: dict[str, Decimal] = field(default_factory=dict)


@dataclass
class UsageHistoryItem:
    """Single ledger row for history listing."""
    id: str
    timestamp: datetime
    service: str
    operation: str
    model: Optional[str]
    input_tokens: Optional[int]
    output_tokens: Optional[int]
    total_tokens: Optional[int]
    estimated_cost: Decimal
    conversation_id: Optional[str] = None
