"""
Quota model classes.
"""
from dataclasses import dataclass
from decimal import Decimal
from datetime import datetime
from typing import Optional


@dataclass
class QuotaSnapshot:
    """User quota row as read from the database."""
    id: int
    user_id: int
    daily_limit: Decimal
    monthly_limit: Decimal
    current_daily: Decimal
    current_monthly: Decimal
    last_reset_daily: datetime
    last_reset_monthly: datetime

    @classmethod
    def from_db_row(cls, row) -> "QuotaSnapshot":
        """Create QuotaSnapshot from a UserQuota row."""
        from chatguard.core.clock import as_utc
        return cls(
            id=row.id,
            user_id=row.user_id,
            daily_limit=Decimal(str(row.daily_limit)),
            monthly_limit=Decimal(str(row.monthly_limit)),
            current_daily=Decimal(str(row.current_daily or 0)),
            current_monthly=Decimal(str(row.current_monthly or 0)),
            last_reset_daily=as_utc(row.last_reset_daily),
            last_reset_monthly=as_utc(row.last_reset_monthly),
        )


@dataclass
class LimitCheckResult:
    """Result of a limit check."""
    allowed: bool
    reason: Optional[str] = None
    daily_usage: Optional[Decimal] = None
    daily_limit: Optional[Decimal] = None
    monthly_usage: Optional[Decimal] = None
    monthly_limit: Optional[Decimal] = None

    def usage_snapshot(self) -> dict:
        """JSON-friendly usage figures for error responses."""
        return {
            "dailyUsage": float(self.daily_usage) if self.daily_usage is not None else None,
            "dailyLimit": float(self.daily_limit) if self.daily_limit is not None else None,
            "monthlyUsage": float(self.monthly_usage) if self.monthly_usage is not None else None,
            "monthlyLimit": float(self.monthly_limit) if self.monthly_limit is not None else None,
        }


@dataclass
class WindowStatus:
    """Spend against one limit window."""
    spent: Decimal
    limit: Decimal
    remaining: Decimal
    percentage: Decimal


@dataclass
class LimitStatus:
    """Current limit status for a user, recomputed from the ledger."""
    daily: WindowStatus
    monthly: WindowStatus
