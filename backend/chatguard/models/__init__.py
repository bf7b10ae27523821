"""
Database models.
"""
from chatguard.models.user import User
from chatguard.models.usage_record import UsageRecord, ApiService, ApiOperation
from chatguard.models.user_quota import UserQuota

__all__ = [
    "User",
    "UsageRecord",
    "ApiService",
    "ApiOperation",
    "UserQuota",
]
