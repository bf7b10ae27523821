"""
Per-user spend limits with cached usage snapshots.
"""
from sqlalchemy import Column, Integer, DateTime, ForeignKey, Numeric
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from chatguard.core.clock import utc_now
from chatguard.core.database import Base


class UserQuota(Base):
    """
    Daily and monthly USD ceilings for one user.

    current_daily / current_monthly are display snapshots only; limit decisions
    always re-sum the usage ledger.
    """
    __tablename__ = "user_cost_limits"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True)
    daily_limit = Column(Numeric(precision=14, scale=8), nullable=False)
    monthly_limit = Column(Numeric(precision=14, scale=8), nullable=False)
    current_daily = Column(Numeric(precision=14, scale=8), nullable=False, default=0)
    current_monthly = Column(Numeric(precision=14, scale=8), nullable=False, default=0)
    last_reset_daily = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    last_reset_monthly = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="quota")
