"""
Usage ledger model: one row per priced provider operation.
"""
import enum
import uuid
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, JSON, Enum as SQLEnum
from chatguard.core.clock import utc_now
from chatguard.core.database import Base


class ApiService(str, enum.Enum):
    OPENAI = "openai"
    VECTOR_STORE = "vector_store"


class ApiOperation(str, enum.Enum):
    CHAT_COMPLETION = "chat_completion"
    EMBEDDING = "embedding"
    QUERY = "query"
    UPSERT = "upsert"


class UsageRecord(Base):
    """Append-only: rows are inserted, never updated or deleted."""
    __tablename__ = "api_usage"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)  # NULL = anonymous, not charged to a quota
    conversation_id = Column(String(64), nullable=True, index=True)
    service = Column(SQLEnum(ApiService, values_callable=lambda x: [e.value for e in x]), nullable=False, index=True)
    operation = Column(SQLEnum(ApiOperation, values_callable=lambda x: [e.value for e in x]), nullable=False)
    model = Column(String(100), nullable=True)
    input_tokens = Column(Integer, nullable=True)
    output_tokens = Column(Integer, nullable=True)
    total_tokens = Column(Integer, nullable=True)
    estimated_cost = Column(Numeric(precision=14, scale=8), nullable=False)  # USD, never negative
    extra_metadata = Column("metadata", JSON, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
