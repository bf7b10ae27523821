"""
Per-step results for soft-failing pipeline steps.

Steps that may degrade (retrieval, embedding storage, quota reconciliation)
return a StepResult. Steps whose failure aborts the request raise instead.
A degraded result may carry the PersistenceError or RetrievalDegraded that
describes the failure; it is logged, never raised.
"""
import enum
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class StepStatus(str, enum.Enum):
    OK = "ok"
    DEGRADED = "degraded"  # soft failure: continue without this step's output


@dataclass
class StepResult(Generic[T]):
    status: StepStatus
    value: Optional[T] = None
    error: Optional[str] = None
    exception: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.status == StepStatus.OK

    @classmethod
    def success(cls, value: Any = None) -> "StepResult":
        return cls(status=StepStatus.OK, value=value)

    @classmethod
    def degraded(cls, error: str, value: Any = None, exception: Optional[Exception] = None) -> "StepResult":
        return cls(status=StepStatus.DEGRADED, value=value, error=error, exception=exception)
