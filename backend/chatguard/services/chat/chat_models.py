"""
Chat turn model classes.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
import logging

from chatguard.core.results import StepResult

logger = logging.getLogger(__name__)


@dataclass
class ChatRequest:
    """One chat turn as received from the caller."""
    message: Optional[str]
    template_id: Optional[str] = None
    template_variables: Optional[Dict[str, Any]] = None
    conversation_history: List[Dict[str, str]] = field(default_factory=list)  # [{"role", "content"}]
    conversation_id: Optional[str] = None


@dataclass
class FollowUpTask:
    """Work dispatched after the reply is determined (runs off the response path)."""
    name: str
    func: Callable[..., StepResult]
    args: tuple = ()

    def run(self) -> StepResult:
        try:
            result = self.func(*self.args)
        except Exception as e:
            logger.error(f"follow_up_failed: task={self.name}, error={e}")
            return StepResult.degraded(str(e))

        if result.ok:
            logger.info(f"follow_up_completed: task={self.name}")
        else:
            logger.warning(f"follow_up_degraded: task={self.name}, reason={result.error}")
        return result


@dataclass
class ChatResult:
    """Reply plus turn metadata."""
    response: str
    model: str
    conversation_id: str
    processing_time_ms: int
    tokens_used: Optional[int] = None
    template_id: Optional[str] = None
    context_matches: int = 0
    follow_up_tasks: List[FollowUpTask] = field(default_factory=list)

    @property
    def metadata(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "tokensUsed": self.tokens_used,
            "processingTime": self.processing_time_ms,
        }
