"""
Chat turn orchestration.
"""
from chatguard.services.chat.chat_models import ChatRequest, ChatResult, FollowUpTask
from chatguard.services.chat.orchestrator import ChatOrchestrator, DEFAULT_SYSTEM_PROMPT, generate_vector_id

__all__ = [
    "ChatRequest",
    "ChatResult",
    "FollowUpTask",
    "ChatOrchestrator",
    "DEFAULT_SYSTEM_PROMPT",
    "generate_vector_id",
]
