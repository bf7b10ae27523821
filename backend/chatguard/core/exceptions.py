"""
Error taxonomy for the chat pipeline.

Only validation, lookup and quota errors map to distinct client statuses.
Persistence and retrieval problems never reach the caller: they are carried on a
degraded StepResult (see chatguard.core.results) and logged where they happen.
"""
from typing import Optional


class ChatGuardError(Exception):
    """Base class for pipeline errors."""
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ChatGuardError):
    """Missing or malformed input (including template render failures)."""
    status_code = 400


class NotFoundError(ChatGuardError):
    """Unknown template id."""
    status_code = 404


class QuotaExceededError(ChatGuardError):
    """Projected spend exceeds the daily or monthly limit."""
    status_code = 429

    def __init__(self, message: str, limit_check=None):
        super().__init__(message)
        self.limit_check = limit_check


class UpstreamProviderError(ChatGuardError):
    """Completion call failed or returned an empty reply."""
    status_code = 502

    def __init__(self, message: str, provider_error: Optional[Exception] = None):
        super().__init__(message)
        self.provider_error = provider_error


class PersistenceError(ChatGuardError):
    """Ledger, quota cache or embedding storage write failed."""


class RetrievalDegraded(ChatGuardError):
    """Vector store unavailable or unconfigured; treated as no context."""
