"""
Logging setup and structured helpers for usage and limit events.
"""
import logging
import sys
from decimal import Decimal
from typing import Optional, Union

from chatguard.core.config import LOG_LEVEL, LOG_FORMAT

usage_logger = logging.getLogger("chatguard.usage")


def setup_logging(level: Optional[str] = None) -> None:
    log_level = (level or LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    root_logger = logging.getLogger()
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(name)
        logger.handlers = root_logger.handlers
        logger.setLevel(root_logger.level)
        logger.propagate = False


def _format_context(context: dict) -> str:
    parts = [f"{key}={value}" for key, value in context.items() if value is not None]
    return ", ".join(parts)


def log_api_usage(
    service: str,
    operation: str,
    cost: Union[Decimal, float],
    **context,
) -> None:
    """Log a priced provider operation."""
    usage_logger.info(
        f"api_usage: {service}.{operation}, cost=${Decimal(str(cost)):.6f}"
        + (f", {_format_context(context)}" if context else "")
    )


def log_limit_check(
    user_id: Union[int, str],
    allowed: bool,
    daily_usage: Optional[Decimal] = None,
    daily_limit: Optional[Decimal] = None,
) -> None:
    """Log the outcome of a quota check (warning when rejected)."""
    if not allowed:
        usage_logger.warning(
            f"limit_check_failed: user_id={user_id}, daily_usage={daily_usage}, "
            f"daily_limit={daily_limit}, reason=limit exceeded"
        )
    else:
        usage_logger.debug(
            f"limit_check_passed: user_id={user_id}, daily_usage={daily_usage}, daily_limit={daily_limit}"
        )
