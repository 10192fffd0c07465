"""Scoped logging context.

Fields pushed here (notification_id, interview_id, campaign_id, ...) are merged
into every log record emitted while the scope is active. Storage is a
ContextVar, so scopes nest and stay isolated between threads.
"""

from contextvars import ContextVar, Token
from typing import Any, Dict, Optional


LogContextVar: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the fields active in the current scope."""
    return LogContextVar.get().copy()


def push_log_context(**fields: Any) -> Token:
    """Merge fields into the active context.

    None values are dropped so an unsaved record doesn't log ``notification_id=null``.

    Returns:
        Token for pop_log_context()

    Example:
        >>> token = push_log_context(campaign_id="bulk-1735689600-job7")
        >>> pop_log_context(token)
    """
    merged = {**LogContextVar.get()}
    merged.update({key: value for key, value in fields.items() if value is not None})
    return LogContextVar.set(merged)


def pop_log_context(token: Token) -> None:
    """Restore the context that was active before the matching push."""
    LogContextVar.reset(token)


def clear_log_context() -> None:
    """Drop every context field. Used by tests."""
    LogContextVar.set({})


class log_context:
    """Context manager that scopes logging fields to a block.

    Example:
        >>> with log_context(interview_id=42):
        ...     logger.info("Interview assigned", extra={"event": "interview.assigned"})
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self.token: Optional[Token] = None

    def __enter__(self):
        self.token = push_log_context(**self.fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.token is not None:
            pop_log_context(self.token)
            self.token = None
        return False
