"""Scoped logging context for dispatch runs.

Fields pushed here (posting_id, owner_id, event_id, ...) are merged into every
log record emitted inside the scope by ``ContextualFilter``. Storage is a
``ContextVar`` so each worker thread and each task sees its own copy.
"""

from contextvars import ContextVar, Token
from typing import Any, Dict, Optional


LogContextVar: ContextVar[Dict[str, Any]] = ContextVar("job_alerts_log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the fields active in the current scope."""
    return LogContextVar.get().copy()


def push_log_context(**fields) -> Token:
    """Merge ``fields`` into the active context.

    Returns:
        Token to hand back to ``pop_log_context`` to restore the previous state

    Example:
        >>> token = push_log_context(posting_id="job-42")
        >>> pop_log_context(token)
    """
    merged = {**LogContextVar.get(), **fields}
    return LogContextVar.set(merged)


def pop_log_context(token: Token) -> None:
    """Restore the context captured by ``token``."""
    LogContextVar.reset(token)


def clear_log_context() -> None:
    """Drop every context field (used by tests)."""
    LogContextVar.set({})


class log_context:
    """Context manager that scopes logging fields to a block.

    Example:
        >>> with log_context(posting_id="job-42", owner_id="user-1"):
        ...     logger.info("Delivering")  # carries posting_id and owner_id
    """

    def __init__(self, **fields):
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
