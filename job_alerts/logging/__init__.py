"""Structured logging helpers for the alert dispatcher."""

import logging
from typing import Optional


class ComponentLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that adds a ``component`` field under per-call extras."""

    def process(self, msg, kwargs):
        # Per-call extra wins over the adapter defaults
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str, component: Optional[str] = None):
    """Return a logger, tagged with ``component`` when one is given.

    Example:
        >>> logger = get_logger(__name__, component="dispatch")
        >>> logger.info("Dispatch started", extra={"event": "dispatch.started"})
    """
    logger = logging.getLogger(name)

    if component:
        return ComponentLoggerAdapter(logger, {"component": component})

    return logger
