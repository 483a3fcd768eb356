"""Soft checks on raw settings that warn instead of failing."""

import warnings
from typing import Any, Dict, List

from .duration import DurationParseError, parse_duration


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Inspect the raw settings mapping for values that are legal but risky.

    Args:
        config_dict: Raw configuration dictionary

    Returns:
        List of warning messages
    """
    messages = []

    dispatch = config_dict.get("dispatch") or {}
    if isinstance(dispatch, dict):
        max_workers = dispatch.get("max_workers")
        if isinstance(max_workers, int) and max_workers > 32:
            messages.append(
                f"High dispatch.max_workers ({max_workers}) may trip push service rate limits"
            )

    push = config_dict.get("push") or {}
    if isinstance(push, dict):
        if push.get("ttl_seconds") == 0:
            messages.append("push.ttl_seconds is 0; pushes to offline devices will be dropped")
        if "contact_email" not in push:
            messages.append("push.contact_email not set; push services will see the default contact")

    event_source = config_dict.get("event_source") or {}
    if isinstance(event_source, dict):
        interval = event_source.get("poll_interval")
        if isinstance(interval, str):
            try:
                if parse_duration(interval) > 600:
                    messages.append(
                        f"Long event_source.poll_interval ({interval}) delays notifications"
                    )
            except DurationParseError:
                # Reported as a hard error by model validation
                pass

    return messages


def emit_warnings(warning_messages: List[str]) -> None:
    """Emit each message as a ``UserWarning``."""
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
