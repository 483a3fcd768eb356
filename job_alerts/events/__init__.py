"""Inbound posting-created events."""

from .inbox import PostingInbox

__all__ = [
    "PostingInbox",
]
