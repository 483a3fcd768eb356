"""Client-facing registration and alert management."""

from .service import SubscriptionService

__all__ = [
    "SubscriptionService",
]
