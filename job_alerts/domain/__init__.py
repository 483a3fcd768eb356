"""Domain models for the job alert dispatcher."""

from .exceptions import ValidationError
from .models import (
    AlertPredicate,
    DeviceRegistration,
    JobPosting,
    PostingStatus,
    StatusFilter,
    WorkplaceType,
)

__all__ = [
    "JobPosting",
    "AlertPredicate",
    "DeviceRegistration",
    "WorkplaceType",
    "PostingStatus",
    "StatusFilter",
    "ValidationError",
]
