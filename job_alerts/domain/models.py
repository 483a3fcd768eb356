"""Core domain models for postings, saved alerts and push registrations.

This module defines the data structures used throughout the application:
- JobPosting: a job posting as observed when it is created
- AlertPredicate: one saved search owned by a user
- DeviceRegistration: one push endpoint owned by a user

All three are validated at ingress; helper constructors translate the raw
record shapes the outside world sends into these models and raise
``ValidationError`` when a record is malformed.
"""

import json
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple, Type, TypeVar, Union

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from job_alerts.utils.timestamps import ensure_utc

from .exceptions import ValidationError
from .normalization import (
    blank_to_none,
    normalize_languages,
    normalize_string_set,
    normalize_workplace,
)

# The experience slider tops out here; a range ending at the ceiling means "N+ years"
EXPERIENCE_RANGE_CEILING = 30
DEFAULT_EXPERIENCE_RANGE: Tuple[float, float] = (0, EXPERIENCE_RANGE_CEILING)

ModelT = TypeVar("ModelT", bound=BaseModel)


class WorkplaceType(str, Enum):
    """Where the work happens."""

    ON_SITE = "on-site"
    HYBRID = "hybrid"
    REMOTE = "remote"
    UNSPECIFIED = "unspecified"


class PostingStatus(str, Enum):
    """Whether a posting still accepts applications."""

    OPEN = "open"
    CLOSED = "closed"


class StatusFilter(str, Enum):
    """Posting status an alert accepts."""

    ANY = "any"
    OPEN = "open"
    CLOSED = "closed"


def _validate(model_cls: Type[ModelT], subject: str, data: Any) -> ModelT:
    """Validate ``data`` into ``model_cls``, raising the domain ValidationError."""
    if not isinstance(data, dict):
        raise ValidationError(f"Invalid {subject}", errors=[f"expected an object, got {type(data).__name__}"])
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(subject, e) from e


class JobPosting(BaseModel):
    """A job posting handed to the engine by the posting-created event.

    Accepts the row shape of the postings table (``job_id``, ``origin``,
    ``posted_date`` aliases) as well as the canonical field names. Missing
    optional fields degrade to "unspecified" values that never disqualify a
    posting during matching.
    """

    model_config = {"frozen": True, "populate_by_name": True}

    id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("id", "job_id"),
        description="Opaque unique posting identifier",
    )
    title: str = Field("", description="Job title")
    company: str = Field("", description="Company name")
    location: str = Field("", description="Free-text location")
    origin_source: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("origin_source", "origin", "source"),
        description="Where the posting was scraped from",
    )
    workplace_type: WorkplaceType = Field(WorkplaceType.UNSPECIFIED, description="On-site, hybrid or remote")
    employment_type: Optional[str] = Field(None, description="Free-text employment category")
    salary_min: Optional[float] = Field(None, ge=0, description="Lower salary bound")
    salary_max: Optional[float] = Field(None, ge=0, description="Upper salary bound")
    salary_currency: Optional[str] = Field(None, description="Salary currency code")
    required_skills: FrozenSet[str] = Field(default_factory=frozenset, description="Skills the posting requires")
    required_experience_years: Optional[float] = Field(None, ge=0, description="Years of experience required")
    required_languages: Dict[str, Optional[str]] = Field(
        default_factory=dict, description="Required language name -> proficiency level (may be None)"
    )
    status: Optional[PostingStatus] = Field(None, description="open or closed")
    posted_on: Optional[date] = Field(
        None,
        validation_alias=AliasChoices("posted_on", "posted_date", "posted_at"),
        description="Publication date",
    )

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Numeric identifiers are accepted and kept as text."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("title", "company", "location", mode="before")
    @classmethod
    def text_or_empty(cls, v: Any) -> Any:
        if v is None:
            return ""
        return v.strip() if isinstance(v, str) else v

    @field_validator("origin_source", "employment_type", "salary_currency", mode="before")
    @classmethod
    def optional_text(cls, v: Any) -> Any:
        v = blank_to_none(v)
        return v.strip() if isinstance(v, str) else v

    @field_validator("workplace_type", mode="before")
    @classmethod
    def canonical_workplace(cls, v: Any) -> Any:
        return normalize_workplace(v)

    @field_validator("required_skills", mode="before")
    @classmethod
    def skills_to_set(cls, v: Any) -> Any:
        return normalize_string_set(v)

    @field_validator("required_languages", mode="before")
    @classmethod
    def languages_to_mapping(cls, v: Any) -> Any:
        return normalize_languages(v)

    @field_validator("salary_min", "salary_max", "required_experience_years", mode="before")
    @classmethod
    def blank_number(cls, v: Any) -> Any:
        return blank_to_none(v)

    @field_validator("status", mode="before")
    @classmethod
    def lowercase_status(cls, v: Any) -> Any:
        v = blank_to_none(v)
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("posted_on", mode="before")
    @classmethod
    def date_part(cls, v: Any) -> Any:
        """Timestamps are truncated to their date."""
        v = blank_to_none(v)
        if isinstance(v, datetime):
            return v.date()
        if isinstance(v, str) and len(v) > 10 and v[10] in "T ":
            return v[:10]
        return v

    @classmethod
    def from_record(cls, record: Any) -> "JobPosting":
        """Build a posting from a raw record.

        Raises:
            ValidationError: If the record is not an object or a field is malformed
        """
        return _validate(cls, "job posting", record)


# Saved-filter JSON keys (as the client stores them) -> AlertPredicate fields
FILTER_KEYS = {
    "searchTerm": "search_text",
    "filterStatus": "status_filter",
    "filterWorkplace": "workplace_set",
    "filterEmployment": "employment_set",
    "filterLocation": "location_substring",
    "filterSalary": "min_salary",
    "filterSkills": "skill_set",
    "filterExperience": "experience_range",
    "filterLanguages": "language_set",
}


class AlertPredicate(BaseModel):
    """One saved search owned by exactly one user.

    Every criterion defaults to "no constraint": empty text and sets accept
    everything, ``min_salary == 0`` ignores salary and the default experience
    range ``(0, 30)`` accepts any experience level.
    """

    model_config = {"frozen": True}

    id: Optional[str] = Field(None, description="Store-assigned identifier")
    owner_id: str = Field(..., min_length=1, description="User that owns the alert")
    created_at: Optional[datetime] = Field(None, description="When the alert was saved (UTC)")
    search_text: str = Field("", description="Case-insensitive substring of title or company")
    status_filter: StatusFilter = Field(StatusFilter.ANY, description="Accepted posting status")
    workplace_set: FrozenSet[WorkplaceType] = Field(default_factory=frozenset)
    employment_set: FrozenSet[str] = Field(default_factory=frozenset)
    location_substring: str = Field("", description="Case-insensitive substring of location")
    min_salary: float = Field(0, ge=0, description="Salary threshold (0 = no constraint)")
    skill_set: FrozenSet[str] = Field(default_factory=frozenset)
    experience_range: Tuple[float, float] = Field(DEFAULT_EXPERIENCE_RANGE)
    language_set: FrozenSet[str] = Field(default_factory=frozenset)

    @field_validator("owner_id", mode="before")
    @classmethod
    def strip_owner(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("search_text", "location_substring", mode="before")
    @classmethod
    def text_or_empty(cls, v: Any) -> Any:
        if v is None:
            return ""
        return v.strip() if isinstance(v, str) else v

    @field_validator("status_filter", mode="before")
    @classmethod
    def status_alias(cls, v: Any) -> Any:
        """``all`` (the client's spelling) means ``any``."""
        v = blank_to_none(v)
        if v is None:
            return StatusFilter.ANY
        if isinstance(v, str):
            lowered = v.strip().lower()
            return "any" if lowered == "all" else lowered
        return v

    @field_validator("workplace_set", mode="before")
    @classmethod
    def canonical_workplaces(cls, v: Any) -> Any:
        v = normalize_string_set(v)
        if isinstance(v, frozenset):
            return frozenset(normalize_workplace(item) for item in v)
        return v

    @field_validator("employment_set", "skill_set", "language_set", mode="before")
    @classmethod
    def to_string_set(cls, v: Any) -> Any:
        return normalize_string_set(v)

    @field_validator("min_salary", mode="before")
    @classmethod
    def missing_salary_is_zero(cls, v: Any) -> Any:
        return 0 if blank_to_none(v) is None else v

    @field_validator("experience_range", mode="before")
    @classmethod
    def missing_range_is_default(cls, v: Any) -> Any:
        return DEFAULT_EXPERIENCE_RANGE if v is None else v

    @field_validator("created_at")
    @classmethod
    def created_at_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @model_validator(mode="after")
    def check_experience_range(self):
        low, high = self.experience_range
        if low < 0:
            raise ValueError(f"experience_range lower bound must be >= 0, got {low}")
        if low > high:
            raise ValueError(f"experience_range lower bound {low} exceeds upper bound {high}")
        return self

    @classmethod
    def from_filters(
        cls,
        owner_id: str,
        filters: Any,
        alert_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> "AlertPredicate":
        """Build a predicate from the saved-filter JSON the client persists.

        Unknown keys are ignored; missing keys take their "no constraint" default.

        Raises:
            ValidationError: If filters is not an object or a criterion is malformed
        """
        if not isinstance(filters, dict):
            raise ValidationError(
                "Invalid alert predicate",
                errors=[f"filters: expected an object, got {type(filters).__name__}"],
            )

        data = {field: filters[key] for key, field in FILTER_KEYS.items() if key in filters}
        return _validate(
            cls,
            "alert predicate",
            {"id": alert_id, "owner_id": owner_id, "created_at": created_at, **data},
        )

    def to_filters(self) -> Dict[str, Any]:
        """Serialize the criteria back to the saved-filter JSON shape."""
        return {
            "searchTerm": self.search_text,
            "filterStatus": self.status_filter.value,
            "filterWorkplace": sorted(w.value for w in self.workplace_set),
            "filterEmployment": sorted(self.employment_set),
            "filterLocation": self.location_substring,
            "filterSalary": self.min_salary,
            "filterSkills": sorted(self.skill_set),
            "filterExperience": list(self.experience_range),
            "filterLanguages": sorted(self.language_set),
        }


class DeviceRegistration(BaseModel):
    """A push endpoint one user's device opted in with.

    ``keys`` carries the subscription's ``p256dh`` public key and ``auth``
    secret, both base64url text as the browser reports them.
    """

    model_config = {"frozen": True}

    owner_id: str = Field(..., min_length=1, description="User that owns the device")
    endpoint: str = Field(..., min_length=1, description="Push service URL for the device")
    keys: Dict[str, str] = Field(..., description="Encryption material (p256dh, auth)")
    registered_at: Optional[datetime] = Field(None, description="When the device registered (UTC)")

    @field_validator("owner_id", "endpoint", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("endpoint")
    @classmethod
    def https_endpoint(cls, v: str) -> str:
        if not v.startswith("https://"):
            raise ValueError("endpoint must be an https:// URL")
        return v

    @field_validator("keys")
    @classmethod
    def required_keys(cls, v: Dict[str, str]) -> Dict[str, str]:
        missing = [name for name in ("p256dh", "auth") if not (v.get(name) or "").strip()]
        if missing:
            raise ValueError(f"keys missing required entries: {', '.join(missing)}")
        return v

    @field_validator("registered_at")
    @classmethod
    def registered_at_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    def subscription_info(self) -> Dict[str, Any]:
        """Return the ``{endpoint, keys}`` object the push protocol client expects."""
        return {"endpoint": self.endpoint, "keys": dict(self.keys)}

    @classmethod
    def from_subscription(
        cls,
        owner_id: str,
        subscription: Union[str, Dict[str, Any]],
        registered_at: Optional[datetime] = None,
    ) -> "DeviceRegistration":
        """Build a registration from a browser ``PushSubscription`` JSON object.

        The subscription may be given as a JSON string or an already-decoded
        object. ``expirationTime`` and any other extra members are ignored.

        Raises:
            ValidationError: If the subscription cannot be decoded or is incomplete
        """
        if isinstance(subscription, str):
            try:
                subscription = json.loads(subscription)
            except json.JSONDecodeError as e:
                raise ValidationError("Invalid device registration", errors=[f"subscription: {e}"]) from e

        if not isinstance(subscription, dict):
            raise ValidationError(
                "Invalid device registration",
                errors=[f"subscription: expected an object, got {type(subscription).__name__}"],
            )

        return cls.build(owner_id, subscription.get("endpoint"), subscription.get("keys"), registered_at)

    @classmethod
    def build(
        cls,
        owner_id: str,
        endpoint: Any,
        keys: Any,
        registered_at: Optional[datetime] = None,
    ) -> "DeviceRegistration":
        """Validate loose registration parts into a model.

        Raises:
            ValidationError: If any part is missing or malformed
        """
        return _validate(
            cls,
            "device registration",
            {"owner_id": owner_id, "endpoint": endpoint, "keys": keys, "registered_at": registered_at},
        )
