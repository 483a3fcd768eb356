"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, Field, field_validator, model_validator

from .duration import DurationParseError, check_duration_range, parse_duration

DEFAULT_CONTACT_EMAIL = "admin@job-alerts.com"

# Bounds for event_source.poll_interval, in seconds
MIN_POLL_INTERVAL = 10
MAX_POLL_INTERVAL = 3600


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


def normalize_contact_email(value: str) -> str:
    """Validate a contact address, accepting an optional ``mailto:`` prefix.

    Raises:
        ValueError: If the address is not a syntactically valid email
    """
    address = value.strip()
    if address.lower().startswith("mailto:"):
        address = address[len("mailto:"):]
    try:
        return validate_email(address, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValueError(f"Invalid contact email '{address}': {e}") from e


class DispatchConfig(BaseModel):
    """Fan-out settings for one posting event."""

    max_workers: int = Field(8, ge=1, le=64, description="Concurrent push sends per event")


class PushConfig(BaseModel):
    """Web Push delivery settings."""

    contact_email: str = Field(
        DEFAULT_CONTACT_EMAIL,
        description="Operator address placed in the VAPID 'sub' claim",
    )
    ttl_seconds: int = Field(
        86400, ge=0, le=2419200, description="How long the push service keeps an undelivered message"
    )
    timeout_seconds: float = Field(10.0, gt=0, le=120, description="HTTP timeout for one push request")

    @field_validator("contact_email")
    @classmethod
    def valid_contact(cls, v: str) -> str:
        return normalize_contact_email(v)


class EventSourceConfig(BaseModel):
    """How the daemon drains the posting inbox."""

    poll_interval: str = Field("30s", description="Delay between inbox drains")
    batch_size: int = Field(20, ge=1, le=500, description="Maximum events dispatched per drain")

    @field_validator("poll_interval")
    @classmethod
    def validate_poll_interval(cls, v: str) -> str:
        try:
            seconds = parse_duration(v)
            check_duration_range(seconds, MIN_POLL_INTERVAL, MAX_POLL_INTERVAL, label="Poll interval")
        except DurationParseError as e:
            raise ValueError(str(e)) from e
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(LogFormat.KEY_VALUE, description="Log output format (json or key-value)")

    model_config = {"use_enum_values": True}


class AppConfig(BaseModel):
    """Root configuration object for the alert dispatcher."""

    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    push: PushConfig = Field(default_factory=PushConfig)
    event_source: EventSourceConfig = Field(default_factory=EventSourceConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # Computed field
    poll_interval_seconds: Optional[int] = None

    @model_validator(mode="after")
    def compute_poll_interval(self):
        self.poll_interval_seconds = parse_duration(self.event_source.poll_interval)
        return self
