"""Environment variable loading and validation."""

import os
from typing import Optional

from .exceptions import ConfigurationError
from .models import normalize_contact_email

DEFAULT_DATABASE_URL = "sqlite:///./data/job_alerts.db"

_VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class EnvironmentConfig:
    """Secrets and deployment settings read from the environment."""

    def __init__(
        self,
        vapid_public_key: str,
        vapid_private_key: str,
        vapid_subject: Optional[str] = None,
        log_level: Optional[str] = None,
        database_url: Optional[str] = None,
        environment: Optional[str] = None,
    ):
        self.vapid_public_key = vapid_public_key
        self.vapid_private_key = vapid_private_key
        self.vapid_subject = vapid_subject
        self.log_level = log_level
        self.database_url = database_url or DEFAULT_DATABASE_URL
        self.environment = environment

    def resolve_subject(self, contact_email: str) -> str:
        """Return the VAPID ``sub`` claim, preferring ``VAPID_SUBJECT`` over the configured contact."""
        return f"mailto:{self.vapid_subject or contact_email}"


def load_environment_config() -> EnvironmentConfig:
    """
    Load and validate environment variables.

    Required environment variables:
    - VAPID_PUBLIC_KEY: Application server public key shared with browsers
    - VAPID_PRIVATE_KEY: Key that signs the VAPID JWT

    Optional environment variables:
    - VAPID_SUBJECT: Contact address overriding push.contact_email
    - LOG_LEVEL: Override log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - DATABASE_URL: SQLite database URL (default: sqlite:///./data/job_alerts.db)
    - ENVIRONMENT: Deployment name attached to every log record

    Returns:
        EnvironmentConfig object with validated values

    Raises:
        ConfigurationError: If required variables are missing or invalid
    """
    errors = []

    public_key = (os.getenv("VAPID_PUBLIC_KEY") or "").strip()
    private_key = (os.getenv("VAPID_PRIVATE_KEY") or "").strip()
    subject = (os.getenv("VAPID_SUBJECT") or "").strip() or None
    log_level = os.getenv("LOG_LEVEL")
    database_url = os.getenv("DATABASE_URL")
    environment = os.getenv("ENVIRONMENT")

    if not public_key:
        errors.append("Missing required environment variable: VAPID_PUBLIC_KEY")
    if not private_key:
        errors.append("Missing required environment variable: VAPID_PRIVATE_KEY")

    if subject:
        try:
            subject = normalize_contact_email(subject)
        except ValueError as e:
            errors.append(f"Invalid VAPID_SUBJECT: {e}")

    if log_level and log_level.upper() not in _VALID_LOG_LEVELS:
        errors.append(f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(_VALID_LOG_LEVELS)}")

    if database_url and not database_url.startswith("sqlite"):
        errors.append(f"Unsupported DATABASE_URL: '{database_url}'. Only sqlite URLs are supported.")

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in your VAPID key pair",
                "Generate a key pair with `vapid --gen` (py-vapid) if you do not have one",
                "VAPID_SUBJECT must be an email address, with or without a mailto: prefix",
            ],
        )

    return EnvironmentConfig(
        vapid_public_key=public_key,
        vapid_private_key=private_key,
        vapid_subject=subject,
        log_level=log_level.upper() if log_level else None,
        database_url=database_url,
        environment=environment,
    )
