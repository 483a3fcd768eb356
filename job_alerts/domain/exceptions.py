"""Ingress validation errors for postings, alerts and registrations."""

from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError


class ValidationError(ValueError):
    """Raised when a posting, alert predicate or device registration is malformed.

    Inputs are rejected as a whole at ingress; nothing downstream ever sees a
    partially valid record.

    Attributes:
        message: Primary error message
        errors: One entry per offending field
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if not self.errors:
            return self.message
        return f"{self.message}: " + "; ".join(self.errors)

    @classmethod
    def from_pydantic(cls, subject: str, exc: PydanticValidationError) -> "ValidationError":
        """Build from a pydantic error, keeping one line per failing field."""
        errors = []
        for error in exc.errors():
            field_path = ".".join(str(loc) for loc in error["loc"]) or "<root>"
            errors.append(f"{field_path}: {error['msg']}")
        return cls(f"Invalid {subject}", errors=errors)
