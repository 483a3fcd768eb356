"""Exceptions raised while loading settings."""

from typing import List, Optional


class ConfigurationError(Exception):
    """Raised when the settings file or the environment is invalid.

    Collects every problem found in one pass so they can be reported
    together, each with a hint on how to fix it.

    Attributes:
        message: Primary error message
        errors: Individual validation problems
        suggestions: Remedies to print after the errors
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        self.message = message
        self.errors = list(errors or [])
        self.suggestions = list(suggestions or [])
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        lines = [self.message]
        if self.errors:
            lines.append("\nValidation Errors:")
            lines.extend(f"  {index}. {error}" for index, error in enumerate(self.errors, 1))
        if self.suggestions:
            lines.append("\nSuggestions:")
            lines.extend(f"  - {suggestion}" for suggestion in self.suggestions)
        return "\n".join(lines)

    def __str__(self) -> str:
        return self._format_message()
