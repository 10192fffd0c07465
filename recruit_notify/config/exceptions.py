"""Configuration errors raised by the YAML loader and the environment reader."""

from typing import List, Optional


class ConfigurationError(Exception):
    """
    Raised when the application or environment configuration is unusable.

    Carries every validation problem found in one pass together with fix-up
    hints, and optionally where the configuration came from (a file path or
    ``"environment"``), so the CLI can print a single actionable report.
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        suggestions: Optional[List[str]] = None,
        source: Optional[str] = None,
    ):
        """
        Args:
            message: Summary of what failed
            errors: Individual validation problems
            suggestions: Hints for fixing the configuration
            source: Config file path or "environment"
        """
        self.message = message
        self.errors = list(errors or [])
        self.suggestions = list(suggestions or [])
        self.source = source
        super().__init__(self._render())

    def _render(self) -> str:
        lines = [f"{self.message} ({self.source})" if self.source else self.message]

        if self.errors:
            lines.append("\nValidation Errors:")
            lines.extend(f"  {number}. {error}" for number, error in enumerate(self.errors, 1))

        if self.suggestions:
            lines.append("\nSuggestions:")
            lines.extend(f"  - {suggestion}" for suggestion in self.suggestions)

        return "\n".join(lines)
