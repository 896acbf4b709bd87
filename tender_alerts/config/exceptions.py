"""Configuration errors."""

from typing import Iterable, List, Optional

from pydantic import ValidationError


class ConfigurationError(Exception):
    """Invalid config file or environment.

    ``errors`` lists every problem found, so a broken config.yaml is fixed in one
    edit rather than one restart per field. ``source`` names where the values
    came from (a file path or ``environment``) when known.
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        suggestions: Optional[List[str]] = None,
        source: Optional[str] = None,
    ):
        self.message = message
        self.errors = list(errors or [])
        self.suggestions = list(suggestions or [])
        self.source = source
        super().__init__(self.render())

    @classmethod
    def from_validation_error(
        cls,
        exc: ValidationError,
        suggestions: Iterable[str] = (),
        source: Optional[str] = None,
    ) -> "ConfigurationError":
        """Flatten pydantic errors into one line per offending field."""
        errors = []
        for error in exc.errors():
            field_path = " -> ".join(str(loc) for loc in error["loc"]) or "(root)"
            if error["type"] == "missing":
                errors.append(f"Missing required field: {field_path}")
            elif error["type"].endswith("_type"):
                expected = error["type"].replace("_type", "")
                errors.append(
                    f"Invalid type for '{field_path}': expected {expected}, got {error.get('input')!r}"
                )
            else:
                errors.append(f"{field_path}: {error['msg']}")
        return cls(
            "Configuration validation failed",
            errors=errors,
            suggestions=list(suggestions),
            source=source,
        )

    def render(self) -> str:
        header = f"{self.message} ({self.source})" if self.source else self.message
        lines = [header]
        if self.errors:
            lines.append("\nValidation Errors:")
            lines.extend(f"  {n}. {error}" for n, error in enumerate(self.errors, 1))
        if self.suggestions:
            lines.append("\nSuggestions:")
            lines.extend(f"  - {suggestion}" for suggestion in self.suggestions)
        return "\n".join(lines)
