"""Exceptions raised while describing or extracting entities."""
from __future__ import annotations


class ExtractionError(Exception):
    """Base exception for entity extraction failures.

    Carries the entity class name and the dotted field path of the field that
    could not be satisfied. The path grows from the inside out as the error
    propagates through nested extractions, so the caller always sees the full
    location, e.g. ``Match.teams[1].name``.
    """

    def __init__(
        self,
        message: str,
        *,
        entity: str | None = None,
        field_path: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.entity = entity
        self.field_path = field_path
        self.cause = cause

    def prepend_path(self, segment: str) -> None:
        if self.field_path:
            sep = "" if self.field_path.startswith("[") else "."
            self.field_path = f"{segment}{sep}{self.field_path}"
        else:
            self.field_path = segment

    def location(self) -> str:
        if self.entity and self.field_path:
            return f"{self.entity}.{self.field_path}"
        return self.entity or self.field_path or "<root>"

    def __str__(self) -> str:
        text = f"{self.location()}: {self.message}"
        if self.cause is not None:
            text += f" ({type(self.cause).__name__}: {self.cause})"
        return text


class EntityDefinitionError(ExtractionError):
    """Raised when a class's extraction metadata is invalid."""


class InstantiationError(ExtractionError):
    """Raised when a target class cannot be default-constructed."""


class PathEvaluationError(ExtractionError):
    """Raised on a malformed path expression or a failed element lookup."""


class MissingRequiredFieldError(ExtractionError):
    """Raised when a required field has no matching element."""


class MappingError(ExtractionError):
    """Raised when a conversion step rejects a raw value."""


class AmbiguousConditionalError(ExtractionError):
    """Raised when a conditional rule names a capture group its pattern lacks.

    Never escapes the conditional strategy: the rule is treated as not
    applying.
    """


class MaxDepthExceededError(ExtractionError):
    """Raised when nested extraction exceeds the configured depth."""
