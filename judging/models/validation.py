"""
Validation Results - Judging Leaderboard Engine
judging/models/validation.py

Structured validation outcome shared by rubrics, score records and
leaderboards. Validation never raises; callers decide what to do with
the errors (usually wrap them in a ValidationFailure subclass).
"""

from typing import Iterable, List, Type

from pydantic import BaseModel, ConfigDict, Field


class FieldError(BaseModel):
    """One field-level validation error."""

    model_config = ConfigDict(frozen=True)

    field: str = Field(..., description="Dotted path of the offending field")
    message: str = Field(..., description="Human-readable error message")


class ValidationResult(BaseModel):
    """Outcome of a validate() call."""

    model_config = ConfigDict(frozen=True)

    errors: List[FieldError] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def messages(self) -> List[str]:
        return [e.message for e in self.errors]

    @classmethod
    def valid(cls) -> "ValidationResult":
        return cls()

    @classmethod
    def invalid(cls, errors: Iterable[FieldError]) -> "ValidationResult":
        return cls(errors=list(errors))

    @classmethod
    def single_error(cls, field: str, message: str) -> "ValidationResult":
        return cls(errors=[FieldError(field=field, message=message)])

    @classmethod
    def combine(cls, *results: "ValidationResult") -> "ValidationResult":
        """Merge several results, keeping error order."""
        errors: List[FieldError] = []
        for result in results:
            errors.extend(result.errors)
        return cls(errors=errors)

    def raise_if_invalid(self, exc_type: Type[Exception]) -> None:
        """Raise exc_type(self) when there are errors."""
        if self.errors:
            raise exc_type(self)
