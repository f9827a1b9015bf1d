"""Validation result models shared by the registry and the validator."""

from pydantic import BaseModel, ConfigDict, Field


class FieldError(BaseModel):
    """A single validation problem tied to one key of the input."""

    model_config = ConfigDict(frozen=True)

    field: str = Field(..., description="Key or value path the error refers to")
    code: str = Field(..., description="Machine-readable error type")
    message: str = Field(..., description="Human-readable explanation")

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class ValidationResult(BaseModel):
    """Accumulated outcome of a validation pass.

    Validation never stops at the first problem; every failing check
    contributes one FieldError so callers can report all of them at once.
    """

    errors: list[FieldError] = Field(default_factory=list)
    warnings: list[FieldError] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add(self, field: str, code: str, message: str) -> None:
        self.errors.append(FieldError(field=field, code=code, message=message))

    def warn(self, field: str, code: str, message: str) -> None:
        self.warnings.append(FieldError(field=field, code=code, message=message))

    def merge(self, other: "ValidationResult", prefix: str | None = None) -> None:
        """Fold another result into this one, optionally re-rooting field paths."""
        for error in other.errors:
            field = f"{prefix}.{error.field}" if prefix else error.field
            self.errors.append(error.model_copy(update={"field": field}))
        self.warnings.extend(other.warnings)

    def messages(self) -> list[str]:
        return [error.message for error in self.errors]

    def codes(self) -> list[str]:
        return [error.code for error in self.errors]

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls()

    @classmethod
    def failure(cls, field: str, code: str, message: str) -> "ValidationResult":
        result = cls()
        result.add(field, code, message)
        return result
