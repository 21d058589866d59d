"""Exception hierarchy raised by metadata, pipeline, and mapping code."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional


class MapperError(Exception):
    """Base class for all mapper errors."""


class MetadataError(MapperError, TypeError):
    """Raised when a model carries an invalid tag combination or shape."""


class InvalidEntityError(MapperError, ValueError):
    """Raised when an operation is not allowed for a model or instance."""


class SQLGenerationError(MapperError, ValueError):
    """Raised when a statement cannot be rendered for a model."""


class GenerationError(MapperError):
    """Raised when a value generator is unknown or fails."""


class MappingError(MapperError, TypeError):
    """Raised when a result value cannot be assigned to a model field."""

    def __init__(
        self,
        message: str,
        *,
        field_name: Optional[str] = None,
        declared_type: Any = None,
        value: Any = None,
    ):
        super().__init__(message)
        self.field_name = field_name
        self.declared_type = declared_type
        self.value = value

    @classmethod
    def type_mismatch(cls, model: type, field_name: str, declared_type: Any, value: Any) -> MappingError:
        declared = getattr(declared_type, "__name__", str(declared_type))
        return cls(
            f"Cannot assign value {value!r} of type {type(value).__name__} to "
            f"{model.__name__}.{field_name} declared as {declared}.",
            field_name=field_name,
            declared_type=declared_type,
            value=value,
        )


@dataclass(frozen=True)
class FieldError:
    """One validation failure for one field."""

    field: Optional[str]
    message: str

    def __str__(self) -> str:
        if self.field:
            return f"{self.field}: {self.message}"
        return self.message


class ValidationError(MapperError, ValueError):
    """Aggregate validation failure carrying every collected field error."""

    def __init__(self, errors: Iterable[FieldError] | str):
        if isinstance(errors, str):
            errors = [FieldError(None, errors)]
        self.errors: list[FieldError] = list(errors)
        super().__init__(
            "Validation failed: " + "; ".join(str(error) for error in self.errors)
        )

    @classmethod
    def for_field(cls, field_name: str, message: str) -> ValidationError:
        return cls([FieldError(field_name, message)])

    @property
    def fields(self) -> list[Optional[str]]:
        return [error.field for error in self.errors]

    @property
    def messages(self) -> list[str]:
        return [error.message for error in self.errors]


class BatchValidationError(ValidationError):
    """Validation failure for a batch; `items` maps item index to its error."""

    def __init__(self, items: Mapping[int, ValidationError]):
        self.items: dict[int, ValidationError] = dict(sorted(items.items()))
        errors: list[FieldError] = []
        for error in self.items.values():
            errors.extend(error.errors)
        super().__init__(errors)
        self.args = (
            f"Validation failed for {len(self.items)} item(s) at "
            f"index {list(self.items)}: "
            + "; ".join(str(error) for error in self.errors),
        )
