"""Validation tags, built-in field validators, and the validation stage."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from .exceptions import FieldError, ValidationError
from .metadata import EntityMetadata, FieldMetadata
from .tags import Tag

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")


@dataclass(frozen=True)
class NotNull(Tag):
    """Value must not be `None`."""


@dataclass(frozen=True)
class NotBlank(Tag):
    """String value must contain a non-whitespace character."""


@dataclass(frozen=True)
class Min(Tag):
    value: Any


@dataclass(frozen=True)
class Max(Tag):
    value: Any


@dataclass(frozen=True)
class Size(Tag):
    """Bounds the `len()` of a value."""

    min: Optional[int] = None
    max: Optional[int] = None


@dataclass(frozen=True)
class Pattern(Tag):
    """String value must fully match `regex`."""

    regex: str


@dataclass(frozen=True)
class Choices(Tag):
    values: Tuple[Any, ...]


@dataclass(frozen=True)
class Email(Tag):
    """String value must look like an e-mail address."""


def _fail(field: FieldMetadata, message: str) -> ValidationError:
    return ValidationError.for_field(field.field_name, f"{field.field_name} {message}")


class NotNullValidator:
    def validate(self, value: Any, field: FieldMetadata) -> None:
        if value is None:
            raise _fail(field, "cannot be null")


class NotBlankValidator:
    def validate(self, value: Any, field: FieldMetadata) -> None:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise _fail(field, "cannot be blank")


class MinValidator:
    def validate(self, value: Any, field: FieldMetadata) -> None:
        if value is None:
            return
        bound = field.tag(Min).value
        if value < bound:
            raise _fail(field, f"must be at least {bound}")


class MaxValidator:
    def validate(self, value: Any, field: FieldMetadata) -> None:
        if value is None:
            return
        bound = field.tag(Max).value
        if value > bound:
            raise _fail(field, f"must be at most {bound}")


class SizeValidator:
    def validate(self, value: Any, field: FieldMetadata) -> None:
        if value is None:
            return
        size = field.tag(Size)
        length = len(value)
        if size.min is not None and length < size.min:
            raise _fail(field, f"length must be at least {size.min}")
        if size.max is not None and length > size.max:
            raise _fail(field, f"length must be at most {size.max}")


class PatternValidator:
    def validate(self, value: Any, field: FieldMetadata) -> None:
        if value is None:
            return
        regex = field.tag(Pattern).regex
        if re.fullmatch(regex, str(value)) is None:
            raise _fail(field, f"must match pattern {regex!r}")


class ChoicesValidator:
    def validate(self, value: Any, field: FieldMetadata) -> None:
        if value is None:
            return
        allowed = field.tag(Choices).values
        if value not in allowed:
            raise _fail(field, f"must be one of {list(allowed)!r}")


class EmailValidator:
    def validate(self, value: Any, field: FieldMetadata) -> None:
        if value is None:
            return
        if not isinstance(value, str) or EMAIL_PATTERN.fullmatch(value) is None:
            raise _fail(field, "must be a valid email address")


def validate_entity(entity: Any, meta: EntityMetadata[Any], registry: Any) -> None:
    """Run every registered validator over every field and aggregate failures.

    Validators never short-circuit each other: all fields are visited and all
    validators for a field run, then a single `ValidationError` carrying the
    ordered list of failures is raised.

    Args:
        entity: Instance to check.
        meta: Metadata of the instance's model.
        registry: `ValidatorRegistry` supplying validators per tag type.

    Raises:
        ValidationError: If at least one validator failed.
    """

    errors: list[FieldError] = []
    for field in meta.fields:
        value = field.get_value(entity)
        for validator in registry.validators_for(field):
            try:
                validator.validate(value, field)
            except ValidationError as exc:
                errors.extend(
                    error if error.field else FieldError(field.field_name, error.message)
                    for error in exc.errors
                )

    if errors:
        logger.debug(
            "Validation of %s failed with %d error(s)", type(entity).__name__, len(errors)
        )
        raise ValidationError(errors)
