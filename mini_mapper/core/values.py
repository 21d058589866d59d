"""Value-generation stage: default values and generated fields."""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any
from uuid import UUID

from .exceptions import GenerationError
from .metadata import EntityMetadata, FieldMetadata

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    """Write operation a stage runs for."""

    INSERT = "insert"
    UPDATE = "update"


def parse_literal(raw: Any, target: Any) -> Any:
    """Convert a `DefaultValue` literal to the field's declared type.

    Non-string literals are used as given. Strings are parsed for `str`,
    `int`, `float`, `bool`, `Decimal`, `Enum` (by value, then by name),
    `datetime`, `date`, `time` and `UUID` fields; other types get the
    string unchanged.
    """

    if not isinstance(raw, str) or not isinstance(target, type):
        return raw
    if target is str:
        return raw
    if target is bool:
        lowered = raw.strip().lower()
        if lowered not in ("true", "false"):
            raise ValueError(f"Cannot parse {raw!r} as bool.")
        return lowered == "true"
    if target is int:
        return int(raw)
    if target is float:
        return float(raw)
    if target is Decimal:
        try:
            return Decimal(raw)
        except InvalidOperation as exc:
            raise ValueError(f"Cannot parse {raw!r} as Decimal.") from exc
    if issubclass(target, Enum):
        try:
            return target(raw)
        except ValueError:
            return target[raw]
    if target is datetime:
        return datetime.fromisoformat(raw)
    if target is date:
        return date.fromisoformat(raw)
    if target is time:
        return time.fromisoformat(raw)
    if target is UUID:
        return UUID(raw)
    return raw


def apply_generated_values(
    entity: Any,
    meta: EntityMetadata[Any],
    registry: Any,
    operation: Operation,
) -> None:
    """Fill defaults and generated fields of `entity` in place.

    Fields are visited in declaration order. For each field the default
    value (INSERT only, and only when the current value is `None`) is
    resolved before its `Generated` tags, which overwrite unconditionally
    when their flag matches `operation`.

    Raises:
        GenerationError: If a named generator is unknown or raises.
    """

    for field in meta.fields:
        if operation is Operation.INSERT:
            _apply_default(entity, field, registry)
        for generated in field.generated_tags():
            enabled = generated.on_insert if operation is Operation.INSERT else generated.on_update
            if not enabled:
                continue
            generator = registry.get(generated.generator)
            field.set_value(entity, _run(generator, generated.generator, entity, field))


def _apply_default(entity: Any, field: FieldMetadata, registry: Any) -> None:
    default = field.default_value_tag()
    if default is None or field.get_value(entity) is not None:
        return
    if default.generator:
        value = _run(registry.get(default.generator), default.generator, entity, field)
    else:
        try:
            value = parse_literal(default.value, field.value_type)
        except (ValueError, KeyError) as exc:
            raise GenerationError(
                f"Cannot convert default value {default.value!r} for field "
                f"{field.field_name!r} to {getattr(field.value_type, '__name__', field.value_type)}."
            ) from exc
    field.set_value(entity, value)


def _run(generator: Any, name: str, entity: Any, field: FieldMetadata) -> Any:
    try:
        value = generator.generate(entity, field)
    except GenerationError:
        raise
    except Exception as exc:
        raise GenerationError(
            f"Generator {name!r} failed for field {field.field_name!r}: {exc}"
        ) from exc
    logger.debug("Generator %r produced value for %s", name, field.field_name)
    return value
