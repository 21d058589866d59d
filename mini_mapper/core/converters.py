"""Built-in type converters and the tags that select them."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .metadata import FieldMetadata
from .tags import Tag


class EnumType(str, Enum):
    """Stored representation of an enum column."""

    STRING = "string"
    ORDINAL = "ordinal"
    VALUE = "value"


@dataclass(frozen=True)
class EnumColumn(Tag):
    """Stores an `Enum` field by name, ordinal position, or value."""

    type: EnumType = EnumType.STRING


@dataclass(frozen=True)
class Json(Tag):
    """Stores the field as JSON text."""


class JsonConverter:
    """Serializes dict/list values to JSON text and parses them back."""

    def to_db(self, value: Any, field: FieldMetadata) -> Any:
        if value is None or isinstance(value, (str, bytes, bytearray, memoryview)):
            return value
        return json.dumps(value)

    def from_db(self, value: Any, field: FieldMetadata) -> Any:
        if value is None or isinstance(value, (dict, list)):
            return value
        if isinstance(value, (bytes, bytearray, memoryview)):
            value = bytes(value).decode("utf-8")
        if not isinstance(value, str):
            return value
        try:
            return json.loads(value)
        except json.JSONDecodeError as exc:
            raise ValueError(
                f"Cannot deserialize JSON for field {field.field_name!r}: {value!r}."
            ) from exc


class EnumConverter:
    """Converts `Enum` members according to the field's `EnumColumn` tag."""

    def to_db(self, value: Any, field: FieldMetadata) -> Any:
        if value is None:
            return None
        enum_type = _enum_type(field)
        member = value if isinstance(value, enum_type) else _lookup(enum_type, value, field)
        mode = _mode(field)
        if mode is EnumType.ORDINAL:
            return list(enum_type).index(member)
        if mode is EnumType.VALUE:
            return member.value
        return member.name

    def from_db(self, value: Any, field: FieldMetadata) -> Any:
        if value is None:
            return None
        enum_type = _enum_type(field)
        if isinstance(value, enum_type):
            return value
        if _mode(field) is EnumType.ORDINAL:
            members = list(enum_type)
            try:
                return members[int(value)]
            except (IndexError, ValueError, TypeError) as exc:
                raise ValueError(
                    f"Invalid ordinal {value!r} for enum {enum_type.__name__} "
                    f"on field {field.field_name!r}."
                ) from exc
        return _lookup(enum_type, value, field)


def _enum_type(field: FieldMetadata) -> type[Enum]:
    enum_type = field.value_type
    if not (isinstance(enum_type, type) and issubclass(enum_type, Enum)):
        raise TypeError(
            f"Field {field.field_name!r} uses EnumColumn but is not annotated with an Enum."
        )
    return enum_type


def _mode(field: FieldMetadata) -> EnumType:
    tag = field.tag(EnumColumn)
    return tag.type if tag is not None else EnumType.STRING


def _lookup(enum_type: type[Enum], value: Any, field: FieldMetadata) -> Enum:
    if isinstance(value, str):
        try:
            return enum_type[value]
        except KeyError:
            pass
    try:
        return enum_type(value)
    except ValueError as exc:
        raise ValueError(
            f"Invalid enum value {value!r} for field {field.field_name!r}."
        ) from exc
