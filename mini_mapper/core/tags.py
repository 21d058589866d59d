"""Declarative tag vocabulary attached to model fields.

Tags are small frozen dataclasses. A field receives tags through
`field(metadata={"tags": (...)})` or through `Annotated[T, tag, ...]`.
A tag class may itself carry other tags in `__tags__`; those are resolved
transitively when model metadata is built, so `UpdatedAt()` behaves as if
`Generated("timestamp", on_update=True)` had been written on the field.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Iterable, Mapping, Optional, Tuple

from .exceptions import MetadataError


class Tag:
    """Base class for every declarative field tag."""

    __tags__: ClassVar[Tuple["Tag", ...]] = ()
    repeatable: ClassVar[bool] = False


@dataclass(frozen=True)
class Column(Tag):
    """Overrides the column name of a field."""

    name: str


@dataclass(frozen=True)
class Id(Tag):
    """Marks the identifier field; `generated` means the database assigns it."""

    generated: bool = False


@dataclass(frozen=True)
class Transient(Tag):
    """Excludes a field from persistence and row mapping."""


@dataclass(frozen=True)
class DefaultValue(Tag):
    """Fills an absent value on INSERT from a literal or a named generator.

    Exactly one of `value` and `generator` must be set; the check runs when
    the model metadata is built.
    """

    value: Any = None
    generator: Optional[str] = None


@dataclass(frozen=True)
class Generated(Tag):
    """Overwrites the field with a named generator's output."""

    repeatable: ClassVar[bool] = True

    generator: str
    on_insert: bool = True
    on_update: bool = False


@dataclass(frozen=True)
class CreatedAt(Tag):
    """Timestamp set once on INSERT."""

    __tags__ = (Generated("timestamp"),)


@dataclass(frozen=True)
class UpdatedAt(Tag):
    """Timestamp set on INSERT and refreshed on every UPDATE."""

    __tags__ = (Generated("timestamp", on_insert=True, on_update=True),)


def resolve_tags(direct: Iterable[Tag]) -> Tuple[Tag, ...]:
    """Expand composed tags depth-first.

    The first tag found for a type wins, except for repeatable tag types
    where every distinct instance is kept. Each tag type is expanded at most
    once, so self-referencing or mutually referencing tags terminate.
    """

    resolved: list[Tag] = []
    seen_types: set[type] = set()
    expanded: set[type] = set()

    def visit(tags: Iterable[Any]) -> None:
        for tag in tags:
            if not isinstance(tag, Tag):
                raise MetadataError(
                    f"Expected Tag instance, got {type(tag).__name__}: {tag!r}."
                )
            tag_type = type(tag)
            if tag_type.repeatable:
                if tag not in resolved:
                    resolved.append(tag)
            elif tag_type not in seen_types:
                seen_types.add(tag_type)
                resolved.append(tag)

            if tag_type in expanded:
                continue
            expanded.add(tag_type)
            visit(tag_type.__tags__)

    visit(direct)
    return tuple(resolved)


def metadata_tags(metadata: Mapping[str, Any]) -> list[Tag]:
    """Collect tags declared through dataclass field metadata.

    Besides the explicit `"tags"` entry, the shorthand keys `pk`, `auto`,
    `column` and `transient` are accepted.
    """

    tags: list[Tag] = []
    raw = metadata.get("tags", ())
    if isinstance(raw, Tag):
        raw = (raw,)
    tags.extend(raw)

    if metadata.get("pk"):
        tags.append(Id(generated=bool(metadata.get("auto", False))))
    column = metadata.get("column")
    if column is not None:
        tags.append(Column(column))
    if metadata.get("transient"):
        tags.append(Transient())
    return tags
