"""Model metadata extraction and the per-process metadata cache."""

from __future__ import annotations

import logging
import threading
import types
from dataclasses import Field, dataclass, field, fields, is_dataclass
from typing import (
    Annotated,
    Any,
    Callable,
    Dict,
    Generic,
    Optional,
    Tuple,
    Type,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from .exceptions import MetadataError
from .tags import Column, DefaultValue, Generated, Id, Tag, Transient, metadata_tags, resolve_tags

logger = logging.getLogger(__name__)

T = TypeVar("T")
TagT = TypeVar("TagT", bound=Tag)


@dataclass(frozen=True)
class FieldMetadata:
    """Mapping description of one persisted dataclass field."""

    field_name: str
    column_name: str
    value_type: Any
    annotation: Any
    tags: Tuple[Tag, ...] = ()
    is_id: bool = False
    is_generated: bool = False
    init: bool = True

    def has_tag(self, tag_type: Type[Tag]) -> bool:
        return any(isinstance(tag, tag_type) for tag in self.tags)

    def tag(self, tag_type: Type[TagT]) -> Optional[TagT]:
        """Return the first tag of the given type, or `None`."""

        for tag in self.tags:
            if isinstance(tag, tag_type):
                return tag
        return None

    def tags_of(self, tag_type: Type[TagT]) -> list[TagT]:
        return [tag for tag in self.tags if isinstance(tag, tag_type)]

    def default_value_tag(self) -> Optional[DefaultValue]:
        return self.tag(DefaultValue)

    def generated_tags(self) -> list[Generated]:
        return self.tags_of(Generated)

    def get_value(self, obj: Any) -> Any:
        return getattr(obj, self.field_name)

    def set_value(self, obj: Any, value: Any) -> None:
        setattr(obj, self.field_name, value)


@dataclass(frozen=True)
class EntityMetadata(Generic[T]):
    """Normalized model description used by SQL generation and mapping."""

    model: Type[T]
    table: str
    schema: Optional[str]
    fields: Tuple[FieldMetadata, ...]
    id_field: Optional[FieldMetadata] = None
    query_only: bool = False
    _by_column: Dict[str, FieldMetadata] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "_by_column",
            {f.column_name.lower(): f for f in self.fields},
        )

    @property
    def full_table_name(self) -> str:
        return f"{self.schema}.{self.table}" if self.schema else self.table

    @property
    def has_id(self) -> bool:
        return self.id_field is not None

    @property
    def has_generated_id(self) -> bool:
        return self.id_field is not None and self.id_field.is_generated

    @property
    def columns(self) -> list[str]:
        return [f.column_name for f in self.fields]

    def insertable_fields(self) -> list[FieldMetadata]:
        """Fields written by INSERT; a database-generated id is left out."""

        if self.has_generated_id:
            return [f for f in self.fields if not f.is_id]
        return list(self.fields)

    def updatable_fields(self) -> list[FieldMetadata]:
        return [f for f in self.fields if not f.is_id]

    def field_for_column(self, column_name: str) -> Optional[FieldMetadata]:
        """Look a field up by column name, ignoring case."""

        return self._by_column.get(column_name.lower())


def require_dataclass_model(cls: Type[Any]) -> None:
    """Validate that a class is a dataclass model."""

    if not isinstance(cls, type) or not is_dataclass(cls):
        name = getattr(cls, "__name__", type(cls).__name__)
        raise MetadataError(f"{name} must be a dataclass.")


def table_name(model_or_cls: Any) -> str:
    """Resolve table name from model class or instance.

    Uses `__table__` override when present, otherwise lowercased class name.
    """

    cls = model_or_cls if isinstance(model_or_cls, type) else type(model_or_cls)
    name = getattr(cls, "__table__", None)
    return name if isinstance(name, str) and name else cls.__name__.lower()


def schema_name(cls: Type[Any]) -> Optional[str]:
    schema = getattr(cls, "__schema__", None)
    return schema if isinstance(schema, str) and schema else None


def build_entity_metadata(model: Type[T]) -> EntityMetadata[T]:
    """Build model metadata from dataclass fields and declared tags.

    Args:
        model: Dataclass model type.

    Returns:
        Immutable metadata object.

    Raises:
        MetadataError: If the model is not a dataclass or its tags are
            inconsistent (two id fields, duplicate columns, a default value
            with both or neither of literal and generator).
    """

    require_dataclass_model(model)
    hints = _model_type_hints(model)

    mapped: list[FieldMetadata] = []
    for dc_field in fields(model):
        field_meta = _build_field(model, dc_field, hints.get(dc_field.name, dc_field.type))
        if field_meta is not None:
            mapped.append(field_meta)

    ids = [f for f in mapped if f.is_id]
    if len(ids) > 1:
        raise MetadataError(
            f"{model.__name__} declares more than one id field: "
            f"{[f.field_name for f in ids]}."
        )

    seen: dict[str, str] = {}
    for f in mapped:
        key = f.column_name.lower()
        if key in seen:
            raise MetadataError(
                f"{model.__name__} maps fields {seen[key]!r} and {f.field_name!r} "
                f"to the same column {f.column_name!r}."
            )
        seen[key] = f.field_name

    meta = EntityMetadata(
        model=model,
        table=table_name(model),
        schema=schema_name(model),
        fields=tuple(mapped),
        id_field=ids[0] if ids else None,
        query_only=bool(getattr(model, "__query_only__", False)),
    )
    logger.debug(
        "Built metadata for %s: table=%s columns=%s",
        model.__name__,
        meta.full_table_name,
        meta.columns,
    )
    return meta


def _build_field(model: Type[Any], dc_field: Field[Any], annotation: Any) -> Optional[FieldMetadata]:
    value_type, annotated_tags = _unwrap_annotation(annotation)
    tags = resolve_tags([*annotated_tags, *metadata_tags(dc_field.metadata)])
    context = f"{model.__name__}.{dc_field.name}"

    if any(isinstance(tag, Transient) for tag in tags):
        return None

    column = next((tag for tag in tags if isinstance(tag, Column)), None)
    if column is not None and (not isinstance(column.name, str) or not column.name.strip()):
        raise MetadataError(f"{context} has an empty Column name.")

    default = next((tag for tag in tags if isinstance(tag, DefaultValue)), None)
    if default is not None:
        has_literal = default.value is not None
        has_generator = bool(default.generator)
        if has_literal and has_generator:
            raise MetadataError(
                f"{context} sets both 'value' and 'generator' on DefaultValue."
            )
        if not has_literal and not has_generator:
            raise MetadataError(
                f"{context} DefaultValue needs either 'value' or 'generator'."
            )

    for generated in tags:
        if isinstance(generated, Generated) and not generated.generator:
            raise MetadataError(f"{context} has a Generated tag without generator name.")

    id_tag = next((tag for tag in tags if isinstance(tag, Id)), None)
    return FieldMetadata(
        field_name=dc_field.name,
        column_name=column.name.strip() if column is not None else dc_field.name,
        value_type=value_type,
        annotation=annotation,
        tags=tags,
        is_id=id_tag is not None,
        is_generated=bool(id_tag and id_tag.generated),
        init=dc_field.init,
    )


def _model_type_hints(cls: Type[Any]) -> dict[str, Any]:
    try:
        return dict(get_type_hints(cls, include_extras=True))
    except (NameError, TypeError, AttributeError) as exc:
        raise MetadataError(
            f"Cannot resolve type annotations of {cls.__name__}: {exc}"
        ) from exc


def _unwrap_annotation(annotation: Any) -> tuple[Any, list[Tag]]:
    """Strip `Annotated` and `Optional` wrappers, collecting `Tag` extras."""

    tags: list[Tag] = []
    while True:
        origin = get_origin(annotation)
        if origin is Annotated:
            base, *extras = get_args(annotation)
            tags.extend(extra for extra in extras if isinstance(extra, Tag))
            annotation = base
            continue
        if origin in (Union, types.UnionType):
            args = [arg for arg in get_args(annotation) if arg is not type(None)]
            if len(args) == 1:
                annotation = args[0]
                continue
        return annotation, tags


class MetadataCache:
    """Thread-safe memo of `EntityMetadata` keyed by model type.

    The first caller for a model builds its metadata while holding a
    per-model lock; concurrent callers for the same model wait and reuse the
    result, so each model is introspected exactly once.
    """

    def __init__(self, builder: Callable[[Type[Any]], EntityMetadata[Any]] = build_entity_metadata):
        self._builder = builder
        self._entries: dict[type, EntityMetadata[Any]] = {}
        self._locks: dict[type, threading.Lock] = {}
        self._guard = threading.Lock()

    def get(self, model: Type[T]) -> EntityMetadata[T]:
        meta = self._entries.get(model)
        if meta is not None:
            return meta

        with self._guard:
            lock = self._locks.setdefault(model, threading.Lock())
        with lock:
            meta = self._entries.get(model)
            if meta is None:
                meta = self._builder(model)
                self._entries[model] = meta
        return meta

    def __contains__(self, model: object) -> bool:
        return model in self._entries

    def __len__(self) -> int:
        return len(self._entries)
