"""Write-side parameter binding and read-side row mapping."""

from __future__ import annotations

from dataclasses import MISSING, fields as dc_fields
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, Generic, Iterable, List, Optional, Sequence, TypeVar, get_origin
from uuid import UUID

from .dialects import Dialect
from .exceptions import MappingError
from .metadata import EntityMetadata, FieldMetadata
from .types import RowMapping

T = TypeVar("T")


def bind_fields(
    entity: Any,
    fields: Sequence[FieldMetadata],
    registry: Any,
    dialect: Optional[Dialect] = None,
) -> Dict[str, Any]:
    """Read field values and apply write converters, keyed by column name."""

    params: Dict[str, Any] = {}
    for field in fields:
        value = field.get_value(entity)
        for converter in registry.converters_for(field, dialect):
            value = converter.to_db(value, field)
        params[field.column_name] = value
    return params


class RowMapper(Generic[T]):
    """Builds model instances from result rows.

    Columns are matched to fields case-insensitively. Unknown columns are
    ignored; fields without a column keep their dataclass default, and
    required constructor fields without one receive `None`.
    """

    def __init__(self, meta: EntityMetadata[T], registry: Any, dialect: Optional[Dialect] = None):
        self.meta = meta
        self.registry = registry
        self.dialect = dialect
        self._required = {
            f.name
            for f in dc_fields(meta.model)
            if f.init and f.default is MISSING and f.default_factory is MISSING
        }

    def map_row(self, row: RowMapping) -> T:
        init_values: Dict[str, Any] = {}
        late_values: Dict[str, Any] = {}
        for column, raw in row.items():
            field = self.meta.field_for_column(str(column))
            if field is None:
                continue
            value = self.read_value(field, raw)
            if field.init:
                init_values[field.field_name] = value
            else:
                late_values[field.field_name] = value

        for name in self._required:
            init_values.setdefault(name, None)

        instance = self.meta.model(**init_values)
        for name, value in late_values.items():
            # init=False fields may live on frozen projections
            object.__setattr__(instance, name, value)
        return instance

    def map_rows(self, rows: Iterable[RowMapping]) -> List[T]:
        return [self.map_row(row) for row in rows]

    __call__ = map_row

    def read_value(self, field: FieldMetadata, raw: Any) -> Any:
        """Apply read converters, then coerce and check the declared type."""

        value = raw
        try:
            for converter in self.registry.converters_for(field, self.dialect):
                value = converter.from_db(value, field)
            if value is None:
                return None
            value = coerce_value(value, field.value_type)
        except MappingError:
            raise
        except (ValueError, TypeError, ArithmeticError) as exc:
            raise MappingError.type_mismatch(
                self.meta.model, field.field_name, field.value_type, raw
            ) from exc
        if not _matches(value, field.value_type):
            raise MappingError.type_mismatch(
                self.meta.model, field.field_name, field.value_type, value
            )
        return value


def coerce_value(value: Any, target: Any) -> Any:
    """Convert common driver representations to the declared scalar type."""

    if target is Any or not isinstance(target, type):
        return value
    # datetime subclasses date, so date fields still truncate it below
    if isinstance(value, target) and not (target is date and isinstance(value, datetime)):
        return value

    if target is bool and isinstance(value, (int, Decimal)):
        return bool(value)
    if target is float and isinstance(value, (int, Decimal)) and not isinstance(value, bool):
        return float(value)
    if target is int and isinstance(value, (float, Decimal)) and value == int(value):
        return int(value)
    if target is Decimal and isinstance(value, (int, float, str)) and not isinstance(value, bool):
        return Decimal(str(value))
    if target is datetime and isinstance(value, str):
        return datetime.fromisoformat(value)
    if target is date and isinstance(value, str):
        return date.fromisoformat(value)
    if target is date and isinstance(value, datetime):
        return value.date()
    if target is time and isinstance(value, str):
        return time.fromisoformat(value)
    if target is UUID and isinstance(value, str):
        return UUID(value)
    if target is UUID and isinstance(value, (bytes, bytearray)) and len(value) == 16:
        return UUID(bytes=bytes(value))
    return value


def _matches(value: Any, declared: Any) -> bool:
    check = get_origin(declared) or declared
    if check is Any or check is object or not isinstance(check, type):
        return True
    if check is float and isinstance(value, int):
        return True
    return isinstance(value, check)
