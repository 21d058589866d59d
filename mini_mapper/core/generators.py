"""Built-in value generators registered as `timestamp` and `uuid`."""

from __future__ import annotations

import time as _time
import uuid
from datetime import date, datetime, time, timezone
from typing import Any, Callable, Dict

from .metadata import FieldMetadata


class TimestampGenerator:
    """Current time in the representation of the field's declared type.

    `datetime` values are timezone-aware UTC unless `utc=False`; `int` fields
    get epoch milliseconds and `float` fields epoch seconds.
    """

    def __init__(self, utc: bool = True):
        self.utc = utc

    def _now(self) -> datetime:
        return datetime.now(timezone.utc) if self.utc else datetime.now()

    def generate(self, entity: Any, field: FieldMetadata) -> Any:
        suppliers: Dict[Any, Callable[[], Any]] = {
            datetime: self._now,
            date: lambda: self._now().date(),
            time: lambda: self._now().time(),
            int: lambda: int(_time.time() * 1000),
            float: _time.time,
            str: lambda: self._now().isoformat(),
        }
        supplier = suppliers.get(field.value_type)
        if supplier is None:
            raise TypeError(
                f"TimestampGenerator does not support field type {field.value_type!r}."
            )
        return supplier()


class UUIDGenerator:
    """Random UUID4, as `UUID` or its string form for `str` fields."""

    def generate(self, entity: Any, field: FieldMetadata) -> Any:
        value = uuid.uuid4()
        if field.value_type is str:
            return str(value)
        return value
