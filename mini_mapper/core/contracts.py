"""Core port contracts used by adapters, registries, and the mapper facade."""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any, Iterator, List, Protocol

from .types import QueryParams, RowMapping

if TYPE_CHECKING:
    from .metadata import FieldMetadata
    from .registries import Registries


class HandlePort(Protocol):
    """Unit of work bound to one connection.

    Statements use `:name` placeholders; parameters are mappings keyed by
    placeholder name.
    """

    def execute(self, sql: str, params: QueryParams = None) -> int: ...

    def execute_and_return_key(
        self, sql: str, params: QueryParams, key_column: str
    ) -> Any: ...

    def query(self, sql: str, params: QueryParams = None) -> List[RowMapping]: ...

    def stream(self, sql: str, params: QueryParams = None) -> Iterator[RowMapping]: ...


class DatabasePort(Protocol):
    """External SQL executor behavior required by `MapperDatabase`."""

    def handle(self) -> AbstractContextManager[HandlePort]: ...

    def transaction(self) -> AbstractContextManager[HandlePort]: ...


class TypeConverter(Protocol):
    """Pair of transforms bridging in-memory and stored representations."""

    def to_db(self, value: Any, field: FieldMetadata) -> Any: ...

    def from_db(self, value: Any, field: FieldMetadata) -> Any: ...


class FieldValidator(Protocol):
    """Checks one field value; raises `ValidationError` on failure."""

    def validate(self, value: Any, field: FieldMetadata) -> None: ...


class ValueGenerator(Protocol):
    """Produces a field value from the whole entity.

    When it runs is decided by the field's `Generated` tag, not by the
    generator.
    """

    def generate(self, entity: Any, field: FieldMetadata) -> Any: ...


class Module(Protocol):
    """Configuration unit contributing registry entries."""

    def configure(self, registries: Registries) -> None: ...


class DatabaseProvider(Protocol):
    """Lazily supplies the executor, for frameworks that own its lifecycle."""

    def __call__(self) -> DatabasePort: ...
