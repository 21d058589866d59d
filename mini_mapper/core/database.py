"""CRUD orchestration over an external `DatabasePort`.

Every write runs the same pipeline: value generation, validation, SQL
generation, parameter binding, then execution inside a transaction obtained
from the executor. Batch variants finish the pure part of the pipeline for
every item before the transaction is opened, so a failing item means no
statement runs at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
    Type,
    TypeVar,
    Union,
)

from .builtins import BuiltinModule
from .contracts import DatabasePort, DatabaseProvider, HandlePort, Module
from .dialects import ANSI, Dialect
from .exceptions import BatchValidationError, InvalidEntityError, ValidationError
from .mapper import RowMapper, bind_fields, coerce_value
from .metadata import EntityMetadata, FieldMetadata, MetadataCache
from .page import PageResult
from .registries import Registries
from .sql_generator import LIMIT_PARAM, OFFSET_PARAM, SQLGenerator
from .types import QueryParams, RowMapping
from .validation import validate_entity
from .values import Operation, apply_generated_values

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

Statement = Tuple[Any, EntityMetadata[Any], str, Dict[str, Any]]


@dataclass(frozen=True)
class MapperConfig:
    """Validated configuration consumed by `MapperDatabase`."""

    database: Optional[DatabasePort] = None
    database_provider: Optional[DatabaseProvider] = None
    dialect: Dialect = ANSI
    modules: Tuple[Module, ...] = ()
    use_builtins: bool = True

    def __post_init__(self) -> None:
        if (self.database is None) == (self.database_provider is None):
            raise ValueError("Configure exactly one of database or database_provider.")
        if not isinstance(self.dialect, Dialect):
            raise TypeError(f"dialect must be a Dialect, got {type(self.dialect).__name__}.")


class MapperBuilder:
    """Collects mapper options; conflicts are reported by `build()`."""

    def __init__(self) -> None:
        self._database: Optional[DatabasePort] = None
        self._provider: Optional[DatabaseProvider] = None
        self._dialect: Dialect = ANSI
        self._modules: List[Module] = []
        self._use_builtins = True

    def with_database(self, database: DatabasePort) -> MapperBuilder:
        self._database = database
        return self

    def with_database_provider(self, provider: DatabaseProvider) -> MapperBuilder:
        self._provider = provider
        return self

    def with_dialect(self, dialect: Union[Dialect, str]) -> MapperBuilder:
        self._dialect = dialect if isinstance(dialect, Dialect) else Dialect(dialect)
        return self

    def install_module(self, module: Module) -> MapperBuilder:
        """Queue a module; modules configure registries in install order."""

        if not hasattr(module, "configure"):
            raise TypeError(f"{type(module).__name__} does not define configure().")
        self._modules.append(module)
        return self

    def without_builtins(self) -> MapperBuilder:
        self._use_builtins = False
        return self

    def config(self) -> MapperConfig:
        return MapperConfig(
            database=self._database,
            database_provider=self._provider,
            dialect=self._dialect,
            modules=tuple(self._modules),
            use_builtins=self._use_builtins,
        )

    def build(self) -> MapperDatabase:
        return MapperDatabase(self.config())


class MapperDatabase:
    """Entry point for CRUD, raw queries and transactions on mapped models."""

    def __init__(self, config: MapperConfig, *, metadata_cache: Optional[MetadataCache] = None):
        """Create the mapper and install configured modules.

        Args:
            config: Validated configuration.
            metadata_cache: Optional shared cache; a private one is created
                otherwise.
        """

        self.config = config
        self.dialect = config.dialect
        self.registries = Registries()
        self._cache = metadata_cache or MetadataCache()

        modules: List[Module] = [BuiltinModule()] if config.use_builtins else []
        modules.extend(config.modules)
        for module in modules:
            module.configure(self.registries)
            logger.debug("Installed module %s", type(module).__name__)

    @staticmethod
    def builder() -> MapperBuilder:
        return MapperBuilder()

    @property
    def database(self) -> DatabasePort:
        if self.config.database is not None:
            return self.config.database
        return self.config.database_provider()

    @property
    def sql_generator(self) -> SQLGenerator:
        return self.registries.sql_generators.get(self.dialect)

    def metadata(self, model: Type[T]) -> EntityMetadata[T]:
        return self._cache.get(model)

    def row_mapper(self, model: Type[T]) -> RowMapper[T]:
        return RowMapper(self.metadata(model), self.registries.converters, self.dialect)

    # -- preconditions --------------------------------------------------

    def _entity_metadata(self, entity: Any) -> EntityMetadata[Any]:
        if entity is None:
            raise InvalidEntityError("Entity cannot be None.")
        return self.metadata(type(entity))

    @staticmethod
    def _require_writable(meta: EntityMetadata[Any], action: str) -> None:
        if meta.query_only:
            raise InvalidEntityError(
                f"Cannot {action} query-only model {meta.model.__name__}; use query() instead."
            )

    @staticmethod
    def _require_id(meta: EntityMetadata[Any], action: str) -> FieldMetadata:
        if meta.id_field is None:
            raise InvalidEntityError(
                f"{meta.model.__name__} must declare an Id field to {action}."
            )
        return meta.id_field

    def _require_id_value(self, entity: Any, meta: EntityMetadata[Any], action: str) -> None:
        id_field = self._require_id(meta, action)
        if id_field.get_value(entity) is None:
            raise InvalidEntityError(
                f"Cannot {action} {meta.model.__name__} without a value for "
                f"{id_field.field_name!r}."
            )

    def _id_params(self, id_field: FieldMetadata, value: Any) -> Dict[str, Any]:
        for converter in self.registries.converters.converters_for(id_field, self.dialect):
            value = converter.to_db(value, id_field)
        return {id_field.column_name: value}

    # -- statement preparation -----------------------------------------

    def _prepare_insert(self, entity: Any) -> Statement:
        meta = self._entity_metadata(entity)
        self._require_writable(meta, "insert")
        apply_generated_values(entity, meta, self.registries.generators, Operation.INSERT)
        validate_entity(entity, meta, self.registries.validators)
        fields = meta.insertable_fields()
        sql = self.sql_generator.generate_insert(meta, fields)
        params = bind_fields(entity, fields, self.registries.converters, self.dialect)
        return entity, meta, sql, params

    def _prepare_update(self, entity: Any) -> Statement:
        meta = self._entity_metadata(entity)
        self._require_writable(meta, "update")
        self._require_id_value(entity, meta, "update")
        apply_generated_values(entity, meta, self.registries.generators, Operation.UPDATE)
        validate_entity(entity, meta, self.registries.validators)
        sql = self.sql_generator.generate_update(meta, meta.fields)
        params = bind_fields(entity, meta.fields, self.registries.converters, self.dialect)
        return entity, meta, sql, params

    def _prepare_delete(self, entity: Any) -> Statement:
        meta = self._entity_metadata(entity)
        self._require_writable(meta, "delete")
        self._require_id_value(entity, meta, "delete")
        sql = self.sql_generator.generate_delete(meta)
        params = bind_fields(entity, [meta.id_field], self.registries.converters, self.dialect)
        return entity, meta, sql, params

    def _prepare_batch(
        self, entities: Sequence[Any], prepare: Callable[[Any], Statement]
    ) -> List[Statement]:
        statements: List[Statement] = []
        failures: Dict[int, ValidationError] = {}
        for index, entity in enumerate(entities):
            try:
                statements.append(prepare(entity))
            except ValidationError as exc:
                failures[index] = exc
        if failures:
            raise BatchValidationError(failures)
        return statements

    def _execute_insert(self, handle: HandlePort, statement: Statement) -> None:
        entity, meta, sql, params = statement
        logger.debug("INSERT %s: %s", meta.model.__name__, sql)
        if not meta.has_generated_id:
            handle.execute(sql, params)
            return
        id_field = meta.id_field
        key = handle.execute_and_return_key(sql, params, id_field.column_name)
        if key is not None:
            id_field.set_value(entity, coerce_value(key, id_field.value_type))

    @staticmethod
    def _execute(handle: HandlePort, statement: Statement) -> int:
        _, meta, sql, params = statement
        logger.debug("Executing for %s: %s", meta.model.__name__, sql)
        return handle.execute(sql, params)

    # -- writes ----------------------------------------------------------

    def insert(self, entity: T) -> T:
        """Insert one entity; a database-generated id is written back to it."""

        statement = self._prepare_insert(entity)
        with self.database.transaction() as handle:
            self._execute_insert(handle, statement)
        return entity

    def insert_all(self, entities: Iterable[T]) -> List[T]:
        """Insert every entity in one transaction.

        Raises:
            BatchValidationError: If any item fails validation; nothing is
                executed in that case.
        """

        items = list(entities)
        if not items:
            return items
        statements = self._prepare_batch(items, self._prepare_insert)
        with self.database.transaction() as handle:
            for statement in statements:
                self._execute_insert(handle, statement)
        return items

    def update(self, entity: Any) -> int:
        statement = self._prepare_update(entity)
        with self.database.transaction() as handle:
            return self._execute(handle, statement)

    def update_all(self, entities: Iterable[Any]) -> int:
        items = list(entities)
        if not items:
            return 0
        statements = self._prepare_batch(items, self._prepare_update)
        with self.database.transaction() as handle:
            return sum(self._execute(handle, statement) for statement in statements)

    def save(self, entity: T) -> T:
        """Insert when the entity has no id value, update it otherwise."""

        meta = self._entity_metadata(entity)
        if meta.id_field is None or meta.id_field.get_value(entity) is None:
            return self.insert(entity)
        self.update(entity)
        return entity

    def delete(self, entity: Any) -> int:
        statement = self._prepare_delete(entity)
        with self.database.transaction() as handle:
            return self._execute(handle, statement)

    def delete_all(self, entities: Iterable[Any]) -> int:
        items = list(entities)
        if not items:
            return 0
        statements = [self._prepare_delete(entity) for entity in items]
        with self.database.transaction() as handle:
            return sum(self._execute(handle, statement) for statement in statements)

    def delete_by_id(self, model: Type[Any], id_value: Any) -> int:
        return self.delete_by_ids(model, [id_value])

    def delete_by_ids(self, model: Type[Any], ids: Iterable[Any]) -> int:
        id_values = list(ids)
        if not id_values:
            return 0
        meta = self.metadata(model)
        self._require_writable(meta, "delete")
        id_field = self._require_id(meta, "delete")
        sql = self.sql_generator.generate_delete(meta)
        params_list = [self._id_params(id_field, value) for value in id_values]
        logger.debug("DELETE %s x%d: %s", model.__name__, len(params_list), sql)
        with self.database.transaction() as handle:
            return sum(handle.execute(sql, params) for params in params_list)

    # -- typed reads -----------------------------------------------------

    def find_all(self, model: Type[T], limit: Optional[int] = None, offset: int = 0) -> List[T]:
        """Return all rows of a model, optionally one LIMIT/OFFSET window."""

        meta = self.metadata(model)
        generator = self.sql_generator
        sql = generator.generate_select(meta)
        params: Optional[Dict[str, Any]] = None
        if limit is not None:
            if limit < 0 or offset < 0:
                raise ValueError("limit and offset must be >= 0.")
            sql = generator.paginate(sql)
            params = {LIMIT_PARAM: limit, OFFSET_PARAM: offset}
        elif offset:
            raise ValueError("offset requires limit.")
        return self.query(sql, model, params)

    def find_by_id(self, model: Type[T], id_value: Any) -> Optional[T]:
        """Return the row with the given id, or `None` when absent."""

        meta = self.metadata(model)
        id_field = self._require_id(meta, "find by id")
        sql = self.sql_generator.generate_select_by_id(meta)
        return self.query_one(sql, model, self._id_params(id_field, id_value))

    def find_all_by_ids(self, model: Type[T], ids: Iterable[Any]) -> List[T]:
        """Return rows for `ids` in the given order, skipping missing ids."""

        id_values = list(ids)
        if not id_values:
            return []
        meta = self.metadata(model)
        id_field = self._require_id(meta, "find by id")
        sql = self.sql_generator.generate_select_by_id(meta)
        mapper = self.row_mapper(model)
        found: List[T] = []
        with self.database.handle() as handle:
            for value in id_values:
                rows = handle.query(sql, self._id_params(id_field, value))
                if rows:
                    found.append(mapper.map_row(rows[0]))
        return found

    def find_first(self, model: Type[T]) -> Optional[T]:
        rows = self.find_all(model, limit=1)
        return rows[0] if rows else None

    def exists(self, model: Type[Any], id_value: Any) -> bool:
        meta = self.metadata(model)
        id_field = self._require_id(meta, "check existence")
        sql = self.sql_generator.generate_exists_by_id(meta)
        return self.query_for_int(sql, self._id_params(id_field, id_value)) > 0

    def count(self, model: Type[Any]) -> int:
        meta = self.metadata(model)
        self._require_writable(meta, "count")
        return self.query_for_int(self.sql_generator.generate_count(meta))

    # -- raw SQL -----------------------------------------------------------

    def query(self, sql: str, model: Type[T], params: QueryParams = None) -> List[T]:
        """Run SQL verbatim and map every row to `model`."""

        mapper = self.row_mapper(model)
        with self.database.handle() as handle:
            rows = handle.query(sql, params)
        return mapper.map_rows(rows)

    def query_one(self, sql: str, model: Type[T], params: QueryParams = None) -> Optional[T]:
        """Run SQL verbatim and map the first row, or return `None`."""

        mapper = self.row_mapper(model)
        with self.database.handle() as handle:
            rows = handle.query(sql, params)
        return mapper.map_row(rows[0]) if rows else None

    def query_stream(self, sql: str, model: Type[T], params: QueryParams = None) -> Iterator[T]:
        """Lazily map rows; the handle stays open until the iterator is exhausted or closed."""

        mapper = self.row_mapper(model)
        with self.database.handle() as handle:
            for row in handle.stream(sql, params):
                yield mapper.map_row(row)

    def query_for_maps(self, sql: str, params: QueryParams = None) -> List[Dict[str, Any]]:
        with self.database.handle() as handle:
            return [dict(row) for row in handle.query(sql, params)]

    def query_for_map(self, sql: str, params: QueryParams = None) -> Optional[Dict[str, Any]]:
        rows = self.query_for_maps(sql, params)
        return rows[0] if rows else None

    def query_for_list(
        self, sql: str, result_type: Optional[Type[R]] = None, params: QueryParams = None
    ) -> List[R]:
        """Return the first column of every row, coerced to `result_type`."""

        with self.database.handle() as handle:
            rows = handle.query(sql, params)
        return [_first_column(row, result_type) for row in rows]

    def query_for_object(
        self, sql: str, result_type: Optional[Type[R]] = None, params: QueryParams = None
    ) -> Optional[R]:
        values = self.query_for_list(sql, result_type, params)
        return values[0] if values else None

    def query_for_int(self, sql: str, params: QueryParams = None) -> int:
        value = self.query_for_object(sql, int, params)
        return 0 if value is None else value

    def query_for_string(self, sql: str, params: QueryParams = None) -> Optional[str]:
        value = self.query_for_object(sql, None, params)
        return None if value is None else str(value)

    def query_page(
        self,
        source: Union[str, Type[T]],
        page: int,
        size: int,
        result_type: Optional[Type[T]] = None,
        params: QueryParams = None,
    ) -> PageResult[T]:
        """Return one 1-based page of a model table or of a SELECT statement.

        Args:
            source: Model type (pages its whole table) or SQL text.
            page: 1-based page number.
            size: Page size.
            result_type: Row type when `source` is SQL.
            params: Named parameters of the SQL.
        """

        if isinstance(source, type):
            result_type = source
            sql = self.sql_generator.generate_select(self.metadata(source))
        else:
            sql = source
        if result_type is None:
            raise TypeError("query_page() needs result_type when given SQL.")
        mapper = self.row_mapper(result_type)
        total, rows = self._page_rows(sql, page, size, params)
        return PageResult(mapper.map_rows(rows), page, size, total)

    def query_page_for_maps(
        self, sql: str, page: int, size: int, params: QueryParams = None
    ) -> PageResult[Dict[str, Any]]:
        total, rows = self._page_rows(sql, page, size, params)
        return PageResult([dict(row) for row in rows], page, size, total)

    def _page_rows(
        self, sql: str, page: int, size: int, params: QueryParams
    ) -> Tuple[int, List[RowMapping]]:
        if page < 1 or size < 1:
            raise ValueError("page and size must be >= 1.")
        generator = self.sql_generator
        paged_params = dict(params or {})
        paged_params[LIMIT_PARAM] = size
        paged_params[OFFSET_PARAM] = (page - 1) * size
        with self.database.handle() as handle:
            count_rows = handle.query(generator.count_wrapper(sql), params)
            total = _first_column(count_rows[0], int) if count_rows else 0
            rows = handle.query(generator.paginate(sql), paged_params)
        return total or 0, rows

    def execute_update(self, sql: str, params: QueryParams = None) -> int:
        """Run one data-changing statement in its own transaction."""

        with self.database.transaction() as handle:
            return handle.execute(sql, params)

    def execute_batch(self, sql: str, batch_params: Iterable[QueryParams]) -> List[int]:
        """Run one statement per parameter mapping, all in one transaction."""

        param_list = list(batch_params)
        with self.database.transaction() as handle:
            return [handle.execute(sql, params) for params in param_list]

    # -- escape hatches ----------------------------------------------------

    def in_transaction(self, fn: Callable[[HandlePort], R]) -> R:
        with self.database.transaction() as handle:
            return fn(handle)

    def with_handle(self, fn: Callable[[HandlePort], R]) -> R:
        with self.database.handle() as handle:
            return fn(handle)


def _first_column(row: RowMapping, result_type: Optional[type]) -> Any:
    value = next(iter(row.values()), None)
    if value is None or result_type is None:
        return value
    return coerce_value(value, result_type)
