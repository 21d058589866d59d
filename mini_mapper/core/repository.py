"""Typed per-model facade over `MapperDatabase`."""

from __future__ import annotations

from typing import Any, Generic, Iterable, List, Optional, Type, TypeVar

from .database import MapperDatabase
from .metadata import EntityMetadata
from .page import PageResult
from .types import QueryParams

T = TypeVar("T")


class Repository(Generic[T]):
    """CRUD repository bound to one model type.

    Every call forwards to the owning `MapperDatabase`; the repository holds
    no state of its own besides the model and its metadata.
    """

    def __init__(self, mapper: MapperDatabase, model: Type[T]):
        """Create repository for a model type.

        Args:
            mapper: Configured mapper database.
            model: Dataclass model type.
        """

        self.mapper = mapper
        self.model = model
        self.meta: EntityMetadata[T] = mapper.metadata(model)

    def insert(self, obj: T) -> T:
        return self.mapper.insert(obj)

    def insert_all(self, objects: Iterable[T]) -> List[T]:
        return self.mapper.insert_all(objects)

    def update(self, obj: T) -> int:
        return self.mapper.update(obj)

    def update_all(self, objects: Iterable[T]) -> int:
        return self.mapper.update_all(objects)

    def save(self, obj: T) -> T:
        return self.mapper.save(obj)

    def delete(self, obj: T) -> int:
        return self.mapper.delete(obj)

    def delete_all(self, objects: Iterable[T]) -> int:
        return self.mapper.delete_all(objects)

    def delete_by_id(self, id_value: Any) -> int:
        return self.mapper.delete_by_id(self.model, id_value)

    def delete_by_ids(self, ids: Iterable[Any]) -> int:
        return self.mapper.delete_by_ids(self.model, ids)

    def find_all(self, limit: Optional[int] = None, offset: int = 0) -> List[T]:
        return self.mapper.find_all(self.model, limit, offset)

    def find_by_id(self, id_value: Any) -> Optional[T]:
        return self.mapper.find_by_id(self.model, id_value)

    def find_all_by_ids(self, ids: Iterable[Any]) -> List[T]:
        return self.mapper.find_all_by_ids(self.model, ids)

    def find_first(self) -> Optional[T]:
        return self.mapper.find_first(self.model)

    def exists(self, id_value: Any) -> bool:
        return self.mapper.exists(self.model, id_value)

    def count(self) -> int:
        return self.mapper.count(self.model)

    def query(self, sql: str, params: QueryParams = None) -> List[T]:
        """Run custom SQL and map rows to the repository model."""

        return self.mapper.query(sql, self.model, params)

    def query_one(self, sql: str, params: QueryParams = None) -> Optional[T]:
        return self.mapper.query_one(sql, self.model, params)

    def page(self, page: int, size: int) -> PageResult[T]:
        """Return one 1-based page of the whole table."""

        return self.mapper.query_page(self.model, page, size)
