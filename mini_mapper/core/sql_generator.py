"""SQL statement rendering for mapped models.

`SQLGenerator` renders generic ANSI statements with `:column` placeholders.
Dialect subclasses override only the fragments that differ: identifier
quoting, the placeholder token, the clause returning a generated id, and
pagination. Every statement shape is assembled from those hooks, so an
override composes with the rest of the generator instead of duplicating it.
"""

from __future__ import annotations

import re
from typing import Mapping, Sequence, Type

from .converters import Json
from .exceptions import SQLGenerationError
from .metadata import EntityMetadata, FieldMetadata
from .tags import Tag

LIMIT_PARAM = "__limit"
OFFSET_PARAM = "__offset"


class SQLGenerator:
    """Generic ANSI SQL generator used when no dialect generator applies."""

    name: str = "ansi"
    quote_char: str = ""
    supports_returning: bool = False

    def q(self, ident: str) -> str:
        """Quote SQL identifier."""

        if not self.quote_char:
            return ident
        return f"{self.quote_char}{ident}{self.quote_char}"

    def table_sql(self, meta: EntityMetadata) -> str:
        if meta.schema:
            return f"{self.q(meta.schema)}.{self.q(meta.table)}"
        return self.q(meta.table)

    def get_placeholder(self, field: FieldMetadata) -> str:
        """Return the bind token for a field; the bound name is its column."""

        return f":{field.column_name}"

    def returning_clause(self, meta: EntityMetadata) -> str:
        """Return `RETURNING` clause when dialect supports it."""

        if self.supports_returning and meta.has_generated_id:
            return f" RETURNING {self.q(meta.id_field.column_name)}"
        return ""

    def output_clause(self, meta: EntityMetadata) -> str:
        """Fragment placed between the column list and `VALUES`."""

        return ""

    def generate_insert(self, meta: EntityMetadata, fields: Sequence[FieldMetadata]) -> str:
        table_sql = self.table_sql(meta)
        if not fields:
            return f"INSERT INTO {table_sql}{self.output_clause(meta)} DEFAULT VALUES{self.returning_clause(meta)}"

        columns = ", ".join(self.q(f.column_name) for f in fields)
        placeholders = ", ".join(self.get_placeholder(f) for f in fields)
        return (
            f"INSERT INTO {table_sql} ({columns}){self.output_clause(meta)} "
            f"VALUES ({placeholders}){self.returning_clause(meta)}"
        )

    def generate_update(self, meta: EntityMetadata, fields: Sequence[FieldMetadata]) -> str:
        set_fields = [f for f in fields if not f.is_id]
        if not set_fields:
            raise SQLGenerationError(
                f"Cannot UPDATE {meta.model.__name__}: no writable columns besides the id."
            )
        set_clause = ", ".join(
            f"{self.q(f.column_name)} = {self.get_placeholder(f)}" for f in set_fields
        )
        return f"UPDATE {self.table_sql(meta)} SET {set_clause} WHERE {self.where_id(meta)}"

    def generate_delete(self, meta: EntityMetadata) -> str:
        return f"DELETE FROM {self.table_sql(meta)} WHERE {self.where_id(meta)}"

    def generate_select(self, meta: EntityMetadata) -> str:
        return f"SELECT * FROM {self.table_sql(meta)}"

    def generate_select_by_id(self, meta: EntityMetadata) -> str:
        return f"SELECT * FROM {self.table_sql(meta)} WHERE {self.where_id(meta)}"

    def generate_count(self, meta: EntityMetadata) -> str:
        return f"SELECT COUNT(*) FROM {self.table_sql(meta)}"

    def generate_exists_by_id(self, meta: EntityMetadata) -> str:
        return f"SELECT COUNT(*) FROM {self.table_sql(meta)} WHERE {self.where_id(meta)}"

    def where_id(self, meta: EntityMetadata) -> str:
        id_field = meta.id_field
        if id_field is None:
            raise SQLGenerationError(
                f"{meta.model.__name__} has no id field; mark one with Id()."
            )
        return f"{self.q(id_field.column_name)} = {self.get_placeholder(id_field)}"

    def paginate(self, sql: str) -> str:
        """Append limit/offset bound as `:__limit` and `:__offset`."""

        return f"{sql} LIMIT :{LIMIT_PARAM} OFFSET :{OFFSET_PARAM}"

    def count_wrapper(self, sql: str) -> str:
        return f"SELECT COUNT(*) FROM ({sql}) count_query"


class PostgresSQLGenerator(SQLGenerator):
    """PostgreSQL (`RETURNING` ids, casts for tagged placeholders)."""

    name = "postgres"
    supports_returning = True
    casts: Mapping[Type[Tag], str] = {Json: "jsonb"}

    def get_placeholder(self, field: FieldMetadata) -> str:
        placeholder = super().get_placeholder(field)
        for tag in field.tags:
            cast = self.casts.get(type(tag))
            if cast:
                return f"{placeholder}::{cast}"
        return placeholder


class SQLiteSQLGenerator(SQLGenerator):
    """SQLite (`RETURNING` ids, double-quoted identifiers)."""

    name = "sqlite"
    quote_char = '"'
    supports_returning = True


class MySQLSQLGenerator(SQLGenerator):
    """MySQL (backtick identifiers, ids read through `lastrowid`)."""

    name = "mysql"
    quote_char = "`"


class H2SQLGenerator(SQLGenerator):
    """H2 uses the generic statement shapes."""

    name = "h2"


class SQLServerSQLGenerator(SQLGenerator):
    """SQL Server (bracket identifiers, `OUTPUT INSERTED`, OFFSET/FETCH)."""

    name = "sqlserver"

    def q(self, ident: str) -> str:
        return f"[{ident}]"

    def output_clause(self, meta: EntityMetadata) -> str:
        if meta.has_generated_id:
            return f" OUTPUT INSERTED.{self.q(meta.id_field.column_name)}"
        return ""

    def paginate(self, sql: str) -> str:
        if not _has_top_level_order_by(sql):
            sql += " ORDER BY (SELECT NULL)"
        return f"{sql} OFFSET :{OFFSET_PARAM} ROWS FETCH NEXT :{LIMIT_PARAM} ROWS ONLY"


_ORDER_BY_SCAN = re.compile(
    r"'(?:[^']|'')*'"
    r'|"(?:[^"]|"")*"'
    r"|\[[^\]]*\]"
    r"|(?P<open>\()"
    r"|(?P<close>\))"
    r"|(?P<order>\bORDER\s+BY\b)",
    re.IGNORECASE,
)


def _has_top_level_order_by(sql: str) -> bool:
    """True when ORDER BY appears outside literals, identifiers and parentheses."""

    depth = 0
    for match in _ORDER_BY_SCAN.finditer(sql):
        if match.group("open"):
            depth += 1
        elif match.group("close"):
            depth -= 1
        elif match.group("order") and depth == 0:
            return True
    return False
