"""DB-API adapter implementation for the core database port."""

from __future__ import annotations

import contextlib
import logging
import re
import sqlite3
from typing import Any, Dict, Iterator, List, Mapping, Tuple

from ...core.types import DriverParams, QueryParams, RowMapping, Rows

logger = logging.getLogger(__name__)

PARAMSTYLES = ("named", "qmark", "format", "pyformat", "numeric")

_TOKEN = re.compile(
    r"'(?:[^']|'')*'"
    r'|"(?:[^"]|"")*"'
    r"|::"
    r"|(?<!:):(?P<name>[A-Za-z_]\w*)"
    r"|%"
)


def convert_params(sql: str, params: QueryParams, paramstyle: str) -> Tuple[str, DriverParams]:
    """Rewrite `:name` placeholders for a driver's paramstyle.

    String literals, quoted identifiers and `::` casts are left untouched.
    For `format`/`pyformat` drivers literal `%` signs are doubled.

    Returns:
        Tuple of rewritten SQL and driver parameters (a dict for
        `named`/`pyformat`, a list otherwise).
    """

    if paramstyle not in PARAMSTYLES:
        raise ValueError(f"Unsupported paramstyle: {paramstyle}")
    if params is None:
        return sql, None
    if paramstyle == "named":
        return sql, dict(params)

    percent = paramstyle in ("format", "pyformat")
    positional: List[Any] = []
    numbered: Dict[str, int] = {}

    def replace(match: re.Match[str]) -> str:
        name = match.group("name")
        token = match.group(0)
        if name is None:
            return token.replace("%", "%%") if percent else token
        if name not in params:
            raise ValueError(f"Missing value for SQL parameter {name!r}.")
        if paramstyle == "pyformat":
            return f"%({name})s"
        if paramstyle == "numeric":
            if name not in numbered:
                positional.append(params[name])
                numbered[name] = len(positional)
            return f":{numbered[name]}"
        positional.append(params[name])
        return "?" if paramstyle == "qmark" else "%s"

    converted = _TOKEN.sub(replace, sql)
    if paramstyle == "pyformat":
        return converted, dict(params)
    return converted, positional


def _row_to_mapping(cursor: Any, row: Any) -> RowMapping:
    """Normalize row object to mapping.

    Supports mapping rows directly and tuple/list rows via
    `cursor.description`.
    """

    if isinstance(row, Mapping):
        return row

    if isinstance(row, (tuple, list)):
        desc = getattr(cursor, "description", None)
        if not desc:
            raise TypeError("Cursor has no description; cannot map tuple rows to dict.")
        cols = [d[0] for d in desc]
        return dict(zip(cols, row))

    try:
        m = dict(row)
    except (TypeError, ValueError) as exc:
        raise TypeError(f"Unsupported row type: {type(row)}") from exc
    return m


class Handle:
    """`HandlePort` implementation bound to one DB-API connection."""

    def __init__(self, database: Database):
        self._database = database

    def _cursor(self, sql: str, params: QueryParams) -> Any:
        conn = self._database._require_open_connection()
        driver_sql, driver_params = convert_params(sql, params, self._database.paramstyle)
        logger.debug("Executing SQL: %s", driver_sql)
        cur = conn.cursor()
        if driver_params is None:
            cur.execute(driver_sql)
        else:
            cur.execute(driver_sql, driver_params)
        return cur

    def execute(self, sql: str, params: QueryParams = None) -> int:
        """Execute a statement and return the affected row count."""

        cur = self._cursor(sql, params)
        return cur.rowcount

    def execute_and_return_key(self, sql: str, params: QueryParams, key_column: str) -> Any:
        """Execute an INSERT and return the key assigned by the database.

        Statements carrying `RETURNING`/`OUTPUT` are read from their result
        row; otherwise the cursor's `lastrowid` is used.
        """

        cur = self._cursor(sql, params)
        upper = sql.upper()
        if " RETURNING " in upper or " OUTPUT " in upper:
            rows = cur.fetchall()
            if not rows:
                return None
            mapping = _row_to_mapping(cur, rows[0])
            for column, value in mapping.items():
                if str(column).lower() == key_column.lower():
                    return value
            return next(iter(mapping.values()), None)
        return getattr(cur, "lastrowid", None)

    def query(self, sql: str, params: QueryParams = None) -> Rows:
        """Execute query and return all rows as normalized mappings."""

        cur = self._cursor(sql, params)
        return [_row_to_mapping(cur, r) for r in cur.fetchall()]

    def stream(self, sql: str, params: QueryParams = None) -> Iterator[RowMapping]:
        """Execute query and yield rows in `cursor.arraysize` batches."""

        cur = self._cursor(sql, params)
        while True:
            rows = cur.fetchmany()
            if not rows:
                return
            for row in rows:
                yield _row_to_mapping(cur, row)


class Database:
    """Thin DB-API wrapper implementing the mapper's database port."""

    def __init__(self, conn: Any, paramstyle: str = "named"):
        """Create database adapter.

        Args:
            conn: DB-API connection object.
            paramstyle: Driver paramstyle; statements written with `:name`
                placeholders are rewritten to it.
        """

        if paramstyle not in PARAMSTYLES:
            raise ValueError(f"Unsupported paramstyle: {paramstyle}")
        self.conn: Any | None = conn
        self.paramstyle = paramstyle
        self._closed = False
        self._tx_depth = 0

    def _require_open_connection(self) -> Any:
        if self._closed or self.conn is None:
            raise RuntimeError("connection is closed")
        return self.conn

    def _should_begin_sqlite_transaction(self, conn: Any) -> bool:
        # sqlite3 in autocommit mode needs an explicit BEGIN
        if not isinstance(conn, sqlite3.Connection):
            return False
        if conn.isolation_level is not None:
            return False
        return not bool(getattr(conn, "in_transaction", False))

    @property
    def in_transaction(self) -> bool:
        return self._tx_depth > 0

    @contextlib.contextmanager
    def handle(self) -> Iterator[Handle]:
        """Provide a handle without opening a transaction."""

        self._require_open_connection()
        yield Handle(self)

    @contextlib.contextmanager
    def transaction(self) -> Iterator[Handle]:
        """Provide commit/rollback transaction scope.

        A transaction opened while another is active joins the outer one;
        only the outermost scope commits or rolls back.
        """

        conn = self._require_open_connection()
        if self._tx_depth:
            self._tx_depth += 1
            try:
                yield Handle(self)
            finally:
                self._tx_depth -= 1
            return

        self._tx_depth = 1
        try:
            if self._should_begin_sqlite_transaction(conn):
                conn.execute("BEGIN")
            logger.debug("Transaction started")
            yield Handle(self)
            conn.commit()
            logger.debug("Transaction committed")
        except BaseException:
            conn.rollback()
            logger.debug("Transaction rolled back")
            raise
        finally:
            self._tx_depth = 0

    def close(self) -> None:
        """Close underlying connection."""

        if self._closed:
            return
        conn = self.conn
        self._closed = True
        self.conn = None
        close = getattr(conn, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()
