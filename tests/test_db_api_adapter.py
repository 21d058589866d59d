from __future__ import annotations

import sqlite3
import unittest

from mini_mapper.ports.db_api.database import Database, _row_to_mapping, convert_params


class _DummyCursor:
    def __init__(self, description=None, lastrowid=None):
        self.description = description
        self.lastrowid = lastrowid


class _RecordingCursor:
    def __init__(self, conn):
        self._conn = conn
        self.rowcount = 1
        self.lastrowid = 41
        self.description = None

    def execute(self, sql, params=None):  # noqa: ANN001,ANN201
        self._conn.executed.append((sql, params))

    def fetchall(self):  # noqa: ANN201
        return []


class _FakeConn:
    def __init__(self):
        self.executed: list[tuple] = []
        self.commit_calls = 0
        self.rollback_calls = 0
        self.close_calls = 0

    def cursor(self) -> _RecordingCursor:
        return _RecordingCursor(self)

    def commit(self) -> None:
        self.commit_calls += 1

    def rollback(self) -> None:
        self.rollback_calls += 1

    def close(self) -> None:
        self.close_calls += 1


class ConvertParamsTests(unittest.TestCase):
    SQL = "SELECT * FROM t WHERE a = :a AND b = :b AND c = :a"

    def test_named_passes_sql_through(self) -> None:
        sql, params = convert_params(self.SQL, {"a": 1, "b": 2}, "named")
        self.assertEqual(sql, self.SQL)
        self.assertEqual(params, {"a": 1, "b": 2})

    def test_qmark_and_format_are_positional(self) -> None:
        sql, params = convert_params(self.SQL, {"a": 1, "b": 2}, "qmark")
        self.assertEqual(sql, "SELECT * FROM t WHERE a = ? AND b = ? AND c = ?")
        self.assertEqual(params, [1, 2, 1])

        sql, params = convert_params(self.SQL, {"a": 1, "b": 2}, "format")
        self.assertEqual(sql, "SELECT * FROM t WHERE a = %s AND b = %s AND c = %s")
        self.assertEqual(params, [1, 2, 1])

    def test_numeric_reuses_position_for_repeated_names(self) -> None:
        sql, params = convert_params(self.SQL, {"a": 1, "b": 2}, "numeric")
        self.assertEqual(sql, "SELECT * FROM t WHERE a = :1 AND b = :2 AND c = :1")
        self.assertEqual(params, [1, 2])

    def test_pyformat_keeps_mapping(self) -> None:
        sql, params = convert_params("SELECT :a", {"a": 1}, "pyformat")
        self.assertEqual(sql, "SELECT %(a)s")
        self.assertEqual(params, {"a": 1})

    def test_literals_casts_and_percent_signs(self) -> None:
        sql, params = convert_params(
            "SELECT ':skip', x::text FROM t WHERE y LIKE 'a%' AND z = :z::jsonb",
            {"z": "{}"},
            "format",
        )
        self.assertEqual(
            sql, "SELECT ':skip', x::text FROM t WHERE y LIKE 'a%%' AND z = %s::jsonb"
        )
        self.assertEqual(params, ["{}"])

    def test_missing_parameter_and_bad_style(self) -> None:
        with self.assertRaises(ValueError):
            convert_params("SELECT :a", {}, "qmark")
        with self.assertRaises(ValueError):
            convert_params("SELECT 1", None, "invalid")

    def test_no_params_leaves_sql_untouched(self) -> None:
        self.assertEqual(convert_params("SELECT '%'", None, "format"), ("SELECT '%'", None))


class RowMappingTests(unittest.TestCase):
    def test_tuple_rows_need_description(self) -> None:
        with self.assertRaises(TypeError):
            _row_to_mapping(_DummyCursor(description=None), (1,))
        self.assertEqual(
            _row_to_mapping(_DummyCursor(description=[("id",), ("name",)]), (1, "a")),
            {"id": 1, "name": "a"},
        )

    def test_fallback_dict_and_unsupported_type(self) -> None:
        mapped = _row_to_mapping(_DummyCursor(), {("id", 1)})
        self.assertEqual(mapped["id"], 1)
        with self.assertRaises(TypeError):
            _row_to_mapping(_DummyCursor(), 12345)


class DatabaseAdapterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.conn = sqlite3.connect(":memory:")
        self.db = Database(self.conn)
        with self.db.transaction() as handle:
            handle.execute('CREATE TABLE "t" ("id" INTEGER PRIMARY KEY, "name" TEXT)')

    def tearDown(self) -> None:
        self.db.close()

    def test_execute_query_and_stream(self) -> None:
        with self.db.transaction() as handle:
            for name in ("a", "b", "c"):
                self.assertEqual(handle.execute('INSERT INTO "t" ("name") VALUES (:name)', {"name": name}), 1)

        with self.db.handle() as handle:
            rows = handle.query('SELECT * FROM "t" WHERE "name" = :name', {"name": "b"})
            streamed = [row["name"] for row in handle.stream('SELECT * FROM "t" ORDER BY "id"')]

        self.assertEqual(rows, [{"id": 2, "name": "b"}])
        self.assertEqual(streamed, ["a", "b", "c"])

    def test_generated_key_from_returning_and_lastrowid(self) -> None:
        with self.db.transaction() as handle:
            key = handle.execute_and_return_key(
                'INSERT INTO "t" ("name") VALUES (:name) RETURNING "id"', {"name": "x"}, "id"
            )
            second = handle.execute_and_return_key(
                'INSERT INTO "t" ("name") VALUES (:name)', {"name": "y"}, "id"
            )
        self.assertEqual(key, 1)
        self.assertEqual(second, 2)

    def test_transaction_rolls_back_on_error(self) -> None:
        with self.assertRaises(RuntimeError):
            with self.db.transaction() as handle:
                handle.execute('INSERT INTO "t" ("name") VALUES (:name)', {"name": "a"})
                raise RuntimeError("boom")

        with self.db.handle() as handle:
            self.assertEqual(handle.query('SELECT COUNT(*) AS "n" FROM "t"'), [{"n": 0}])

    def test_nested_transaction_joins_outer_scope(self) -> None:
        with self.assertRaises(RuntimeError):
            with self.db.transaction() as outer:
                outer.execute('INSERT INTO "t" ("name") VALUES (:name)', {"name": "outer"})
                with self.db.transaction() as inner:
                    self.assertTrue(self.db.in_transaction)
                    inner.execute('INSERT INTO "t" ("name") VALUES (:name)', {"name": "inner"})
                raise RuntimeError("boom")

        self.assertFalse(self.db.in_transaction)
        with self.db.handle() as handle:
            self.assertEqual(handle.query('SELECT COUNT(*) AS "n" FROM "t"'), [{"n": 0}])

    def test_autocommit_connection_still_rolls_back(self) -> None:
        self.conn.isolation_level = None
        with self.assertRaises(RuntimeError):
            with self.db.transaction() as handle:
                handle.execute('INSERT INTO "t" ("name") VALUES (:name)', {"name": "a"})
                raise RuntimeError("boom")

        with self.db.handle() as handle:
            self.assertEqual(handle.query('SELECT COUNT(*) AS "n" FROM "t"'), [{"n": 0}])

    def test_row_factory_mapping_is_supported(self) -> None:
        self.conn.row_factory = sqlite3.Row
        with self.db.transaction() as handle:
            handle.execute('INSERT INTO "t" ("name") VALUES (\'r\')')
        with self.db.handle() as handle:
            row = handle.query('SELECT * FROM "t"')[0]
        self.assertEqual(row["name"], "r")

    def test_closed_database_rejects_work(self) -> None:
        self.db.close()
        with self.assertRaises(RuntimeError):
            with self.db.handle():
                pass


class FakeConnectionTests(unittest.TestCase):
    def test_qmark_driver_receives_rewritten_sql_and_commit(self) -> None:
        conn = _FakeConn()
        db = Database(conn, paramstyle="qmark")
        with db.transaction() as handle:
            self.assertEqual(handle.execute("UPDATE t SET a = :a WHERE id = :id", {"a": 1, "id": 2}), 1)
            self.assertEqual(handle.execute_and_return_key("INSERT INTO t (a) VALUES (:a)", {"a": 1}, "id"), 41)

        self.assertEqual(
            conn.executed,
            [("UPDATE t SET a = ? WHERE id = ?", [1, 2]), ("INSERT INTO t (a) VALUES (?)", [1])],
        )
        self.assertEqual(conn.commit_calls, 1)
        self.assertEqual(conn.rollback_calls, 0)

    def test_rollback_on_base_exception(self) -> None:
        conn = _FakeConn()
        db = Database(conn)
        with self.assertRaises(KeyboardInterrupt):
            with db.transaction():
                raise KeyboardInterrupt
        self.assertEqual(conn.rollback_calls, 1)
        self.assertEqual(conn.commit_calls, 0)

    def test_context_manager_closes_connection(self) -> None:
        conn = _FakeConn()
        with Database(conn):
            pass
        self.assertEqual(conn.close_calls, 1)

    def test_invalid_paramstyle(self) -> None:
        with self.assertRaises(ValueError):
            Database(_FakeConn(), paramstyle="invalid")


if __name__ == "__main__":
    unittest.main()
