from __future__ import annotations

import unittest
from dataclasses import dataclass, field
from typing import Annotated, Any, Optional

from mini_mapper.core.builtins import BuiltinModule
from mini_mapper.core.converters import Json, JsonConverter
from mini_mapper.core.dialects import ANSI, MYSQL, POSTGRES, SQLITE, SQLSERVER, Dialect
from mini_mapper.core.exceptions import GenerationError, SQLGenerationError
from mini_mapper.core.metadata import FieldMetadata, build_entity_metadata
from mini_mapper.core.registries import (
    Registries,
    SQLGeneratorRegistry,
    TypeConverterRegistry,
    ValidatorRegistry,
    ValueGeneratorRegistry,
)
from mini_mapper.core.sql_generator import (
    MySQLSQLGenerator,
    PostgresSQLGenerator,
    SQLGenerator,
    SQLiteSQLGenerator,
    SQLServerSQLGenerator,
)
from mini_mapper.core.validation import NotNull


@dataclass
class Article:
    __table__ = "articles"
    id: Optional[int] = field(default=None, metadata={"pk": True, "auto": True})
    title: str = ""
    body: Annotated[Optional[dict], Json()] = None


@dataclass
class Setting:
    __table__ = "settings"
    __schema__ = "cfg"
    key: str = field(default="", metadata={"pk": True})
    value: str = ""


@dataclass
class LogLine:
    message: str = ""


@dataclass
class OnlyId:
    id: int = field(default=0, metadata={"pk": True})


class UpperPlaceholderGenerator(SQLGenerator):
    def get_placeholder(self, field: FieldMetadata) -> str:
        return f":{field.column_name.upper()}"


class GenericSQLGeneratorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.gen = SQLGenerator()
        self.article = build_entity_metadata(Article)

    def test_statement_shapes(self) -> None:
        meta = self.article
        self.assertEqual(
            self.gen.generate_insert(meta, meta.insertable_fields()),
            "INSERT INTO articles (title, body) VALUES (:title, :body)",
        )
        self.assertEqual(
            self.gen.generate_update(meta, meta.fields),
            "UPDATE articles SET title = :title, body = :body WHERE id = :id",
        )
        self.assertEqual(self.gen.generate_delete(meta), "DELETE FROM articles WHERE id = :id")
        self.assertEqual(self.gen.generate_select(meta), "SELECT * FROM articles")
        self.assertEqual(
            self.gen.generate_select_by_id(meta), "SELECT * FROM articles WHERE id = :id"
        )
        self.assertEqual(self.gen.generate_count(meta), "SELECT COUNT(*) FROM articles")
        self.assertEqual(
            self.gen.generate_exists_by_id(meta),
            "SELECT COUNT(*) FROM articles WHERE id = :id",
        )

    def test_schema_is_prefixed(self) -> None:
        meta = build_entity_metadata(Setting)
        self.assertEqual(self.gen.generate_select(meta), "SELECT * FROM cfg.settings")
        self.assertEqual(
            SQLiteSQLGenerator().generate_delete(meta),
            'DELETE FROM "cfg"."settings" WHERE "key" = :key',
        )

    def test_insert_without_columns_uses_default_values(self) -> None:
        meta = self.article
        self.assertEqual(self.gen.generate_insert(meta, []), "INSERT INTO articles DEFAULT VALUES")

    def test_statements_needing_an_id_fail_without_one(self) -> None:
        meta = build_entity_metadata(LogLine)
        for render in (
            self.gen.generate_delete,
            self.gen.generate_select_by_id,
            self.gen.generate_exists_by_id,
        ):
            with self.assertRaises(SQLGenerationError):
                render(meta)
        with self.assertRaises(SQLGenerationError):
            self.gen.generate_update(meta, meta.fields)

    def test_update_without_non_id_columns_fails(self) -> None:
        meta = build_entity_metadata(OnlyId)
        with self.assertRaises(SQLGenerationError):
            self.gen.generate_update(meta, meta.fields)

    def test_pagination_and_count_wrapper_use_bound_parameters(self) -> None:
        self.assertEqual(
            self.gen.paginate("SELECT * FROM articles"),
            "SELECT * FROM articles LIMIT :__limit OFFSET :__offset",
        )
        self.assertEqual(
            self.gen.count_wrapper("SELECT * FROM articles"),
            "SELECT COUNT(*) FROM (SELECT * FROM articles) count_query",
        )

    def test_overriding_only_placeholder_composes_into_every_statement(self) -> None:
        meta = self.article
        gen = UpperPlaceholderGenerator()
        self.assertEqual(
            gen.generate_insert(meta, meta.insertable_fields()),
            "INSERT INTO articles (title, body) VALUES (:TITLE, :BODY)",
        )
        self.assertEqual(
            gen.generate_update(meta, meta.fields),
            "UPDATE articles SET title = :TITLE, body = :BODY WHERE id = :ID",
        )
        self.assertEqual(gen.generate_delete(meta), "DELETE FROM articles WHERE id = :ID")


class DialectSQLGeneratorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.article = build_entity_metadata(Article)

    def test_postgres_returning_and_json_cast(self) -> None:
        meta = self.article
        self.assertEqual(
            PostgresSQLGenerator().generate_insert(meta, meta.insertable_fields()),
            "INSERT INTO articles (title, body) VALUES (:title, :body::jsonb) RETURNING id",
        )

    def test_sqlite_quotes_and_returns_generated_id(self) -> None:
        meta = self.article
        self.assertEqual(
            SQLiteSQLGenerator().generate_insert(meta, meta.insertable_fields()),
            'INSERT INTO "articles" ("title", "body") VALUES (:title, :body) RETURNING "id"',
        )

    def test_returning_only_for_generated_ids(self) -> None:
        meta = build_entity_metadata(Setting)
        sql = PostgresSQLGenerator().generate_insert(meta, meta.insertable_fields())
        self.assertNotIn("RETURNING", sql)

    def test_mysql_uses_backticks_without_returning(self) -> None:
        meta = self.article
        self.assertEqual(
            MySQLSQLGenerator().generate_insert(meta, meta.insertable_fields()),
            "INSERT INTO `articles` (`title`, `body`) VALUES (:title, :body)",
        )

    def test_sqlserver_output_clause_and_offset_fetch(self) -> None:
        meta = self.article
        gen = SQLServerSQLGenerator()
        self.assertEqual(
            gen.generate_insert(meta, meta.insertable_fields()),
            "INSERT INTO [articles] ([title], [body]) OUTPUT INSERTED.[id] VALUES (:title, :body)",
        )
        self.assertEqual(
            gen.paginate("SELECT * FROM [articles]"),
            "SELECT * FROM [articles] ORDER BY (SELECT NULL) "
            "OFFSET :__offset ROWS FETCH NEXT :__limit ROWS ONLY",
        )
        self.assertEqual(
            gen.paginate("SELECT * FROM [articles] ORDER BY [id]"),
            "SELECT * FROM [articles] ORDER BY [id] OFFSET :__offset ROWS FETCH NEXT :__limit ROWS ONLY",
        )

    def test_sqlserver_ignores_nested_or_quoted_order_by(self) -> None:
        gen = SQLServerSQLGenerator()
        suffix = " OFFSET :__offset ROWS FETCH NEXT :__limit ROWS ONLY"
        cases = [
            "SELECT * FROM (SELECT TOP 5 * FROM [articles] ORDER BY [id]) recent",
            "SELECT * FROM [articles] WHERE [title] = 'order by'",
            "SELECT [order by] FROM [articles]",
        ]
        for sql in cases:
            with self.subTest(sql=sql):
                self.assertEqual(gen.paginate(sql), sql + " ORDER BY (SELECT NULL)" + suffix)

        nested_then_sorted = "SELECT * FROM (SELECT [id] FROM [articles]) a ORDER BY [id]"
        self.assertEqual(gen.paginate(nested_then_sorted), nested_then_sorted + suffix)


class RegistryTests(unittest.TestCase):
    def test_sql_generator_registry_falls_back_to_generic(self) -> None:
        registry = SQLGeneratorRegistry()
        sqlite = SQLiteSQLGenerator()
        registry.register(SQLITE, sqlite)

        self.assertIs(registry.get(Dialect("sqlite")), sqlite)
        self.assertIs(registry.get(None), registry.default)
        self.assertIs(registry.get(Dialect("oracle")), registry.default)
        self.assertIs(registry.get(MYSQL), registry.default)
        self.assertIsInstance(registry.default, SQLGenerator)

    def test_dialect_names_are_normalised(self) -> None:
        self.assertEqual(Dialect(" postgres "), POSTGRES)
        self.assertEqual(str(ANSI), "ANSI")
        with self.assertRaises(ValueError):
            Dialect("")

    def test_converter_registry_prefers_dialect_specific_entry(self) -> None:
        registry = TypeConverterRegistry()
        generic = JsonConverter()
        special = JsonConverter()
        registry.register(Json, generic)
        registry.register(Json, special, dialect=POSTGRES)

        body = build_entity_metadata(Article).field_for_column("body")
        self.assertEqual(registry.converters_for(body, POSTGRES), [special])
        self.assertEqual(registry.converters_for(body, SQLSERVER), [generic])
        self.assertEqual(registry.converters_for(body), [generic])

    def test_converter_registry_rejects_incomplete_converter(self) -> None:
        with self.assertRaises(TypeError):
            TypeConverterRegistry().register(Json, object())

    def test_validator_registry_wraps_callables(self) -> None:
        seen: list[Any] = []
        registry = ValidatorRegistry()
        registry.register(NotNull, lambda value, field: seen.append(value))

        @dataclass
        class Named:
            name: Annotated[Optional[str], NotNull()] = None

        name = build_entity_metadata(Named).fields[0]
        validators = registry.validators_for(name)
        self.assertEqual(len(validators), 1)
        validators[0].validate("x", name)
        self.assertEqual(seen, ["x"])

    def test_value_generator_registry(self) -> None:
        registry = ValueGeneratorRegistry()
        registry.register("seq", lambda entity, field: "ORD-1")

        self.assertTrue(registry.exists("seq"))
        self.assertEqual(registry.get("seq").generate(None, None), "ORD-1")
        registry.unregister("seq")
        self.assertFalse(registry.exists("seq"))

        with self.assertRaises(GenerationError):
            registry.get("seq")
        with self.assertRaises(ValueError):
            registry.register("", lambda entity, field: None)
        with self.assertRaises(ValueError):
            registry.register("none", None)

    def test_builtin_module_populates_every_registry(self) -> None:
        registries = Registries()
        BuiltinModule().configure(registries)

        self.assertIsInstance(registries.sql_generators.get(POSTGRES), PostgresSQLGenerator)
        self.assertIsInstance(registries.sql_generators.get(SQLSERVER), SQLServerSQLGenerator)
        self.assertTrue(registries.generators.exists("timestamp"))
        self.assertTrue(registries.generators.exists("uuid"))
        self.assertIsNotNone(registries.validators.get(NotNull))
        self.assertIsNotNone(registries.converters.get(Json))


if __name__ == "__main__":
    unittest.main()
