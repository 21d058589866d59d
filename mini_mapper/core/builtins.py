"""Module registering the built-in validators, converters and generators."""

from __future__ import annotations

from . import dialects
from .converters import EnumColumn, EnumConverter, Json, JsonConverter
from .generators import TimestampGenerator, UUIDGenerator
from .registries import Registries
from .sql_generator import (
    H2SQLGenerator,
    MySQLSQLGenerator,
    PostgresSQLGenerator,
    SQLiteSQLGenerator,
    SQLServerSQLGenerator,
)
from .validation import (
    Choices,
    ChoicesValidator,
    Email,
    EmailValidator,
    Max,
    MaxValidator,
    Min,
    MinValidator,
    NotBlank,
    NotBlankValidator,
    NotNull,
    NotNullValidator,
    Pattern,
    PatternValidator,
    Size,
    SizeValidator,
)


class BuiltinModule:
    """Installs every built-in extension; later modules may override entries."""

    def configure(self, registries: Registries) -> None:
        validators = registries.validators
        validators.register(NotNull, NotNullValidator())
        validators.register(NotBlank, NotBlankValidator())
        validators.register(Min, MinValidator())
        validators.register(Max, MaxValidator())
        validators.register(Size, SizeValidator())
        validators.register(Pattern, PatternValidator())
        validators.register(Choices, ChoicesValidator())
        validators.register(Email, EmailValidator())

        registries.converters.register(Json, JsonConverter())
        registries.converters.register(EnumColumn, EnumConverter())

        registries.generators.register("timestamp", TimestampGenerator())
        registries.generators.register("uuid", UUIDGenerator())

        sql = registries.sql_generators
        sql.register(dialects.POSTGRES, PostgresSQLGenerator())
        sql.register(dialects.SQLITE, SQLiteSQLGenerator())
        sql.register(dialects.MYSQL, MySQLSQLGenerator())
        sql.register(dialects.H2, H2SQLGenerator())
        sql.register(dialects.SQLSERVER, SQLServerSQLGenerator())
