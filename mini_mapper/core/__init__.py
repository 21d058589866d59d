"""Public core API for model metadata, registries, and CRUD orchestration."""

from .builtins import BuiltinModule
from .contracts import (
    DatabasePort,
    DatabaseProvider,
    FieldValidator,
    HandlePort,
    Module,
    TypeConverter,
    ValueGenerator,
)
from .converters import EnumColumn, EnumConverter, EnumType, Json, JsonConverter
from .database import MapperBuilder, MapperConfig, MapperDatabase
from .dialects import ANSI, H2, MYSQL, POSTGRES, SQLITE, SQLSERVER, Dialect
from .exceptions import (
    BatchValidationError,
    FieldError,
    GenerationError,
    InvalidEntityError,
    MapperError,
    MappingError,
    MetadataError,
    SQLGenerationError,
    ValidationError,
)
from .generators import TimestampGenerator, UUIDGenerator
from .mapper import RowMapper, bind_fields
from .metadata import EntityMetadata, FieldMetadata, MetadataCache, build_entity_metadata
from .page import PageResult
from .registries import (
    Registries,
    SQLGeneratorRegistry,
    TypeConverterRegistry,
    ValidatorRegistry,
    ValueGeneratorRegistry,
)
from .repository import Repository
from .sql_generator import (
    H2SQLGenerator,
    MySQLSQLGenerator,
    PostgresSQLGenerator,
    SQLGenerator,
    SQLiteSQLGenerator,
    SQLServerSQLGenerator,
)
from .tags import Column, CreatedAt, DefaultValue, Generated, Id, Tag, Transient, UpdatedAt
from .validation import Choices, Email, Max, Min, NotBlank, NotNull, Pattern, Size, validate_entity
from .values import Operation, apply_generated_values, parse_literal

__all__ = [
    "ANSI",
    "H2",
    "MYSQL",
    "POSTGRES",
    "SQLITE",
    "SQLSERVER",
    "Dialect",
    "Tag",
    "Column",
    "Id",
    "Transient",
    "DefaultValue",
    "Generated",
    "CreatedAt",
    "UpdatedAt",
    "NotNull",
    "NotBlank",
    "Min",
    "Max",
    "Size",
    "Pattern",
    "Choices",
    "Email",
    "Json",
    "EnumColumn",
    "EnumType",
    "JsonConverter",
    "EnumConverter",
    "TimestampGenerator",
    "UUIDGenerator",
    "BuiltinModule",
    "DatabasePort",
    "DatabaseProvider",
    "HandlePort",
    "Module",
    "TypeConverter",
    "FieldValidator",
    "ValueGenerator",
    "EntityMetadata",
    "FieldMetadata",
    "MetadataCache",
    "build_entity_metadata",
    "Registries",
    "TypeConverterRegistry",
    "ValidatorRegistry",
    "ValueGeneratorRegistry",
    "SQLGeneratorRegistry",
    "SQLGenerator",
    "PostgresSQLGenerator",
    "SQLiteSQLGenerator",
    "MySQLSQLGenerator",
    "H2SQLGenerator",
    "SQLServerSQLGenerator",
    "Operation",
    "apply_generated_values",
    "parse_literal",
    "validate_entity",
    "RowMapper",
    "bind_fields",
    "PageResult",
    "MapperBuilder",
    "MapperConfig",
    "MapperDatabase",
    "Repository",
    "MapperError",
    "MetadataError",
    "InvalidEntityError",
    "SQLGenerationError",
    "GenerationError",
    "MappingError",
    "FieldError",
    "ValidationError",
    "BatchValidationError",
]
