"""Keyed extension registries consulted by the write/read pipeline.

Registries are filled at configuration time and only read while operations
run. Registration takes a lock so configuration modules may run from several
threads; lookups are plain dictionary reads.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from .contracts import FieldValidator, TypeConverter, ValueGenerator
from .dialects import Dialect
from .exceptions import GenerationError
from .metadata import FieldMetadata
from .sql_generator import SQLGenerator
from .tags import Tag

logger = logging.getLogger(__name__)


class FunctionGenerator:
    """Adapts a plain `fn(entity, field)` callable to `ValueGenerator`."""

    def __init__(self, fn: Callable[[Any, FieldMetadata], Any]):
        self._fn = fn

    def generate(self, entity: Any, field: FieldMetadata) -> Any:
        return self._fn(entity, field)

    def __repr__(self) -> str:
        return f"FunctionGenerator({getattr(self._fn, '__name__', self._fn)!r})"


class FunctionValidator:
    """Adapts a plain `fn(value, field)` callable to `FieldValidator`."""

    def __init__(self, fn: Callable[[Any, FieldMetadata], None]):
        self._fn = fn

    def validate(self, value: Any, field: FieldMetadata) -> None:
        self._fn(value, field)


class TypeConverterRegistry:
    """Converters keyed by tag type, optionally specialised per dialect."""

    def __init__(self) -> None:
        self._generic: Dict[Type[Tag], TypeConverter] = {}
        self._by_dialect: Dict[Tuple[Type[Tag], Dialect], TypeConverter] = {}
        self._lock = threading.Lock()

    def register(
        self,
        tag_type: Type[Tag],
        converter: TypeConverter,
        dialect: Optional[Dialect] = None,
    ) -> None:
        if not (hasattr(converter, "to_db") and hasattr(converter, "from_db")):
            raise TypeError(
                f"Converter for {tag_type.__name__} must define to_db() and from_db()."
            )
        with self._lock:
            if dialect is None:
                self._generic[tag_type] = converter
            else:
                self._by_dialect[(tag_type, dialect)] = converter
        logger.debug("Registered converter %r for %s (dialect=%s)", converter, tag_type.__name__, dialect)

    def get(self, tag_type: Type[Tag], dialect: Optional[Dialect] = None) -> Optional[TypeConverter]:
        if dialect is not None:
            converter = self._by_dialect.get((tag_type, dialect))
            if converter is not None:
                return converter
        return self._generic.get(tag_type)

    def converters_for(self, field: FieldMetadata, dialect: Optional[Dialect] = None) -> List[TypeConverter]:
        """Return converters matching the field's tags, in tag order."""

        found: List[TypeConverter] = []
        for tag in field.tags:
            converter = self.get(type(tag), dialect)
            if converter is not None:
                found.append(converter)
        return found


class ValidatorRegistry:
    """Validators keyed by tag type."""

    def __init__(self) -> None:
        self._validators: Dict[Type[Tag], FieldValidator] = {}
        self._lock = threading.Lock()

    def register(self, tag_type: Type[Tag], validator: FieldValidator | Callable[[Any, FieldMetadata], None]) -> None:
        if not hasattr(validator, "validate"):
            if not callable(validator):
                raise TypeError(f"Validator for {tag_type.__name__} must be callable or define validate().")
            validator = FunctionValidator(validator)
        with self._lock:
            self._validators[tag_type] = validator
        logger.debug("Registered validator for %s", tag_type.__name__)

    def get(self, tag_type: Type[Tag]) -> Optional[FieldValidator]:
        return self._validators.get(tag_type)

    def validators_for(self, field: FieldMetadata) -> List[FieldValidator]:
        """Return validators matching the field's tags, in tag order."""

        found: List[FieldValidator] = []
        for tag in field.tags:
            validator = self._validators.get(type(tag))
            if validator is not None:
                found.append(validator)
        return found


class ValueGeneratorRegistry:
    """Value generators keyed by logical name."""

    def __init__(self) -> None:
        self._generators: Dict[str, ValueGenerator] = {}
        self._lock = threading.Lock()

    def register(self, name: str, generator: ValueGenerator | Callable[[Any, FieldMetadata], Any]) -> None:
        if not isinstance(name, str) or not name:
            raise ValueError("Generator name cannot be empty.")
        if generator is None:
            raise ValueError("Generator cannot be None.")
        if not hasattr(generator, "generate"):
            if not callable(generator):
                raise TypeError(f"Generator {name!r} must be callable or define generate().")
            generator = FunctionGenerator(generator)
        with self._lock:
            self._generators[name] = generator
        logger.debug("Registered value generator %r", name)

    def unregister(self, name: str) -> None:
        with self._lock:
            self._generators.pop(name, None)

    def exists(self, name: str) -> bool:
        return name in self._generators

    def get(self, name: str) -> ValueGenerator:
        generator = self._generators.get(name)
        if generator is None:
            raise GenerationError(f"No value generator registered with name {name!r}.")
        return generator


class SQLGeneratorRegistry:
    """SQL generators keyed by dialect, falling back to generic ANSI SQL."""

    def __init__(self, default: Optional[SQLGenerator] = None) -> None:
        self._generators: Dict[Dialect, SQLGenerator] = {}
        self._default = default or SQLGenerator()
        self._lock = threading.Lock()

    @property
    def default(self) -> SQLGenerator:
        return self._default

    def register(self, dialect: Dialect, generator: SQLGenerator) -> None:
        with self._lock:
            self._generators[dialect] = generator
        logger.debug("Registered SQL generator %s for %s", type(generator).__name__, dialect)

    def get(self, dialect: Optional[Dialect]) -> SQLGenerator:
        if dialect is None:
            return self._default
        return self._generators.get(dialect, self._default)


@dataclass
class Registries:
    """The four registries owned by one mapper configuration."""

    converters: TypeConverterRegistry = field(default_factory=TypeConverterRegistry)
    validators: ValidatorRegistry = field(default_factory=ValidatorRegistry)
    generators: ValueGeneratorRegistry = field(default_factory=ValueGeneratorRegistry)
    sql_generators: SQLGeneratorRegistry = field(default_factory=SQLGeneratorRegistry)
