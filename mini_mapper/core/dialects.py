"""Dialect keys used to select SQL generators and type converters."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Dialect:
    """Opaque database family identifier.

    Two dialects are equal when their upper-cased names are equal, so
    `Dialect("postgres")` and `POSTGRES` select the same registry entries.
    """

    name: str

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("Dialect name must be a non-empty string.")
        object.__setattr__(self, "name", self.name.strip().upper())

    def __str__(self) -> str:
        return self.name


ANSI = Dialect("ANSI")
POSTGRES = Dialect("POSTGRES")
MYSQL = Dialect("MYSQL")
SQLITE = Dialect("SQLITE")
H2 = Dialect("H2")
SQLSERVER = Dialect("SQLSERVER")
