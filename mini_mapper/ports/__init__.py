"""Public port exports for concrete adapter implementations."""

from .db_api import Database, Handle

__all__ = [
    "Database",
    "Handle",
]
