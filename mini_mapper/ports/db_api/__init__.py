"""DB-API adapter exports."""

from .database import Database, Handle, convert_params

__all__ = [
    "Database",
    "Handle",
    "convert_params",
]
