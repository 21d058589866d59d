"""Shared core type aliases used across contracts, mapper, and ports."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

NamedParams = Dict[str, Any]
PositionalParams = List[Any]
QueryParams = Union[Mapping[str, Any], None]
DriverParams = Union[NamedParams, PositionalParams, Sequence[Any], None]

RowMapping = Mapping[str, Any]
Rows = List[RowMapping]
MaybeRow = Optional[RowMapping]
