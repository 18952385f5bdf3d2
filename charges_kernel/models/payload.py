"""
JSON payload codec for frozen domain dataclasses.

Charge detail payloads (calculator input plus breakdown) are stored as a
single JSON document.  ``to_payload`` flattens a dataclass tree into JSON
types; ``from_payload`` rebuilds it from the dataclass type hints.

Decimals travel as strings so no value ever passes through a float.
"""

from __future__ import annotations

import dataclasses
import types
import typing
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import Any, Union, get_args, get_origin


def to_payload(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_payload(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [to_payload(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted(to_payload(v) for v in value)
    if isinstance(value, dict):
        return {str(k): to_payload(v) for k, v in value.items()}
    return value


@lru_cache(maxsize=None)
def _hints(cls: type) -> dict[str, Any]:
    return typing.get_type_hints(cls)


def _coerce(tp: Any, value: Any) -> Any:
    if value is None:
        return None
    origin = get_origin(tp)
    args = get_args(tp)
    if origin in (Union, types.UnionType):
        candidates = [a for a in args if a is not type(None)]
        return _coerce(candidates[0], value)
    if tp is Decimal:
        return Decimal(str(value))
    if tp is datetime:
        return datetime.fromisoformat(value)
    if tp is date:
        return date.fromisoformat(value)
    if isinstance(tp, type) and issubclass(tp, Enum):
        return tp(value)
    if isinstance(tp, type) and dataclasses.is_dataclass(tp):
        return from_payload(tp, value)
    if origin is tuple:
        return tuple(_coerce(args[0], v) for v in value)
    if origin in (frozenset, set):
        return frozenset(_coerce(args[0], v) for v in value)
    if origin is dict:
        return {k: _coerce(args[1], v) for k, v in value.items()}
    return value


def from_payload(cls: type, data: dict[str, Any]) -> Any:
    """Rebuild ``cls`` from a payload produced by ``to_payload``."""
    hints = _hints(cls)
    kwargs = {}
    for f in dataclasses.fields(cls):
        if f.name in data:
            kwargs[f.name] = _coerce(hints[f.name], data[f.name])
    return cls(**kwargs)
