"""
Configuration Loader (``charges_config.loader``).

Responsibility
--------------
Reads a YAML override file and folds it onto the default
``charges_config.schema.ChargesConfig``.  The runtime entry point is
``charges_config.get_active_config()``; callers do not use this module
directly except in tests and tooling.

Invariants enforced
-------------------
* Top-level keys must name a config section; keys inside a section must
  name a field of that section.  Anything else raises
  ``ConfigurationError`` rather than being silently ignored.
* Numeric values are converted through ``str()`` into ``Decimal``; YAML
  floats never reach a calculator as binary floats.
* ``compute_checksum`` produces a deterministic SHA-256 of the effective
  configuration for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key / bad value  -> ``ConfigurationError``.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from charges_config.schema import (
    BoxingConstants,
    ChargesConfig,
    ExchangeConstants,
    LedgerConstants,
    PayFrequencyDefaults,
    ReturnsConstants,
    SalaryConstants,
    ShippingConstants,
)
from charges_kernel.exceptions import ConfigurationError
from charges_kernel.logging_config import get_logger

logger = get_logger("config.loader")

_SECTIONS: dict[str, type] = {
    "shipping": ShippingConstants,
    "boxing": BoxingConstants,
    "returns": ReturnsConstants,
    "salary": SalaryConstants,
    "exchange": ExchangeConstants,
    "ledger": LedgerConstants,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigurationError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top-level YAML node must be a mapping")
    return data


def _to_decimal(path: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ConfigurationError(path, f"expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ConfigurationError(path, f"expected a number, got {value!r}") from None


def _to_int(path: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(path, f"expected an integer, got {value!r}")
    return value


def _coerce(path: str, type_name: str, value: Any, default: Any) -> Any:
    if type_name == "Decimal":
        return _to_decimal(path, value)
    if type_name == "int":
        return _to_int(path, value)
    if type_name == "str":
        if not isinstance(value, str):
            raise ConfigurationError(path, f"expected a string, got {value!r}")
        return value
    if type_name.startswith("tuple["):
        if not isinstance(value, (list, tuple)):
            raise ConfigurationError(path, f"expected a list, got {value!r}")
        return tuple(str(v) for v in value)
    if type_name.startswith("dict["):
        if not isinstance(value, dict):
            raise ConfigurationError(path, f"expected a mapping, got {value!r}")
        merged = dict(default)
        for key, item in value.items():
            item_path = f"{path}.{key}"
            if type_name == "dict[str, PayFrequencyDefaults]":
                if not isinstance(item, dict) or set(item) != {"work_days", "work_hours"}:
                    raise ConfigurationError(
                        item_path, "expected a mapping with work_days and work_hours"
                    )
                merged[key] = PayFrequencyDefaults(
                    work_days=_to_decimal(f"{item_path}.work_days", item["work_days"]),
                    work_hours=_to_decimal(f"{item_path}.work_hours", item["work_hours"]),
                )
            else:
                merged[key] = _to_decimal(item_path, item)
        return merged
    raise ConfigurationError(path, f"unsupported field type {type_name}")


def parse_section(name: str, data: Any) -> Any:
    """Build one constants dataclass from its defaults plus ``data`` overrides."""
    section_cls = _SECTIONS[name]
    if not isinstance(data, dict):
        raise ConfigurationError(name, f"expected a mapping, got {data!r}")
    defaults = section_cls()
    known = {f.name: f for f in dataclasses.fields(section_cls)}
    overrides: dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            raise ConfigurationError(f"{name}.{key}", "unknown configuration key")
        overrides[key] = _coerce(
            f"{name}.{key}", str(known[key].type), value, getattr(defaults, key)
        )
    return dataclasses.replace(defaults, **overrides)


def parse_config(data: dict[str, Any]) -> ChargesConfig:
    """Parse a full override document into a ``ChargesConfig``."""
    sections: dict[str, Any] = {}
    for key, value in data.items():
        if key not in _SECTIONS:
            raise ConfigurationError(key, "unknown configuration section")
        sections[key] = parse_section(key, value)
    return ChargesConfig(**sections)


def load_config(path: Path | str) -> ChargesConfig:
    path = Path(path)
    config = parse_config(load_yaml_file(path))
    logger.info(
        "charges_config_loaded",
        extra={
            "path": str(path),
            "checksum": compute_checksum(config_to_dict(config)),
        },
    )
    return config


def config_to_dict(config: ChargesConfig) -> dict[str, Any]:
    """Plain-dict view of the effective configuration (Decimals as strings)."""
    return json.loads(json.dumps(dataclasses.asdict(config), default=str))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
