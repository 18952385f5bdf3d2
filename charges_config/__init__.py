"""
charges_config -- single public entrypoint for charges business constants.

Responsibility:
    ``get_active_config()`` returns the process-wide ``ChargesConfig``.
    Defaults apply unless the ``CHARGES_CONFIG_PATH`` environment variable
    names a YAML override file, which is loaded once on first use.

Architecture position:
    Configuration -- sits above ``charges_kernel`` and below
    ``charges_engines`` / ``charges_services``.  The kernel never imports
    from this package.
"""

from __future__ import annotations

import os
import threading

from charges_config.loader import compute_checksum, config_to_dict, load_config
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
from charges_kernel.logging_config import get_logger

logger = get_logger("config")

CONFIG_PATH_ENV = "CHARGES_CONFIG_PATH"

_active: ChargesConfig | None = None
_lock = threading.Lock()


def get_active_config() -> ChargesConfig:
    """The process-wide configuration, loaded lazily."""
    global _active
    with _lock:
        if _active is None:
            path = os.environ.get(CONFIG_PATH_ENV)
            _active = load_config(path) if path else ChargesConfig()
            logger.info(
                "CHARGES_CONFIG_TRACE",
                extra={
                    "source": path or "defaults",
                    "checksum": compute_checksum(config_to_dict(_active)),
                },
            )
        return _active


def set_active_config(config: ChargesConfig) -> None:
    """Replace the process-wide configuration. FOR TESTING AND BOOTSTRAP."""
    global _active
    with _lock:
        _active = config


def reset_active_config() -> None:
    """Forget the active configuration so the next call reloads it."""
    global _active
    with _lock:
        _active = None


__all__ = [
    "BoxingConstants",
    "ChargesConfig",
    "ExchangeConstants",
    "LedgerConstants",
    "PayFrequencyDefaults",
    "ReturnsConstants",
    "SalaryConstants",
    "ShippingConstants",
    "CONFIG_PATH_ENV",
    "get_active_config",
    "set_active_config",
    "reset_active_config",
]
