"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable; time is injected through ``Clock``.
"""

from charges_kernel.domain.charge import (
    DETAIL_TYPES,
    BoxingDetail,
    Charge,
    ChargeDetail,
    ChargeHistoryEntry,
    ChargePriority,
    ChargeStatus,
    ChargeType,
    ExchangeDetail,
    GenericDetail,
    ReturnsDetail,
    SalaryDetail,
    ShippingDetail,
)
from charges_kernel.domain.charge_lifecycle import (
    CHARGE_EVENTS,
    CHARGE_TRANSITIONS,
    ChargeEvent,
    apply_event,
)
from charges_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from charges_kernel.domain.packaging_batch import (
    BATCH_TRANSITIONS,
    BatchEvent,
    BatchProduct,
    BatchStatus,
    PackagingBatch,
    ProductPriority,
    ProductStatus,
)
from charges_kernel.domain.values import ChargeCurrency

__all__ = [
    "BATCH_TRANSITIONS",
    "CHARGE_EVENTS",
    "CHARGE_TRANSITIONS",
    "DETAIL_TYPES",
    "BatchEvent",
    "BatchProduct",
    "BatchStatus",
    "BoxingDetail",
    "Charge",
    "ChargeCurrency",
    "ChargeDetail",
    "ChargeEvent",
    "ChargeHistoryEntry",
    "ChargePriority",
    "ChargeStatus",
    "ChargeType",
    "Clock",
    "DeterministicClock",
    "ExchangeDetail",
    "GenericDetail",
    "PackagingBatch",
    "ProductPriority",
    "ProductStatus",
    "ReturnsDetail",
    "SalaryDetail",
    "ShippingDetail",
    "SystemClock",
    "apply_event",
]
