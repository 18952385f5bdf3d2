"""
Module: charges_services
Responsibility:
    Stateful orchestration over the pure engines and kernel domain: the
    charge ledger, packaging batch execution, bulk actions, charge
    queries, shipping quotes, and the store adapters behind them.

Architecture position:
    Services -- the outermost layer of the charges packages.  May import
    ``charges_kernel``, ``charges_engines`` and ``charges_config``.
"""

from charges_services.batch_service import PackagingBatchService
from charges_services.bulk_coordinator import (
    BulkItemResult,
    BulkItemStatus,
    BulkOperation,
    BulkOperationCoordinator,
    BulkOperationResult,
    BulkRunStatus,
    CancellationToken,
)
from charges_services.charge_ledger import ChargeLedger
from charges_services.protocols import BatchStore, ChargeStore, RateSource
from charges_services.query import (
    ChargeFilter,
    ChargeSummary,
    Page,
    Pagination,
    high_priority_charges,
    overdue_charges,
    paginate,
    pending_approvals,
    query_charges,
    sort_charges,
    summarize,
)
from charges_services.shipping_quotes import ShippingQuoteService
from charges_services.sql_stores import SqlBatchStore, SqlChargeStore, SqlRateSource
from charges_services.stores import InMemoryBatchStore, InMemoryChargeStore, StaticRateSource

__all__ = [
    "BatchStore",
    "BulkItemResult",
    "BulkItemStatus",
    "BulkOperation",
    "BulkOperationCoordinator",
    "BulkOperationResult",
    "BulkRunStatus",
    "CancellationToken",
    "ChargeFilter",
    "ChargeLedger",
    "ChargeStore",
    "ChargeSummary",
    "InMemoryBatchStore",
    "InMemoryChargeStore",
    "Page",
    "Pagination",
    "PackagingBatchService",
    "RateSource",
    "ShippingQuoteService",
    "SqlBatchStore",
    "SqlChargeStore",
    "SqlRateSource",
    "StaticRateSource",
    "high_priority_charges",
    "overdue_charges",
    "paginate",
    "pending_approvals",
    "query_charges",
    "sort_charges",
    "summarize",
]
