"""
charges_services.protocols -- Collaborator contracts for persistence and rates.

Responsibility:
    Structural interfaces the services depend on.  Any object with these
    methods can stand in: the in-memory stores in ``stores.py``, the
    SQLAlchemy stores in ``sql_stores.py``, or a remote client.

Architecture position:
    Services -- ports.  Domain objects in, domain objects out; no ORM
    types cross this boundary.

Invariants enforced:
    - ``save(..., expected_status=s)`` is an atomic compare-and-set: it
      fails with InvalidStateTransitionError unless the stored record is
      currently in status ``s``.  ``expected_status=None`` means "must
      not exist yet" for charges and batches alike.
    - Batch saves may also pass ``expected_version``; the save fails with
      OptimisticLockError unless the stored batch still carries it.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from charges_kernel.domain.charge import Charge, ChargeStatus
from charges_kernel.domain.costs import ShippingRate
from charges_kernel.domain.packaging_batch import BatchStatus, PackagingBatch


class RateSource(Protocol):
    """Shipping tariff lookup by route."""

    def fetch_rates_for_route(
        self,
        origin_zone: str,
        destination_zone: str,
        service_type: str | None = None,
        provider_id: str | None = None,
    ) -> list[ShippingRate]:
        """Return every active rate for the route, optionally narrowed."""
        ...


class ChargeStore(Protocol):
    """Persistence for charges."""

    def get(self, charge_id: UUID) -> Charge | None:
        ...

    def save(self, charge: Charge, expected_status: ChargeStatus | None = None) -> Charge:
        """Insert or update ``charge`` if the stored status still matches."""
        ...

    def delete(self, charge_id: UUID, expected_status: ChargeStatus) -> None:
        ...

    def list_charges(self, company_id: str | None = None) -> list[Charge]:
        """All charges, oldest first, optionally for one company."""
        ...

    def find_by_batch(self, batch_id: UUID) -> Charge | None:
        ...


class BatchStore(Protocol):
    """Persistence for packaging batches."""

    def get(self, batch_id: UUID) -> PackagingBatch | None:
        ...

    def save(
        self,
        batch: PackagingBatch,
        expected_status: BatchStatus | None = None,
        expected_version: int | None = None,
    ) -> PackagingBatch:
        ...

    def list_batches(self, company_id: str | None = None) -> list[PackagingBatch]:
        ...
