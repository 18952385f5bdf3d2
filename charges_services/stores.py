"""
In-memory collaborator implementations.

Reference implementations of the ``protocols`` contracts, used by the test
suite and by hosts that keep charges in process.  Each store guards its
compare-and-set with a lock so concurrent callers see the same stale
status rules as the SQL stores.
"""

from __future__ import annotations

import threading
from uuid import UUID

from charges_kernel.domain.charge import Charge, ChargeStatus
from charges_kernel.domain.costs import ShippingRate
from charges_kernel.domain.packaging_batch import BatchStatus, PackagingBatch
from charges_kernel.exceptions import (
    ChargeNotFoundError,
    InvalidStateTransitionError,
    OptimisticLockError,
)


def stale_status_error(entity_type: str, entity_id: UUID, current, expected, action: str):
    return InvalidStateTransitionError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        current_state=current.value if current is not None else "absent",
        requested_state=expected.value if expected is not None else "absent",
        action=action,
        reason="stale expected status",
    )


class InMemoryChargeStore:
    def __init__(self, charges: list[Charge] | None = None):
        self._charges: dict[UUID, Charge] = {}
        self._lock = threading.Lock()
        for charge in charges or ():
            self._charges[charge.id] = charge

    def get(self, charge_id: UUID) -> Charge | None:
        return self._charges.get(charge_id)

    def save(self, charge: Charge, expected_status: ChargeStatus | None = None) -> Charge:
        with self._lock:
            stored = self._charges.get(charge.id)
            current = stored.status if stored is not None else None
            if current != expected_status:
                raise stale_status_error("charge", charge.id, current, expected_status, "save")
            if charge.batch_id is not None:
                for other in self._charges.values():
                    if other.batch_id == charge.batch_id and other.id != charge.id:
                        raise InvalidStateTransitionError(
                            entity_type="packaging_batch",
                            entity_id=str(charge.batch_id),
                            current_state="costed",
                            requested_state="costed",
                            action="save",
                            reason=f"cost already recorded on charge {other.id}",
                        )
            self._charges[charge.id] = charge
            return charge

    def delete(self, charge_id: UUID, expected_status: ChargeStatus) -> None:
        with self._lock:
            stored = self._charges.get(charge_id)
            if stored is None:
                raise ChargeNotFoundError(str(charge_id))
            if stored.status != expected_status:
                raise stale_status_error("charge", charge_id, stored.status, expected_status, "delete")
            del self._charges[charge_id]

    def list_charges(self, company_id: str | None = None) -> list[Charge]:
        charges = sorted(self._charges.values(), key=lambda c: c.created_at)
        if company_id is None:
            return charges
        return [c for c in charges if c.company_id == company_id]

    def find_by_batch(self, batch_id: UUID) -> Charge | None:
        for charge in self._charges.values():
            if charge.batch_id == batch_id:
                return charge
        return None

    def __len__(self) -> int:
        return len(self._charges)


class InMemoryBatchStore:
    def __init__(self, batches: list[PackagingBatch] | None = None):
        self._batches: dict[UUID, PackagingBatch] = {}
        self._lock = threading.Lock()
        for batch in batches or ():
            self._batches[batch.id] = batch

    def get(self, batch_id: UUID) -> PackagingBatch | None:
        return self._batches.get(batch_id)

    def save(
        self,
        batch: PackagingBatch,
        expected_status: BatchStatus | None = None,
        expected_version: int | None = None,
    ) -> PackagingBatch:
        with self._lock:
            stored = self._batches.get(batch.id)
            current = stored.status if stored is not None else None
            if current != expected_status:
                raise stale_status_error("packaging_batch", batch.id, current, expected_status, "save")
            if stored is not None and expected_version not in (None, stored.version):
                raise OptimisticLockError(
                    "packaging_batch", str(batch.id), expected_version, stored.version
                )
            self._batches[batch.id] = batch
            return batch

    def list_batches(self, company_id: str | None = None) -> list[PackagingBatch]:
        batches = sorted(self._batches.values(), key=lambda b: b.created_at)
        if company_id is None:
            return batches
        return [b for b in batches if b.company_id == company_id]


class StaticRateSource:
    """Rate source over a fixed list of zoned tariffs."""

    def __init__(self, rates: list[ShippingRate] | tuple[ShippingRate, ...] = ()):
        self._rates = tuple(rates)

    def fetch_rates_for_route(
        self,
        origin_zone: str,
        destination_zone: str,
        service_type: str | None = None,
        provider_id: str | None = None,
    ) -> list[ShippingRate]:
        return [
            r for r in self._rates
            if r.origin_zone == origin_zone
            and r.destination_zone == destination_zone
            and (service_type is None or r.service_type == service_type)
            and (provider_id is None or r.provider_id == provider_id)
        ]
