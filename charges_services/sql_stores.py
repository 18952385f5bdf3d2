"""
charges_services.sql_stores -- SQLAlchemy implementations of the store ports.

Responsibility:
    Persist charges, packaging batches and shipping tariffs through the
    ORM models in ``charges_kernel.models``, translating at the boundary so
    that only frozen domain objects leave this module.

Architecture position:
    Services -- adapters.  Each store wraps a caller-owned ``Session``;
    the caller decides transaction scope (``session_scope()``).  Stores
    flush but never commit.

Invariants enforced:
    - Compare-and-set writes: the row is re-read with ``SELECT ... FOR
      UPDATE`` and its status compared with ``expected_status`` before any
      change is flushed.  A mismatch raises InvalidStateTransitionError and
      leaves the row untouched.
    - A batch's cost is recorded on at most one charge (``batch_id`` is
      UNIQUE; the store checks first to raise a domain error instead of an
      IntegrityError).
    - Legacy boxing payloads (``unit_cost``) are canonicalised by
      ``ChargeModel.to_dto`` before a calculator can see them.

Failure modes:
    - InvalidStateTransitionError on a stale status.
    - ChargeNotFoundError when deleting a charge that does not exist.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from charges_kernel.domain.charge import Charge, ChargeStatus
from charges_kernel.domain.clock import Clock, SystemClock
from charges_kernel.domain.costs import ShippingRate
from charges_kernel.domain.packaging_batch import BatchStatus, PackagingBatch
from charges_kernel.exceptions import (
    ChargeNotFoundError,
    InvalidStateTransitionError,
    OptimisticLockError,
)
from charges_kernel.logging_config import get_logger
from charges_kernel.models.batch import PackagingBatchModel
from charges_kernel.models.charge import ChargeModel
from charges_kernel.models.shipping_rate import ShippingRateModel
from charges_services.stores import stale_status_error

logger = get_logger("services.sql_stores")


class SqlChargeStore:
    def __init__(self, session: Session):
        self._session = session

    def _locked(self, charge_id: UUID) -> ChargeModel | None:
        return self._session.get(
            ChargeModel, charge_id, with_for_update=True, populate_existing=True
        )

    def get(self, charge_id: UUID) -> Charge | None:
        model = self._session.get(ChargeModel, charge_id)
        return model.to_dto() if model is not None else None

    def save(self, charge: Charge, expected_status: ChargeStatus | None = None) -> Charge:
        model = self._locked(charge.id)
        current = ChargeStatus(model.status) if model is not None else None
        if current != expected_status:
            logger.warning("charge_save_stale", extra={
                "charge_id": str(charge.id),
                "current_status": current.value if current else None,
                "expected_status": expected_status.value if expected_status else None,
            })
            raise stale_status_error("charge", charge.id, current, expected_status, "save")

        if charge.batch_id is not None:
            other = self._session.scalars(
                select(ChargeModel).where(
                    ChargeModel.batch_id == charge.batch_id,
                    ChargeModel.id != charge.id,
                )
            ).first()
            if other is not None:
                raise InvalidStateTransitionError(
                    entity_type="packaging_batch",
                    entity_id=str(charge.batch_id),
                    current_state="costed",
                    requested_state="costed",
                    action="save",
                    reason=f"cost already recorded on charge {other.id}",
                )

        if model is None:
            self._session.add(ChargeModel.from_dto(charge))
        else:
            model.apply_dto(charge)
        self._session.flush()
        return charge

    def delete(self, charge_id: UUID, expected_status: ChargeStatus) -> None:
        model = self._locked(charge_id)
        if model is None:
            raise ChargeNotFoundError(str(charge_id))
        current = ChargeStatus(model.status)
        if current != expected_status:
            raise stale_status_error("charge", charge_id, current, expected_status, "delete")
        self._session.delete(model)
        self._session.flush()

    def list_charges(self, company_id: str | None = None) -> list[Charge]:
        stmt = select(ChargeModel).order_by(ChargeModel.created_at, ChargeModel.id)
        if company_id is not None:
            stmt = stmt.where(ChargeModel.company_id == company_id)
        return [m.to_dto() for m in self._session.scalars(stmt)]

    def find_by_batch(self, batch_id: UUID) -> Charge | None:
        model = self._session.scalars(
            select(ChargeModel).where(ChargeModel.batch_id == batch_id)
        ).first()
        return model.to_dto() if model is not None else None


class SqlBatchStore:
    def __init__(self, session: Session):
        self._session = session

    def get(self, batch_id: UUID) -> PackagingBatch | None:
        model = self._session.get(PackagingBatchModel, batch_id)
        return model.to_dto() if model is not None else None

    def save(
        self,
        batch: PackagingBatch,
        expected_status: BatchStatus | None = None,
        expected_version: int | None = None,
    ) -> PackagingBatch:
        model = self._session.get(
            PackagingBatchModel, batch.id, with_for_update=True, populate_existing=True
        )
        current = BatchStatus(model.status) if model is not None else None
        if current != expected_status:
            logger.warning("batch_save_stale", extra={
                "batch_id": str(batch.id),
                "current_status": current.value if current else None,
                "expected_status": expected_status.value if expected_status else None,
            })
            raise stale_status_error("packaging_batch", batch.id, current, expected_status, "save")
        if model is not None and expected_version not in (None, model.version):
            logger.warning("batch_save_conflict", extra={
                "batch_id": str(batch.id),
                "expected_version": expected_version,
                "current_version": model.version,
            })
            raise OptimisticLockError(
                "packaging_batch", str(batch.id), expected_version, model.version
            )

        if model is None:
            self._session.add(PackagingBatchModel.from_dto(batch))
        else:
            model.apply_dto(batch)
        self._session.flush()
        return batch

    def list_batches(self, company_id: str | None = None) -> list[PackagingBatch]:
        stmt = select(PackagingBatchModel).order_by(
            PackagingBatchModel.created_at, PackagingBatchModel.id
        )
        if company_id is not None:
            stmt = stmt.where(PackagingBatchModel.company_id == company_id)
        return [m.to_dto() for m in self._session.scalars(stmt)]


class SqlRateSource:
    """Route lookup over the ``shipping_rates`` table (active rows only)."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def add_rate(self, rate: ShippingRate, created_by: str | None = None) -> ShippingRate:
        self._session.add(
            ShippingRateModel.from_dto(rate, self._clock.now(), created_by=created_by)
        )
        self._session.flush()
        return rate

    def fetch_rates_for_route(
        self,
        origin_zone: str,
        destination_zone: str,
        service_type: str | None = None,
        provider_id: str | None = None,
    ) -> list[ShippingRate]:
        stmt = select(ShippingRateModel).where(
            ShippingRateModel.origin_zone == origin_zone,
            ShippingRateModel.destination_zone == destination_zone,
            ShippingRateModel.is_active.is_(True),
        )
        if service_type is not None:
            stmt = stmt.where(ShippingRateModel.service_type == service_type)
        if provider_id is not None:
            stmt = stmt.where(ShippingRateModel.provider_id == provider_id)
        stmt = stmt.order_by(ShippingRateModel.provider_id, ShippingRateModel.service_type)
        return [m.to_dto() for m in self._session.scalars(stmt)]
