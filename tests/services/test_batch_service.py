"""Tests for PackagingBatchService over the in-memory batch store."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from charges_config import BoxingConstants, ChargesConfig
from charges_kernel.domain.packaging_batch import BatchEvent, BatchProduct, BatchStatus
from charges_kernel.exceptions import (
    BatchIncompleteError,
    BatchNotFoundError,
    InvalidInputError,
    InvalidStateTransitionError,
    OptimisticLockError,
)
from charges_services.batch_service import PackagingBatchService
from charges_services.stores import InMemoryBatchStore


@pytest.fixture
def store():
    return InMemoryBatchStore()


@pytest.fixture
def service(store, clock):
    return PackagingBatchService(store, clock=clock)


def _create(service, company_id="co-1"):
    return service.create_batch(
        "Morning run",
        date(2024, 3, 1),
        Decimal("4"),
        [BatchProduct("sku-a", 60), BatchProduct("sku-b", 40)],
        assigned_workers={"w1"},
        supervised_by="sup",
        company_id=company_id,
    )


def _pack_all(service, batch):
    service.update_progress(batch.id, "sku-a", 60)
    return service.update_progress(batch.id, "sku-b", 40)


class _StaleReadStore(InMemoryBatchStore):
    """Hands out one outdated snapshot, as a reader racing another writer sees."""

    stale = None

    def get(self, batch_id):
        if self.stale is not None:
            snapshot, self.stale = self.stale, None
            return snapshot
        return super().get(batch_id)


class TestBatchLifecycle:
    def test_create_persists_planned_batch(self, service, store, clock):
        batch = _create(service)

        assert batch.status == BatchStatus.PLANNED
        assert batch.created_at == clock.now()
        assert store.get(batch.id) == batch

    def test_full_run(self, service, clock):
        batch = _create(service)
        clock.advance(60)
        started = service.start(batch.id)
        assert started.start_time == clock.now()

        packed = _pack_all(service, batch)
        assert packed.completion_percentage == Decimal("100")

        clock.advance(3600)
        done = service.complete(
            batch.id, actual_duration=Decimal("5"), defect_count=2, rework_count=3
        )
        assert done.status == BatchStatus.COMPLETED
        assert done.end_time == clock.now()
        assert done.overall_quality_score == Decimal("95")
        assert done.efficiency_score == Decimal("80")
        assert service.get(batch.id).status == BatchStatus.COMPLETED

    def test_complete_incomplete_batch(self, service):
        batch = _create(service)
        service.start(batch.id)
        service.update_progress(batch.id, "sku-a", 10)

        with pytest.raises(BatchIncompleteError):
            service.complete(batch.id, actual_duration=Decimal("1"))
        assert service.get(batch.id).status == BatchStatus.IN_PROGRESS

    def test_cancel(self, service):
        batch = _create(service)
        cancelled = service.cancel(batch.id, reason="no cartons")

        assert cancelled.status == BatchStatus.CANCELLED
        assert cancelled.cancellation_reason == "no cartons"

    def test_progress_before_start_rejected(self, service):
        batch = _create(service)
        with pytest.raises(InvalidStateTransitionError):
            service.update_progress(batch.id, "sku-a", 1)

    def test_unknown_batch(self, service):
        with pytest.raises(BatchNotFoundError):
            service.start(uuid4())

    def test_stale_expected_status(self, service):
        batch = _create(service)
        service.start(batch.id)

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            service.start(batch.id, expected_status=BatchStatus.PLANNED)
        assert exc_info.value.reason == "stale expected status"

    def test_every_write_bumps_version(self, service):
        batch = _create(service)
        assert batch.version == 0
        assert service.start(batch.id).version == 1
        assert _pack_all(service, batch).version == 3

    def test_concurrent_progress_update_conflicts(self, clock, captured_logs):
        store = _StaleReadStore()
        service = PackagingBatchService(store, clock=clock)
        batch = _create(service)
        service.start(batch.id)
        snapshot = store.get(batch.id)
        service.update_progress(batch.id, "sku-a", 60)

        store.stale = snapshot
        with pytest.raises(OptimisticLockError) as exc_info:
            service.update_progress(batch.id, "sku-b", 40)
        assert exc_info.value.expected_version == 1
        assert exc_info.value.current_version == 2

        kept = service.get(batch.id)
        assert [p.completed_quantity for p in kept.products] == [60, 0]
        (record,) = [r for r in captured_logs() if r["message"] == "batch_transition_rejected"]
        assert record["error_code"] == "OPTIMISTIC_LOCK_CONFLICT"

    def test_configured_score_floor(self, store, clock):
        service = PackagingBatchService(
            store,
            clock=clock,
            config=ChargesConfig(boxing=BoxingConstants(quality_score_floor=Decimal("40"))),
        )
        batch = _create(service)
        service.start(batch.id)
        _pack_all(service, batch)

        done = service.complete(batch.id, actual_duration=Decimal("4"), defect_count=100)
        assert done.overall_quality_score == Decimal("40")

    def test_list_batches_by_company(self, service):
        _create(service, company_id="co-1")
        _create(service, company_id="co-2")

        assert len(service.list_batches()) == 2
        assert [b.company_id for b in service.list_batches("co-2")] == ["co-2"]

    def test_rejection_logged(self, service, captured_logs):
        batch = _create(service)
        with pytest.raises(InvalidStateTransitionError):
            service.complete(batch.id, actual_duration=Decimal("1"))

        (record,) = [r for r in captured_logs() if r["message"] == "batch_transition_rejected"]
        assert record["action"] == "complete"
        assert record["batch_id"] == str(batch.id)
        assert record["error_code"] == "INVALID_STATE_TRANSITION"


class TestTransitionBatch:
    def test_by_event_name(self, service):
        batch = _create(service)
        assert service.transition_batch(batch.id, "start").status == BatchStatus.IN_PROGRESS

    def test_complete_with_payload(self, service):
        batch = _create(service)
        service.start(batch.id)
        _pack_all(service, batch)

        done = service.transition_batch(
            batch.id, BatchEvent.COMPLETE, actual_duration=Decimal("4")
        )
        assert done.status == BatchStatus.COMPLETED

    def test_cancel_with_reason(self, service):
        batch = _create(service)
        cancelled = service.transition_batch(batch.id, "cancel", reason="late truck")
        assert cancelled.cancellation_reason == "late truck"

    def test_unknown_event(self, service):
        batch = _create(service)
        with pytest.raises(InvalidInputError) as exc_info:
            service.transition_batch(batch.id, "pause")
        assert exc_info.value.field == "event"

    def test_missing_payload(self, service):
        batch = _create(service)
        service.start(batch.id)
        _pack_all(service, batch)
        with pytest.raises(InvalidInputError) as exc_info:
            service.transition_batch(batch.id, "complete")
        assert exc_info.value.field == "payload"

    def test_unexpected_payload(self, service):
        batch = _create(service)
        with pytest.raises(InvalidInputError):
            service.transition_batch(batch.id, "start", reason="x")
