"""
Tests for the packaging batch state machine.

Covers:
- Creation validation
- start / update_progress / complete / cancel
- Completion percentage and product status
- Quality and efficiency scores
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from charges_kernel.domain.packaging_batch import (
    BATCH_TRANSITIONS,
    BatchProduct,
    BatchStatus,
    ProductStatus,
    cancel_batch,
    complete_batch,
    efficiency_score,
    new_batch,
    quality_score,
    start_batch,
    update_progress,
)
from charges_kernel.exceptions import (
    BatchIncompleteError,
    InvalidInputError,
    InvalidStateTransitionError,
)

T0 = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)
T1 = T0 + timedelta(hours=4)


def _batch(products=None, **kwargs):
    return new_batch(
        batch_name="Morning run",
        batch_date=date(2024, 3, 1),
        planned_duration=Decimal("4"),
        products=products or (
            BatchProduct("sku-a", 60),
            BatchProduct("sku-b", 40),
        ),
        now=T0,
        **kwargs,
    )


def _packed(batch):
    batch = start_batch(batch, now=T0)
    for product in batch.products:
        batch = update_progress(batch, product.product_id, product.quantity, now=T0)
    return batch


class TestNewBatch:
    def test_planned_on_creation(self):
        batch = _batch(assigned_workers={"w1", "w2"}, supervised_by="sup", company_id="co-1")

        assert batch.status == BatchStatus.PLANNED
        assert batch.total_items == 100
        assert batch.completed_items == 0
        assert batch.completion_percentage == Decimal("0")
        assert batch.assigned_workers == frozenset({"w1", "w2"})
        assert batch.created_at == batch.updated_at == T0
        assert batch.is_terminal is False

    def test_blank_name_rejected(self):
        with pytest.raises(InvalidInputError) as exc_info:
            new_batch(
                batch_name="  ",
                batch_date=date(2024, 3, 1),
                planned_duration=Decimal("1"),
                products=(BatchProduct("a", 1),),
                now=T0,
            )
        assert exc_info.value.field == "batch_name"

    def test_no_products_rejected(self):
        with pytest.raises(InvalidInputError):
            new_batch(
                batch_name="x",
                batch_date=date(2024, 3, 1),
                planned_duration=Decimal("1"),
                products=(),
                now=T0,
            )

    def test_duplicate_product_rejected(self):
        with pytest.raises(InvalidInputError):
            _batch(products=(BatchProduct("a", 1), BatchProduct("a", 2)))

    @pytest.mark.parametrize("quantity", [0, -1, 1.5])
    def test_bad_quantity_rejected(self, quantity):
        with pytest.raises(InvalidInputError):
            _batch(products=(BatchProduct("a", quantity),))

    def test_negative_planned_duration_rejected(self):
        with pytest.raises(InvalidInputError):
            new_batch(
                batch_name="x",
                batch_date=date(2024, 3, 1),
                planned_duration=Decimal("-1"),
                products=(BatchProduct("a", 1),),
                now=T0,
            )


class TestTransitions:
    def test_terminal_statuses(self):
        assert BATCH_TRANSITIONS[BatchStatus.COMPLETED] == frozenset()
        assert BATCH_TRANSITIONS[BatchStatus.CANCELLED] == frozenset()

    def test_start(self):
        batch = start_batch(_batch(), now=T1)

        assert batch.status == BatchStatus.IN_PROGRESS
        assert batch.start_time == T1
        assert batch.updated_at == T1

    def test_start_twice_rejected(self):
        batch = start_batch(_batch(), now=T0)
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            start_batch(batch, now=T1)
        assert exc_info.value.entity_type == "packaging_batch"
        assert exc_info.value.current_state == "in_progress"

    def test_cancel_from_planned(self):
        batch = cancel_batch(_batch(), now=T1, reason="no stock")

        assert batch.status == BatchStatus.CANCELLED
        assert batch.cancellation_reason == "no stock"
        assert batch.end_time == T1
        assert batch.is_terminal

    def test_cancel_from_in_progress(self):
        batch = cancel_batch(start_batch(_batch(), now=T0), now=T1)
        assert batch.status == BatchStatus.CANCELLED

    def test_cancelled_cannot_start(self):
        with pytest.raises(InvalidStateTransitionError):
            start_batch(cancel_batch(_batch(), now=T0), now=T1)

    def test_completed_cannot_cancel(self):
        batch = complete_batch(_packed(_batch()), actual_duration=Decimal("4"), now=T1)
        with pytest.raises(InvalidStateTransitionError):
            cancel_batch(batch, now=T1)

    def test_complete_requires_in_progress(self):
        with pytest.raises(InvalidStateTransitionError):
            complete_batch(_batch(), actual_duration=Decimal("1"), now=T1)


class TestProgress:
    def test_partial_progress(self):
        batch = update_progress(start_batch(_batch(), now=T0), "sku-a", 30, now=T1)

        assert batch.completed_items == 30
        assert batch.completion_percentage == Decimal("30")
        assert batch.products[0].status == ProductStatus.IN_PROGRESS
        assert batch.products[1].status == ProductStatus.PENDING
        assert batch.updated_at == T1

    def test_product_completed_status(self):
        batch = update_progress(start_batch(_batch(), now=T0), "sku-b", 40, now=T1)
        assert batch.products[1].status == ProductStatus.COMPLETED

    def test_progress_can_be_lowered(self):
        batch = start_batch(_batch(), now=T0)
        batch = update_progress(batch, "sku-a", 50, now=T0)
        batch = update_progress(batch, "sku-a", 20, now=T0)
        assert batch.completed_items == 20

    def test_progress_requires_in_progress(self):
        with pytest.raises(InvalidStateTransitionError):
            update_progress(_batch(), "sku-a", 1, now=T0)

    def test_quantity_above_line_rejected(self):
        with pytest.raises(InvalidInputError):
            update_progress(start_batch(_batch(), now=T0), "sku-a", 61, now=T0)

    def test_negative_quantity_rejected(self):
        with pytest.raises(InvalidInputError):
            update_progress(start_batch(_batch(), now=T0), "sku-a", -1, now=T0)

    def test_unknown_product_rejected(self):
        with pytest.raises(InvalidInputError) as exc_info:
            update_progress(start_batch(_batch(), now=T0), "sku-z", 1, now=T0)
        assert exc_info.value.field == "product_id"


class TestCompletion:
    def test_complete_scores(self):
        batch = complete_batch(
            _packed(_batch()),
            actual_duration=Decimal("5"),
            now=T1,
            defect_count=3,
            rework_count=2,
            quality_notes="tape ran out",
        )

        assert batch.status == BatchStatus.COMPLETED
        assert batch.end_time == T1
        assert batch.overall_quality_score == Decimal("95")
        assert batch.efficiency_score == Decimal("80")
        assert batch.quality_notes == "tape ran out"

    def test_incomplete_batch_cannot_complete(self):
        batch = update_progress(start_batch(_batch(), now=T0), "sku-a", 60, now=T0)

        with pytest.raises(BatchIncompleteError) as exc_info:
            complete_batch(batch, actual_duration=Decimal("4"), now=T1)

        assert exc_info.value.code == "BATCH_INCOMPLETE"
        assert Decimal(exc_info.value.completion_percentage) == Decimal("60")

    def test_negative_duration_rejected(self):
        with pytest.raises(InvalidInputError):
            complete_batch(_packed(_batch()), actual_duration=Decimal("-1"), now=T1)

    def test_negative_defects_rejected(self):
        with pytest.raises(InvalidInputError):
            complete_batch(
                _packed(_batch()), actual_duration=Decimal("1"), now=T1, defect_count=-1
            )


class TestScores:
    def test_quality_score(self):
        assert quality_score(5, 5, 100) == Decimal("90")

    def test_quality_score_floored(self):
        assert quality_score(80, 80, 100) == Decimal("0")
        assert quality_score(80, 80, 100, floor=Decimal("10")) == Decimal("10")

    def test_quality_score_without_items(self):
        assert quality_score(1, 1, 0) == Decimal("100")

    def test_efficiency_capped(self):
        assert efficiency_score(Decimal("4"), Decimal("2")) == Decimal("100")

    def test_efficiency_slow_batch(self):
        assert efficiency_score(Decimal("4"), Decimal("8")) == Decimal("50")

    def test_efficiency_instant_batch(self):
        assert efficiency_score(Decimal("4"), Decimal("0")) == Decimal("100")
