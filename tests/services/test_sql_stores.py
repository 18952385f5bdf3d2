"""
Tests for the SQLAlchemy store adapters over in-memory SQLite.

Covers:
- Charge persistence for every detail type
- Compare-and-set on status
- One charge per packaging batch
- Legacy boxing material payloads
- Batch persistence and the shipping rate table
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from charges_kernel.db.engine import session_scope
from charges_kernel.domain.charge import ChargeStatus
from charges_kernel.domain.costs import (
    BoxingInput,
    BoxingMaterial,
    ExchangeInput,
    PackageDimensions,
    ReturnCondition,
    ReturnItem,
    ReturnReason,
    ReturnsInput,
    SalaryInput,
    ShippingInput,
    ShippingRate,
)
from charges_kernel.domain.packaging_batch import BatchProduct, BatchStatus
from charges_kernel.exceptions import (
    ChargeNotFoundError,
    InvalidStateTransitionError,
    OptimisticLockError,
)
from charges_kernel.models.charge import ChargeModel
from charges_services.batch_service import PackagingBatchService
from charges_services.charge_ledger import ChargeLedger
from charges_services.sql_stores import SqlBatchStore, SqlChargeStore, SqlRateSource

RATE = ShippingRate(
    "yalidine", "express", Decimal("500"), Decimal("150"), Decimal("800"),
    fuel_surcharge_rate=Decimal("15"), estimated_days=3,
    origin_zone="ALG", destination_zone="ORN",
)


@pytest.fixture
def store(session):
    return SqlChargeStore(session)


@pytest.fixture
def ledger(store, clock):
    return ChargeLedger(store, clock=clock)


def _boxing_input():
    return BoxingInput(
        batch_size=100,
        materials=(BoxingMaterial("box-m", Decimal("1"), Decimal("120"), name="Carton"),),
        labor_hours=Decimal("8"),
        labor_rate=Decimal("1000"),
    )


class TestSqlChargeStore:
    def test_shipping_charge_round_trip(self, ledger, store, session):
        created = ledger.create_charge(
            "co-1",
            "Parcel to Oran",
            ShippingInput(
                "ALG", "ORN", Decimal("10"),
                PackageDimensions(Decimal("40"), Decimal("30"), Decimal("20")),
                rate=RATE,
                ship_date=date(2024, 3, 1),
            ),
            tags=["courier"],
            charge_date=date(2024, 3, 1),
        )
        session.expire_all()

        loaded = store.get(created.id)
        assert loaded.detail.input == created.detail.input
        assert loaded.breakdown.total_cost == Decimal("2300.00")
        assert loaded.breakdown.estimated_delivery_date == date(2024, 3, 4)
        assert loaded.amount == 230000
        assert loaded.tags == ("courier",)
        assert loaded.created_at == created.created_at
        assert loaded.history == created.history

    @pytest.mark.parametrize("charge_input", [
        SalaryInput("emp-1", Decimal("88000"), allowances={"meal": Decimal("3000")}),
        ExchangeInput("EUR", "DZD", Decimal("100"), Decimal("2"), rate=Decimal("145.5")),
        ReturnsInput(
            (ReturnItem("sku-1", 2, Decimal("1000"), ReturnCondition.GOOD),),
            ReturnReason.DEFECTIVE,
        ),
        _boxing_input(),
    ])
    def test_detail_round_trip(self, ledger, store, session, charge_input):
        created = ledger.create_charge("co-1", "Round trip", charge_input)
        session.expire_all()

        loaded = store.get(created.id)
        assert loaded.type == created.type
        assert loaded.detail.input == created.detail.input
        assert loaded.breakdown == created.breakdown

    def test_transitions_persist_history(self, ledger, store, session):
        charge = ledger.create_charge("co-1", "Rent", _boxing_input())
        ledger.submit(charge.id, actor="clerk")
        ledger.approve(charge.id, actor="mgr", notes="ok")
        session.expire_all()

        loaded = store.get(charge.id)
        assert loaded.status == ChargeStatus.APPROVED
        assert loaded.approved_by == "mgr"
        assert [h.action for h in loaded.history] == ["create", "submit", "approve"]

    def test_stale_save_rejected(self, ledger, store, captured_logs):
        charge = ledger.create_charge("co-1", "Rent", _boxing_input())
        ledger.submit(charge.id)

        with pytest.raises(InvalidStateTransitionError):
            store.save(charge, expected_status=ChargeStatus.DRAFT)
        assert store.get(charge.id).status == ChargeStatus.PENDING_APPROVAL
        assert any(r["message"] == "charge_save_stale" for r in captured_logs())

    def test_insert_requires_absent_row(self, ledger, store):
        charge = ledger.create_charge("co-1", "Rent", _boxing_input())
        with pytest.raises(InvalidStateTransitionError):
            store.save(charge, expected_status=None)

    def test_delete(self, ledger, store):
        charge = ledger.create_charge("co-1", "Rent", _boxing_input())
        ledger.delete(charge.id)

        assert store.get(charge.id) is None
        with pytest.raises(ChargeNotFoundError):
            store.delete(charge.id, ChargeStatus.DRAFT)

    def test_list_by_company(self, ledger, store, clock):
        ledger.create_charge("co-1", "A", _boxing_input())
        clock.advance(1)
        ledger.create_charge("co-2", "B", _boxing_input())
        clock.advance(1)
        ledger.create_charge("co-1", "C", _boxing_input())

        assert [c.title for c in store.list_charges()] == ["A", "B", "C"]
        assert [c.title for c in store.list_charges("co-1")] == ["A", "C"]

    def test_legacy_unit_cost_mapped(self, ledger, store, session):
        charge = ledger.create_charge("co-1", "Legacy", _boxing_input())
        model = session.get(ChargeModel, charge.id)
        detail = dict(model.detail)
        material = dict(detail["input"]["materials"][0])
        material["unit_cost"] = material.pop("cost_per_unit")
        detail["input"] = {**detail["input"], "materials": [material]}
        model.detail = detail
        session.flush()
        session.expire_all()

        loaded = store.get(charge.id)
        assert loaded.detail.input.materials[0].cost_per_unit == Decimal("120")


class TestBatchCostUniqueness:
    def _completed(self, session, clock):
        service = PackagingBatchService(SqlBatchStore(session), clock=clock)
        batch = service.create_batch(
            "Morning run", date(2024, 3, 1), Decimal("4"),
            [BatchProduct("sku-a", 100)], company_id="co-1",
        )
        service.start(batch.id)
        service.update_progress(batch.id, "sku-a", 100)
        return service.complete(batch.id, actual_duration=Decimal("4"))

    def test_one_charge_per_batch(self, ledger, store, session, clock):
        batch = self._completed(session, clock)
        charge = ledger.record_batch_cost(batch, _boxing_input())

        assert store.find_by_batch(batch.id).id == charge.id
        with pytest.raises(InvalidStateTransitionError):
            ledger.record_batch_cost(batch, _boxing_input())
        assert len(store.list_charges()) == 1

    def test_store_guards_batch_link(self, ledger, store, session, clock):
        batch = self._completed(session, clock)
        ledger.record_batch_cost(batch, _boxing_input())
        other = ledger.create_charge("co-1", "Other", _boxing_input())

        with pytest.raises(InvalidStateTransitionError):
            store.save(replace(other, batch_id=batch.id), expected_status=ChargeStatus.DRAFT)


class TestSqlBatchStore:
    def test_round_trip(self, session, clock):
        store = SqlBatchStore(session)
        service = PackagingBatchService(store, clock=clock)
        batch = service.create_batch(
            "Evening run", date(2024, 3, 1), Decimal("2.5"),
            [BatchProduct("sku-b", 10), BatchProduct("sku-a", 5)],
            assigned_workers={"w2", "w1"},
        )
        service.start(batch.id)
        service.update_progress(batch.id, "sku-a", 3)
        session.expire_all()

        loaded = store.get(batch.id)
        assert loaded.status == BatchStatus.IN_PROGRESS
        assert [p.product_id for p in loaded.products] == ["sku-b", "sku-a"]
        assert loaded.products[1].completed_quantity == 3
        assert loaded.assigned_workers == frozenset({"w1", "w2"})
        assert loaded.planned_duration == Decimal("2.5")
        assert loaded.completion_percentage == Decimal("20")

    def test_stale_batch_save(self, session, clock):
        store = SqlBatchStore(session)
        service = PackagingBatchService(store, clock=clock)
        batch = service.create_batch(
            "Run", date(2024, 3, 1), Decimal("1"), [BatchProduct("a", 1)]
        )
        service.start(batch.id)

        with pytest.raises(InvalidStateTransitionError):
            store.save(batch, expected_status=BatchStatus.PLANNED)

    def test_version_conflict(self, session, clock, captured_logs):
        store = SqlBatchStore(session)
        service = PackagingBatchService(store, clock=clock)
        batch = service.create_batch(
            "Run", date(2024, 3, 1), Decimal("1"),
            [BatchProduct("a", 2), BatchProduct("b", 2)],
        )
        started = service.start(batch.id)
        service.update_progress(batch.id, "a", 2)
        session.expire_all()
        assert store.get(batch.id).version == 2

        lost = replace(
            started,
            products=(started.products[0], replace(started.products[1], completed_quantity=2)),
            version=started.version + 1,
        )
        with pytest.raises(OptimisticLockError):
            store.save(
                lost, expected_status=BatchStatus.IN_PROGRESS, expected_version=started.version
            )
        assert any(r["message"] == "batch_save_conflict" for r in captured_logs())
        assert store.get(batch.id).products[0].completed_quantity == 2


class TestSqlRateSource:
    def test_route_lookup(self, session, clock):
        source = SqlRateSource(session, clock=clock)
        source.add_rate(RATE, created_by="ops")
        source.add_rate(ShippingRate(
            "zr_express", "standard", Decimal("100"), Decimal("50"), Decimal("800"),
            origin_zone="ALG", destination_zone="ORN",
        ))
        source.add_rate(ShippingRate(
            "yalidine", "express", Decimal("1"), Decimal("1"), Decimal("1"),
            origin_zone="ALG", destination_zone="CZL",
        ))

        rates = source.fetch_rates_for_route("ALG", "ORN")
        assert [r.provider_id for r in rates] == ["yalidine", "zr_express"]
        assert rates[0].base_rate == Decimal("500")

        assert len(source.fetch_rates_for_route("ALG", "ORN", service_type="standard")) == 1
        assert len(source.fetch_rates_for_route("ALG", "ORN", provider_id="nobody")) == 0
        assert source.fetch_rates_for_route("ORN", "ALG") == []

    def test_session_scope_commits_and_rolls_back(self, session, clock):
        with session_scope() as s:
            SqlRateSource(s, clock=clock).add_rate(RATE)

        with pytest.raises(RuntimeError):
            with session_scope() as s:
                SqlRateSource(s, clock=clock).add_rate(
                    replace(RATE, provider_id="zr_express")
                )
                raise RuntimeError("abort")

        with session_scope() as s:
            rates = SqlRateSource(s).fetch_rates_for_route("ALG", "ORN")
        assert [r.provider_id for r in rates] == ["yalidine"]
