"""
charges_services.charge_ledger -- Charge creation, recalculation and approval.

Responsibility:
    The single owner of the ``Charge`` lifecycle.  Creates charges from a
    calculator input, keeps ``amount`` equal to the calculator total, and
    advances the approval state machine with stale-retry protection.
    Also records a completed packaging batch's cost as a boxing charge,
    exactly once per batch.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Composes CostDispatcher (engines), charge_lifecycle (kernel domain)
    and a ChargeStore (port).  The clock is injected.

Invariants enforced:
    - ``amount == to_minor_units(detail.breakdown.total_cost)`` after
      create and after every recalculation; nothing else writes it.
    - Every transition is persisted with ``expected_status`` equal to the
      status it was computed from, so two racing requests cannot both
      apply (e.g. paying twice).
    - Recalculation and deletion only from draft or rejected.
    - A packaging batch's cost lands on at most one charge.

Failure modes:
    - ChargeNotFoundError for an unknown id.
    - InvalidStateTransitionError for an illegal or stale transition.
    - ChargeNotDeletableError when deleting outside draft / rejected.
    - InvalidInputError / calculator errors, propagated verbatim.

Audit relevance:
    Every step appends a ``ChargeHistoryEntry`` and emits a structured
    log record carrying the charge id, statuses and actor.
"""

from __future__ import annotations

import time
from dataclasses import replace
from datetime import date
from uuid import UUID, uuid4

from charges_config import ChargesConfig, get_active_config
from charges_engines.dispatch import ChargeInput, CostDispatcher
from charges_kernel.domain.charge import (
    Charge,
    ChargeHistoryEntry,
    ChargePriority,
    ChargeStatus,
    ChargeType,
)
from charges_kernel.domain.charge_lifecycle import (
    ChargeEvent,
    apply_event,
    check_expected_status,
    ensure_deletable,
    ensure_recalculable,
)
from charges_kernel.domain.clock import Clock, SystemClock
from charges_kernel.domain.costs import BoxingInput, ExchangeInput
from charges_kernel.domain.packaging_batch import BatchStatus, PackagingBatch
from charges_kernel.domain.values import ChargeCurrency, to_minor_units
from charges_kernel.exceptions import (
    ChargeNotFoundError,
    ChargesKernelError,
    InvalidInputError,
    InvalidStateTransitionError,
)
from charges_kernel.logging_config import LogContext, get_logger
from charges_services.protocols import ChargeStore
from charges_services.query import ChargeFilter, Page, query_charges

logger = get_logger("services.ledger")


class ChargeLedger:
    """
    Creates charges and moves them through approval.

    Usage:
        ledger = ChargeLedger(InMemoryChargeStore(), clock=clock)
        charge = ledger.create_charge("co-1", "Parcel to Oran", shipping_input)
        charge = ledger.submit(charge.id, actor="clerk")
        charge = ledger.approve(charge.id, actor="manager", notes="ok")
    """

    def __init__(
        self,
        store: ChargeStore,
        dispatcher: CostDispatcher | None = None,
        clock: Clock | None = None,
        config: ChargesConfig | None = None,
    ):
        self._store = store
        self._dispatcher = dispatcher or CostDispatcher()
        self._clock = clock or SystemClock()
        self._config = config

    @property
    def config(self) -> ChargesConfig:
        return self._config or get_active_config()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, charge_id: UUID) -> Charge:
        charge = self._store.get(charge_id)
        if charge is None:
            raise ChargeNotFoundError(str(charge_id))
        return charge

    def list_charges(
        self,
        charge_filter: ChargeFilter | None = None,
        *,
        sort_by: str = "created_at",
        descending: bool = True,
        page: int = 1,
        page_size: int = 20,
    ) -> Page:
        company_id = charge_filter.company_id if charge_filter else None
        return query_charges(
            self._store.list_charges(company_id),
            charge_filter,
            sort_by=sort_by,
            descending=descending,
            page=page,
            page_size=page_size,
        )

    # ------------------------------------------------------------------
    # Create / recalculate
    # ------------------------------------------------------------------

    def _currency_for(self, charge_input: ChargeInput, currency) -> ChargeCurrency:
        if currency is not None:
            return ChargeCurrency.parse(currency)
        if isinstance(charge_input, ExchangeInput):
            return ChargeCurrency.parse(charge_input.from_currency)
        return ChargeCurrency.parse(self.config.ledger.default_currency)

    def create_charge(
        self,
        company_id: str,
        title: str,
        charge_input: ChargeInput,
        *,
        currency: ChargeCurrency | str | None = None,
        priority: ChargePriority = ChargePriority.MEDIUM,
        category: str | None = None,
        description: str | None = None,
        reference_number: str | None = None,
        notes: str | None = None,
        tags: tuple[str, ...] | list[str] = (),
        charge_date: date | None = None,
        created_by: str | None = None,
        batch_id: UUID | None = None,
    ) -> Charge:
        """
        Calculate ``charge_input`` and persist a draft charge.

        Exchange charges default to the source currency; everything else
        to the configured ledger currency.
        """
        if not company_id:
            raise InvalidInputError("company_id", company_id, "must not be blank")
        if not title or not title.strip():
            raise InvalidInputError("title", title, "must not be blank")

        start = time.monotonic()
        detail = self._dispatcher.build_detail(charge_input)
        charge_currency = self._currency_for(charge_input, currency)
        now = self._clock.now()
        charge_id = uuid4()
        charge = Charge(
            id=charge_id,
            company_id=company_id,
            title=title.strip(),
            detail=detail,
            amount=to_minor_units(detail.breakdown.total_cost, charge_currency),
            currency=charge_currency,
            status=ChargeStatus.DRAFT,
            created_at=now,
            updated_at=now,
            priority=ChargePriority(priority),
            category=category,
            description=description,
            reference_number=reference_number,
            notes=notes,
            tags=tuple(tags),
            charge_date=charge_date,
            created_by=created_by,
            batch_id=batch_id,
            history=(
                ChargeHistoryEntry(
                    action="create",
                    previous_status=None,
                    new_status=ChargeStatus.DRAFT,
                    performed_at=now,
                    performed_by=created_by,
                ),
            ),
        )
        with LogContext.bind(charge_id=str(charge_id), company_id=company_id):
            self._store.save(charge, expected_status=None)
            logger.info("charge_created", extra={
                "charge_type": charge.type.value,
                "amount": charge.amount,
                "currency": charge.currency.value,
                "total_cost": str(charge.total_cost),
                "duration_ms": round((time.monotonic() - start) * 1000, 2),
            })
        return charge

    def recalculate(
        self,
        charge_id: UUID,
        charge_input: ChargeInput,
        *,
        actor: str | None = None,
        expected_status: ChargeStatus | None = None,
    ) -> Charge:
        """Re-derive detail and amount from a corrected input of the same type."""
        charge = self.get(charge_id)
        with LogContext.bind(charge_id=str(charge_id), company_id=charge.company_id):
            check_expected_status(charge, expected_status, "recalculate")
            ensure_recalculable(charge)
            new_type = self._dispatcher.charge_type_of(charge_input)
            if new_type != charge.type:
                raise InvalidInputError(
                    "charge_input",
                    new_type.value,
                    f"charge {charge_id} is a {charge.type.value} charge",
                )
            detail = self._dispatcher.build_detail(charge_input)
            now = self._clock.now()
            updated = replace(
                charge,
                detail=detail,
                amount=to_minor_units(detail.breakdown.total_cost, charge.currency),
                updated_at=now,
                history=(
                    *charge.history,
                    ChargeHistoryEntry(
                        action="recalculate",
                        previous_status=charge.status,
                        new_status=charge.status,
                        performed_at=now,
                        performed_by=actor,
                    ),
                ),
            )
            self._store.save(updated, expected_status=charge.status)
            logger.info("charge_recalculated", extra={
                "previous_amount": charge.amount,
                "amount": updated.amount,
                "actor": actor,
            })
        return updated

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(
        self,
        charge_id: UUID,
        event: ChargeEvent,
        *,
        actor: str | None,
        notes: str | None,
        expected_status: ChargeStatus | None,
    ) -> Charge:
        charge = self.get(charge_id)
        with LogContext.bind(
            charge_id=str(charge_id), company_id=charge.company_id, actor_id=actor
        ):
            try:
                updated = apply_event(
                    charge,
                    event,
                    now=self._clock.now(),
                    actor=actor,
                    notes=notes,
                    expected_status=expected_status,
                )
                self._store.save(updated, expected_status=charge.status)
            except ChargesKernelError as exc:
                logger.warning("charge_transition_rejected", extra={
                    "event": event.value,
                    "current_status": charge.status.value,
                    "error_code": exc.code,
                })
                raise
            logger.info("charge_transitioned", extra={
                "event": event.value,
                "from_status": charge.status.value,
                "to_status": updated.status.value,
            })
        return updated

    def submit(
        self,
        charge_id: UUID,
        *,
        actor: str | None = None,
        notes: str | None = None,
        expected_status: ChargeStatus | None = None,
    ) -> Charge:
        return self._transition(
            charge_id, ChargeEvent.SUBMIT,
            actor=actor, notes=notes, expected_status=expected_status,
        )

    def approve(
        self,
        charge_id: UUID,
        *,
        actor: str | None = None,
        notes: str | None = None,
        expected_status: ChargeStatus | None = None,
    ) -> Charge:
        return self._transition(
            charge_id, ChargeEvent.APPROVE,
            actor=actor, notes=notes, expected_status=expected_status,
        )

    def reject(
        self,
        charge_id: UUID,
        *,
        reason: str,
        actor: str | None = None,
        expected_status: ChargeStatus | None = None,
    ) -> Charge:
        return self._transition(
            charge_id, ChargeEvent.REJECT,
            actor=actor, notes=reason, expected_status=expected_status,
        )

    def resubmit(
        self,
        charge_id: UUID,
        *,
        actor: str | None = None,
        notes: str | None = None,
        expected_status: ChargeStatus | None = None,
    ) -> Charge:
        return self._transition(
            charge_id, ChargeEvent.RESUBMIT,
            actor=actor, notes=notes, expected_status=expected_status,
        )

    def mark_paid(
        self,
        charge_id: UUID,
        *,
        actor: str | None = None,
        notes: str | None = None,
        expected_status: ChargeStatus | None = None,
    ) -> Charge:
        return self._transition(
            charge_id, ChargeEvent.MARK_PAID,
            actor=actor, notes=notes, expected_status=expected_status,
        )

    def delete(
        self,
        charge_id: UUID,
        *,
        actor: str | None = None,
        expected_status: ChargeStatus | None = None,
    ) -> None:
        charge = self.get(charge_id)
        with LogContext.bind(
            charge_id=str(charge_id), company_id=charge.company_id, actor_id=actor
        ):
            check_expected_status(charge, expected_status, "delete")
            try:
                ensure_deletable(charge)
            except ChargesKernelError as exc:
                logger.warning("charge_delete_rejected", extra={
                    "current_status": charge.status.value,
                    "error_code": exc.code,
                })
                raise
            self._store.delete(charge_id, expected_status=charge.status)
            logger.info("charge_deleted", extra={"status": charge.status.value})

    # ------------------------------------------------------------------
    # Packaging batch costs
    # ------------------------------------------------------------------

    def record_batch_cost(
        self,
        batch: PackagingBatch,
        boxing_input: BoxingInput,
        *,
        company_id: str | None = None,
        title: str | None = None,
        created_by: str | None = None,
    ) -> Charge:
        """
        Record a completed batch's packaging cost as a boxing charge.

        ``boxing_input.batch_size`` must equal the batch's total item count.
        A second call for the same batch fails; the charge is the only side
        holding the link.
        """
        with LogContext.bind(batch_id=str(batch.id)):
            if batch.status != BatchStatus.COMPLETED:
                raise InvalidStateTransitionError(
                    entity_type="packaging_batch",
                    entity_id=str(batch.id),
                    current_state=batch.status.value,
                    requested_state=BatchStatus.COMPLETED.value,
                    action="record_batch_cost",
                    reason="only completed batches can be costed",
                )
            if boxing_input.batch_size != batch.total_items:
                raise InvalidInputError(
                    "batch_size",
                    boxing_input.batch_size,
                    f"batch {batch.id} packed {batch.total_items} items",
                )
            existing = self._store.find_by_batch(batch.id)
            if existing is not None:
                logger.warning("batch_cost_already_recorded", extra={
                    "charge_id": str(existing.id),
                })
                raise InvalidStateTransitionError(
                    entity_type="packaging_batch",
                    entity_id=str(batch.id),
                    current_state="costed",
                    requested_state="costed",
                    action="record_batch_cost",
                    reason=f"cost already recorded on charge {existing.id}",
                )

            owner = company_id or batch.company_id
            if owner is None:
                raise InvalidInputError("company_id", None, "batch has no company")
            charge = self.create_charge(
                owner,
                title or f"Packaging: {batch.batch_name}",
                boxing_input,
                category=ChargeType.BOXING.value,
                charge_date=batch.batch_date,
                created_by=created_by,
                batch_id=batch.id,
            )
            logger.info("batch_cost_recorded", extra={
                "charge_id": str(charge.id),
                "amount": charge.amount,
            })
        return charge
