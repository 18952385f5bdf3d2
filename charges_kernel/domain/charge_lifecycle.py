"""
Charge approval state machine (``charges_kernel.domain.charge_lifecycle``).

Responsibility
--------------
Pure transition functions for the charge approval workflow.  Given a
``Charge`` and an event, return the next ``Charge`` or raise.  No storage,
no clock reads: the caller supplies ``now``.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  The ledger service in
``charges_services`` loads, calls into this module, and persists.

Invariants enforced
-------------------
* ``CHARGE_EVENTS`` is the only source of legal moves::

      draft --submit--> pending_approval --approve--> approved --mark_paid--> paid
                                         \\--reject--> rejected --resubmit--/

* A request carrying ``expected_status`` that no longer matches is
  rejected with ``InvalidStateTransitionError``; a retried ``mark_paid``
  therefore fails instead of paying twice.
* ``reject`` requires a non-blank reason.
* Deletion and recalculation are allowed only from draft or rejected.

Failure modes
-------------
* ``InvalidStateTransitionError`` -- source state does not match.
* ``InvalidInputError`` -- reject without a reason.
* ``ChargeNotDeletableError`` -- delete outside draft / rejected.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from enum import Enum

from charges_kernel.domain.charge import Charge, ChargeHistoryEntry, ChargeStatus
from charges_kernel.exceptions import (
    ChargeNotDeletableError,
    InvalidInputError,
    InvalidStateTransitionError,
)


class ChargeEvent(str, Enum):
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    RESUBMIT = "resubmit"
    MARK_PAID = "mark_paid"


# event -> (required source, resulting status)
CHARGE_EVENTS: dict[ChargeEvent, tuple[ChargeStatus, ChargeStatus]] = {
    ChargeEvent.SUBMIT: (ChargeStatus.DRAFT, ChargeStatus.PENDING_APPROVAL),
    ChargeEvent.APPROVE: (ChargeStatus.PENDING_APPROVAL, ChargeStatus.APPROVED),
    ChargeEvent.REJECT: (ChargeStatus.PENDING_APPROVAL, ChargeStatus.REJECTED),
    ChargeEvent.RESUBMIT: (ChargeStatus.REJECTED, ChargeStatus.PENDING_APPROVAL),
    ChargeEvent.MARK_PAID: (ChargeStatus.APPROVED, ChargeStatus.PAID),
}

CHARGE_TRANSITIONS: dict[ChargeStatus, frozenset[ChargeStatus]] = {
    status: frozenset(
        target for source, target in CHARGE_EVENTS.values() if source == status
    )
    for status in ChargeStatus
}

TERMINAL_STATUSES: frozenset[ChargeStatus] = frozenset(
    status for status, targets in CHARGE_TRANSITIONS.items() if not targets
)

DELETABLE_STATUSES: frozenset[ChargeStatus] = frozenset(
    {ChargeStatus.DRAFT, ChargeStatus.REJECTED}
)
RECALCULABLE_STATUSES = DELETABLE_STATUSES


def can_transition(current: ChargeStatus, target: ChargeStatus) -> bool:
    return target in CHARGE_TRANSITIONS.get(current, frozenset())


def next_status(
    current: ChargeStatus, event: ChargeEvent, *, charge_id: str = "?"
) -> ChargeStatus:
    """The status ``event`` leads to from ``current``, or raise."""
    source, target = CHARGE_EVENTS[event]
    if current != source:
        raise InvalidStateTransitionError(
            entity_type="charge",
            entity_id=charge_id,
            current_state=current.value,
            requested_state=target.value,
            action=event.value,
        )
    return target


def check_expected_status(
    charge: Charge, expected_status: ChargeStatus | None, action: str
) -> None:
    """Fail a retried request whose view of the charge is stale."""
    if expected_status is not None and charge.status != expected_status:
        raise InvalidStateTransitionError(
            entity_type="charge",
            entity_id=str(charge.id),
            current_state=charge.status.value,
            requested_state=expected_status.value,
            action=action,
            reason="stale expected status",
        )


def apply_event(
    charge: Charge,
    event: ChargeEvent,
    *,
    now: datetime,
    actor: str | None = None,
    notes: str | None = None,
    expected_status: ChargeStatus | None = None,
) -> Charge:
    """
    Apply ``event`` to ``charge`` and return the updated charge.

    ``notes`` is the approval note for ``approve`` and the mandatory reason
    for ``reject``; for the other events it is kept as the history comment.
    """
    check_expected_status(charge, expected_status, event.value)
    target = next_status(charge.status, event, charge_id=str(charge.id))

    changes: dict = {"status": target, "updated_at": now}
    if event == ChargeEvent.REJECT:
        if notes is None or not notes.strip():
            raise InvalidInputError("reason", notes, "a rejection reason is required")
        changes["approval_notes"] = notes
    elif event == ChargeEvent.APPROVE:
        changes["approval_notes"] = notes
        changes["approved_by"] = actor
        changes["approved_at"] = now
    elif event == ChargeEvent.MARK_PAID:
        changes["paid_at"] = now

    entry = ChargeHistoryEntry(
        action=event.value,
        previous_status=charge.status,
        new_status=target,
        performed_at=now,
        performed_by=actor,
        comment=notes,
    )
    changes["history"] = (*charge.history, entry)
    return replace(charge, **changes)


def ensure_deletable(charge: Charge) -> None:
    if charge.status not in DELETABLE_STATUSES:
        raise ChargeNotDeletableError(str(charge.id), charge.status.value)


def ensure_recalculable(charge: Charge) -> None:
    if charge.status not in RECALCULABLE_STATUSES:
        raise InvalidStateTransitionError(
            entity_type="charge",
            entity_id=str(charge.id),
            current_state=charge.status.value,
            requested_state=charge.status.value,
            action="recalculate",
            reason="only draft or rejected charges can be recalculated",
        )
