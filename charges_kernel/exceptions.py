"""
Typed exception hierarchy for the charges kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the calculators and the lifecycle state machines must be able to
tell a malformed number from an illegal status move without parsing message
strings.  Every error therefore has:
  1. Its own exception class (catch by type, not by message)
  2. A ``code`` class attribute (machine-readable, API-safe)
  3. Structured attributes describing what went wrong

Example:
    try:
        ledger.approve(charge_id, notes="ok")
    except InvalidStateTransitionError as e:
        api_response(
            code=e.code,
            current=e.current_state,
            requested=e.requested_state,
        )

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ChargesKernelError (base)
    |
    +-- InputError
    |   +-- InvalidInputError
    |
    +-- LifecycleError
    |   +-- InvalidStateTransitionError
    |   |   +-- BatchIncompleteError
    |   +-- ChargeNotDeletableError
    |
    +-- ReferenceDataError
    |   +-- NoRateAvailableError
    |   +-- InvalidExchangeRateError
    |
    +-- DivisionByZeroError
    |   +-- InvalidBatchSizeError
    |
    +-- NotFoundError
    |   +-- ChargeNotFoundError
    |   +-- BatchNotFoundError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Input           | INVALID_INPUT               | Malformed / out-of-range numeric input
----------------|-----------------------------|-----------------------------------------
Lifecycle       | INVALID_STATE_TRANSITION    | Illegal charge or batch lifecycle move
                | BATCH_INCOMPLETE            | complete() before 100 % progress
                | CHARGE_NOT_DELETABLE        | delete() outside draft / rejected
----------------|-----------------------------|-----------------------------------------
Reference data  | NO_RATE_AVAILABLE           | No shipping rate for route / service
                | INVALID_EXCHANGE_RATE       | Rate missing, zero or negative
----------------|-----------------------------|-----------------------------------------
Arithmetic      | DIVISION_BY_ZERO            | Guarded division with a zero divisor
                | INVALID_BATCH_SIZE          | batch_size <= 0 in boxing cost
----------------|-----------------------------|-----------------------------------------
Lookup          | CHARGE_NOT_FOUND            | Unknown charge id
                | BATCH_NOT_FOUND             | Unknown packaging batch id
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Batch changed since it was read
----------------|-----------------------------|-----------------------------------------
Config          | INVALID_CONFIGURATION       | Unknown or malformed config override
"""

from __future__ import annotations

from typing import Any


class ChargesKernelError(Exception):
    """
    Base exception for all charges kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "CHARGES_KERNEL_ERROR"


# Input errors


class InputError(ChargesKernelError):
    """Base exception for rejected calculator / service input."""

    code: str = "INPUT_ERROR"


class InvalidInputError(InputError):
    """A numeric or enumerated input is malformed or out of range."""

    code: str = "INVALID_INPUT"

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid value for {field} ({value!r}): {reason}")


# Lifecycle errors


class LifecycleError(ChargesKernelError):
    """Base exception for charge and batch lifecycle violations."""

    code: str = "LIFECYCLE_ERROR"


class InvalidStateTransitionError(LifecycleError):
    """
    A lifecycle transition was attempted from a non-matching source state.

    Also raised when a retried request carries a stale expected source
    state, so the same transition is never applied twice.
    """

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        requested_state: str,
        action: str | None = None,
        reason: str | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_state = current_state
        self.requested_state = requested_state
        self.action = action
        self.reason = reason
        message = (
            f"Cannot move {entity_type} {entity_id} from '{current_state}' "
            f"to '{requested_state}'"
        )
        if action:
            message += f" via '{action}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class BatchIncompleteError(InvalidStateTransitionError):
    """Batch completion requested before every item was packed."""

    code: str = "BATCH_INCOMPLETE"

    def __init__(self, batch_id: str, current_state: str, completion_percentage: str):
        self.completion_percentage = completion_percentage
        super().__init__(
            entity_type="packaging_batch",
            entity_id=batch_id,
            current_state=current_state,
            requested_state="completed",
            action="complete",
            reason=f"completion is {completion_percentage}%, 100% required",
        )


class ChargeNotDeletableError(LifecycleError):
    """Charges may only be deleted while draft or rejected."""

    code: str = "CHARGE_NOT_DELETABLE"

    def __init__(self, charge_id: str, status: str):
        self.charge_id = charge_id
        self.status = status
        super().__init__(
            f"Charge {charge_id} cannot be deleted in status '{status}'"
        )


# Reference data errors


class ReferenceDataError(ChargesKernelError):
    """Base exception for missing or unusable reference data."""

    code: str = "REFERENCE_DATA_ERROR"


class NoRateAvailableError(ReferenceDataError):
    """No shipping rate matches the requested route and service."""

    code: str = "NO_RATE_AVAILABLE"

    def __init__(
        self,
        origin_zone: str,
        destination_zone: str,
        service_type: str | None = None,
        provider_id: str | None = None,
    ):
        self.origin_zone = origin_zone
        self.destination_zone = destination_zone
        self.service_type = service_type
        self.provider_id = provider_id
        detail = f"{origin_zone} -> {destination_zone}"
        if service_type:
            detail += f" service={service_type}"
        if provider_id:
            detail += f" provider={provider_id}"
        super().__init__(f"No shipping rate available for {detail}")


class InvalidExchangeRateError(ReferenceDataError):
    """Exchange rate is missing, zero, or negative."""

    code: str = "INVALID_EXCHANGE_RATE"

    def __init__(self, from_currency: str, to_currency: str, rate: str | None, reason: str):
        self.from_currency = from_currency
        self.to_currency = to_currency
        self.rate = rate
        self.reason = reason
        super().__init__(
            f"Invalid exchange rate {from_currency}/{to_currency} ({rate}): {reason}"
        )


# Arithmetic errors


class DivisionByZeroError(ChargesKernelError):
    """A guarded division was attempted with a zero or negative divisor."""

    code: str = "DIVISION_BY_ZERO"

    def __init__(self, quantity: str, divisor: Any):
        self.quantity = quantity
        self.divisor = divisor
        super().__init__(f"Cannot compute {quantity}: divisor is {divisor}")


class InvalidBatchSizeError(DivisionByZeroError):
    """Boxing cost requested for a batch of zero or fewer units."""

    code: str = "INVALID_BATCH_SIZE"

    def __init__(self, batch_size: Any):
        self.batch_size = batch_size
        super().__init__("cost_per_unit_output", batch_size)
        self.args = (f"Batch size must be positive, got {batch_size}",)


# Lookup errors


class NotFoundError(ChargesKernelError):
    """Base exception for unknown identifiers."""

    code: str = "NOT_FOUND"


class ChargeNotFoundError(NotFoundError):
    """Charge with the given id does not exist."""

    code: str = "CHARGE_NOT_FOUND"

    def __init__(self, charge_id: str):
        self.charge_id = charge_id
        super().__init__(f"Charge not found: {charge_id}")


class BatchNotFoundError(NotFoundError):
    """Packaging batch with the given id does not exist."""

    code: str = "BATCH_NOT_FOUND"

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"Packaging batch not found: {batch_id}")


# Concurrency errors


class ConcurrencyError(ChargesKernelError):
    """Base exception for concurrent-modification conflicts."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """The stored record moved on since the caller read it."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(
        self, entity_type: str, entity_id: str, expected_version: int, current_version: int
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.current_version = current_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            f"expected version {expected_version}, found {current_version}"
        )


# Configuration errors


class ConfigurationError(ChargesKernelError):
    """Configuration override is unknown or malformed."""

    code: str = "INVALID_CONFIGURATION"

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid configuration at '{path}': {reason}")
