"""
charges_services.query -- Stateless filtering, sorting and paging of charges.

Responsibility:
    Apply a ``ChargeFilter`` and a sort key to a collection of charges the
    caller already fetched, then cut one page.  Also the canned selectors
    used by the approval dashboard: pending approvals, overdue charges,
    high-priority charges, and a status/type summary.

Architecture position:
    Services -- pure functions over domain objects.  No store access; the
    ledger fetches and hands the list in.

Invariants enforced:
    - Sorting is stable; strings compare case-insensitively; charges with
      no value for the sort key go last in either direction.
    - A filter with every field unset matches every charge.
    - Amount ranges compare ``Charge.amount`` in minor units, inclusive.

Failure modes:
    - InvalidInputError for an unknown sort field, a sort field whose
      values cannot be ordered (nested records, collections, mixed types),
      page < 1, page_size < 1, an inverted date or amount range, or an
      unknown enum value.
"""

from __future__ import annotations

import dataclasses
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable
from uuid import UUID

from charges_config import get_active_config
from charges_kernel.domain.charge import Charge, ChargePriority, ChargeStatus, ChargeType
from charges_kernel.domain.values import ZERO, round_money
from charges_kernel.exceptions import InvalidInputError

BREAKDOWN_PREFIX = "breakdown."
HIGH_PRIORITIES = frozenset({ChargePriority.HIGH, ChargePriority.URGENT})

_CHARGE_FIELDS = frozenset(f.name for f in dataclasses.fields(Charge)) | {"type", "total_cost"}
# Value types a sort key may resolve to; datetime is covered by date.
_ORDERABLE = (int, float, Decimal, str, Enum, date, UUID)


def _enum_set(enum_cls: type[Enum], values: Iterable[Any], name: str) -> frozenset:
    try:
        return frozenset(enum_cls(v) for v in values)
    except ValueError as exc:
        raise InvalidInputError(name, list(values), str(exc)) from exc


@dataclass(frozen=True)
class ChargeFilter:
    """
    Predicate over charges.  Set-valued fields match any member; every
    populated field must match.
    """

    types: frozenset[ChargeType] = frozenset()
    statuses: frozenset[ChargeStatus] = frozenset()
    categories: frozenset[str] = frozenset()
    priorities: frozenset[ChargePriority] = frozenset()
    company_id: str | None = None
    created_by: str | None = None
    date_from: date | None = None
    date_to: date | None = None
    min_amount: int | None = None
    max_amount: int | None = None
    search: str | None = None
    tags: frozenset[str] = frozenset()

    def __post_init__(self):
        object.__setattr__(self, "types", _enum_set(ChargeType, self.types, "types"))
        object.__setattr__(self, "statuses", _enum_set(ChargeStatus, self.statuses, "statuses"))
        object.__setattr__(
            self, "priorities", _enum_set(ChargePriority, self.priorities, "priorities")
        )
        object.__setattr__(self, "categories", frozenset(self.categories))
        object.__setattr__(self, "tags", frozenset(self.tags))
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise InvalidInputError("date_from", self.date_from, "must not be after date_to")
        if (
            self.min_amount is not None
            and self.max_amount is not None
            and self.min_amount > self.max_amount
        ):
            raise InvalidInputError("min_amount", self.min_amount, "must not exceed max_amount")

    def matches(self, charge: Charge) -> bool:
        if self.types and charge.type not in self.types:
            return False
        if self.statuses and charge.status not in self.statuses:
            return False
        if self.categories and charge.category not in self.categories:
            return False
        if self.priorities and charge.priority not in self.priorities:
            return False
        if self.company_id is not None and charge.company_id != self.company_id:
            return False
        if self.created_by is not None and charge.created_by != self.created_by:
            return False
        day = effective_date(charge)
        if self.date_from is not None and day < self.date_from:
            return False
        if self.date_to is not None and day > self.date_to:
            return False
        if self.min_amount is not None and charge.amount < self.min_amount:
            return False
        if self.max_amount is not None and charge.amount > self.max_amount:
            return False
        if self.tags and not self.tags.intersection(charge.tags):
            return False
        if self.search and not _matches_search(charge, self.search):
            return False
        return True


def effective_date(charge: Charge) -> date:
    """The business date of a charge: ``charge_date`` when set, else creation day."""
    return charge.charge_date or charge.created_at.date()


def _matches_search(charge: Charge, term: str) -> bool:
    needle = term.strip().casefold()
    if not needle:
        return True
    haystack = (
        charge.title,
        charge.description,
        charge.reference_number,
        charge.notes,
        *charge.tags,
    )
    return any(needle in text.casefold() for text in haystack if text)


def filter_charges(charges: Iterable[Charge], charge_filter: ChargeFilter | None) -> list[Charge]:
    if charge_filter is None:
        return list(charges)
    return [c for c in charges if charge_filter.matches(c)]


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------


def _field_value(charge: Charge, sort_by: str) -> Any:
    if sort_by.startswith(BREAKDOWN_PREFIX):
        return getattr(charge.breakdown, sort_by[len(BREAKDOWN_PREFIX):], None)
    return getattr(charge, sort_by)


def _comparable(value: Any) -> Any:
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, str):
        return value.casefold()
    return value


def sort_charges(
    charges: Iterable[Charge], sort_by: str = "created_at", descending: bool = True
) -> list[Charge]:
    """Stable sort on a charge field or a ``breakdown.<field>`` path."""
    if sort_by not in _CHARGE_FIELDS and not (
        sort_by.startswith(BREAKDOWN_PREFIX) and len(sort_by) > len(BREAKDOWN_PREFIX)
    ):
        raise InvalidInputError("sort_by", sort_by, "unknown sort field")

    present: list[tuple[Any, Charge]] = []
    missing: list[Charge] = []
    for charge in charges:
        value = _field_value(charge, sort_by)
        if value is None:
            missing.append(charge)
        elif isinstance(value, _ORDERABLE):
            present.append((_comparable(value), charge))
        else:
            raise InvalidInputError(
                "sort_by", sort_by, f"{type(value).__name__} values cannot be ordered"
            )
    try:
        present.sort(key=lambda pair: pair[0], reverse=descending)
    except TypeError as exc:
        raise InvalidInputError(
            "sort_by", sort_by, "values of mixed types cannot be ordered"
        ) from exc
    return [c for _, c in present] + missing


# ---------------------------------------------------------------------------
# Paging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Pagination:
    page: int
    page_size: int
    total: int
    total_pages: int


@dataclass(frozen=True)
class Page:
    data: tuple[Charge, ...]
    pagination: Pagination


def paginate(charges: list[Charge], page: int = 1, page_size: int = 20) -> Page:
    if isinstance(page, bool) or not isinstance(page, int) or page < 1:
        raise InvalidInputError("page", page, "must be a positive integer")
    if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size < 1:
        raise InvalidInputError("page_size", page_size, "must be a positive integer")
    total = len(charges)
    start = (page - 1) * page_size
    return Page(
        data=tuple(charges[start:start + page_size]),
        pagination=Pagination(
            page=page,
            page_size=page_size,
            total=total,
            total_pages=(total + page_size - 1) // page_size,
        ),
    )


def query_charges(
    charges: Iterable[Charge],
    charge_filter: ChargeFilter | None = None,
    *,
    sort_by: str = "created_at",
    descending: bool = True,
    page: int = 1,
    page_size: int = 20,
) -> Page:
    """Filter, then sort, then page."""
    selected = filter_charges(charges, charge_filter)
    return paginate(sort_charges(selected, sort_by, descending), page, page_size)


# ---------------------------------------------------------------------------
# Selectors and summary
# ---------------------------------------------------------------------------


def pending_approvals(charges: Iterable[Charge]) -> list[Charge]:
    return [c for c in charges if c.status == ChargeStatus.PENDING_APPROVAL]


def overdue_charges(
    charges: Iterable[Charge], now: datetime, days: int | None = None
) -> list[Charge]:
    """Pending charges whose last status change is more than ``days`` old."""
    if days is None:
        days = get_active_config().ledger.overdue_after_days
    cutoff = now - timedelta(days=days)
    return [c for c in pending_approvals(charges) if c.updated_at < cutoff]


def high_priority_charges(charges: Iterable[Charge]) -> list[Charge]:
    return [c for c in charges if c.priority in HIGH_PRIORITIES]


@dataclass(frozen=True)
class ChargeSummary:
    total_count: int
    total_amount: int
    average_amount: Decimal
    count_by_status: dict[ChargeStatus, int] = field(default_factory=dict)
    amount_by_status: dict[ChargeStatus, int] = field(default_factory=dict)
    count_by_type: dict[ChargeType, int] = field(default_factory=dict)
    amount_by_type: dict[ChargeType, int] = field(default_factory=dict)
    amount_by_currency: dict[str, int] = field(default_factory=dict)


def summarize(charges: Iterable[Charge]) -> ChargeSummary:
    """
    Counts and minor-unit amounts per status and per type.

    Amounts in different currencies are added as-is in the totals;
    ``amount_by_currency`` keeps them apart.
    """
    charges = list(charges)
    count_by_status: Counter = Counter()
    amount_by_status: defaultdict = defaultdict(int)
    count_by_type: Counter = Counter()
    amount_by_type: defaultdict = defaultdict(int)
    amount_by_currency: defaultdict = defaultdict(int)
    for charge in charges:
        count_by_status[charge.status] += 1
        amount_by_status[charge.status] += charge.amount
        count_by_type[charge.type] += 1
        amount_by_type[charge.type] += charge.amount
        amount_by_currency[charge.currency.value] += charge.amount

    total_amount = sum(c.amount for c in charges)
    average = (
        round_money(Decimal(total_amount) / Decimal(len(charges))) if charges else ZERO
    )
    return ChargeSummary(
        total_count=len(charges),
        total_amount=total_amount,
        average_amount=average,
        count_by_status={s: count_by_status[s] for s in ChargeStatus},
        amount_by_status={s: amount_by_status[s] for s in ChargeStatus},
        count_by_type={t: count_by_type[t] for t in ChargeType},
        amount_by_type={t: amount_by_type[t] for t in ChargeType},
        amount_by_currency=dict(amount_by_currency),
    )
