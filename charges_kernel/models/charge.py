"""
ORM models for charge persistence.

Contract:
    ChargeModel and ChargeHistoryModel persist ``Charge`` entities and
    their audit trail.  ``to_dto()`` / ``from_dto()`` convert to and from
    the frozen domain objects; the calculator detail is stored as JSON.

Architecture: charges_kernel/models.  Imports from charges_kernel.db.base
and the domain layer only.

Invariants enforced:
    - ``batch_id`` is UNIQUE: a packaging batch's cost is recorded on at
      most one charge.
    - History rows are append-only; ``apply_dto`` only adds entries past
      the ones already stored.
    - The legacy material field ``unit_cost`` is accepted here, and only
      here, and renamed to ``cost_per_unit`` before a domain object is
      built.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, BigInteger, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from charges_kernel.db.base import Base, TrackedBase, UUIDString
from charges_kernel.domain.charge import (
    DETAIL_TYPES,
    Charge,
    ChargeDetail,
    ChargeHistoryEntry,
    ChargePriority,
    ChargeStatus,
    ChargeType,
)
from charges_kernel.domain.values import ChargeCurrency
from charges_kernel.exceptions import InvalidInputError
from charges_kernel.logging_config import get_logger
from charges_kernel.models.payload import from_payload, to_payload

logger = get_logger("models.charge")


def canonical_materials(materials: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Rename legacy ``unit_cost`` to ``cost_per_unit`` on stored materials."""
    result = []
    for material in materials:
        material = dict(material)
        legacy = material.pop("unit_cost", None)
        if "cost_per_unit" not in material or material["cost_per_unit"] is None:
            if legacy is None:
                raise InvalidInputError(
                    "cost_per_unit", None, f"material {material.get('material_id')!r} has no cost"
                )
            material["cost_per_unit"] = legacy
            logger.debug(
                "legacy_material_field_mapped",
                extra={"material_id": material.get("material_id")},
            )
        result.append(material)
    return result


def detail_from_json(charge_type: ChargeType, data: dict[str, Any]) -> ChargeDetail:
    if charge_type == ChargeType.BOXING:
        data = dict(data)
        data["input"] = dict(data["input"])
        data["input"]["materials"] = canonical_materials(data["input"].get("materials", []))
    return from_payload(DETAIL_TYPES[charge_type], data)


class ChargeHistoryModel(Base):
    """One audited lifecycle step of a charge."""

    __tablename__ = "charge_history"

    __table_args__ = (
        Index("ix_charge_history_charge_seq", "charge_id", "sequence", unique=True),
    )

    charge_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("charges.id", ondelete="CASCADE"),
        nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    previous_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    new_status: Mapped[str] = mapped_column(String(50), nullable=False)
    performed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    performed_at: Mapped[datetime] = mapped_column(nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    charge: Mapped[ChargeModel] = relationship("ChargeModel", back_populates="history")

    def to_dto(self) -> ChargeHistoryEntry:
        return ChargeHistoryEntry(
            action=self.action,
            previous_status=ChargeStatus(self.previous_status) if self.previous_status else None,
            new_status=ChargeStatus(self.new_status),
            performed_at=self.performed_at,
            performed_by=self.performed_by,
            comment=self.comment,
        )

    @classmethod
    def from_dto(cls, dto: ChargeHistoryEntry, sequence: int) -> ChargeHistoryModel:
        return cls(
            sequence=sequence,
            action=dto.action,
            previous_status=dto.previous_status.value if dto.previous_status else None,
            new_status=dto.new_status.value,
            performed_by=dto.performed_by,
            performed_at=dto.performed_at,
            comment=dto.comment,
        )


class ChargeModel(TrackedBase):
    """Persistent charge record."""

    __tablename__ = "charges"

    __table_args__ = (
        Index("ix_charges_company_status", "company_id", "status"),
        Index("ix_charges_type", "charge_type"),
        Index("ix_charges_created_at", "created_at"),
    )

    company_id: Mapped[str] = mapped_column(String(100), nullable=False)
    charge_type: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list | None] = mapped_column(JSON, nullable=True)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    total_cost: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    priority: Mapped[str] = mapped_column(String(20), nullable=False)
    charge_date: Mapped[date | None] = mapped_column(nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approval_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    batch_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True, unique=True)
    detail: Mapped[dict] = mapped_column(JSON, nullable=False)

    history: Mapped[list[ChargeHistoryModel]] = relationship(
        "ChargeHistoryModel",
        back_populates="charge",
        order_by="ChargeHistoryModel.sequence",
        cascade="all, delete-orphan",
    )

    def to_dto(self) -> Charge:
        charge_type = ChargeType(self.charge_type)
        return Charge(
            id=self.id,
            company_id=self.company_id,
            title=self.title,
            detail=detail_from_json(charge_type, self.detail),
            amount=self.amount,
            currency=ChargeCurrency(self.currency),
            status=ChargeStatus(self.status),
            created_at=self.created_at,
            updated_at=self.updated_at,
            priority=ChargePriority(self.priority),
            category=self.category,
            description=self.description,
            reference_number=self.reference_number,
            notes=self.notes,
            tags=tuple(self.tags or ()),
            charge_date=self.charge_date,
            created_by=self.created_by,
            approved_by=self.approved_by,
            approved_at=self.approved_at,
            paid_at=self.paid_at,
            approval_notes=self.approval_notes,
            batch_id=self.batch_id,
            history=tuple(h.to_dto() for h in self.history),
        )

    @classmethod
    def from_dto(cls, dto: Charge) -> ChargeModel:
        model = cls(id=dto.id, created_at=dto.created_at, created_by=dto.created_by)
        model.apply_dto(dto)
        return model

    def apply_dto(self, dto: Charge) -> None:
        """Copy mutable fields from ``dto`` and append unseen history entries."""
        self.company_id = dto.company_id
        self.charge_type = dto.type.value
        self.category = dto.category
        self.title = dto.title
        self.description = dto.description
        self.reference_number = dto.reference_number
        self.notes = dto.notes
        self.tags = list(dto.tags)
        self.amount = dto.amount
        self.total_cost = dto.total_cost
        self.currency = dto.currency.value
        self.status = dto.status.value
        self.priority = dto.priority.value
        self.charge_date = dto.charge_date
        self.approved_by = dto.approved_by
        self.approved_at = dto.approved_at
        self.paid_at = dto.paid_at
        self.approval_notes = dto.approval_notes
        self.batch_id = dto.batch_id
        self.detail = to_payload(dto.detail)
        self.updated_at = dto.updated_at

        stored = len(self.history)
        for sequence, entry in enumerate(dto.history[stored:], start=stored + 1):
            self.history.append(ChargeHistoryModel.from_dto(entry, sequence))
