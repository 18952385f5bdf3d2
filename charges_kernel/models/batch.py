"""
ORM models for packaging batch persistence.

Contract:
    PackagingBatchModel and BatchProductModel persist ``PackagingBatch``
    state and its ordered product lines.  ``to_dto()`` / ``from_dto()``
    round-trip the frozen domain objects.

Architecture: charges_kernel/models.  Imports from charges_kernel.db.base
and the domain layer only.

Invariants enforced:
    - ``completion_percentage`` is never stored; it is recomputed from the
      product lines on every load.
    - Product line order is preserved via ``position``.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from charges_kernel.db.base import Base, TrackedBase, UUIDString
from charges_kernel.domain.packaging_batch import (
    BatchProduct,
    BatchStatus,
    PackagingBatch,
    ProductPriority,
)


class BatchProductModel(Base):
    """One product line of a packaging batch."""

    __tablename__ = "packaging_batch_products"

    __table_args__ = (
        Index("ix_batch_products_batch_product", "batch_id", "product_id", unique=True),
    )

    batch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("packaging_batches.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    priority: Mapped[str] = mapped_column(String(20), nullable=False)
    packaging_template_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    batch: Mapped[PackagingBatchModel] = relationship(
        "PackagingBatchModel", back_populates="products"
    )

    def to_dto(self) -> BatchProduct:
        return BatchProduct(
            product_id=self.product_id,
            quantity=self.quantity,
            completed_quantity=self.completed_quantity,
            priority=ProductPriority(self.priority),
            packaging_template_id=self.packaging_template_id,
        )


class PackagingBatchModel(TrackedBase):
    """Persistent packaging batch record."""

    __tablename__ = "packaging_batches"

    __table_args__ = (
        Index("ix_packaging_batches_status", "status"),
        Index("ix_packaging_batches_company", "company_id"),
    )

    batch_name: Mapped[str] = mapped_column(String(200), nullable=False)
    batch_date: Mapped[date] = mapped_column(nullable=False)
    company_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    planned_duration: Mapped[Decimal] = mapped_column(nullable=False)
    actual_duration: Mapped[Decimal | None] = mapped_column(nullable=True)
    assigned_workers: Mapped[list | None] = mapped_column(JSON, nullable=True)
    supervised_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    start_time: Mapped[datetime | None] = mapped_column(nullable=True)
    end_time: Mapped[datetime | None] = mapped_column(nullable=True)
    defect_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rework_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    overall_quality_score: Mapped[Decimal | None] = mapped_column(nullable=True)
    efficiency_score: Mapped[Decimal | None] = mapped_column(nullable=True)
    quality_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    products: Mapped[list[BatchProductModel]] = relationship(
        "BatchProductModel",
        back_populates="batch",
        order_by="BatchProductModel.position",
        cascade="all, delete-orphan",
    )

    def to_dto(self) -> PackagingBatch:
        return PackagingBatch(
            id=self.id,
            batch_name=self.batch_name,
            batch_date=self.batch_date,
            planned_duration=self.planned_duration,
            products=tuple(p.to_dto() for p in self.products),
            created_at=self.created_at,
            updated_at=self.updated_at,
            company_id=self.company_id,
            status=BatchStatus(self.status),
            assigned_workers=frozenset(self.assigned_workers or ()),
            supervised_by=self.supervised_by,
            actual_duration=self.actual_duration,
            start_time=self.start_time,
            end_time=self.end_time,
            defect_count=self.defect_count,
            rework_count=self.rework_count,
            overall_quality_score=self.overall_quality_score,
            efficiency_score=self.efficiency_score,
            quality_notes=self.quality_notes,
            cancellation_reason=self.cancellation_reason,
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: PackagingBatch, created_by: str | None = None) -> PackagingBatchModel:
        model = cls(id=dto.id, created_at=dto.created_at, created_by=created_by)
        model.apply_dto(dto)
        return model

    def apply_dto(self, dto: PackagingBatch) -> None:
        self.batch_name = dto.batch_name
        self.batch_date = dto.batch_date
        self.company_id = dto.company_id
        self.status = dto.status.value
        self.planned_duration = dto.planned_duration
        self.actual_duration = dto.actual_duration
        self.assigned_workers = sorted(dto.assigned_workers)
        self.supervised_by = dto.supervised_by
        self.start_time = dto.start_time
        self.end_time = dto.end_time
        self.defect_count = dto.defect_count
        self.rework_count = dto.rework_count
        self.overall_quality_score = dto.overall_quality_score
        self.efficiency_score = dto.efficiency_score
        self.quality_notes = dto.quality_notes
        self.cancellation_reason = dto.cancellation_reason
        self.version = dto.version
        self.updated_at = dto.updated_at

        existing = {p.product_id: p for p in self.products}
        for position, product in enumerate(dto.products):
            row = existing.get(product.product_id)
            if row is None:
                self.products.append(BatchProductModel(
                    position=position,
                    product_id=product.product_id,
                    quantity=product.quantity,
                    completed_quantity=product.completed_quantity,
                    priority=product.priority.value,
                    packaging_template_id=product.packaging_template_id,
                ))
            else:
                row.position = position
                row.quantity = product.quantity
                row.completed_quantity = product.completed_quantity
                row.priority = product.priority.value
                row.packaging_template_id = product.packaging_template_id
