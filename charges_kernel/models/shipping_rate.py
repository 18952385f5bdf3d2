"""
ORM model for carrier shipping tariffs.

Rates are reference data: the calculator consumes them but never owns
them.  ``SqlRateSource`` answers route lookups from this table.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from charges_kernel.db.base import TrackedBase
from charges_kernel.domain.costs import ShippingRate
from charges_kernel.exceptions import InvalidInputError


class ShippingRateModel(TrackedBase):
    """Carrier tariff for one route, provider and service level."""

    __tablename__ = "shipping_rates"

    __table_args__ = (
        Index("ix_shipping_rates_route", "origin_zone", "destination_zone"),
    )

    provider_id: Mapped[str] = mapped_column(String(100), nullable=False)
    service_type: Mapped[str] = mapped_column(String(50), nullable=False)
    origin_zone: Mapped[str] = mapped_column(String(100), nullable=False)
    destination_zone: Mapped[str] = mapped_column(String(100), nullable=False)
    base_rate: Mapped[Decimal] = mapped_column(nullable=False)
    rate_per_kg: Mapped[Decimal] = mapped_column(nullable=False)
    minimum_charge: Mapped[Decimal] = mapped_column(nullable=False)
    fuel_surcharge_rate: Mapped[Decimal] = mapped_column(nullable=False)
    insurance_rate: Mapped[Decimal] = mapped_column(nullable=False)
    estimated_days: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def to_dto(self) -> ShippingRate:
        return ShippingRate(
            provider_id=self.provider_id,
            service_type=self.service_type,
            base_rate=self.base_rate,
            rate_per_kg=self.rate_per_kg,
            minimum_charge=self.minimum_charge,
            fuel_surcharge_rate=self.fuel_surcharge_rate,
            insurance_rate=self.insurance_rate,
            estimated_days=self.estimated_days,
            origin_zone=self.origin_zone,
            destination_zone=self.destination_zone,
        )

    @classmethod
    def from_dto(cls, dto: ShippingRate, created_at, created_by: str | None = None) -> ShippingRateModel:
        if dto.origin_zone is None or dto.destination_zone is None:
            raise InvalidInputError(
                "origin_zone", dto.origin_zone, "stored shipping rates need both zones"
            )
        return cls(
            provider_id=dto.provider_id,
            service_type=dto.service_type,
            origin_zone=dto.origin_zone,
            destination_zone=dto.destination_zone,
            base_rate=dto.base_rate,
            rate_per_kg=dto.rate_per_kg,
            minimum_charge=dto.minimum_charge,
            fuel_surcharge_rate=dto.fuel_surcharge_rate,
            insurance_rate=dto.insurance_rate,
            estimated_days=dto.estimated_days,
            created_at=created_at,
            updated_at=created_at,
            created_by=created_by,
        )
