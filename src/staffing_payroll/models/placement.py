"""Placement, bill rate schedule, and pay band configuration models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from staffing_payroll.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from staffing_payroll.models.employee import Employee


class PayTypeConfiguration(Base, TimestampMixin):
    """Pay configuration: pay type plus its tier schedule."""

    __tablename__ = "pay_type_configuration"

    pay_type_configuration_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    pay_type: Mapped[str] = mapped_column(String, nullable=False, default="hourly")
    # Fixed amount per pay period for salary placements
    payroll_pay: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )

    __table_args__ = (
        CheckConstraint(
            "pay_type IN ('hourly', 'salary')",
            name="pay_type_configuration_pay_type_check",
        ),
    )

    # Relationships
    tiers: Mapped[list[PayRateTier]] = relationship(
        back_populates="pay_type_configuration",
        order_by="PayRateTier.from_hour",
    )


class PayRateTier(Base, TimestampMixin):
    """One cumulative-hours pay band of a pay configuration."""

    __tablename__ = "pay_rate_tier"

    pay_rate_tier_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    pay_type_configuration_id: Mapped[UUID] = mapped_column(
        ForeignKey("pay_type_configuration.pay_type_configuration_id", ondelete="CASCADE"),
        nullable=False,
    )
    from_hour: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    to_hour: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    rate: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    rate_basis: Mapped[str] = mapped_column(String, nullable=False, default="value")

    __table_args__ = (
        CheckConstraint(
            "rate_basis IN ('percentage', 'value')",
            name="pay_rate_tier_basis_check",
        ),
        CheckConstraint(
            "to_hour IS NULL OR to_hour > from_hour",
            name="pay_rate_tier_range_check",
        ),
    )

    # Relationships
    pay_type_configuration: Mapped[PayTypeConfiguration] = relationship(back_populates="tiers")


class Placement(Base, TimestampMixin):
    """An employee's engagement with a client."""

    __tablename__ = "placement"

    placement_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    client_name: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="In Progress")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payroll_configuration_type: Mapped[str] = mapped_column(
        String, nullable=False, default="global"
    )
    pay_type_configuration_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("pay_type_configuration.pay_type_configuration_id"),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('In Progress', 'Completed', 'Cancelled')",
            name="placement_status_check",
        ),
        CheckConstraint(
            "payroll_configuration_type IN ('global', 'custom')",
            name="placement_payroll_configuration_type_check",
        ),
        CheckConstraint("end_date IS NULL OR end_date >= start_date", name="placement_dates_check"),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="placements")
    pay_type_configuration: Mapped[PayTypeConfiguration | None] = relationship()
    bill_rates: Mapped[list[PlacementBillRate]] = relationship(back_populates="placement")


class PlacementBillRate(Base, TimestampMixin):
    """Effective-dated bill rate, discount, and overtime policy of a placement."""

    __tablename__ = "placement_bill_rate"

    placement_bill_rate_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    placement_id: Mapped[UUID] = mapped_column(
        ForeignKey("placement.placement_id", ondelete="CASCADE"),
        nullable=False,
    )
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    bill_rate: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    bill_rate_discount: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    bill_rate_discount_type: Mapped[str | None] = mapped_column(String, nullable=True)
    ot_bill_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    ot_pay_rate_config_type: Mapped[str | None] = mapped_column(String, nullable=True)
    ot_pay_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    ot_pay_rate_multiplier: Mapped[Decimal | None] = mapped_column(Numeric(7, 4), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "bill_rate_discount_type IS NULL OR bill_rate_discount_type IN ('percentage', 'value')",
            name="placement_bill_rate_discount_type_check",
        ),
        CheckConstraint(
            "ot_pay_rate_config_type IS NULL OR "
            "ot_pay_rate_config_type IN ('same_as_base', 'fixed_rate', 'multiplier')",
            name="placement_bill_rate_ot_type_check",
        ),
        CheckConstraint(
            "effective_to IS NULL OR effective_to >= effective_from",
            name="placement_bill_rate_dates_check",
        ),
    )

    # Relationships
    placement: Mapped[Placement] = relationship(back_populates="bill_rates")

    def is_active_on(self, as_of_date: date) -> bool:
        """Check if the bill rate is effective on a given date."""
        if self.effective_from > as_of_date:
            return False
        if self.effective_to is not None and self.effective_to < as_of_date:
            return False
        return True
