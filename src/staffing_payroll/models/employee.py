"""Employee and pay configuration setting models."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from staffing_payroll.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from staffing_payroll.models.placement import Placement


class PayConfigSetting(Base, TimestampMixin):
    """Pay cycle setting that groups employees and pay periods."""

    __tablename__ = "pay_config_setting"

    pay_config_setting_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    frequency: Mapped[str] = mapped_column(String, nullable=False, default="biweekly")

    __table_args__ = (
        CheckConstraint(
            "frequency IN ('weekly', 'biweekly', 'semimonthly', 'monthly')",
            name="pay_config_setting_frequency_check",
        ),
    )


class Employee(Base, TimestampMixin):
    """Employee record with its durable payroll counters.

    ``hours_worked`` and ``balance_amount`` are only written by settlement,
    which bumps ``balance_version`` on every write.
    """

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    display_name: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    enable_payroll: Mapped[bool] = mapped_column(default=True, nullable=False)
    pay_config_setting_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("pay_config_setting.pay_config_setting_id"),
        nullable=True,
    )
    standard_pay_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    hours_worked: Mapped[Decimal] = mapped_column(
        Numeric(14, 4), nullable=False, default=Decimal("0")
    )
    balance_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    balance_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'inactive', 'terminated')",
            name="employee_status_check",
        ),
    )

    # Relationships
    pay_config_setting: Mapped[PayConfigSetting | None] = relationship()
    placements: Mapped[list[Placement]] = relationship(back_populates="employee")
