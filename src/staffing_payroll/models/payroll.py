"""Pay period, payroll line, and payment detail models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from staffing_payroll.models.base import Base, JSONType, TimestampMixin
from staffing_payroll.models.employee import Employee, PayConfigSetting
from staffing_payroll.models.placement import Placement


class PayPeriod(Base, TimestampMixin):
    """Pay period instance, created by the scheduler."""

    __tablename__ = "pay_period"

    pay_period_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    pay_config_setting_id: Mapped[UUID] = mapped_column(
        ForeignKey("pay_config_setting.pay_config_setting_id", ondelete="CASCADE"),
        nullable=False,
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    check_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="Yet to generate")
    drafted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    skipped_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "pay_config_setting_id",
            "period_start",
            "period_end",
            name="pay_period_setting_dates_unique",
        ),
        CheckConstraint(
            "status IN ('Yet to generate', 'Drafted', 'Submitted', 'Skipped')",
            name="pay_period_status_check",
        ),
        CheckConstraint("period_end >= period_start", name="pay_period_dates_check"),
    )

    # Relationships
    pay_config_setting: Mapped[PayConfigSetting] = relationship()


class PayrollLine(Base, TimestampMixin):
    """Computed pay for one (employee, placement, period).

    ``placement_id`` is null for the zero line kept for employees without an
    active placement.
    """

    __tablename__ = "payroll_line"

    payroll_line_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    pay_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("pay_period.pay_period_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    placement_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("placement.placement_id", ondelete="SET NULL"),
        nullable=True,
    )
    worked_hours: Mapped[Decimal] = mapped_column(
        Numeric(12, 4), nullable=False, default=Decimal("0")
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    rate_breakdown: Mapped[list[Any]] = mapped_column(JSONType, nullable=False, default=list)
    timesheet_approval_pending: Mapped[bool] = mapped_column(default=False, nullable=False)
    needs_review: Mapped[bool] = mapped_column(default=False, nullable=False)
    review_notes: Mapped[list[Any]] = mapped_column(JSONType, nullable=False, default=list)
    # Timesheet hour entries priced into this line, marked raised on submit
    consumed_entry_ids: Mapped[list[Any]] = mapped_column(JSONType, nullable=False, default=list)
    engine_version: Mapped[str | None] = mapped_column(String, nullable=True)
    inputs_fingerprint: Mapped[str | None] = mapped_column(String(32), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "pay_period_id", "employee_id", "placement_id", name="payroll_line_natural_key"
        ),
    )

    # Relationships
    pay_period: Mapped[PayPeriod] = relationship()
    employee: Mapped[Employee] = relationship()
    placement: Mapped[Placement | None] = relationship()


class PayrollPaymentDetail(Base, TimestampMixin):
    """Per-employee payment aggregate for one period.

    Invariant after settlement:
    balance_amount = total_amount + credited_expense - debited_expense - amount_paid
    """

    __tablename__ = "payroll_payment_detail"

    payment_detail_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    pay_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("pay_period.pay_period_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    worked_hours: Mapped[Decimal] = mapped_column(
        Numeric(12, 4), nullable=False, default=Decimal("0")
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    amount_paid: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    credited_expense: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    debited_expense: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    balance_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    # What has already been rolled into the employee counters
    rolled_hours: Mapped[Decimal] = mapped_column(
        Numeric(12, 4), nullable=False, default=Decimal("0")
    )
    rolled_balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("pay_period_id", "employee_id", name="payment_detail_period_employee"),
        CheckConstraint(
            "status IN ('draft', 'settled', 'finalized')",
            name="payment_detail_status_check",
        ),
    )

    # Relationships
    pay_period: Mapped[PayPeriod] = relationship()
    employee: Mapped[Employee] = relationship()

    @property
    def is_finalize(self) -> bool:
        """Terminal lock: no recomputation once set."""
        return self.status == "finalized"
