"""Timesheet and per-day timesheet hour models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from staffing_payroll.models.base import Base, TimestampMixin


class Timesheet(Base, TimestampMixin):
    """A submitted timesheet for one placement over a date range."""

    __tablename__ = "timesheet"

    timesheet_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    placement_id: Mapped[UUID] = mapped_column(
        ForeignKey("placement.placement_id", ondelete="CASCADE"),
        nullable=False,
    )
    from_date: Mapped[date] = mapped_column(Date, nullable=False)
    to_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="Drafted")

    __table_args__ = (
        CheckConstraint(
            "status IN ('Drafted', 'Submitted', 'Approval In Progress', 'Approved', 'Rejected')",
            name="timesheet_status_check",
        ),
    )

    # Relationships
    hours: Mapped[list[TimesheetHour]] = relationship(back_populates="timesheet")

    @property
    def is_approved(self) -> bool:
        return self.status == "Approved"


class TimesheetHour(Base, TimestampMixin):
    """One day's billable and overtime hours.

    ``invoice_raised`` and ``payroll_raised`` are independent: billing and
    payroll each consume an hour at most once.
    """

    __tablename__ = "timesheet_hour"

    timesheet_hour_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    timesheet_id: Mapped[UUID] = mapped_column(
        ForeignKey("timesheet.timesheet_id", ondelete="CASCADE"),
        nullable=False,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    billable_hours: Mapped[Decimal] = mapped_column(
        Numeric(8, 4), nullable=False, default=Decimal("0")
    )
    ot_hours: Mapped[Decimal] = mapped_column(Numeric(8, 4), nullable=False, default=Decimal("0"))
    invoice_raised: Mapped[bool] = mapped_column(default=False, nullable=False)
    payroll_raised: Mapped[bool] = mapped_column(default=False, nullable=False)

    __table_args__ = (
        CheckConstraint("billable_hours >= 0", name="timesheet_hour_billable_check"),
        CheckConstraint("ot_hours >= 0", name="timesheet_hour_ot_check"),
    )

    # Relationships
    timesheet: Mapped[Timesheet] = relationship(back_populates="hours")

    @property
    def total_hours(self) -> Decimal:
        return self.billable_hours + self.ot_hours
