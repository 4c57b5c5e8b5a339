"""Employee expense transactions and their application audit trail."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from staffing_payroll.models.base import Base, TimestampMixin


class ExpenseTransaction(Base, TimestampMixin):
    """Reimbursement (credit) or deduction (debit) against an employee."""

    __tablename__ = "expense_transaction"

    expense_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    transaction_type: Mapped[str] = mapped_column(String, nullable=False)
    effect_on: Mapped[str] = mapped_column(String, nullable=False, default="payroll")
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    due_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    raised_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="Submitted")
    enable_approval: Mapped[bool] = mapped_column(default=False, nullable=False)
    approved_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    has_goal_amount: Mapped[bool] = mapped_column(default=False, nullable=False)
    goal_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    is_recurring: Mapped[bool] = mapped_column(default=False, nullable=False)
    # None on a recurring credit means it recurs until stopped
    recurring_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "transaction_type IN ('credit', 'debit')",
            name="expense_transaction_type_check",
        ),
        CheckConstraint(
            "effect_on IN ('payroll', 'balance_sheet')",
            name="expense_transaction_effect_check",
        ),
        CheckConstraint(
            "status IN ('Drafted', 'Submitted', 'Approval In Progress', 'Approved', "
            "'Rejected', 'Reimbursement In Progress', 'Deduction In Progress', "
            "'Processed', 'Write-off')",
            name="expense_transaction_status_check",
        ),
    )

    # Relationships
    tracks: Mapped[list[ExpenseTransactionTrack]] = relationship(back_populates="expense")


class ExpenseTransactionTrack(Base, TimestampMixin):
    """Append-only record of an expense applied to one pay period."""

    __tablename__ = "expense_transaction_track"

    track_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    expense_id: Mapped[UUID] = mapped_column(
        ForeignKey("expense_transaction.expense_id", ondelete="CASCADE"),
        nullable=False,
    )
    pay_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("pay_period.pay_period_id", ondelete="CASCADE"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        UniqueConstraint("expense_id", "pay_period_id", name="expense_track_period_unique"),
    )

    # Relationships
    expense: Mapped[ExpenseTransaction] = relationship(back_populates="tracks")
