"""Protocols and types for the data sources the payroll engine reads.

The engine only talks to timesheets, placements, and the expense ledger
through these protocols. ``staffing_payroll.providers.sql`` implements them
over the ORM models.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

if TYPE_CHECKING:
    from staffing_payroll.calculators.types import BaselineMode, BillRate
    from staffing_payroll.models import ExpenseTransaction, ExpenseTransactionTrack


@dataclass(frozen=True)
class TimesheetDay:
    """One timesheet hour entry not yet consumed by payroll."""

    entry_id: UUID
    work_date: datetime.date
    billable_hours: Decimal
    ot_hours: Decimal
    timesheet_status: str

    @property
    def is_approved(self) -> bool:
        return self.timesheet_status == "Approved"


@dataclass(frozen=True)
class PlacementInfo:
    """Active placement as seen by the line builder."""

    placement_id: UUID
    employee_id: UUID
    baseline_mode: BaselineMode
    pay_type_configuration_id: UUID | None


@dataclass
class EligibleExpenses:
    """Payroll-affecting expenses of one employee, split by direction."""

    credits: list[ExpenseTransaction] = field(default_factory=list)
    debits: list[ExpenseTransaction] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.credits) + len(self.debits)


class TimesheetProvider(Protocol):
    """Source of per-day timesheet hours."""

    async def hours_for_period(
        self,
        placement_id: UUID,
        period_start: datetime.date,
        period_end: datetime.date,
    ) -> list[TimesheetDay]:
        """Return entries in the period not yet consumed by payroll.

        Entries of every timesheet status are returned so the caller can
        detect approvals still pending.
        """
        ...

    async def settled_hours(self, placement_id: UUID) -> Decimal:
        """Total hours already consumed by payroll for a placement."""
        ...

    async def mark_raised(self, entry_ids: list[UUID]) -> int:
        """Mark entries as consumed by payroll.

        Returns:
            Number of entries that flipped; already-raised entries are not counted.
        """
        ...


class PlacementProvider(Protocol):
    """Source of placements and their effective-dated bill rates."""

    async def active_placements(
        self, employee_id: UUID, period_start: datetime.date
    ) -> list[PlacementInfo]:
        """Return placements in progress whose end date is absent or not before period_start."""
        ...

    async def bill_rate_on(self, placement_id: UUID, on_date: datetime.date) -> BillRate | None:
        """Return the bill rate effective on a date, or None if none is configured."""
        ...


class ExpenseLedger(Protocol):
    """Store of expense transactions and their per-period applications."""

    async def eligible_expenses(
        self, employee_id: UUID, cutoff: datetime.date
    ) -> EligibleExpenses:
        """Return payroll expenses raised on or before cutoff that are due."""
        ...

    async def tracked_amount(self, expense_id: UUID) -> Decimal:
        """Sum of every amount already applied for an expense."""
        ...

    async def period_applications(
        self, employee_id: UUID, pay_period_id: UUID
    ) -> list[tuple[ExpenseTransactionTrack, str]]:
        """Return (track, transaction_type) pairs already applied in a period."""
        ...

    async def record_application(
        self,
        expense: ExpenseTransaction,
        amount: Decimal,
        pay_period_id: UUID,
        on_date: datetime.date,
    ) -> ExpenseTransactionTrack:
        """Append a track row for an expense applied in a period."""
        ...
