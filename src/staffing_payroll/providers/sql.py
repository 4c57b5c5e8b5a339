"""SQLAlchemy implementations of the payroll data providers."""

from __future__ import annotations

import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from staffing_payroll.calculators.pay_bands import discount_for, overtime_policy_for
from staffing_payroll.calculators.types import BaselineMode, BillRate
from staffing_payroll.models import (
    ExpenseTransaction,
    ExpenseTransactionTrack,
    Placement,
    PlacementBillRate,
    Timesheet,
    TimesheetHour,
)
from staffing_payroll.providers.base import EligibleExpenses, PlacementInfo, TimesheetDay

# Expense statuses that still have an amount due to payroll
DUE_EXPENSE_STATUSES = (
    "Submitted",
    "Approved",
    "Reimbursement In Progress",
    "Deduction In Progress",
)


class SqlTimesheetProvider:
    """Timesheet hours read from the timesheet tables."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def hours_for_period(
        self,
        placement_id: UUID,
        period_start: datetime.date,
        period_end: datetime.date,
    ) -> list[TimesheetDay]:
        result = await self.session.execute(
            select(TimesheetHour, Timesheet.status)
            .join(Timesheet, Timesheet.timesheet_id == TimesheetHour.timesheet_id)
            .where(
                Timesheet.placement_id == placement_id,
                TimesheetHour.work_date >= period_start,
                TimesheetHour.work_date <= period_end,
                TimesheetHour.payroll_raised.is_(False),
            )
            .order_by(TimesheetHour.work_date, TimesheetHour.timesheet_hour_id)
        )
        return [
            TimesheetDay(
                entry_id=hour.timesheet_hour_id,
                work_date=hour.work_date,
                billable_hours=hour.billable_hours,
                ot_hours=hour.ot_hours,
                timesheet_status=status,
            )
            for hour, status in result.all()
        ]

    async def settled_hours(self, placement_id: UUID) -> Decimal:
        result = await self.session.execute(
            select(
                func.coalesce(
                    func.sum(TimesheetHour.billable_hours + TimesheetHour.ot_hours), 0
                )
            )
            .join(Timesheet, Timesheet.timesheet_id == TimesheetHour.timesheet_id)
            .where(
                Timesheet.placement_id == placement_id,
                TimesheetHour.payroll_raised.is_(True),
            )
        )
        return Decimal(str(result.scalar_one()))

    async def mark_raised(self, entry_ids: list[UUID]) -> int:
        if not entry_ids:
            return 0
        result = await self.session.execute(
            update(TimesheetHour)
            .where(
                TimesheetHour.timesheet_hour_id.in_(entry_ids),
                TimesheetHour.payroll_raised.is_(False),
            )
            .values(payroll_raised=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class SqlPlacementProvider:
    """Placements and bill rates read from the placement tables."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def active_placements(
        self, employee_id: UUID, period_start: datetime.date
    ) -> list[PlacementInfo]:
        result = await self.session.execute(
            select(Placement)
            .where(
                Placement.employee_id == employee_id,
                Placement.status == "In Progress",
                or_(Placement.end_date.is_(None), Placement.end_date >= period_start),
            )
            .order_by(Placement.start_date, Placement.placement_id)
        )
        return [
            PlacementInfo(
                placement_id=placement.placement_id,
                employee_id=placement.employee_id,
                baseline_mode=BaselineMode(placement.payroll_configuration_type),
                pay_type_configuration_id=placement.pay_type_configuration_id,
            )
            for placement in result.scalars().all()
        ]

    async def bill_rate_on(self, placement_id: UUID, on_date: datetime.date) -> BillRate | None:
        result = await self.session.execute(
            select(PlacementBillRate)
            .where(
                PlacementBillRate.placement_id == placement_id,
                PlacementBillRate.effective_from <= on_date,
                or_(
                    PlacementBillRate.effective_to.is_(None),
                    PlacementBillRate.effective_to >= on_date,
                ),
            )
            .order_by(PlacementBillRate.effective_from.desc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None

        return BillRate(
            rate=row.bill_rate,
            discount=discount_for(row.bill_rate_discount_type, row.bill_rate_discount),
            ot_policy=overtime_policy_for(
                row.ot_pay_rate_config_type,
                row.ot_pay_rate,
                row.ot_pay_rate_multiplier,
            ),
            ot_bill_rate=row.ot_bill_rate,
        )


class SqlExpenseLedger:
    """Expense transactions and their application tracks."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def eligible_expenses(
        self, employee_id: UUID, cutoff: datetime.date
    ) -> EligibleExpenses:
        result = await self.session.execute(
            select(ExpenseTransaction)
            .where(
                ExpenseTransaction.employee_id == employee_id,
                ExpenseTransaction.effect_on == "payroll",
                ExpenseTransaction.status.in_(DUE_EXPENSE_STATUSES),
                ExpenseTransaction.raised_date <= cutoff,
                or_(
                    ExpenseTransaction.enable_approval.is_(False),
                    ExpenseTransaction.approved_date.is_not(None),
                ),
            )
            .order_by(ExpenseTransaction.raised_date, ExpenseTransaction.expense_id)
        )
        eligible = EligibleExpenses()
        for expense in result.scalars().all():
            if expense.transaction_type == "credit":
                eligible.credits.append(expense)
            else:
                eligible.debits.append(expense)
        return eligible

    async def tracked_amount(self, expense_id: UUID) -> Decimal:
        result = await self.session.execute(
            select(func.coalesce(func.sum(ExpenseTransactionTrack.amount), 0)).where(
                ExpenseTransactionTrack.expense_id == expense_id
            )
        )
        return Decimal(str(result.scalar_one()))

    async def period_applications(
        self, employee_id: UUID, pay_period_id: UUID
    ) -> list[tuple[ExpenseTransactionTrack, str]]:
        result = await self.session.execute(
            select(ExpenseTransactionTrack, ExpenseTransaction.transaction_type)
            .join(
                ExpenseTransaction,
                ExpenseTransaction.expense_id == ExpenseTransactionTrack.expense_id,
            )
            .where(
                ExpenseTransaction.employee_id == employee_id,
                ExpenseTransactionTrack.pay_period_id == pay_period_id,
            )
        )
        return [(track, transaction_type) for track, transaction_type in result.all()]

    async def record_application(
        self,
        expense: ExpenseTransaction,
        amount: Decimal,
        pay_period_id: UUID,
        on_date: datetime.date,
    ) -> ExpenseTransactionTrack:
        track = ExpenseTransactionTrack(
            expense_id=expense.expense_id,
            pay_period_id=pay_period_id,
            amount=amount,
            transaction_date=on_date,
        )
        self.session.add(track)
        await self.session.flush()
        return track
