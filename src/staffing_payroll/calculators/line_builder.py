"""Payroll line computation and persistence."""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from staffing_payroll.calculators.baseline import CumulativeHoursTracker
from staffing_payroll.calculators.pay_bands import ConfigurationNotFoundError, PayBandResolver
from staffing_payroll.calculators.rate_calculator import RateCalculator
from staffing_payroll.calculators.types import (
    ZERO,
    DayHours,
    LineComputation,
    LineStatus,
    PayBandSchedule,
    PayType,
    round_hours,
    round_to_cents,
)
from staffing_payroll.models import PayPeriod, PayrollLine, PayrollPaymentDetail
from staffing_payroll.providers.base import (
    PlacementInfo,
    PlacementProvider,
    TimesheetDay,
    TimesheetProvider,
)

logger = logging.getLogger(__name__)


class PayrollLineBuilder:
    """Computes and upserts PayrollLine rows for one employee.

    A line moves through CheckApproval, then ComputeHourly or ComputeSalary,
    then Persist. A line whose timesheets are not all approved is persisted
    as a zero, pending line and recomputed on a later run. Lines are keyed by
    (period, employee, placement) so re-running generation overwrites them.
    """

    def __init__(
        self,
        session: AsyncSession,
        timesheets: TimesheetProvider,
        placements: PlacementProvider,
        pay_bands: PayBandResolver,
        tracker: CumulativeHoursTracker,
        engine_version: str,
    ):
        self.session = session
        self.timesheets = timesheets
        self.placements = placements
        self.pay_bands = pay_bands
        self.tracker = tracker
        self.engine_version = engine_version

    @staticmethod
    def compute_fingerprint(payload: dict[str, Any]) -> str:
        """Deterministic hash of the inputs a line was computed from."""
        json_str = json.dumps(payload, sort_keys=True, default=str)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]

    async def compute(self, period: PayPeriod, placement: PlacementInfo) -> LineComputation:
        """Compute the line for one placement without persisting it."""
        days = await self.timesheets.hours_for_period(
            placement.placement_id, period.period_start, period.period_end
        )

        if any(not day.is_approved for day in days):
            return LineComputation(status=LineStatus.PENDING)

        if sum((day.billable_hours + day.ot_hours for day in days), ZERO) == 0:
            return LineComputation(status=LineStatus.COMPUTED)

        try:
            schedule = await self.pay_bands.resolve(placement.pay_type_configuration_id)
        except ConfigurationNotFoundError as exc:
            logger.warning(
                "Placement %s flagged for review: %s", placement.placement_id, exc
            )
            return LineComputation(status=LineStatus.COMPUTED, notes=[str(exc)])

        if schedule.pay_type == PayType.SALARY:
            computation = self._compute_salary(days, schedule)
        else:
            computation = await self._compute_hourly(placement, days, schedule)

        if computation.needs_review:
            logger.warning(
                "Placement %s flagged for review: %s",
                placement.placement_id,
                "; ".join(computation.notes),
            )
        return computation

    async def _compute_hourly(
        self,
        placement: PlacementInfo,
        days: Sequence[TimesheetDay],
        schedule: PayBandSchedule,
    ) -> LineComputation:
        computation = LineComputation(status=LineStatus.COMPUTED)

        for day in days:
            bill_rate = await self.placements.bill_rate_on(placement.placement_id, day.work_date)
            baseline = await self.tracker.current(placement)

            day_pay = RateCalculator.calculate_day(
                DayHours(
                    work_date=day.work_date,
                    billable_hours=day.billable_hours,
                    ot_hours=day.ot_hours,
                    entry_id=day.entry_id,
                ),
                bill_rate,
                schedule.tiers,
                baseline,
            )
            await self.tracker.advance(placement, day.billable_hours + day.ot_hours)

            computation.breakdown.append([segment.to_dict() for segment in day_pay.segments])
            computation.total_amount += day_pay.total_pay
            computation.worked_hours += day.billable_hours + day.ot_hours
            computation.notes.extend(day_pay.notes)
            computation.consumed_entry_ids.append(day.entry_id)
            computation.fingerprint_inputs.append(
                {
                    "entry_id": str(day.entry_id),
                    "date": day.work_date.isoformat(),
                    "billable_hours": str(day.billable_hours),
                    "ot_hours": str(day.ot_hours),
                    "baseline": str(baseline),
                    "bill_rate": str(bill_rate.rate) if bill_rate else None,
                }
            )

        return computation

    def _compute_salary(
        self,
        days: Sequence[TimesheetDay],
        schedule: PayBandSchedule,
    ) -> LineComputation:
        """Allocate the fixed period pay evenly across the days worked.

        The per-day amounts are for display only; the line total is always
        exactly the configured pay.
        """
        hours_by_date: dict[date, Decimal] = {}
        for day in days:
            hours_by_date[day.work_date] = (
                hours_by_date.get(day.work_date, ZERO) + day.billable_hours + day.ot_hours
            )

        per_day = schedule.payroll_pay / len(hours_by_date)
        computation = LineComputation(
            status=LineStatus.COMPUTED,
            total_amount=schedule.payroll_pay,
            worked_hours=sum(hours_by_date.values(), ZERO),
        )
        for work_date in sorted(hours_by_date):
            computation.breakdown.append(
                {
                    "date": work_date.isoformat(),
                    "pay_in": PayType.SALARY.value,
                    "hours": str(round_to_cents(hours_by_date[work_date])),
                    "amount_payable": str(round_to_cents(per_day)),
                }
            )
        computation.consumed_entry_ids = [day.entry_id for day in days]
        computation.fingerprint_inputs = [
            {
                "entry_id": str(day.entry_id),
                "date": day.work_date.isoformat(),
                "billable_hours": str(day.billable_hours),
                "ot_hours": str(day.ot_hours),
                "payroll_pay": str(schedule.payroll_pay),
            }
            for day in days
        ]
        return computation

    async def build_employee(
        self,
        period: PayPeriod,
        employee_id: UUID,
        placements: Sequence[PlacementInfo],
    ) -> tuple[PayrollPaymentDetail, list[PayrollLine]]:
        """Compute and persist every line of an employee, then roll them up.

        Lines for placements that are no longer active are deleted. An
        employee without active placements keeps one zero line with no
        placement so every eligible employee has a row.
        """
        active_ids: set[UUID | None] = {p.placement_id for p in placements} or {None}

        result = await self.session.execute(
            select(PayrollLine).where(
                PayrollLine.pay_period_id == period.pay_period_id,
                PayrollLine.employee_id == employee_id,
            )
        )
        existing = {line.placement_id: line for line in result.scalars().all()}

        for placement_id, line in existing.items():
            if placement_id not in active_ids:
                await self.session.delete(line)
        await self.session.flush()

        lines = []
        if placements:
            for placement in placements:
                computation = await self.compute(period, placement)
                lines.append(
                    self._upsert_line(
                        existing.get(placement.placement_id),
                        period,
                        employee_id,
                        placement.placement_id,
                        computation,
                    )
                )
        else:
            lines.append(
                self._upsert_line(
                    existing.get(None),
                    period,
                    employee_id,
                    None,
                    LineComputation(status=LineStatus.COMPUTED),
                )
            )
        await self.session.flush()

        detail = await self._upsert_detail(period, employee_id, lines)
        return detail, lines

    def _upsert_line(
        self,
        line: PayrollLine | None,
        period: PayPeriod,
        employee_id: UUID,
        placement_id: UUID | None,
        computation: LineComputation,
    ) -> PayrollLine:
        if line is None:
            line = PayrollLine(
                pay_period_id=period.pay_period_id,
                employee_id=employee_id,
                placement_id=placement_id,
            )
            self.session.add(line)

        line.worked_hours = round_hours(computation.worked_hours)
        line.total_amount = round_to_cents(computation.total_amount)
        line.rate_breakdown = computation.breakdown
        line.timesheet_approval_pending = computation.is_pending
        line.needs_review = computation.needs_review
        line.review_notes = computation.notes
        line.consumed_entry_ids = [str(entry_id) for entry_id in computation.consumed_entry_ids]
        line.engine_version = self.engine_version
        line.inputs_fingerprint = self.compute_fingerprint(
            {
                "placement_id": str(placement_id) if placement_id else None,
                "status": computation.status.value,
                "inputs": computation.fingerprint_inputs,
            }
        )
        return line

    async def _upsert_detail(
        self,
        period: PayPeriod,
        employee_id: UUID,
        lines: Sequence[PayrollLine],
    ) -> PayrollPaymentDetail:
        result = await self.session.execute(
            select(PayrollPaymentDetail).where(
                PayrollPaymentDetail.pay_period_id == period.pay_period_id,
                PayrollPaymentDetail.employee_id == employee_id,
            )
        )
        detail = result.scalar_one_or_none()
        if detail is None:
            detail = PayrollPaymentDetail(
                pay_period_id=period.pay_period_id,
                employee_id=employee_id,
                status="draft",
                credited_expense=ZERO,
                debited_expense=ZERO,
                rolled_hours=ZERO,
                rolled_balance=ZERO,
            )
            self.session.add(detail)

        detail.worked_hours = sum((line.worked_hours for line in lines), ZERO)
        detail.total_amount = sum((line.total_amount for line in lines), ZERO)
        detail.balance_amount = (
            detail.total_amount
            + detail.credited_expense
            - detail.debited_expense
            - (detail.amount_paid or ZERO)
        )
        await self.session.flush()
        return detail
