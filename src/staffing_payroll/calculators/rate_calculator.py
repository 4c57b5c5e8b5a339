"""Tiered daily pay calculation."""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from staffing_payroll.calculators.types import (
    ZERO,
    BillRate,
    DayHours,
    DayPay,
    PayBandTier,
    RateBasis,
    TierSegment,
)


def match_tiers(
    tiers: Sequence[PayBandTier],
    start: Decimal,
    end: Decimal,
) -> list[tuple[PayBandTier, Decimal]]:
    """Pair every tier overlapping [start, end) with its overlap in hours.

    Tiers with an empty overlap are left out. When the range itself is empty
    the tier containing ``start`` is returned with zero hours, so a day with
    only overtime still has a tier to price it.
    """
    if end <= start:
        for tier in tiers:
            if tier.contains(start):
                return [(tier, ZERO)]
        return []

    matched = []
    for tier in tiers:
        hours = tier.overlap(start, end)
        if hours > 0:
            matched.append((tier, hours))
    return matched


class RateCalculator:
    """Prices one day of hours against a tier schedule.

    The day's billable hours occupy [baseline, baseline + billable) on the
    cumulative-hours axis and are split across the tiers they overlap.
    Overtime is priced once per day, at the first tier touched:

    - percentage tiers pay ``rate% x discounted bill rate``, and the bill
      rate discount is applied to their OT rate as well
    - value tiers pay their fixed rate, OT without discount

    Nothing is rounded here; rounding happens when the line is persisted.
    """

    @staticmethod
    def calculate_day(
        day: DayHours,
        bill_rate: BillRate | None,
        tiers: Sequence[PayBandTier],
        baseline: Decimal,
    ) -> DayPay:
        """Price one day.

        Args:
            day: The day's billable and OT hours
            bill_rate: Bill rate in effect that day, None if not configured
            tiers: Tier schedule ordered by from_hour
            baseline: Cumulative hours worked before this day

        Returns:
            DayPay with one segment per tier touched. Hours outside every
            tier, or in percentage tiers without a bill rate, contribute 0
            and are reported in ``notes``.
        """
        billable_rate = bill_rate.discounted_rate if bill_rate is not None else None
        result = DayPay(work_date=day.work_date)

        matched = match_tiers(tiers, baseline, baseline + day.billable_hours)
        ot_priced = False

        for tier, hours in matched:
            pay_rate = tier.effective_rate(billable_rate)
            if pay_rate is None:
                result.notes.append(
                    f"{day.work_date.isoformat()}: no bill rate for percentage tier "
                    f"starting at {tier.from_hour}"
                )
                pay_rate = ZERO

            segment = TierSegment(
                work_date=day.work_date,
                tier=tier,
                bill_rate=billable_rate,
                pay_rate=pay_rate,
                billable_hours=hours,
                billable_amount=hours * pay_rate,
            )

            if not ot_priced:
                ot_priced = True
                ot_rate = RateCalculator.overtime_rate(tier, pay_rate, bill_rate)
                segment.ot_hours = day.ot_hours
                segment.ot_pay_rate = ot_rate
                segment.ot_amount = day.ot_hours * ot_rate
                result.total_ot_hours = day.ot_hours
                result.total_ot_pay_rate = ot_rate

            result.segments.append(segment)
            result.total_pay += segment.total_amount
            result.total_billable_hours += hours
            result.total_billable_pay_rate = pay_rate

        result.unmatched_hours = day.billable_hours - result.total_billable_hours
        if result.unmatched_hours > 0:
            result.notes.append(
                f"{day.work_date.isoformat()}: {result.unmatched_hours} hours outside "
                f"every pay tier"
            )
        if not ot_priced and day.ot_hours > 0:
            result.notes.append(
                f"{day.work_date.isoformat()}: {day.ot_hours} OT hours with no pay tier"
            )

        result.total_hours = result.total_billable_hours + result.total_ot_hours
        return result

    @staticmethod
    def overtime_rate(
        tier: PayBandTier,
        base_rate: Decimal,
        bill_rate: BillRate | None,
    ) -> Decimal:
        """OT rate for a day whose first tier pays ``base_rate``."""
        if bill_rate is None:
            return base_rate
        rate = bill_rate.ot_policy.rate_for(base_rate)
        if tier.rate_basis == RateBasis.PERCENTAGE and bill_rate.discount is not None:
            rate = bill_rate.discount.apply(rate)
        return rate
