"""Tests for the SQL-backed timesheet and placement providers."""

from datetime import date
from decimal import Decimal

import pytest

from staffing_payroll.calculators.types import BaselineMode, DiscountType, Multiplier, SameAsBase
from staffing_payroll.models import PlacementBillRate
from staffing_payroll.providers.sql import SqlPlacementProvider, SqlTimesheetProvider


class TestActivePlacements:
    """Test which placements the line builder sees."""

    @pytest.mark.asyncio
    async def test_in_progress_and_not_ended(
        self, session, test_employee, test_tiered_config, test_placement, placement_factory
    ):
        custom = await placement_factory(
            test_employee,
            test_tiered_config,
            baseline_mode="custom",
            end_date=date(2024, 1, 1),
        )
        await placement_factory(test_employee, test_tiered_config, end_date=date(2023, 12, 31))
        await placement_factory(test_employee, test_tiered_config, status="Completed")

        active = await SqlPlacementProvider(session).active_placements(
            test_employee.employee_id, date(2024, 1, 1)
        )
        by_id = {info.placement_id: info for info in active}

        assert set(by_id) == {test_placement.placement_id, custom.placement_id}
        assert by_id[custom.placement_id].baseline_mode == BaselineMode.CUSTOM
        assert by_id[test_placement.placement_id].pay_type_configuration_id == (
            test_tiered_config.pay_type_configuration_id
        )


class TestBillRateOn:
    """Test effective-dated bill rate lookup."""

    @pytest.mark.asyncio
    async def test_latest_effective_rate_wins(self, session, test_placement):
        session.add(
            PlacementBillRate(
                placement_id=test_placement.placement_id,
                effective_from=date(2024, 1, 8),
                bill_rate=Decimal("60"),
                bill_rate_discount=Decimal("10"),
                bill_rate_discount_type="percentage",
                ot_pay_rate_config_type="multiplier",
                ot_pay_rate_multiplier=Decimal("1.5"),
            )
        )
        await session.flush()
        placements = SqlPlacementProvider(session)

        before = await placements.bill_rate_on(test_placement.placement_id, date(2024, 1, 7))
        after = await placements.bill_rate_on(test_placement.placement_id, date(2024, 1, 8))

        assert before.rate == Decimal("50")
        assert before.discount is None
        assert before.ot_policy == SameAsBase()

        assert after.rate == Decimal("60")
        assert after.discount.discount_type == DiscountType.PERCENTAGE
        assert after.discounted_rate == Decimal("54")
        assert after.ot_policy == Multiplier(Decimal("1.5"))

    @pytest.mark.asyncio
    async def test_no_rate_before_first_effective_date(self, session, test_placement):
        rate = await SqlPlacementProvider(session).bill_rate_on(
            test_placement.placement_id, date(2023, 12, 31)
        )

        assert rate is None


class TestTimesheetProvider:
    """Test period hours and raised marking."""

    @pytest.mark.asyncio
    async def test_raised_entries_excluded(self, session, test_placement, timesheet_factory):
        await timesheet_factory(test_placement, [("8", "0")], start=date(2024, 1, 2))
        await timesheet_factory(
            test_placement, [("6", "0")], start=date(2024, 1, 3), payroll_raised=True
        )

        days = await SqlTimesheetProvider(session).hours_for_period(
            test_placement.placement_id, date(2024, 1, 1), date(2024, 1, 14)
        )

        assert [day.work_date for day in days] == [date(2024, 1, 2)]
        assert days[0].is_approved

    @pytest.mark.asyncio
    async def test_mark_raised_only_once(self, session, test_placement, timesheet_factory):
        """Test that entries already raised are not counted again."""
        await timesheet_factory(test_placement, [("8", "0"), ("8", "1")])
        timesheets = SqlTimesheetProvider(session)
        days = await timesheets.hours_for_period(
            test_placement.placement_id, date(2024, 1, 1), date(2024, 1, 14)
        )
        entry_ids = [day.entry_id for day in days]

        assert await timesheets.mark_raised(entry_ids) == 2
        assert await timesheets.mark_raised(entry_ids) == 0
        assert await timesheets.settled_hours(test_placement.placement_id) == Decimal("17")

    @pytest.mark.asyncio
    async def test_mark_raised_empty(self, session):
        assert await SqlTimesheetProvider(session).mark_raised([]) == 0
