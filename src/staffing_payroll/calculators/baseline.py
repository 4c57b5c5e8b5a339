"""Cumulative-hours baselines for tiered pay."""

from __future__ import annotations

from collections.abc import Hashable, Mapping
from decimal import Decimal
from typing import TYPE_CHECKING, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from staffing_payroll.calculators.types import ZERO, BaselineMode
from staffing_payroll.models import Employee

if TYPE_CHECKING:
    from staffing_payroll.providers.base import PlacementInfo, TimesheetProvider


class BaselineSource(Protocol):
    """Where a placement's starting cumulative hours come from."""

    def key(self, placement: PlacementInfo) -> Hashable:
        """Placements sharing a key share one running baseline."""
        ...

    async def load(self, placement: PlacementInfo) -> Decimal:
        """Hours worked before the current run."""
        ...


class GlobalBaselineSource:
    """Employee-wide baseline: hours already settled across all placements."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def key(self, placement: PlacementInfo) -> Hashable:
        return ("employee", placement.employee_id)

    async def load(self, placement: PlacementInfo) -> Decimal:
        employee = await self.session.get(Employee, placement.employee_id)
        if employee is None:
            return ZERO
        return employee.hours_worked


class CustomBaselineSource:
    """Placement-scoped baseline: hours already raised to payroll for it."""

    def __init__(self, timesheets: TimesheetProvider):
        self.timesheets = timesheets

    def key(self, placement: PlacementInfo) -> Hashable:
        return ("placement", placement.placement_id)

    async def load(self, placement: PlacementInfo) -> Decimal:
        return await self.timesheets.settled_hours(placement.placement_id)


class CumulativeHoursTracker:
    """Running cumulative hours within one generation run.

    Each baseline is loaded once per run and then advanced in memory as
    days are priced, so later days and later placements sharing the same
    baseline see the hours already consumed.
    """

    def __init__(self, sources: Mapping[BaselineMode, BaselineSource]):
        self.sources = sources
        self._running: dict[Hashable, Decimal] = {}

    def _source(self, placement: PlacementInfo) -> BaselineSource:
        return self.sources[placement.baseline_mode]

    async def current(self, placement: PlacementInfo) -> Decimal:
        """Baseline for the placement's next day."""
        source = self._source(placement)
        key = source.key(placement)
        if key not in self._running:
            self._running[key] = await source.load(placement)
        return self._running[key]

    async def advance(self, placement: PlacementInfo, hours: Decimal) -> Decimal:
        """Move the placement's baseline forward by ``hours``."""
        key = self._source(placement).key(placement)
        self._running[key] = await self.current(placement) + hours
        return self._running[key]

