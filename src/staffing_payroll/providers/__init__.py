"""Data providers consumed by the payroll engine."""

from staffing_payroll.providers.base import (
    EligibleExpenses,
    ExpenseLedger,
    PlacementInfo,
    PlacementProvider,
    TimesheetDay,
    TimesheetProvider,
)
from staffing_payroll.providers.sql import (
    SqlExpenseLedger,
    SqlPlacementProvider,
    SqlTimesheetProvider,
)

__all__ = [
    "EligibleExpenses",
    "ExpenseLedger",
    "PlacementInfo",
    "PlacementProvider",
    "TimesheetDay",
    "TimesheetProvider",
    "SqlExpenseLedger",
    "SqlPlacementProvider",
    "SqlTimesheetProvider",
]
