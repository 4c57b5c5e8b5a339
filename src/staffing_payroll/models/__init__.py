"""ORM models for the payroll settlement engine."""

from staffing_payroll.models.base import Base, TimestampMixin
from staffing_payroll.models.employee import Employee, PayConfigSetting
from staffing_payroll.models.expense import ExpenseTransaction, ExpenseTransactionTrack
from staffing_payroll.models.payroll import PayPeriod, PayrollLine, PayrollPaymentDetail
from staffing_payroll.models.placement import (
    PayRateTier,
    PayTypeConfiguration,
    Placement,
    PlacementBillRate,
)
from staffing_payroll.models.timesheet import Timesheet, TimesheetHour

__all__ = [
    "Base",
    "TimestampMixin",
    "Employee",
    "PayConfigSetting",
    "ExpenseTransaction",
    "ExpenseTransactionTrack",
    "PayPeriod",
    "PayrollLine",
    "PayrollPaymentDetail",
    "PayRateTier",
    "PayTypeConfiguration",
    "Placement",
    "PlacementBillRate",
    "Timesheet",
    "TimesheetHour",
]
