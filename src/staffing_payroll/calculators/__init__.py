"""Payroll calculation: pay bands, tiered rates, baselines, and lines."""

from staffing_payroll.calculators.baseline import (
    BaselineSource,
    CumulativeHoursTracker,
    CustomBaselineSource,
    GlobalBaselineSource,
)
from staffing_payroll.calculators.line_builder import PayrollLineBuilder
from staffing_payroll.calculators.pay_bands import ConfigurationNotFoundError, PayBandResolver
from staffing_payroll.calculators.rate_calculator import RateCalculator, match_tiers

__all__ = [
    "BaselineSource",
    "CumulativeHoursTracker",
    "CustomBaselineSource",
    "GlobalBaselineSource",
    "PayrollLineBuilder",
    "ConfigurationNotFoundError",
    "PayBandResolver",
    "RateCalculator",
    "match_tiers",
]
