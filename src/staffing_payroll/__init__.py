"""Payroll generation and settlement engine for staffing back offices."""

__version__ = "1.0.0"
