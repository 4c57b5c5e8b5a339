"""Payroll settlement services."""

from staffing_payroll.services.expense_netter import ExpenseNetter, NettingResult
from staffing_payroll.services.settlement import (
    GenerationResult,
    PaymentDetailNotFoundError,
    PayPeriodNotFoundError,
    SettlementCoordinator,
    SettlementItem,
    SettlementOutcome,
    SettlementTransactionError,
    SubmissionResult,
)
from staffing_payroll.services.state_machine import (
    InvalidTransitionError,
    PaymentDetailStateMachine,
    PaymentDetailStatus,
    PayPeriodStateMachine,
    PayPeriodStatus,
)

__all__ = [
    "ExpenseNetter",
    "NettingResult",
    "GenerationResult",
    "PaymentDetailNotFoundError",
    "PayPeriodNotFoundError",
    "SettlementCoordinator",
    "SettlementItem",
    "SettlementOutcome",
    "SettlementTransactionError",
    "SubmissionResult",
    "InvalidTransitionError",
    "PaymentDetailStateMachine",
    "PaymentDetailStatus",
    "PayPeriodStateMachine",
    "PayPeriodStatus",
]
