"""Expense netting against employee pay at settlement."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from staffing_payroll.calculators.types import ZERO
from staffing_payroll.models import ExpenseTransaction, PayPeriod
from staffing_payroll.providers.base import ExpenseLedger

logger = logging.getLogger(__name__)

PROCESSED = "Processed"
REIMBURSEMENT_IN_PROGRESS = "Reimbursement In Progress"
DEDUCTION_IN_PROGRESS = "Deduction In Progress"


@dataclass
class NettingResult:
    """Credited and debited totals of one employee for one period."""

    credited_total: Decimal = ZERO
    debited_total: Decimal = ZERO
    applied_expense_ids: list[UUID] = field(default_factory=list)
    skipped_expense_ids: list[UUID] = field(default_factory=list)


@dataclass(frozen=True)
class ExpenseOutcome:
    """What applying an expense for one period does to it."""

    applied: Decimal
    due_amount: Decimal
    status: str
    recurring_count: int | None = None


class ExpenseNetter:
    """Applies reimbursements (credits) and deductions (debits) to a period.

    Every applied expense gets exactly one track row for the period. An
    expense that already has a track row for the period is never applied
    again, so settlement retries are idempotent; its tracked amount still
    counts towards the period totals.
    """

    def __init__(self, ledger: ExpenseLedger):
        self.ledger = ledger

    @staticmethod
    def credit_outcome(expense: ExpenseTransaction) -> ExpenseOutcome:
        """Outcome of reimbursing a credit for one cycle.

        A recurring credit pays its full due amount every cycle until its
        count runs out; without a count it recurs until stopped.
        """
        if not expense.is_recurring:
            return ExpenseOutcome(applied=expense.due_amount, due_amount=ZERO, status=PROCESSED)

        if expense.recurring_count is None:
            return ExpenseOutcome(
                applied=expense.due_amount,
                due_amount=expense.due_amount,
                status=REIMBURSEMENT_IN_PROGRESS,
            )

        remaining = max(expense.recurring_count - 1, 0)
        if remaining == 0:
            return ExpenseOutcome(
                applied=expense.due_amount,
                due_amount=ZERO,
                status=PROCESSED,
                recurring_count=0,
            )
        return ExpenseOutcome(
            applied=expense.due_amount,
            due_amount=expense.due_amount,
            status=REIMBURSEMENT_IN_PROGRESS,
            recurring_count=remaining,
        )

    @staticmethod
    def debit_outcome(expense: ExpenseTransaction, previously_tracked: Decimal) -> ExpenseOutcome:
        """Outcome of deducting one installment of a debit.

        With a goal amount the total deducted never exceeds the goal:

        - goal already reached: nothing is applied, the debit is closed
        - installment capped by the goal: the remainder is applied and the
          capped part stays due
        - full installment: the due amount stays as is until the goal is hit

        Without a goal the debit is a standing deduction: the full due amount
        is applied every period and the debit stays in progress.

        Args:
            expense: The debit
            previously_tracked: Sum already deducted in earlier periods

        Returns:
            The amount to apply with the new due amount and status
        """
        due = expense.due_amount
        if not expense.has_goal_amount or expense.goal_amount is None:
            return ExpenseOutcome(applied=due, due_amount=due, status=DEDUCTION_IN_PROGRESS)

        remaining = expense.goal_amount - previously_tracked
        if remaining <= 0:
            return ExpenseOutcome(applied=ZERO, due_amount=ZERO, status=PROCESSED)

        if remaining < due:
            return ExpenseOutcome(
                applied=remaining,
                due_amount=due - remaining,
                status=DEDUCTION_IN_PROGRESS,
            )

        if remaining == due:
            return ExpenseOutcome(applied=due, due_amount=ZERO, status=PROCESSED)

        return ExpenseOutcome(applied=due, due_amount=due, status=DEDUCTION_IN_PROGRESS)

    async def _outcomes(
        self, employee_id: UUID, period: PayPeriod
    ) -> tuple[NettingResult, list[tuple[ExpenseTransaction, ExpenseOutcome]]]:
        result = NettingResult()

        already_applied: set[UUID] = set()
        for track, transaction_type in await self.ledger.period_applications(
            employee_id, period.pay_period_id
        ):
            already_applied.add(track.expense_id)
            if transaction_type == "credit":
                result.credited_total += track.amount
            else:
                result.debited_total += track.amount

        pending: list[tuple[ExpenseTransaction, ExpenseOutcome]] = []
        eligible = await self.ledger.eligible_expenses(employee_id, period.period_end)

        for expense in eligible.credits + eligible.debits:
            if expense.expense_id in already_applied:
                logger.debug(
                    "Expense %s already applied to period %s, skipping",
                    expense.expense_id,
                    period.pay_period_id,
                )
                result.skipped_expense_ids.append(expense.expense_id)
                continue

            if expense.transaction_type == "credit":
                outcome = self.credit_outcome(expense)
                result.credited_total += outcome.applied
            else:
                tracked = await self.ledger.tracked_amount(expense.expense_id)
                outcome = self.debit_outcome(expense, tracked)
                result.debited_total += outcome.applied

            pending.append((expense, outcome))

        return result, pending

    async def preview(self, employee_id: UUID, period: PayPeriod) -> NettingResult:
        """Totals settlement would produce, without touching any expense."""
        result, _ = await self._outcomes(employee_id, period)
        return result

    async def apply(self, employee_id: UUID, period: PayPeriod) -> NettingResult:
        """Apply every eligible expense to the period and record its track row.

        Args:
            employee_id: Employee being settled
            period: The period being settled; its end date is the cutoff

        Returns:
            NettingResult with totals including expenses applied by earlier
            attempts for the same period
        """
        result, pending = await self._outcomes(employee_id, period)

        for expense, outcome in pending:
            expense.due_amount = outcome.due_amount
            expense.status = outcome.status
            if outcome.recurring_count is not None:
                expense.recurring_count = outcome.recurring_count

            await self.ledger.record_application(
                expense, outcome.applied, period.pay_period_id, period.check_date
            )
            result.applied_expense_ids.append(expense.expense_id)

        return result
