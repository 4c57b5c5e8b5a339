"""Tests for expense netting."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from staffing_payroll.models import ExpenseTransaction, ExpenseTransactionTrack, PayPeriod
from staffing_payroll.providers.sql import SqlExpenseLedger
from staffing_payroll.services.expense_netter import ExpenseNetter


def debit(due: str, goal: str | None = None) -> ExpenseTransaction:
    return ExpenseTransaction(
        transaction_type="debit",
        due_amount=Decimal(due),
        has_goal_amount=goal is not None,
        goal_amount=Decimal(goal) if goal is not None else None,
        is_recurring=False,
    )


def credit(due: str, recurring: bool = False, count: int | None = None) -> ExpenseTransaction:
    return ExpenseTransaction(
        transaction_type="credit",
        due_amount=Decimal(due),
        is_recurring=recurring,
        recurring_count=count,
    )


@pytest.fixture
async def earlier_period(session, test_pay_setting) -> PayPeriod:
    """Create a submitted period before the one under test."""
    period = PayPeriod(
        pay_period_id=uuid4(),
        pay_config_setting_id=test_pay_setting.pay_config_setting_id,
        period_start=date(2023, 12, 18),
        period_end=date(2023, 12, 31),
        check_date=date(2024, 1, 5),
        status="Submitted",
    )
    session.add(period)
    await session.flush()
    return period


class TestDebitOutcome:
    """Test deduction installments."""

    def test_goal_caps_installment(self):
        """Test due 500, goal 2000, 1600 already deducted: apply 400, 100 stays due."""
        outcome = ExpenseNetter.debit_outcome(debit("500", goal="2000"), Decimal("1600"))

        assert outcome.applied == Decimal("400")
        assert outcome.due_amount == Decimal("100")
        assert outcome.status == "Deduction In Progress"

    def test_goal_already_reached(self):
        """Test that nothing is deducted past the goal."""
        outcome = ExpenseNetter.debit_outcome(debit("500", goal="2000"), Decimal("2000"))

        assert outcome.applied == Decimal("0")
        assert outcome.due_amount == Decimal("0")
        assert outcome.status == "Processed"

    def test_full_installment_below_goal(self):
        """Test that the installment stays due while the goal is not reached."""
        outcome = ExpenseNetter.debit_outcome(debit("500", goal="2000"), Decimal("500"))

        assert outcome.applied == Decimal("500")
        assert outcome.due_amount == Decimal("500")
        assert outcome.status == "Deduction In Progress"

    def test_installment_reaching_goal(self):
        """Test that the installment hitting the goal closes the debit."""
        outcome = ExpenseNetter.debit_outcome(debit("500", goal="2000"), Decimal("1500"))

        assert outcome.applied == Decimal("500")
        assert outcome.due_amount == Decimal("0")
        assert outcome.status == "Processed"

    def test_debit_without_goal(self):
        """Test that a debit without a goal is deducted in full and stays due."""
        outcome = ExpenseNetter.debit_outcome(debit("120"), Decimal("480"))

        assert outcome.applied == Decimal("120")
        assert outcome.due_amount == Decimal("120")
        assert outcome.status == "Deduction In Progress"


class TestCreditOutcome:
    """Test reimbursements."""

    def test_one_off_credit(self):
        outcome = ExpenseNetter.credit_outcome(credit("75"))

        assert outcome.applied == Decimal("75")
        assert outcome.due_amount == Decimal("0")
        assert outcome.status == "Processed"

    def test_recurring_credit_pays_full_amount(self):
        """Test that each cycle credits the full amount and counts down."""
        outcome = ExpenseNetter.credit_outcome(credit("50", recurring=True, count=3))

        assert outcome.applied == Decimal("50")
        assert outcome.due_amount == Decimal("50")
        assert outcome.recurring_count == 2
        assert outcome.status == "Reimbursement In Progress"

    def test_last_recurrence(self):
        outcome = ExpenseNetter.credit_outcome(credit("50", recurring=True, count=1))

        assert outcome.applied == Decimal("50")
        assert outcome.recurring_count == 0
        assert outcome.status == "Processed"

    def test_recurring_until_stopped(self):
        """Test that a recurring credit without a count stays in progress."""
        outcome = ExpenseNetter.credit_outcome(credit("50", recurring=True, count=None))

        assert outcome.applied == Decimal("50")
        assert outcome.recurring_count is None
        assert outcome.status == "Reimbursement In Progress"


class TestExpenseNetterApply:
    """Test applying expenses against the ledger."""

    @pytest.mark.asyncio
    async def test_apply_credits_and_capped_debit(
        self, session, test_period, test_employee, expense_factory, earlier_period
    ):
        """Test the totals, expense updates, and one track row per expense."""
        reimbursement = await expense_factory(test_employee, "credit", "200")
        loan = await expense_factory(
            test_employee,
            "debit",
            "500",
            status="Deduction In Progress",
            has_goal_amount=True,
            goal_amount=Decimal("2000"),
            raised_date=date(2023, 6, 1),
        )
        session.add(
            ExpenseTransactionTrack(
                expense_id=loan.expense_id,
                pay_period_id=earlier_period.pay_period_id,
                amount=Decimal("1600"),
                transaction_date=date(2023, 12, 29),
            )
        )
        await session.flush()

        result = await ExpenseNetter(SqlExpenseLedger(session)).apply(
            test_employee.employee_id, test_period
        )

        assert result.credited_total == Decimal("200")
        assert result.debited_total == Decimal("400")
        assert set(result.applied_expense_ids) == {reimbursement.expense_id, loan.expense_id}

        assert reimbursement.status == "Processed"
        assert reimbursement.due_amount == Decimal("0")
        assert loan.status == "Deduction In Progress"
        assert loan.due_amount == Decimal("100")

        tracks = await session.execute(
            select(ExpenseTransactionTrack).where(
                ExpenseTransactionTrack.pay_period_id == test_period.pay_period_id
            )
        )
        amounts = {track.expense_id: track.amount for track in tracks.scalars().all()}
        assert amounts == {
            reimbursement.expense_id: Decimal("200"),
            loan.expense_id: Decimal("400"),
        }

    @pytest.mark.asyncio
    async def test_retry_applies_nothing_twice(
        self, session, test_period, test_employee, expense_factory
    ):
        """Test that a second apply for the same period reports the same totals."""
        await expense_factory(test_employee, "credit", "200")
        installment = await expense_factory(
            test_employee,
            "debit",
            "100",
            has_goal_amount=True,
            goal_amount=Decimal("1000"),
        )
        netter = ExpenseNetter(SqlExpenseLedger(session))

        first = await netter.apply(test_employee.employee_id, test_period)
        second = await netter.apply(test_employee.employee_id, test_period)

        assert second.credited_total == first.credited_total == Decimal("200")
        assert second.debited_total == first.debited_total == Decimal("100")
        assert second.applied_expense_ids == []
        assert second.skipped_expense_ids == [installment.expense_id]
        assert installment.due_amount == Decimal("100")

        count = await session.execute(
            select(ExpenseTransactionTrack).where(
                ExpenseTransactionTrack.expense_id == installment.expense_id
            )
        )
        assert len(count.scalars().all()) == 1

    @pytest.mark.asyncio
    async def test_ineligible_expenses_ignored(
        self, session, test_period, test_employee, expense_factory
    ):
        """Test the eligibility filters."""
        await expense_factory(test_employee, "credit", "10", effect_on="balance_sheet")
        await expense_factory(test_employee, "credit", "20", raised_date=date(2024, 2, 1))
        await expense_factory(test_employee, "credit", "30", enable_approval=True)
        await expense_factory(test_employee, "debit", "40", status="Drafted")
        await expense_factory(test_employee, "debit", "50", status="Processed")
        approved = await expense_factory(
            test_employee,
            "credit",
            "60",
            enable_approval=True,
            approved_date=date(2024, 1, 6),
        )

        result = await ExpenseNetter(SqlExpenseLedger(session)).apply(
            test_employee.employee_id, test_period
        )

        assert result.applied_expense_ids == [approved.expense_id]
        assert result.credited_total == Decimal("60")
        assert result.debited_total == Decimal("0")

    @pytest.mark.asyncio
    async def test_preview_does_not_mutate(
        self, session, test_period, test_employee, expense_factory
    ):
        """Test that preview reports totals without touching expenses."""
        reimbursement = await expense_factory(test_employee, "credit", "200")
        await expense_factory(test_employee, "debit", "80")

        result = await ExpenseNetter(SqlExpenseLedger(session)).preview(
            test_employee.employee_id, test_period
        )

        assert result.credited_total == Decimal("200")
        assert result.debited_total == Decimal("80")
        assert reimbursement.status == "Approved"
        assert reimbursement.due_amount == Decimal("200")

        tracks = await session.execute(select(ExpenseTransactionTrack))
        assert tracks.scalars().all() == []

    @pytest.mark.asyncio
    async def test_standing_debit_deducted_every_period(
        self, session, test_period, test_employee, expense_factory, earlier_period
    ):
        """Test that a debit without a goal is deducted again in the next period."""
        dues = await expense_factory(
            test_employee, "debit", "50", raised_date=date(2023, 12, 1)
        )
        netter = ExpenseNetter(SqlExpenseLedger(session))

        first = await netter.apply(test_employee.employee_id, earlier_period)
        second = await netter.apply(test_employee.employee_id, test_period)

        assert first.debited_total == Decimal("50")
        assert second.debited_total == Decimal("50")
        assert dues.due_amount == Decimal("50")
        assert dues.status == "Deduction In Progress"

        tracks = await session.execute(
            select(ExpenseTransactionTrack).where(
                ExpenseTransactionTrack.expense_id == dues.expense_id
            )
        )
        assert len(tracks.scalars().all()) == 2
