"""Pay period orchestration: generate, submit, settle, finalize, skip."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from staffing_payroll.calculators.baseline import (
    CumulativeHoursTracker,
    CustomBaselineSource,
    GlobalBaselineSource,
)
from staffing_payroll.calculators.line_builder import PayrollLineBuilder
from staffing_payroll.calculators.pay_bands import PayBandResolver
from staffing_payroll.calculators.types import ZERO, BaselineMode, round_to_cents
from staffing_payroll.config import Settings, get_settings
from staffing_payroll.database import init_db, unit_of_work
from staffing_payroll.models import Employee, PayPeriod, PayrollLine, PayrollPaymentDetail
from staffing_payroll.providers.sql import (
    SqlExpenseLedger,
    SqlPlacementProvider,
    SqlTimesheetProvider,
)
from staffing_payroll.services.expense_netter import ExpenseNetter
from staffing_payroll.services.state_machine import (
    InvalidTransitionError,
    PaymentDetailStateMachine,
    PaymentDetailStatus,
    PayPeriodStateMachine,
    PayPeriodStatus,
)

logger = logging.getLogger(__name__)


class PayPeriodNotFoundError(Exception):
    """Raised when a pay period id does not exist."""

    def __init__(self, pay_period_id: UUID):
        self.pay_period_id = pay_period_id
        super().__init__(f"Pay period {pay_period_id} not found")


class PaymentDetailNotFoundError(Exception):
    """Raised when a payment detail to settle or finalize does not exist."""

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Payment detail not found: {reference}")


class SettlementTransactionError(Exception):
    """Raised when persistence fails mid-invocation; nothing was committed."""

    def __init__(self, operation: str, cause: Exception):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} rolled back: {cause}")


@dataclass(frozen=True)
class SettlementItem:
    """One employee to settle or amend."""

    employee_id: UUID
    amount_paid: Decimal | None = None
    comments: str | None = None
    finalize: bool = False


@dataclass
class GenerationResult:
    """Summary of a generate run."""

    pay_period_id: UUID
    employees_processed: int = 0
    lines_written: int = 0
    pending_lines: int = 0
    review_lines: int = 0
    skipped_finalized: list[UUID] = field(default_factory=list)


@dataclass
class SubmissionResult:
    """Summary of a submit run."""

    pay_period_id: UUID
    entries_marked: int = 0


@dataclass
class SettlementOutcome:
    """Result of settling one employee."""

    employee_id: UUID
    payment_detail_id: UUID
    status: str
    credited_expense: Decimal = ZERO
    debited_expense: Decimal = ZERO
    balance_amount: Decimal = ZERO
    hours_rolled: Decimal = ZERO
    balance_rolled: Decimal = ZERO
    applied_expense_ids: list[UUID] = field(default_factory=list)
    skipped_expense_ids: list[UUID] = field(default_factory=list)
    skipped: bool = False


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SettlementCoordinator:
    """Runs pay period operations, each as one all-or-nothing transaction.

    Operations:
    - generate: compute lines and payment details for every eligible employee
    - submit: lock the period and mark consumed timesheet hours as raised
    - settle: net expenses, compute balances, roll counters into employees
    - save_payment_drafts: amend amount paid and comments before settlement
    - finalize: lock payment details against any recomputation
    - skip: close a period without paying it

    Callers must serialize invocations for the same period.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        settings: Settings | None = None,
    ):
        if session_factory is None:
            _, session_factory = init_db()
        self.session_factory = session_factory
        self.settings = settings or get_settings()

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with unit_of_work(self.session_factory) as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("%s failed, transaction rolled back: %s", operation, exc)
            raise SettlementTransactionError(operation, exc) from exc

    async def _get_period(self, session: AsyncSession, pay_period_id: UUID) -> PayPeriod:
        period = await session.get(PayPeriod, pay_period_id, with_for_update=True)
        if period is None:
            raise PayPeriodNotFoundError(pay_period_id)
        return period

    async def _get_detail(
        self, session: AsyncSession, pay_period_id: UUID, employee_id: UUID
    ) -> PayrollPaymentDetail:
        result = await session.execute(
            select(PayrollPaymentDetail)
            .where(
                PayrollPaymentDetail.pay_period_id == pay_period_id,
                PayrollPaymentDetail.employee_id == employee_id,
            )
            .with_for_update()
        )
        detail = result.scalar_one_or_none()
        if detail is None:
            raise PaymentDetailNotFoundError(
                f"period {pay_period_id}, employee {employee_id}"
            )
        return detail

    def _line_builder(self, session: AsyncSession) -> tuple[PayrollLineBuilder, SqlPlacementProvider]:
        timesheets = SqlTimesheetProvider(session)
        placements = SqlPlacementProvider(session)
        tracker = CumulativeHoursTracker(
            {
                BaselineMode.GLOBAL: GlobalBaselineSource(session),
                BaselineMode.CUSTOM: CustomBaselineSource(timesheets),
            }
        )
        builder = PayrollLineBuilder(
            session=session,
            timesheets=timesheets,
            placements=placements,
            pay_bands=PayBandResolver(session),
            tracker=tracker,
            engine_version=self.settings.engine_version,
        )
        return builder, placements

    async def generate(self, pay_period_id: UUID) -> GenerationResult:
        """Generate (or regenerate) the draft payroll of a period.

        Every eligible employee that is not finalized gets its lines and
        payment detail upserted. Re-running over unchanged inputs leaves
        identical rows.

        Raises:
            PayPeriodNotFoundError: Unknown period
            InvalidTransitionError: Period is Submitted or Skipped
            SettlementTransactionError: Persistence failed; nothing was written
        """
        async with self._transaction("generate") as session:
            period = await self._get_period(session, pay_period_id)
            PayPeriodStateMachine.validate_transition(period.status, PayPeriodStatus.DRAFTED)

            builder, placements = self._line_builder(session)
            result = GenerationResult(pay_period_id=pay_period_id)

            employees = await session.execute(
                select(Employee)
                .where(
                    Employee.enable_payroll.is_(True),
                    Employee.pay_config_setting_id == period.pay_config_setting_id,
                )
                .order_by(Employee.employee_id)
            )
            finalized = await session.execute(
                select(PayrollPaymentDetail.employee_id).where(
                    PayrollPaymentDetail.pay_period_id == pay_period_id,
                    PayrollPaymentDetail.status == PaymentDetailStatus.FINALIZED.value,
                )
            )
            finalized_ids = set(finalized.scalars().all())

            for employee in employees.scalars().all():
                if employee.employee_id in finalized_ids:
                    result.skipped_finalized.append(employee.employee_id)
                    continue

                active = await placements.active_placements(
                    employee.employee_id, period.period_start
                )
                _, lines = await builder.build_employee(period, employee.employee_id, active)

                result.employees_processed += 1
                result.lines_written += len(lines)
                result.pending_lines += sum(1 for line in lines if line.timesheet_approval_pending)
                result.review_lines += sum(1 for line in lines if line.needs_review)

            period.status = PayPeriodStatus.DRAFTED.value
            period.drafted_at = _utcnow()

            logger.info(
                "Generated pay period %s: %d employees, %d lines (%d pending, %d for review), "
                "%d finalized skipped",
                pay_period_id,
                result.employees_processed,
                result.lines_written,
                result.pending_lines,
                result.review_lines,
                len(result.skipped_finalized),
            )
            return result

    async def submit(self, pay_period_id: UUID) -> SubmissionResult:
        """Submit a drafted period and mark its consumed hours as raised.

        Only entries priced into non-pending lines are marked, so hours of
        lines still awaiting approval stay available.
        """
        async with self._transaction("submit") as session:
            period = await self._get_period(session, pay_period_id)
            PayPeriodStateMachine.validate_transition(period.status, PayPeriodStatus.SUBMITTED)

            lines = await session.execute(
                select(PayrollLine).where(
                    PayrollLine.pay_period_id == pay_period_id,
                    PayrollLine.timesheet_approval_pending.is_(False),
                    PayrollLine.placement_id.is_not(None),
                )
            )
            entry_ids = [
                UUID(entry_id)
                for line in lines.scalars().all()
                for entry_id in line.consumed_entry_ids
            ]
            marked = await SqlTimesheetProvider(session).mark_raised(entry_ids)

            period.status = PayPeriodStatus.SUBMITTED.value
            period.submitted_at = _utcnow()

            logger.info("Submitted pay period %s: %d hour entries raised", pay_period_id, marked)
            return SubmissionResult(pay_period_id=pay_period_id, entries_marked=marked)

    def _amount_paid(
        self,
        item: SettlementItem,
        detail: PayrollPaymentDetail,
        employee: Employee,
    ) -> Decimal:
        if item.amount_paid is not None:
            return item.amount_paid
        if detail.amount_paid is not None:
            return detail.amount_paid
        if self.settings.default_to_standard_pay:
            return employee.standard_pay_amount
        return ZERO

    async def settle(
        self, pay_period_id: UUID, items: Sequence[SettlementItem]
    ) -> list[SettlementOutcome]:
        """Settle a batch of employees for a submitted period.

        For each employee: apply eligible expenses, store the amounts, set
        ``balance = total + credited - debited - amount_paid`` and roll the
        change in hours and balance into the employee counters. Retrying a
        settlement applies nothing twice and rolls a zero delta.
        A detail finalized before settlement is settled once and stays
        finalized.

        Raises:
            PayPeriodNotFoundError: Unknown period
            InvalidTransitionError: Period is not Submitted
            PaymentDetailNotFoundError: An item has no payment detail
            SettlementTransactionError: Persistence failed; the whole batch
                was rolled back
        """
        async with self._transaction("settle") as session:
            period = await self._get_period(session, pay_period_id)
            if not PayPeriodStateMachine.can_settle(period.status):
                raise InvalidTransitionError(
                    period.status,
                    PaymentDetailStatus.SETTLED.value,
                    "pay period must be Submitted before settlement",
                )

            netter = ExpenseNetter(SqlExpenseLedger(session))
            outcomes = []

            for item in items:
                detail = await self._get_detail(session, pay_period_id, item.employee_id)

                if not PaymentDetailStateMachine.can_settle(detail):
                    logger.info(
                        "Payment detail %s is finalized and settled, skipping",
                        detail.payment_detail_id,
                    )
                    outcomes.append(
                        SettlementOutcome(
                            employee_id=item.employee_id,
                            payment_detail_id=detail.payment_detail_id,
                            status=detail.status,
                            credited_expense=detail.credited_expense,
                            debited_expense=detail.debited_expense,
                            balance_amount=detail.balance_amount,
                            skipped=True,
                        )
                    )
                    continue

                finalized = PaymentDetailStateMachine.is_locked(detail)
                if not finalized:
                    PaymentDetailStateMachine.validate_transition(
                        detail.status, PaymentDetailStatus.SETTLED
                    )
                employee = await session.get(Employee, item.employee_id, with_for_update=True)
                netting = await netter.apply(item.employee_id, period)

                detail.amount_paid = round_to_cents(self._amount_paid(item, detail, employee))
                detail.credited_expense = round_to_cents(netting.credited_total)
                detail.debited_expense = round_to_cents(netting.debited_total)
                detail.balance_amount = (
                    detail.total_amount
                    + detail.credited_expense
                    - detail.debited_expense
                    - detail.amount_paid
                )
                if item.comments is not None:
                    detail.comments = item.comments
                if not finalized:
                    detail.status = PaymentDetailStatus.SETTLED.value
                detail.settled_at = _utcnow()

                hours_delta = detail.worked_hours - detail.rolled_hours
                balance_delta = detail.balance_amount - detail.rolled_balance
                employee.hours_worked += hours_delta
                employee.balance_amount += balance_delta
                employee.balance_version += 1
                detail.rolled_hours = detail.worked_hours
                detail.rolled_balance = detail.balance_amount

                if item.finalize and not finalized:
                    PaymentDetailStateMachine.validate_transition(
                        detail.status, PaymentDetailStatus.FINALIZED
                    )
                    detail.status = PaymentDetailStatus.FINALIZED.value
                    detail.finalized_at = _utcnow()

                await session.flush()
                outcomes.append(
                    SettlementOutcome(
                        employee_id=item.employee_id,
                        payment_detail_id=detail.payment_detail_id,
                        status=detail.status,
                        credited_expense=detail.credited_expense,
                        debited_expense=detail.debited_expense,
                        balance_amount=detail.balance_amount,
                        hours_rolled=hours_delta,
                        balance_rolled=balance_delta,
                        applied_expense_ids=netting.applied_expense_ids,
                        skipped_expense_ids=netting.skipped_expense_ids,
                    )
                )

            logger.info(
                "Settled pay period %s: %d employees (%d skipped as finalized)",
                pay_period_id,
                len(outcomes),
                sum(1 for outcome in outcomes if outcome.skipped),
            )
            return outcomes

    async def save_payment_drafts(
        self, pay_period_id: UUID, items: Sequence[SettlementItem]
    ) -> list[PayrollPaymentDetail]:
        """Store amount paid and comments ahead of settlement.

        Credited and debited amounts are a preview; no expense or employee
        counter is changed.
        """
        async with self._transaction("save_payment_drafts") as session:
            period = await self._get_period(session, pay_period_id)
            if not PayPeriodStateMachine.can_edit_payments(period.status):
                raise InvalidTransitionError(
                    period.status,
                    PaymentDetailStatus.DRAFT.value,
                    "payments can only be amended while Drafted or Submitted",
                )

            netter = ExpenseNetter(SqlExpenseLedger(session))
            details = []

            for item in items:
                detail = await self._get_detail(session, pay_period_id, item.employee_id)
                if PaymentDetailStateMachine.is_locked(detail):
                    logger.info(
                        "Payment detail %s is finalized, not amending",
                        detail.payment_detail_id,
                    )
                    details.append(detail)
                    continue

                if item.amount_paid is not None:
                    detail.amount_paid = round_to_cents(item.amount_paid)
                if item.comments is not None:
                    detail.comments = item.comments

                preview = await netter.preview(item.employee_id, period)
                detail.credited_expense = round_to_cents(preview.credited_total)
                detail.debited_expense = round_to_cents(preview.debited_total)
                detail.balance_amount = (
                    detail.total_amount
                    + detail.credited_expense
                    - detail.debited_expense
                    - (detail.amount_paid or ZERO)
                )
                details.append(detail)

            await session.flush()
            logger.info("Saved %d payment drafts for pay period %s", len(details), pay_period_id)
            return details

    async def finalize(self, payment_detail_ids: Sequence[UUID]) -> list[PayrollPaymentDetail]:
        """Lock payment details; finalizing an already finalized detail is a no-op."""
        async with self._transaction("finalize") as session:
            details = []
            for payment_detail_id in payment_detail_ids:
                detail = await session.get(
                    PayrollPaymentDetail, payment_detail_id, with_for_update=True
                )
                if detail is None:
                    raise PaymentDetailNotFoundError(str(payment_detail_id))

                if not PaymentDetailStateMachine.is_locked(detail):
                    PaymentDetailStateMachine.validate_transition(
                        detail.status, PaymentDetailStatus.FINALIZED
                    )
                    detail.status = PaymentDetailStatus.FINALIZED.value
                    detail.finalized_at = _utcnow()
                details.append(detail)

            await session.flush()
            logger.info("Finalized %d payment details", len(details))
            return details

    async def skip(self, pay_period_id: UUID) -> PayPeriod:
        """Close a period without generating or paying it."""
        async with self._transaction("skip") as session:
            period = await self._get_period(session, pay_period_id)
            PayPeriodStateMachine.validate_transition(period.status, PayPeriodStatus.SKIPPED)
            period.status = PayPeriodStatus.SKIPPED.value
            period.skipped_at = _utcnow()
            logger.info("Skipped pay period %s", pay_period_id)
            return period

    async def payment_details(self, pay_period_id: UUID) -> list[PayrollPaymentDetail]:
        """Payment details of a period, one per employee."""
        async with self._transaction("payment_details") as session:
            result = await session.execute(
                select(PayrollPaymentDetail)
                .where(PayrollPaymentDetail.pay_period_id == pay_period_id)
                .order_by(PayrollPaymentDetail.employee_id)
            )
            return list(result.scalars().all())

    async def payroll_lines(
        self, pay_period_id: UUID, employee_id: UUID | None = None
    ) -> list[PayrollLine]:
        """Lines of a period, optionally for one employee."""
        async with self._transaction("payroll_lines") as session:
            query = select(PayrollLine).where(PayrollLine.pay_period_id == pay_period_id)
            if employee_id is not None:
                query = query.where(PayrollLine.employee_id == employee_id)
            result = await session.execute(
                query.order_by(PayrollLine.employee_id, PayrollLine.placement_id)
            )
            return list(result.scalars().all())
