"""Pytest fixtures for staffing payroll tests."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import AsyncGenerator, Awaitable, Callable
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from staffing_payroll.config import Settings
from staffing_payroll.database import make_session_factory
from staffing_payroll.models import (
    Base,
    Employee,
    ExpenseTransaction,
    PayConfigSetting,
    PayPeriod,
    PayRateTier,
    PayTypeConfiguration,
    Placement,
    PlacementBillRate,
    Timesheet,
    TimesheetHour,
)
from staffing_payroll.services.settlement import SettlementCoordinator

PERIOD_START = date(2024, 1, 1)
PERIOD_END = date(2024, 1, 14)


@pytest.fixture
async def engine(tmp_path):
    """Create a test database engine on a per-test SQLite file.

    A file (not :memory:) so the coordinator's own sessions see committed rows.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'payroll.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite://",
        engine_version="test-1.0",
        default_to_standard_pay=True,
        sql_echo=False,
    )


@pytest.fixture
def coordinator(session_factory, test_settings) -> SettlementCoordinator:
    return SettlementCoordinator(session_factory, test_settings)


@pytest.fixture
async def test_pay_setting(session: AsyncSession) -> PayConfigSetting:
    """Create a biweekly pay configuration setting."""
    setting = PayConfigSetting(
        pay_config_setting_id=uuid4(),
        name="Biweekly",
        frequency="biweekly",
    )
    session.add(setting)
    await session.flush()
    return setting


@pytest.fixture
async def test_period(session: AsyncSession, test_pay_setting: PayConfigSetting) -> PayPeriod:
    """Create a pay period for 2024-01-01 .. 2024-01-14."""
    period = PayPeriod(
        pay_period_id=uuid4(),
        pay_config_setting_id=test_pay_setting.pay_config_setting_id,
        period_start=PERIOD_START,
        period_end=PERIOD_END,
        check_date=date(2024, 1, 19),
        status="Yet to generate",
    )
    session.add(period)
    await session.flush()
    return period


@pytest.fixture
async def test_employee(session: AsyncSession, test_pay_setting: PayConfigSetting) -> Employee:
    """Create a payroll-enabled employee."""
    employee = Employee(
        employee_id=uuid4(),
        display_name="Dana Reyes",
        status="active",
        enable_payroll=True,
        pay_config_setting_id=test_pay_setting.pay_config_setting_id,
        standard_pay_amount=Decimal("1000.00"),
        hours_worked=Decimal("0"),
        balance_amount=Decimal("0"),
        balance_version=0,
    )
    session.add(employee)
    await session.flush()
    return employee


@pytest.fixture
async def test_tiered_config(session: AsyncSession) -> PayTypeConfiguration:
    """Hourly configuration: [0, 40) at $20 and [40, ...) at $30."""
    config = PayTypeConfiguration(
        pay_type_configuration_id=uuid4(),
        pay_type="hourly",
        payroll_pay=Decimal("0"),
    )
    session.add(config)
    await session.flush()

    session.add_all(
        [
            PayRateTier(
                pay_type_configuration_id=config.pay_type_configuration_id,
                from_hour=Decimal("0"),
                to_hour=Decimal("40"),
                rate=Decimal("20"),
                rate_basis="value",
            ),
            PayRateTier(
                pay_type_configuration_id=config.pay_type_configuration_id,
                from_hour=Decimal("40"),
                to_hour=None,
                rate=Decimal("30"),
                rate_basis="value",
            ),
        ]
    )
    await session.flush()
    return config


@pytest.fixture
async def test_salary_config(session: AsyncSession) -> PayTypeConfiguration:
    """Salary configuration paying $3000 per period."""
    config = PayTypeConfiguration(
        pay_type_configuration_id=uuid4(),
        pay_type="salary",
        payroll_pay=Decimal("3000.00"),
    )
    session.add(config)
    await session.flush()
    return config


@pytest.fixture
def placement_factory(session: AsyncSession) -> Callable[..., Awaitable[Placement]]:
    """Create placements with a $50 bill rate effective throughout 2024."""

    async def create(
        employee: Employee,
        config: PayTypeConfiguration | None,
        *,
        baseline_mode: str = "global",
        status: str = "In Progress",
        end_date: date | None = None,
        bill_rate: Decimal | None = Decimal("50"),
    ) -> Placement:
        placement = Placement(
            placement_id=uuid4(),
            employee_id=employee.employee_id,
            client_name="Acme Logistics",
            status=status,
            start_date=date(2023, 12, 1),
            end_date=end_date,
            payroll_configuration_type=baseline_mode,
            pay_type_configuration_id=config.pay_type_configuration_id if config else None,
        )
        session.add(placement)
        await session.flush()

        if bill_rate is not None:
            session.add(
                PlacementBillRate(
                    placement_id=placement.placement_id,
                    effective_from=date(2024, 1, 1),
                    effective_to=None,
                    bill_rate=bill_rate,
                    ot_pay_rate_config_type="same_as_base",
                )
            )
            await session.flush()
        return placement

    return create


@pytest.fixture
async def test_placement(
    placement_factory, test_employee: Employee, test_tiered_config: PayTypeConfiguration
) -> Placement:
    """Hourly placement on the tiered configuration."""
    return await placement_factory(test_employee, test_tiered_config)


@pytest.fixture
def timesheet_factory(session: AsyncSession) -> Callable[..., Awaitable[Timesheet]]:
    """Create a timesheet with one entry per (billable, ot) pair, one day apart."""

    async def create(
        placement: Placement,
        hours: list[tuple[str, str]],
        *,
        status: str = "Approved",
        start: date = PERIOD_START,
        payroll_raised: bool = False,
    ) -> Timesheet:
        timesheet = Timesheet(
            timesheet_id=uuid4(),
            placement_id=placement.placement_id,
            from_date=start,
            to_date=start + timedelta(days=max(len(hours) - 1, 0)),
            status=status,
        )
        session.add(timesheet)
        await session.flush()

        for offset, (billable, ot) in enumerate(hours):
            session.add(
                TimesheetHour(
                    timesheet_hour_id=uuid4(),
                    timesheet_id=timesheet.timesheet_id,
                    work_date=start + timedelta(days=offset),
                    billable_hours=Decimal(billable),
                    ot_hours=Decimal(ot),
                    payroll_raised=payroll_raised,
                )
            )
        await session.flush()
        return timesheet

    return create


@pytest.fixture
def expense_factory(session: AsyncSession) -> Callable[..., Awaitable[ExpenseTransaction]]:
    """Create payroll expense transactions for an employee."""

    async def create(employee: Employee, transaction_type: str, due: str, **overrides):
        values = {
            "expense_id": uuid4(),
            "employee_id": employee.employee_id,
            "transaction_type": transaction_type,
            "effect_on": "payroll",
            "amount": Decimal(due),
            "due_amount": Decimal(due),
            "raised_date": date(2024, 1, 5),
            "status": "Approved",
            "enable_approval": False,
            "approved_date": None,
            "has_goal_amount": False,
            "goal_amount": None,
            "is_recurring": False,
            "recurring_count": None,
        }
        values.update(overrides)
        expense = ExpenseTransaction(**values)
        session.add(expense)
        await session.flush()
        return expense

    return create
