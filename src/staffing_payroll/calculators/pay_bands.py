"""Pay band resolution for placement pay configurations."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from staffing_payroll.calculators.types import (
    Discount,
    DiscountType,
    FixedRate,
    Multiplier,
    OvertimePolicy,
    PayBandSchedule,
    PayBandTier,
    PayType,
    RateBasis,
    SameAsBase,
)
from staffing_payroll.models import PayRateTier, PayTypeConfiguration


class ConfigurationNotFoundError(Exception):
    """Raised when a placement has no usable pay configuration."""

    def __init__(self, pay_type_configuration_id: UUID | None, reason: str = ""):
        self.pay_type_configuration_id = pay_type_configuration_id
        self.reason = reason
        msg = f"No pay configuration {pay_type_configuration_id}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


def overtime_policy_for(
    config_type: str | None,
    ot_pay_rate: Decimal | None = None,
    multiplier: Decimal | None = None,
) -> OvertimePolicy:
    """Build the overtime policy stored on a bill rate row.

    A fixed or multiplier policy without its value falls back to paying OT
    at the base rate.
    """
    if config_type == "fixed_rate" and ot_pay_rate is not None:
        return FixedRate(rate=ot_pay_rate)
    if config_type == "multiplier" and multiplier is not None:
        return Multiplier(factor=multiplier)
    return SameAsBase()


def discount_for(discount_type: str | None, value: Decimal | None) -> Discount | None:
    """Build a bill rate discount, or None when no discount applies."""
    if discount_type is None or value is None or value == 0:
        return None
    return Discount(discount_type=DiscountType(discount_type), value=value)


class PayBandResolver:
    """Loads the tier schedule of a pay configuration.

    Tiers are returned ordered by their lower bound. The ranges are
    half-open: a tier covers [from_hour, to_hour), and a missing to_hour
    means the tier is unbounded.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self._cache: dict[UUID, PayBandSchedule] = {}

    async def resolve(self, pay_type_configuration_id: UUID | None) -> PayBandSchedule:
        """Resolve the schedule for a configuration.

        Args:
            pay_type_configuration_id: Configuration referenced by the placement

        Returns:
            The ordered tier schedule

        Raises:
            ConfigurationNotFoundError: If the configuration is missing, or is
                hourly and has no tiers
        """
        if pay_type_configuration_id is None:
            raise ConfigurationNotFoundError(None, "placement has no pay configuration")

        cached = self._cache.get(pay_type_configuration_id)
        if cached is not None:
            return cached

        config = await self.session.get(PayTypeConfiguration, pay_type_configuration_id)
        if config is None:
            raise ConfigurationNotFoundError(pay_type_configuration_id)

        result = await self.session.execute(
            select(PayRateTier)
            .where(PayRateTier.pay_type_configuration_id == pay_type_configuration_id)
            .order_by(PayRateTier.from_hour)
        )
        tiers = tuple(
            PayBandTier(
                from_hour=row.from_hour,
                to_hour=row.to_hour,
                rate=row.rate,
                rate_basis=RateBasis(row.rate_basis),
            )
            for row in result.scalars().all()
        )

        pay_type = PayType(config.pay_type)
        if pay_type == PayType.HOURLY and not tiers:
            raise ConfigurationNotFoundError(pay_type_configuration_id, "no pay rate tiers")

        schedule = PayBandSchedule(
            pay_type_configuration_id=pay_type_configuration_id,
            pay_type=pay_type,
            tiers=tiers,
            payroll_pay=config.payroll_pay,
        )
        self._cache[pay_type_configuration_id] = schedule
        return schedule
