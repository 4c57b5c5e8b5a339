"""Type definitions for the pay calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Union
from uuid import UUID

ZERO = Decimal("0")
CENTS = Decimal("0.01")
HOURS_PRECISION = Decimal("0.0001")


def round_to_cents(amount: Decimal) -> Decimal:
    """Round amount to 2 decimal places (cents)."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def round_hours(hours: Decimal) -> Decimal:
    return hours.quantize(HOURS_PRECISION, rounding=ROUND_HALF_UP)


class PayType(str, Enum):
    """How a placement is paid."""

    HOURLY = "hourly"
    SALARY = "salary"


class RateBasis(str, Enum):
    """Whether a tier rate is a fixed value or a percentage of the bill rate."""

    PERCENTAGE = "percentage"
    VALUE = "value"


class BaselineMode(str, Enum):
    """Where the cumulative-hours baseline of a placement comes from."""

    GLOBAL = "global"
    CUSTOM = "custom"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    VALUE = "value"


class LineStatus(str, Enum):
    """Terminal states of a payroll line computation."""

    COMPUTED = "computed"
    PENDING = "pending"


@dataclass(frozen=True)
class Discount:
    """Bill rate discount, either a percentage or a flat value."""

    discount_type: DiscountType
    value: Decimal

    def apply(self, rate: Decimal) -> Decimal:
        if self.discount_type == DiscountType.PERCENTAGE:
            return rate - (rate * self.value) / 100
        return rate - self.value


# ===== Overtime policies =====


@dataclass(frozen=True)
class SameAsBase:
    """OT hours are paid at the tier's effective rate."""

    kind = "same_as_base"

    def rate_for(self, base_rate: Decimal) -> Decimal:
        return base_rate


@dataclass(frozen=True)
class FixedRate:
    """OT hours are paid at a configured rate."""

    rate: Decimal
    kind = "fixed_rate"

    def rate_for(self, base_rate: Decimal) -> Decimal:
        return self.rate


@dataclass(frozen=True)
class Multiplier:
    """OT hours are paid at the tier's effective rate times a factor."""

    factor: Decimal
    kind = "multiplier"

    def rate_for(self, base_rate: Decimal) -> Decimal:
        return base_rate * self.factor


OvertimePolicy = Union[SameAsBase, FixedRate, Multiplier]


# ===== Pay bands and bill rates =====


@dataclass(frozen=True)
class PayBandTier:
    """A cumulative-hours range [from_hour, to_hour) with its rate."""

    from_hour: Decimal
    to_hour: Decimal | None  # None = no upper limit
    rate: Decimal
    rate_basis: RateBasis

    def overlap(self, start: Decimal, end: Decimal) -> Decimal:
        """Hours of [start, end) that fall inside this tier."""
        lo = max(start, self.from_hour)
        hi = end if self.to_hour is None else min(end, self.to_hour)
        return max(hi - lo, ZERO)

    def contains(self, hours: Decimal) -> bool:
        return self.from_hour <= hours and (self.to_hour is None or hours < self.to_hour)

    def effective_rate(self, bill_rate: Decimal | None) -> Decimal | None:
        """Pay rate per hour; None when a percentage tier has no bill rate."""
        if self.rate_basis == RateBasis.VALUE:
            return self.rate
        if bill_rate is None:
            return None
        return (self.rate * bill_rate) / 100


@dataclass(frozen=True)
class PayBandSchedule:
    """Ordered tiers of a pay configuration."""

    pay_type_configuration_id: UUID
    pay_type: PayType
    tiers: tuple[PayBandTier, ...]
    payroll_pay: Decimal = ZERO


@dataclass(frozen=True)
class BillRate:
    """Bill rate in effect for a placement on one day."""

    rate: Decimal | None
    discount: Discount | None = None
    ot_policy: OvertimePolicy = field(default_factory=SameAsBase)
    ot_bill_rate: Decimal | None = None

    @property
    def discounted_rate(self) -> Decimal | None:
        if self.rate is None or self.discount is None:
            return self.rate
        return self.discount.apply(self.rate)


@dataclass(frozen=True)
class DayHours:
    """Approved hours for one day of one placement."""

    work_date: date
    billable_hours: Decimal
    ot_hours: Decimal
    entry_id: UUID | None = None

    @property
    def total_hours(self) -> Decimal:
        return self.billable_hours + self.ot_hours


# ===== Calculation output =====


@dataclass
class TierSegment:
    """The part of one day's hours priced within a single tier."""

    work_date: date
    tier: PayBandTier
    bill_rate: Decimal | None
    pay_rate: Decimal
    billable_hours: Decimal
    billable_amount: Decimal
    ot_hours: Decimal = ZERO
    ot_pay_rate: Decimal = ZERO
    ot_amount: Decimal = ZERO

    @property
    def total_hours(self) -> Decimal:
        return self.billable_hours + self.ot_hours

    @property
    def total_amount(self) -> Decimal:
        return self.billable_amount + self.ot_amount

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the stored rate breakdown (cents-rounded strings)."""
        return {
            "date": self.work_date.isoformat(),
            "pay_in": self.tier.rate_basis.value,
            "pay_rate_value": str(self.tier.rate),
            "bill_rate": str(round_to_cents(self.bill_rate)) if self.bill_rate is not None else None,
            "pay_rate": str(round_to_cents(self.pay_rate)),
            "hours": str(round_to_cents(self.billable_hours)),
            "amount_payable": str(round_to_cents(self.billable_amount)),
            "ot_hours": str(round_to_cents(self.ot_hours)),
            "ot_pay_rate": str(round_to_cents(self.ot_pay_rate)),
            "ot_amount_payable": str(round_to_cents(self.ot_amount)),
            "total_hours": str(round_to_cents(self.total_hours)),
            "total_amount_payable": str(round_to_cents(self.total_amount)),
        }


@dataclass
class DayPay:
    """Result of pricing one day."""

    work_date: date
    segments: list[TierSegment] = field(default_factory=list)
    total_pay: Decimal = ZERO
    total_hours: Decimal = ZERO
    total_ot_hours: Decimal = ZERO
    total_ot_pay_rate: Decimal = ZERO
    total_billable_hours: Decimal = ZERO
    total_billable_pay_rate: Decimal = ZERO
    unmatched_hours: Decimal = ZERO
    notes: list[str] = field(default_factory=list)

    @property
    def needs_review(self) -> bool:
        return len(self.notes) > 0


@dataclass
class LineComputation:
    """Outcome of computing one (employee, placement, period) line."""

    status: LineStatus
    worked_hours: Decimal = ZERO
    total_amount: Decimal = ZERO
    breakdown: list[Any] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    consumed_entry_ids: list[UUID] = field(default_factory=list)
    fingerprint_inputs: list[dict[str, Any]] = field(default_factory=list)

    @property
    def is_pending(self) -> bool:
        return self.status == LineStatus.PENDING

    @property
    def needs_review(self) -> bool:
        return len(self.notes) > 0
