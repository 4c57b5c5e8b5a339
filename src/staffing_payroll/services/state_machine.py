"""Pay period and payment detail state machines with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from staffing_payroll.models import PayrollPaymentDetail


class PayPeriodStatus(str, Enum):
    """Pay period status values."""

    YET_TO_GENERATE = "Yet to generate"
    DRAFTED = "Drafted"
    SUBMITTED = "Submitted"
    SKIPPED = "Skipped"


class PaymentDetailStatus(str, Enum):
    """Payment detail status values."""

    DRAFT = "draft"
    SETTLED = "settled"
    FINALIZED = "finalized"


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PayPeriodStateMachine:
    """State machine for pay period status transitions.

    Allowed transitions:
    - Yet to generate → Drafted
    - Drafted → Drafted (regenerate)
    - Drafted → Submitted
    - Yet to generate → Skipped
    - Drafted → Skipped
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayPeriodStatus.YET_TO_GENERATE: [PayPeriodStatus.DRAFTED, PayPeriodStatus.SKIPPED],
        PayPeriodStatus.DRAFTED: [
            PayPeriodStatus.DRAFTED,
            PayPeriodStatus.SUBMITTED,
            PayPeriodStatus.SKIPPED,
        ],
        PayPeriodStatus.SUBMITTED: [],  # Terminal state
        PayPeriodStatus.SKIPPED: [],  # Terminal state
    }

    # Statuses where operators may amend payment drafts
    PAYMENTS_EDITABLE = {
        PayPeriodStatus.DRAFTED,
        PayPeriodStatus.SUBMITTED,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def can_generate(cls, status: str) -> bool:
        """Check if lines can be (re)generated in this status."""
        return cls.can_transition(status, PayPeriodStatus.DRAFTED)

    @classmethod
    def can_settle(cls, status: str) -> bool:
        """Settlement only runs once the period is submitted."""
        return status == PayPeriodStatus.SUBMITTED

    @classmethod
    def can_edit_payments(cls, status: str) -> bool:
        return status in cls.PAYMENTS_EDITABLE

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])


class PaymentDetailStateMachine:
    """State machine for payment detail status transitions.

    Allowed transitions:
    - draft → settled
    - settled → settled (re-settle rolls only the delta)
    - draft → finalized
    - settled → finalized
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PaymentDetailStatus.DRAFT: [PaymentDetailStatus.SETTLED, PaymentDetailStatus.FINALIZED],
        PaymentDetailStatus.SETTLED: [
            PaymentDetailStatus.SETTLED,
            PaymentDetailStatus.FINALIZED,
        ],
        PaymentDetailStatus.FINALIZED: [],  # Terminal state
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def is_locked(cls, detail: PayrollPaymentDetail) -> bool:
        """Finalized details are never recomputed."""
        return detail.status == PaymentDetailStatus.FINALIZED

    @classmethod
    def can_settle(cls, detail: PayrollPaymentDetail) -> bool:
        """A detail finalized before settlement still gets settled exactly once."""
        return not cls.is_locked(detail) or detail.settled_at is None
