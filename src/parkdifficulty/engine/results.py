"""Result types shared by the incremental searches.

Every long-running search exposes step(budget) and answers with a
StepOutcome instead of raising: PENDING while it needs more month budget,
DONE with a value, or FAILED with a reason. Callers branch on the status.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class StepStatus(Enum):
    """Progress of an incremental search."""

    PENDING = "pending"  # Needs more budget, call step() again
    DONE = "done"
    FAILED = "failed"


class FailureReason(Enum):
    """Why a search could not produce a value."""

    # No switch point makes this pressure vector viable. Recoverable by
    # trying another vector.
    INFEASIBLE = "infeasible"
    # No viable vector exists even at the easiest settings.
    UNPLAYABLE = "unplayable"


@dataclass(frozen=True)
class StepOutcome(Generic[T]):
    """Discriminated result of one step() call.

    Attributes:
        status: PENDING, DONE or FAILED
        value: The result when DONE
        reason: The failure reason when FAILED
    """

    status: StepStatus
    value: Optional[T] = None
    reason: Optional[FailureReason] = None

    @classmethod
    def pending(cls) -> "StepOutcome[Any]":
        return cls(StepStatus.PENDING)

    @classmethod
    def done(cls, value: T) -> "StepOutcome[T]":
        return cls(StepStatus.DONE, value=value)

    @classmethod
    def failed(cls, reason: FailureReason) -> "StepOutcome[Any]":
        return cls(StepStatus.FAILED, reason=reason)

    @property
    def is_pending(self) -> bool:
        return self.status == StepStatus.PENDING

    @property
    def is_done(self) -> bool:
        return self.status == StepStatus.DONE

    @property
    def is_failed(self) -> bool:
        return self.status == StepStatus.FAILED


class MonthBudget:
    """Simulated months a caller allows to run before control must return.

    One budget is shared by everything a single scheduling tick drives, so a
    calibrator and the switch search beneath it draw from the same pool.
    """

    def __init__(self, months: int):
        if months < 0:
            raise ValueError(f"Month budget cannot be negative, got {months}")
        self.remaining = months
        self.used = 0

    def __repr__(self) -> str:
        return f"MonthBudget(remaining={self.remaining}, used={self.used})"

    @property
    def exhausted(self) -> bool:
        return self.remaining <= 0

    def consume(self, months: int = 1) -> None:
        """Spend months from the budget.

        Raises:
            ValueError: If more months are requested than remain
        """
        if months > self.remaining:
            raise ValueError(f"Cannot consume {months} months, only {self.remaining} remain")
        self.remaining -= months
        self.used += months
