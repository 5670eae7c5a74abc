"""Simulation state models for the park difficulty engine.

This module defines the state carried by one simulated play-through.

Key invariant:
- The wallet histogram always accounts for every guest in the park:
  sum(wallets.counts.values()) == guests_in_park. Any operation that
  redistributes guests proportionally ends with WalletHistogram.reconcile().
"""

from __future__ import annotations

import random
from typing import Iterator

from pydantic import BaseModel, Field


class WalletHistogram(BaseModel):
    """Guest counts keyed by the whole amount of cash each guest carries.

    The map is sparse: keys are only present for amounts some guest holds.
    Iteration is always in ascending cash order so that every operation is
    deterministic for a given random generator.

    Attributes:
        counts: Mapping of carried cash to number of guests
    """

    counts: dict[int, int] = Field(default_factory=dict)

    def items(self) -> Iterator[tuple[int, int]]:
        """Buckets in ascending cash order."""
        for cash in sorted(self.counts):
            yield cash, self.counts[cash]

    def __getitem__(self, cash: int) -> int:
        return self.counts.get(cash, 0)

    @property
    def total(self) -> int:
        """Number of guests across all buckets."""
        return sum(self.counts.values())

    def add(self, cash: float, amount: int) -> None:
        """Add guests carrying the given cash. Negative amounts remove guests."""
        key = int(round(cash))
        updated = max(0, self.counts.get(key, 0) + amount)
        if updated > 0:
            self.counts[key] = updated
        else:
            self.counts.pop(key, None)

    def remove(self, cash: int, amount: int) -> int:
        """Remove up to amount guests from one bucket.

        Returns:
            Number of guests actually removed
        """
        removed = min(amount, self.counts.get(cash, 0))
        self.add(cash, -removed)
        return removed

    def charge(self, max_per_guest: float, apply: bool = True) -> float:
        """Take up to max_per_guest from every guest's wallet.

        Args:
            max_per_guest: Most any single guest pays
            apply: If False only report what would be collected

        Returns:
            Total cash collected
        """
        charge = int(round(max_per_guest))
        total = 0
        remaining: dict[int, int] = {}
        for cash, count in self.items():
            taken = min(charge, cash)
            remaining[cash - taken] = remaining.get(cash - taken, 0) + count
            total += taken * count
        if apply:
            self.counts = {cash: count for cash, count in remaining.items() if count > 0}
        return total

    def apply_turnover(self, rate: float, target_total: int, rng: random.Random) -> None:
        """Remove the same proportion of guests from every bucket.

        Per-bucket rounding leaves the histogram slightly off the real guest
        count, so the result is reconciled to target_total.
        """
        for cash in sorted(self.counts):
            self.add(cash, -int(round(self.counts[cash] * rate)))
        self.reconcile(target_total, rng)

    def reconcile(self, target_total: int, rng: random.Random, default_cash: int = 0) -> int:
        """Correct rounding drift so the histogram sums to target_total.

        Guests are added to or removed from buckets one at a time, picking a
        bucket with probability proportional to its size.

        Args:
            target_total: Guest count the histogram must sum to
            rng: Random generator used to pick buckets
            default_cash: Bucket used when adding to an empty histogram

        Returns:
            Signed number of guests added (negative when removed)
        """
        target_total = max(0, target_total)
        difference = target_total - self.total
        direction = 1 if difference > 0 else -1
        for _ in range(abs(difference)):
            keys = sorted(self.counts)
            if not keys:
                self.add(default_cash, 1)
                continue
            picked = rng.choices(keys, weights=[self.counts[k] for k in keys])[0]
            self.add(picked, direction)
        return difference


class SimulationState(BaseModel):
    """Complete state of one simulated play-through.

    Inputs that are also modified:
        soft_guest_cap: Ceiling on attraction-driven guest generation
        cash_available: Cash on hand (can go negative while the loan covers it)
        guests_in_park: Current guest count
        available_land: Owned land not yet built on
        buyable_land: Land and construction rights still for sale

    Results accumulated over the run:
        total_end_month_cash / average_end_month_cash: End-of-month cash statistics
        lowest_cash_available: Lowest cash plus loan headroom seen (None until checked)
        month_exceeded_density_limit: First month with no land left (None if never)
        total_land_bought / total_land_usage: Tiles bought and built on
        objective_metric: Higher is better; depends on the objective
        activity_log: Per-month lines describing what the simulation did
    """

    months_left: int = Field(default=0, ge=0)
    months_completed: int = Field(default=0, ge=0)
    unrepaid_loan: float = 0.0
    soft_guest_cap: int = Field(default=0, ge=0)
    cash_available: float = 0.0
    guests_in_park: int = Field(default=0, ge=0)
    available_land: float = 0.0
    buyable_land: float = 0.0
    wallets: WalletHistogram = Field(default_factory=WalletHistogram)

    entry_tickets_this_month: float = 0.0
    cash_delta_without_ride_tickets: float = 0.0

    lowest_cash_available: float | None = None
    total_end_month_cash: float = 0.0
    average_end_month_cash: float = 0.0
    month_exceeded_density_limit: int | None = None
    total_land_bought: float = 0.0
    total_land_usage: float = 0.0
    objective_metric: float = 0.0
    activity_log: list[list[str]] = Field(default_factory=list)

    @property
    def is_finished(self) -> bool:
        return self.months_left == 0

    @property
    def density_limit_exceeded(self) -> bool:
        return self.month_exceeded_density_limit is not None
