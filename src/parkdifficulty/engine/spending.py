"""Spending options and the greedy monthly allocator.

Every month the simulated player chooses what to spend money on. The choices
are modelled as SpendingOption variants that share one interface (cost,
extra guests, action income) so that they can be ranked against each other:

- RideBuildingOption: raise the soft guest cap, buying land if needed
- AdvertisingOption: run one marketing campaign for the month
- RepayLoanOption: pay back part of the loan to save on interest
- IncreaseLoanOption: withdraw more loan (cost is negative)

Allocation loop:
1. Advertising campaigns are priced once per month and are one-shot
2. Loan options are priced fresh every iteration and bought at most once
3. The ride building option depends on the current cap gap, so it is rebuilt
   after every purchase
4. The affordable option with the best gain per cost is bought, then repeat
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, ClassVar

from parkdifficulty.parameters import ALLOCATOR_ITERATION_CEILING, ZERO_COST_SUBSTITUTE, format_currency

if TYPE_CHECKING:
    from parkdifficulty.engine.simulator import EconomicSimulator

logger = logging.getLogger(__name__)


class SpendingStrategy(str, Enum):
    """Per-month policy of the simulated player.

    PROFIT ranks options by long-term income, GUESTCOUNT by guests gained.
    """

    PROFIT = "profit"
    GUESTCOUNT = "guestcount"


class AdvertisingCampaign(str, Enum):
    """Marketing campaigns the simulated player can run."""

    PARK = "park"
    RIDE = "ride"
    FREE_FOOD_DRINK = "freeFoodDrink"
    FREE_RIDE = "freeRide"
    FREE_ENTRY = "freeEntry"
    HALF_PRICE_ENTRY = "halfPriceEntry"


@dataclass
class SpendingOption:
    """Something the simulated player could spend money on this month.

    Attributes:
        cost: Cash the option actually costs (negative for loan increases)
        extra_guests: Guests or soft guest cap the option actually adds
        action_income: Estimated financial change over the rest of the
            scenario, used only for ranking
    """

    kind: ClassVar[str] = "option"

    cost: float
    extra_guests: float
    action_income: float

    def gain_per_cost(self, strategy: SpendingStrategy) -> float:
        """Ranking value of this option under a strategy."""
        cost = self.cost if self.cost != 0 else ZERO_COST_SUBSTITUTE
        gain = self.extra_guests if strategy == SpendingStrategy.GUESTCOUNT else self.action_income
        return gain / cost


@dataclass
class RideBuildingOption(SpendingOption):
    """Build rides (and buy land for them) to raise the soft guest cap."""

    kind: ClassVar[str] = "building"

    land_tiles: float
    ride_cost: float
    land_cost: float


@dataclass
class AdvertisingOption(SpendingOption):
    """Run a marketing campaign for the whole month.

    carried_cash overrides the cash attracted guests arrive with (free and
    half price entry vouchers leave more in their pockets).
    """

    kind: ClassVar[str] = "advertising"

    campaign: AdvertisingCampaign
    carried_cash: float | None = None


@dataclass
class RepayLoanOption(SpendingOption):
    kind: ClassVar[str] = "repayloan"


@dataclass
class IncreaseLoanOption(SpendingOption):
    kind: ClassVar[str] = "increaseloan"


def rank_options(options: list[SpendingOption], strategy: SpendingStrategy) -> list[SpendingOption]:
    """Order options by gain per cost, best first.

    The sort is stable, so equally ranked options keep their input order.
    """
    return sorted(options, key=lambda opt: opt.gain_per_cost(strategy), reverse=True)


@dataclass
class AllocationReport:
    """What the allocator did in one month.

    Attributes:
        purchases: Options bought, in purchase order
        iterations: Allocation iterations run
        ceiling_hit: True if the iteration ceiling stopped the loop
        guests_generated: Guests added by natural generation afterwards
    """

    purchases: list[SpendingOption] = field(default_factory=list)
    iterations: int = 0
    ceiling_hit: bool = False
    guests_generated: int = 0

    def bought(self, kind: str) -> list[SpendingOption]:
        return [opt for opt in self.purchases if opt.kind == kind]


class SpendingAllocator:
    """Greedy allocation of one month's spending for a simulator."""

    def __init__(self, sim: EconomicSimulator):
        self.sim = sim

    def _candidates(
        self,
        strategy: SpendingStrategy,
        campaigns: list[AdvertisingOption],
        loan_kinds_bought: set[str],
    ) -> list[SpendingOption]:
        candidates: list[SpendingOption] = list(campaigns)
        if strategy == SpendingStrategy.PROFIT and RepayLoanOption.kind not in loan_kinds_bought:
            repay = self.sim.repay_loan_option()
            if repay is not None:
                candidates.append(repay)
        if IncreaseLoanOption.kind not in loan_kinds_bought:
            increase = self.sim.increase_loan_option()
            if increase is not None:
                candidates.append(increase)
        if not self.sim.state.density_limit_exceeded:
            building = self.sim.ride_building_option(strategy)
            # A free or empty option would win the ranking for no gain
            if building.cost > 0 and building.extra_guests > 0:
                candidates.append(building)
        return candidates

    def allocate(self, strategy: SpendingStrategy) -> AllocationReport:
        """Spend this month's money, then apply natural guest generation.

        Args:
            strategy: Strategy used to rank the options

        Returns:
            AllocationReport describing the purchases
        """
        sim = self.sim
        report = AllocationReport()
        campaigns = sim.advertising_options(strategy)
        loan_kinds_bought: set[str] = set()

        purchased = True
        while purchased and report.iterations < ALLOCATOR_ITERATION_CEILING:
            purchased = False
            report.iterations += 1
            for option in rank_options(self._candidates(strategy, campaigns, loan_kinds_bought), strategy):
                if sim.state.cash_available < option.cost:
                    continue
                logger.debug(f"Month {sim.state.months_completed}: buy {option.kind} for {option.cost:.0f}")
                sim.purchase(option)
                report.purchases.append(option)
                if isinstance(option, AdvertisingOption):
                    campaigns.remove(option)
                elif isinstance(option, (RepayLoanOption, IncreaseLoanOption)):
                    loan_kinds_bought.add(option.kind)
                purchased = True
                break

        if purchased and report.iterations >= ALLOCATOR_ITERATION_CEILING:
            report.ceiling_hit = True
            logger.warning(
                f"Spending allocation hit the iteration ceiling ({ALLOCATOR_ITERATION_CEILING}) "
                f"in month {sim.state.months_completed}"
            )
        sim.note(f"Cash after spending: {format_currency(sim.state.cash_available)}")

        generation = sim.natural_guest_generation()
        report.guests_generated = sim.add_guests(generation.current)
        sim.note(
            f"Natural guest generation attracts {report.guests_generated}, "
            f"guest count now {sim.state.guests_in_park}"
        )
        return report
