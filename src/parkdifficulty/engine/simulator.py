"""Month-by-month economic simulation of an idealized play-through.

The EconomicSimulator advances one SimulationState a month at a time under
a chosen SpendingStrategy. It is an approximate economic model of the park,
not a reimplementation of the game's mechanics.

Month Sequence:
1. DENSITY CHECK - Record the first month with no land left
2. SPENDING - Greedy allocation, then natural guest generation
3. PASSIVE EXPENDITURE - Upkeep, wages, research, loan interest
4. INCOME - Entry or ride tickets, stall sales
5. TURNOVER - Broke and overcrowded guests leave
6. ADVANCE - Month counters, average cash, objective metric, density check

Viability is a separate check. The caller runs is_viable() after every month
and abandons the run when it fails.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Optional

from parkdifficulty.engine.spending import (
    AdvertisingCampaign,
    AdvertisingOption,
    AllocationReport,
    IncreaseLoanOption,
    RepayLoanOption,
    RideBuildingOption,
    SpendingAllocator,
    SpendingOption,
    SpendingStrategy,
)
from parkdifficulty.models.options import SimOptions
from parkdifficulty.models.park import ParkSnapshot
from parkdifficulty.models.settings import ObjectiveType, ParkFlag, ScenarioSettings
from parkdifficulty.models.state import SimulationState, WalletHistogram
from parkdifficulty.parameters import (
    CROWDED_PARK_GUESTS,
    DIFFICULT_GENERATION_OVERSHOOT,
    DIFFICULT_GENERATION_THRESHOLD,
    GENERATION_PROBABILITY_SCALE,
    GENERATION_TICKS_PER_MONTH,
    LOAN_INCREMENT,
    MAX_GUESTS_CONSIDERED,
    MAX_LOAN_REPAYMENT_PROPORTION,
    MIN_FINAL_GUESTS,
    MONTH_WEEKS,
    OVERCROWDING_MIN_CAP,
    OVERCROWDING_TURNOVER_DIVISOR,
    PARK_RATING_GUEST_THRESHOLD,
    PARK_RATING_HIGH,
    PARK_RATING_LOW,
    RESEARCH_COST_PER_MONTH,
    SOFT_GUEST_CAP_SEARCH_STEP,
    UMBRELLA_INCOME_CAP,
    format_currency,
    format_month,
    weekly_loan_interest,
)

logger = logging.getLogger(__name__)


# Weekly cost and weekly guests generated by each campaign, plus the
# multiplier on long-term guest value used to estimate its income.
CAMPAIGN_TERMS: dict[AdvertisingCampaign, tuple[float, float, float]] = {
    AdvertisingCampaign.PARK: (3000, 15.63, 62.5),
    AdvertisingCampaign.RIDE: (2000, 12.5, 50),
    AdvertisingCampaign.FREE_FOOD_DRINK: (500, 12.5, 50),
    AdvertisingCampaign.FREE_RIDE: (500, 18.75, 75),
    AdvertisingCampaign.FREE_ENTRY: (500, 25, 100),
    AdvertisingCampaign.HALF_PRICE_ENTRY: (500, 12.5, 50),
}


@dataclass(frozen=True)
class NaturalGuestGeneration:
    """Guests expected from natural generation this month.

    Attributes:
        maximum: If rides were built to stay ahead of the soft guest cap all month
        current: If the soft guest cap stays where it is
    """

    maximum: int
    current: int


@dataclass(frozen=True)
class SoftGuestCapCost:
    """Price of raising the soft guest cap by quantity."""

    quantity: int
    ride_cost: float
    land_tiles: float
    land_cost: float

    @property
    def total_cost(self) -> float:
        return self.ride_cost + self.land_cost

    def __add__(self, other: "SoftGuestCapCost") -> "SoftGuestCapCost":
        return SoftGuestCapCost(
            quantity=self.quantity + other.quantity,
            ride_cost=self.ride_cost + other.ride_cost,
            land_tiles=self.land_tiles + other.land_tiles,
            land_cost=self.land_cost + other.land_cost,
        )


@dataclass
class MonthSummary:
    """Result of one update_month call."""

    month: int
    strategy: SpendingStrategy
    purchases: list[SpendingOption] = field(default_factory=list)
    guests_generated: int = 0
    ceiling_hit: bool = False
    end_cash: float = 0.0
    guests: int = 0


def initial_state(settings: ScenarioSettings, park: ParkSnapshot) -> SimulationState:
    """Build the starting state for a simulated play-through.

    The simulated player takes out the whole loan up front and may repay
    part of it later.
    """
    wallets = WalletHistogram()
    # Existing guests keep the cash they arrived with, not the scenario's guest cash
    wallets.add(park.guest_initial_cash, park.guests)
    return SimulationState(
        months_left=settings.total_months,
        cash_available=settings.initial_cash + (settings.max_loan - settings.initial_loan),
        unrepaid_loan=settings.max_loan + settings.initial_debt,
        soft_guest_cap=park.suggested_guest_maximum,
        guests_in_park=park.guests,
        available_land=park.adjusted_park_size - settings.num_owned_tiles_to_buyable,
        buyable_land=(
            park.buyable_land
            + park.buyable_rights
            + settings.num_owned_tiles_to_buyable
            + park.max_unowned_to_purchasable_tiles
        ),
        wallets=wallets,
    )


class EconomicSimulator:
    """Simulates a park month by month.

    Usage:
        sim = EconomicSimulator(settings, park, options, rng=random.Random(1))
        while not sim.state.is_finished:
            sim.update_month(SpendingStrategy.PROFIT)
            if not sim.is_viable():
                break
    """

    def __init__(
        self,
        settings: ScenarioSettings,
        park: ParkSnapshot,
        options: SimOptions,
        rng: Optional[random.Random] = None,
        state: Optional[SimulationState] = None,
    ):
        self.settings = settings
        self.park = park
        self.options = options
        self.rng = rng if rng is not None else random.Random(0)
        self.state = state if state is not None else initial_state(settings, park)
        self._month_log: list[str] = []

    def note(self, line: str) -> None:
        """Add a line to this month's activity log."""
        self._month_log.append(line)

    @property
    def cash_machine_available(self) -> bool:
        month = self.settings.cash_machine_month
        return month is not None and self.state.months_completed >= month

    @property
    def guest_difficulty(self) -> float:
        return self.options.guest_difficulty_factor

    # -------------------------------------------------------------------------
    # Guest generation and soft guest cap
    # -------------------------------------------------------------------------

    def natural_guest_generation(self, guests: Optional[int] = None) -> NaturalGuestGeneration:
        """Estimate naturally generated guests this month.

        Args:
            guests: Guest count to estimate for (defaults to the park's)

        Returns:
            NaturalGuestGeneration with maximum and current estimates
        """
        if guests is None:
            guests = self.state.guests_in_park
        cap = self.state.soft_guest_cap

        rating = PARK_RATING_LOW if guests < PARK_RATING_GUEST_THRESHOLD else PARK_RATING_HIGH
        max_probability = 50 + rating - 200
        current_probability = max_probability
        if guests > cap:
            current_probability /= 4
            if self.settings.has_flag(ParkFlag.DIFFICULT_GUEST_GENERATION):
                if guests > cap + DIFFICULT_GENERATION_OVERSHOOT:
                    current_probability = 0
                current_probability /= 4
        if guests > CROWDED_PARK_GUESTS:
            max_probability /= 4
            current_probability /= 4
        if guests > MAX_GUESTS_CONSIDERED:
            max_probability = 0
            current_probability = 0

        def per_month(probability: float) -> int:
            return math.floor(
                GENERATION_TICKS_PER_MONTH * (probability / GENERATION_PROBABILITY_SCALE) * self.guest_difficulty
            )

        maximum = per_month(max_probability)
        current = per_month(current_probability)

        # Crossing the cap mid-month: the rest of the month generates at the over-cap rate
        if guests <= cap and guests + current > cap:
            overshoot = guests + current - cap
            proportion_over = min(1, overshoot / current)
            projected = self.natural_guest_generation(cap + 1)
            current = (cap - guests) + round(projected.current * proportion_over)

        return NaturalGuestGeneration(maximum=maximum, current=current)

    def _cap_cost(
        self, quantity: int, cost_per_100: float, tiles_per_100: float, available_land: float
    ) -> SoftGuestCapCost:
        multiplier = 1.0
        if self.settings.has_flag(ParkFlag.FORBID_HIGH_CONSTRUCTION):
            multiplier = self.options.sim_forbid_high_construction_land_usage
        land_tiles = multiplier * (quantity / 100) * tiles_per_100
        return SoftGuestCapCost(
            quantity=quantity,
            ride_cost=quantity * cost_per_100 / 100,
            land_tiles=land_tiles,
            land_cost=max(0, land_tiles - available_land) * self.settings.land_price,
        )

    def easy_soft_guest_cap_cost(self, quantity: int, available_land: Optional[float] = None) -> SoftGuestCapCost:
        """Cost of cap increases at the normal rates."""
        if available_land is None:
            available_land = self.state.available_land
        return self._cap_cost(
            quantity, self.options.sim_cost_per_100_sgc, self.options.tiles_per_100_sgc, available_land
        )

    def hard_soft_guest_cap_cost(self, quantity: int, available_land: Optional[float] = None) -> SoftGuestCapCost:
        """Cost of cap increases above the difficult guest generation threshold."""
        if available_land is None:
            available_land = self.state.available_land
        return self._cap_cost(
            quantity,
            self.options.sim_cost_per_100_sgc_hard_guest_gen,
            self.options.tiles_per_100_sgc_hard_guest_gen,
            available_land,
        )

    def soft_guest_cap_cost(self, quantity: int) -> SoftGuestCapCost:
        """Cost of raising the soft guest cap by quantity from where it is now.

        Under difficult guest generation, cap above DIFFICULT_GENERATION_THRESHOLD
        is priced at the hard rates. An increase straddling the threshold is
        split, and the hard part only gets the land the easy part left over.
        """
        quantity = max(0, quantity)
        cap = self.state.soft_guest_cap
        target = cap + quantity
        if self.settings.has_flag(ParkFlag.DIFFICULT_GUEST_GENERATION) and target > DIFFICULT_GENERATION_THRESHOLD:
            if cap < DIFFICULT_GENERATION_THRESHOLD:
                easy = self.easy_soft_guest_cap_cost(DIFFICULT_GENERATION_THRESHOLD - cap)
                land_left = max(0, self.state.available_land - easy.land_tiles)
                hard = self.hard_soft_guest_cap_cost(target - DIFFICULT_GENERATION_THRESHOLD, land_left)
                return easy + hard
            return self.hard_soft_guest_cap_cost(quantity)
        return self.easy_soft_guest_cap_cost(quantity)

    def max_soft_guest_cap_within_budget(self, budget: float, limit: Optional[int] = None) -> SoftGuestCapCost:
        """Largest cap increase whose cost fits the budget.

        Starts from budget / cost of one unit, gallops with a doubling step to
        bracket the answer, then halves the bracket. Relies on cost being
        non-decreasing in quantity.

        Args:
            budget: Cash available to spend
            limit: Largest increase worth considering

        Returns:
            SoftGuestCapCost of the chosen increase
        """
        if budget <= 0:
            return self.soft_guest_cap_cost(0)

        def affordable(quantity: int) -> bool:
            return self.soft_guest_cap_cost(quantity).total_cost <= budget

        unit_cost = self.soft_guest_cap_cost(1).total_cost
        guess = int(budget // unit_cost)
        if limit is not None:
            guess = min(guess, limit)

        step = SOFT_GUEST_CAP_SEARCH_STEP
        if affordable(guess):
            low = guess
            high = None
            while limit is None or low < limit:
                probe = low + step if limit is None else min(limit, low + step)
                if not affordable(probe):
                    high = probe
                    break
                low = probe
                step *= 2
            if high is None:
                return self.soft_guest_cap_cost(low)
        else:
            high = guess
            while True:
                probe = max(0, high - step)
                if affordable(probe):
                    low = probe
                    break
                high = probe
                step *= 2

        while high - low > 1:
            middle = (low + high) // 2
            if affordable(middle):
                low = middle
            else:
                high = middle
        return self.soft_guest_cap_cost(low)

    # -------------------------------------------------------------------------
    # Guest valuation
    # -------------------------------------------------------------------------

    def cash_per_new_guest(self) -> float:
        """Cash the park can expect to take from each new guest."""
        if self.settings.pay_per_ride:
            return self.settings.guest_initial_cash
        entry_fee = self.state.soft_guest_cap * self.options.sim_park_entry_per_100_sgc / 100
        return min(self.settings.guest_minimum_initial_cash, entry_fee)

    def long_term_value_per_guest(self, strategy: SpendingStrategy) -> float:
        """Estimated income from one extra guest over the rest of the scenario.

        Guestcount runs are assumed to stay guestcount, profit runs to make
        profit for half the remaining months.
        """
        months_left = self.state.months_left
        if months_left <= 0:
            return 0.0
        profit_months = 0 if strategy == SpendingStrategy.GUESTCOUNT else months_left // 2
        guestcount_months = months_left - profit_months
        cash = self.cash_per_new_guest()
        stall_income = self.options.sim_guest_stall_income

        if not self.settings.pay_per_ride:
            # Stalls only open in guestcount months to keep guests in
            return cash + guestcount_months * stall_income

        months_before = months_left
        profit_before = profit_months
        guestcount_before = guestcount_months
        if self.settings.cash_machine_month is not None:
            months_before = min(months_left, max(0, self.settings.cash_machine_month - self.state.months_completed))
            profit_before = max(0, min(months_before, profit_months))
            guestcount_before = max(0, min(months_before - profit_months, guestcount_months))
        months_after = months_left - months_before

        ride_income = self.options.sim_guest_ride_income
        cash_machine_part = months_after * (ride_income + stall_income)

        broke_leave = self.options.sim_guest_broke_leave_probability
        turnover_time = cash / ride_income + (1 / broke_leave if broke_leave > 0 else 0)
        profit_part = profit_before * (cash / turnover_time) if turnover_time > 0 else 0.0

        return (
            cash_machine_part
            + (profit_before / months_left) * profit_part
            + (guestcount_before / months_left) * cash
        )

    # -------------------------------------------------------------------------
    # Spending options
    # -------------------------------------------------------------------------

    def advertising_options(self, strategy: SpendingStrategy) -> list[AdvertisingOption]:
        """Campaigns available this month (none if marketing is forbidden)."""
        if self.settings.has_flag(ParkFlag.FORBID_MARKETING_CAMPAIGNS):
            return []

        gd = self.guest_difficulty
        value = self.long_term_value_per_guest(strategy)

        def campaign(kind: AdvertisingCampaign, income: float | None = None, carried: float | None = None):
            weekly_cost, weekly_guests, value_multiplier = CAMPAIGN_TERMS[kind]
            if income is None:
                income = value_multiplier * value * gd
            return AdvertisingOption(
                cost=weekly_cost * MONTH_WEEKS,
                extra_guests=weekly_guests * MONTH_WEEKS * gd,
                action_income=income,
                campaign=kind,
                carried_cash=carried,
            )

        campaigns = [
            campaign(AdvertisingCampaign.PARK),
            campaign(AdvertisingCampaign.RIDE),
            # The free item itself is negligible next to everything else estimated here
            campaign(AdvertisingCampaign.FREE_FOOD_DRINK),
        ]
        if self.settings.pay_per_ride:
            campaigns.append(campaign(AdvertisingCampaign.FREE_RIDE))
            return campaigns

        cash = self.cash_per_new_guest()
        umbrella_income = min(cash, UMBRELLA_INCOME_CAP) * (1.0 - self.options.guest_umbrella_chance / 100)
        one_cap_cost = self.soft_guest_cap_cost(1).total_cost
        if strategy == SpendingStrategy.GUESTCOUNT:
            # Voucher guests pay no entry and use up soft guest cap
            income = -100 * cash * gd + umbrella_income * gd - 50 * one_cap_cost + 100 * value * gd
            campaigns.append(campaign(AdvertisingCampaign.FREE_ENTRY, income, carried=0))
        income = -50 * (cash / 2) * gd + umbrella_income * gd - 25 * one_cap_cost + 50 * value * gd
        campaigns.append(
            campaign(
                AdvertisingCampaign.HALF_PRICE_ENTRY,
                income,
                carried=self.settings.guest_minimum_initial_cash / 2,
            )
        )
        return campaigns

    def ride_building_option(self, strategy: SpendingStrategy) -> RideBuildingOption:
        """Raise the cap enough to stay ahead of maximum guest generation.

        If that is unaffordable, the largest affordable part of it.
        """
        generation = self.natural_guest_generation()
        ideal = max(0, self.state.guests_in_park + generation.maximum - self.state.soft_guest_cap)
        cost = self.soft_guest_cap_cost(ideal)
        value = self.long_term_value_per_guest(strategy)
        income = (generation.maximum - generation.current) * value

        if cost.total_cost > self.state.cash_available:
            cost = self.max_soft_guest_cap_within_budget(self.state.cash_available, limit=ideal)
            proportion = cost.quantity / ideal if ideal > 0 else 0.0
            return RideBuildingOption(
                cost=cost.total_cost,
                extra_guests=math.floor(ideal * proportion),
                action_income=math.floor(income * proportion),
                land_tiles=cost.land_tiles,
                ride_cost=cost.ride_cost,
                land_cost=cost.land_cost,
            )

        return RideBuildingOption(
            cost=cost.total_cost,
            extra_guests=ideal,
            action_income=income,
            land_tiles=cost.land_tiles,
            ride_cost=cost.ride_cost,
            land_cost=cost.land_cost,
        )

    def repay_loan_option(self) -> Optional[RepayLoanOption]:
        """Repay as much loan as a fraction of cash on hand allows, if any."""
        state = self.state
        cost = min(
            state.unrepaid_loan,
            LOAN_INCREMENT * math.floor(MAX_LOAN_REPAYMENT_PROPORTION * state.cash_available / LOAN_INCREMENT),
        )
        if cost <= 0:
            return None
        saved = state.months_left * MONTH_WEEKS * weekly_loan_interest(cost, self.settings.loan_interest)
        return RepayLoanOption(cost=cost, extra_guests=0, action_income=saved)

    def increase_loan_option(self) -> Optional[IncreaseLoanOption]:
        """Withdraw the rest of the loan, unless the interest would exceed it."""
        withdraw = self.settings.max_loan - self.state.unrepaid_loan
        if withdraw <= 0:
            return None
        interest = self.state.months_left * MONTH_WEEKS * weekly_loan_interest(withdraw, self.settings.loan_interest)
        if not 0 < interest < withdraw:
            return None
        return IncreaseLoanOption(cost=-withdraw, extra_guests=0, action_income=-interest)

    def purchase(self, option: SpendingOption) -> None:
        """Apply a spending option to the state."""
        state = self.state
        if isinstance(option, RideBuildingOption):
            tiles_to_buy = min(state.buyable_land, max(0, option.land_tiles - state.available_land))
            state.buyable_land -= tiles_to_buy
            state.total_land_bought += tiles_to_buy
            state.available_land = max(0, state.available_land - option.land_tiles)
            state.total_land_usage += option.land_tiles
            state.soft_guest_cap += int(option.extra_guests)
            state.cash_available -= option.cost
            state.cash_delta_without_ride_tickets -= option.cost
            self.note(
                f"Spent {format_currency(option.ride_cost)} on rides and {format_currency(option.land_cost)} "
                f"buying land to fit ({state.available_land:.0f} land left). "
                f"SGC +{option.extra_guests:.0f} to {state.soft_guest_cap}"
            )
        elif isinstance(option, AdvertisingOption):
            self.add_guests(option.extra_guests, option.carried_cash)
            state.cash_available -= option.cost
            state.cash_delta_without_ride_tickets -= option.cost
            self.note(
                f"Spent {format_currency(option.cost)} on advertising: {option.campaign.value}, "
                f"guests now {state.guests_in_park}, {format_currency(state.cash_available)} left"
            )
        elif isinstance(option, RepayLoanOption):
            state.cash_available -= option.cost
            state.unrepaid_loan -= option.cost
            self.note(
                f"Repaid {format_currency(option.cost)} loan, now {format_currency(state.unrepaid_loan)} left"
            )
        elif isinstance(option, IncreaseLoanOption):
            # Negative cost: cash and loan both grow
            state.cash_available -= option.cost
            state.unrepaid_loan -= option.cost
            self.note(
                f"Increased loan by {format_currency(-option.cost)}, total loan is now "
                f"{format_currency(state.unrepaid_loan)}, cash on hand is {format_currency(state.cash_available)}"
            )
        else:
            raise TypeError(f"Unknown spending option: {type(option).__name__}")

    # -------------------------------------------------------------------------
    # Monthly phases
    # -------------------------------------------------------------------------

    def add_guests(self, amount: float, carried_cash: Optional[float] = None) -> int:
        """Add guests carrying the given cash.

        Pay-for-entry parks collect the carried cash as entry tickets.

        Returns:
            Number of guests added
        """
        added = max(0, round(amount))
        if carried_cash is None:
            if self.settings.pay_per_ride:
                carried_cash = self.settings.guest_initial_cash
            else:
                carried_cash = self.settings.guest_minimum_initial_cash
        self.state.guests_in_park += added
        self.state.wallets.add(carried_cash, added)
        if not self.settings.pay_per_ride:
            self.state.entry_tickets_this_month += carried_cash * added
        return added

    def apply_passive_expenditure(self) -> float:
        """Pay upkeep, wages, research and loan interest.

        Interest is only charged on the part of the loan that whole
        LOAN_INCREMENTs of cash on hand could not repay.

        Returns:
            Total paid
        """
        state = self.state
        upkeep = state.soft_guest_cap * self.options.sim_ride_upkeep_per_100_sgc / 100
        wages = state.soft_guest_cap * self.options.sim_staff_wages_per_100_sgc / 100
        repayable = max(0, LOAN_INCREMENT * math.floor(state.cash_available / LOAN_INCREMENT))
        unrepayable = max(0, state.unrepaid_loan - repayable)
        interest = MONTH_WEEKS * weekly_loan_interest(unrepayable, self.settings.loan_interest)
        self.note(f"Paid {format_currency(upkeep)} ride upkeep.")
        self.note(f"Paid {format_currency(wages)} staff wages.")
        self.note(f"Paid {format_currency(RESEARCH_COST_PER_MONTH)} for research.")
        self.note(
            f"Paid {format_currency(interest)} loan interest on "
            f"{format_currency(unrepayable)} loan we can't repay right now."
        )
        total = upkeep + wages + interest + RESEARCH_COST_PER_MONTH
        state.cash_delta_without_ride_tickets -= total
        state.cash_available -= total
        return total

    def apply_income(self, strategy: SpendingStrategy) -> float:
        """Collect entry or ride tickets and stall income.

        Returns:
            Total collected
        """
        state = self.state
        ride_income = self.options.sim_guest_ride_income
        cash_machine = self.cash_machine_available

        if not self.settings.pay_per_ride:
            tickets = state.entry_tickets_this_month
        elif strategy == SpendingStrategy.GUESTCOUNT and not cash_machine:
            # Undercharge: only take what keeps cash from running out by the end
            max_possible = state.wallets.charge(ride_income, apply=False)
            expected_end = state.cash_available + state.cash_delta_without_ride_tickets * state.months_left
            needed = max(0, -expected_end / state.months_left) if state.months_left > 0 else 0
            desired = min(needed, max_possible)
            per_guest = desired / state.guests_in_park if state.guests_in_park > 0 else 0
            tickets = state.wallets.charge(per_guest)
            self.note(
                f"Deliberately undercharged ride tickets: {format_currency(per_guest)} per guest, "
                f"aiming for {format_currency(desired)} of max possible {format_currency(max_possible)}"
            )
        elif not cash_machine:
            tickets = state.wallets.charge(ride_income)
        else:
            tickets = ride_income * state.guests_in_park

        stall_income = self.options.sim_guest_stall_income
        if self.settings.pay_per_ride and not cash_machine:
            stalls = state.wallets.charge(stall_income)
        elif not self.settings.pay_per_ride and strategy == SpendingStrategy.PROFIT:
            # Closing stalls is how the profit strategy tires guests into leaving
            stalls = 0.0
        else:
            stalls = stall_income * state.guests_in_park

        self.note(f"Gained {format_currency(stalls)} from stall income")
        self.note(f"Gained {format_currency(tickets)} from {'rides' if self.settings.pay_per_ride else 'entry'}")
        state.cash_delta_without_ride_tickets += stalls
        state.cash_available += stalls + tickets
        return stalls + tickets

    def apply_turnover(self, strategy: SpendingStrategy) -> int:
        """Remove guests who leave this month.

        Returns:
            Number of guests who left
        """
        state = self.state
        turnover = self.options.sim_guest_turnover_minimum
        cap = state.soft_guest_cap
        guests = state.guests_in_park

        overcrowding_turnover = 0.0
        times_exceeded = max(0, (guests - cap) / max(OVERCROWDING_MIN_CAP, cap))
        if times_exceeded > 0 and guests > 0:
            overcrowded = cap / OVERCROWDING_TURNOVER_DIVISOR * times_exceeded
            overcrowding_turnover = 100 * overcrowded / guests
            self.note(f"Turnover from exceeding soft guest cap by {times_exceeded:.3f}x: {round(overcrowded)} guests")

        ejected = 0
        if self.settings.pay_per_ride and not self.cash_machine_available:
            broke = state.wallets[0]
            # Broke guests take a while to give up and go home
            ejected = state.wallets.remove(0, round(self.options.sim_guest_broke_leave_probability * broke / 100))
            self.note(f"Turnover: ejected {ejected} broke guests")
        elif not self.settings.pay_per_ride and strategy == SpendingStrategy.PROFIT:
            turnover = self.options.sim_guest_turnover_maximum
            self.note("Turnover strategy: maximum (profit strategy)")

        state.guests_in_park = max(0, guests - ejected)
        rate = min(1.0, (turnover + overcrowding_turnover) / 100)
        leaving = round(state.guests_in_park * rate)
        state.guests_in_park -= leaving
        state.wallets.apply_turnover(rate, state.guests_in_park, self.rng)
        self.note(f"Turnover: removed {leaving} guests, {state.guests_in_park} remain")
        return ejected + leaving

    def check_density_limit(self) -> None:
        """Record the first month with no land left to build on or buy."""
        state = self.state
        if state.month_exceeded_density_limit is None and state.buyable_land <= 0 and state.available_land <= 0:
            state.month_exceeded_density_limit = state.months_completed
            self.note("Exceeded maximum density limit.")
            logger.debug(f"Density limit exceeded in month {state.months_completed}")

    def update_objective_metric(self) -> None:
        state = self.state
        if self.settings.objective_type == ObjectiveType.REPAY_LOAN_AND_PARK_VALUE:
            state.objective_metric = state.cash_available - state.unrepaid_loan
        else:
            state.objective_metric = state.guests_in_park

    def is_viable(self) -> bool:
        """Whether the run can continue after the month just simulated.

        Cash on hand may go negative while the remaining loan covers it.
        In the final month the park must also have enough guests.
        """
        state = self.state
        month_log = state.activity_log[-1] if state.activity_log else self._month_log
        loan_available = (self.settings.max_loan + self.settings.initial_debt) - state.unrepaid_loan
        real_cash = state.cash_available + loan_available
        if real_cash < 0:
            month_log.append(f"Nonviable: available cash = {format_currency(state.cash_available)}")
            logger.debug(f"Month {state.months_completed}: nonviable, available cash = {state.cash_available:.0f}")
            return False
        if state.cash_available < 0:
            month_log.append(
                f"Dipping into loan to stay viable: cash on hand = {format_currency(state.cash_available)}, "
                f"loan available = {format_currency(loan_available)}"
            )
        if state.lowest_cash_available is None or real_cash < state.lowest_cash_available:
            state.lowest_cash_available = real_cash

        min_guests = MIN_FINAL_GUESTS * self.guest_difficulty
        if state.months_left == 0 and state.guests_in_park < min_guests:
            month_log.append("Nonviable: too few guests")
            logger.debug(f"Month {state.months_completed}: nonviable, {state.guests_in_park} guests vs min {min_guests}")
            return False
        return True

    def update_month(self, strategy: SpendingStrategy) -> MonthSummary:
        """Simulate one month under a strategy.

        Raises:
            ValueError: If the scenario has already finished
        """
        state = self.state
        if state.is_finished:
            raise ValueError("Cannot simulate past the end of the scenario")

        state.entry_tickets_this_month = 0.0
        state.cash_delta_without_ride_tickets = 0.0
        month = state.months_completed
        self.note(f"Begin month: {format_month(month)}, strategy = {strategy.value}")
        logger.debug(f"Begin month {month} ({strategy.value})")

        self.check_density_limit()
        report: AllocationReport = SpendingAllocator(self).allocate(strategy)
        self.apply_passive_expenditure()
        self.apply_income(strategy)
        self.apply_turnover(strategy)

        state.months_left -= 1
        state.months_completed += 1
        # Loan headroom is ignored: this is about how little cash the player feels they have
        state.total_end_month_cash += state.cash_available
        state.average_end_month_cash = state.total_end_month_cash / state.months_completed
        if state.months_left == 0:
            self.note(f"Final cash minus loan = {format_currency(state.cash_available - state.unrepaid_loan)}")
        self.update_objective_metric()
        self.check_density_limit()

        state.activity_log.append(self._month_log)
        self._month_log = []
        return MonthSummary(
            month=month,
            strategy=strategy,
            purchases=report.purchases,
            guests_generated=report.guests_generated,
            ceiling_hit=report.ceiling_hit,
            end_cash=state.cash_available,
            guests=state.guests_in_park,
        )
