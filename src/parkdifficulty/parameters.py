"""Simulation and calibration constants for the park difficulty engine.

This module is the SINGLE SOURCE OF TRUTH for the fixed numbers the
algorithms are built around. Values players can tune per run (costs per
soft guest cap unit, income rates, turnover) live in SimOptions instead.

Parameter Categories:
- Calendar: How a scenario year maps onto simulated months
- Guest Generation: Park rating heuristic and entity ceilings
- Spending: Allocation loop limits and loan handling
- Calibration: Step sizes and eligibility thresholds

Usage:
    from parkdifficulty.parameters import MONTHS_PER_YEAR, ALLOCATOR_ITERATION_CEILING
"""

# =============================================================================
# CALENDAR
# =============================================================================

MONTHS_PER_YEAR = 8
"""Park months per scenario year (March to October)."""

MONTH_WEEKS = 4
"""Weeks per simulated month.

Advertising is priced per week and loan interest accrues weekly, so both are
multiplied by this.
"""

MONTH_NAMES = ("March", "April", "May", "June", "July", "August", "September", "October")


# =============================================================================
# GUEST GENERATION
# =============================================================================

PARK_RATING_LOW = 700
"""Assumed park rating while the park holds fewer than PARK_RATING_GUEST_THRESHOLD guests."""

PARK_RATING_HIGH = 850
"""Assumed park rating once the park is established."""

PARK_RATING_GUEST_THRESHOLD = 200

CROWDED_PARK_GUESTS = 7000
"""Above this many guests every generation probability is quartered."""

DIFFICULT_GENERATION_OVERSHOOT = 150
"""Under difficult guest generation, no guests arrive this far past the cap."""

MAX_GUESTS_CONSIDERED = 50000
"""Entity ceiling.

The real limit is somewhere around 65535 entities, but the number of free
slots is not simulated. Beyond this guest count natural generation stops.
"""

GENERATION_TICKS_PER_MONTH = 16384
GENERATION_PROBABILITY_SCALE = 65535

MIN_FINAL_GUESTS = 1200
"""Guests required in the final month, multiplied by guest difficulty.

At high financial pressure the simulation can grind itself into the ground
and never get going, which is not a fun scenario to hand to a player.
"""

DIFFICULT_GENERATION_THRESHOLD = 1000
"""Soft guest cap above which difficult guest generation uses the harder rates."""


# =============================================================================
# SPENDING
# =============================================================================

ALLOCATOR_ITERATION_CEILING = 20
"""Maximum purchases considered per month before the allocator gives up."""

MAX_LOAN_REPAYMENT_PROPORTION = 0.6
"""Fraction of cash on hand that may go into a single loan repayment.

Without this the simulation likes to repay everything instantly and is left
with no cash to build anything with.
"""

LOAN_INCREMENT = 10000
"""Loans are repaid and taken out in whole multiples of this."""

RESEARCH_COST_PER_MONTH = 4000

OVERCROWDING_TURNOVER_DIVISOR = 10
"""Guests removed per month by overcrowding: cap / divisor per times exceeded."""

OVERCROWDING_MIN_CAP = 100

UMBRELLA_INCOME_CAP = 200
"""Most a rained-on guest is assumed to pay for an umbrella."""

ZERO_COST_SUBSTITUTE = 0.000001
"""Stand-in cost for free options when ranking gain per cost."""

SOFT_GUEST_CAP_SEARCH_STEP = 128
"""Initial galloping step when searching for the largest affordable cap increase."""


# =============================================================================
# CALIBRATION
# =============================================================================

COARSE_START_STEP = 128
"""Initial adjustment size (in pressure steps) for the coarse phase."""

COARSE_STEP_FLOOR = 64
"""The coarse phase completes once it cannot adjust at this size."""

FINE_START_STEP = 16
"""Adjustment size the fine phase starts from, and returns to after each success."""

FINE_STEP_FLOOR = 1

EASING_STEP = -10
"""Steps applied when no viable configuration has been found yet."""

LAND_COST_MIN_TILES_BOUGHT = 100
"""Tiles the best run must buy before adjusting land cost is worthwhile."""

SWITCH_SEARCH_START_FRACTION = 0.5
"""Where in the scenario the strategy switch search starts looking."""

INITIAL_CASH_HEADROOM = 250000
"""Initial cash may be raised at most this far above the configured starting cash."""

INITIAL_CASH_MINIMUM = 50000


def scenario_months(scenario_length: int) -> int:
    """Number of simulated months in a scenario of the given length in years.

    Example:
        >>> scenario_months(3)
        24
    """
    return scenario_length * MONTHS_PER_YEAR


def weekly_loan_interest(amount: float, interest_rate: float) -> int:
    """Interest charged for one week on a loan amount.

    Matches the game's fixed-point calculation: (amount * 5 * rate) >> 14.

    Example:
        >>> weekly_loan_interest(100000, 5)
        152
    """
    return max(0, int(amount * 5 * interest_rate)) >> 14


def format_month(months_completed: int) -> str:
    """Human-readable name of a simulated month.

    Example:
        >>> format_month(9)
        'April, Year 2'
    """
    name = MONTH_NAMES[months_completed % MONTHS_PER_YEAR]
    return f"{name}, Year {months_completed // MONTHS_PER_YEAR + 1}"


def format_currency(amount: float) -> str:
    """Format a cash amount for activity logs.

    Example:
        >>> format_currency(-1234.5)
        '-£1,234'
    """
    sign = "-" if amount < 0 else ""
    return f"{sign}£{abs(amount):,.0f}"
