"""
Bonus Tax Planner - Tax Constants
=================================
Hardcoded individual income tax brackets, allowances and deduction amounts.

CRITICAL: These are the ONLY source of truth for tax calculations.
Every table here is immutable and is passed explicitly into the evaluator,
so nothing downstream looks rates up from ambient state.
"""

import math
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Tuple


# =============================================================================
# ENUMS
# =============================================================================

class ContinuingEducation(str, Enum):
    NONE = "none"
    DEGREE = "degree"
    CERTIFICATE = "certificate"


class HousingRent(str, Enum):
    NONE = "none"
    SMALL = "small"      # smaller cities
    MEDIUM = "medium"    # mid-size cities
    LARGE = "large"      # provincial capitals and municipalities


class ElderlyCare(str, Enum):
    NONE = "none"
    ONLY_CHILD = "only_child"
    SHARED = "shared"


# =============================================================================
# BRACKET TABLES
# Each bracket is (upper_limit, rate, quick_deduction); the last bracket is
# unbounded. tax = amount * rate - quick_deduction
# =============================================================================

@dataclass(frozen=True)
class Bracket:
    upper_limit: float
    rate: float
    quick_deduction: float


BracketTable = Tuple[Bracket, ...]


# Annual composite income (salary after allowance and deductions)
ANNUAL_TAX_BRACKETS: BracketTable = (
    Bracket(36000, 0.03, 0),
    Bracket(144000, 0.10, 2520),
    Bracket(300000, 0.20, 16920),
    Bracket(420000, 0.25, 31920),
    Bracket(660000, 0.30, 52920),
    Bracket(960000, 0.35, 85920),
    Bracket(math.inf, 0.45, 181920),
)

# Monthly table, used for the separately-taxed year-end bonus (bonus / 12)
MONTHLY_TAX_BRACKETS: BracketTable = (
    Bracket(3000, 0.03, 0),
    Bracket(12000, 0.10, 210),
    Bracket(25000, 0.20, 1410),
    Bracket(35000, 0.25, 2660),
    Bracket(55000, 0.30, 4410),
    Bracket(80000, 0.35, 7160),
    Bracket(math.inf, 0.45, 15160),
)

MONTHS_PER_YEAR = 12

# Basic allowance: 5,000 per month
MONTHLY_BASIC_ALLOWANCE = 5000
BASIC_ALLOWANCE = MONTHLY_BASIC_ALLOWANCE * MONTHS_PER_YEAR


# =============================================================================
# SPECIAL ADDITIONAL DEDUCTIONS (annual amounts)
# =============================================================================

DEDUCTION_AMOUNTS: Mapping[str, float] = MappingProxyType({
    "children_education_per_child": 2000 * 12,     # 24,000 per child
    "infant_care_per_child": 2000 * 12,            # 24,000 per child under 3
    "continuing_education_degree": 400 * 12,       # 4,800
    "continuing_education_certificate": 3600,
    "medical_expenses_cap": 80000,
    "housing_loan_interest": 1000 * 12,            # 12,000
    "personal_pension_cap": 12000,
})

HOUSING_RENT_AMOUNTS: Mapping[HousingRent, float] = MappingProxyType({
    HousingRent.NONE: 0,
    HousingRent.SMALL: 800 * 12,     # 9,600
    HousingRent.MEDIUM: 1100 * 12,   # 13,200
    HousingRent.LARGE: 1500 * 12,    # 18,000
})

ELDERLY_CARE_AMOUNTS: Mapping[ElderlyCare, float] = MappingProxyType({
    ElderlyCare.NONE: 0,
    ElderlyCare.ONLY_CHILD: 3000 * 12,   # 36,000
    ElderlyCare.SHARED: 1500 * 12,       # assumed average share, 18,000
})

CONTINUING_EDUCATION_AMOUNTS: Mapping[ContinuingEducation, float] = MappingProxyType({
    ContinuingEducation.NONE: 0,
    ContinuingEducation.DEGREE: DEDUCTION_AMOUNTS["continuing_education_degree"],
    ContinuingEducation.CERTIFICATE: DEDUCTION_AMOUNTS["continuing_education_certificate"],
})


# =============================================================================
# OPTIMIZER CONSTANTS
# =============================================================================

# Absolute tolerance for treating two tax amounts as equal
EPSILON = 0.01

REVERSE_PLAN_STEP = 10000
OPTIMAL_SPLIT_STEP = 1000
YEAR_END_PERCENT_STEP = 1
CHART_PERCENT_STEP = 5

# Round-number anchors tried by the reverse plan in addition to cliff edges
REVERSE_PLAN_ANCHORS: Tuple[float, ...] = (
    0, 30000, 100000, 200000, 400000, 500000, 800000,
)

# Default bonus used by the quick estimate (top of the 3% bonus bracket)
QUICK_ESTIMATE_BONUS = 36000
QUICK_ESTIMATE_BONUS_SHARE = 0.1

# Largest annual amount accepted at the API and batch boundary. The forward
# split sweep is linear in the total, so this also bounds request time.
MAX_AMOUNT = 10_000_000
MAX_BATCH_ROWS = 1000


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

@dataclass(frozen=True)
class CliffBounds:
    lower_bound: float
    upper_bound: float
    after_tax_loss: float


def find_bracket(amount: float, table: BracketTable) -> Bracket:
    """Return the first bracket whose upper limit covers the amount."""
    for bracket in table:
        if amount <= bracket.upper_limit:
            return bracket
    return table[-1]


def evaluate_tax(amount: float, table: BracketTable) -> Tuple[float, float, float]:
    """
    Apply the quick-deduction formula for a single amount.

    Callers are responsible for never passing a negative amount; no floor is
    applied here.

    Returns:
        (tax, rate, quick_deduction)
    """
    bracket = find_bracket(amount, table)
    tax = amount * bracket.rate - bracket.quick_deduction
    return tax, bracket.rate, bracket.quick_deduction


def derive_cliff_intervals(
    table: BracketTable = MONTHLY_TAX_BRACKETS,
    months: int = MONTHS_PER_YEAR,
) -> Tuple[CliffBounds, ...]:
    """
    Derive the bonus "blind zones" from the monthly bracket table.

    At each finite monthly limit the whole bonus jumps to the next rate, so
    after-tax bonus drops. The zone ends at the bonus whose after-tax amount,
    under the higher bracket, is back to the after-tax amount at the boundary.
    """
    intervals = []
    for lower, upper in zip(table, table[1:]):
        boundary = lower.upper_limit * months
        kept_at_boundary = boundary * (1 - lower.rate) + lower.quick_deduction
        break_even = (kept_at_boundary - upper.quick_deduction) / (1 - upper.rate)
        jump = (boundary * upper.rate - upper.quick_deduction) - (
            boundary * lower.rate - lower.quick_deduction
        )
        intervals.append(CliffBounds(
            lower_bound=boundary,
            upper_bound=round(break_even, 2),
            after_tax_loss=round(jump, 2),
        ))
    return tuple(intervals)


# Derived once at import; treated as a constant of the system
CLIFF_INTERVALS: Tuple[CliffBounds, ...] = derive_cliff_intervals()


def reverse_plan_breakpoints() -> Tuple[float, ...]:
    """Anchors plus both edges of every cliff interval, ascending."""
    points = set(REVERSE_PLAN_ANCHORS)
    for interval in CLIFF_INTERVALS:
        points.add(interval.lower_bound)
        points.add(interval.upper_bound)
    return tuple(sorted(points))


REVERSE_PLAN_BREAKPOINTS: Tuple[float, ...] = reverse_plan_breakpoints()


def get_tax_bracket_info(table: BracketTable, title: str) -> str:
    """Return a formatted string of a bracket table."""
    lines = [f"{title}:"]
    prev_limit = 0

    for bracket in table:
        rate = f"{bracket.rate * 100:.0f}%"
        if math.isinf(bracket.upper_limit):
            lines.append(f"  Over {prev_limit:,.0f}: {rate} (quick deduction {bracket.quick_deduction:,.0f})")
        else:
            lines.append(
                f"  {prev_limit:,.0f} to {bracket.upper_limit:,.0f}: {rate} "
                f"(quick deduction {bracket.quick_deduction:,.0f})"
            )
            prev_limit = bracket.upper_limit

    return "\n".join(lines)
