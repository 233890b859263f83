"""
Bonus Tax Planner - Tax Simulator
=================================
Core tax calculation engine for salary and year-end bonus.

All bracket lookups and tax math happen here against the hardcoded tables in
tax_constants. Two taxation modes are supported:

1. Separate: the bonus is taxed on its own, with the rate looked up at
   bonus / 12 but applied to the whole bonus.
2. Combined: the bonus is merged into annual composite income.

The lookup-vs-application asymmetry of the separate mode is what creates the
bonus "blind zones" (cliffs).
"""

import logging
import math
from dataclasses import asdict
from typing import List, Sequence, Tuple

from tax_constants import (
    ANNUAL_TAX_BRACKETS,
    MONTHLY_TAX_BRACKETS,
    MONTHS_PER_YEAR,
    BASIC_ALLOWANCE,
    CHART_PERCENT_STEP,
    CLIFF_INTERVALS,
    evaluate_tax,
)
from models import (
    ScenarioType,
    SCENARIO_NAMES,
    StepKind,
    TaxEvaluation,
    BonusTaxEvaluation,
    CliffInterval,
    CliffCheck,
    CliffAdjustment,
    CalculationStep,
    CalculationTrace,
    ScenarioResult,
    ChartPoint,
)

logger = logging.getLogger(__name__)


CLIFF_ZONES: Tuple[CliffInterval, ...] = tuple(
    CliffInterval(**asdict(bounds)) for bounds in CLIFF_INTERVALS
)


# =============================================================================
# TAX EVALUATOR
# =============================================================================

def evaluate_annual_tax(taxable_income: float) -> TaxEvaluation:
    """Tax on annual composite taxable income. Non-positive income owes nothing."""
    if taxable_income <= 0:
        return TaxEvaluation(tax=0.0, rate=0.0, quick_deduction=0.0)

    tax, rate, quick_deduction = evaluate_tax(taxable_income, ANNUAL_TAX_BRACKETS)
    return TaxEvaluation(tax=tax, rate=rate, quick_deduction=quick_deduction)


def evaluate_bonus_tax(bonus: float) -> BonusTaxEvaluation:
    """
    Tax on a separately-taxed year-end bonus.

    The bracket is chosen from the monthly table using bonus / 12, then the
    rate and quick deduction are applied to the full bonus.
    """
    if bonus <= 0:
        return BonusTaxEvaluation(tax=0.0, rate=0.0, quick_deduction=0.0, monthly_equivalent=0.0)

    monthly_equivalent = bonus / MONTHS_PER_YEAR
    _, rate, quick_deduction = evaluate_tax(monthly_equivalent, MONTHLY_TAX_BRACKETS)
    tax = bonus * rate - quick_deduction

    return BonusTaxEvaluation(
        tax=tax,
        rate=rate,
        quick_deduction=quick_deduction,
        monthly_equivalent=monthly_equivalent,
    )


# =============================================================================
# CLIFF DETECTOR
# =============================================================================

def detect_cliff(bonus: float) -> CliffCheck:
    """Report whether a bonus sits strictly inside a blind zone."""
    for zone in CLIFF_ZONES:
        if zone.lower_bound < bonus < zone.upper_bound:
            suggestion = (
                f"Reduce the bonus to {zone.lower_bound:,.0f} "
                f"or raise it to at least {math.ceil(zone.upper_bound):,.0f}"
            )
            return CliffCheck(in_cliff=True, interval=zone, suggestion=suggestion)

    return CliffCheck(in_cliff=False)


def avoid_cliff(bonus: float) -> CliffAdjustment:
    """Move a bonus that falls in a blind zone down to the zone's lower bound."""
    check = detect_cliff(bonus)
    if not check.in_cliff:
        return CliffAdjustment(original_bonus=bonus, adjusted_bonus=bonus, is_adjusted=False)

    zone = check.interval
    logger.debug(f"Bonus {bonus:,.2f} nudged out of blind zone ({zone.lower_bound}, {zone.upper_bound})")
    message = (
        f"Bonus {bonus:,.2f} falls in a blind zone; lowering it to "
        f"{zone.lower_bound:,.2f} avoids losing up to {zone.after_tax_loss:,.2f}"
    )
    return CliffAdjustment(
        original_bonus=bonus,
        adjusted_bonus=zone.lower_bound,
        is_adjusted=True,
        message=message,
    )


# =============================================================================
# CALCULATION TRACE BUILDERS
# =============================================================================

def _percent(rate: float) -> str:
    return f"{rate * 100:.0f}%"


def build_composite_steps(
    income_parts: Sequence[Tuple[str, float]],
    insurance: float,
    deduction: float,
    taxable_income: float,
    evaluation: TaxEvaluation,
    prefix: str = "Salary",
) -> List[CalculationStep]:
    """Unwind composite-income arithmetic into display steps."""
    steps = [
        CalculationStep(label=label, formula="", value=amount, kind=StepKind.INPUT)
        for label, amount in income_parts
    ]

    gross = sum(amount for _, amount in income_parts)
    if len(income_parts) > 1:
        steps.append(CalculationStep(
            label="Composite income",
            formula=" + ".join(f"{amount:,.2f}" for _, amount in income_parts),
            value=gross,
            kind=StepKind.INPUT,
        ))

    steps.extend([
        CalculationStep(label="Basic allowance", formula="5,000 x 12",
                        value=-BASIC_ALLOWANCE, kind=StepKind.REDUCTION),
        CalculationStep(label="Social insurance and housing fund", formula="",
                        value=-insurance, kind=StepKind.REDUCTION),
        CalculationStep(label="Special additional deductions", formula="",
                        value=-deduction, kind=StepKind.REDUCTION),
        CalculationStep(
            label=f"{prefix} taxable income",
            formula=f"max(0, {gross:,.2f} - {BASIC_ALLOWANCE:,.0f} - {insurance:,.2f} - {deduction:,.2f})",
            value=taxable_income,
            kind=StepKind.TOTAL,
        ),
        CalculationStep(label=f"{prefix} tax rate", formula=_percent(evaluation.rate),
                        value=evaluation.rate, kind=StepKind.RATE),
        CalculationStep(label=f"{prefix} quick deduction", formula="",
                        value=-evaluation.quick_deduction, kind=StepKind.REDUCTION),
        CalculationStep(
            label=f"{prefix} tax",
            formula=f"{taxable_income:,.2f} x {_percent(evaluation.rate)} - {evaluation.quick_deduction:,.0f}",
            value=evaluation.tax,
            kind=StepKind.TAX,
        ),
    ])
    return steps


def build_bonus_steps(
    bonus: float,
    evaluation: BonusTaxEvaluation,
    label: str = "Year-end bonus",
) -> List[CalculationStep]:
    return [
        CalculationStep(label=label, formula="", value=bonus, kind=StepKind.INPUT),
        CalculationStep(label="Monthly equivalent", formula=f"{bonus:,.2f} / 12",
                        value=evaluation.monthly_equivalent, kind=StepKind.INPUT),
        CalculationStep(label="Bonus tax rate", formula=_percent(evaluation.rate),
                        value=evaluation.rate, kind=StepKind.RATE),
        CalculationStep(label="Bonus quick deduction", formula="",
                        value=-evaluation.quick_deduction, kind=StepKind.REDUCTION),
        CalculationStep(
            label="Bonus tax",
            formula=f"{bonus:,.2f} x {_percent(evaluation.rate)} - {evaluation.quick_deduction:,.0f}",
            value=evaluation.tax,
            kind=StepKind.TAX,
        ),
    ]


def build_total_steps(
    gross: float,
    insurance: float,
    deduction: float,
    salary_tax: float,
    bonus_tax: float,
    include_bonus: bool = True,
) -> List[CalculationStep]:
    total_tax = salary_tax + bonus_tax
    steps = [CalculationStep(label="Salary tax", value=salary_tax, kind=StepKind.TAX)]
    if include_bonus:
        steps.append(CalculationStep(label="Bonus tax", value=bonus_tax, kind=StepKind.TAX))
        steps.append(CalculationStep(
            label="Total tax",
            formula=f"{salary_tax:,.2f} + {bonus_tax:,.2f}",
            value=total_tax,
            kind=StepKind.TOTAL,
        ))
    else:
        steps.append(CalculationStep(label="Total tax", value=total_tax, kind=StepKind.TOTAL))
    steps.append(CalculationStep(
        label="After-tax income",
        formula=f"{gross:,.2f} - {insurance:,.2f} - {deduction:,.2f} - {total_tax:,.2f}",
        value=gross - insurance - deduction - total_tax,
        kind=StepKind.TOTAL,
    ))
    return steps


# =============================================================================
# SCENARIO CALCULATORS
# =============================================================================

def compute_separate(
    salary: float,
    bonus: float,
    insurance: float,
    deduction: float,
) -> ScenarioResult:
    """Scenario 1: the year-end bonus is taxed separately from salary."""
    salary_taxable = max(0, salary - BASIC_ALLOWANCE - insurance - deduction)
    salary_eval = evaluate_annual_tax(salary_taxable)
    bonus_eval = evaluate_bonus_tax(bonus)

    total_tax = salary_eval.tax + bonus_eval.tax
    after_tax = salary + bonus - insurance - deduction - total_tax

    calculation = CalculationTrace(
        salary_steps=build_composite_steps(
            [("Salary", salary)], insurance, deduction, salary_taxable, salary_eval
        ),
        bonus_steps=build_bonus_steps(bonus, bonus_eval),
        total_steps=build_total_steps(
            salary + bonus, insurance, deduction, salary_eval.tax, bonus_eval.tax
        ),
    )

    return ScenarioResult(
        scenario_type=ScenarioType.SEPARATE,
        name=SCENARIO_NAMES[ScenarioType.SEPARATE],
        salary=salary,
        bonus=bonus,
        insurance=insurance,
        deduction=deduction,
        taxable_income=salary_taxable,
        salary_taxable_income=salary_taxable,
        salary_tax=salary_eval.tax,
        salary_rate=salary_eval.rate,
        salary_quick_deduction=salary_eval.quick_deduction,
        bonus_tax=bonus_eval.tax,
        bonus_rate=bonus_eval.rate,
        bonus_quick_deduction=bonus_eval.quick_deduction,
        bonus_monthly_amount=bonus_eval.monthly_equivalent,
        total_tax=total_tax,
        after_tax_income=after_tax,
        calculation=calculation,
    )


def compute_combined(
    salary: float,
    bonus: float,
    insurance: float,
    deduction: float,
) -> ScenarioResult:
    """Scenario 2: the year-end bonus is merged into composite income."""
    gross = salary + bonus
    taxable = max(0, gross - BASIC_ALLOWANCE - insurance - deduction)
    evaluation = evaluate_annual_tax(taxable)

    calculation = CalculationTrace(
        salary_steps=build_composite_steps(
            [("Salary", salary), ("Year-end bonus", bonus)],
            insurance, deduction, taxable, evaluation, prefix="Composite",
        ),
        bonus_steps=(),
        total_steps=build_total_steps(
            gross, insurance, deduction, evaluation.tax, 0.0, include_bonus=False
        ),
    )

    return ScenarioResult(
        scenario_type=ScenarioType.COMBINED,
        name=SCENARIO_NAMES[ScenarioType.COMBINED],
        salary=salary,
        bonus=bonus,
        insurance=insurance,
        deduction=deduction,
        taxable_income=taxable,
        salary_taxable_income=taxable,
        salary_tax=evaluation.tax,
        salary_rate=evaluation.rate,
        salary_quick_deduction=evaluation.quick_deduction,
        total_tax=evaluation.tax,
        after_tax_income=gross - insurance - deduction - evaluation.tax,
        calculation=calculation,
    )


# =============================================================================
# CHART DATA
# =============================================================================

def split_tax(
    salary: float,
    separate_bonus: float,
    insurance: float,
    deduction: float,
) -> Tuple[TaxEvaluation, BonusTaxEvaluation, float]:
    """Tax when `separate_bonus` is taxed separately and `salary` is composite."""
    salary_taxable = max(0, salary - BASIC_ALLOWANCE - insurance - deduction)
    salary_eval = evaluate_annual_tax(salary_taxable)
    bonus_eval = evaluate_bonus_tax(separate_bonus)
    return salary_eval, bonus_eval, salary_taxable


def generate_chart_data(
    salary: float,
    bonus: float,
    insurance: float,
    deduction: float,
) -> List[ChartPoint]:
    """
    Sample total tax as the separately-taxed share of the bonus moves from
    0% to 100% in 5% steps. Plotting data only; cliffs make it non-convex.
    """
    total_income = salary + bonus
    points = []

    for percent in range(0, 101, CHART_PERCENT_STEP):
        separate_bonus = bonus * percent / 100
        combined_salary = total_income - separate_bonus

        salary_eval, bonus_eval, _ = split_tax(combined_salary, separate_bonus, insurance, deduction)
        total_tax = salary_eval.tax + bonus_eval.tax

        points.append(ChartPoint(
            percent=percent,
            separate_percent=percent,
            combined_percent=100 - percent,
            separate_bonus=separate_bonus,
            combined_salary=combined_salary,
            total_tax=total_tax,
            after_tax_income=total_income - insurance - deduction - total_tax,
        ))

    return points
