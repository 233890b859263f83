"""
Bonus Tax Planner - Plan Optimizer
==================================
Search procedures that turn scenario evaluations into a recommended
salary / bonus allocation.

Every optimizer shares one policy: the plan with the lower total tax wins, and
when two plans are within EPSILON of each other the structurally simpler one
wins (fully separate < fully combined < partial split).

The searches are plain grid sweeps with fixed step sizes; the step sizes set
the granularity of the optima that can be found.
"""

import logging
import math
from typing import List, Optional, Tuple, Union

from tax_constants import (
    BASIC_ALLOWANCE,
    EPSILON,
    REVERSE_PLAN_STEP,
    REVERSE_PLAN_BREAKPOINTS,
    OPTIMAL_SPLIT_STEP,
    YEAR_END_PERCENT_STEP,
    QUICK_ESTIMATE_BONUS,
    QUICK_ESTIMATE_BONUS_SHARE,
)
from models import (
    ScenarioType,
    SCENARIO_NAMES,
    StepKind,
    CalculationStep,
    CalculationTrace,
    ScenarioResult,
    OptimalPlanResult,
    DeductionProfile,
    ReversePlanResult,
    OptimalSplitResult,
    QuickEstimate,
    YearEndScenario,
    YearEndPlan,
    YearEndResult,
)
from tax_simulator import (
    compute_separate,
    compute_combined,
    detect_cliff,
    avoid_cliff,
    split_tax,
    build_composite_steps,
    build_bonus_steps,
    build_total_steps,
)
from deductions import resolve_deduction

logger = logging.getLogger(__name__)


# =============================================================================
# SHARED TIE-BREAK POLICY
# =============================================================================

COMPLEXITY_RANK = {
    ScenarioType.SEPARATE: 0,
    ScenarioType.COMBINED: 1,
    ScenarioType.PARTIAL: 2,
}


def is_better(
    candidate_tax: float,
    candidate_type: ScenarioType,
    best_tax: float,
    best_type: ScenarioType,
) -> bool:
    """
    Shared comparator for all optimizers.

    A candidate replaces the incumbent when it is cheaper by more than EPSILON,
    or when the two are within EPSILON and the candidate is simpler.
    """
    if candidate_tax < best_tax - EPSILON:
        return True
    return (
        abs(candidate_tax - best_tax) <= EPSILON
        and COMPLEXITY_RANK[candidate_type] < COMPLEXITY_RANK[best_type]
    )


def pick_scenario(separate: ScenarioResult, combined: ScenarioResult) -> ScenarioResult:
    """Choose between the two modes for one split."""
    if is_better(combined.total_tax, combined.scenario_type,
                 separate.total_tax, separate.scenario_type):
        return combined
    return separate


def _plan_summary_steps(
    total_income: float,
    salary: float,
    bonus: float,
    chosen: ScenarioResult,
) -> List[CalculationStep]:
    """Allocation overview followed by the chosen mode's key figures."""
    steps = [
        CalculationStep(label="Total pre-tax income", formula="input", value=total_income),
        CalculationStep(label="Suggested salary", formula="optimized allocation", value=salary),
        CalculationStep(label="Suggested year-end bonus", formula="optimized allocation", value=bonus),
        CalculationStep(label="Social insurance and housing fund", value=-chosen.insurance,
                        kind=StepKind.REDUCTION),
        CalculationStep(label="Special additional deductions", value=-chosen.deduction,
                        kind=StepKind.REDUCTION),
        CalculationStep(label="Basic allowance", formula="5,000 x 12", value=-BASIC_ALLOWANCE,
                        kind=StepKind.REDUCTION),
    ]

    if chosen.scenario_type == ScenarioType.SEPARATE:
        steps.extend([
            CalculationStep(
                label="Salary taxable income",
                formula=f"{chosen.salary:,.2f} - {BASIC_ALLOWANCE:,.0f} - {chosen.insurance:,.2f} - {chosen.deduction:,.2f}",
                value=chosen.salary_taxable_income,
                kind=StepKind.TOTAL,
            ),
            CalculationStep(label="Salary tax rate", formula=f"{chosen.salary_rate * 100:.0f}%",
                            value=chosen.salary_rate, kind=StepKind.RATE),
            CalculationStep(label="Salary tax", value=chosen.salary_tax, kind=StepKind.TAX),
            CalculationStep(label="Bonus tax", value=chosen.bonus_tax, kind=StepKind.TAX),
        ])
    else:
        steps.extend([
            CalculationStep(
                label="Composite taxable income",
                formula=f"{chosen.salary:,.2f} + {chosen.bonus:,.2f} - {BASIC_ALLOWANCE:,.0f} - {chosen.insurance:,.2f} - {chosen.deduction:,.2f}",
                value=chosen.taxable_income,
                kind=StepKind.TOTAL,
            ),
            CalculationStep(label="Composite tax rate", formula=f"{chosen.salary_rate * 100:.0f}%",
                            value=chosen.salary_rate, kind=StepKind.RATE),
        ])

    steps.append(CalculationStep(label="Total tax", value=chosen.total_tax, kind=StepKind.TOTAL))
    return steps


# =============================================================================
# FORWARD COMPARISON
# =============================================================================

def compute_optimal_plan(
    salary: float,
    bonus: float,
    insurance: float,
    deduction: float,
) -> OptimalPlanResult:
    """Compare both modes for a fixed split. The cliff check is informational."""
    separate = compute_separate(salary, bonus, insurance, deduction)
    combined = compute_combined(salary, bonus, insurance, deduction)

    optimal = pick_scenario(separate, combined)
    sub_optimal = combined if optimal is separate else separate

    return OptimalPlanResult(
        separate=separate,
        combined=combined,
        optimal=optimal,
        sub_optimal=sub_optimal,
        tax_saving=max(0.0, sub_optimal.total_tax - optimal.total_tax),
        cliff=detect_cliff(bonus),
    )


# =============================================================================
# REVERSE PLAN (decompose a total income)
# =============================================================================

def reverse_plan_candidates(total_income: float) -> List[float]:
    """Breakpoints plus a 10,000-step sweep, deduplicated, capped and sorted."""
    candidates = set(REVERSE_PLAN_BREAKPOINTS)
    if total_income >= 0:
        candidates.update(range(0, math.floor(total_income) + 1, REVERSE_PLAN_STEP))
    return sorted(bonus for bonus in candidates if bonus <= total_income)


def compute_reverse_plan(
    total_income: float,
    insurance: float,
    deductions: Union[DeductionProfile, float],
) -> ReversePlanResult:
    """
    Find the salary / bonus split of `total_income` with the lowest tax.

    Only a strictly cheaper candidate replaces the current winner, so the
    smallest bonus reaching the minimum is kept. The winning bonus is then
    moved out of any blind zone; losing candidates are never adjusted.
    """
    special_deduction = resolve_deduction(deductions)

    best: Optional[Tuple[float, float, ScenarioResult, ScenarioResult]] = None
    for bonus in reverse_plan_candidates(total_income):
        salary = total_income - bonus
        separate = compute_separate(salary, bonus, insurance, special_deduction)
        combined = compute_combined(salary, bonus, insurance, special_deduction)
        chosen = pick_scenario(separate, combined)

        if best is None or chosen.total_tax < best[2].total_tax - EPSILON:
            best = (salary, bonus, chosen, separate)

    if best is None:
        raise RuntimeError(f"Reverse plan found no candidate split for total income {total_income}")

    salary, bonus, chosen, separate = best
    adjustment = avoid_cliff(bonus)

    worst_case = compute_combined(total_income, 0, insurance, special_deduction)
    effective_rate = chosen.total_tax / total_income if total_income > 0 else 0.0

    logger.debug(
        f"Reverse plan for {total_income:,.2f}: bonus {adjustment.adjusted_bonus:,.2f} "
        f"via {chosen.scenario_type.value}, tax {chosen.total_tax:,.2f}"
    )

    return ReversePlanResult(
        total_income=total_income,
        optimal_salary=salary,
        optimal_bonus=adjustment.adjusted_bonus,
        insurance=insurance,
        special_deduction=special_deduction,
        basic_deduction=BASIC_ALLOWANCE,
        taxable_income=chosen.taxable_income,
        total_tax=chosen.total_tax,
        after_tax_income=total_income - insurance - special_deduction - chosen.total_tax,
        method=chosen.scenario_type,
        method_name=chosen.name,
        cliff_adjusted=adjustment.is_adjusted,
        cliff_message=adjustment.message,
        salary_tax=separate.salary_tax,
        bonus_tax=separate.bonus_tax,
        effective_tax_rate=effective_rate,
        savings_vs_worst=worst_case.total_tax - chosen.total_tax,
        calculation_steps=_plan_summary_steps(
            total_income, salary, adjustment.adjusted_bonus, chosen
        ),
    )


# =============================================================================
# OPTIMAL SPLIT (forward 1,000-step sweep)
# =============================================================================

def compute_optimal_split(
    total_income: float,
    insurance: float,
    deduction: float,
) -> OptimalSplitResult:
    """
    Sweep the bonus in 1,000 steps, moving each candidate out of any blind
    zone before it is evaluated.
    """
    best: Optional[Tuple[float, float, ScenarioResult, bool]] = None

    if total_income >= 0:
        for bonus in range(0, math.floor(total_income) + 1, OPTIMAL_SPLIT_STEP):
            adjustment = avoid_cliff(bonus)
            adjusted_bonus = adjustment.adjusted_bonus
            adjusted_salary = total_income - adjusted_bonus

            separate = compute_separate(adjusted_salary, adjusted_bonus, insurance, deduction)
            combined = compute_combined(adjusted_salary, adjusted_bonus, insurance, deduction)
            chosen = pick_scenario(separate, combined)

            if best is None or chosen.total_tax < best[2].total_tax - EPSILON:
                best = (adjusted_salary, adjusted_bonus, chosen, adjustment.is_adjusted)

    if best is None:
        return OptimalSplitResult(
            total_income=total_income,
            optimal_salary=total_income,
            optimal_bonus=0.0,
            insurance=insurance,
            deduction=deduction,
            total_tax=0.0,
            after_tax_income=total_income - insurance - deduction,
            plan=ScenarioType.COMBINED,
            plan_name=SCENARIO_NAMES[ScenarioType.COMBINED],
        )

    salary, bonus, chosen, cliff_avoided = best
    return OptimalSplitResult(
        total_income=total_income,
        optimal_salary=salary,
        optimal_bonus=bonus,
        insurance=insurance,
        deduction=deduction,
        total_tax=chosen.total_tax,
        after_tax_income=total_income - insurance - deduction - chosen.total_tax,
        plan=chosen.scenario_type,
        plan_name=chosen.name,
        cliff_avoided=cliff_avoided,
        calculation_steps=_plan_summary_steps(total_income, salary, bonus, chosen),
    )


def quick_estimate(
    total_income: float,
    insurance: float,
    deduction: float,
) -> QuickEstimate:
    """Rough split without a search: bonus at the top of the 3% bonus bracket."""
    bonus = min(QUICK_ESTIMATE_BONUS, total_income * QUICK_ESTIMATE_BONUS_SHARE)
    salary = total_income - bonus

    chosen = pick_scenario(
        compute_separate(salary, bonus, insurance, deduction),
        compute_combined(salary, bonus, insurance, deduction),
    )
    return QuickEstimate(
        salary=salary,
        bonus=bonus,
        total_tax=chosen.total_tax,
        after_tax_income=total_income - insurance - deduction - chosen.total_tax,
        method=chosen.scenario_type,
    )


# =============================================================================
# YEAR-END MIXED PLAN
# =============================================================================

def _percent_type(percent: int) -> ScenarioType:
    if percent == 100:
        return ScenarioType.SEPARATE
    if percent == 0:
        return ScenarioType.COMBINED
    return ScenarioType.PARTIAL


def _describe_year_end(plan_type: ScenarioType, separate_bonus: float, merged_bonus: float) -> str:
    if plan_type == ScenarioType.SEPARATE:
        return "Whole bonus taxed separately; salary taxed as composite income"
    if plan_type == ScenarioType.COMBINED:
        return "Whole bonus merged into composite income and taxed with salary"
    return (
        f"{separate_bonus:,.0f} of the bonus taxed separately, "
        f"{merged_bonus:,.0f} merged into composite income"
    )


def build_year_end_plan(
    annual_salary: float,
    bonus: float,
    separate_bonus: float,
    insurance: float,
    deduction: float,
    plan_type: ScenarioType,
) -> YearEndPlan:
    """Evaluate one allocation of the year-end bonus, with its trace."""
    merged_bonus = bonus - separate_bonus
    combined_income = annual_salary + merged_bonus

    salary_eval, bonus_eval, salary_taxable = split_tax(
        combined_income, separate_bonus, insurance, deduction
    )
    total_tax = salary_eval.tax + bonus_eval.tax

    income_parts = [("Annual salary", annual_salary)]
    if plan_type == ScenarioType.COMBINED:
        income_parts.append(("Year-end bonus", merged_bonus))
    elif plan_type == ScenarioType.PARTIAL:
        income_parts.append(("Bonus merged into salary", merged_bonus))

    has_bonus_part = plan_type != ScenarioType.COMBINED
    calculation = CalculationTrace(
        salary_steps=build_composite_steps(
            income_parts, insurance, deduction, salary_taxable, salary_eval
        ),
        bonus_steps=(
            build_bonus_steps(separate_bonus, bonus_eval, label="Separately-taxed bonus")
            if has_bonus_part else ()
        ),
        total_steps=build_total_steps(
            annual_salary + bonus, insurance, deduction,
            salary_eval.tax, bonus_eval.tax, include_bonus=has_bonus_part,
        ),
    )

    return YearEndPlan(
        plan_type=plan_type,
        name=SCENARIO_NAMES[plan_type],
        description=_describe_year_end(plan_type, separate_bonus, merged_bonus),
        separate_bonus=separate_bonus,
        merged_bonus=merged_bonus,
        combined_income=combined_income,
        separate_bonus_tax=bonus_eval.tax,
        salary_tax=salary_eval.tax,
        total_tax=total_tax,
        after_tax_income=annual_salary + bonus - insurance - deduction - total_tax,
        salary_taxable_income=salary_taxable,
        salary_rate=salary_eval.rate,
        bonus_rate=bonus_eval.rate,
        calculation=calculation,
    )


def find_best_partial_plan(
    annual_salary: float,
    bonus: float,
    insurance: float,
    deduction: float,
) -> Optional[YearEndPlan]:
    """
    Sweep the separately-taxed share of the bonus from 0% to 100% in 1% steps.

    Returns None when there is no bonus to split.
    """
    if bonus <= 0:
        return None

    best_percent = None
    best_tax = math.inf
    best_type = ScenarioType.PARTIAL

    for percent in range(0, 101, YEAR_END_PERCENT_STEP):
        separate_bonus = bonus * percent / 100
        merged_bonus = bonus - separate_bonus
        salary_eval, bonus_eval, _ = split_tax(
            annual_salary + merged_bonus, separate_bonus, insurance, deduction
        )
        total_tax = salary_eval.tax + bonus_eval.tax
        plan_type = _percent_type(percent)

        if best_percent is None or is_better(total_tax, plan_type, best_tax, best_type):
            best_percent, best_tax, best_type = percent, total_tax, plan_type

    return build_year_end_plan(
        annual_salary, bonus, bonus * best_percent / 100, insurance, deduction, best_type
    )


def compute_year_end_plan(
    prior_salary: float,
    december_salary: float,
    bonus: float,
    insurance: float,
    deduction: float,
) -> YearEndResult:
    """
    Recommend how to tax the year-end bonus once January-November salary is
    fixed: all separate, all combined, or the best partial split.
    """
    scenario = YearEndScenario(
        prior_salary=prior_salary,
        december_salary=december_salary,
        year_end_bonus=bonus,
        insurance=insurance,
        deduction=deduction,
    )
    annual_salary = prior_salary + december_salary

    separate = build_year_end_plan(
        annual_salary, bonus, bonus, insurance, deduction, ScenarioType.SEPARATE
    )
    combined = build_year_end_plan(
        annual_salary, bonus, 0.0, insurance, deduction, ScenarioType.COMBINED
    )
    partial = find_best_partial_plan(annual_salary, bonus, insurance, deduction)

    plans = (separate, combined) + ((partial,) if partial is not None else ())

    optimal = plans[0]
    for plan in plans[1:]:
        if is_better(plan.total_tax, plan.plan_type, optimal.total_tax, optimal.plan_type):
            optimal = plan

    worst = plans[0]
    for plan in plans[1:]:
        if plan.total_tax > worst.total_tax:
            worst = plan

    logger.debug(
        f"Year-end plan: {optimal.plan_type.value} with separate bonus "
        f"{optimal.separate_bonus:,.2f}, tax {optimal.total_tax:,.2f}"
    )

    return YearEndResult(
        scenario=scenario,
        plans=plans,
        optimal=optimal,
        tax_saving=worst.total_tax - optimal.total_tax,
        separate=separate,
        combined=combined,
        partial=partial,
    )


# =============================================================================
# PLANNING ADVICE
# =============================================================================

class PlanningAdvisor:
    """
    Turn a reverse plan into ordered, human-readable advice lines.
    """

    def generate_advice(self, result: ReversePlanResult) -> List[str]:
        advice = [
            f"Split the total income of {result.total_income:,.2f} into:",
            f"- Annual salary: {result.optimal_salary:,.2f}",
            f"- Year-end bonus: {result.optimal_bonus:,.2f}",
            f"- Taxation method: {result.method_name}",
        ]

        if result.cliff_adjusted:
            advice.append(f"Warning: {result.cliff_message}")

        if result.savings_vs_worst > 0:
            advice.append(
                f"Saves {result.savings_vs_worst:,.2f} compared with paying everything as salary"
            )

        advice.append(f"Effective tax rate: {result.effective_tax_rate * 100:.2f}%")
        return advice
