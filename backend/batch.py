"""
Bonus Tax Planner - Batch Runner
================================
Run any scenario or plan calculation over a list of named employees.

Rows are independent: no state is shared between employees and each output
row echoes its input fields. Rows may be given as models or plain dicts;
dicts are validated on the way in, which is where negative or malformed
values are rejected.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Type, Union

import pandas as pd
from pydantic import BaseModel

from models import (
    DeductionProfile,
    EmployeeInput,
    ScenarioBatchResult,
    BatchResult,
    SplitEmployeeInput,
    SplitBatchResult,
    ReverseEmployeeInput,
    ReverseBatchResult,
    YearEndEmployeeInput,
    YearEndBatchResult,
)
from tax_simulator import compute_separate, compute_combined
from plan_optimizer import (
    compute_optimal_plan,
    compute_optimal_split,
    compute_reverse_plan,
    compute_year_end_plan,
)

logger = logging.getLogger(__name__)


def _coerce(rows: Iterable[Union[BaseModel, Dict[str, Any]]], model: Type[BaseModel]) -> List[BaseModel]:
    return [row if isinstance(row, model) else model.model_validate(row) for row in rows]


# =============================================================================
# SCENARIO BATCHES
# =============================================================================

def batch_separate(rows: Iterable[Union[EmployeeInput, Dict[str, Any]]]) -> List[ScenarioBatchResult]:
    results = []
    for emp in _coerce(rows, EmployeeInput):
        scenario = compute_separate(emp.salary, emp.bonus, emp.insurance, emp.deduction)
        results.append(ScenarioBatchResult(
            **emp.model_dump(),
            total_tax=scenario.total_tax,
            after_tax_income=scenario.after_tax_income,
        ))
    return results


def batch_combined(rows: Iterable[Union[EmployeeInput, Dict[str, Any]]]) -> List[ScenarioBatchResult]:
    results = []
    for emp in _coerce(rows, EmployeeInput):
        scenario = compute_combined(emp.salary, emp.bonus, emp.insurance, emp.deduction)
        results.append(ScenarioBatchResult(
            **emp.model_dump(),
            total_tax=scenario.total_tax,
            after_tax_income=scenario.after_tax_income,
        ))
    return results


# =============================================================================
# PLAN BATCHES
# =============================================================================

def batch_optimal_plan(rows: Iterable[Union[EmployeeInput, Dict[str, Any]]]) -> List[BatchResult]:
    """Forward comparison for every employee, with a blind-zone warning."""
    results = []
    for emp in _coerce(rows, EmployeeInput):
        plan = compute_optimal_plan(emp.salary, emp.bonus, emp.insurance, emp.deduction)
        results.append(BatchResult(
            **emp.model_dump(),
            optimal_type=plan.optimal.scenario_type,
            optimal_name=plan.optimal.name,
            total_tax=plan.optimal.total_tax,
            after_tax_income=plan.optimal.after_tax_income,
            tax_saving=plan.tax_saving,
            cliff_warning=plan.cliff.suggestion if plan.cliff.in_cliff else None,
        ))
    return results


def batch_optimal_split(rows: Iterable[Union[SplitEmployeeInput, Dict[str, Any]]]) -> List[SplitBatchResult]:
    results = []
    for emp in _coerce(rows, SplitEmployeeInput):
        split = compute_optimal_split(emp.total_income, emp.insurance, emp.deduction)
        results.append(SplitBatchResult(
            **emp.model_dump(),
            optimal_salary=split.optimal_salary,
            optimal_bonus=split.optimal_bonus,
            total_tax=split.total_tax,
            after_tax_income=split.after_tax_income,
            plan_name=split.plan_name,
            cliff_avoided=split.cliff_avoided,
        ))
    return results


def batch_reverse_plan(rows: Iterable[Union[ReverseEmployeeInput, Dict[str, Any]]]) -> List[ReverseBatchResult]:
    results = []
    for emp in _coerce(rows, ReverseEmployeeInput):
        plan = compute_reverse_plan(emp.total_income, emp.insurance, emp.deductions)
        results.append(ReverseBatchResult(
            **emp.model_dump(),
            optimal_salary=plan.optimal_salary,
            optimal_bonus=plan.optimal_bonus,
            special_deduction=plan.special_deduction,
            total_tax=plan.total_tax,
            after_tax_income=plan.after_tax_income,
            method_name=plan.method_name,
            cliff_adjusted=plan.cliff_adjusted,
            savings_vs_worst=plan.savings_vs_worst,
        ))
    return results


def batch_year_end_plan(rows: Iterable[Union[YearEndEmployeeInput, Dict[str, Any]]]) -> List[YearEndBatchResult]:
    results = []
    for emp in _coerce(rows, YearEndEmployeeInput):
        plan = compute_year_end_plan(
            emp.prior_salary, emp.december_salary, emp.year_end_bonus,
            emp.insurance, emp.deduction,
        )
        results.append(YearEndBatchResult(
            **emp.model_dump(),
            optimal_type=plan.optimal.plan_type,
            optimal_name=plan.optimal.name,
            separate_bonus=plan.optimal.separate_bonus,
            merged_bonus=plan.optimal.merged_bonus,
            total_tax=plan.optimal.total_tax,
            after_tax_income=plan.optimal.after_tax_income,
            tax_saving=plan.tax_saving,
        ))
    return results


# =============================================================================
# DISPATCH
# =============================================================================

BATCH_RUNNERS: Dict[str, Callable[[Iterable[Any]], List[BaseModel]]] = {
    "separate": batch_separate,
    "combined": batch_combined,
    "optimal": batch_optimal_plan,
    "split": batch_optimal_split,
    "reverse": batch_reverse_plan,
    "year_end": batch_year_end_plan,
}


def run_batch(kind: str, rows: Iterable[Union[BaseModel, Dict[str, Any]]]) -> List[BaseModel]:
    """Run the batch calculation named by `kind`."""
    if kind not in BATCH_RUNNERS:
        raise ValueError(f"Unknown batch kind '{kind}'. Expected one of: {', '.join(BATCH_RUNNERS)}")

    rows = list(rows)
    logger.info(f"Running '{kind}' batch for {len(rows)} employees")
    return BATCH_RUNNERS[kind](rows)


def _nest_deductions(record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Move flat deduction columns into the nested `deductions` field.

    Blank cells are dropped so the profile defaults apply.
    """
    deduction_fields = set(DeductionProfile.model_fields)
    nested = {
        key: value for key, value in record.items()
        if key in deduction_fields and not pd.isna(value)
    }
    flat = {key: value for key, value in record.items() if key not in deduction_fields}
    flat.setdefault("deductions", nested)
    return flat


def run_batch_frame(frame: pd.DataFrame, kind: str) -> pd.DataFrame:
    """
    Tabular entry point for spreadsheet collaborators.

    Empty numeric cells are treated as zero. For the reverse plan, deduction
    categories are read from flat columns named after DeductionProfile fields,
    and an empty option cell (rent, elderly care, ...) keeps its default.
    """
    frame = frame.copy()
    numeric_columns = frame.select_dtypes("number").columns
    frame[numeric_columns] = frame[numeric_columns].fillna(0)

    records = frame.to_dict(orient="records")
    if kind == "reverse":
        records = [_nest_deductions(record) for record in records]

    results = run_batch(kind, records)
    return pd.json_normalize([result.model_dump(mode="json") for result in results])
