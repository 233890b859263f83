"""
Bonus Tax Planner - Data Models
===============================
Pydantic models for the inputs and results of the tax engine.

These models serve as the contract between:
- Spreadsheet / form parsing collaborators
- Tax calculation and plan optimization engine
- Frontend display

Result models are frozen: they are created fresh on every call and never
mutated afterwards.
"""

from enum import Enum
from typing import Annotated, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, computed_field

from tax_constants import (
    ContinuingEducation,
    HousingRent,
    ElderlyCare,
    MAX_AMOUNT,
)

# Annual money amount accepted at the boundary: finite, non-negative, capped
Amount = Annotated[float, Field(ge=0, le=MAX_AMOUNT, allow_inf_nan=False)]


# =============================================================================
# ENUMS
# =============================================================================

class ScenarioType(str, Enum):
    SEPARATE = "separate"
    COMBINED = "combined"
    PARTIAL = "partial"


class StepKind(str, Enum):
    INPUT = "input"
    REDUCTION = "reduction"   # value is negative
    RATE = "rate"
    TAX = "tax"
    TOTAL = "total"


SCENARIO_NAMES = {
    ScenarioType.SEPARATE: "Bonus taxed separately",
    ScenarioType.COMBINED: "Bonus merged into composite income",
    ScenarioType.PARTIAL: "Bonus partially taxed separately",
}


class ResultModel(BaseModel):
    """Base for immutable value objects."""
    model_config = ConfigDict(frozen=True)


# =============================================================================
# TAX EVALUATION
# =============================================================================

class TaxEvaluation(ResultModel):
    tax: float
    rate: float
    quick_deduction: float


class BonusTaxEvaluation(TaxEvaluation):
    monthly_equivalent: float


class CliffInterval(ResultModel):
    """Open interval of bonus amounts where a raise lowers take-home pay."""
    lower_bound: float
    upper_bound: float
    after_tax_loss: float


class CliffCheck(ResultModel):
    in_cliff: bool
    interval: Optional[CliffInterval] = None
    suggestion: Optional[str] = None


class CliffAdjustment(ResultModel):
    original_bonus: float
    adjusted_bonus: float
    is_adjusted: bool
    message: str = ""


# =============================================================================
# CALCULATION TRACE
# =============================================================================

class CalculationStep(ResultModel):
    """One explainability line. Output only; never read by the engine."""
    label: str
    formula: str = ""
    value: float
    kind: StepKind = StepKind.INPUT


class CalculationTrace(ResultModel):
    salary_steps: Tuple[CalculationStep, ...] = ()
    bonus_steps: Tuple[CalculationStep, ...] = ()
    total_steps: Tuple[CalculationStep, ...] = ()


# =============================================================================
# SCENARIO RESULTS
# =============================================================================

class ScenarioResult(ResultModel):
    """Outcome of one taxation mode for one (salary, bonus) split."""

    scenario_type: ScenarioType
    name: str

    # Inputs
    salary: float
    bonus: float
    insurance: float
    deduction: float

    # Salary component (the whole composite base in combined mode)
    taxable_income: float
    salary_taxable_income: float
    salary_tax: float
    salary_rate: float
    salary_quick_deduction: float

    # Separately-taxed bonus component (zero in combined mode)
    bonus_tax: float = 0.0
    bonus_rate: float = 0.0
    bonus_quick_deduction: float = 0.0
    bonus_monthly_amount: float = 0.0

    total_tax: float
    after_tax_income: float

    calculation: CalculationTrace

    @computed_field
    @property
    def gross_income(self) -> float:
        return self.salary + self.bonus


class OptimalPlanResult(ResultModel):
    separate: ScenarioResult
    combined: ScenarioResult
    optimal: ScenarioResult
    sub_optimal: ScenarioResult
    tax_saving: float
    cliff: CliffCheck


class ChartPoint(ResultModel):
    percent: int
    separate_percent: int
    combined_percent: int
    separate_bonus: float
    combined_salary: float
    total_tax: float
    after_tax_income: float


# =============================================================================
# DEDUCTIONS
# =============================================================================

class DeductionProfile(BaseModel):
    """Itemized special additional deductions."""

    children_education: int = Field(default=0, ge=0, description="Children in education")
    infant_care: int = Field(default=0, ge=0, description="Children under 3")
    continuing_education: ContinuingEducation = ContinuingEducation.NONE
    medical_expenses: Amount = Field(default=0.0, description="Serious illness medical spend")
    housing_loan: bool = False
    housing_rent: HousingRent = HousingRent.NONE
    elderly_care: ElderlyCare = ElderlyCare.NONE
    personal_pension: Amount = 0.0


# =============================================================================
# PLAN RESULTS
# =============================================================================

class ReversePlanResult(ResultModel):
    """Best salary / bonus decomposition of an unsplit total income."""

    total_income: float
    optimal_salary: float
    optimal_bonus: float
    insurance: float
    special_deduction: float
    basic_deduction: float
    taxable_income: float
    total_tax: float
    after_tax_income: float
    method: ScenarioType
    method_name: str
    cliff_adjusted: bool = False
    cliff_message: str = ""
    salary_tax: float = 0.0
    bonus_tax: float = 0.0
    effective_tax_rate: float = 0.0
    savings_vs_worst: float = 0.0
    calculation_steps: Tuple[CalculationStep, ...] = ()


class OptimalSplitResult(ResultModel):
    total_income: float
    optimal_salary: float
    optimal_bonus: float
    insurance: float
    deduction: float
    total_tax: float
    after_tax_income: float
    plan: ScenarioType
    plan_name: str
    cliff_avoided: bool = False
    calculation_steps: Tuple[CalculationStep, ...] = ()


class QuickEstimate(ResultModel):
    salary: float
    bonus: float
    total_tax: float
    after_tax_income: float
    method: ScenarioType


class YearEndScenario(BaseModel):
    """Eleven months of salary are already paid; December and the bonus are open."""
    prior_salary: float = Field(default=0.0, description="Cumulative salary, January-November")
    december_salary: float = 0.0
    year_end_bonus: float = 0.0
    insurance: float = Field(default=0.0, description="Annual social insurance and housing fund")
    deduction: float = Field(default=0.0, description="Annual special additional deductions")

    @computed_field
    @property
    def annual_salary(self) -> float:
        return self.prior_salary + self.december_salary


class YearEndPlan(ResultModel):
    plan_type: ScenarioType
    name: str
    description: str

    # Allocation
    separate_bonus: float
    merged_bonus: float
    combined_income: float

    # Tax
    separate_bonus_tax: float
    salary_tax: float
    total_tax: float
    after_tax_income: float

    salary_taxable_income: float
    salary_rate: float
    bonus_rate: float

    calculation: CalculationTrace


class YearEndResult(ResultModel):
    scenario: YearEndScenario
    plans: Tuple[YearEndPlan, ...]
    optimal: YearEndPlan
    tax_saving: float
    separate: YearEndPlan
    combined: YearEndPlan
    partial: Optional[YearEndPlan] = None


# =============================================================================
# BATCH ROWS
# =============================================================================

class EmployeeInput(BaseModel):
    """One named row for the forward comparison."""
    name: str
    salary: Amount = 0.0
    bonus: Amount = 0.0
    insurance: Amount = 0.0
    deduction: Amount = 0.0


class ScenarioBatchResult(EmployeeInput):
    total_tax: float
    after_tax_income: float


class BatchResult(EmployeeInput):
    optimal_type: ScenarioType
    optimal_name: str
    total_tax: float
    after_tax_income: float
    tax_saving: float
    cliff_warning: Optional[str] = None


class SplitEmployeeInput(BaseModel):
    name: str
    total_income: Amount = 0.0
    insurance: Amount = 0.0
    deduction: Amount = 0.0


class SplitBatchResult(SplitEmployeeInput):
    optimal_salary: float
    optimal_bonus: float
    total_tax: float
    after_tax_income: float
    plan_name: str
    cliff_avoided: bool


class ReverseEmployeeInput(BaseModel):
    name: str
    total_income: Amount = 0.0
    insurance: Amount = 0.0
    deductions: DeductionProfile = Field(default_factory=DeductionProfile)


class ReverseBatchResult(ReverseEmployeeInput):
    optimal_salary: float
    optimal_bonus: float
    special_deduction: float
    total_tax: float
    after_tax_income: float
    method_name: str
    cliff_adjusted: bool
    savings_vs_worst: float


class YearEndEmployeeInput(BaseModel):
    name: str
    prior_salary: Amount = 0.0
    december_salary: Amount = 0.0
    year_end_bonus: Amount = 0.0
    insurance: Amount = 0.0
    deduction: Amount = 0.0


class YearEndBatchResult(YearEndEmployeeInput):
    optimal_type: ScenarioType
    optimal_name: str
    separate_bonus: float
    merged_bonus: float
    total_tax: float
    after_tax_income: float
    tax_saving: float
