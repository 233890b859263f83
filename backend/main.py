"""
Bonus Tax Planner - FastAPI Backend
===================================
HTTP surface over the salary / year-end bonus tax engine.

Architecture:
1. Request models reject negative, non-finite or oversized amounts
   (see MAX_AMOUNT); long sweeps run as sync handlers in the threadpool
2. All tax math runs in the pure engine modules - this layer holds no tax logic
3. Nothing is stored; every request is computed from scratch
"""

import os
import math
import logging
from datetime import datetime
from typing import Any, Dict, List
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from tax_constants import (
    ANNUAL_TAX_BRACKETS,
    MONTHLY_TAX_BRACKETS,
    BASIC_ALLOWANCE,
    DEDUCTION_AMOUNTS,
    HOUSING_RENT_AMOUNTS,
    ELDERLY_CARE_AMOUNTS,
    CONTINUING_EDUCATION_AMOUNTS,
    MAX_BATCH_ROWS,
    BracketTable,
    get_tax_bracket_info,
)
from models import (
    Amount,
    DeductionProfile,
    TaxEvaluation,
    BonusTaxEvaluation,
    CliffCheck,
    ScenarioResult,
    OptimalPlanResult,
    ChartPoint,
    ReversePlanResult,
    OptimalSplitResult,
    QuickEstimate,
    YearEndResult,
)
from tax_simulator import (
    CLIFF_ZONES,
    evaluate_annual_tax,
    evaluate_bonus_tax,
    detect_cliff,
    compute_separate,
    compute_combined,
    generate_chart_data,
)
from plan_optimizer import (
    compute_optimal_plan,
    compute_reverse_plan,
    compute_optimal_split,
    compute_year_end_plan,
    quick_estimate,
    PlanningAdvisor,
)
from deductions import aggregate_deductions, describe_deductions
from batch import run_batch

# Configure logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://localhost:5173"  # React/Vite dev servers


# =============================================================================
# APPLICATION SETUP
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Bonus Tax Planner starting up...")
    yield
    logger.info("Bonus Tax Planner shutting down...")


app = FastAPI(
    title="Bonus Tax Planner",
    description="Salary and year-end bonus tax optimization API",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# REQUEST MODELS
# =============================================================================

class AmountRequest(BaseModel):
    amount: Amount


class ScenarioRequest(BaseModel):
    salary: Amount = 0.0
    bonus: Amount = 0.0
    insurance: Amount = 0.0
    deduction: Amount = 0.0


class SplitRequest(BaseModel):
    total_income: Amount = 0.0
    insurance: Amount = 0.0
    deduction: Amount = 0.0


class ReversePlanRequest(BaseModel):
    total_income: Amount = 0.0
    insurance: Amount = 0.0
    deductions: DeductionProfile = Field(default_factory=DeductionProfile)


class YearEndRequest(BaseModel):
    prior_salary: Amount = Field(default=0.0, description="Cumulative salary, January-November")
    december_salary: Amount = 0.0
    year_end_bonus: Amount = 0.0
    insurance: Amount = 0.0
    deduction: Amount = 0.0


class BatchRequest(BaseModel):
    rows: List[Dict[str, Any]] = Field(max_length=MAX_BATCH_ROWS)


def _bracket_rows(table: BracketTable) -> List[Dict[str, Any]]:
    return [
        {
            "limit": b.upper_limit if not math.isinf(b.upper_limit) else "unlimited",
            "rate": b.rate,
            "quick_deduction": b.quick_deduction,
        }
        for b in table
    ]


# =============================================================================
# API ENDPOINTS
# =============================================================================

@app.get("/")
async def root():
    """API health check."""
    return {
        "service": "Bonus Tax Planner",
        "version": "1.0.0",
        "status": "healthy",
    }


@app.get("/api/health")
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "components": {
            "tax_calculator": "ready",
            "plan_optimizer": "ready",
            "batch_runner": "ready",
        }
    }


# --- TAX REFERENCE DATA ---

@app.get("/api/reference/brackets")
async def get_tax_brackets():
    """Annual composite and monthly (bonus) bracket tables."""
    return {
        "basic_allowance": BASIC_ALLOWANCE,
        "annual": _bracket_rows(ANNUAL_TAX_BRACKETS),
        "monthly": _bracket_rows(MONTHLY_TAX_BRACKETS),
        "summary": "\n\n".join([
            get_tax_bracket_info(ANNUAL_TAX_BRACKETS, "Annual composite income"),
            get_tax_bracket_info(MONTHLY_TAX_BRACKETS, "Year-end bonus (monthly equivalent)"),
        ]),
    }


@app.get("/api/reference/cliffs")
async def get_cliff_intervals():
    """Bonus blind zones derived from the monthly table."""
    return [zone.model_dump() for zone in CLIFF_ZONES]


@app.get("/api/reference/deductions")
async def get_deduction_amounts():
    """Annual special additional deduction amounts, caps and per-option tables."""
    return {
        "amounts": dict(DEDUCTION_AMOUNTS),
        "housing_rent": {option.value: amount for option, amount in HOUSING_RENT_AMOUNTS.items()},
        "elderly_care": {option.value: amount for option, amount in ELDERLY_CARE_AMOUNTS.items()},
        "continuing_education": {
            option.value: amount for option, amount in CONTINUING_EDUCATION_AMOUNTS.items()
        },
    }


# --- TAX EVALUATION ---

@app.post("/api/tax/annual", response_model=TaxEvaluation)
async def annual_tax(request: AmountRequest):
    return evaluate_annual_tax(request.amount)


@app.post("/api/tax/bonus", response_model=BonusTaxEvaluation)
async def bonus_tax(request: AmountRequest):
    return evaluate_bonus_tax(request.amount)


@app.post("/api/cliff", response_model=CliffCheck)
async def cliff_check(request: AmountRequest):
    return detect_cliff(request.amount)


# --- SCENARIOS ---

@app.post("/api/scenarios/separate", response_model=ScenarioResult)
async def separate_scenario(request: ScenarioRequest):
    return compute_separate(request.salary, request.bonus, request.insurance, request.deduction)


@app.post("/api/scenarios/combined", response_model=ScenarioResult)
async def combined_scenario(request: ScenarioRequest):
    return compute_combined(request.salary, request.bonus, request.insurance, request.deduction)


# --- PLANS ---

@app.post("/api/plans/optimal", response_model=OptimalPlanResult)
async def optimal_plan(request: ScenarioRequest):
    """Compare separate and combined taxation for a fixed split."""
    return compute_optimal_plan(request.salary, request.bonus, request.insurance, request.deduction)


@app.post("/api/plans/chart", response_model=List[ChartPoint])
def chart_data(request: ScenarioRequest):
    return generate_chart_data(request.salary, request.bonus, request.insurance, request.deduction)


@app.post("/api/plans/reverse")
def reverse_plan(request: ReversePlanRequest):
    """
    Split a total income into salary and bonus.

    Returns the plan, the itemized deduction breakdown and advice lines.
    """
    result: ReversePlanResult = compute_reverse_plan(
        request.total_income, request.insurance, request.deductions
    )
    return {
        "plan": result.model_dump(),
        "deductions": describe_deductions(request.deductions),
        "advice": PlanningAdvisor().generate_advice(result),
    }


@app.post("/api/plans/split", response_model=OptimalSplitResult)
def optimal_split(request: SplitRequest):
    return compute_optimal_split(request.total_income, request.insurance, request.deduction)


@app.post("/api/plans/quick-estimate", response_model=QuickEstimate)
async def quick_estimate_endpoint(request: SplitRequest):
    return quick_estimate(request.total_income, request.insurance, request.deduction)


@app.post("/api/plans/year-end", response_model=YearEndResult)
def year_end_plan(request: YearEndRequest):
    """Pick the cheapest way to tax the year-end bonus in December."""
    return compute_year_end_plan(
        request.prior_salary,
        request.december_salary,
        request.year_end_bonus,
        request.insurance,
        request.deduction,
    )


@app.post("/api/deductions")
async def deductions_total(profile: DeductionProfile):
    return {
        "total": aggregate_deductions(profile),
        "items": describe_deductions(profile),
    }


# --- BATCH ---

@app.post("/api/batch/{kind}")
def batch(kind: str, request: BatchRequest):
    """Run one calculation over many employees."""
    try:
        results = run_batch(kind, request.rows)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "kind": kind,
        "count": len(results),
        "results": [r.model_dump(mode="json") for r in results],
    }


# --- ERROR HANDLERS ---

@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if os.getenv("DEBUG") else "An error occurred"
        }
    )


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
