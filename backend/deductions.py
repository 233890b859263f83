"""
Bonus Tax Planner - Deduction Aggregator
========================================
Turns an itemized DeductionProfile into the single annual special additional
deduction used by the optimizers.

Each category is capped on its own before summing; categories never interact.
"""

from typing import List, Tuple, Union

from tax_constants import (
    DEDUCTION_AMOUNTS,
    HOUSING_RENT_AMOUNTS,
    ELDERLY_CARE_AMOUNTS,
    CONTINUING_EDUCATION_AMOUNTS,
    ContinuingEducation,
    HousingRent,
    ElderlyCare,
)
from models import DeductionProfile


def _category_amounts(profile: DeductionProfile) -> List[Tuple[str, float]]:
    """(label, annual amount) for every category, in display order."""
    per_child = DEDUCTION_AMOUNTS["children_education_per_child"]
    per_infant = DEDUCTION_AMOUNTS["infant_care_per_child"]

    return [
        ("children_education", profile.children_education * per_child),
        ("infant_care", profile.infant_care * per_infant),
        ("continuing_education", CONTINUING_EDUCATION_AMOUNTS[profile.continuing_education]),
        ("medical_expenses", min(profile.medical_expenses, DEDUCTION_AMOUNTS["medical_expenses_cap"])),
        ("housing_loan", DEDUCTION_AMOUNTS["housing_loan_interest"] if profile.housing_loan else 0),
        ("housing_rent", HOUSING_RENT_AMOUNTS[profile.housing_rent]),
        ("elderly_care", ELDERLY_CARE_AMOUNTS[profile.elderly_care]),
        ("personal_pension", min(profile.personal_pension, DEDUCTION_AMOUNTS["personal_pension_cap"])),
    ]


def aggregate_deductions(profile: DeductionProfile) -> float:
    """Total annual special additional deduction for a profile."""
    return float(sum(amount for _, amount in _category_amounts(profile)))


def resolve_deduction(deduction: Union[DeductionProfile, float, int]) -> float:
    """Accept either an itemized profile or an already-aggregated amount."""
    if isinstance(deduction, DeductionProfile):
        return aggregate_deductions(deduction)
    return float(deduction)


def describe_deductions(profile: DeductionProfile) -> List[str]:
    """Human-readable lines for each category that contributes."""
    descriptions = []
    amounts = dict(_category_amounts(profile))

    if profile.children_education > 0:
        descriptions.append(
            f"Children's education: {profile.children_education} x 24,000 = "
            f"{amounts['children_education']:,.0f}"
        )
    if profile.infant_care > 0:
        descriptions.append(
            f"Infant care: {profile.infant_care} x 24,000 = {amounts['infant_care']:,.0f}"
        )
    if profile.continuing_education == ContinuingEducation.DEGREE:
        descriptions.append(f"Continuing education (degree): {amounts['continuing_education']:,.0f}")
    elif profile.continuing_education == ContinuingEducation.CERTIFICATE:
        descriptions.append(f"Continuing education (certificate): {amounts['continuing_education']:,.0f}")
    if profile.medical_expenses > 0:
        descriptions.append(f"Serious illness medical expenses: {amounts['medical_expenses']:,.0f}")
    if profile.housing_loan:
        descriptions.append(f"Housing loan interest: {amounts['housing_loan']:,.0f}")
    if profile.housing_rent != HousingRent.NONE:
        descriptions.append(
            f"Housing rent ({profile.housing_rent.value} city): {amounts['housing_rent']:,.0f}"
        )
    if profile.elderly_care == ElderlyCare.ONLY_CHILD:
        descriptions.append(f"Elderly care (only child): {amounts['elderly_care']:,.0f}")
    elif profile.elderly_care == ElderlyCare.SHARED:
        descriptions.append(f"Elderly care (shared): {amounts['elderly_care']:,.0f}")
    if profile.personal_pension > 0:
        descriptions.append(f"Personal pension: {amounts['personal_pension']:,.0f}")

    return descriptions
