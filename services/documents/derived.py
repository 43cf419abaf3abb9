"""
Derived Fields

Numeric rules computed once by the model builder. Thresholds are strict
comparisons: a DTI of exactly 40% is not "High", a credit score of
exactly 620 is not below 620.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

RISK_HIGH = 'High'
RISK_MODERATE = 'Moderate'
RISK_LOW = 'Low'

HIGH_DTI_THRESHOLD = 40.0
HIGH_CREDIT_FLOOR = 620
MODERATE_DTI_THRESHOLD = 30.0
MODERATE_CREDIT_FLOOR = 680

# Screening guidelines shown in the qualification checklist
MIN_INCOME_MULTIPLE = 3.0
PREFERRED_CREDIT_SCORE = MODERATE_CREDIT_FLOOR
MAX_PREFERRED_DTI = MODERATE_DTI_THRESHOLD


def _round(value: float, places: int) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def income_to_rent_ratio(monthly_income: float, monthly_rent: float) -> float:
    """monthly income / monthly rent, rounded to one decimal (6000 / 2000 -> 3.0)."""
    if not monthly_rent:
        raise ValueError("monthly rent must be non-zero")
    return _round(monthly_income / monthly_rent, 1)


def format_ratio(ratio: float) -> str:
    return f"{ratio:.1f}x"


def rent_to_income_percent(monthly_rent: float, monthly_income: float) -> int:
    """Share of income going to rent, as a whole percentage."""
    if not monthly_income:
        raise ValueError("monthly income must be non-zero")
    return int(_round(monthly_rent / monthly_income * 100, 0))


def debt_to_income_percent(monthly_debt: float, monthly_rent: float, monthly_income: float) -> float:
    """(debt payments + rent) / income as a percentage, rounded to one decimal."""
    if not monthly_income:
        raise ValueError("monthly income must be non-zero")
    return _round((monthly_debt + monthly_rent) / monthly_income * 100, 1)


def risk_tier(dti_percent: float, credit_score: int) -> str:
    """
    Band an applicant by DTI and credit score.

    Rules are evaluated in priority order and the first match wins:
        DTI > 40% or credit < 620  -> High
        DTI > 30% or credit < 680  -> Moderate
        otherwise                  -> Low
    """
    if dti_percent > HIGH_DTI_THRESHOLD or credit_score < HIGH_CREDIT_FLOOR:
        return RISK_HIGH
    if dti_percent > MODERATE_DTI_THRESHOLD or credit_score < MODERATE_CREDIT_FLOOR:
        return RISK_MODERATE
    return RISK_LOW


def risk_drivers(dti_percent: float, credit_score: int) -> Optional[str]:
    """Short explanation of which rule placed the applicant in their tier."""
    reasons = []
    if dti_percent > HIGH_DTI_THRESHOLD:
        reasons.append(f"DTI above {HIGH_DTI_THRESHOLD:g}%")
    elif dti_percent > MODERATE_DTI_THRESHOLD:
        reasons.append(f"DTI above {MODERATE_DTI_THRESHOLD:g}%")
    if credit_score < HIGH_CREDIT_FLOOR:
        reasons.append(f"Credit below {HIGH_CREDIT_FLOOR}")
    elif credit_score < MODERATE_CREDIT_FLOOR:
        reasons.append(f"Credit below {MODERATE_CREDIT_FLOOR}")
    if not reasons:
        return None
    return "; ".join(reasons)


def lease_total(monthly_rent: float, term_months: int) -> float:
    return _round(monthly_rent * term_months, 2)
