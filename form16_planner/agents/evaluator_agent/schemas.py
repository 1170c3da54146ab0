"""
schemas.py — EvaluatorAgent Pydantic v2 data contracts (AY 2024-25).

Defines:
  - TaxSlabRate           (one bracket of a slab table)
  - TaxCalculationResult  (full tax computation for one regime)
  - RegimeComparison      (old vs new — output of compare_regimes())
  - UserTaxProfile        (optional personal facts used by the suggestion engine)
  - Suggestion            (one ranked tax-saving recommendation)

All monetary values are annual INR amounts. Rates are PERCENTAGES (30, not 0.30).
"""
from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# TaxSlabRate — one bracket of a slab table
# ---------------------------------------------------------------------------

class TaxSlabRate(BaseModel):
    """
    Income bracket [min, max) taxed at rate percent.

    max=None marks the open-ended top bracket. Tables are validated as a whole
    by tax_engine.validate_slabs() (ascending, contiguous, last open-ended).
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    min: float = Field(ge=0)
    max: Optional[float] = None
    rate: float = Field(ge=0, le=100)

    @model_validator(mode="after")
    def max_above_min(self) -> "TaxSlabRate":
        if self.max is not None and self.max <= self.min:
            raise ValueError(f"slab max ({self.max}) must be greater than min ({self.min})")
        return self


# ---------------------------------------------------------------------------
# TaxCalculationResult — full tax calculation for one regime
# ---------------------------------------------------------------------------

class TaxCalculationResult(BaseModel):
    """
    Complete tax computation result for a single regime.

    Computation sequence:
      1. total_deductions = sum of deductions (old) / standard + additional (new)
      2. taxable_income   = max(0, gross_income - total_deductions)
      3. tax_liability    = progressive slab tax, rounded to the rupee
      4. cess             = 4% of tax_liability, rounded to the rupee
      5. total_tax        = tax_liability + cess
    """
    model_config = ConfigDict(extra="forbid")

    gross_income: float
    total_deductions: float
    taxable_income: float
    tax_liability: float
    cess: float
    total_tax: float
    effective_rate: float        # total_tax / gross_income * 100 (0 when gross is 0)
    marginal_rate: float         # Rate of the bracket containing taxable_income


# ---------------------------------------------------------------------------
# RegimeComparison — public output of compare_regimes()
# ---------------------------------------------------------------------------

class RegimeComparison(BaseModel):
    """
    savings = old_regime.total_tax - new_regime.total_tax.

    recommended_regime is "new" only when savings > 0; a tie stays "old".
    """
    model_config = ConfigDict(extra="forbid")

    old_regime: TaxCalculationResult
    new_regime: TaxCalculationResult
    savings: float
    recommended_regime: Literal["old", "new"]


# ---------------------------------------------------------------------------
# UserTaxProfile — suggestion engine input
# ---------------------------------------------------------------------------

RiskProfile = Literal["conservative", "moderate", "aggressive"]


class UserTaxProfile(BaseModel):
    """Personal facts Form 16 does not carry. All optional."""
    model_config = ConfigDict(extra="forbid")

    age: Optional[int] = Field(default=None, ge=0, le=120)
    has_dependent_parents: bool = False
    is_metro_city: bool = False
    has_home_loan: bool = False
    risk_profile: RiskProfile = "moderate"

    @property
    def is_senior_citizen(self) -> bool:
        return self.age is not None and self.age >= 60


# ---------------------------------------------------------------------------
# Suggestion — one ranked recommendation
# ---------------------------------------------------------------------------

SuggestionCategory = Literal["investment", "insurance", "loan", "savings", "strategy"]
SuggestionUrgency = Literal["high", "medium", "low"]


class Suggestion(BaseModel):
    """
    One tax-saving recommendation.

    priority: lower = more important (tie-break after urgency and saving).
    Generated fresh per request; never updated in place.
    """
    model_config = ConfigDict(extra="forbid")

    section: str                 # "80C", "80D", ... or "REGIME" / "YEAR_END" / "TAX_PLANNING"
    suggestion_text: str
    current_amount: float = Field(ge=0)
    max_amount: float = Field(ge=0)
    potential_saving: float
    priority: int = Field(ge=0)
    category: SuggestionCategory
    urgency: SuggestionUrgency


__all__ = [
    "TaxSlabRate",
    "TaxCalculationResult",
    "RegimeComparison",
    "RiskProfile",
    "UserTaxProfile",
    "SuggestionCategory",
    "SuggestionUrgency",
    "Suggestion",
]
