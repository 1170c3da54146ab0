"""
Form 16 Planner Tax Engine — AY 2024-25
Pure Python, deterministic. Same input → same output. No I/O, no shared state.

Public API:
  compute_regime_tax()        generic slab walk + cess + rates
  calculate_old_regime_tax()  old regime, itemised deductions
  calculate_new_regime_tax()  new regime, standard deduction + additional amount
  compare_regimes()           both regimes + recommendation
  calculate_hra_exemption()   Section 10(13A) helper
"""
from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from form16_planner.agents.evaluator_agent.schemas import (
    RegimeComparison,
    TaxCalculationResult,
    TaxSlabRate,
)

# ===========================================================================
# ASSESSMENT YEAR CONSTANT
# ===========================================================================

ASSESSMENT_YEAR = "2024-25"

# ===========================================================================
# SLAB TABLES — AY 2024-25 (rates in percent)
# ===========================================================================

OLD_REGIME_SLABS: tuple[TaxSlabRate, ...] = (
    TaxSlabRate(min=0,         max=250_000,   rate=0),    # 0–2.5L: 0%
    TaxSlabRate(min=250_000,   max=500_000,   rate=5),    # 2.5–5L: 5%
    TaxSlabRate(min=500_000,   max=1_000_000, rate=20),   # 5–10L: 20%
    TaxSlabRate(min=1_000_000, max=None,      rate=30),   # >10L: 30%
)

NEW_REGIME_SLABS: tuple[TaxSlabRate, ...] = (
    TaxSlabRate(min=0,         max=300_000,   rate=0),    # 0–3L: 0%
    TaxSlabRate(min=300_000,   max=600_000,   rate=5),    # 3–6L: 5%
    TaxSlabRate(min=600_000,   max=900_000,   rate=10),   # 6–9L: 10%
    TaxSlabRate(min=900_000,   max=1_200_000, rate=15),   # 9–12L: 15%
    TaxSlabRate(min=1_200_000, max=1_500_000, rate=20),   # 12–15L: 20%
    TaxSlabRate(min=1_500_000, max=None,      rate=30),   # >15L: 30%
)

# Non-residents forfeit the zero-rate threshold: one flat bracket
NON_RESIDENT_SLABS: tuple[TaxSlabRate, ...] = (
    TaxSlabRate(min=0, max=None, rate=30),
)

# ===========================================================================
# DEDUCTION CAP CONSTANTS
# ===========================================================================

NEW_STD_DEDUCTION        = 50_000     # Resident salaried, new regime

CAP_80C                  = 150_000
CAP_80D_SELF             = 25_000
CAP_80D_SENIOR           = 50_000     # Taxpayer aged 60+
CAP_80D_WITH_PARENTS     = 75_000     # Self + dependent parents
CAP_80CCD1B              = 50_000
CAP_80TTA                = 10_000     # Savings interest, under 60
CAP_80TTB                = 50_000     # All deposit interest, 60+
CAP_80EE                 = 50_000     # First-time home buyer interest
CAP_24B                  = 200_000    # Home loan interest, self-occupied

CESS_RATE                = 0.04

DeductionsInput = Union[Mapping[str, float], float, int, None]


# ===========================================================================
# INTERNAL HELPERS (pure functions — no side effects, no I/O)
# ===========================================================================

def _require_amount(name: str, value: float) -> float:
    """Reject NaN / inf / negative amounts: a programming error, not user input."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, got {type(value).__name__}")
    if not math.isfinite(value):
        raise ValueError(f"{name} must be finite, got {value}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")
    return float(value)


def _total_deductions(deductions: DeductionsInput) -> float:
    if deductions is None:
        return 0.0
    if isinstance(deductions, Mapping):
        return sum(
            _require_amount(f"deduction {section}", amount)
            for section, amount in deductions.items()
        )
    return _require_amount("deductions", deductions)


def _round_rupees(value: float) -> float:
    """Nearest whole rupee, halves rounded up."""
    return float(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def validate_slabs(slabs: Sequence[TaxSlabRate]) -> None:
    """
    Check a slab table: starts at 0, ascending, contiguous, non-overlapping,
    and only the last bracket is open-ended.

    Raises:
        ValueError: describing the first violation found.
    """
    if not slabs:
        raise ValueError("slab table is empty")
    if slabs[0].min != 0:
        raise ValueError(f"first slab must start at 0, starts at {slabs[0].min}")
    for i, slab in enumerate(slabs):
        is_last = i == len(slabs) - 1
        if slab.max is None and not is_last:
            raise ValueError(f"slab {i} is open-ended but is not the last slab")
        if is_last and slab.max is not None:
            raise ValueError("last slab must be open-ended (max=None)")
        if not is_last and slabs[i + 1].min != slab.max:
            raise ValueError(
                f"slab {i + 1} starts at {slabs[i + 1].min}, expected {slab.max}"
            )


def _calculate_slab_tax(taxable_income: float, slabs: Sequence[TaxSlabRate]) -> float:
    """
    Progressive slab tax: walk brackets in ascending order, tax the portion of
    income inside each bracket, stop once income is exhausted.
    """
    tax = 0.0
    remaining = taxable_income
    for slab in slabs:
        if remaining <= 0:
            break
        width = slab.max - slab.min if slab.max is not None else remaining
        portion = min(remaining, width)
        tax += portion * slab.rate / 100
        remaining -= portion
    return tax


def _marginal_rate(taxable_income: float, slabs: Sequence[TaxSlabRate]) -> float:
    """Rate of the bracket containing taxable_income (lower bound inclusive)."""
    if taxable_income <= 0:
        return 0.0
    for slab in slabs:
        if taxable_income >= slab.min and (slab.max is None or taxable_income < slab.max):
            return slab.rate
    return 0.0


# ===========================================================================
# GENERIC REGIME CALCULATOR
# ===========================================================================

def compute_regime_tax(
    gross_income: float,
    deductions: DeductionsInput,
    slabs: Sequence[TaxSlabRate],
    is_non_resident: bool = False,
) -> TaxCalculationResult:
    """
    Tax for one regime.

    Args:
        gross_income: Annual gross income (INR, finite, >= 0).
        deductions: Section → amount mapping (summed) or one flat amount.
        slabs: Slab table; replaced by NON_RESIDENT_SLABS for non-residents.
        is_non_resident: Flat 30% from the first rupee.

    Raises:
        ValueError: non-finite or negative income / deduction.
    """
    gross = _require_amount("gross_income", gross_income)

    # Step 1: Deductions and taxable income (never negative)
    total_deductions = _total_deductions(deductions)
    taxable_income = max(0.0, gross - total_deductions)

    # Step 2: Slab table
    table = NON_RESIDENT_SLABS if is_non_resident else slabs

    # Step 3: Slab tax, rounded to the rupee
    tax_liability = _round_rupees(_calculate_slab_tax(taxable_income, table))

    # Step 4: Cess on the liability (NOT on taxable income)
    cess = _round_rupees(tax_liability * CESS_RATE)

    # Step 5: Final tax and rates
    total_tax = tax_liability + cess
    effective_rate = total_tax / gross * 100 if gross > 0 else 0.0

    return TaxCalculationResult(
        gross_income=gross,
        total_deductions=total_deductions,
        taxable_income=taxable_income,
        tax_liability=tax_liability,
        cess=cess,
        total_tax=total_tax,
        effective_rate=effective_rate,
        marginal_rate=_marginal_rate(taxable_income, table),
    )


# ===========================================================================
# OLD / NEW REGIME CALCULATORS
# ===========================================================================

def calculate_old_regime_tax(
    gross_income: float,
    deductions: Optional[Mapping[str, float]] = None,
    is_non_resident: bool = False,
) -> TaxCalculationResult:
    """
    Old regime: every deduction in the mapping is subtracted as given.
    Caps are the caller's concern; the engine sums what it is handed.
    """
    return compute_regime_tax(gross_income, deductions or {}, OLD_REGIME_SLABS, is_non_resident)


def calculate_new_regime_tax(
    gross_income: float,
    additional_deductions: float = 0.0,
    is_non_resident: bool = False,
) -> TaxCalculationResult:
    """
    New regime (Section 115BAC): ₹50,000 standard deduction for residents,
    plus any explicitly permitted additional deduction (e.g. employer NPS).
    """
    additional = _require_amount("additional_deductions", additional_deductions)
    standard = 0.0 if is_non_resident else float(NEW_STD_DEDUCTION)
    return compute_regime_tax(
        gross_income, standard + additional, NEW_REGIME_SLABS, is_non_resident
    )


# ===========================================================================
# COMPARE REGIMES — public API
# ===========================================================================

def compare_regimes(
    gross_income: float,
    old_regime_deductions: Optional[Mapping[str, float]] = None,
    new_regime_additional_deductions: float = 0.0,
    is_non_resident: bool = False,
) -> RegimeComparison:
    """
    Compute both regimes. savings = old.total_tax - new.total_tax.

    "new" is recommended only when it is strictly cheaper; a tie resolves to
    "old" (no switch is suggested when nothing is saved).
    """
    old = calculate_old_regime_tax(gross_income, old_regime_deductions, is_non_resident)
    new = calculate_new_regime_tax(gross_income, new_regime_additional_deductions, is_non_resident)

    savings = old.total_tax - new.total_tax
    return RegimeComparison(
        old_regime=old,
        new_regime=new,
        savings=savings,
        recommended_regime="new" if savings > 0 else "old",
    )


# ===========================================================================
# HRA EXEMPTION — Section 10(13A), Rule 2A
# ===========================================================================

def calculate_hra_exemption(
    basic_salary: float,
    hra_received: float,
    rent_paid: float,
    is_metro_city: bool,
) -> float:
    """
    Minimum of:
      Component 1: HRA received
      Component 2: annual rent paid - 10% of basic salary
      Component 3: 50% of basic (metro) or 40% (non-metro)

    Returns 0 when no rent is paid. Component 2 is NOT clipped at 0: when rent
    is below 10% of basic the result is negative and the caller clamps it.
    """
    basic = _require_amount("basic_salary", basic_salary)
    hra = _require_amount("hra_received", hra_received)
    rent = _require_amount("rent_paid", rent_paid)
    if rent <= 0:
        return 0.0
    metro_pct = 0.50 if is_metro_city else 0.40
    return min(hra, rent - 0.10 * basic, metro_pct * basic)


__all__ = [
    "ASSESSMENT_YEAR",
    "OLD_REGIME_SLABS",
    "NEW_REGIME_SLABS",
    "NON_RESIDENT_SLABS",
    "NEW_STD_DEDUCTION",
    "CAP_80C",
    "CAP_80D_SELF",
    "CAP_80D_SENIOR",
    "CAP_80D_WITH_PARENTS",
    "CAP_80CCD1B",
    "CAP_80TTA",
    "CAP_80TTB",
    "CAP_80EE",
    "CAP_24B",
    "CESS_RATE",
    "validate_slabs",
    "compute_regime_tax",
    "calculate_old_regime_tax",
    "calculate_new_regime_tax",
    "compare_regimes",
    "calculate_hra_exemption",
]
