"""
Tax engine test suite — AY 2024-25
All expected values hand-computed from the slab tables.

Groups:
  1. Named constant verification — exact equality
  2. Parametrised regime-comparison cases — approx
  3. Structural properties (monotonicity, cess, zero income, sign consistency)
  4. Non-resident, rounding and input validation
  5. HRA helper unit tests
"""
from __future__ import annotations

import math
import random
from dataclasses import dataclass, field

import pytest

from form16_planner.agents.evaluator_agent.schemas import TaxSlabRate
from form16_planner.agents.evaluator_agent.tax_engine import (
    ASSESSMENT_YEAR,
    CAP_80C,
    CAP_80CCD1B,
    CAP_80D_SELF,
    CAP_80TTA,
    CESS_RATE,
    NEW_REGIME_SLABS,
    NEW_STD_DEDUCTION,
    OLD_REGIME_SLABS,
    calculate_hra_exemption,
    calculate_new_regime_tax,
    calculate_old_regime_tax,
    compare_regimes,
    compute_regime_tax,
    validate_slabs,
)


# ===========================================================================
# TEST GROUP 1: Named constant verification
# ===========================================================================

def test_assessment_year_constant() -> None:
    assert ASSESSMENT_YEAR == "2024-25"


def test_slab_tables_are_valid() -> None:
    validate_slabs(OLD_REGIME_SLABS)
    validate_slabs(NEW_REGIME_SLABS)


def test_old_regime_breakpoints() -> None:
    assert [s.max for s in OLD_REGIME_SLABS] == [250_000, 500_000, 1_000_000, None]
    assert [s.rate for s in OLD_REGIME_SLABS] == [0, 5, 20, 30]


def test_new_regime_breakpoints() -> None:
    assert [s.max for s in NEW_REGIME_SLABS] == [
        300_000, 600_000, 900_000, 1_200_000, 1_500_000, None,
    ]
    assert [s.rate for s in NEW_REGIME_SLABS] == [0, 5, 10, 15, 20, 30]


def test_cap_constants() -> None:
    assert NEW_STD_DEDUCTION == 50_000
    assert CAP_80C == 150_000
    assert CAP_80D_SELF == 25_000
    assert CAP_80CCD1B == 50_000
    assert CAP_80TTA == 10_000
    assert CESS_RATE == pytest.approx(0.04)


# ===========================================================================
# TEST GROUP 2: Parametrised regime comparison cases
# ===========================================================================

@dataclass
class RegimeCase:
    """Single parametrised test case for compare_regimes()."""
    description: str
    gross_income: float
    deductions: dict = field(default_factory=dict)
    expected_old_tax: float = 0.0
    expected_new_tax: float = 0.0
    expected_regime: str = "old"


REGIME_CASES: list[RegimeCase] = [
    # OLD: taxable 850,000 → 12,500 + 70,000 = 82,500, cess 3,300 → 85,800
    # NEW: taxable 950,000 → 15,000 + 30,000 + 7,500 = 52,500, cess 2,100 → 54,600
    RegimeCase(
        description="10L_with_full_80C",
        gross_income=1_000_000,
        deductions={"80C": 150_000},
        expected_old_tax=85_800,
        expected_new_tax=54_600,
        expected_regime="new",
    ),
    # OLD: taxable 1,000,000 → 112,500, cess 4,500 → 117,000
    RegimeCase(
        description="10L_no_deductions",
        gross_income=1_000_000,
        expected_old_tax=117_000,
        expected_new_tax=54_600,
        expected_regime="new",
    ),
    # OLD: taxable 300,000 → 2,500, cess 100 → 2,600
    # NEW: taxable 250,000 → 0
    RegimeCase(
        description="3L_low_income",
        gross_income=300_000,
        expected_old_tax=2_600,
        expected_new_tax=0,
        expected_regime="new",
    ),
    # OLD: taxable 1,000,000 → 117,000
    # NEW: taxable 1,950,000 → 15,000 + 30,000 + 45,000 + 60,000 + 135,000 = 285,000,
    #      cess 11,400 → 296,400
    RegimeCase(
        description="20L_heavy_deductions",
        gross_income=2_000_000,
        deductions={"80C": 150_000, "80D": 50_000, "HRA": 600_000, "24": 200_000},
        expected_old_tax=117_000,
        expected_new_tax=296_400,
        expected_regime="old",
    ),
    RegimeCase(
        description="zero_income",
        gross_income=0,
        expected_old_tax=0,
        expected_new_tax=0,
        expected_regime="old",
    ),
]


@pytest.mark.parametrize(
    "case",
    [pytest.param(c, id=c.description) for c in REGIME_CASES],
)
def test_compare_regimes(case: RegimeCase) -> None:
    result = compare_regimes(case.gross_income, case.deductions)

    assert result.old_regime.total_tax == pytest.approx(case.expected_old_tax)
    assert result.new_regime.total_tax == pytest.approx(case.expected_new_tax)
    assert result.savings == pytest.approx(case.expected_old_tax - case.expected_new_tax)
    assert result.recommended_regime == case.expected_regime


def test_scenario_old_regime_breakdown() -> None:
    result = calculate_old_regime_tax(1_000_000, {"80C": 150_000})
    assert result.total_deductions == 150_000
    assert result.taxable_income == 850_000
    assert result.tax_liability == 82_500
    assert result.cess == 3_300
    assert result.total_tax == 85_800
    assert result.marginal_rate == 20
    assert result.effective_rate == pytest.approx(8.58)


def test_scenario_new_regime_breakdown() -> None:
    result = calculate_new_regime_tax(1_000_000)
    assert result.total_deductions == NEW_STD_DEDUCTION
    assert result.taxable_income == 950_000
    assert result.tax_liability == 52_500
    assert result.cess == 2_100
    assert result.total_tax == 54_600
    assert result.marginal_rate == 15


def test_tie_resolves_to_old() -> None:
    # Both regimes are zero below the exemption limits
    result = compare_regimes(200_000)
    assert result.savings == 0
    assert result.recommended_regime == "old"


def test_new_regime_additional_deduction() -> None:
    # Employer NPS 50,000 on top of the standard deduction → taxable 900,000
    result = calculate_new_regime_tax(1_000_000, additional_deductions=50_000)
    assert result.taxable_income == 900_000
    assert result.tax_liability == 45_000


# ===========================================================================
# TEST GROUP 3: Structural properties
# ===========================================================================

INCOME_LADDER = [0, 100_000, 250_000, 250_001, 499_999, 500_000, 750_000,
                 1_000_000, 1_250_000, 1_500_000, 3_000_000, 10_000_000]

# Seeded so a failure is reproducible
_rng = random.Random(2024)
RANDOM_INCOMES = [round(_rng.uniform(0, 10_000_000), 2) for _ in range(300)]

OLD_FIXED_DEDUCTIONS = {"80C": 150_000, "80D": 25_000}
NEW_FIXED_DEDUCTION = 50_000    # employer NPS, on top of the standard deduction


@pytest.mark.parametrize("regime", ["old", "new"])
def test_total_tax_is_monotonic_for_fixed_deduction(regime: str) -> None:
    incomes = sorted(INCOME_LADDER + RANDOM_INCOMES)
    if regime == "old":
        taxes = [calculate_old_regime_tax(g, OLD_FIXED_DEDUCTIONS).total_tax for g in incomes]
    else:
        taxes = [calculate_new_regime_tax(g, NEW_FIXED_DEDUCTION).total_tax for g in incomes]
    assert all(lower <= higher for lower, higher in zip(taxes, taxes[1:]))


@pytest.mark.parametrize("gross", INCOME_LADDER + RANDOM_INCOMES)
def test_cess_is_four_percent_of_liability(gross: float) -> None:
    for result in (calculate_old_regime_tax(gross), calculate_new_regime_tax(gross)):
        assert result.cess == round(result.tax_liability * 0.04)
        assert result.total_tax == result.tax_liability + result.cess


def test_zero_income_boundary() -> None:
    result = calculate_old_regime_tax(0)
    assert result.taxable_income == 0
    assert result.total_tax == 0
    assert result.effective_rate == 0
    assert result.marginal_rate == 0


def test_deductions_above_income_clamp_taxable_to_zero() -> None:
    result = calculate_old_regime_tax(200_000, {"80C": 150_000, "80D": 100_000})
    assert result.taxable_income == 0
    assert result.total_tax == 0


@pytest.mark.parametrize("gross", [400_000, 800_000, 1_000_000, 1_800_000, 5_000_000])
@pytest.mark.parametrize("deduction", [0, 150_000, 400_000])
def test_savings_sign_matches_recommendation(gross: float, deduction: float) -> None:
    result = compare_regimes(gross, {"80C": deduction})
    assert result.savings == result.old_regime.total_tax - result.new_regime.total_tax
    if result.savings > 0:
        assert result.recommended_regime == "new"
    else:
        assert result.recommended_regime == "old"


def test_flat_deduction_amount_equals_mapping_sum() -> None:
    mapped = compute_regime_tax(900_000, {"80C": 100_000, "80D": 25_000}, OLD_REGIME_SLABS)
    flat = compute_regime_tax(900_000, 125_000, OLD_REGIME_SLABS)
    assert mapped == flat


# ===========================================================================
# TEST GROUP 4: Non-resident, rounding, validation
# ===========================================================================

def test_non_resident_flat_thirty_percent_both_regimes() -> None:
    # No zero-rate threshold and no standard deduction: 500,000 × 30% = 150,000
    result = compare_regimes(500_000, is_non_resident=True)
    for regime in (result.old_regime, result.new_regime):
        assert regime.taxable_income == 500_000
        assert regime.tax_liability == 150_000
        assert regime.cess == 6_000
        assert regime.marginal_rate == 30
    assert result.recommended_regime == "old"


def test_liability_rounds_half_up() -> None:
    # 10 rupees above the old-regime exemption at 5% = 0.50 → 1
    result = calculate_old_regime_tax(250_010)
    assert result.tax_liability == 1
    assert result.cess == 0
    assert result.total_tax == 1


@pytest.mark.parametrize(
    "gross, deductions",
    [
        pytest.param(-1, None, id="negative_income"),
        pytest.param(math.nan, None, id="nan_income"),
        pytest.param(math.inf, None, id="inf_income"),
        pytest.param(500_000, {"80C": -10}, id="negative_deduction"),
        pytest.param(500_000, {"80C": math.nan}, id="nan_deduction"),
        pytest.param(True, None, id="bool_income"),
    ],
)
def test_invalid_amounts_raise(gross, deductions) -> None:
    with pytest.raises(ValueError):
        calculate_old_regime_tax(gross, deductions)


def test_validate_slabs_rejects_gap() -> None:
    slabs = (
        TaxSlabRate(min=0, max=100_000, rate=0),
        TaxSlabRate(min=150_000, max=None, rate=10),
    )
    with pytest.raises(ValueError, match="expected 100000"):
        validate_slabs(slabs)


def test_validate_slabs_rejects_closed_top_bracket() -> None:
    slabs = (TaxSlabRate(min=0, max=100_000, rate=0),)
    with pytest.raises(ValueError, match="open-ended"):
        validate_slabs(slabs)


def test_slab_max_must_exceed_min() -> None:
    with pytest.raises(ValueError):
        TaxSlabRate(min=100, max=100, rate=5)


# ===========================================================================
# TEST GROUP 5: HRA helper
# ===========================================================================

def test_hra_exemption_metro() -> None:
    # min(240,000, 180,000 - 60,000 = 120,000, 50% × 600,000 = 300,000) → 120,000
    assert calculate_hra_exemption(600_000, 240_000, 180_000, is_metro_city=True) == 120_000


def test_hra_exemption_non_metro_capped_by_basic_share() -> None:
    # min(400,000, 600,000 - 50,000 = 550,000, 40% × 500,000 = 200,000) → 200,000
    assert calculate_hra_exemption(500_000, 400_000, 600_000, is_metro_city=False) == 200_000


def test_hra_exemption_zero_rent() -> None:
    assert calculate_hra_exemption(600_000, 240_000, 0, is_metro_city=True) == 0


def test_hra_exemption_low_rent_is_not_clamped() -> None:
    # Rent below 10% of basic: 50,000 - 60,000 = -10,000 (caller clamps)
    assert calculate_hra_exemption(600_000, 200_000, 50_000, is_metro_city=True) == -10_000
