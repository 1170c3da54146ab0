"""
Suggestion engine tests — AY 2024-25

Saving figures are old-regime total tax now minus old-regime total tax with
the aggregate deduction raised by the suggested amount (hand-computed).
"""
from __future__ import annotations

from datetime import date

import pytest

from form16_planner.agents.evaluator_agent.optimizer import (
    HIGH_INCOME_STRATEGY_SAVING,
    MIN_SUGGESTION_SAVING,
    estimate_saving,
    generate_tax_suggestions,
)
from form16_planner.agents.evaluator_agent.schemas import UserTaxProfile

MID_YEAR = date(2024, 6, 15)
YEAR_END = date(2024, 1, 15)


def _by_section(suggestions):
    return {s.section: s for s in suggestions}


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------

def test_full_80c_ranked_by_urgency_then_saving() -> None:
    """
    Gross 10L, 80C full (old tax 85,800; new 54,600):
      REGIME   31,200  high
      80D       5,200  high    (nothing claimed yet)
      80CCD1B  10,400  medium
      80TTA     2,080  low
    """
    suggestions = generate_tax_suggestions(
        1_000_000, {"80C": 150_000}, "2024-25", today=MID_YEAR
    )

    assert [s.section for s in suggestions] == ["REGIME", "80D", "80CCD1B", "80TTA"]
    savings = [s.potential_saving for s in suggestions]
    assert savings == pytest.approx([31_200, 5_200, 10_400, 2_080])
    assert [s.urgency for s in suggestions] == ["high", "high", "medium", "low"]


def test_regime_suggestion_names_cheaper_regime() -> None:
    suggestions = generate_tax_suggestions(1_000_000, {"80C": 150_000}, "2024-25", today=MID_YEAR)
    regime = _by_section(suggestions)["REGIME"]
    assert "New Regime" in regime.suggestion_text
    assert regime.category == "strategy"
    assert regime.priority == 1


def test_small_regime_difference_not_suggested() -> None:
    # 300,000 of deductions: old taxable 700,000 → 52,500 + 2,100 = 54,600, same as new
    deductions = {"80C": 150_000, "80D": 25_000, "HRA": 125_000}
    suggestions = generate_tax_suggestions(1_000_000, deductions, "2024-25", today=MID_YEAR)
    assert "REGIME" not in _by_section(suggestions)


def test_headroom_amount_in_text_and_fields() -> None:
    suggestions = generate_tax_suggestions(1_000_000, {"80C": 100_000}, "2024-25", today=MID_YEAR)
    s80c = _by_section(suggestions)["80C"]
    assert s80c.current_amount == 100_000
    assert s80c.max_amount == 150_000
    assert "₹50,000" in s80c.suggestion_text
    assert s80c.category == "investment"


def test_80d_urgency_medium_when_partly_claimed() -> None:
    suggestions = generate_tax_suggestions(
        1_000_000, {"80C": 150_000, "80D": 10_000}, "2024-25", today=MID_YEAR
    )
    assert _by_section(suggestions)["80D"].urgency == "medium"


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

def test_suggestions_below_minimum_saving_dropped() -> None:
    # Old tax at 255,000 is 260 in total; no suggestion can save ₹500
    assert generate_tax_suggestions(255_000, {}, "2024-25", today=MID_YEAR) == []


def test_every_suggestion_meets_minimum_saving() -> None:
    suggestions = generate_tax_suggestions(600_000, {"80C": 20_000}, "2024-25", today=YEAR_END)
    assert suggestions
    assert all(s.potential_saving >= MIN_SUGGESTION_SAVING for s in suggestions)


def test_full_sections_not_suggested() -> None:
    deductions = {"80C": 150_000, "80D": 25_000, "80CCD1B": 50_000, "80TTA": 10_000}
    sections = _by_section(
        generate_tax_suggestions(1_000_000, deductions, "2024-25", today=MID_YEAR)
    )
    assert not {"80C", "80D", "80CCD1B", "80TTA"} & set(sections)


# ---------------------------------------------------------------------------
# Seasonal and income-based rules
# ---------------------------------------------------------------------------

def test_year_end_reminder_in_last_quarter() -> None:
    # No deductions: old 117,000 → with 150,000 more: 85,800 → saving 31,200
    suggestions = generate_tax_suggestions(1_000_000, {}, "2024-25", today=YEAR_END)
    year_end = _by_section(suggestions)["YEAR_END"]
    assert year_end.urgency == "high"
    assert year_end.potential_saving == pytest.approx(31_200)
    assert "31 March 2024" in year_end.suggestion_text


def test_no_year_end_reminder_mid_year() -> None:
    suggestions = generate_tax_suggestions(1_000_000, {}, "2024-25", today=MID_YEAR)
    assert "YEAR_END" not in _by_section(suggestions)


def test_no_year_end_reminder_when_80c_total_reached() -> None:
    suggestions = generate_tax_suggestions(
        1_000_000, {"80C": 150_000}, "2024-25", today=YEAR_END
    )
    assert "YEAR_END" not in _by_section(suggestions)


def test_high_income_low_deductions_strategy() -> None:
    suggestions = generate_tax_suggestions(2_500_000, {}, "2024-25", today=MID_YEAR)
    planning = _by_section(suggestions)["TAX_PLANNING"]
    assert planning.potential_saving == HIGH_INCOME_STRATEGY_SAVING
    assert planning.urgency == "medium"


def test_80g_only_above_income_threshold_and_unclaimed() -> None:
    above = _by_section(generate_tax_suggestions(1_500_000, {}, "2024-25", today=MID_YEAR))
    assert above["80G"].max_amount == 25_000
    assert above["80G"].urgency == "low"

    claimed = _by_section(
        generate_tax_suggestions(1_500_000, {"80G": 5_000}, "2024-25", today=MID_YEAR)
    )
    assert "80G" not in claimed

    at_threshold = _by_section(generate_tax_suggestions(1_000_000, {}, "2024-25", today=MID_YEAR))
    assert "80G" not in at_threshold


# ---------------------------------------------------------------------------
# Profile-aware rules
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "risk_profile, expected",
    [
        pytest.param("conservative", "PPF", id="conservative"),
        pytest.param("moderate", "a mix of ELSS", id="moderate"),
        pytest.param("aggressive", "ELSS mutual funds", id="aggressive"),
    ],
)
def test_80c_wording_follows_risk_profile(risk_profile: str, expected: str) -> None:
    profile = UserTaxProfile(risk_profile=risk_profile)
    suggestions = generate_tax_suggestions(1_000_000, {}, "2024-25", profile, today=MID_YEAR)
    assert expected in _by_section(suggestions)["80C"].suggestion_text


@pytest.mark.parametrize(
    "profile_kwargs, expected_cap",
    [
        pytest.param({}, 25_000, id="self"),
        pytest.param({"age": 65}, 50_000, id="senior"),
        pytest.param({"has_dependent_parents": True}, 75_000, id="with_parents"),
    ],
)
def test_80d_cap_depends_on_profile(profile_kwargs: dict, expected_cap: float) -> None:
    profile = UserTaxProfile(**profile_kwargs)
    suggestions = generate_tax_suggestions(1_500_000, {}, "2024-25", profile, today=MID_YEAR)
    assert _by_section(suggestions)["80D"].max_amount == expected_cap


def test_senior_gets_80ttb_not_80tta() -> None:
    profile = UserTaxProfile(age=62)
    sections = _by_section(
        generate_tax_suggestions(1_000_000, {}, "2024-25", profile, today=MID_YEAR)
    )
    assert "80TTB" in sections
    assert "80TTA" not in sections


def test_home_loan_suggests_section_24_not_80ee() -> None:
    profile = UserTaxProfile(has_home_loan=True)
    sections = _by_section(
        generate_tax_suggestions(1_200_000, {}, "2024-25", profile, today=MID_YEAR)
    )
    assert sections["24"].urgency == "high"
    assert sections["24"].category == "loan"
    assert "80EE" not in sections


def test_no_home_loan_suggests_80ee() -> None:
    profile = UserTaxProfile(has_home_loan=False)
    sections = _by_section(
        generate_tax_suggestions(1_200_000, {}, "2024-25", profile, today=MID_YEAR)
    )
    assert "80EE" in sections
    assert "24" not in sections


def test_without_profile_no_loan_suggestions() -> None:
    sections = _by_section(generate_tax_suggestions(1_200_000, {}, "2024-25", today=MID_YEAR))
    assert "24" not in sections
    assert "80EE" not in sections


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("assessment_year", ["2024", "24-25", "", "AY2024-25"])
def test_invalid_assessment_year_raises(assessment_year: str) -> None:
    with pytest.raises(ValueError):
        generate_tax_suggestions(1_000_000, {}, assessment_year, today=MID_YEAR)


def test_none_deductions_treated_as_empty() -> None:
    assert generate_tax_suggestions(1_000_000, None, "2024-25", today=MID_YEAR) == \
        generate_tax_suggestions(1_000_000, {}, "2024-25", today=MID_YEAR)


def test_estimate_saving_uses_aggregate() -> None:
    # 85,800 → taxable 800,000: 72,500 + 2,900 = 75,400
    assert estimate_saving(1_000_000, {"80C": 150_000}, 50_000) == pytest.approx(10_400)
