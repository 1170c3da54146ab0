"""
Form 16 Planner Optimizer — AY 2024-25
Generates ranked tax-saving suggestions for unused deduction headroom.
Pure functions. No I/O.

Saving estimate: every headroom suggestion is priced by recomputing the old
regime with the AGGREGATE deduction total raised by the suggested amount.
The named section is not re-derived, so two suggestions that each cross a
bracket boundary are not additive; the figure is an indication only.
"""
from __future__ import annotations

import logging
import re
from datetime import date
from typing import Mapping, Optional

from form16_planner.agents.evaluator_agent.schemas import Suggestion, UserTaxProfile
from form16_planner.agents.evaluator_agent.tax_engine import (
    CAP_24B,
    CAP_80C,
    CAP_80CCD1B,
    CAP_80D_SELF,
    CAP_80D_SENIOR,
    CAP_80D_WITH_PARENTS,
    CAP_80EE,
    CAP_80TTA,
    CAP_80TTB,
    calculate_old_regime_tax,
    compare_regimes,
)

logger = logging.getLogger(__name__)

REGIME_SWITCH_MIN_SAVING = 5_000      # Below this a regime switch is not worth suggesting
MIN_SUGGESTION_SAVING = 500           # Suppress suggestions saving less than ₹500

DONATION_INCOME_THRESHOLD = 1_000_000
SUGGESTED_80G_DONATION = 25_000

HIGH_INCOME_THRESHOLD = 2_000_000
HIGH_INCOME_LOW_DEDUCTIONS = 200_000
HIGH_INCOME_STRATEGY_SAVING = 50_000  # Fixed estimate; not computed

YEAR_END_MONTHS = frozenset({12, 1, 2, 3})   # Last quarter of the Indian financial year

_URGENCY_RANK = {"high": 0, "medium": 1, "low": 2}
_AY_RE = re.compile(r"^(\d{4})-\d{2}$")

_80C_INSTRUMENTS = {
    "conservative": "PPF, NSC or a 5-year tax-saver fixed deposit",
    "moderate": "a mix of ELSS, PPF and life insurance",
    "aggressive": "ELSS mutual funds",
}


def estimate_saving(
    gross_income: float,
    current_deductions: Mapping[str, float],
    additional: float,
) -> float:
    """
    Old-regime total tax now, minus old-regime total tax with the aggregate
    deduction raised by `additional`.
    """
    current = calculate_old_regime_tax(gross_income, current_deductions)
    existing = sum(current_deductions.values())
    perturbed = calculate_old_regime_tax(gross_income, {"total": existing + additional})
    return current.total_tax - perturbed.total_tax


def _80d_cap(profile: Optional[UserTaxProfile]) -> float:
    if profile is None:
        return CAP_80D_SELF
    if profile.has_dependent_parents:
        return CAP_80D_WITH_PARENTS
    if profile.is_senior_citizen:
        return CAP_80D_SENIOR
    return CAP_80D_SELF


def _headroom(
    gross_income: float,
    current_deductions: Mapping[str, float],
    section: str,
    cap: float,
    text: str,
    priority: int,
    category: str,
    urgency: str,
) -> Optional[Suggestion]:
    """Suggestion for cap - current, or None when the section is already full."""
    current = current_deductions.get(section, 0.0)
    if current >= cap:
        return None
    additional = cap - current
    return Suggestion(
        section=section,
        suggestion_text=text.format(amount=f"₹{additional:,.0f}"),
        current_amount=current,
        max_amount=cap,
        potential_saving=estimate_saving(gross_income, current_deductions, additional),
        priority=priority,
        category=category,
        urgency=urgency,
    )


def generate_tax_suggestions(
    gross_income: float,
    current_deductions: Optional[Mapping[str, float]],
    assessment_year: str,
    profile: Optional[UserTaxProfile] = None,
    today: Optional[date] = None,
) -> list[Suggestion]:
    """
    Ranked suggestions for one taxpayer.

    Order: urgency (high > medium > low), then potential saving (desc), then
    priority (asc). Suggestions saving less than ₹500 are dropped.

    Raises:
        ValueError: assessment_year is not YYYY-YY, or income / deductions
            are negative or non-finite.
    """
    ay_match = _AY_RE.match(assessment_year or "")
    if not ay_match:
        raise ValueError(f"assessment_year must be YYYY-YY, got {assessment_year!r}")
    fy_end_year = int(ay_match.group(1))

    deductions = dict(current_deductions or {})
    today = today or date.today()
    total_current = sum(deductions.values())
    candidates: list[Optional[Suggestion]] = []

    # ---- 1. Regime switch ----------------------------------------------------
    comparison = compare_regimes(gross_income, deductions)
    if abs(comparison.savings) > REGIME_SWITCH_MIN_SAVING:
        better = "New" if comparison.recommended_regime == "new" else "Old"
        candidates.append(Suggestion(
            section="REGIME",
            suggestion_text=(
                f"Opt for the {better} Regime: it lowers your tax by "
                f"₹{abs(comparison.savings):,.0f} compared with the other regime."
            ),
            current_amount=0,
            max_amount=0,
            potential_saving=abs(comparison.savings),
            priority=1,
            category="strategy",
            urgency="high",
        ))

    # ---- 2. Section headroom -------------------------------------------------
    risk = profile.risk_profile if profile else "moderate"
    candidates.append(_headroom(
        gross_income, deductions, "80C", CAP_80C,
        f"Invest an additional {{amount}} in {_80C_INSTRUMENTS[risk]} to use your full 80C limit.",
        priority=1, category="investment", urgency="medium",
    ))

    candidates.append(_headroom(
        gross_income, deductions, "80D", _80d_cap(profile),
        "Increase health insurance cover by {amount} to claim the full 80D deduction"
        + (" (including premiums for your parents)." if profile and profile.has_dependent_parents else "."),
        priority=2, category="insurance",
        urgency="high" if deductions.get("80D", 0.0) == 0 else "medium",
    ))

    candidates.append(_headroom(
        gross_income, deductions, "80CCD1B", CAP_80CCD1B,
        "Contribute {amount} to NPS for the additional deduction under 80CCD(1B).",
        priority=3, category="investment", urgency="medium",
    ))

    if profile is not None and profile.is_senior_citizen:
        candidates.append(_headroom(
            gross_income, deductions, "80TTB", CAP_80TTB,
            "Claim up to {amount} more of bank and post-office deposit interest under 80TTB.",
            priority=5, category="savings", urgency="low",
        ))
    else:
        candidates.append(_headroom(
            gross_income, deductions, "80TTA", CAP_80TTA,
            "Claim up to {amount} more of savings account interest under 80TTA.",
            priority=5, category="savings", urgency="low",
        ))

    if profile is not None and profile.has_home_loan:
        candidates.append(_headroom(
            gross_income, deductions, "24", CAP_24B,
            "Claim up to {amount} more of home loan interest under Section 24(b).",
            priority=4, category="loan", urgency="high",
        ))

    if gross_income > DONATION_INCOME_THRESHOLD and "80G" not in deductions:
        candidates.append(_headroom(
            gross_income, deductions, "80G", SUGGESTED_80G_DONATION,
            "Donating {amount} to eligible charities or relief funds is deductible under 80G.",
            priority=7, category="strategy", urgency="low",
        ))

    if profile is not None and not profile.has_home_loan:
        candidates.append(_headroom(
            gross_income, deductions, "80EE", CAP_80EE,
            "Buying your first home? Interest of up to {amount} on the loan is deductible under 80EE.",
            priority=6, category="loan", urgency="low",
        ))

    # ---- 3. Year-end reminder ------------------------------------------------
    if today.month in YEAR_END_MONTHS and total_current < CAP_80C:
        remaining = CAP_80C - total_current
        candidates.append(Suggestion(
            section="YEAR_END",
            suggestion_text=(
                f"The financial year closes on 31 March {fy_end_year}. Invest ₹{remaining:,.0f} "
                "in tax-saving instruments before then to reduce this year's tax."
            ),
            current_amount=total_current,
            max_amount=CAP_80C,
            potential_saving=estimate_saving(gross_income, deductions, remaining),
            priority=1,
            category="strategy",
            urgency="high",
        ))

    # ---- 4. High income, low deductions -------------------------------------
    if gross_income > HIGH_INCOME_THRESHOLD and total_current < HIGH_INCOME_LOW_DEDUCTIONS:
        candidates.append(Suggestion(
            section="TAX_PLANNING",
            suggestion_text=(
                "Your income is high relative to your deductions. A structured plan "
                "(salary restructuring, NPS, health cover, home loan) can cut your tax substantially."
            ),
            current_amount=total_current,
            max_amount=HIGH_INCOME_LOW_DEDUCTIONS,
            potential_saving=HIGH_INCOME_STRATEGY_SAVING,
            priority=2,
            category="strategy",
            urgency="medium",
        ))

    # ---- 5. Filter and rank --------------------------------------------------
    suggestions = [
        s for s in candidates
        if s is not None and s.potential_saving >= MIN_SUGGESTION_SAVING
    ]
    suggestions.sort(key=lambda s: (_URGENCY_RANK[s.urgency], -s.potential_saving, s.priority))

    logger.info(
        "generate_tax_suggestions: ay=%s candidates=%d returned=%d",
        assessment_year,
        sum(1 for s in candidates if s is not None),
        len(suggestions),
    )
    return suggestions
