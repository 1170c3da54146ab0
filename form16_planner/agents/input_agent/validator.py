"""
InputAgent extraction validator — soft checks on ExtractedDocumentFacts.

Runs AFTER field extraction. Nothing here blocks processing: every finding is
returned as an ExtractionWarning so the caller can show it next to the
extracted values and let the user decide.

Checks:
  1. WRONG_AY            document assessment year differs from the expected one
  2. DEDUCTION_ABOVE_CAP a section amount exceeds its statutory maximum
  3. TDS_EXCEEDS_GROSS   tax deducted is larger than the gross salary
  4. PAN_MISSING         no employee PAN could be located
  5. GROSS_SALARY_MISSING no gross salary, so no computation can run
"""
from __future__ import annotations

import logging
from typing import Optional

from form16_planner.agents.input_agent.schemas import (
    ExtractedDocumentFacts,
    ExtractionWarning,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Cap constants: the HIGHEST amount any taxpayer can claim per section.
# Lower personal caps (age, parents) are applied by the optimizer.
# ---------------------------------------------------------------------------
_SECTION_CAPS: dict[str, float] = {
    "80C":     150_000,    # 80C + 80CCC + 80CCD(1) share one ceiling
    "80CCC":   150_000,
    "80CCD":   150_000,
    "80CCD1B":  50_000,
    "80D":     100_000,    # senior self + senior parents
    "80EE":     50_000,
    "80TTA":    10_000,
    "80TTB":    50_000,
}
_COMBINED_80C_SECTIONS = ("80C", "80CCC", "80CCD")
_CAP_80C_COMBINED = 150_000


def _check_assessment_year(
    facts: ExtractedDocumentFacts, expected: Optional[str]
) -> list[ExtractionWarning]:
    if not expected or not facts.assessment_year or facts.assessment_year == expected:
        return []
    return [ExtractionWarning(
        code="WRONG_AY",
        message=(
            f"Form 16 appears to be for AY {facts.assessment_year}, not AY {expected}. "
            "Please verify you have uploaded the correct year's Form 16."
        ),
    )]


def _check_deduction_caps(facts: ExtractedDocumentFacts) -> list[ExtractionWarning]:
    warnings: list[ExtractionWarning] = []
    for section, amount in facts.deductions.items():
        cap = _SECTION_CAPS.get(section)
        if cap is not None and amount > cap:
            warnings.append(ExtractionWarning(
                code="DEDUCTION_ABOVE_CAP",
                message=(
                    f"Section {section} amount ₹{amount:,.0f} exceeds the statutory "
                    f"maximum of ₹{cap:,.0f}. Only ₹{cap:,.0f} is deductible."
                ),
            ))

    combined = sum(facts.deductions.get(s, 0.0) for s in _COMBINED_80C_SECTIONS)
    claimed = [s for s in _COMBINED_80C_SECTIONS if s in facts.deductions]
    if len(claimed) > 1 and combined > _CAP_80C_COMBINED:
        warnings.append(ExtractionWarning(
            code="DEDUCTION_ABOVE_CAP",
            message=(
                f"Sections {', '.join(claimed)} together claim ₹{combined:,.0f}; "
                f"their combined ceiling is ₹{_CAP_80C_COMBINED:,.0f}."
            ),
        ))
    return warnings


def validate_extracted_facts(
    facts: ExtractedDocumentFacts,
    expected_assessment_year: Optional[str] = None,
) -> list[ExtractionWarning]:
    """
    Collect every soft warning for one set of extracted facts.

    Args:
        facts: Output of extract_form16_fields().
        expected_assessment_year: The AY the caller is filing for (YYYY-YY).
            None skips the year check.

    Returns:
        List of warnings, empty when nothing looks off.
    """
    warnings: list[ExtractionWarning] = []

    # ---- 1. Assessment year -------------------------------------------------
    warnings.extend(_check_assessment_year(facts, expected_assessment_year))

    # ---- 2. Statutory caps --------------------------------------------------
    warnings.extend(_check_deduction_caps(facts))

    # ---- 3. TDS vs gross salary ---------------------------------------------
    if (
        facts.tds_deducted is not None
        and facts.gross_salary is not None
        and facts.tds_deducted > facts.gross_salary
    ):
        warnings.append(ExtractionWarning(
            code="TDS_EXCEEDS_GROSS",
            message=(
                "The tax deducted at source is larger than the gross salary. "
                "One of the two values was probably misread; please check both."
            ),
        ))

    # ---- 4. PAN -------------------------------------------------------------
    if facts.pan is None:
        warnings.append(ExtractionWarning(
            code="PAN_MISSING",
            message="Employee PAN could not be found in the document. Please enter it manually.",
        ))

    # ---- 5. Gross salary ----------------------------------------------------
    if facts.gross_salary is None:
        warnings.append(ExtractionWarning(
            code="GROSS_SALARY_MISSING",
            message=(
                "Gross salary could not be read from the document, so no tax "
                "comparison was computed. Please enter it manually."
            ),
        ))

    if warnings:
        # Codes and count only
        logger.info(
            "Extraction validation produced %d warning(s): %s",
            len(warnings),
            ",".join(sorted({w.code for w in warnings})),
        )
    return warnings
