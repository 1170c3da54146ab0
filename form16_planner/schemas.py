"""
schemas.py — processing-pipeline Pydantic v2 data contracts.

Defines:
  - DocumentStatus, DocumentRecord   (one uploaded Form 16 and its lifecycle)
  - IncomeSourceRecord               (salary income derived from the document)
  - InvestmentRecord                 (one per extracted deduction section)
  - TaxCalculationRecord             (regime totals + refund, for persistence)
  - ProcessingResult                 (caller-facing result of Form16Pipeline.process)

These are plain records handed to the persistence collaborator; nothing in
this package knows how they are stored.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from form16_planner.agents.evaluator_agent.schemas import RegimeComparison, Suggestion
from form16_planner.agents.input_agent.schemas import (
    ASSESSMENT_YEAR_REGEX,
    ExtractedDocumentFacts,
    ExtractionMethod,
    ExtractionWarning,
    FailureReason,
)


class DocumentStatus(str, Enum):
    processing = "processing"
    completed = "completed"
    failed = "failed"


# ---------------------------------------------------------------------------
# Persistence hand-off records
# ---------------------------------------------------------------------------

class DocumentRecord(BaseModel):
    """Metadata of one uploaded document. assessment_year is the year the user filed it under."""
    model_config = ConfigDict(extra="forbid")

    file_name: Optional[str] = None
    assessment_year: Optional[str] = Field(default=None, pattern=ASSESSMENT_YEAR_REGEX)
    status: DocumentStatus = DocumentStatus.processing
    processed_at: Optional[datetime] = None
    processing_error: Optional[str] = None     # FailureReason value, never user text


class IncomeSourceRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source: Literal["salary"] = "salary"
    amount: float = Field(ge=0)
    assessment_year: str = Field(pattern=ASSESSMENT_YEAR_REGEX)
    description: str = "Salary income from Form 16"


class InvestmentRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    section: str
    type: str
    amount: float = Field(gt=0)
    assessment_year: str = Field(pattern=ASSESSMENT_YEAR_REGEX)
    description: str


class TaxCalculationRecord(BaseModel):
    """
    Snapshot of one regime comparison.

    taxable_income / total_deductions are the OLD regime figures.
    refund_amount = tds_deducted - new_regime_tax; negative means tax is due.
    """
    model_config = ConfigDict(extra="forbid")

    assessment_year: str = Field(pattern=ASSESSMENT_YEAR_REGEX)
    gross_income: float
    total_deductions: float
    taxable_income: float
    old_regime_tax: float
    new_regime_tax: float
    tds_deducted: float = 0
    refund_amount: float


# ---------------------------------------------------------------------------
# ProcessingResult — caller-facing output
# ---------------------------------------------------------------------------

class ProcessingResult(BaseModel):
    """
    Result of one "extract and compute" run.

    success=False carries failure_reason and a remediation-oriented error
    message; every other payload field is then empty.
    """
    model_config = ConfigDict(extra="forbid")

    success: bool
    document: DocumentRecord
    extracted_data: Optional[ExtractedDocumentFacts] = None
    extraction_method: Optional[ExtractionMethod] = None

    comparison: Optional[RegimeComparison] = None
    suggestions: List[Suggestion] = []
    income_sources: List[IncomeSourceRecord] = []
    investments: List[InvestmentRecord] = []
    tax_calculation: Optional[TaxCalculationRecord] = None
    warnings: List[ExtractionWarning] = []

    error: Optional[str] = None
    failure_reason: Optional[FailureReason] = None


__all__ = [
    "DocumentStatus",
    "DocumentRecord",
    "IncomeSourceRecord",
    "InvestmentRecord",
    "TaxCalculationRecord",
    "ProcessingResult",
]
