"""
schemas.py — InputAgent Pydantic v2 data contracts.

Defines:
  - ExtractionMethod, FailureReason enums
  - ExtractedDocumentFacts  (parsed Form 16 fields — consumed by the tax engine)
  - AcquiredText            (text-acquisition output)
  - ExtractionWarning       (soft, non-blocking validation warning)
  - DocumentProcessingError (classified acquisition failure) + FAILURE_MESSAGES

FIELD CONVENTIONS:
  - Every ExtractedDocumentFacts field is optional. None means "not found in
    the document", never zero. Zero defaults belong to the tax engine.
  - deductions only holds sections with a positive matched amount.
"""
from __future__ import annotations

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PAN_REGEX = r"^[A-Z]{5}\d{4}[A-Z]$"
ASSESSMENT_YEAR_REGEX = r"^\d{4}-\d{2}$"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ExtractionMethod(str, Enum):
    pdfplumber = "pdfplumber"
    tesseract = "tesseract"


class FailureReason(str, Enum):
    PDF_PASSWORD_PROTECTED = "PDF_PASSWORD_PROTECTED"
    PDF_CORRUPTED = "PDF_CORRUPTED"
    PROCESSING_TIMEOUT = "PROCESSING_TIMEOUT"
    OCR_FAILURE = "OCR_FAILURE"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    UNKNOWN = "UNKNOWN"


# User-facing remediation hints, keyed by failure reason.
FAILURE_MESSAGES: Dict[FailureReason, str] = {
    FailureReason.PDF_PASSWORD_PROTECTED: (
        "This PDF is password protected. Remove the password protection "
        "(for example by printing it to a new PDF) and upload it again."
    ),
    FailureReason.PDF_CORRUPTED: (
        "This file could not be opened as a PDF. Download a fresh copy of your "
        "Form 16 from your employer or the TRACES portal and try again."
    ),
    FailureReason.PROCESSING_TIMEOUT: (
        "Reading this document took too long. Try a smaller file, or upload "
        "only the pages containing Part B of your Form 16."
    ),
    FailureReason.OCR_FAILURE: (
        "We could not read any text from this scanned document. Upload a "
        "clearer scan (at least 200 dpi, not skewed) or a digitally generated PDF."
    ),
    FailureReason.FILE_TOO_LARGE: (
        "This file is larger than the 50 MB limit. Try a smaller or "
        "compressed copy of your Form 16."
    ),
    FailureReason.UNKNOWN: (
        "We could not read this document. Check that it is a Form 16 PDF "
        "and try uploading it again."
    ),
}


class DocumentProcessingError(Exception):
    """
    Classified failure raised by the text-acquisition layer.

    The reason drives the user-facing message; detail is the technical
    description for logs and never shown to the user.
    """

    def __init__(self, reason: FailureReason, detail: str = "") -> None:
        self.reason = reason
        self.detail = detail or reason.value
        super().__init__(f"{reason.value}: {self.detail}")

    @property
    def user_message(self) -> str:
        return FAILURE_MESSAGES[self.reason]


# ---------------------------------------------------------------------------
# ExtractedDocumentFacts — central extraction contract
# ---------------------------------------------------------------------------

class ExtractedDocumentFacts(BaseModel):
    """
    Fields recovered from one Form 16 document.

    All monetary fields are annual INR amounts and are non-negative.
    frozen=True: the record is built once per processing attempt and then
    only read (by the tax engine and the persistence collaborator).
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    # --- Identity ---
    employer_name: Optional[str] = None
    employer_address: Optional[str] = None
    employee_name: Optional[str] = None
    employee_address: Optional[str] = None
    pan: Optional[str] = Field(default=None, pattern=PAN_REGEX)
    assessment_year: Optional[str] = Field(default=None, pattern=ASSESSMENT_YEAR_REGEX)

    # --- Part B salary computation ---
    gross_salary: Optional[float] = Field(default=None, ge=0)
    total_exemption: Optional[float] = Field(default=None, ge=0)
    standard_deduction: Optional[float] = Field(default=None, ge=0)
    income_chargeable_salaries: Optional[float] = Field(default=None, ge=0)
    gross_total_income: Optional[float] = Field(default=None, ge=0)
    total_deductions: Optional[float] = Field(default=None, ge=0)
    net_taxable_income: Optional[float] = Field(default=None, ge=0)
    net_tax_payable: Optional[float] = Field(default=None, ge=0)
    tds_deducted: Optional[float] = Field(default=None, ge=0)

    # --- Chapter VI-A (plus section 10 exemptions) ---
    deductions: Dict[str, float] = Field(default_factory=dict)

    @field_validator("deductions")
    @classmethod
    def positive_sections_only(cls, value: Dict[str, float]) -> Dict[str, float]:
        """A section appears only when a positive amount was matched."""
        for section, amount in value.items():
            if amount <= 0:
                raise ValueError(f"deduction for section {section} must be positive")
        return value

    @property
    def found_field_count(self) -> int:
        """Number of scalar fields that were found (used for log lines)."""
        return sum(
            1 for name, v in self.model_dump(exclude={"deductions"}).items()
            if v is not None
        )


# ---------------------------------------------------------------------------
# Acquisition / validation outputs
# ---------------------------------------------------------------------------

class AcquiredText(BaseModel):
    """Plain-text transcript and the method that produced it."""
    model_config = ConfigDict(extra="forbid")

    text: str
    method: ExtractionMethod
    page_count: int = 0


class ExtractionWarning(BaseModel):
    """Non-fatal warning from extraction (e.g. wrong assessment year)."""
    code: str
    message: str


__all__ = [
    "PAN_REGEX",
    "ASSESSMENT_YEAR_REGEX",
    "ExtractionMethod",
    "FailureReason",
    "FAILURE_MESSAGES",
    "DocumentProcessingError",
    "ExtractedDocumentFacts",
    "AcquiredText",
    "ExtractionWarning",
]
