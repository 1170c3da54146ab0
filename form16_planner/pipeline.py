"""
pipeline.py — Form16Pipeline: one uploaded Form 16 → tax comparison + suggestions.

Flow for every document:
  1. Reject oversized input                       (FILE_TOO_LARGE)
  2. Acquire text: pdfplumber, OCR fallback       (TextAcquisitionService)
  3. Extract fields                               (extract_form16_fields)
  4. Soft validation warnings                     (validate_extracted_facts)
  5. Compare regimes + suggestions, only when gross salary was found
  6. Build the records handed to persistence      (income source, investments,
                                                   tax calculation)
  7. Hand the result to the optional ResultSink

Storage and persistence are collaborators behind the two Protocols below.
A classified failure never raises out of process(): it comes back as
ProcessingResult(success=False) with a remediation message.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Optional, Protocol

from form16_planner.agents.evaluator_agent.optimizer import generate_tax_suggestions
from form16_planner.agents.evaluator_agent.schemas import UserTaxProfile
from form16_planner.agents.evaluator_agent.tax_engine import compare_regimes
from form16_planner.agents.input_agent.field_extractor import extract_form16_fields
from form16_planner.agents.input_agent.schemas import (
    FAILURE_MESSAGES,
    DocumentProcessingError,
    ExtractedDocumentFacts,
    ExtractionMethod,
    FailureReason,
)
from form16_planner.agents.input_agent.text_acquisition import TextAcquisitionService
from form16_planner.agents.input_agent.validator import validate_extracted_facts
from form16_planner.schemas import (
    DocumentRecord,
    DocumentStatus,
    IncomeSourceRecord,
    InvestmentRecord,
    ProcessingResult,
    TaxCalculationRecord,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Collaborator interfaces
# ---------------------------------------------------------------------------

class DocumentSource(Protocol):
    """Resolves an opaque storage reference to the uploaded bytes."""

    async def fetch(self, reference: str) -> bytes: ...


class ResultSink(Protocol):
    """Persists one processing result (document status + derived records)."""

    async def save(self, result: ProcessingResult) -> None: ...


# ---------------------------------------------------------------------------
# Record builders
# ---------------------------------------------------------------------------

def build_investment_records(
    deductions: dict[str, float], assessment_year: str
) -> list[InvestmentRecord]:
    """One InvestmentRecord per claimed section, in extraction order."""
    return [
        InvestmentRecord(
            section=section,
            type=f"{section} Investment",
            amount=amount,
            assessment_year=assessment_year,
            description=f"Deduction under section {section}",
        )
        for section, amount in deductions.items()
        if amount > 0
    ]


def _failed(document: DocumentRecord, reason: FailureReason) -> ProcessingResult:
    failed_doc = document.model_copy(update={
        "status": DocumentStatus.failed,
        "processed_at": datetime.now(timezone.utc),
        "processing_error": reason.value,
    })
    return ProcessingResult(
        success=False,
        document=failed_doc,
        error=FAILURE_MESSAGES[reason],
        failure_reason=reason,
    )


# ---------------------------------------------------------------------------
# Form16Pipeline
# ---------------------------------------------------------------------------

class Form16Pipeline:
    """
    End-to-end "extract and compute" for one document at a time.

    Stateless apart from its collaborators; the OCR limiter inside the
    acquisition service is the only object shared between concurrent calls.
    """

    def __init__(
        self,
        acquisition: TextAcquisitionService,
        *,
        max_file_size_bytes: int,
        default_assessment_year: str,
        source: Optional[DocumentSource] = None,
        sink: Optional[ResultSink] = None,
    ) -> None:
        self.acquisition = acquisition
        self.max_file_size_bytes = max_file_size_bytes
        self.default_assessment_year = default_assessment_year
        self.source = source
        self.sink = sink

    async def process_reference(
        self,
        reference: str,
        document: Optional[DocumentRecord] = None,
        profile: Optional[UserTaxProfile] = None,
        today: Optional[date] = None,
    ) -> ProcessingResult:
        """
        Fetch the document behind a storage reference, then process() it.

        Raises:
            ValueError: reference is empty (rejected before any work).
            RuntimeError: no DocumentSource was configured.
        """
        if not reference or not reference.strip():
            raise ValueError("document reference must not be empty")
        if self.source is None:
            raise RuntimeError("Form16Pipeline has no DocumentSource configured")

        document = document or DocumentRecord()
        try:
            data = await self.source.fetch(reference)
        except Exception as exc:
            logger.error("Document fetch failed: %s", exc, exc_info=True)
            result = _failed(document, FailureReason.UNKNOWN)
            await self._save(result)
            return result

        return await self.process(data, document=document, profile=profile, today=today)

    async def process(
        self,
        data: bytes,
        document: Optional[DocumentRecord] = None,
        profile: Optional[UserTaxProfile] = None,
        today: Optional[date] = None,
    ) -> ProcessingResult:
        document = document or DocumentRecord()

        try:
            # Step 1: size gate, before any parsing
            if len(data) > self.max_file_size_bytes:
                raise DocumentProcessingError(
                    FailureReason.FILE_TOO_LARGE,
                    f"{len(data)} bytes > {self.max_file_size_bytes}",
                )

            # Step 2–3: text, then fields
            acquired = await self.acquisition.acquire(data)
            facts = extract_form16_fields(acquired.text)
            result = self._compute(document, facts, acquired.method, profile, today)

        except DocumentProcessingError as exc:
            logger.warning("Form 16 processing failed reason=%s", exc.reason.value)
            result = _failed(document, exc.reason)

        except Exception as exc:
            logger.error("Unexpected error processing Form 16: %s", exc, exc_info=True)
            result = _failed(document, FailureReason.UNKNOWN)

        await self._save(result)
        return result

    # ------------------------------------------------------------------ #
    # internals                                                           #
    # ------------------------------------------------------------------ #

    def _compute(
        self,
        document: DocumentRecord,
        facts: ExtractedDocumentFacts,
        method: ExtractionMethod,
        profile: Optional[UserTaxProfile],
        today: Optional[date],
    ) -> ProcessingResult:
        # Step 4: soft warnings against the year the user filed under
        warnings = validate_extracted_facts(facts, document.assessment_year)

        assessment_year = (
            facts.assessment_year
            or document.assessment_year
            or self.default_assessment_year
        )

        comparison = None
        suggestions = []
        income_sources: list[IncomeSourceRecord] = []
        tax_calculation = None

        # Step 5–6: computation needs a gross salary; everything else is optional
        if facts.gross_salary is not None:
            comparison = compare_regimes(facts.gross_salary, facts.deductions)
            suggestions = generate_tax_suggestions(
                facts.gross_salary,
                facts.deductions,
                assessment_year,
                profile=profile,
                today=today,
            )
            income_sources.append(IncomeSourceRecord(
                amount=facts.gross_salary,
                assessment_year=assessment_year,
            ))
            tds = facts.tds_deducted or 0.0
            tax_calculation = TaxCalculationRecord(
                assessment_year=assessment_year,
                gross_income=facts.gross_salary,
                total_deductions=comparison.old_regime.total_deductions,
                taxable_income=comparison.old_regime.taxable_income,
                old_regime_tax=comparison.old_regime.total_tax,
                new_regime_tax=comparison.new_regime.total_tax,
                tds_deducted=tds,
                refund_amount=tds - comparison.new_regime.total_tax,
            )

        investments = build_investment_records(facts.deductions, assessment_year)

        completed_doc = document.model_copy(update={
            "status": DocumentStatus.completed,
            "processed_at": datetime.now(timezone.utc),
            "processing_error": None,
        })

        logger.info(
            "Form 16 processed: fields=%d sections=%d suggestions=%d warnings=%d computed=%s",
            facts.found_field_count,
            len(facts.deductions),
            len(suggestions),
            len(warnings),
            comparison is not None,
        )
        return ProcessingResult(
            success=True,
            document=completed_doc,
            extracted_data=facts,
            extraction_method=method,
            comparison=comparison,
            suggestions=suggestions,
            income_sources=income_sources,
            investments=investments,
            tax_calculation=tax_calculation,
            warnings=warnings,
        )

    async def _save(self, result: ProcessingResult) -> None:
        if self.sink is not None:
            await self.sink.save(result)


__all__ = [
    "DocumentSource",
    "ResultSink",
    "Form16Pipeline",
    "build_investment_records",
]
