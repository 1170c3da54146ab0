"""
text_acquisition.py — raw PDF bytes → plain-text transcript.

Extraction Strategy
-------------------
Step 1 — pdfplumber (text-based PDFs): extracts the embedded text layer.
Fast and lossless for digital Form 16s produced by payroll software and
TRACES. Password-protected and structurally broken PDFs fail HERE with a
classified error; they never fall through to OCR.

Step 2 — image-based heuristic: decides whether the text layer is usable.

Step 3 — OCRService (scanned PDFs): rasterize + Tesseract, bounded by the
shared limiter and the OCR time budget.
"""
from __future__ import annotations

import asyncio
import io
import logging
import re

from pdfminer.pdfdocument import PDFEncryptionError, PDFPasswordIncorrect
from pdfminer.psparser import PSException

from form16_planner.agents.input_agent.ocr_service import OCRService
from form16_planner.agents.input_agent.schemas import (
    AcquiredText,
    DocumentProcessingError,
    ExtractionMethod,
    FailureReason,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Image-based heuristic thresholds
# ---------------------------------------------------------------------------

_MIN_TEXT_CHARS = 50          # Below this → always OCR
_LOW_DENSITY_CHARS = 200      # Short text ...
_LOW_DENSITY_WORDS = 20       # ... with few words and no anchor → OCR

# A short transcript that still names one of these is a real (if terse) Form 16.
_FORM16_ANCHORS: tuple[re.Pattern, ...] = (
    re.compile(r"form\s*(?:no\.?\s*)?16", re.IGNORECASE),
    re.compile(r"\bpan\s*:?\s*[A-Z0-9]", re.IGNORECASE),
    re.compile(r"tds\s*deducted", re.IGNORECASE),
    re.compile(r"assessment\s*year", re.IGNORECASE),
    re.compile(r"gross\s*salary", re.IGNORECASE),
    re.compile(r"taxable\s*income", re.IGNORECASE),
)


def is_image_based(text: str) -> bool:
    """
    Return True when the text layer is too thin to extract fields from.

    Minimal text always triggers OCR. Low-density text triggers OCR only when
    it carries none of the Form 16 anchors, so a short but genuine transcript
    is not sent through the slow path.
    """
    clean = re.sub(r"\s+", " ", text).strip()
    if len(clean) < _MIN_TEXT_CHARS:
        return True
    low_density = len(clean) < _LOW_DENSITY_CHARS and len(clean.split(" ")) < _LOW_DENSITY_WORDS
    if not low_density:
        return False
    return not any(p.search(clean) for p in _FORM16_ANCHORS)


def _causes(exc: BaseException):
    """Yield exc and everything it wraps (pdfplumber wraps pdfminer errors)."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        current = stack.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        stack.extend(a for a in current.args if isinstance(a, BaseException))
        for linked in (current.__cause__, current.__context__):
            if linked is not None:
                stack.append(linked)


def classify_pdf_error(exc: BaseException) -> FailureReason:
    """Map a pdfplumber/pdfminer exception to a failure reason."""
    causes = list(_causes(exc))
    if any(isinstance(c, (PDFPasswordIncorrect, PDFEncryptionError)) for c in causes):
        return FailureReason.PDF_PASSWORD_PROTECTED
    if any("password" in str(c).lower() or "encrypt" in str(c).lower() for c in causes):
        return FailureReason.PDF_PASSWORD_PROTECTED
    return FailureReason.PDF_CORRUPTED


def extract_text_layer(data: bytes) -> tuple[str, int]:
    """
    Extract the embedded text layer from every page with pdfplumber.

    Returns:
        (text, page_count)

    Raises:
        DocumentProcessingError: PDF_PASSWORD_PROTECTED or PDF_CORRUPTED.
    """
    import pdfplumber
    from pdfplumber.utils.exceptions import MalformedPDFException, PdfminerException

    try:
        parts: list[str] = []
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            page_count = len(pdf.pages)
            for page in pdf.pages:
                text = page.extract_text(x_tolerance=3, y_tolerance=3)
                if text:
                    parts.append(text)
    except (PdfminerException, MalformedPDFException, PSException, PDFEncryptionError) as exc:
        reason = classify_pdf_error(exc)
        logger.info("Text-layer extraction rejected document reason=%s", reason.value)
        raise DocumentProcessingError(reason, str(exc) or type(exc).__name__) from exc

    combined = "\n".join(parts)
    logger.debug(
        "extract_text_layer: extracted %d chars from %d page(s)", len(combined), page_count
    )
    return combined, page_count


class TextAcquisitionService:
    """Text layer first, OCR only for image-based documents."""

    def __init__(self, ocr: OCRService) -> None:
        self.ocr = ocr

    async def acquire(self, data: bytes) -> AcquiredText:
        if not data:
            raise DocumentProcessingError(FailureReason.PDF_CORRUPTED, "empty upload")

        # ------------------------------------------------------------------ #
        # Step 1: pdfplumber — fails fast on password / corruption            #
        # ------------------------------------------------------------------ #
        text, page_count = await asyncio.to_thread(extract_text_layer, data)

        # ------------------------------------------------------------------ #
        # Step 2: usable text layer → done                                    #
        # ------------------------------------------------------------------ #
        if not is_image_based(text):
            logger.info(
                "Text acquisition method=%s pages=%d chars=%d",
                ExtractionMethod.pdfplumber.value,
                page_count,
                len(text),
            )
            return AcquiredText(
                text=text, method=ExtractionMethod.pdfplumber, page_count=page_count
            )

        # ------------------------------------------------------------------ #
        # Step 3: image-based → OCR                                           #
        # ------------------------------------------------------------------ #
        logger.info(
            "Image-based PDF detected (%d chars in text layer) — falling back to Tesseract OCR",
            len(text.strip()),
        )
        return await self.ocr.extract_text(data)
