"""
main.py — Form 16 planner entry point.

Wires the shared OCR limiter, OCR service, text acquisition and pipeline
from settings, and exposes a small command line for processing one PDF:

    python -m form16_planner.main path/to/form16.pdf --assessment-year 2024-25
"""
import argparse
import asyncio
import logging
from pathlib import Path
from typing import Optional

from form16_planner.agents.evaluator_agent.schemas import UserTaxProfile
from form16_planner.agents.input_agent.ocr_limiter import OCRLimiter
from form16_planner.agents.input_agent.ocr_service import (
    OCRService,
    Pdf2ImageRasterizer,
    TesseractRecognizer,
)
from form16_planner.agents.input_agent.text_acquisition import TextAcquisitionService
from form16_planner.config import Settings, settings
from form16_planner.pipeline import DocumentSource, Form16Pipeline, ResultSink
from form16_planner.schemas import DocumentRecord

# ---------------------------------------------------------------------------
# Logging — configured before anything else
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


def create_pipeline(
    config: Settings = settings,
    *,
    source: Optional[DocumentSource] = None,
    sink: Optional[ResultSink] = None,
) -> Form16Pipeline:
    """
    Build a Form16Pipeline from settings.

    Call once per process: the OCRLimiter created here is the single shared
    concurrency ceiling for every document the pipeline handles.
    """
    limiter = OCRLimiter(capacity=config.ocr_max_concurrency)
    ocr = OCRService(
        limiter,
        rasterizer=Pdf2ImageRasterizer(
            dpi=config.ocr_dpi,
            max_edge_px=config.ocr_max_edge_px,
            jpeg_quality=config.ocr_jpeg_quality,
            poppler_path=config.poppler_path,
        ),
        recognizer=TesseractRecognizer(
            language=config.ocr_language,
            tesseract_cmd=config.tesseract_cmd,
        ),
        max_pages=config.ocr_max_pages,
        timeout_seconds=config.ocr_timeout_seconds,
        max_input_bytes=config.max_file_size_bytes,
    )
    logger.info(
        "Form 16 planner v%s ready (ocr_concurrency=%d, ocr_timeout=%.0fs)",
        config.app_version,
        config.ocr_max_concurrency,
        config.ocr_timeout_seconds,
    )
    return Form16Pipeline(
        TextAcquisitionService(ocr),
        max_file_size_bytes=config.max_file_size_bytes,
        default_assessment_year=config.default_assessment_year,
        source=source,
        sink=sink,
    )


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Extract a Form 16 PDF and compare the old and new tax regimes"
    )
    parser.add_argument("pdf", type=Path, help="Path to the Form 16 PDF")
    parser.add_argument(
        "--assessment-year", default=None,
        help="Assessment year you are filing for (YYYY-YY); enables the wrong-year check",
    )
    parser.add_argument("--age", type=int, default=None, help="Taxpayer age")
    parser.add_argument(
        "--dependent-parents", action="store_true",
        help="You pay health insurance for dependent parents",
    )
    parser.add_argument("--metro", action="store_true", help="You live in a metro city")
    parser.add_argument("--home-loan", action="store_true", help="You repay a home loan")
    parser.add_argument(
        "--risk-profile", choices=["conservative", "moderate", "aggressive"],
        default="moderate",
        help="Investment risk appetite, used to word 80C suggestions",
    )
    args = parser.parse_args()

    profile = UserTaxProfile(
        age=args.age,
        has_dependent_parents=args.dependent_parents,
        is_metro_city=args.metro,
        has_home_loan=args.home_loan,
        risk_profile=args.risk_profile,
    )
    document = DocumentRecord(
        file_name=args.pdf.name,
        assessment_year=args.assessment_year,
    )

    pipeline = create_pipeline()
    result = asyncio.run(
        pipeline.process(args.pdf.read_bytes(), document=document, profile=profile)
    )
    print(result.model_dump_json(indent=2))
    return 0 if result.success else 1


if __name__ == "__main__":
    raise SystemExit(main())
