"""
ocr_service.py — Tesseract OCR path for image-based Form 16 PDFs.

Entry point: OCRService.extract_text(data: bytes) -> AcquiredText

Job lifecycle:
  1. Reject input above the size ceiling (FILE_TOO_LARGE) — no work done.
  2. Wait for a slot on the injected OCRLimiter.
  3. Create a job-specific temp directory, stage the PDF, rasterize at most
     max_pages pages, OCR them one by one.
  4. Remove the temp directory on every exit path. A cancelled job first
     waits for its in-flight native call, so the slot and the directory are
     never released under a running pdftoppm / tesseract.

The time budget is a CancellationToken with a deadline. The page loops check
it before each unit of work; native calls (pdftoppm, tesseract) receive the
remaining budget as their own timeout so nothing outlives the deadline for
long.

NOTE: pytesseract / pdf2image are imported LAZILY inside the default
      rasterizer and recognizer to avoid import failure if Tesseract or
      poppler is missing from the deployment environment.
"""
from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Protocol

from form16_planner.agents.input_agent.ocr_limiter import OCRLimiter
from form16_planner.agents.input_agent.schemas import (
    AcquiredText,
    DocumentProcessingError,
    ExtractionMethod,
    FailureReason,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Defaults (overridden from settings by main.create_pipeline)
# ---------------------------------------------------------------------------

MAX_OCR_INPUT_BYTES = 50 * 1024 * 1024
MAX_OCR_PAGES = 10
OCR_TIMEOUT_SECONDS = 5 * 60
RASTER_DPI = 200
RASTER_MAX_EDGE_PX = 1500
RASTER_JPEG_QUALITY = 85

OCR_CONFIG = "--oem 3 --psm 6"

_JOB_DIR_PREFIX = "form16-ocr-"
_STAGED_PDF_NAME = "document.pdf"


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------

class OperationCancelled(Exception):
    """Raised at a checkpoint once the token is cancelled or past its deadline."""


class CancellationToken:
    """
    Shared abort signal for one OCR job.

    Thread-safe: checked from worker threads, cancelled from the event loop.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.expired

    def remaining(self) -> Optional[float]:
        """Seconds left in the budget (None = unbounded, 0 once cancelled)."""
        if self._event.is_set():
            return 0.0
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise OperationCancelled("OCR operation was cancelled")


# ---------------------------------------------------------------------------
# Scoped job directory
# ---------------------------------------------------------------------------

@contextmanager
def job_workspace(root: Optional[Path] = None) -> Iterator[Path]:
    """
    Create an isolated temp directory for one OCR job and remove the whole
    tree on exit, whatever the outcome. OCR tools leave stray page images
    behind on crash otherwise.
    """
    job_dir = Path(tempfile.mkdtemp(prefix=_JOB_DIR_PREFIX, dir=root))
    try:
        yield job_dir
    finally:
        shutil.rmtree(job_dir, ignore_errors=True)
        if job_dir.exists():
            logger.warning("Failed to clean up OCR job directory %s", job_dir)


# ---------------------------------------------------------------------------
# Collaborators — page rasterizer and page recognizer
# ---------------------------------------------------------------------------

class PageRasterizer(Protocol):
    def count_pages(self, pdf_path: Path, timeout: Optional[float]) -> int: ...

    def rasterize(
        self, pdf_path: Path, page_number: int, output_dir: Path, timeout: Optional[float]
    ) -> Path: ...


class PageRecognizer(Protocol):
    def recognize(self, image_path: Path, timeout: Optional[float]) -> str: ...


def _native_timeout(timeout: Optional[float]) -> int:
    """pdf2image / pytesseract take whole seconds; 0 would mean 'no timeout'."""
    if timeout is None:
        return 0
    return max(1, int(timeout + 0.999))


class Pdf2ImageRasterizer:
    """Renders single PDF pages to JPEG files with poppler (pdf2image)."""

    def __init__(
        self,
        dpi: int = RASTER_DPI,
        max_edge_px: int = RASTER_MAX_EDGE_PX,
        jpeg_quality: int = RASTER_JPEG_QUALITY,
        poppler_path: Optional[str] = None,
    ) -> None:
        self.dpi = dpi
        self.max_edge_px = max_edge_px
        self.jpeg_quality = jpeg_quality
        self.poppler_path = poppler_path or None

    def count_pages(self, pdf_path: Path, timeout: Optional[float]) -> int:
        from pdf2image import pdfinfo_from_path

        info = pdfinfo_from_path(
            str(pdf_path),
            poppler_path=self.poppler_path,
            timeout=_native_timeout(timeout) or None,
        )
        return int(info.get("Pages", 0))

    def rasterize(
        self, pdf_path: Path, page_number: int, output_dir: Path, timeout: Optional[float]
    ) -> Path:
        from pdf2image import convert_from_path

        paths = convert_from_path(
            str(pdf_path),
            dpi=self.dpi,
            first_page=page_number,
            last_page=page_number,
            fmt="jpeg",
            jpegopt={"quality": self.jpeg_quality, "optimize": True, "progressive": False},
            size=self.max_edge_px,   # int → pdftoppm -scale-to: longest edge
            output_folder=str(output_dir),
            output_file=f"page-{page_number:02d}",
            paths_only=True,
            poppler_path=self.poppler_path,
            timeout=_native_timeout(timeout) or None,
        )
        if not paths:
            raise RuntimeError(f"pdftoppm produced no image for page {page_number}")
        return Path(paths[0])


class TesseractRecognizer:
    """Runs Tesseract on one page image via pytesseract."""

    def __init__(
        self,
        language: str = "eng",
        config: str = OCR_CONFIG,
        tesseract_cmd: Optional[str] = None,
    ) -> None:
        self.language = language
        self.config = config
        self.tesseract_cmd = tesseract_cmd or None

    def recognize(self, image_path: Path, timeout: Optional[float]) -> str:
        import pytesseract
        from PIL import Image

        if self.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd

        with Image.open(image_path) as img:
            return pytesseract.image_to_string(
                img,
                lang=self.language,
                config=self.config,
                timeout=_native_timeout(timeout),
            )


# ---------------------------------------------------------------------------
# OCR service
# ---------------------------------------------------------------------------

class OCRService:
    """
    Bounded, time-limited OCR over the first pages of a PDF.

    All collaborators are injected; the defaults use poppler + Tesseract.
    """

    def __init__(
        self,
        limiter: OCRLimiter,
        *,
        rasterizer: Optional[PageRasterizer] = None,
        recognizer: Optional[PageRecognizer] = None,
        max_pages: int = MAX_OCR_PAGES,
        timeout_seconds: float = OCR_TIMEOUT_SECONDS,
        max_input_bytes: int = MAX_OCR_INPUT_BYTES,
        temp_root: Optional[Path] = None,
    ) -> None:
        self.limiter = limiter
        self.rasterizer = rasterizer or Pdf2ImageRasterizer()
        self.recognizer = recognizer or TesseractRecognizer()
        self.max_pages = max_pages
        self.timeout_seconds = timeout_seconds
        self.max_input_bytes = max_input_bytes
        self.temp_root = temp_root

    async def extract_text(self, data: bytes) -> AcquiredText:
        """
        OCR the first max_pages pages of a PDF.

        Raises:
            DocumentProcessingError: FILE_TOO_LARGE, OCR_FAILURE or
                PROCESSING_TIMEOUT. Terminal for the job; do not retry.
        """
        if len(data) > self.max_input_bytes:
            raise DocumentProcessingError(
                FailureReason.FILE_TOO_LARGE,
                f"{len(data)} bytes exceeds OCR limit of {self.max_input_bytes}",
            )

        async with self.limiter:
            token = CancellationToken(self.timeout_seconds)
            started = time.monotonic()
            try:
                with job_workspace(self.temp_root) as job_dir:
                    text, pages = await self._run_job(data, job_dir, token)
            except OperationCancelled as exc:
                raise DocumentProcessingError(
                    FailureReason.PROCESSING_TIMEOUT,
                    f"OCR exceeded {self.timeout_seconds:.0f}s budget",
                ) from exc

        logger.info(
            "OCR complete pages=%d chars=%d elapsed=%.1fs",
            pages,
            len(text),
            time.monotonic() - started,
        )
        return AcquiredText(text=text, method=ExtractionMethod.tesseract, page_count=pages)

    async def _in_worker(self, token: CancellationToken, func, *args):
        """
        Run one blocking call (file write, pdftoppm, tesseract) in a worker
        thread.

        If the caller is cancelled meanwhile, the token is cancelled and the
        worker is drained before CancelledError propagates: the job directory
        and the limiter slot are only released once no native call is running.
        """
        future = asyncio.ensure_future(asyncio.to_thread(func, *args))
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            token.cancel()
            while not future.done():
                try:
                    await asyncio.wait({future})
                except asyncio.CancelledError:
                    continue
            if not future.cancelled() and future.exception() is not None:
                logger.debug("Worker call failed after cancellation: %s", future.exception())
            raise

    async def _run_job(
        self, data: bytes, job_dir: Path, token: CancellationToken
    ) -> tuple[str, int]:
        pdf_path = job_dir / _STAGED_PDF_NAME
        await self._in_worker(token, pdf_path.write_bytes, data)
        token.raise_if_cancelled()

        # ---- Rasterize (page count failure → nothing to OCR) ------------------
        try:
            page_count = await self._in_worker(
                token, self.rasterizer.count_pages, pdf_path, token.remaining()
            )
        except Exception as exc:
            token.raise_if_cancelled()
            raise DocumentProcessingError(
                FailureReason.OCR_FAILURE, f"could not read page count: {exc}"
            ) from exc

        images: list[tuple[int, Path]] = []
        for page_number in range(1, min(page_count, self.max_pages) + 1):
            token.raise_if_cancelled()
            try:
                image_path = await self._in_worker(
                    token,
                    self.rasterizer.rasterize,
                    pdf_path,
                    page_number,
                    job_dir,
                    token.remaining(),
                )
            except Exception as exc:
                logger.warning("Page %d conversion failed: %s", page_number, exc)
                continue
            images.append((page_number, image_path))

        if not images:
            token.raise_if_cancelled()
            raise DocumentProcessingError(
                FailureReason.OCR_FAILURE, "no pages could be converted for OCR"
            )

        # ---- Recognize, one page at a time -------------------------------------
        parts: list[str] = []
        for page_number, image_path in images:
            token.raise_if_cancelled()
            try:
                page_text = await self._in_worker(
                    token, self.recognizer.recognize, image_path, token.remaining()
                )
            except Exception as exc:
                logger.warning("OCR failed for page %d: %s", page_number, exc)
                continue
            if page_text and page_text.strip():
                parts.append(f"Page {page_number}:\n{page_text}\n")

        if not parts:
            token.raise_if_cancelled()
            raise DocumentProcessingError(
                FailureReason.OCR_FAILURE,
                f"no text extracted from {len(images)} page(s)",
            )

        return "\n".join(parts), len(images)
