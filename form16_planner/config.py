"""
config.py — Form 16 planner settings.

Usage:
    from form16_planner.config import settings
    print(settings.ocr_timeout_seconds)

Import directly as a module-level singleton; services receive the values they
need through their constructors so tests can override them per instance.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore any extra env vars
    )

    # --- Upload limits ---
    # Hard ceiling applied before text extraction and again before OCR
    max_file_size_bytes: int = 50 * 1024 * 1024

    # --- OCR ---
    ocr_max_concurrency: int = 2
    ocr_timeout_seconds: float = 300.0
    ocr_max_pages: int = 10
    ocr_dpi: int = 200
    ocr_max_edge_px: int = 1500
    ocr_jpeg_quality: int = 85
    ocr_language: str = "eng"

    # Leave empty to rely on the system PATH (brew/apt installs)
    tesseract_cmd: str = ""
    poppler_path: str = ""

    # --- Tax defaults ---
    # Used when neither the document nor the caller supplies an assessment year
    default_assessment_year: str = "2024-25"

    # --- Application ---
    debug: bool = False
    app_version: str = "0.1.0"


# Module-level singleton — import this throughout the codebase
settings = Settings()
