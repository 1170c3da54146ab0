"""Form 16 extraction and two-regime tax planning (AY 2024-25)."""

__version__ = "0.1.0"
