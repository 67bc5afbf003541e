"""Source extractors."""

from .base import BaseExtractor, ExtractionResult
from .database_extractor import DatabaseExtractor, detect_table_prefix

__all__ = [
    "BaseExtractor",
    "ExtractionResult",
    "DatabaseExtractor",
    "detect_table_prefix",
]
