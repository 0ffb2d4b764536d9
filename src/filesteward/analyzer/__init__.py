"""Analyzer module for pattern, extension and content classification."""

from .analyzer import (
    EXTENSION_DEFAULTS,
    FileAnalysis,
    FileAnalyzer,
    classify_office_file,
    get_extension_category,
)
from .extractors import (
    BaseExtractor,
    DOCXExtractor,
    ExtractionError,
    PDFExtractor,
    extract_text_preview,
)
from .patterns import (
    PatternClassifier,
    PatternMatch,
    SensitivityResult,
    check_sensitivity,
    get_best_match,
    match_patterns,
)

__all__ = [
    "FileAnalyzer",
    "FileAnalysis",
    "EXTENSION_DEFAULTS",
    "get_extension_category",
    "classify_office_file",
    "BaseExtractor",
    "PDFExtractor",
    "DOCXExtractor",
    "ExtractionError",
    "extract_text_preview",
    "PatternClassifier",
    "PatternMatch",
    "SensitivityResult",
    "match_patterns",
    "get_best_match",
    "check_sensitivity",
]
