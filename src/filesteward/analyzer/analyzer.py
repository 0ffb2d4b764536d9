"""Layered file analysis: patterns, extension, content, then the classifier."""

import errno
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from ..classifier.classifier import BaseClassifier, ClassificationContext
from ..config.models import AnalysisSettings
from ..models import AnalysisMethod, ConfidenceLevel, FileCategory, PdfMetadata
from ..utils.logging import get_logger
from .extractors import DOCXExtractor, ExtractionError, PDFExtractor, extract_text_preview
from .patterns import PatternClassifier, PatternMatch, SensitivityResult

if TYPE_CHECKING:
    from ..watcher.destination import DestinationResolver

logger = get_logger(__name__)

HIGH = ConfidenceLevel.HIGH
MEDIUM = ConfidenceLevel.MEDIUM
LOW = ConfidenceLevel.LOW

EXTENSION_DEFAULTS: dict[str, tuple[FileCategory, ConfidenceLevel]] = {
    # Office documents
    "xlsx": (FileCategory.WORK, MEDIUM),
    "xls": (FileCategory.WORK, MEDIUM),
    "pptx": (FileCategory.WORK, HIGH),
    "ppt": (FileCategory.WORK, HIGH),
    "docx": (FileCategory.WORK, LOW),
    "doc": (FileCategory.WORK, LOW),
    # PDFs can be anything
    "pdf": (FileCategory.MISC, LOW),
    # Installers
    "exe": (FileCategory.INSTALLERS, HIGH),
    "msi": (FileCategory.INSTALLERS, HIGH),
    "dmg": (FileCategory.INSTALLERS, HIGH),
    "deb": (FileCategory.INSTALLERS, HIGH),
    "pkg": (FileCategory.INSTALLERS, HIGH),
    "appimage": (FileCategory.INSTALLERS, HIGH),
    # Archives
    "zip": (FileCategory.ARCHIVES, HIGH),
    "tar": (FileCategory.ARCHIVES, HIGH),
    "gz": (FileCategory.ARCHIVES, HIGH),
    "7z": (FileCategory.ARCHIVES, HIGH),
    "rar": (FileCategory.ARCHIVES, HIGH),
    # Code
    "ts": (FileCategory.CODE, HIGH),
    "js": (FileCategory.CODE, HIGH),
    "py": (FileCategory.CODE, HIGH),
    "rs": (FileCategory.CODE, HIGH),
    "go": (FileCategory.CODE, HIGH),
    "java": (FileCategory.CODE, HIGH),
    "json": (FileCategory.CODE, MEDIUM),
    "yaml": (FileCategory.CODE, MEDIUM),
    "yml": (FileCategory.CODE, MEDIUM),
    "xml": (FileCategory.CODE, MEDIUM),
    # Images
    "jpg": (FileCategory.MEDIA, MEDIUM),
    "jpeg": (FileCategory.MEDIA, MEDIUM),
    "png": (FileCategory.MEDIA, MEDIUM),
    "gif": (FileCategory.MEDIA, HIGH),
    "webp": (FileCategory.MEDIA, HIGH),
    "svg": (FileCategory.MEDIA, HIGH),
    "bmp": (FileCategory.MEDIA, HIGH),
    # Video
    "mp4": (FileCategory.MEDIA, HIGH),
    "mov": (FileCategory.MEDIA, HIGH),
    "avi": (FileCategory.MEDIA, HIGH),
    "mkv": (FileCategory.MEDIA, HIGH),
    "webm": (FileCategory.MEDIA, HIGH),
    # Audio
    "mp3": (FileCategory.MEDIA, HIGH),
    "wav": (FileCategory.MEDIA, HIGH),
    "flac": (FileCategory.MEDIA, HIGH),
    "ogg": (FileCategory.MEDIA, HIGH),
    # Text
    "txt": (FileCategory.MISC, LOW),
    "md": (FileCategory.MISC, LOW),
    "rtf": (FileCategory.MISC, LOW),
}

OFFICE_EXTENSIONS = {"xlsx", "xls", "pptx", "ppt", "docx", "doc"}

# Keyword overrides for Office files, checked in order
_OFFICE_KEYWORDS: list[tuple[str, FileCategory, ConfidenceLevel]] = [
    (r"budget|expense|invoice|receipt|tax", FileCategory.FINANCES, HIGH),
    (r"resume|cv|letter|application", FileCategory.PERSONAL, HIGH),
    (r"manual|guide|handbook|template", FileCategory.REFERENCE, MEDIUM),
    (r"meeting|project|client|report|presentation", FileCategory.WORK, HIGH),
]


def get_extension_category(extension: str) -> tuple[FileCategory, ConfidenceLevel] | None:
    """Look up the default category for an extension (with or without the dot)."""
    return EXTENSION_DEFAULTS.get(extension.lower().lstrip("."))


def classify_office_file(filename: str, extension: str) -> tuple[FileCategory, ConfidenceLevel]:
    """
    Refine the extension default of an Office file by filename keywords.

    Office formats are zip containers, so the name is the cheapest signal.
    """
    for keywords, category, confidence in _OFFICE_KEYWORDS:
        if re.search(keywords, filename, re.IGNORECASE):
            return category, confidence
    return get_extension_category(extension) or (FileCategory.MISC, LOW)


@dataclass
class FileAnalysis:
    """Classification of one stable file, consumed by the proposal service."""

    path: str
    filename: str
    extension: str
    size: int
    mtime: float

    suggested_category: FileCategory
    suggested_destination: str
    confidence: ConfidenceLevel
    reasoning: str
    analysis_method: AnalysisMethod

    sensitive: bool = False
    sensitive_reason: str | None = None
    matched_patterns: list[str] = field(default_factory=list)
    content_preview: str | None = None
    pdf_metadata: PdfMetadata | None = None
    analyzed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class _Decision:
    category: FileCategory
    confidence: ConfidenceLevel
    reasoning: str
    method: AnalysisMethod
    matched_patterns: list[str]


def _describe_stat_error(error: OSError) -> str:
    if isinstance(error, FileNotFoundError):
        return "File no longer exists"
    if isinstance(error, PermissionError):
        return "Permission denied - cannot read file"
    if error.errno == errno.EBUSY:
        return "File is locked by another process"
    return "Could not analyze file"


class FileAnalyzer:
    """
    Produces a FileAnalysis for a stable file.

    Layers are tried in order, stopping at the first confident answer:

    1. filename patterns (a high-confidence match wins)
    2. extension defaults, with Office files refined by filename keywords
    3. content: PDF text/metadata, DOCX text, or a bounded text preview
    4. the external classifier, compared against the best filename match
    5. the extension default (or misc) at low confidence
    """

    def __init__(
        self,
        resolver: "DestinationResolver",
        settings: AnalysisSettings | None = None,
        classifier: BaseClassifier | None = None,
        patterns: PatternClassifier | None = None,
    ):
        """
        Initialize the analyzer.

        Args:
            resolver: Computes destinations for the chosen category
            settings: Content inspection limits
            classifier: Optional classifier consulted when patterns are inconclusive
            patterns: Pattern tables (defaults to the built-in ones)
        """
        self.resolver = resolver
        self.settings = settings or AnalysisSettings()
        self.classifier = classifier
        self.patterns = patterns or PatternClassifier()
        self._pdf = PDFExtractor()
        self._docx = DOCXExtractor()

    def analyze(self, file_path: str | Path) -> FileAnalysis:
        """
        Analyze a file and return its classification.

        Inaccessible files produce a low-confidence analysis explaining why.

        Raises:
            DestinationError: If no safe destination exists for the category
        """
        path = str(file_path)
        filename = os.path.basename(path)
        extension = os.path.splitext(filename)[1].lower().lstrip(".")

        try:
            stat = os.stat(path)
        except OSError as e:
            category = (get_extension_category(extension) or (FileCategory.MISC, LOW))[0]
            decision = _Decision(
                category, LOW, _describe_stat_error(e), AnalysisMethod.EXTENSION, []
            )
            logger.debug(f"Cannot stat {path}: {e}")
            return self._build(path, 0, datetime.now().timestamp(), decision,
                               self.patterns.sensitivity(filename))

        size, mtime = stat.st_size, stat.st_mtime
        content_preview: str | None = None
        pdf_metadata: PdfMetadata | None = None

        # Layer 1: filename patterns
        pattern_match = self.patterns.best(filename)
        filename_patterns = [pattern_match.pattern] if pattern_match else []
        if pattern_match and pattern_match.confidence == HIGH:
            decision = _Decision(
                pattern_match.category,
                HIGH,
                f"Filename matches {pattern_match.pattern} pattern",
                AnalysisMethod.PATTERN,
                filename_patterns,
            )
            return self._build(path, size, mtime, decision, self.patterns.sensitivity(filename))

        # Layer 2: extension defaults
        extension_default = get_extension_category(extension)
        office_decision: _Decision | None = None

        if extension in OFFICE_EXTENSIONS:
            category, confidence = classify_office_file(filename, extension)
            office_decision = _Decision(
                category,
                confidence,
                "Office file classified by filename and extension",
                AnalysisMethod.EXTENSION,
                filename_patterns,
            )
            # Only a DOCX body can improve on a weak Office guess
            if confidence != LOW:
                return self._build(path, size, mtime, office_decision,
                                   self.patterns.sensitivity(filename))
        elif extension_default and extension_default[1] == HIGH:
            decision = _Decision(
                extension_default[0],
                HIGH,
                f"File extension .{extension} indicates {extension_default[0].value}",
                AnalysisMethod.EXTENSION,
                filename_patterns,
            )
            return self._build(path, size, mtime, decision, self.patterns.sensitivity(filename))

        # Layer 3: content
        if size <= self.settings.max_file_size_for_content:
            if self._pdf.can_handle(Path(path)):
                pdf_metadata = self._read_pdf(Path(path))
                content_text = pdf_metadata.first_page_text if pdf_metadata else None
                method = AnalysisMethod.PDF
                label = "PDF content"
            else:
                content_preview = self._read_preview(Path(path))
                content_text = content_preview
                method = AnalysisMethod.CONTENT
                label = "File content"

            if content_text:
                content_matches = self.patterns.match(content_text)
                if content_matches and content_matches[0].confidence != LOW:
                    best = content_matches[0]
                    decision = _Decision(
                        best.category,
                        best.confidence,
                        f"{label} matches {best.pattern} pattern",
                        method,
                        [m.pattern for m in content_matches],
                    )
                    return self._build(
                        path, size, mtime, decision,
                        self.patterns.sensitivity(filename, content_text),
                        content_preview, pdf_metadata,
                    )
        else:
            logger.debug(f"Skipping content inspection of {filename}: {size} bytes")

        sensitivity_text = content_preview or (pdf_metadata.first_page_text if pdf_metadata else None)
        sensitivity = self.patterns.sensitivity(filename, sensitivity_text)

        # Layer 4: external classifier
        if self.settings.enable_llm_classification and self.classifier is not None:
            try:
                result = self.classifier.classify(
                    ClassificationContext(
                        filename=filename,
                        extension=extension,
                        size=size,
                        content_preview=content_preview,
                        pdf_metadata=pdf_metadata,
                    )
                )
            except Exception as e:
                logger.warning(f"Classifier failed for {filename}, using patterns only: {e}")
                result = None
            if result is not None:
                decision = self._prefer_pattern(pattern_match, result.category,
                                                result.confidence, result.reasoning)
                return self._build(path, size, mtime, decision, sensitivity,
                                   content_preview, pdf_metadata)

        # Layer 5: fallback
        if office_decision is not None:
            decision = office_decision
        elif pattern_match is not None:
            decision = _Decision(
                pattern_match.category,
                pattern_match.confidence,
                f"Filename matches {pattern_match.pattern} pattern",
                AnalysisMethod.PATTERN,
                filename_patterns,
            )
        else:
            decision = _Decision(
                extension_default[0] if extension_default else FileCategory.MISC,
                LOW,
                "Unable to determine category with high confidence",
                AnalysisMethod.EXTENSION,
                [],
            )
        return self._build(path, size, mtime, decision, sensitivity, content_preview, pdf_metadata)

    def _prefer_pattern(
        self,
        pattern_match: PatternMatch | None,
        category: FileCategory,
        confidence: ConfidenceLevel,
        reasoning: str,
    ) -> _Decision:
        """Pick the classifier answer unless the filename match is at least as confident."""
        if pattern_match is not None and pattern_match.confidence.rank >= confidence.rank:
            return _Decision(
                pattern_match.category,
                pattern_match.confidence,
                f"Filename matches {pattern_match.pattern} pattern",
                AnalysisMethod.PATTERN,
                [pattern_match.pattern],
            )
        return _Decision(
            category,
            confidence,
            reasoning,
            AnalysisMethod.LLM,
            [pattern_match.pattern] if pattern_match else [],
        )

    def _read_pdf(self, path: Path) -> PdfMetadata | None:
        try:
            return self._pdf.extract_metadata(path)
        except ExtractionError as e:
            logger.debug(str(e))
            return None

    def _read_preview(self, path: Path) -> str | None:
        limit = self.settings.max_content_preview_bytes
        if self._docx.can_handle(path):
            try:
                return self._docx.extract(path, limit) or None
            except ExtractionError as e:
                logger.debug(str(e))
                return None
        return extract_text_preview(path, limit)

    def _build(
        self,
        path: str,
        size: int,
        mtime: float,
        decision: _Decision,
        sensitivity: SensitivityResult,
        content_preview: str | None = None,
        pdf_metadata: PdfMetadata | None = None,
    ) -> FileAnalysis:
        filename = os.path.basename(path)
        destination = self.resolver.resolve_destination(decision.category, filename)

        analysis = FileAnalysis(
            path=path,
            filename=filename,
            extension=os.path.splitext(filename)[1].lower().lstrip("."),
            size=size,
            mtime=mtime,
            suggested_category=decision.category,
            suggested_destination=destination,
            confidence=decision.confidence,
            reasoning=decision.reasoning,
            analysis_method=decision.method,
            sensitive=sensitivity.sensitive,
            sensitive_reason=sensitivity.reason,
            matched_patterns=decision.matched_patterns,
            content_preview=content_preview,
            pdf_metadata=pdf_metadata,
        )
        logger.debug(
            f"Analyzed {filename}: {analysis.suggested_category.value} "
            f"({analysis.confidence.value}, {analysis.analysis_method.value})"
        )
        return analysis
