"""Bounded content previews for text, PDF and DOCX files."""

from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

from ..models import PdfMetadata
from ..utils.logging import get_logger

logger = get_logger(__name__)

PDF_FIRST_PAGE_CHARS = 500
PRINTABLE_RATIO_THRESHOLD = 0.8


class ExtractionError(Exception):
    """Raised when content extraction fails."""

    pass


class BaseExtractor(ABC):
    """Base class for preview extractors."""

    @property
    @abstractmethod
    def supported_extensions(self) -> set[str]:
        """Return set of supported file extensions (lowercase, with dot)."""
        pass

    @abstractmethod
    def extract(self, file_path: Path, max_chars: int) -> str:
        """
        Extract at most ``max_chars`` characters of text from a file.

        Raises:
            ExtractionError: If extraction fails
        """
        pass

    def can_handle(self, file_path: Path) -> bool:
        """Check if this extractor can handle the given file."""
        return file_path.suffix.lower() in self.supported_extensions


def count_printable(text: str) -> int:
    """Count characters that plausibly belong to human-readable text."""
    count = 0
    for char in text:
        code = ord(char)
        if 32 <= code <= 126 or code in (9, 10, 13) or code >= 192:
            count += 1
    return count


def extract_text_preview(file_path: Path, max_bytes: int = 4096) -> str | None:
    """
    Read the first ``max_bytes`` of a file as UTF-8 text.

    Returns:
        The decoded preview, or None for empty, unreadable or binary files.
    """
    try:
        with open(file_path, "rb") as f:
            data = f.read(max_bytes)
    except OSError as e:
        logger.debug(f"Could not read preview of {file_path}: {e}")
        return None

    if not data:
        return None

    # A multi-byte sequence may be cut at the boundary
    text = data.decode("utf-8", errors="replace")
    if count_printable(text) / len(text) < PRINTABLE_RATIO_THRESHOLD:
        return None
    return text


class DOCXExtractor(BaseExtractor):
    """Extractor for DOCX files using python-docx."""

    @property
    def supported_extensions(self) -> set[str]:
        return {".docx"}

    def extract(self, file_path: Path, max_chars: int) -> str:
        """Extract paragraph and table text from DOCX files."""
        try:
            from docx import Document
        except ImportError:
            raise ExtractionError(
                "python-docx is not installed. Install with: pip install python-docx"
            )

        try:
            doc = Document(file_path)
            text_parts: list[str] = []
            length = 0

            for paragraph in doc.paragraphs:
                if paragraph.text.strip():
                    text_parts.append(paragraph.text)
                    length += len(paragraph.text) + 1
                    if length >= max_chars:
                        break

            if length < max_chars:
                for table in doc.tables:
                    for row in table.rows:
                        row_text = " | ".join(
                            cell.text.strip() for cell in row.cells if cell.text.strip()
                        )
                        if row_text:
                            text_parts.append(row_text)
                            length += len(row_text) + 1

            return "\n".join(text_parts)[:max_chars]

        except Exception as e:
            raise ExtractionError(f"Failed to extract text from DOCX {file_path}: {e}") from e


class PDFExtractor(BaseExtractor):
    """Extractor for PDF files using PyMuPDF (fitz)."""

    @property
    def supported_extensions(self) -> set[str]:
        return {".pdf"}

    def extract(self, file_path: Path, max_chars: int) -> str:
        """Extract text from the first pages of a PDF."""
        metadata = self.extract_metadata(file_path, first_page_chars=max_chars)
        return metadata.first_page_text or ""

    def extract_metadata(
        self, file_path: Path, first_page_chars: int = PDF_FIRST_PAGE_CHARS
    ) -> PdfMetadata:
        """Read document info and the opening text of a PDF."""
        try:
            import fitz  # PyMuPDF
        except ImportError:
            raise ExtractionError(
                "PyMuPDF (fitz) is not installed. Install with: pip install pymupdf"
            )

        try:
            with fitz.open(file_path) as doc:
                info = doc.metadata or {}
                text_parts: list[str] = []
                for page in doc.pages(0, min(2, doc.page_count)):
                    page_text = page.get_text()
                    if page_text.strip():
                        text_parts.append(page_text)

                return PdfMetadata(
                    title=info.get("title") or None,
                    author=info.get("author") or None,
                    subject=info.get("subject") or None,
                    creator=info.get("creator") or None,
                    creation_date=_parse_pdf_date(info.get("creationDate")),
                    page_count=doc.page_count,
                    first_page_text="\n\n".join(text_parts)[:first_page_chars] or None,
                )

        except Exception as e:
            raise ExtractionError(f"Failed to read PDF {file_path}: {e}") from e


def _parse_pdf_date(value: str | None) -> datetime | None:
    """Parse a PDF date string such as ``D:20250102030405+01'00'``."""
    if not value:
        return None
    digits = value[2:] if value.startswith("D:") else value
    try:
        return datetime.strptime(digits[:14], "%Y%m%d%H%M%S")
    except ValueError:
        try:
            return datetime.strptime(digits[:8], "%Y%m%d")
        except ValueError:
            return None

