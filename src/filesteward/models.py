"""Shared vocabulary: categories, confidence levels, proposal states and PDF info."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class FileCategory(str, Enum):
    """Organization category assigned to a file."""

    FINANCES = "finances"
    SCREENSHOTS = "screenshots"
    INSTALLERS = "installers"
    WORK = "work"
    PERSONAL = "personal"
    REFERENCE = "reference"
    MEDIA = "media"
    ARCHIVES = "archives"
    CODE = "code"
    MISC = "misc"


class ConfidenceLevel(str, Enum):
    """Coarse classification confidence."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]


_CONFIDENCE_RANK = {
    ConfidenceLevel.LOW: 1,
    ConfidenceLevel.MEDIUM: 2,
    ConfidenceLevel.HIGH: 3,
}


class AnalysisMethod(str, Enum):
    """Which analysis layer produced the final classification."""

    PATTERN = "pattern"
    EXTENSION = "extension"
    CONTENT = "content"
    PDF = "pdf"
    LLM = "llm"


class ProposalAction(str, Enum):
    """Kind of file operation a proposal performs."""

    MOVE = "move"
    RENAME = "rename"
    MOVE_AND_RENAME = "move_and_rename"


class ProposalStatus(str, Enum):
    """Lifecycle state of a proposal. Only PENDING is non-terminal."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    INVALID = "invalid"


@dataclass
class PdfMetadata:
    """Document information read from a PDF."""

    title: str | None = None
    author: str | None = None
    subject: str | None = None
    creator: str | None = None
    creation_date: datetime | None = None
    page_count: int | None = None
    first_page_text: str | None = None
