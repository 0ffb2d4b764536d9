"""Filename and content pattern matching for classification and sensitivity."""

import re
from dataclasses import dataclass

from ..models import ConfidenceLevel, FileCategory

HIGH = ConfidenceLevel.HIGH
MEDIUM = ConfidenceLevel.MEDIUM
LOW = ConfidenceLevel.LOW


@dataclass(frozen=True)
class PatternDef:
    """A named regular expression that implies a category."""

    name: str
    pattern: re.Pattern[str]
    category: FileCategory
    confidence: ConfidenceLevel


@dataclass(frozen=True)
class PatternMatch:
    """A pattern that matched, with the category and confidence it implies."""

    pattern: str
    category: FileCategory
    confidence: ConfidenceLevel


@dataclass(frozen=True)
class SensitivityResult:
    """Outcome of the sensitivity heuristics."""

    sensitive: bool
    reason: str | None = None
    matched_pattern: str | None = None


def _p(name: str, regex: str, category: FileCategory, confidence: ConfidenceLevel) -> PatternDef:
    return PatternDef(name, re.compile(regex, re.IGNORECASE), category, confidence)


SCREENSHOT_PATTERNS = [
    _p("screenshot_prefix", r"^(screenshot|screen shot|capture|snip|snipping)", FileCategory.SCREENSHOTS, HIGH),
    _p("screenshot_dated", r"^Screenshot[_\s-]?\d{4}[-_]?\d{2}[-_]?\d{2}", FileCategory.SCREENSHOTS, HIGH),
    _p("macos_screenshot", r"^Screen\s?Shot\s?\d{4}", FileCategory.SCREENSHOTS, HIGH),
    _p("windows_snip", r"Snip\s?&\s?Sketch", FileCategory.SCREENSHOTS, HIGH),
]

FINANCIAL_PATTERNS = [
    _p("invoice", r"invoice|faktura|rechnung", FileCategory.FINANCES, HIGH),
    _p("receipt", r"receipt|rcpt|quittung|bon", FileCategory.FINANCES, HIGH),
    _p("tax_document", r"tax|w-?2|1099|steuer", FileCategory.FINANCES, HIGH),
    _p("budget", r"budget|expense|ausgaben", FileCategory.FINANCES, MEDIUM),
    _p("bank_statement", r"statement|kontoauszug|bank", FileCategory.FINANCES, MEDIUM),
]

INSTALLER_PATTERNS = [
    _p("windows_exe", r"\.(exe|msi)$", FileCategory.INSTALLERS, HIGH),
    _p("macos_installer", r"\.(dmg|pkg)$", FileCategory.INSTALLERS, HIGH),
    _p("linux_package", r"\.(deb|rpm|appimage)$", FileCategory.INSTALLERS, HIGH),
    _p("setup", r"setup|install", FileCategory.INSTALLERS, MEDIUM),
]

WORK_PATTERNS = [
    _p("meeting", r"meeting|agenda|minutes", FileCategory.WORK, MEDIUM),
    _p("project", r"project|proposal|report", FileCategory.WORK, MEDIUM),
    _p("presentation", r"presentation|slides|deck", FileCategory.WORK, MEDIUM),
    _p("contract", r"contract|agreement|nda|sow", FileCategory.WORK, HIGH),
]

PERSONAL_PATTERNS = [
    _p("resume", r"resume|cv|lebenslauf", FileCategory.PERSONAL, HIGH),
    _p("letter", r"letter|correspondence|brief", FileCategory.PERSONAL, MEDIUM),
    _p("certificate", r"certificate|diploma|license|zertifikat", FileCategory.PERSONAL, HIGH),
    _p("application", r"application|form|antrag", FileCategory.PERSONAL, LOW),
]

REFERENCE_PATTERNS = [
    _p("manual", r"manual|handbuch|guide", FileCategory.REFERENCE, HIGH),
    _p("documentation", r"documentation|docs|howto", FileCategory.REFERENCE, MEDIUM),
    _p("specification", r"spec|specification|reference", FileCategory.REFERENCE, MEDIUM),
    _p("template", r"template|vorlage", FileCategory.REFERENCE, LOW),
]

# Declaration order breaks confidence ties: screenshots win over finances, etc.
ALL_PATTERNS: list[PatternDef] = [
    *SCREENSHOT_PATTERNS,
    *FINANCIAL_PATTERNS,
    *INSTALLER_PATTERNS,
    *WORK_PATTERNS,
    *PERSONAL_PATTERNS,
    *REFERENCE_PATTERNS,
]

SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # Financial
    (re.compile(r"tax|w-?2|1099", re.IGNORECASE), "Tax document"),
    (re.compile(r"invoice|receipt|statement", re.IGNORECASE), "Financial document"),
    (re.compile(r"budget|expense", re.IGNORECASE), "Financial data"),
    # Identity
    (re.compile(r"passport", re.IGNORECASE), "Identity document"),
    (re.compile(r"driver.?license|license.?id", re.IGNORECASE), "Identity document"),
    (re.compile(r"ssn|social.?security", re.IGNORECASE), "Social security number"),
    (re.compile(r"\bID\b|identification", re.IGNORECASE), "Identity document"),
    # Credentials
    (re.compile(r"password|credential|secret", re.IGNORECASE), "Credential data"),
    (re.compile(r"\.pem$|\.key$", re.IGNORECASE), "Security key file"),
    (re.compile(r"\.env$", re.IGNORECASE), "Environment configuration"),
    # Medical
    (re.compile(r"medical|prescription|health|insurance", re.IGNORECASE), "Medical/health data"),
    # Legal
    (re.compile(r"contract|agreement|legal", re.IGNORECASE), "Legal document"),
]


def match_patterns(text: str) -> list[PatternMatch]:
    """
    Match a filename (or content snippet) against every category pattern.

    Returns:
        All matches, highest confidence first; equal confidences keep
        declaration order.
    """
    matches = [
        PatternMatch(pattern=d.name, category=d.category, confidence=d.confidence)
        for d in ALL_PATTERNS
        if d.pattern.search(text)
    ]
    # sorted() is stable, so declaration order survives within a confidence level
    return sorted(matches, key=lambda m: m.confidence.rank, reverse=True)


def get_best_match(text: str) -> PatternMatch | None:
    """Return the highest-confidence match, or None if nothing matches."""
    matches = match_patterns(text)
    return matches[0] if matches else None


def check_sensitivity(filename: str, content: str | None = None) -> SensitivityResult:
    """
    Flag financial, identity, credential, medical and legal material.

    The filename is checked first; content, when given, is checked second
    and its reason is prefixed with ``Content:``.
    """
    for pattern, reason in SENSITIVE_PATTERNS:
        if pattern.search(filename):
            return SensitivityResult(True, reason, pattern.pattern)

    if content:
        for pattern, reason in SENSITIVE_PATTERNS:
            if pattern.search(content):
                return SensitivityResult(True, f"Content: {reason}", pattern.pattern)

    return SensitivityResult(False)


class PatternClassifier:
    """Stateless facade over the pattern tables."""

    def match(self, text: str) -> list[PatternMatch]:
        return match_patterns(text)

    def best(self, text: str) -> PatternMatch | None:
        return get_best_match(text)

    def sensitivity(self, filename: str, content: str | None = None) -> SensitivityResult:
        return check_sensitivity(filename, content)
