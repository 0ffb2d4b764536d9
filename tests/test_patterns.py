"""Tests for filename and content pattern matching."""

import pytest

from filesteward.analyzer import PatternClassifier, check_sensitivity, get_best_match, match_patterns
from filesteward.models import ConfidenceLevel, FileCategory


class TestMatchPatterns:
    """Tests for category pattern matching."""

    @pytest.mark.parametrize(
        "filename, category, confidence",
        [
            ("Screenshot 2025-01-01 at 10.00.00.png", FileCategory.SCREENSHOTS, ConfidenceLevel.HIGH),
            ("Screen Shot 2024-11-02.png", FileCategory.SCREENSHOTS, ConfidenceLevel.HIGH),
            ("invoice-2025.pdf", FileCategory.FINANCES, ConfidenceLevel.HIGH),
            ("Rechnung_Januar.pdf", FileCategory.FINANCES, ConfidenceLevel.HIGH),
            ("budget_2025.xlsx", FileCategory.FINANCES, ConfidenceLevel.MEDIUM),
            ("setup.exe", FileCategory.INSTALLERS, ConfidenceLevel.HIGH),
            ("meeting_notes.txt", FileCategory.WORK, ConfidenceLevel.MEDIUM),
            ("resume.pdf", FileCategory.PERSONAL, ConfidenceLevel.HIGH),
            ("user_manual.pdf", FileCategory.REFERENCE, ConfidenceLevel.HIGH),
        ],
    )
    def test_best_match(self, filename, category, confidence):
        """Test the best match for common filenames."""
        match = get_best_match(filename)
        assert match is not None
        assert match.category == category
        assert match.confidence == confidence

    def test_no_match(self):
        """Test that an unremarkable filename matches nothing."""
        assert get_best_match("holiday.jpg") is None
        assert match_patterns("holiday.jpg") == []

    def test_case_insensitive(self):
        """Test that matching ignores case."""
        assert get_best_match("INVOICE.PDF").category == FileCategory.FINANCES

    def test_matches_sorted_by_confidence(self):
        """Test that higher confidence matches come first."""
        matches = match_patterns("setup.exe")
        assert [m.pattern for m in matches] == ["windows_exe", "setup"]
        assert matches[0].confidence.rank > matches[1].confidence.rank

    def test_tie_keeps_declaration_order(self):
        """Test that screenshots win a tie with finances."""
        match = get_best_match("screenshot_invoice.png")
        assert match.category == FileCategory.SCREENSHOTS
        assert match.pattern == "screenshot_prefix"


class TestCheckSensitivity:
    """Tests for sensitivity heuristics."""

    @pytest.mark.parametrize(
        "filename, reason",
        [
            ("invoice-2025.pdf", "Financial document"),
            ("tax_return.pdf", "Tax document"),
            ("passport_scan.jpg", "Identity document"),
            ("my ID card.png", "Identity document"),
            ("passwords.txt", "Credential data"),
            ("server.pem", "Security key file"),
            ("prescription.pdf", "Medical/health data"),
            ("rental_agreement.pdf", "Legal document"),
        ],
    )
    def test_sensitive_filenames(self, filename, reason):
        """Test filenames flagged as sensitive."""
        result = check_sensitivity(filename)
        assert result.sensitive
        assert result.reason == reason
        assert result.matched_pattern is not None

    def test_not_sensitive(self):
        """Test an ordinary filename."""
        result = check_sensitivity("readme.md")
        assert not result.sensitive
        assert result.reason is None

    def test_screenshot_not_sensitive(self):
        """Test that dated screenshots are not mistaken for ID documents."""
        assert not check_sensitivity("screenshot-2025-01-01.png").sensitive

    def test_content_sensitivity_is_prefixed(self):
        """Test that content matches are reported with a Content prefix."""
        result = check_sensitivity("notes.txt", "my password is hunter2")
        assert result.sensitive
        assert result.reason == "Content: Credential data"

    def test_filename_checked_before_content(self):
        """Test that a filename match takes precedence over content."""
        result = check_sensitivity("invoice.pdf", "my password is hunter2")
        assert result.reason == "Financial document"


class TestPatternClassifier:
    """Tests for the PatternClassifier facade."""

    def test_delegates(self):
        """Test that the facade returns the module-level results."""
        patterns = PatternClassifier()
        assert patterns.best("invoice.pdf") == get_best_match("invoice.pdf")
        assert patterns.match("setup.exe") == match_patterns("setup.exe")
        assert patterns.sensitivity("passport.jpg").sensitive
