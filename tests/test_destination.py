"""Tests for destination resolution."""

import os
from datetime import datetime

import pytest

from filesteward.errors import DestinationError
from filesteward.models import FileCategory, ProposalAction
from filesteward.utils.paths import determine_action
from filesteward.watcher import DEFAULT_DESTINATIONS, DestinationResolver


class TestResolvePath:
    """Tests for category folder templates."""

    def test_every_category_has_a_template(self):
        """Test that all categories map to a folder."""
        assert set(DEFAULT_DESTINATIONS) == set(FileCategory)

    def test_finances_by_year(self, resolver, organized_dir):
        """Test that finances are filed by year."""
        path = resolver.resolve_path(FileCategory.FINANCES, "a.pdf", now=datetime(2025, 3, 4))
        assert path == str(organized_dir / "Finances" / "2025" / "a.pdf")

    def test_screenshots_by_year_and_month(self, resolver, organized_dir):
        """Test that screenshots are filed by year and zero-padded month."""
        path = resolver.resolve_path(FileCategory.SCREENSHOTS, "s.png", now=datetime(2025, 3, 4))
        assert path == str(organized_dir / "Screenshots" / "2025" / "03" / "s.png")

    def test_flat_categories(self, resolver, organized_dir):
        """Test categories without date folders."""
        assert resolver.resolve_path(FileCategory.MISC, "x") == str(organized_dir / "Misc" / "x")
        assert resolver.resolve_path(FileCategory.CODE, "x.py") == str(
            organized_dir / "Code" / "x.py"
        )

    def test_accepts_category_value(self, resolver, organized_dir):
        """Test that a plain category string is accepted."""
        assert resolver.resolve_path("archives", "a.zip") == str(
            organized_dir / "Archives" / "a.zip"
        )

    def test_category_helpers(self, resolver, organized_dir):
        """Test the per-category helpers."""
        assert resolver.resolve_finances("a.pdf", 2024) == str(
            organized_dir / "Finances" / "2024" / "a.pdf"
        )
        assert resolver.resolve_screenshots("s.png", datetime(2024, 12, 1)) == str(
            organized_dir / "Screenshots" / "2024" / "12" / "s.png"
        )
        assert resolver.resolve_media("v.mp4", 2023) == str(
            organized_dir / "Media" / "2023" / "v.mp4"
        )
        assert resolver.resolve_work("r.docx", "Apollo") == str(
            organized_dir / "Work" / "Apollo" / "r.docx"
        )
        assert resolver.resolve_work("r.docx") == str(organized_dir / "Work" / "r.docx")


class TestAntiRecursion:
    """Tests that destinations never land inside watched directories."""

    def test_base_path_inside_watched_rejected(self, watched_dir):
        """Test that a base path inside a watched directory is refused."""
        with pytest.raises(DestinationError):
            DestinationResolver(watched_dir / "Organized", [watched_dir])

    def test_base_path_equal_to_watched_rejected(self, watched_dir):
        """Test that the base path cannot itself be watched."""
        with pytest.raises(DestinationError):
            DestinationResolver(watched_dir, [watched_dir])

    def test_watched_inside_base_path_rejected(self, organized_dir):
        """Test that a watched directory inside the organized tree is refused."""
        with pytest.raises(DestinationError):
            DestinationResolver(organized_dir, [organized_dir / "Inbox"])

    def test_add_overlapping_directory_rejected(self, resolver, organized_dir):
        """Test that adding an overlapping directory leaves the watch set unchanged."""
        before = resolver.watched_directories
        with pytest.raises(DestinationError):
            resolver.add_watched_directory(organized_dir.parent)
        assert resolver.watched_directories == before

    def test_sibling_prefix_is_not_inside(self, tmp_path):
        """Test that /x/Downloads2 is not treated as inside /x/Downloads."""
        resolver = DestinationResolver(tmp_path / "Downloads2", [tmp_path / "Downloads"])
        assert resolver.is_valid_destination(tmp_path / "Downloads2" / "a.txt")

    def test_is_valid_destination(self, resolver, watched_dir, organized_dir):
        """Test destination validity checks."""
        assert resolver.is_valid_destination(organized_dir / "Misc" / "a.txt")
        assert not resolver.is_valid_destination(watched_dir / "a.txt")
        assert not resolver.is_valid_destination(watched_dir / "sub" / "a.txt")
        assert not resolver.is_valid_destination(watched_dir)

    def test_remove_watched_directory(self, resolver, watched_dir):
        """Test that removing a directory makes it a valid destination again."""
        resolver.remove_watched_directory(watched_dir)
        assert resolver.watched_directories == []
        assert resolver.is_valid_destination(watched_dir / "a.txt")

    def test_duplicates_collapsed(self, organized_dir, watched_dir):
        """Test that the same directory given twice is stored once."""
        resolver = DestinationResolver(organized_dir, [watched_dir, str(watched_dir) + os.sep])
        assert resolver.watched_directories == [str(watched_dir)]


class TestResolve:
    """Tests for resolving analyzed files."""

    def test_resolve_analysis(self, resolver, watched_dir, make_analysis):
        """Test resolving a file in the watched directory."""
        source = watched_dir / "report.docx"
        source.write_text("x")
        result = resolver.resolve(make_analysis(source, FileCategory.WORK))

        assert result is not None
        assert result.path == resolver.resolve_path(FileCategory.WORK, "report.docx")
        assert result.action == ProposalAction.MOVE
        assert "work" in result.reasoning

    def test_resolve_already_in_place(self, resolver, organized_dir, make_analysis):
        """Test that a file already at its destination needs nothing."""
        source = organized_dir / "Misc" / "a.txt"
        assert resolver.resolve(make_analysis(source, FileCategory.MISC)) is None

    def test_resolve_refuses_watched_destination(self, resolver, watched_dir, make_analysis):
        """Test that an analysis pointing into a watched directory is refused."""
        source = watched_dir / "a.txt"
        analysis = make_analysis(source, destination=watched_dir / "sorted" / "a.txt")
        assert resolver.resolve(analysis) is None

    def test_resolve_path_uses_category_helpers(self, resolver, organized_dir):
        now = datetime(2024, 3, 5)
        assert resolver.resolve_path(FileCategory.SCREENSHOTS, "s.png", now) == resolver.resolve_screenshots(
            "s.png", now
        )
        assert resolver.resolve_path(FileCategory.FINANCES, "a.pdf", now) == str(
            organized_dir / "Finances" / "2024" / "a.pdf"
        )

    def test_resolve_destination_returns_path(self, resolver, organized_dir):
        """Test the validated destination path."""
        assert resolver.resolve_destination(FileCategory.INSTALLERS, "a.exe") == str(
            organized_dir / "Installers" / "a.exe"
        )


class TestDetermineAction:
    """Tests for move/rename classification."""

    def test_move(self, tmp_path):
        assert determine_action(tmp_path / "a" / "f.txt", tmp_path / "b" / "f.txt") == ProposalAction.MOVE

    def test_rename(self, tmp_path):
        assert determine_action(tmp_path / "f.txt", tmp_path / "g.txt") == ProposalAction.RENAME

    def test_move_and_rename(self, tmp_path):
        assert (
            determine_action(tmp_path / "a" / "f.txt", tmp_path / "b" / "g.txt")
            == ProposalAction.MOVE_AND_RENAME
        )
