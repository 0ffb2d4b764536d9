"""Tests for the mover component."""

from pathlib import Path
from unittest.mock import patch

import pytest

from filesteward.mover import FileMover, MoveResult


class TestMoveResult:
    """Tests for MoveResult."""

    def test_properties(self, tmp_path):
        """Test filename and destination_folder properties."""
        dest = tmp_path / "Documents" / "test.txt"
        result = MoveResult(source_path=tmp_path / "test.txt", destination_path=dest, success=True)
        assert result.filename == "test.txt"
        assert result.destination_folder == tmp_path / "Documents"


class TestFileMover:
    """Tests for FileMover."""

    @pytest.fixture
    def mover(self):
        return FileMover()

    @pytest.fixture
    def source_file(self, tmp_path):
        """Create a test source file."""
        source = tmp_path / "source" / "test.txt"
        source.parent.mkdir(parents=True, exist_ok=True)
        source.write_text("Test content")
        return source

    def test_move_file_success(self, mover, source_file, tmp_path):
        """Test successful file move, creating folders."""
        destination = tmp_path / "organized" / "New" / "Folder" / "test.txt"

        result = mover.move(source_file, destination)

        assert result.success
        assert result.destination_path == destination
        assert destination.read_text() == "Test content"
        assert not source_file.exists()

    def test_move_with_rename(self, mover, source_file, tmp_path):
        """Test moving to a different file name."""
        destination = tmp_path / "organized" / "renamed.txt"
        result = mover.move(source_file, destination)
        assert result.success
        assert destination.exists()

    def test_move_nonexistent_file(self, mover, tmp_path):
        """Test moving a nonexistent file."""
        result = mover.move(tmp_path / "nonexistent.txt", tmp_path / "out.txt")
        assert not result.success
        assert "not found" in result.error_message

    def test_move_directory_refused(self, mover, tmp_path):
        """Test that directories are not moved."""
        folder = tmp_path / "folder"
        folder.mkdir()
        result = mover.move(folder, tmp_path / "elsewhere")
        assert not result.success
        assert "not a file" in result.error_message
        assert folder.exists()

    def test_never_overwrites(self, mover, source_file, tmp_path):
        """Test that an existing destination is left alone."""
        destination = tmp_path / "organized" / "test.txt"
        destination.parent.mkdir()
        destination.write_text("Existing")

        result = mover.move(source_file, destination)

        assert not result.success
        assert result.error_message.startswith("Destination already exists")
        assert destination.read_text() == "Existing"
        assert source_file.exists()

    def test_permission_error(self, mover, source_file, tmp_path):
        """Test that permission errors are reported, not raised."""
        with patch("filesteward.mover.mover.shutil.move", side_effect=PermissionError("denied")):
            result = mover.move(source_file, tmp_path / "out.txt")
        assert not result.success
        assert result.error_message.startswith("Permission denied")

    def test_os_error(self, mover, source_file, tmp_path):
        """Test that other OS errors are reported, not raised."""
        with patch("filesteward.mover.mover.shutil.move", side_effect=OSError("disk full")):
            result = mover.move(source_file, tmp_path / "out.txt")
        assert not result.success
        assert "disk full" in result.error_message

    def test_accepts_strings(self, mover, source_file, tmp_path):
        """Test string paths."""
        result = mover.move(str(source_file), str(tmp_path / "out.txt"))
        assert result.success
        assert isinstance(result.destination_path, Path)
