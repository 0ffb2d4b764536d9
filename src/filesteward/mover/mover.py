"""Mover component for executing approved proposals."""

import shutil
from dataclasses import dataclass
from pathlib import Path

from ..utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class MoveResult:
    """Result of a file move operation."""

    source_path: Path
    destination_path: Path

    success: bool
    error_message: str | None = None

    @property
    def filename(self) -> str:
        return self.destination_path.name

    @property
    def destination_folder(self) -> Path:
        """Get the destination folder."""
        return self.destination_path.parent


class FileMover:
    """
    Moves files to an exact destination without ever overwriting.

    A name collision at the destination is reported as a failure; the
    source file is left untouched.
    """

    def move(self, source: str | Path, destination: str | Path) -> MoveResult:
        """
        Move a file, creating destination folders as needed.

        Args:
            source: File to move
            destination: Full target path including the file name

        Returns:
            MoveResult with operation status
        """
        source = Path(source)
        destination = Path(destination)

        if not source.exists():
            return MoveResult(
                source_path=source,
                destination_path=destination,
                success=False,
                error_message=f"Source file not found: {source}",
            )

        if not source.is_file():
            return MoveResult(
                source_path=source,
                destination_path=destination,
                success=False,
                error_message=f"Source is not a file: {source}",
            )

        if destination.exists():
            return MoveResult(
                source_path=source,
                destination_path=destination,
                success=False,
                error_message=f"Destination already exists: {destination}",
            )

        try:
            if not destination.parent.exists():
                destination.parent.mkdir(parents=True, exist_ok=True)
                logger.info(f"Created folder: {destination.parent}")
        except OSError as e:
            return MoveResult(
                source_path=source,
                destination_path=destination,
                success=False,
                error_message=f"Failed to create folder: {e}",
            )

        try:
            shutil.move(str(source), str(destination))
            logger.info(f"Moved: {source.name} -> {destination}")
            return MoveResult(source_path=source, destination_path=destination, success=True)

        except PermissionError as e:
            logger.error(f"Permission denied moving {source}: {e}")
            return MoveResult(
                source_path=source,
                destination_path=destination,
                success=False,
                error_message=f"Permission denied: {e}",
            )

        except OSError as e:
            logger.error(f"Error moving {source}: {e}")
            return MoveResult(
                source_path=source,
                destination_path=destination,
                success=False,
                error_message=f"Move failed: {e}",
            )
