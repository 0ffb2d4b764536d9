"""
Destination resolution for organized files.

Destinations must stay outside every watched directory, otherwise a moved
file would be detected again and proposed again, forever.
"""

import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from ..errors import DestinationError
from ..models import FileCategory, ProposalAction
from ..utils.logging import get_logger
from ..utils.paths import determine_action, is_same_or_inside, normalize_path

if TYPE_CHECKING:
    from ..analyzer.analyzer import FileAnalysis

logger = get_logger(__name__)

# Folder templates relative to the organization base path
DEFAULT_DESTINATIONS: dict[FileCategory, str] = {
    FileCategory.FINANCES: "Finances/{year}",
    FileCategory.SCREENSHOTS: "Screenshots/{year}/{month}",
    FileCategory.INSTALLERS: "Installers",
    FileCategory.WORK: "Work",
    FileCategory.PERSONAL: "Personal",
    FileCategory.REFERENCE: "Reference",
    FileCategory.MEDIA: "Media/{year}",
    FileCategory.ARCHIVES: "Archives",
    FileCategory.CODE: "Code",
    FileCategory.MISC: "Misc",
}


@dataclass
class DestinationResult:
    """A validated destination for a file."""

    path: str
    action: ProposalAction
    reasoning: str


class DestinationResolver:
    """
    Maps categories to folders under the organization base path.

    The resolver holds the current watched set; the watcher keeps it in
    sync as directories are added and removed.
    """

    def __init__(self, base_path: str | Path, watched_directories: Iterable[str | Path] = ()):
        """
        Initialize the resolver.

        Args:
            base_path: Root folder for organized files
            watched_directories: Directories being monitored

        Raises:
            DestinationError: If the base path equals or lies inside a watched directory
        """
        self.base_path = normalize_path(base_path)
        self._watched: list[str] = []
        self.set_watched_directories(watched_directories)

    @property
    def watched_directories(self) -> list[str]:
        return list(self._watched)

    def set_watched_directories(self, directories: Iterable[str | Path]) -> None:
        """
        Replace the watched set.

        Raises:
            DestinationError: If a directory overlaps the organization base path
        """
        normalized = []
        for directory in directories:
            path = normalize_path(directory)
            if is_same_or_inside(self.base_path, path):
                raise DestinationError(
                    f"Organization base path {self.base_path} is inside watched directory {path}"
                )
            if is_same_or_inside(path, self.base_path):
                raise DestinationError(
                    f"Watched directory {path} is inside organization base path {self.base_path}"
                )
            if path not in normalized:
                normalized.append(path)
        self._watched = normalized

    def add_watched_directory(self, directory: str | Path) -> None:
        self.set_watched_directories([*self._watched, directory])

    def remove_watched_directory(self, directory: str | Path) -> None:
        path = normalize_path(directory)
        self._watched = [d for d in self._watched if d != path]

    def is_valid_destination(self, destination: str | Path) -> bool:
        """True unless the destination equals or lies inside a watched directory."""
        return not any(is_same_or_inside(destination, watched) for watched in self._watched)

    def resolve_path(
        self, category: FileCategory, filename: str, now: datetime | None = None
    ) -> str:
        """Build the destination path for a category and filename, unchecked."""
        now = now or datetime.now()
        category = FileCategory(category)
        if category == FileCategory.FINANCES:
            return self.resolve_finances(filename, now.year)
        if category == FileCategory.SCREENSHOTS:
            return self.resolve_screenshots(filename, now)
        if category == FileCategory.MEDIA:
            return self.resolve_media(filename, now.year)
        if category == FileCategory.WORK:
            return self.resolve_work(filename)
        return self._from_template(category, filename, now)

    def _from_template(self, category: FileCategory, filename: str, now: datetime) -> str:
        template = DEFAULT_DESTINATIONS.get(category, DEFAULT_DESTINATIONS[FileCategory.MISC])
        folder = template.format(year=now.strftime("%Y"), month=now.strftime("%m"))
        return os.path.join(self.base_path, *folder.split("/"), filename)

    def resolve_destination(
        self, category: FileCategory, filename: str, now: datetime | None = None
    ) -> str:
        """
        Build and validate the destination path for a category and filename.

        Raises:
            DestinationError: If the destination would be inside a watched directory
        """
        destination = self.resolve_path(category, filename, now)
        if not self.is_valid_destination(destination):
            raise DestinationError(f"Destination {destination} is inside a watched directory")
        return destination

    def resolve(self, analysis: "FileAnalysis") -> DestinationResult | None:
        """
        Check an analyzed file's destination against the current watched set.

        The watched set may have changed since the analysis ran.

        Returns:
            None if no safe destination exists or the file is already there.
        """
        destination = normalize_path(
            analysis.suggested_destination
            or self.resolve_path(analysis.suggested_category, analysis.filename)
        )

        if not self.is_valid_destination(destination):
            logger.warning(f"Refusing destination inside watched directory: {destination}")
            return None

        if normalize_path(analysis.path) == destination:
            return None

        return DestinationResult(
            path=destination,
            action=determine_action(analysis.path, destination),
            reasoning=f"Moving {analysis.filename} to {analysis.suggested_category.value} folder",
        )

    # Category helpers with extra placement detail

    def resolve_finances(self, filename: str, year: int | None = None) -> str:
        year = year or datetime.now().year
        return self._from_template(FileCategory.FINANCES, filename, datetime(year, 1, 1))

    def resolve_screenshots(self, filename: str, date: datetime | None = None) -> str:
        return self._from_template(FileCategory.SCREENSHOTS, filename, date or datetime.now())

    def resolve_media(self, filename: str, year: int | None = None) -> str:
        year = year or datetime.now().year
        return self._from_template(FileCategory.MEDIA, filename, datetime(year, 1, 1))

    def resolve_work(self, filename: str, project: str | None = None) -> str:
        path = self._from_template(FileCategory.WORK, filename, datetime.now())
        if project:
            return os.path.join(os.path.dirname(path), project, filename)
        return path
