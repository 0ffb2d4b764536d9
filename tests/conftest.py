"""Shared fixtures for FileSteward tests."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from filesteward.analyzer import FileAnalysis, FileAnalyzer
from filesteward.classifier import NullClassifier
from filesteward.config import AnalysisSettings
from filesteward.models import AnalysisMethod, ConfidenceLevel, FileCategory
from filesteward.proposals import ProposalService, ProposalStore
from filesteward.watcher import DestinationResolver


class FakeClock:
    """Controllable UTC clock for cooldown tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def watched_dir(tmp_path) -> Path:
    """A watched 'Downloads' directory."""
    directory = tmp_path / "Downloads"
    directory.mkdir()
    return directory


@pytest.fixture
def organized_dir(tmp_path) -> Path:
    """Organization base path, outside the watched directory."""
    return tmp_path / "Organized"


@pytest.fixture
def resolver(watched_dir, organized_dir) -> DestinationResolver:
    return DestinationResolver(organized_dir, [watched_dir])


@pytest.fixture
def analyzer(resolver) -> FileAnalyzer:
    """Analyzer without a classifier."""
    return FileAnalyzer(
        resolver=resolver,
        settings=AnalysisSettings(enable_llm_classification=False),
        classifier=NullClassifier(),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store_path(tmp_path) -> Path:
    return tmp_path / "state" / "proposals.json"


@pytest.fixture
def audit():
    return MagicMock()


@pytest.fixture
def proposal_service(store_path, clock, audit) -> ProposalService:
    """Initialized proposal service with a fake clock and mock audit sink."""
    service = ProposalService(
        ProposalStore(store_path), cooldown_hours=24, audit=audit, clock=clock
    )
    service.initialize()
    return service


@pytest.fixture
def make_analysis(organized_dir):
    """Factory for FileAnalysis records pointing at real or imaginary files."""

    def _make(
        path: Path,
        category: FileCategory = FileCategory.MISC,
        confidence: ConfidenceLevel = ConfidenceLevel.HIGH,
        sensitive: bool = False,
        destination: Path | None = None,
    ) -> FileAnalysis:
        path = Path(path)
        size = path.stat().st_size if path.exists() else 0
        mtime = path.stat().st_mtime if path.exists() else 0.0
        if destination is None:
            destination = organized_dir / category.value.capitalize() / path.name
        return FileAnalysis(
            path=str(path),
            filename=path.name,
            extension=path.suffix.lstrip(".").lower(),
            size=size,
            mtime=mtime,
            suggested_category=category,
            suggested_destination=str(destination),
            confidence=confidence,
            reasoning="test analysis",
            analysis_method=AnalysisMethod.PATTERN,
            sensitive=sensitive,
            sensitive_reason="Financial document" if sensitive else None,
        )

    return _make
