"""Human-readable activity journal for approvals, rejections and watcher state."""

import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

from ..utils.logging import get_logger

logger = get_logger(__name__)


class AuditSink(ABC):
    """Receives one entry per noteworthy pipeline event."""

    @abstractmethod
    def record(self, title: str, details: str) -> None:
        """Write an entry. May raise; callers go through ``safe_record``."""
        pass


class NullAuditSink(AuditSink):
    """Discards every entry."""

    def record(self, title: str, details: str) -> None:
        pass


class DailyJournal(AuditSink):
    """
    Appends markdown entries to one file per day.

    Files are named ``YYYY-MM-DD.md`` inside ``journal_dir`` and start with
    a ``# Daily Log - <date>`` heading.
    """

    def __init__(self, journal_dir: str | Path):
        self.journal_dir = Path(journal_dir).expanduser()
        self._lock = threading.Lock()

    def path_for(self, moment: datetime) -> Path:
        return self.journal_dir / f"{moment.strftime('%Y-%m-%d')}.md"

    def record(self, title: str, details: str, now: datetime | None = None) -> None:
        now = now or datetime.now()
        path = self.path_for(now)
        entry = f"\n## {now.strftime('%H:%M')} - {title or 'Activity'}\n\n{details}\n\n---\n"

        with self._lock:
            path.parent.mkdir(parents=True, exist_ok=True)
            is_new = not path.exists()
            with open(path, "a", encoding="utf-8") as f:
                if is_new:
                    f.write(f"# Daily Log - {now.strftime('%Y-%m-%d')}\n")
                f.write(entry)


def safe_record(sink: AuditSink | None, title: str, details: str) -> bool:
    """
    Record an audit entry, logging instead of raising on failure.

    Returns:
        True if the entry was written (or there was no sink to write to).
    """
    if sink is None:
        return True
    try:
        sink.record(title, details)
        return True
    except Exception:
        logger.exception(f"Failed to write audit entry '{title}'")
        return False
