"""Directory watching with per-file stability detection."""

import os
import re
import stat
import threading
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver
from watchdog.observers.polling import PollingObserver

from ..analyzer.analyzer import FileAnalyzer
from ..audit.journal import AuditSink, safe_record
from ..config.models import WatchedDirectorySettings, WatcherSettings
from ..errors import DestinationError, WatcherError
from ..proposals.service import ProposalService
from ..utils.events import EventEmitter
from ..utils.logging import get_logger
from ..utils.paths import is_same_or_inside, normalize_path
from .destination import DestinationResolver

logger = get_logger(__name__)

# Windows drives mounted into WSL do not deliver inotify events
WSL_DRIVE_PATTERN = re.compile(r"^/mnt/[a-zA-Z](/|$)")

# Filesystems whose changes made elsewhere never reach inotify
POLLING_FILESYSTEMS = {
    "9p",
    "drvfs",
    "cifs",
    "smbfs",
    "smb3",
    "nfs",
    "nfs4",
    "fuse.sshfs",
    "virtiofs",
    "vboxsf",
    "fuse.vmhgfs-fuse",
}


def _filesystem_type(path: str, mounts_file: str) -> str | None:
    """Find the filesystem type of the mount that contains ``path``."""
    try:
        with open(mounts_file, encoding="utf-8") as f:
            lines = f.readlines()
    except OSError:
        return None

    best_mount, best_type = "", None
    for line in lines:
        parts = line.split()
        if len(parts) < 3:
            continue
        mount_point = parts[1].replace("\\040", " ")
        if is_same_or_inside(path, mount_point) and len(mount_point) > len(best_mount):
            best_mount, best_type = mount_point, parts[2]
    return best_type


def requires_polling(path: str | Path, mounts_file: str = "/proc/mounts") -> bool:
    """True if native change notifications cannot be trusted for ``path``."""
    normalized = normalize_path(path)
    if WSL_DRIVE_PATTERN.match(normalized):
        return True
    return _filesystem_type(normalized, mounts_file) in POLLING_FILESYSTEMS


@dataclass
class WatchedDirectory:
    """A directory in the watch set."""

    path: str
    enabled: bool = True
    recursive: bool = False
    added_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class PendingFile:
    """A file waiting for its size and mtime to settle."""

    path: str
    last_size: int
    last_mtime: float
    first_detected_at: float
    timer: threading.Timer | None = None
    # Bumped on every reschedule so that superseded timers do nothing
    generation: int = 0


@dataclass
class ScanResult:
    """Summary of a one-shot directory scan."""

    files_scanned: int = 0
    proposals_created: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


class _WatchEventHandler(FileSystemEventHandler):
    """Forwards watchdog events to the service until deactivated."""

    def __init__(self, service: "WatcherService"):
        super().__init__()
        self.service = service
        self.active = True

    def on_created(self, event: FileSystemEvent):
        if self.active and not event.is_directory:
            self.service.handle_file_event(event.src_path)

    def on_modified(self, event: FileSystemEvent):
        if self.active and not event.is_directory:
            self.service.handle_file_event(event.src_path)

    def on_deleted(self, event: FileSystemEvent):
        if self.active and not event.is_directory:
            self.service.handle_file_removed(event.src_path)

    def on_moved(self, event: FileSystemEvent):
        if not self.active or event.is_directory:
            return
        self.service.handle_file_removed(event.src_path)
        if self.service.is_watched(event.dest_path):
            self.service.handle_file_event(event.dest_path)


class WatcherService(EventEmitter):
    """
    Turns filesystem events into analyzed proposals.

    Each detected file is tracked until its size and mtime stop changing
    for ``stability_delay_ms``, then analyzed and handed to the proposal
    service. Files that keep changing are forced through after
    ``max_stability_wait_ms``.

    Events:
        file:detected(path, size, mtime)
        file:stable(path)
        file:analyzed(analysis)
        file:error(path, exception)
        watcher:started()
        watcher:stopped()
        directory:added(path)
        directory:removed(path)
    """

    def __init__(
        self,
        settings: WatcherSettings,
        proposals: ProposalService,
        analyzer: FileAnalyzer,
        resolver: DestinationResolver,
        directories: Iterable[WatchedDirectorySettings] = (),
        audit: AuditSink | None = None,
    ):
        super().__init__()
        self.settings = settings
        self.proposals = proposals
        self.analyzer = analyzer
        self.resolver = resolver
        self.audit = audit

        self._ignored = settings.compiled_ignored_patterns()
        self._lock = threading.RLock()
        self._directories: dict[str, WatchedDirectory] = {}
        self._pending: dict[str, PendingFile] = {}
        self._observers: dict[str, BaseObserver] = {}
        self._handler: _WatchEventHandler | None = None
        self._running = False
        # Bumped by stop() so stability checks already under way are dropped
        self._stop_epoch = 0

        for directory in directories:
            path = normalize_path(directory.path)
            self._directories[path] = WatchedDirectory(
                path=path, enabled=directory.enabled, recursive=directory.recursive
            )
        self.resolver.set_watched_directories(self._directories)

    # Lifecycle

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def start(self) -> None:
        """
        Start monitoring every enabled directory that exists.

        Raises:
            WatcherError: If there is nothing to watch
        """
        with self._lock:
            if self._running:
                logger.warning("Watcher is already running")
                return

            enabled = [d for d in self._directories.values() if d.enabled]
            for directory in enabled:
                if not os.path.isdir(directory.path):
                    logger.warning(f"Watched directory does not exist: {directory.path}")
            valid = [d for d in enabled if os.path.isdir(d.path)]
            if not valid:
                raise WatcherError("No valid directories to watch")

            self._handler = _WatchEventHandler(self)
            failure: WatcherError | None = None
            try:
                for directory in valid:
                    self._start_observer(directory)
            except WatcherError as e:
                failure = e
                started = list(self._observers.values())
                self._observers.clear()
                self._handler.active = False
                self._handler = None
            else:
                self._running = True

        if failure is not None:
            # Observers already started must not outlive a failed start
            for observer in started:
                observer.stop()
            for observer in started:
                observer.join(timeout=5.0)
            logger.error(f"File watcher failed to start: {failure}")
            raise failure

        logger.info(f"File watcher started, monitoring {len(valid)} director{'y' if len(valid) == 1 else 'ies'}")
        self.emit("watcher:started")
        safe_record(
            self.audit,
            "File Watcher Started",
            "\n".join(
                ["Started monitoring directories for new files:"]
                + [f"- `{d.path}`" for d in valid]
            ),
        )

    def stop(self) -> None:
        """Cancel pending stability checks and stop all observers. Idempotent."""
        with self._lock:
            if not self._running:
                return

            if self._handler is not None:
                self._handler.active = False
            pending_count = len(self._pending)
            self._cancel_pending(lambda _: True)

            observers = list(self._observers.values())
            self._observers.clear()
            directory_count = len([d for d in self._directories.values() if d.enabled])
            self._running = False
            self._stop_epoch += 1

        # Observer threads may be waiting on our lock; join outside it
        for observer in observers:
            observer.stop()
        for observer in observers:
            observer.join(timeout=5.0)

        logger.info("File watcher stopped")
        self.emit("watcher:stopped")
        safe_record(
            self.audit,
            "File Watcher Stopped",
            "\n".join(
                [
                    "Stopped monitoring directories.",
                    f"- Directories: {directory_count}",
                    f"- Pending files cleared: {pending_count}",
                ]
            ),
        )

    def _start_observer(self, directory: WatchedDirectory) -> None:
        polling = self.settings.force_polling or requires_polling(directory.path)
        if polling:
            observer: BaseObserver = PollingObserver(timeout=self.settings.polling_interval_seconds)
        else:
            observer = Observer()
        observer.schedule(self._handler, directory.path, recursive=directory.recursive)

        try:
            observer.start()
        except OSError as e:
            if polling:
                raise WatcherError(f"Cannot watch {directory.path}: {e}") from e
            # e.g. inotify watch limit reached
            logger.warning(f"Native watching failed for {directory.path} ({e}); falling back to polling")
            observer = PollingObserver(timeout=self.settings.polling_interval_seconds)
            observer.schedule(self._handler, directory.path, recursive=directory.recursive)
            try:
                observer.start()
            except OSError as fallback_error:
                raise WatcherError(f"Cannot watch {directory.path}: {fallback_error}") from fallback_error
            polling = True

        self._observers[directory.path] = observer
        logger.info(f"Watching folder: {directory.path}{' (polling mode)' if polling else ''}")

    # Watch set

    def add_directory(
        self, path: str | Path, recursive: bool = False, enabled: bool = True
    ) -> WatchedDirectory:
        """
        Add a directory to the watch set, watching it immediately if running.

        Raises:
            WatcherError: If the path is missing, not a directory, already
                watched, or would contain the organization base path
        """
        normalized = normalize_path(path)

        if not os.path.exists(normalized):
            raise WatcherError(f"Directory does not exist: {path}")
        if not os.path.isdir(normalized):
            raise WatcherError(f"Path is not a directory: {path}")

        with self._lock:
            if normalized in self._directories:
                raise WatcherError(f"Directory is already being watched: {path}")

            try:
                self.resolver.add_watched_directory(normalized)
            except DestinationError as e:
                raise WatcherError(str(e)) from e

            directory = WatchedDirectory(path=normalized, enabled=enabled, recursive=recursive)

            if self._running and enabled:
                try:
                    self._start_observer(directory)
                except WatcherError:
                    self.resolver.remove_watched_directory(normalized)
                    raise

            self._directories[normalized] = directory

        logger.info(f"Added watched directory: {normalized}")
        self.emit("directory:added", normalized)
        return replace(directory)

    def remove_directory(self, path: str | Path) -> str:
        """
        Remove a directory from the watch set.

        Raises:
            WatcherError: If the directory is not being watched
        """
        normalized = normalize_path(path)

        with self._lock:
            if normalized not in self._directories:
                raise WatcherError(f"Directory is not being watched: {path}")

            del self._directories[normalized]
            self.resolver.remove_watched_directory(normalized)
            self._cancel_pending(lambda p: is_same_or_inside(p, normalized))
            observer = self._observers.pop(normalized, None)

        if observer is not None:
            observer.stop()
            observer.join(timeout=5.0)

        logger.info(f"Removed watched directory: {normalized}")
        self.emit("directory:removed", normalized)
        return normalized

    def get_watched_directories(self) -> list[WatchedDirectory]:
        with self._lock:
            return [replace(d) for d in self._directories.values()]

    def is_watched(self, path: str | Path) -> bool:
        """True if ``path`` lies in an enabled watched directory (honoring recursion)."""
        normalized = normalize_path(path)
        parent = os.path.dirname(normalized)
        with self._lock:
            for directory in self._directories.values():
                if not directory.enabled:
                    continue
                if directory.recursive:
                    if is_same_or_inside(normalized, directory.path) and normalized != directory.path:
                        return True
                elif parent == directory.path:
                    return True
        return False

    # Event handling

    def should_ignore(self, path: str | Path) -> bool:
        filename = os.path.basename(str(path))
        return any(pattern.search(filename) for pattern in self._ignored)

    def handle_file_event(self, path: str | Path) -> None:
        """Process an add or change event for a file."""
        path = normalize_path(path)
        if self.should_ignore(path):
            logger.debug(f"Ignoring file: {path}")
            return

        try:
            st = os.stat(path)
        except FileNotFoundError:
            self._forget(path)
            return
        except OSError as e:
            logger.warning(f"Cannot stat {path}: {e}")
            self.emit("file:error", path, e)
            return

        if stat.S_ISDIR(st.st_mode):
            return

        if self.proposals.has_pending_for_path(path) or self.proposals.is_on_cooldown(path):
            return

        self.emit("file:detected", path, st.st_size, st.st_mtime)

        with self._lock:
            epoch = self._stop_epoch
            pending = self._pending.get(path)
            if pending is None:
                pending = PendingFile(
                    path=path,
                    last_size=st.st_size,
                    last_mtime=st.st_mtime,
                    first_detected_at=time.monotonic(),
                )
                self._pending[path] = pending
                logger.debug(f"File detected: {path}")
                self._schedule_check(pending)
                return

            force = self._record_change(pending, st.st_size, st.st_mtime)

        if force:
            self._on_file_stable(path, epoch)

    def handle_file_removed(self, path: str | Path) -> None:
        """Forget a removed file and invalidate its pending proposal, if any."""
        path = normalize_path(path)
        self._forget(path)

        proposal = self.proposals.get_by_source_path(path)
        if proposal is not None:
            self.proposals.invalidate(proposal.id, "Source file was deleted")

    def _forget(self, path: str) -> None:
        with self._lock:
            pending = self._pending.pop(path, None)
            if pending is not None and pending.timer is not None:
                pending.timer.cancel()

    def _cancel_pending(self, predicate) -> None:
        with self._lock:
            for path in [p for p in self._pending if predicate(p)]:
                pending = self._pending.pop(path)
                if pending.timer is not None:
                    pending.timer.cancel()

    def _schedule_check(self, pending: PendingFile) -> None:
        """(Re)start the stability timer of a tracked file. Caller holds the lock."""
        if pending.timer is not None:
            pending.timer.cancel()
        pending.generation += 1
        timer = threading.Timer(
            self.settings.stability_delay_ms / 1000,
            self._check_stability,
            args=(pending.path, pending.generation),
        )
        timer.daemon = True
        pending.timer = timer
        timer.start()

    def _record_change(self, pending: PendingFile, size: int, mtime: float) -> bool:
        """
        Update a tracked snapshot. Caller holds the lock.

        Returns:
            True if the file has waited too long and must be analyzed now.
        """
        if size == pending.last_size and mtime == pending.last_mtime:
            return False

        pending.last_size = size
        pending.last_mtime = mtime

        elapsed_ms = (time.monotonic() - pending.first_detected_at) * 1000
        if elapsed_ms > self.settings.max_stability_wait_ms:
            if pending.timer is not None:
                pending.timer.cancel()
            del self._pending[pending.path]
            logger.debug(f"File still changing after {elapsed_ms:.0f}ms, forcing analysis: {pending.path}")
            return True

        logger.debug(f"File still changing: {pending.path}")
        self._schedule_check(pending)
        return False

    def _check_stability(self, path: str, generation: int) -> None:
        with self._lock:
            epoch = self._stop_epoch
            pending = self._pending.get(path)
            if pending is None or pending.generation != generation:
                return

            try:
                st = os.stat(path)
            except OSError:
                # Treated as removal
                del self._pending[path]
                logger.debug(f"File no longer accessible: {path}")
                return

            if st.st_size != pending.last_size or st.st_mtime != pending.last_mtime:
                force = self._record_change(pending, st.st_size, st.st_mtime)
                if not force:
                    return
            else:
                del self._pending[path]

        self._on_file_stable(path, epoch)

    def _on_file_stable(self, path: str, epoch: int) -> None:
        # stop() may have run after the caller released the lock
        if epoch != self._stop_epoch:
            return

        logger.debug(f"File stable: {path}")
        self.emit("file:stable", path)

        if not os.path.exists(path):
            logger.debug(f"File disappeared before analysis: {path}")
            return

        try:
            analysis = self.analyzer.analyze(path)
            self.emit("file:analyzed", analysis)
            self.proposals.create_from_analysis(analysis)
        except Exception as e:
            logger.error(f"Error processing file {path}: {e}")
            self.emit("file:error", path, e)

    # Scanning

    def scan_directory(self, path: str | Path, recursive: bool = False) -> ScanResult:
        """
        Propose organization for files already present in a directory.

        Stability detection is skipped; duplicate and cooldown checks apply.

        Raises:
            WatcherError: If the path is missing or not a directory
        """
        normalized = normalize_path(path)
        if not os.path.exists(normalized):
            raise WatcherError(f"Directory does not exist: {path}")
        if not os.path.isdir(normalized):
            raise WatcherError(f"Path is not a directory: {path}")

        result = ScanResult()
        self._scan_into(normalized, recursive, result)
        logger.info(
            f"Scan of {normalized} complete: {result.files_scanned} scanned, "
            f"{result.proposals_created} proposed, {result.skipped} skipped, "
            f"{len(result.errors)} error(s)"
        )
        return result

    def _scan_into(self, directory: str, recursive: bool, result: ScanResult) -> None:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            result.errors.append(f"Failed to scan {directory}: {e}")
            return

        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                if recursive:
                    self._scan_into(entry.path, recursive, result)
                continue

            # Symlinks and special files are left alone
            if not entry.is_file(follow_symlinks=False):
                continue

            result.files_scanned += 1
            file_path = normalize_path(entry.path)

            if (
                self.should_ignore(file_path)
                or self.proposals.has_pending_for_path(file_path)
                or self.proposals.is_on_cooldown(file_path)
            ):
                result.skipped += 1
                continue

            try:
                analysis = self.analyzer.analyze(file_path)
                proposal = self.proposals.create_from_analysis(analysis)
            except Exception as e:
                result.errors.append(f"Failed to analyze {entry.name}: {e}")
                continue

            if proposal is None:
                result.skipped += 1
            else:
                result.proposals_created += 1
