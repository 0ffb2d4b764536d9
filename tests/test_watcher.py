"""Tests for the watcher service."""

import time
from unittest.mock import MagicMock, patch

import pytest

from filesteward.config import WatchedDirectorySettings, WatcherSettings
from filesteward.errors import WatcherError
from filesteward.watcher import WatcherService, requires_polling


def wait_for(predicate, timeout: float = 3.0) -> bool:
    """Poll until predicate() is true or the timeout passes."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


@pytest.fixture
def settings():
    return WatcherSettings(
        stability_delay_ms=100, max_stability_wait_ms=5000, polling_interval_seconds=0.1
    )


@pytest.fixture
def make_watcher(proposal_service, analyzer, resolver, watched_dir):
    """Factory for watchers over the watched directory; stopped after the test."""
    created = []

    def _make(settings, analyzer=analyzer, recursive=False):
        service = WatcherService(
            settings=settings,
            proposals=proposal_service,
            analyzer=analyzer,
            resolver=resolver,
            directories=[WatchedDirectorySettings(path=watched_dir, recursive=recursive)],
        )
        created.append(service)
        return service

    yield _make
    for service in created:
        service.stop()


@pytest.fixture
def watcher(make_watcher, settings):
    return make_watcher(settings)


class TestIgnoreAndScope:
    """Tests for ignore patterns and watch scope."""

    @pytest.mark.parametrize(
        "name", [".hidden", "download.crdownload", "file.part", "file.tmp", "Thumbs.db", "notes.txt~"]
    )
    def test_ignored(self, watcher, name):
        assert watcher.should_ignore(f"/x/{name}")

    @pytest.mark.parametrize("name", ["report.pdf", "notes.txt", "photo.jpg"])
    def test_not_ignored(self, watcher, name):
        assert not watcher.should_ignore(f"/x/{name}")

    def test_is_watched_non_recursive(self, watcher, watched_dir):
        """Test that only direct children count when not recursive."""
        assert watcher.is_watched(watched_dir / "a.txt")
        assert not watcher.is_watched(watched_dir / "sub" / "a.txt")
        assert not watcher.is_watched(watched_dir.parent / "a.txt")

    def test_is_watched_recursive(self, make_watcher, settings, watched_dir):
        watcher = make_watcher(settings, recursive=True)
        assert watcher.is_watched(watched_dir / "sub" / "a.txt")


class TestWatchSet:
    """Tests for adding and removing directories."""

    def test_add_directory(self, watcher, tmp_path, resolver):
        """Test adding a valid directory."""
        desktop = tmp_path / "Desktop"
        desktop.mkdir()
        listener = MagicMock()
        watcher.on("directory:added", listener)

        directory = watcher.add_directory(desktop, recursive=True)

        assert directory.path == str(desktop)
        assert directory.recursive
        assert str(desktop) in resolver.watched_directories
        listener.assert_called_once_with(str(desktop))

    def test_add_missing_directory(self, watcher, tmp_path):
        with pytest.raises(WatcherError, match="does not exist"):
            watcher.add_directory(tmp_path / "missing")

    def test_add_file(self, watcher, tmp_path):
        path = tmp_path / "file.txt"
        path.write_text("x")
        with pytest.raises(WatcherError, match="not a directory"):
            watcher.add_directory(path)

    def test_add_duplicate(self, watcher, watched_dir):
        with pytest.raises(WatcherError, match="already being watched"):
            watcher.add_directory(watched_dir)

    def test_add_directory_containing_base_path(self, watcher, tmp_path):
        """Test that a directory containing the organized tree is refused."""
        with pytest.raises(WatcherError):
            watcher.add_directory(tmp_path)
        assert len(watcher.get_watched_directories()) == 1

    def test_add_directory_observer_failure(
        self, make_watcher, settings, watched_dir, tmp_path, resolver
    ):
        """Test that a directory whose observer cannot start is not kept."""
        watcher = make_watcher(settings.model_copy(update={"force_polling": True}))
        watcher.start()
        desktop = tmp_path / "Desktop"
        desktop.mkdir()

        with patch.object(watcher, "_start_observer", side_effect=WatcherError("Cannot watch")):
            with pytest.raises(WatcherError, match="Cannot watch"):
                watcher.add_directory(desktop)

        assert [d.path for d in watcher.get_watched_directories()] == [str(watched_dir)]
        assert str(desktop) not in resolver.watched_directories

    def test_remove_directory(self, watcher, watched_dir, resolver):
        assert watcher.remove_directory(watched_dir) == str(watched_dir)
        assert watcher.get_watched_directories() == []
        assert resolver.watched_directories == []

    def test_remove_unknown(self, watcher, tmp_path):
        with pytest.raises(WatcherError, match="not being watched"):
            watcher.remove_directory(tmp_path / "elsewhere")


class TestLifecycle:
    """Tests for start and stop."""

    def test_start_and_stop(self, make_watcher, settings):
        watcher = make_watcher(settings.model_copy(update={"force_polling": True}))
        started, stopped = MagicMock(), MagicMock()
        watcher.on("watcher:started", started)
        watcher.on("watcher:stopped", stopped)

        watcher.start()
        assert watcher.is_running
        watcher.stop()
        watcher.stop()

        assert not watcher.is_running
        started.assert_called_once()
        stopped.assert_called_once()

    def test_start_without_directories(self, watcher, watched_dir):
        """Test that starting with nothing to watch fails."""
        watched_dir.rmdir()
        with pytest.raises(WatcherError, match="No valid directories"):
            watcher.start()

    def test_failed_start_stops_started_observers(
        self, proposal_service, analyzer, resolver, watched_dir, tmp_path, settings
    ):
        """Test that observers already running are stopped when a later one fails."""
        desktop = tmp_path / "Desktop"
        desktop.mkdir()
        watcher = WatcherService(
            settings.model_copy(update={"force_polling": True}),
            proposal_service,
            analyzer,
            resolver,
            [WatchedDirectorySettings(path=watched_dir), WatchedDirectorySettings(path=desktop)],
        )
        started = []
        start_observer = watcher._start_observer

        def start_first_only(directory):
            if started:
                raise WatcherError(f"Cannot watch {directory.path}")
            start_observer(directory)
            started.append(watcher._observers[directory.path])

        with patch.object(watcher, "_start_observer", side_effect=start_first_only):
            with pytest.raises(WatcherError, match="Cannot watch"):
                watcher.start()

        assert not watcher.is_running
        assert len(started) == 1
        assert not started[0].is_alive()
        assert watcher._observers == {}

    def test_polling_fallback_failure_raises_watcher_error(self, watcher):
        """Test that a failed polling fallback surfaces as a watcher error."""
        native, polling = MagicMock(), MagicMock()
        native.start.side_effect = OSError("inotify watch limit reached")
        polling.start.side_effect = OSError("permission denied")

        with patch("filesteward.watcher.service.requires_polling", return_value=False), \
                patch("filesteward.watcher.service.Observer", return_value=native), \
                patch("filesteward.watcher.service.PollingObserver", return_value=polling):
            with pytest.raises(WatcherError, match="permission denied"):
                watcher.start()

        assert not watcher.is_running

    def test_stability_check_after_stop_is_dropped(
        self, make_watcher, settings, watched_dir, proposal_service
    ):
        """Test that a stability check racing stop() does not analyze the file."""
        watcher = make_watcher(settings.model_copy(update={"force_polling": True}))
        stable = MagicMock()
        watcher.on("file:stable", stable)
        path = watched_dir / "notes.txt"
        path.write_text("a")
        watcher.start()

        epoch = watcher._stop_epoch
        watcher.stop()
        watcher._on_file_stable(str(path), epoch)

        stable.assert_not_called()
        assert proposal_service.get_pending() == []

    def test_audit_entries(self, proposal_service, analyzer, resolver, watched_dir, settings):
        audit = MagicMock()
        watcher = WatcherService(
            settings.model_copy(update={"force_polling": True}),
            proposal_service,
            analyzer,
            resolver,
            [WatchedDirectorySettings(path=watched_dir)],
            audit=audit,
        )
        watcher.start()
        watcher.stop()
        titles = [c[0][0] for c in audit.record.call_args_list]
        assert titles == ["File Watcher Started", "File Watcher Stopped"]

    def test_stop_cancels_pending(self, make_watcher, watched_dir):
        """Test that stopping drops files still waiting to settle."""
        watcher = make_watcher(WatcherSettings(stability_delay_ms=10000, force_polling=True))
        watcher.start()
        path = watched_dir / "a.txt"
        path.write_text("x")
        watcher.handle_file_event(path)
        assert watcher.pending_count == 1

        watcher.stop()

        assert watcher.pending_count == 0

    def test_detects_new_file(self, make_watcher, settings, watched_dir, proposal_service):
        """Test the whole pipeline with a polling observer."""
        watcher = make_watcher(settings.model_copy(update={"force_polling": True}))
        watcher.start()

        (watched_dir / "screenshot-2025-01-01.png").write_bytes(b"\x89PNG")

        assert wait_for(lambda: len(proposal_service.get_pending()) == 1, timeout=5.0)
        proposal = proposal_service.get_pending()[0]
        assert proposal.source_filename == "screenshot-2025-01-01.png"
        assert proposal.category.value == "screenshots"
        assert not proposal.sensitive


class TestStability:
    """Tests for stability detection."""

    def test_stable_file_is_proposed(self, watcher, watched_dir, proposal_service):
        """Test that a file that stops changing is analyzed once."""
        detected, stable = MagicMock(), MagicMock()
        watcher.on("file:detected", detected)
        watcher.on("file:stable", stable)
        path = watched_dir / "invoice-2025.pdf"
        path.write_bytes(b"%PDF-1.4")

        watcher.handle_file_event(path)

        assert wait_for(lambda: proposal_service.has_pending_for_path(path))
        assert detected.call_args[0][:2] == (str(path), 8)
        stable.assert_called_once_with(str(path))
        assert proposal_service.get_by_source_path(path).sensitive

    def test_changes_restart_the_timer(self, watcher, watched_dir, proposal_service):
        """Test that a growing file is only proposed once it settles."""
        analyzed = MagicMock()
        watcher.on("file:analyzed", analyzed)
        path = watched_dir / "notes.txt"
        path.write_text("a")
        watcher.handle_file_event(path)

        for i in range(3):
            time.sleep(0.05)
            path.write_text("a" * (i + 2))
            watcher.handle_file_event(path)
        assert not proposal_service.has_pending_for_path(path)

        assert wait_for(lambda: proposal_service.has_pending_for_path(path))
        analyzed.assert_called_once()
        assert proposal_service.get_by_source_path(path).source_size == 4

    def test_forced_after_max_wait(self, make_watcher, watched_dir, proposal_service):
        """Test that a file changing past the maximum wait is analyzed anyway."""
        watcher = make_watcher(WatcherSettings(stability_delay_ms=10000, max_stability_wait_ms=0))
        path = watched_dir / "stream.txt"
        path.write_text("a")
        watcher.handle_file_event(path)

        time.sleep(0.01)
        path.write_text("ab")
        watcher.handle_file_event(path)

        assert proposal_service.has_pending_for_path(path)
        assert watcher.pending_count == 0

    def test_skips_paths_with_pending_proposal(self, watcher, watched_dir, proposal_service):
        """Test that a proposed file is not tracked again."""
        path = watched_dir / "notes.txt"
        path.write_text("a")
        watcher.handle_file_event(path)
        assert wait_for(lambda: proposal_service.has_pending_for_path(path))

        detected = MagicMock()
        watcher.on("file:detected", detected)
        watcher.handle_file_event(path)

        detected.assert_not_called()
        assert watcher.pending_count == 0

    def test_skips_rejected_paths(self, watcher, watched_dir, proposal_service):
        path = watched_dir / "notes.txt"
        path.write_text("a")
        watcher.handle_file_event(path)
        assert wait_for(lambda: proposal_service.has_pending_for_path(path))
        proposal_service.reject(proposal_service.get_by_source_path(path).id)

        watcher.handle_file_event(path)

        assert watcher.pending_count == 0

    def test_ignored_and_directories_skipped(self, watcher, watched_dir):
        partial = watched_dir / "movie.crdownload"
        partial.write_text("x")
        sub = watched_dir / "sub"
        sub.mkdir()

        watcher.handle_file_event(partial)
        watcher.handle_file_event(sub)

        assert watcher.pending_count == 0

    def test_file_removed_before_stable(self, watcher, watched_dir, proposal_service):
        """Test that a file deleted while settling is forgotten."""
        path = watched_dir / "notes.txt"
        path.write_text("a")
        watcher.handle_file_event(path)
        path.unlink()
        watcher.handle_file_removed(path)

        time.sleep(0.3)
        assert watcher.pending_count == 0
        assert proposal_service.get_pending() == []

    def test_removal_invalidates_proposal(self, watcher, watched_dir, proposal_service):
        """Test that deleting a proposed file invalidates its proposal."""
        invalidated = MagicMock()
        proposal_service.on("proposal:invalidated", invalidated)
        path = watched_dir / "notes.txt"
        path.write_text("a")
        watcher.handle_file_event(path)
        assert wait_for(lambda: proposal_service.has_pending_for_path(path))

        path.unlink()
        watcher.handle_file_removed(path)

        assert proposal_service.get_pending() == []
        assert invalidated.call_args[0][1] == "Source file was deleted"

    def test_analysis_error_emitted(self, make_watcher, settings, watched_dir, proposal_service):
        """Test that analysis failures become file:error events."""
        broken = MagicMock()
        broken.analyze.side_effect = RuntimeError("boom")
        watcher = make_watcher(settings, analyzer=broken)
        errors = MagicMock()
        watcher.on("file:error", errors)
        path = watched_dir / "notes.txt"
        path.write_text("a")

        watcher.handle_file_event(path)

        assert wait_for(lambda: errors.called)
        assert errors.call_args[0][0] == str(path)
        assert proposal_service.get_pending() == []


class TestScan:
    """Tests for one-shot directory scans."""

    def test_scan_directory(self, watcher, watched_dir, proposal_service):
        """Test proposing files that already exist."""
        for name in ["a.txt", "invoice.pdf", "setup.exe"]:
            (watched_dir / name).write_text(name)
        (watched_dir / "b.tmp").write_text("x")
        sub = watched_dir / "sub"
        sub.mkdir()
        (sub / "nested.txt").write_text("x")

        result = watcher.scan_directory(watched_dir)

        assert result.files_scanned == 4
        assert result.proposals_created == 3
        assert result.skipped == 1
        assert result.errors == []
        assert len(proposal_service.get_pending()) == 3

    def test_scan_recursive(self, watcher, watched_dir):
        sub = watched_dir / "sub"
        sub.mkdir()
        (sub / "nested.txt").write_text("x")
        assert watcher.scan_directory(watched_dir, recursive=True).proposals_created == 1

    def test_rescan_skips_existing(self, watcher, watched_dir):
        """Test that a second scan does not duplicate proposals."""
        (watched_dir / "a.txt").write_text("a")
        watcher.scan_directory(watched_dir)
        result = watcher.scan_directory(watched_dir)
        assert result.proposals_created == 0
        assert result.skipped == 1

    def test_scan_missing(self, watcher, tmp_path):
        with pytest.raises(WatcherError):
            watcher.scan_directory(tmp_path / "missing")

    def test_scan_collects_errors(self, make_watcher, settings, watched_dir):
        broken = MagicMock()
        broken.analyze.side_effect = RuntimeError("boom")
        watcher = make_watcher(settings, analyzer=broken)
        (watched_dir / "a.txt").write_text("a")

        result = watcher.scan_directory(watched_dir)

        assert result.errors == ["Failed to analyze a.txt: boom"]


class TestRequiresPolling:
    """Tests for filesystem detection."""

    @pytest.fixture
    def mounts(self, tmp_path):
        path = tmp_path / "mounts"
        path.write_text(
            "/dev/sda1 / ext4 rw,relatime 0 0\n"
            "drvfs /data 9p rw,noatime 0 0\n"
            "/dev/sdb1 /data/local ext4 rw 0 0\n"
            "//server/share /mnt/my\\040share cifs rw 0 0\n"
        )
        return str(path)

    def test_wsl_drive(self, mounts):
        assert requires_polling("/mnt/c/Users/me/Downloads", mounts)
        assert requires_polling("/mnt/d", mounts)

    def test_native_filesystem(self, mounts):
        assert not requires_polling("/home/me/Downloads", mounts)

    def test_bridged_filesystem(self, mounts):
        assert requires_polling("/data/shared", mounts)

    def test_longest_mount_wins(self, mounts):
        assert not requires_polling("/data/local/inbox", mounts)

    def test_escaped_mount_point(self, mounts):
        assert requires_polling("/mnt/my share/inbox", mounts)

    def test_unreadable_mounts_file(self, tmp_path):
        assert not requires_polling("/home/me", str(tmp_path / "missing"))
