"""Tests for the file system watcher."""

from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest
from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from filesyncer.core.config import SyncConfig
from filesyncer.core.types import Batch, ChangeKind
from filesyncer.sync.aggregator import ChangeAggregator
from filesyncer.sync.filter import PathFilter
from filesyncer.sync.ignore import IgnorePatterns
from filesyncer.sync.watcher import ChangeEventHandler, FileWatcher


@pytest.fixture
def aggregator() -> ChangeAggregator:
    """Aggregator with a window long enough to flush by hand."""
    return ChangeAggregator(lambda batch: None, debounce_ms=60_000)


def _handler(
    base: Path,
    aggregator: ChangeAggregator,
    patterns: list[str] | None = None,
) -> ChangeEventHandler:
    return ChangeEventHandler(base, PathFilter(IgnorePatterns(patterns)), aggregator)


def _kinds(batch: Batch | None) -> dict[str, ChangeKind]:
    assert batch is not None
    return {event.path: event.kind for event in batch}


class TestChangeEventHandler:
    """Tests for mapping watchdog events."""

    def test_file_events(self, tmp_path: Path, aggregator: ChangeAggregator) -> None:
        """File events map to add, change and unlink."""
        handler = _handler(tmp_path, aggregator)

        handler.on_created(FileCreatedEvent(str(tmp_path / "a.txt")))
        handler.on_modified(FileModifiedEvent(str(tmp_path / "src" / "b.py")))
        handler.on_deleted(FileDeletedEvent(str(tmp_path / "c.txt")))

        assert _kinds(aggregator.flush()) == {
            "a.txt": ChangeKind.ADD,
            "src/b.py": ChangeKind.MODIFY,
            "c.txt": ChangeKind.REMOVE,
        }

    def test_directory_events(self, tmp_path: Path, aggregator: ChangeAggregator) -> None:
        """Directory creation and removal have their own kinds."""
        handler = _handler(tmp_path, aggregator)

        handler.on_created(DirCreatedEvent(str(tmp_path / "new")))
        handler.on_deleted(DirDeletedEvent(str(tmp_path / "old")))

        assert _kinds(aggregator.flush()) == {
            "new": ChangeKind.DIR_ADD,
            "old": ChangeKind.DIR_REMOVE,
        }

    def test_directory_modification_ignored(
        self, tmp_path: Path, aggregator: ChangeAggregator
    ) -> None:
        """A directory's own metadata change is not a change."""
        handler = _handler(tmp_path, aggregator)
        handler.on_modified(DirModifiedEvent(str(tmp_path / "src")))
        assert aggregator.pending_count == 0

    def test_file_move(self, tmp_path: Path, aggregator: ChangeAggregator) -> None:
        """A rename is a removal of the old path and an addition of the new one."""
        handler = _handler(tmp_path, aggregator)
        handler.on_moved(FileMovedEvent(str(tmp_path / "old.txt"), str(tmp_path / "new.txt")))

        assert _kinds(aggregator.flush()) == {
            "old.txt": ChangeKind.REMOVE,
            "new.txt": ChangeKind.ADD,
        }

    def test_directory_move_adds_contents(
        self, tmp_path: Path, aggregator: ChangeAggregator
    ) -> None:
        """Files inside a moved-in directory are reported as additions."""
        dest = tmp_path / "lib"
        (dest / "nested").mkdir(parents=True)
        (dest / "a.py").write_text("a")
        (dest / "nested" / "b.py").write_text("b")
        handler = _handler(tmp_path, aggregator)

        handler.on_moved(DirMovedEvent(str(tmp_path / "old_lib"), str(dest)))

        assert _kinds(aggregator.flush()) == {
            "old_lib": ChangeKind.DIR_REMOVE,
            "lib": ChangeKind.DIR_ADD,
            "lib/a.py": ChangeKind.ADD,
            "lib/nested/b.py": ChangeKind.ADD,
        }

    def test_watch_excludes(self, tmp_path: Path, aggregator: ChangeAggregator) -> None:
        """node_modules and .git never reach the filter."""
        handler = _handler(tmp_path, aggregator)

        handler.on_created(FileCreatedEvent(str(tmp_path / "node_modules" / "x" / "index.js")))
        handler.on_modified(FileModifiedEvent(str(tmp_path / ".git" / "index")))

        assert aggregator.pending_count == 0

    def test_ignore_patterns(self, tmp_path: Path, aggregator: ChangeAggregator) -> None:
        """Rejected paths are not aggregated."""
        handler = _handler(tmp_path, aggregator, ["dist/**"])

        handler.on_created(FileCreatedEvent(str(tmp_path / "dist" / "bundle.js")))
        handler.on_created(FileCreatedEvent(str(tmp_path / "src" / "index.js")))

        assert _kinds(aggregator.flush()) == {"src/index.js": ChangeKind.ADD}

    def test_path_outside_base(self, tmp_path: Path, aggregator: ChangeAggregator) -> None:
        """Events outside the watched tree are dropped."""
        handler = _handler(tmp_path / "project", aggregator)
        handler.on_created(FileCreatedEvent(str(tmp_path / "elsewhere.txt")))
        assert aggregator.pending_count == 0

    def test_root_itself_dropped(self, tmp_path: Path, aggregator: ChangeAggregator) -> None:
        """Events for the watched directory itself are dropped."""
        handler = _handler(tmp_path, aggregator)
        handler.on_deleted(DirDeletedEvent(str(tmp_path)))
        assert aggregator.pending_count == 0


class TestFileWatcher:
    """Tests for FileWatcher."""

    def test_requires_directory(self, config: SyncConfig, source_dir: Path) -> None:
        """The source must be an existing directory."""
        config.source = str(source_dir / "missing")
        with pytest.raises(ValueError, match="must be a directory"):
            FileWatcher(config, on_batch=lambda batch: None)

    def test_uses_config(self, config: SyncConfig) -> None:
        """Debounce window and removal policy come from the config."""
        config.debounce_ms = 250
        config.removal_policy = "skip"

        watcher = FileWatcher(config, on_batch=lambda batch: None)

        assert watcher.watch_path == config.source_path
        assert watcher.aggregator.debounce_ms == 250
        assert watcher.aggregator.removal_policy.value == "skip"

    def test_start_stop(self, config: SyncConfig) -> None:
        """Should start and stop cleanly, twice in a row."""
        watcher = FileWatcher(config, on_batch=lambda batch: None)
        assert watcher.is_running is False

        watcher.start()
        watcher.start()
        assert watcher.is_running is True

        watcher.stop()
        watcher.stop()
        assert watcher.is_running is False

    def test_context_manager(self, config: SyncConfig) -> None:
        """Should work as a context manager."""
        with FileWatcher(config, on_batch=lambda batch: None) as watcher:
            assert watcher.is_running is True
        assert watcher.is_running is False

    def test_detects_file_changes(self, config: SyncConfig) -> None:
        """A new file shows up in a flushed batch."""
        config.debounce_ms = 100
        batches: list[Batch] = []
        flushed = threading.Event()

        def on_batch(batch: Batch) -> None:
            batches.append(batch)
            flushed.set()

        with FileWatcher(config, on_batch=on_batch):
            time.sleep(0.2)
            (config.source_path / "test.txt").write_text("hello")
            assert flushed.wait(5.0)

        paths = {path for batch in batches for path in batch.paths}
        assert "test.txt" in paths

    def test_ignored_files_not_reported(self, config: SyncConfig) -> None:
        """Files matching ignore patterns never show up."""
        config.debounce_ms = 100
        config.ignore_patterns = ["*.log"]
        batches: list[Batch] = []
        flushed = threading.Event()

        def on_batch(batch: Batch) -> None:
            batches.append(batch)
            flushed.set()

        with FileWatcher(config, on_batch=on_batch):
            time.sleep(0.2)
            (config.source_path / "debug.log").write_text("noise")
            (config.source_path / "keep.txt").write_text("data")
            assert flushed.wait(5.0)

        paths = {path for batch in batches for path in batch.paths}
        assert "keep.txt" in paths
        assert "debug.log" not in paths
