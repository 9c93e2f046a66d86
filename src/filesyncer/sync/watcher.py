"""File system watcher feeding the change aggregator.

This module provides:
- FileWatcher: Watches the source tree recursively using watchdog
- ChangeEventHandler: Maps watchdog events to ChangeEvents, filters them
  and hands accepted ones to a ChangeAggregator

Pipeline:
    watchdog event -> watch excludes -> PathFilter -> ChangeAggregator -> on_batch
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from filesyncer.core.types import Batch, ChangeEvent, ChangeKind
from filesyncer.sync.aggregator import ChangeAggregator, RemovalPolicy
from filesyncer.sync.filter import PathFilter
from filesyncer.sync.ignore import WATCH_EXCLUDES, IgnorePatterns

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

    from filesyncer.core.config import SyncConfig

logger = logging.getLogger(__name__)


def _decode(path: str | bytes) -> str:
    if isinstance(path, bytes):
        return path.decode("utf-8", errors="replace")
    return path


class ChangeEventHandler(FileSystemEventHandler):
    """Translates watchdog events and forwards accepted changes."""

    def __init__(
        self,
        base_path: Path,
        path_filter: PathFilter,
        aggregator: ChangeAggregator,
        watch_excludes: list[str] | None = None,
    ) -> None:
        """Initialize the handler.

        Args:
            base_path: Root of the watched tree.
            path_filter: Decides which changes are synchronized.
            aggregator: Receives accepted changes.
            watch_excludes: Patterns dropped before any filtering.
        """
        super().__init__()
        self._base_path = base_path
        self._filter = path_filter
        self._aggregator = aggregator
        self._excludes = IgnorePatterns(
            WATCH_EXCLUDES if watch_excludes is None else watch_excludes,
            include_defaults=False,
        )

    def _relative(self, path: str | bytes) -> str | None:
        try:
            rel_path = Path(_decode(path)).relative_to(self._base_path)
        except ValueError:
            logger.warning("Path %s is not relative to %s", path, self._base_path)
            return None
        rel_str = str(rel_path).replace("\\", "/")
        return None if rel_str in ("", ".") else rel_str

    def handle_change(self, kind: ChangeKind, path: str | bytes) -> None:
        """Filter one change and pass it to the aggregator."""
        rel_path = self._relative(path)
        if rel_path is None:
            return

        is_dir = kind in (ChangeKind.DIR_ADD, ChangeKind.DIR_REMOVE)
        if self._excludes.matches(rel_path, is_dir=is_dir):
            return

        if not self._filter.accepts(rel_path, kind):
            logger.debug("Filtered out %s (%s)", rel_path, kind.value)
            return

        self._aggregator.observe(ChangeEvent(kind=kind, path=rel_path))

    def _walk_files(self, directory: Path) -> Iterator[Path]:
        for root, _dirs, files in os.walk(directory):
            for name in files:
                yield Path(root) / name

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle created event."""
        if isinstance(event, DirCreatedEvent):
            self.handle_change(ChangeKind.DIR_ADD, event.src_path)
        elif isinstance(event, FileCreatedEvent):
            self.handle_change(ChangeKind.ADD, event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle modified event. Directory modifications are not changes."""
        if isinstance(event, FileModifiedEvent):
            self.handle_change(ChangeKind.MODIFY, event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle deleted event."""
        if isinstance(event, DirDeletedEvent):
            self.handle_change(ChangeKind.DIR_REMOVE, event.src_path)
        elif isinstance(event, FileDeletedEvent):
            self.handle_change(ChangeKind.REMOVE, event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle moved event as a removal plus an addition."""
        if isinstance(event, DirMovedEvent):
            self.handle_change(ChangeKind.DIR_REMOVE, event.src_path)
            self.handle_change(ChangeKind.DIR_ADD, event.dest_path)
            # Files inside a moved directory get no events of their own
            for file_path in self._walk_files(Path(_decode(event.dest_path))):
                self.handle_change(ChangeKind.ADD, str(file_path))
        elif isinstance(event, FileMovedEvent):
            self.handle_change(ChangeKind.REMOVE, event.src_path)
            self.handle_change(ChangeKind.ADD, event.dest_path)


class FileWatcher:
    """Watches the source directory and emits debounced batches.

    Usage:
        with FileWatcher(config, on_batch=dispatcher.sync_batch):
            ...
    """

    def __init__(
        self,
        config: SyncConfig,
        on_batch: Callable[[Batch], object],
        path_filter: PathFilter | None = None,
    ) -> None:
        """Initialize the file watcher.

        Args:
            config: Sync settings (source, patterns, debounce window).
            on_batch: Called with each flushed batch, on a timer thread.
            path_filter: Overrides the filter built from the config.
        """
        self._watch_path = config.source_path
        if not self._watch_path.is_dir():
            raise ValueError(f"Watch path must be a directory: {config.source}")

        self._filter = path_filter or PathFilter.from_config(config, self._watch_path)
        self._aggregator = ChangeAggregator(
            on_flush=on_batch,
            debounce_ms=config.debounce_ms,
            removal_policy=RemovalPolicy(config.removal_policy),
        )
        self._handler = ChangeEventHandler(
            base_path=self._watch_path,
            path_filter=self._filter,
            aggregator=self._aggregator,
        )

        self._observer: BaseObserver | None = None
        self._running = False

    @property
    def watch_path(self) -> Path:
        """Get the watched directory path."""
        return self._watch_path

    @property
    def aggregator(self) -> ChangeAggregator:
        return self._aggregator

    @property
    def path_filter(self) -> PathFilter:
        return self._filter

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._running

    def start(self) -> None:
        """Start watching for changes."""
        if self._running:
            return

        self._observer = Observer()
        self._observer.schedule(self._handler, str(self._watch_path), recursive=True)
        self._observer.start()
        self._running = True
        logger.info("File watcher started on %s", self._watch_path)

    def stop(self) -> None:
        """Stop watching. Pending, unflushed changes are dropped."""
        if not self._running:
            return

        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5.0)
        self._observer = None
        self._aggregator.stop()
        self._running = False
        logger.info("File watcher stopped")

    def __enter__(self) -> FileWatcher:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.stop()
