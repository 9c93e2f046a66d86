"""Shared types for filesyncer.

This module defines the data model passed between the watcher, the
aggregator and the dispatcher:
- ChangeKind, ChangeEvent: a single observed filesystem change
- Batch: the coalesced set of changes flushed after a quiet period
- SyncRequest: what the dispatcher is asked to do
- SyncOutcome: the terminal report of one sync
- RemoteEndpoint: where files are sent
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class ChangeKind(str, Enum):
    """Kind of filesystem change, named after the watch notifications."""

    ADD = "add"
    MODIFY = "change"
    REMOVE = "unlink"
    DIR_ADD = "addDir"
    DIR_REMOVE = "unlinkDir"

    @property
    def is_removal(self) -> bool:
        """True for file and directory removals."""
        return self in (ChangeKind.REMOVE, ChangeKind.DIR_REMOVE)

    @property
    def is_creation(self) -> bool:
        """True for file and directory creations."""
        return self in (ChangeKind.ADD, ChangeKind.DIR_ADD)


class SyncMode(str, Enum):
    """Which kind of sync a request describes."""

    INCREMENTAL = "incremental"
    FULL_TREE = "full_tree"


def normalize_path(path: str) -> str:
    """Normalize a relative path to forward slashes without a leading ./"""
    normalized = path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


@dataclass(frozen=True)
class ChangeEvent:
    """A single filesystem change, relative to the source root.

    Attributes:
        kind: What happened to the path.
        path: Relative path using forward slashes.
        observed_at: Wall-clock time the change was observed (epoch seconds).
    """

    kind: ChangeKind
    path: str
    observed_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        """Normalize the path separator."""
        object.__setattr__(self, "path", normalize_path(self.path))


class Batch:
    """Coalesced changes, at most one event per path.

    Built from a sequence of events; when the sequence holds several
    events for the same path, the last one wins.
    """

    __slots__ = ("_events",)

    def __init__(self, events: Iterable[ChangeEvent] = ()) -> None:
        by_path: dict[str, ChangeEvent] = {}
        for event in events:
            by_path[event.path] = event
        self._events = by_path

    @property
    def events(self) -> tuple[ChangeEvent, ...]:
        """All events in the batch."""
        return tuple(self._events.values())

    @property
    def paths(self) -> tuple[str, ...]:
        """All paths in the batch."""
        return tuple(self._events)

    def get(self, path: str) -> ChangeEvent | None:
        """Get the event recorded for a path, if any."""
        return self._events.get(normalize_path(path))

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[ChangeEvent]:
        return iter(self.events)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and normalize_path(path) in self._events

    def __bool__(self) -> bool:
        return bool(self._events)

    def __repr__(self) -> str:
        return f"Batch({len(self._events)} paths)"


@dataclass(frozen=True)
class SyncRequest:
    """A request for the dispatcher.

    Use the factory methods: ``SyncRequest.incremental(batch)`` or
    ``SyncRequest.full_tree(mirror_deletes)``.
    """

    mode: SyncMode
    batch: Batch | None = None
    mirror_deletes: bool = False

    @classmethod
    def incremental(cls, batch: Batch) -> SyncRequest:
        """Create a request to sync the paths of a batch.

        Raises:
            ValueError: If the batch is empty.
        """
        if not batch:
            raise ValueError("Incremental sync requires a non-empty batch")
        return cls(mode=SyncMode.INCREMENTAL, batch=batch)

    @classmethod
    def full_tree(cls, mirror_deletes: bool = False) -> SyncRequest:
        """Create a request to sync the whole source tree."""
        return cls(mode=SyncMode.FULL_TREE, mirror_deletes=mirror_deletes)

    @property
    def is_full_tree(self) -> bool:
        return self.mode == SyncMode.FULL_TREE


@dataclass(frozen=True)
class SyncOutcome:
    """Terminal report for one sync request.

    Attributes:
        succeeded: False if any transfer failed.
        files_attempted: Number of paths a transfer was started for.
        duration_ms: Wall time spent in the dispatcher.
        errors: One message per failed transfer.
    """

    succeeded: bool
    files_attempted: int
    duration_ms: int
    errors: tuple[str, ...] = ()

    @classmethod
    def noop(cls) -> SyncOutcome:
        """Outcome for a request that had nothing to transfer."""
        return cls(succeeded=True, files_attempted=0, duration_ms=0)


@dataclass(frozen=True)
class RemoteEndpoint:
    """SSH endpoint of the remote host.

    Attributes:
        host: Hostname or IP address.
        username: Remote login.
        port: SSH port.
        private_key_path: Optional identity file (``~`` is expanded).
    """

    host: str
    username: str
    port: int = 22
    private_key_path: str | None = None

    def __post_init__(self) -> None:
        """Expand the user directory in the identity file path."""
        if self.private_key_path:
            object.__setattr__(
                self, "private_key_path", str(Path(self.private_key_path).expanduser())
            )

    @property
    def target(self) -> str:
        """Login target in ``user@host`` form."""
        return f"{self.username}@{self.host}"

    def __str__(self) -> str:
        return f"{self.target}:{self.port}"
