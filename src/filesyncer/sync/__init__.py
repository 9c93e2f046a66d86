"""Change aggregation and sync dispatch.

Architecture:
    FileWatcher → PathFilter → ChangeAggregator → SyncDispatcher → Transport

Components:
- **PathFilter**: Ignore patterns first, then the optional git-tracking gate
- **ChangeAggregator**: Latest event per path, flushed after a quiet period
- **SyncDispatcher**: Runs incremental or full-tree requests on a bounded pool
- **ConnectionProbe**: Non-interactive ssh round-trip before any transfer
- **FileWatcher**: watchdog adapter feeding the aggregator
- **Transports**: RsyncTransport and ScpTransport wrapping the binaries
"""

from filesyncer.core.errors import (
    ConfigurationError,
    ConnectivityError,
    FilterError,
    SyncError,
    TransferError,
)
from filesyncer.sync.aggregator import AggregatorState, ChangeAggregator, RemovalPolicy
from filesyncer.sync.dispatcher import SyncDispatcher, TransferAction, TransferOp
from filesyncer.sync.filter import PathFilter
from filesyncer.sync.git import GitTracker
from filesyncer.sync.ignore import ALWAYS_IGNORED, WATCH_EXCLUDES, IgnorePatterns
from filesyncer.sync.probe import DEFAULT_PROBE_TIMEOUT_MS, ConnectionProbe
from filesyncer.sync.transport import (
    CommandResult,
    RsyncTransport,
    ScpTransport,
    Transport,
    create_transport,
    run_command,
)
from filesyncer.sync.watcher import ChangeEventHandler, FileWatcher

__all__ = [
    # Errors
    "ConfigurationError",
    "ConnectivityError",
    "FilterError",
    "SyncError",
    "TransferError",
    # Filtering
    "ALWAYS_IGNORED",
    "GitTracker",
    "IgnorePatterns",
    "PathFilter",
    "WATCH_EXCLUDES",
    # Aggregation
    "AggregatorState",
    "ChangeAggregator",
    "RemovalPolicy",
    # Dispatch
    "CommandResult",
    "RsyncTransport",
    "ScpTransport",
    "SyncDispatcher",
    "TransferAction",
    "TransferOp",
    "Transport",
    "create_transport",
    "run_command",
    # Probe
    "ConnectionProbe",
    "DEFAULT_PROBE_TIMEOUT_MS",
    # Watching
    "ChangeEventHandler",
    "FileWatcher",
]
