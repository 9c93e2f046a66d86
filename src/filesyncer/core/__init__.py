"""Core module - Shared configuration, errors and types."""

from filesyncer.core.config import ConfigManager, SyncConfig, default_config
from filesyncer.core.errors import (
    ConfigurationError,
    ConnectivityError,
    FilterError,
    SyncError,
    TransferError,
)
from filesyncer.core.types import (
    Batch,
    ChangeEvent,
    ChangeKind,
    RemoteEndpoint,
    SyncMode,
    SyncOutcome,
    SyncRequest,
)

__all__ = [
    # Config
    "ConfigManager",
    "SyncConfig",
    "default_config",
    # Errors
    "ConfigurationError",
    "ConnectivityError",
    "FilterError",
    "SyncError",
    "TransferError",
    # Types
    "Batch",
    "ChangeEvent",
    "ChangeKind",
    "RemoteEndpoint",
    "SyncMode",
    "SyncOutcome",
    "SyncRequest",
]
