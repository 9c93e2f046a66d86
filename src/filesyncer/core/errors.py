"""Exception classes for filesyncer."""

from __future__ import annotations


class SyncError(Exception):
    """Base exception for sync errors."""


class ConfigurationError(SyncError):
    """Invalid or missing settings. Fatal before any watch or sync."""


class ConnectivityError(SyncError):
    """The remote host could not be reached."""


class FilterError(SyncError):
    """A git query failed. Always recovered by the path filter."""


class TransferError(SyncError):
    """A single remote-copy invocation failed or could not start.

    Attributes:
        path: Relative path being transferred, or None for a full-tree sync.
        returncode: Exit status of the transport, or None if it never started.
        stderr: Captured diagnostic output.
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        self.path = path
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)
