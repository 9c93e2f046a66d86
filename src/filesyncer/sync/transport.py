"""Remote-copy transports.

This module provides:
- CommandResult: Exit status and captured output of a transport binary
- run_command: Runs a binary and captures its output
- Transport: Base class describing what a backend can do
- RsyncTransport: rsync over ssh (full tree, per-path, optional deletes)
- ScpTransport: scp (per-path only)
- create_transport: Picks the backend named in the config
"""

from __future__ import annotations

import logging
import posixpath
import shlex
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from filesyncer.core.errors import ConfigurationError, TransferError
from filesyncer.sync.ignore import ALWAYS_IGNORED

if TYPE_CHECKING:
    from filesyncer.core.config import SyncConfig
    from filesyncer.core.types import RemoteEndpoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one transport invocation."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


CommandRunner = Callable[[Sequence[str]], CommandResult]


def run_command(args: Sequence[str], timeout: float | None = None) -> CommandResult:
    """Run a transport binary and capture its output.

    Args:
        args: Program and arguments.
        timeout: Optional limit in seconds. None waits indefinitely.

    Raises:
        TransferError: If the program could not be started or timed out.
    """
    logger.debug("Running: %s", shlex.join(args))
    try:
        completed = subprocess.run(
            list(args),
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        raise TransferError(f"{args[0]} timed out after {e.timeout}s") from e
    except OSError as e:
        raise TransferError(f"Failed to start {args[0]}: {e}") from e
    return CommandResult(completed.returncode, completed.stdout or "", completed.stderr or "")


def ssh_options(endpoint: RemoteEndpoint) -> list[str]:
    """Non-interactive ssh options for an endpoint (port and identity)."""
    options = ["-p", str(endpoint.port), "-o", "BatchMode=yes"]
    if endpoint.private_key_path:
        options += ["-i", endpoint.private_key_path]
    return options


class Transport(ABC):
    """A way of copying files to the remote host.

    Subclasses declare their capabilities; the dispatcher reads them to
    decide which requests and event kinds it can hand over.
    """

    name = "transport"
    supports_full_tree = False
    supports_delete = False

    def __init__(self, config: SyncConfig, runner: CommandRunner | None = None) -> None:
        """Initialize the transport.

        Args:
            config: Sync settings (source, destination, endpoint, excludes).
            runner: Replaces run_command, mainly for tests.
        """
        self._config = config
        self._endpoint = config.endpoint
        self._source = config.source_path
        self._run = runner or run_command

    @property
    def endpoint(self) -> RemoteEndpoint:
        return self._endpoint

    @property
    def source(self) -> Path:
        """Absolute local source root."""
        return self._source

    def local_path(self, rel_path: str) -> Path:
        """Absolute local path of a relative path."""
        return self._source / rel_path

    def remote_path(self, rel_path: str) -> str:
        """Remote path of a relative path, under the destination root."""
        return posixpath.join(self._config.destination, rel_path)

    def _check(self, args: Sequence[str], result: CommandResult, rel_path: str | None) -> None:
        if result.ok:
            return
        program = args[0]
        target = f" for {rel_path}" if rel_path else ""
        raise TransferError(
            f"{program} failed{target} with code {result.returncode}: {result.stderr.strip()}",
            path=rel_path,
            returncode=result.returncode,
            stderr=result.stderr,
        )

    @abstractmethod
    def send_path(self, rel_path: str) -> None:
        """Copy one path to the remote, keeping its relative location.

        Raises:
            TransferError: If the copy failed.
        """

    def delete_path(self, rel_path: str) -> None:
        """Remove one path on the remote.

        Raises:
            TransferError: If the removal failed or is unsupported.
        """
        raise TransferError(f"{self.name} cannot delete remote paths", path=rel_path)

    def sync_tree(self, mirror_deletes: bool = False) -> None:
        """Copy the whole source tree.

        Raises:
            ConfigurationError: If this transport has no full-tree mode.
            TransferError: If the copy failed.
        """
        raise ConfigurationError(
            f"sync_method '{self.name}' does not support full-tree sync; use rsync"
        )


class RsyncTransport(Transport):
    """rsync over ssh, with archive and compression."""

    name = "rsync"
    supports_full_tree = True

    def __init__(
        self,
        config: SyncConfig,
        runner: CommandRunner | None = None,
        propagate_deletes: bool | None = None,
    ) -> None:
        super().__init__(config, runner)
        if propagate_deletes is None:
            propagate_deletes = config.propagate_deletes
        self.supports_delete = propagate_deletes

    def _remote_shell(self) -> str:
        return shlex.join(["ssh", *ssh_options(self._endpoint)])

    def build_tree_args(self, mirror_deletes: bool = False) -> list[str]:
        """Arguments for a full-tree rsync."""
        args = ["rsync", "-avz", "--progress"]
        if mirror_deletes:
            args.append("--delete")
        args += ["-e", self._remote_shell()]
        for pattern in self._config.ignore_patterns:
            args += ["--exclude", pattern]
        args += ["--exclude", ALWAYS_IGNORED[0]]
        args.append(f"{self._source}/")
        args.append(self._config.remote_target)
        return args

    def build_path_args(self, rel_path: str) -> list[str]:
        """Arguments for a single-path rsync that keeps the directory layout."""
        return [
            "rsync",
            "-avz",
            "--relative",
            "-e",
            self._remote_shell(),
            # The ./ marks where --relative starts reproducing the path
            f"{self._source}/./{rel_path}",
            self._config.remote_target,
        ]

    def build_delete_args(self, rel_path: str) -> list[str]:
        """Arguments for removing one path remotely over ssh."""
        return [
            "ssh",
            *ssh_options(self._endpoint),
            self._endpoint.target,
            f"rm -rf -- {shlex.quote(self.remote_path(rel_path))}",
        ]

    def send_path(self, rel_path: str) -> None:
        args = self.build_path_args(rel_path)
        self._check(args, self._run(args), rel_path)

    def delete_path(self, rel_path: str) -> None:
        if not self.supports_delete:
            super().delete_path(rel_path)
        args = self.build_delete_args(rel_path)
        self._check(args, self._run(args), rel_path)

    def sync_tree(self, mirror_deletes: bool = False) -> None:
        args = self.build_tree_args(mirror_deletes)
        self._check(args, self._run(args), None)


class ScpTransport(Transport):
    """Plain scp. Copies individual paths, never deletes."""

    name = "scp"

    def build_path_args(self, rel_path: str) -> list[str]:
        """Arguments for copying one path."""
        args = ["scp", "-P", str(self._endpoint.port), "-o", "BatchMode=yes"]
        if self._endpoint.private_key_path:
            args += ["-i", self._endpoint.private_key_path]
        if self.local_path(rel_path).is_dir():
            args.append("-r")
        args.append(str(self.local_path(rel_path)))
        args.append(f"{self._endpoint.target}:{self.remote_path(rel_path)}")
        return args

    def send_path(self, rel_path: str) -> None:
        args = self.build_path_args(rel_path)
        self._check(args, self._run(args), rel_path)


TRANSPORTS: dict[str, type[Transport]] = {
    RsyncTransport.name: RsyncTransport,
    ScpTransport.name: ScpTransport,
}


def create_transport(config: SyncConfig, runner: CommandRunner | None = None) -> Transport:
    """Create the transport selected by ``config.sync_method``.

    Raises:
        ConfigurationError: If the method is unknown.
    """
    transport_cls = TRANSPORTS.get(config.sync_method)
    if transport_cls is None:
        raise ConfigurationError(f"Unknown sync_method: {config.sync_method}")
    return transport_cls(config, runner)
