"""Sync dispatch: turns requests into transport operations.

This module provides:
- SyncDispatcher: Executes incremental and full-tree sync requests
- TransferOp: One planned per-path operation

Incremental requests fan out one transfer per path onto a bounded
thread pool and wait for all of them. A failing path is recorded in
the outcome and never cancels its siblings.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterator
from concurrent.futures import Future, ThreadPoolExecutor, wait
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from filesyncer.core.errors import ConfigurationError, TransferError
from filesyncer.core.types import Batch, ChangeEvent, ChangeKind, SyncOutcome, SyncRequest
from filesyncer.sync.transport import create_transport

if TYPE_CHECKING:
    from filesyncer.core.config import SyncConfig
    from filesyncer.sync.transport import CommandRunner, Transport

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 8

# Kinds that are copied to the remote
TRANSFER_KINDS = (ChangeKind.ADD, ChangeKind.MODIFY)


class TransferAction(Enum):
    """What a planned operation does."""

    SEND = "send"
    DELETE = "delete"


@dataclass(frozen=True)
class TransferOp:
    """A single planned per-path operation."""

    action: TransferAction
    path: str


class SyncDispatcher:
    """Executes sync requests against a transport.

    The thread pool is shared by all requests, so overlapping batches
    together never run more than ``max_concurrency`` transfers.

    Usage:
        dispatcher = SyncDispatcher.from_config(config)
        outcome = dispatcher.sync_batch(batch)
        outcome = dispatcher.sync_full()
        dispatcher.close()
    """

    def __init__(
        self,
        transport: Transport,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        serialize_paths: bool = False,
        mirror_deletes: bool = False,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            transport: Backend performing the copies.
            max_concurrency: Maximum simultaneous per-path transfers.
            serialize_paths: Hold a per-path lock during each transfer so
                transfers of the same path never overlap.
            mirror_deletes: Default for full-tree requests built by sync_full().
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

        self._transport = transport
        self._max_concurrency = max_concurrency
        self._serialize_paths = serialize_paths
        self._mirror_deletes = mirror_deletes

        self._lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None
        self._closed = False
        # Per-path locks with the number of transfers using each
        self._path_locks: dict[str, threading.Lock] = {}
        self._path_users: dict[str, int] = {}

    @classmethod
    def from_config(
        cls,
        config: SyncConfig,
        runner: CommandRunner | None = None,
    ) -> SyncDispatcher:
        """Build a dispatcher and its transport from settings."""
        return cls(
            create_transport(config, runner),
            max_concurrency=config.max_concurrency,
            serialize_paths=config.serialize_paths,
            mirror_deletes=config.delete_remote_files,
        )

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    @property
    def closed(self) -> bool:
        return self._closed

    def sync_batch(self, batch: Batch) -> SyncOutcome:
        """Run one incremental sync cycle for a batch."""
        return self.execute(SyncRequest.incremental(batch))

    def sync_full(self, mirror_deletes: bool | None = None) -> SyncOutcome:
        """Run one full-tree sync.

        Args:
            mirror_deletes: Override the configured mirror-deletes flag.
        """
        if mirror_deletes is None:
            mirror_deletes = self._mirror_deletes
        return self.execute(SyncRequest.full_tree(mirror_deletes))

    def execute(self, request: SyncRequest) -> SyncOutcome:
        """Execute a request.

        Returns:
            The outcome. Transfer failures are reported in it, not raised.
            After close(), a failed outcome without running anything.

        Raises:
            ConfigurationError: For a full-tree request on a transport
                without full-tree support.
        """
        if self._closed:
            logger.warning("Dispatcher is closed; request dropped")
            return _closed_outcome()
        if request.is_full_tree:
            return self._execute_full_tree(request.mirror_deletes)
        if request.batch is None:
            raise ValueError("Incremental request without a batch")
        return self._execute_incremental(request.batch)

    def _execute_full_tree(self, mirror_deletes: bool) -> SyncOutcome:
        if not self._transport.supports_full_tree:
            raise ConfigurationError(
                f"sync_method '{self._transport.name}' does not support full-tree sync; "
                "use rsync"
            )

        if mirror_deletes:
            logger.warning("Full-tree sync will delete remote files missing locally")

        start = time.monotonic()
        errors: list[str] = []
        try:
            self._transport.sync_tree(mirror_deletes=mirror_deletes)
        except TransferError as e:
            errors.append(str(e))

        duration_ms = _elapsed_ms(start)
        logger.info("Full-tree sync finished in %dms (%d errors)", duration_ms, len(errors))
        return SyncOutcome(
            succeeded=not errors,
            files_attempted=0,
            duration_ms=duration_ms,
            errors=tuple(errors),
        )

    def plan(self, batch: Batch) -> list[TransferOp]:
        """Decide which operations a batch needs.

        Additions and modifications are sent. Removals become deletions
        only when the transport supports them, and are dropped otherwise.
        Directory creations are dropped; their files arrive as additions.
        """
        ops: list[TransferOp] = []
        for event in batch:
            op = self._plan_event(event)
            if op is not None:
                ops.append(op)
        return ops

    def _plan_event(self, event: ChangeEvent) -> TransferOp | None:
        if event.kind in TRANSFER_KINDS:
            return TransferOp(TransferAction.SEND, event.path)
        if event.kind.is_removal and self._transport.supports_delete:
            return TransferOp(TransferAction.DELETE, event.path)
        logger.debug("Skipping %s (%s)", event.path, event.kind.value)
        return None

    def _execute_incremental(self, batch: Batch) -> SyncOutcome:
        ops = self.plan(batch)
        if not ops:
            return SyncOutcome.noop()

        start = time.monotonic()
        executor = self._get_executor()
        if executor is None:
            return _closed_outcome()

        errors: list[str] = []
        futures: dict[Future[None], TransferOp] = {}
        for index, op in enumerate(ops):
            try:
                futures[executor.submit(self._run_op, op)] = op
            except RuntimeError:
                # close() shut the pool down while this batch was being submitted
                errors.extend(
                    f"Dispatcher closed before transferring {skipped.path}"
                    for skipped in ops[index:]
                )
                break
        wait(futures)

        for future, op in futures.items():
            error = future.exception()
            if error is None:
                continue
            if isinstance(error, TransferError):
                errors.append(str(error))
            else:
                errors.append(f"Unexpected error for {op.path}: {error}")

        duration_ms = _elapsed_ms(start)
        logger.info(
            "Synced %d path(s) in %dms (%d failed)", len(ops), duration_ms, len(errors)
        )
        return SyncOutcome(
            succeeded=not errors,
            files_attempted=len(ops),
            duration_ms=duration_ms,
            errors=tuple(errors),
        )

    def _run_op(self, op: TransferOp) -> None:
        if not self._serialize_paths:
            self._transfer(op)
            return
        with self._hold_path(op.path):
            self._transfer(op)

    def _transfer(self, op: TransferOp) -> None:
        try:
            if op.action == TransferAction.DELETE:
                self._transport.delete_path(op.path)
                logger.debug("Deleted remote %s", op.path)
                return

            if not self._transport.local_path(op.path).exists():
                logger.info("Skipping %s: no longer exists locally", op.path)
                return

            self._transport.send_path(op.path)
            logger.debug("Sent %s", op.path)
        except TransferError as e:
            logger.warning("%s", e)
            raise
        except Exception:
            logger.exception("Transfer error: %s", op.path)
            raise

    @contextmanager
    def _hold_path(self, path: str) -> Iterator[None]:
        with self._lock:
            lock = self._path_locks.setdefault(path, threading.Lock())
            self._path_users[path] = self._path_users.get(path, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._lock:
                self._path_users[path] -= 1
                if not self._path_users[path]:
                    del self._path_users[path]
                    del self._path_locks[path]

    def _get_executor(self) -> ThreadPoolExecutor | None:
        with self._lock:
            if self._closed:
                return None
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_concurrency,
                    thread_name_prefix="filesyncer-transfer",
                )
            return self._executor

    def close(self, wait_for_transfers: bool = True) -> None:
        """Shut down the thread pool. Later requests fail without running.

        Args:
            wait_for_transfers: Block until in-flight transfers finish.
        """
        with self._lock:
            self._closed = True
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait_for_transfers)

    def __enter__(self) -> SyncDispatcher:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _closed_outcome() -> SyncOutcome:
    return SyncOutcome(
        succeeded=False,
        files_attempted=0,
        duration_ms=0,
        errors=("Dispatcher is closed",),
    )
