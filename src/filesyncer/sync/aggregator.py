"""Change coalescing with debouncing.

This module provides:
- ChangeAggregator: Keeps the latest event per path and flushes a Batch
  once no change has been observed for a full debounce window
- RemovalPolicy: What to do with paths created and removed in one window
- AggregatorState: Idle or pending a flush

Every observe() restarts the countdown, so a steady stream of changes
postpones the flush until the stream goes quiet.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from enum import Enum, auto

from filesyncer.core.types import Batch, ChangeEvent

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 1000

FlushCallback = Callable[[Batch], None]


class RemovalPolicy(str, Enum):
    """Handling of a removal that follows a creation in the same window.

    LATEST keeps the removal like any other last-observed kind.
    SKIP drops the path from the batch, since it never reached the remote.
    """

    LATEST = "latest"
    SKIP = "skip"


class AggregatorState(Enum):
    """State of the aggregator."""

    IDLE = auto()
    PENDING = auto()


class ChangeAggregator:
    """Coalesces change events per path and flushes them after a quiet period.

    Thread-safe: observe() is normally called from the watch thread while
    the flush runs on a timer thread. The map is swapped out under the
    lock, so no event observed concurrently with a flush can be lost.

    Usage:
        aggregator = ChangeAggregator(on_flush=handle_batch, debounce_ms=500)
        aggregator.observe(ChangeEvent(ChangeKind.MODIFY, "src/app.py"))
        ...
        aggregator.stop()
    """

    def __init__(
        self,
        on_flush: FlushCallback,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        removal_policy: RemovalPolicy = RemovalPolicy.LATEST,
    ) -> None:
        """Initialize the aggregator.

        Args:
            on_flush: Called with each non-empty batch, on the timer thread.
            debounce_ms: Quiet period in milliseconds before a flush.
            removal_policy: How to treat create-then-remove sequences.
        """
        if debounce_ms <= 0:
            raise ValueError("debounce_ms must be positive")

        self._on_flush = on_flush
        self._debounce_ms = debounce_ms
        self._removal_policy = RemovalPolicy(removal_policy)

        self._lock = threading.Lock()
        self._pending: dict[str, ChangeEvent] = {}
        # Paths whose first event in the current window was a creation
        self._created: set[str] = set()
        self._timer: threading.Timer | None = None
        # Bumped on every reschedule; a timer only flushes if it is still current
        self._generation = 0

    @property
    def debounce_ms(self) -> int:
        return self._debounce_ms

    @property
    def removal_policy(self) -> RemovalPolicy:
        return self._removal_policy

    @property
    def state(self) -> AggregatorState:
        """Get the current state."""
        with self._lock:
            return AggregatorState.PENDING if self._timer else AggregatorState.IDLE

    @property
    def pending_count(self) -> int:
        """Number of distinct paths waiting for the next flush."""
        with self._lock:
            return len(self._pending)

    def observe(self, event: ChangeEvent) -> None:
        """Record a change and restart the debounce countdown.

        The event replaces any earlier event for the same path.
        """
        path = event.path
        with self._lock:
            if path not in self._pending:
                if event.kind.is_creation:
                    self._created.add(path)
                else:
                    self._created.discard(path)

            if (
                self._removal_policy == RemovalPolicy.SKIP
                and event.kind.is_removal
                and path in self._created
            ):
                self._pending.pop(path, None)
                self._created.discard(path)
                logger.debug("Dropped %s: created and removed in one window", path)
                if not self._pending:
                    self._cancel_timer()
                    return
            else:
                self._pending[path] = event

            self._schedule_flush()

    def _schedule_flush(self) -> None:
        """(Re)start the countdown. Caller holds the lock."""
        self._cancel_timer()
        self._generation += 1
        timer = threading.Timer(
            self._debounce_ms / 1000.0,
            self._on_timer,
            args=(self._generation,),
        )
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _cancel_timer(self) -> None:
        """Cancel the countdown. Caller holds the lock."""
        if self._timer:
            self._timer.cancel()
            self._timer = None
        self._generation += 1

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            # A newer observe() rescheduled after this timer fired
            if generation != self._generation:
                return
            batch = self._take_batch()

        if batch is not None:
            self._emit(batch)

    def _take_batch(self) -> Batch | None:
        """Swap out the pending map. Caller holds the lock."""
        self._timer = None
        if not self._pending:
            return None
        batch = Batch(self._pending.values())
        self._pending = {}
        self._created = set()
        return batch

    def _emit(self, batch: Batch) -> None:
        logger.debug("Flushing %d change(s)", len(batch))
        try:
            self._on_flush(batch)
        except Exception:
            logger.exception("Flush callback failed")

    def flush(self) -> Batch | None:
        """Flush pending changes immediately, on the calling thread.

        Returns:
            The flushed batch, or None if nothing was pending.
        """
        with self._lock:
            self._cancel_timer()
            batch = self._take_batch()

        if batch is not None:
            self._emit(batch)
        return batch

    def stop(self) -> None:
        """Cancel the countdown and drop pending changes without flushing."""
        with self._lock:
            self._cancel_timer()
            dropped = len(self._pending)
            self._pending = {}
            self._created = set()

        if dropped:
            logger.info("Discarded %d pending change(s) on stop", dropped)
