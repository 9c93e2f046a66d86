"""Tests for change coalescing and debouncing."""

from __future__ import annotations

import threading
import time

import pytest

from filesyncer.core.types import Batch, ChangeEvent, ChangeKind
from filesyncer.sync.aggregator import AggregatorState, ChangeAggregator, RemovalPolicy


class FlushRecorder:
    """Collects flushed batches and their flush times."""

    def __init__(self) -> None:
        self.batches: list[Batch] = []
        self.times: list[float] = []
        self.flushed = threading.Event()
        self._lock = threading.Lock()

    def __call__(self, batch: Batch) -> None:
        with self._lock:
            self.batches.append(batch)
            self.times.append(time.monotonic())
        self.flushed.set()

    def wait(self, timeout: float = 2.0) -> bool:
        return self.flushed.wait(timeout)


@pytest.fixture
def recorder() -> FlushRecorder:
    """Create a flush recorder."""
    return FlushRecorder()


class TestCoalescing:
    """Tests for per-path coalescing."""

    def test_last_kind_wins(self, recorder: FlushRecorder) -> None:
        """Several events for one path collapse to the last one."""
        aggregator = ChangeAggregator(recorder, debounce_ms=50)
        aggregator.observe(ChangeEvent(ChangeKind.ADD, "a.txt"))
        aggregator.observe(ChangeEvent(ChangeKind.MODIFY, "a.txt"))
        aggregator.observe(ChangeEvent(ChangeKind.REMOVE, "b.txt"))

        assert recorder.wait()
        batch = recorder.batches[0]
        assert len(batch) == 2
        assert batch.get("a.txt").kind == ChangeKind.MODIFY  # type: ignore[union-attr]
        assert batch.get("b.txt").kind == ChangeKind.REMOVE  # type: ignore[union-attr]

    def test_latest_policy_keeps_removal(self, recorder: FlushRecorder) -> None:
        """With the default policy, add-then-remove flushes the removal."""
        aggregator = ChangeAggregator(recorder, debounce_ms=50)
        aggregator.observe(ChangeEvent(ChangeKind.ADD, "tmp.txt"))
        aggregator.observe(ChangeEvent(ChangeKind.REMOVE, "tmp.txt"))

        assert recorder.wait()
        assert recorder.batches[0].get("tmp.txt").kind == ChangeKind.REMOVE  # type: ignore[union-attr]

    def test_skip_policy_drops_created_then_removed(self) -> None:
        """With the skip policy, a path created and removed in one window disappears."""
        aggregator = ChangeAggregator(
            lambda batch: None, debounce_ms=10_000, removal_policy=RemovalPolicy.SKIP
        )
        aggregator.observe(ChangeEvent(ChangeKind.ADD, "tmp.txt"))
        aggregator.observe(ChangeEvent(ChangeKind.MODIFY, "tmp.txt"))
        aggregator.observe(ChangeEvent(ChangeKind.MODIFY, "keep.txt"))
        aggregator.observe(ChangeEvent(ChangeKind.REMOVE, "tmp.txt"))

        batch = aggregator.flush()

        assert batch is not None
        assert batch.paths == ("keep.txt",)

    def test_skip_policy_keeps_removal_of_existing_file(self) -> None:
        """With the skip policy, modify-then-remove is still a removal."""
        aggregator = ChangeAggregator(
            lambda batch: None, debounce_ms=10_000, removal_policy=RemovalPolicy.SKIP
        )
        aggregator.observe(ChangeEvent(ChangeKind.MODIFY, "old.txt"))
        aggregator.observe(ChangeEvent(ChangeKind.REMOVE, "old.txt"))

        batch = aggregator.flush()

        assert batch is not None
        assert batch.get("old.txt").kind == ChangeKind.REMOVE  # type: ignore[union-attr]

    def test_skip_policy_only_event_cancels_timer(self, recorder: FlushRecorder) -> None:
        """Dropping the only pending path leaves nothing to flush."""
        aggregator = ChangeAggregator(recorder, debounce_ms=50, removal_policy="skip")
        aggregator.observe(ChangeEvent(ChangeKind.ADD, "tmp.txt"))
        aggregator.observe(ChangeEvent(ChangeKind.REMOVE, "tmp.txt"))

        assert aggregator.state == AggregatorState.IDLE
        assert recorder.wait(0.2) is False


class TestDebounce:
    """Tests for debounce timing."""

    def test_flushes_after_quiet_period(self, recorder: FlushRecorder) -> None:
        """A single event is flushed once the window elapses."""
        aggregator = ChangeAggregator(recorder, debounce_ms=50)
        start = time.monotonic()
        aggregator.observe(ChangeEvent(ChangeKind.ADD, "a.txt"))
        assert aggregator.state == AggregatorState.PENDING

        assert recorder.wait()
        assert recorder.times[0] - start >= 0.045
        assert aggregator.state == AggregatorState.IDLE
        assert aggregator.pending_count == 0

    def test_each_observe_restarts_window(self, recorder: FlushRecorder) -> None:
        """No flush happens until a full window passes after the last event."""
        aggregator = ChangeAggregator(recorder, debounce_ms=150)
        last_observe = 0.0
        for i in range(5):
            last_observe = time.monotonic()
            aggregator.observe(ChangeEvent(ChangeKind.MODIFY, f"f{i}.txt"))
            time.sleep(0.05)

        assert recorder.wait()
        assert len(recorder.batches) == 1
        assert len(recorder.batches[0]) == 5
        assert recorder.times[0] - last_observe >= 0.145

    def test_no_flush_when_empty(self, recorder: FlushRecorder) -> None:
        """Nothing observed means nothing flushed."""
        aggregator = ChangeAggregator(recorder, debounce_ms=20)
        assert aggregator.flush() is None
        time.sleep(0.1)
        assert recorder.batches == []

    def test_separate_windows_separate_batches(self, recorder: FlushRecorder) -> None:
        """Events after a flush start a new batch."""
        aggregator = ChangeAggregator(recorder, debounce_ms=30)
        aggregator.observe(ChangeEvent(ChangeKind.ADD, "a.txt"))
        assert recorder.wait()
        recorder.flushed.clear()

        aggregator.observe(ChangeEvent(ChangeKind.ADD, "b.txt"))
        assert recorder.wait()

        assert [b.paths for b in recorder.batches] == [("a.txt",), ("b.txt",)]

    def test_invalid_window(self) -> None:
        """A non-positive window is rejected."""
        with pytest.raises(ValueError):
            ChangeAggregator(lambda batch: None, debounce_ms=0)


class TestLifecycle:
    """Tests for flush() and stop()."""

    def test_flush_now(self, recorder: FlushRecorder) -> None:
        """flush() emits pending changes immediately and cancels the timer."""
        aggregator = ChangeAggregator(recorder, debounce_ms=10_000)
        aggregator.observe(ChangeEvent(ChangeKind.ADD, "a.txt"))

        batch = aggregator.flush()

        assert batch is not None
        assert recorder.batches == [batch]
        assert aggregator.state == AggregatorState.IDLE

    def test_stop_drops_pending(self, recorder: FlushRecorder) -> None:
        """stop() cancels the timer without flushing."""
        aggregator = ChangeAggregator(recorder, debounce_ms=50)
        aggregator.observe(ChangeEvent(ChangeKind.ADD, "a.txt"))

        aggregator.stop()

        assert aggregator.pending_count == 0
        assert recorder.wait(0.2) is False

    def test_callback_error_does_not_break_aggregator(self) -> None:
        """A failing callback is logged and later batches still flush."""
        calls: list[Batch] = []

        def failing(batch: Batch) -> None:
            calls.append(batch)
            raise RuntimeError("boom")

        aggregator = ChangeAggregator(failing, debounce_ms=10_000)
        aggregator.observe(ChangeEvent(ChangeKind.ADD, "a.txt"))
        aggregator.flush()
        aggregator.observe(ChangeEvent(ChangeKind.ADD, "b.txt"))
        aggregator.flush()

        assert len(calls) == 2


class TestConcurrency:
    """Tests for concurrent observe and flush."""

    def test_no_event_lost(self) -> None:
        """Every path observed from many threads appears in exactly one batch."""
        seen: list[str] = []
        lock = threading.Lock()

        def collect(batch: Batch) -> None:
            with lock:
                seen.extend(batch.paths)

        aggregator = ChangeAggregator(collect, debounce_ms=5)

        def producer(prefix: str) -> None:
            for i in range(200):
                aggregator.observe(ChangeEvent(ChangeKind.MODIFY, f"{prefix}/{i}.txt"))
                if i % 50 == 0:
                    aggregator.flush()

        threads = [threading.Thread(target=producer, args=(f"t{n}",)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        aggregator.flush()
        time.sleep(0.05)

        assert len(seen) == 800
        assert len(set(seen)) == 800
