"""Stack and CPU time sampler for the running Python process."""

import sys
import threading
import time
from collections.abc import Iterable, Mapping
from types import FrameType

import psutil
import structlog

from cpuspot.models import Snapshot

log = structlog.get_logger()

DEFAULT_SAMPLES = 10
DEFAULT_INTERVAL = 1.0  # Seconds
MIN_INTERVAL = 0.001


def frame_label(frame: FrameType) -> str:
    """Render a frame as 'module:function'."""
    module = frame.f_globals.get("__name__") or "?"
    return f"{module}:{frame.f_code.co_name}"


def walk_stack(frame: FrameType | None, max_depth: int | None = None) -> tuple[str, ...]:
    """
    Render a thread's stack outermost frame first.

    Args:
        frame: The thread's innermost (currently executing) frame.
        max_depth: Keep only this many innermost frames. None keeps all.
    """
    labels = []
    while frame is not None:
        if max_depth is not None and len(labels) >= max_depth:
            break
        labels.append(frame_label(frame))
        frame = frame.f_back
    labels.reverse()
    return tuple(labels)


def _seconds_to_us(seconds: float) -> int:
    return round(seconds * 1_000_000)


class SnapshotStore:
    """
    Thread-safe collection of snapshots grouped by thread id.

    Threads keep the order in which they were first seen, snapshots keep
    the order in which they were added.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sequences: dict[int, list[Snapshot]] = {}

    def __len__(self) -> int:
        with self._lock:
            return sum(len(seq) for seq in self._sequences.values())

    def add(self, snapshot: Snapshot) -> None:
        """Append a snapshot to its thread's sequence."""
        with self._lock:
            self._sequences.setdefault(snapshot.thread_id, []).append(snapshot)

    def sequences(self) -> Mapping[int, list[Snapshot]]:
        """Get a copy of all sequences, safe to analyse while sampling."""
        with self._lock:
            return {tid: list(seq) for tid, seq in self._sequences.items()}


class StackSampler:
    """
    Sampler that records every Python thread's stack and CPU counters.

    Runs in a separate daemon thread and appends to a SnapshotStore.
    Handles NoSuchProcess, AccessDenied and ZombieProcess errors by skipping
    the affected tick.
    """

    def __init__(
        self,
        store: SnapshotStore | None = None,
        interval: float = DEFAULT_INTERVAL,
        max_samples: int | None = DEFAULT_SAMPLES,
        max_depth: int | None = None,
        exclude: Iterable[int] = (),
    ) -> None:
        """
        Initialize the StackSampler.

        Args:
            store: Where to put snapshots. A new store is created if None.
            interval: Seconds between samples. Default 1.0s.
            max_samples: Stop after this many ticks. None samples until stop().
            max_depth: Keep only this many innermost frames per stack.
            exclude: Thread idents never to sample, such as a thread that only
                waits on the sampler.
        """
        self.store = store if store is not None else SnapshotStore()
        self._interval = max(MIN_INTERVAL, interval)
        self._max_samples = max_samples
        self._max_depth = max_depth
        self._exclude = frozenset(exclude)
        self._process = psutil.Process()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._sample_count = 0

    @property
    def interval(self) -> float:
        """Get the sampling interval."""
        return self._interval

    @interval.setter
    def interval(self, value: float) -> None:
        """Set the sampling interval."""
        self._interval = max(MIN_INTERVAL, value)

    @property
    def max_samples(self) -> int | None:
        """Get the sample budget, None if unbounded."""
        return self._max_samples

    @property
    def sample_count(self) -> int:
        """Number of ticks that were not skipped."""
        return self._sample_count

    @property
    def is_running(self) -> bool:
        """Check if the sampler thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the sampling thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._sample_loop,
            daemon=True,
            name="StackSampler",
        )
        self._thread.start()
        log.info("sampler_started", interval=self._interval, max_samples=self._max_samples)

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the sampling thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
            log.info("sampler_stopped", samples=self._sample_count)

    def wait(self, timeout: float | None = None) -> bool:
        """
        Block until the sampler finishes its sample budget.

        Returns:
            True if the sampler is no longer running.
        """
        thread = self._thread
        if thread is not None:
            thread.join(timeout=timeout)
        return not self.is_running

    def _sample_loop(self) -> None:
        """Main sampling loop running in the background thread."""
        ticks = 0
        # The first tick is always taken, even if stop() follows start() at once
        while True:
            try:
                self.sample_once()
            except Exception:
                # Log unexpected errors and keep the loop running
                log.exception("sample_failed")

            # Skipped ticks count against the budget too
            ticks += 1
            if self._max_samples is not None and ticks >= self._max_samples:
                break

            # Wait for interval seconds or until stop is requested
            if self._stop_event.wait(timeout=self._interval):
                break

    def sample_once(self) -> list[Snapshot]:
        """
        Take one sample of every Python thread.

        The calling thread and excluded threads are left out.

        Returns:
            The snapshots added to the store, empty if the tick was skipped.
        """
        try:
            cpu_times = {
                t.id: (t.system_time, t.user_time) for t in self._process.threads()
            }
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess) as exc:
            log.warning("sample_skipped", reason=type(exc).__name__)
            return []

        now = time.time()
        own_ident = threading.get_ident()
        native_ids = {
            t.ident: t.native_id for t in threading.enumerate() if t.ident is not None
        }
        frames = sys._current_frames()

        snapshots = []
        try:
            for ident, frame in frames.items():
                if ident == own_ident or ident in self._exclude:
                    continue
                native_id = native_ids.get(ident)
                # Thread exited or is not visible to psutil
                if native_id is None or native_id not in cpu_times:
                    continue
                system_time, user_time = cpu_times[native_id]
                snapshot = Snapshot(
                    thread_id=native_id,
                    timestamp=now,
                    kernel_time=_seconds_to_us(system_time),
                    user_time=_seconds_to_us(user_time),
                    stack=walk_stack(frame, self._max_depth),
                )
                self.store.add(snapshot)
                snapshots.append(snapshot)
        finally:
            # Drop frame references so sampled threads can be collected
            del frames

        self._sample_count += 1
        return snapshots
