"""Data models for cpuspot."""

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Immutable sample of one thread's CPU counters and call stack."""

    thread_id: int
    timestamp: float  # Wall clock, informational only
    kernel_time: int  # Microseconds
    user_time: int  # Microseconds
    stack: tuple[str, ...]  # Outermost frame first, innermost last

    def __post_init__(self) -> None:
        # Accept any sequence of frames but store a hashable tuple
        if not isinstance(self.stack, tuple):
            object.__setattr__(self, "stack", tuple(self.stack))

    @property
    def total_time(self) -> int:
        """Kernel plus user time."""
        return self.kernel_time + self.user_time


@dataclass(slots=True, frozen=True)
class ThreadSummary:
    """CPU totals and steady-state stack for one thread over a run."""

    thread_id: int
    kernel_time: int
    user_time: int
    common_stack: tuple[str, ...]

    @property
    def total_time(self) -> int:
        """Kernel plus user time spent during the run."""
        return self.kernel_time + self.user_time


class Unchanged:
    """Diff trace marker: the stack equals the previous sample's stack."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "UNCHANGED"


UNCHANGED = Unchanged()
