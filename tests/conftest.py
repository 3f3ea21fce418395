"""Shared fixtures for cpuspot tests."""

from collections.abc import Sequence

import pytest
import structlog

from cpuspot.models import Snapshot


def make_snapshots(
    thread_id: int,
    totals: Sequence[int],
    stacks: Sequence[Sequence[str]],
) -> list[Snapshot]:
    """Build a thread's snapshot sequence with all CPU time counted as user time."""
    return [
        Snapshot(
            thread_id=thread_id,
            timestamp=float(i),
            kernel_time=0,
            user_time=total,
            stack=tuple(stack),
        )
        for i, (total, stack) in enumerate(zip(totals, stacks))
    ]


@pytest.fixture
def example_run() -> dict[int, list[Snapshot]]:
    """Two threads: a busy worker and a mostly idle one."""
    return {
        1: make_snapshots(
            1,
            [100, 150, 150, 300],
            [["A"], ["A", "B"], ["A", "B"], ["C"]],
        ),
        2: make_snapshots(
            2,
            [0, 10, 20],
            [["main", "loop", "wait"], ["main", "loop", "wait"], ["main", "loop", "poll"]],
        ),
    }


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo any structlog configuration a test made."""
    yield
    structlog.reset_defaults()
