"""Per-thread stack reductions: common tail and diff trace."""

from collections.abc import Sequence

from cpuspot.models import UNCHANGED, Snapshot, Unchanged


def _shared_tail_length(a: Sequence[str], b: Sequence[str]) -> int:
    """Count equal frames from the innermost end of both stacks."""
    count = 0
    for x, y in zip(reversed(a), reversed(b)):
        if x != y:
            break
        count += 1
    return count


def common_stack(snapshots: Sequence[Snapshot]) -> tuple[str, ...]:
    """
    Find the innermost call chain shared frame-for-frame by every sample.

    The first stack is the starting candidate. Each later stack shrinks it by
    dropping outermost frames until candidate and stack agree on their
    innermost end. Once the candidate is empty it stays empty.

    Raises:
        ValueError: If there are no snapshots.
    """
    if not snapshots:
        raise ValueError("cannot reduce an empty snapshot sequence")

    candidate = snapshots[0].stack
    for snapshot in snapshots[1:]:
        if not candidate:
            break
        shared = _shared_tail_length(candidate, snapshot.stack)
        candidate = candidate[len(candidate) - shared :]
    return candidate


def diff_trace(snapshots: Sequence[Snapshot]) -> list[tuple[str, ...] | Unchanged]:
    """
    Walk a thread's stacks, collapsing repeats of the previous stack.

    A stack equal to the one sampled just before it becomes UNCHANGED,
    anything else is returned in full. The first stack is compared against
    an empty stack.
    """
    trace: list[tuple[str, ...] | Unchanged] = []
    prev: tuple[str, ...] = ()
    for snapshot in snapshots:
        if snapshot.stack == prev:
            trace.append(UNCHANGED)
        else:
            trace.append(snapshot.stack)
        prev = snapshot.stack
    return trace
