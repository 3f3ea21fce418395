"""Distribute CPU time between consecutive samples across stack suffixes."""

from collections.abc import Iterator, Mapping, Sequence

import structlog

from cpuspot.fingerprint import Fingerprint, stack_fingerprints
from cpuspot.models import Snapshot

log = structlog.get_logger()


class CostTable:
    """
    Accumulated CPU cost per stack fingerprint.

    Each entry keeps the first rendered stack text seen for its fingerprint.
    Iteration follows first-seen order.
    """

    def __init__(self) -> None:
        self._costs: dict[Fingerprint, int] = {}
        self._texts: dict[Fingerprint, str] = {}
        self.anomalies = 0

    def __len__(self) -> int:
        return len(self._costs)

    def __contains__(self, key: object) -> bool:
        return key in self._costs

    def __iter__(self) -> Iterator[Fingerprint]:
        return iter(self._costs)

    def add(self, key: Fingerprint, text: str, cost: int) -> None:
        """Add cost to an entry, creating it with text if absent."""
        if key in self._costs:
            self._costs[key] += cost
        else:
            self._costs[key] = cost
            self._texts[key] = text

    def cost(self, key: Fingerprint) -> int:
        """Get the accumulated cost for a fingerprint."""
        return self._costs[key]

    def text(self, key: Fingerprint) -> str:
        """Get the representative stack text for a fingerprint."""
        return self._texts[key]

    def items(self) -> Iterator[tuple[Fingerprint, str, int]]:
        """Iterate (fingerprint, text, cost) in first-seen order."""
        for key, cost in self._costs.items():
            yield key, self._texts[key], cost

    def merge(self, other: "CostTable") -> None:
        """Fold another table into this one, keeping existing texts."""
        for key, text, cost in other.items():
            self.add(key, text, cost)
        self.anomalies += other.anomalies


def attribute_thread(snapshots: Sequence[Snapshot], table: CostTable) -> None:
    """
    Attribute one thread's CPU time deltas into a cost table.

    The first snapshot has no predecessor and is never attributed. Each later
    snapshot charges the time since its predecessor to every suffix of its
    own stack, so a cost paid by a leaf is also paid by each longer stack
    ending in it. Negative deltas are clamped to zero and counted.
    """
    for prev, curr in zip(snapshots, snapshots[1:]):
        delta = curr.total_time - prev.total_time
        if delta < 0:
            log.warning(
                "negative_cpu_delta",
                thread_id=curr.thread_id,
                delta=delta,
            )
            table.anomalies += 1
            delta = 0
        for key, text in stack_fingerprints(curr):
            table.add(key, text, delta)


def attribute_costs(
    sequences: Mapping[int, Sequence[Snapshot]],
    table: CostTable | None = None,
) -> CostTable:
    """
    Build the cost table for a whole run.

    Args:
        sequences: Snapshots per thread id, each in sampling order.
        table: Existing table to accumulate into. A new one is created if None.

    Returns:
        The table that was filled.
    """
    if table is None:
        table = CostTable()
    for snapshots in sequences.values():
        attribute_thread(snapshots, table)
    return table
