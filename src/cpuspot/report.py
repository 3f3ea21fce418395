"""Assemble ranked cost groups and per-thread views from a sampling run."""

from collections.abc import Mapping, Sequence
from concurrent.futures import Executor
from dataclasses import dataclass
from itertools import groupby

import structlog

from cpuspot.attribution import CostTable, attribute_thread
from cpuspot.models import Snapshot, ThreadSummary, Unchanged
from cpuspot.reducer import common_stack, diff_trace

log = structlog.get_logger()


@dataclass(slots=True, frozen=True)
class CostGroup:
    """Stacks that were attributed the same cost."""

    cost: int
    stacks: tuple[str, ...]  # Rendered stack texts, most specific first


@dataclass(slots=True, frozen=True)
class ThreadReport:
    """A thread summary paired with the thread's diff trace."""

    summary: ThreadSummary
    trace: tuple[tuple[str, ...] | Unchanged, ...]


@dataclass(slots=True, frozen=True)
class Report:
    """Result of analysing a sampling run."""

    cost_groups: tuple[CostGroup, ...]
    threads: tuple[ThreadReport, ...]
    anomalies: int = 0  # Negative deltas that were clamped to zero


def rank_costs(table: CostTable) -> list[CostGroup]:
    """
    Rank cost table entries into groups of equal cost, highest first.

    Within a group, texts are considered longest first (first-seen order
    breaks ties) and a text is dropped when an already kept text contains
    it. This collapses the redundant suffixes every stack contributes.
    """
    # sorted() is stable, so equal keys keep the table's first-seen order
    entries = sorted(table.items(), key=lambda entry: (-entry[2], -len(entry[1])))

    groups: list[CostGroup] = []
    for cost, members in groupby(entries, key=lambda entry: entry[2]):
        kept: list[str] = []
        for _, text, _ in members:
            if not any(text in other for other in kept):
                kept.append(text)
        groups.append(CostGroup(cost=cost, stacks=tuple(kept)))
    return groups


def summarize_thread(snapshots: Sequence[Snapshot]) -> ThreadSummary:
    """
    Summarize one thread from its first and last snapshots.

    Raises:
        ValueError: If there are no snapshots.
    """
    if not snapshots:
        raise ValueError("cannot summarize an empty snapshot sequence")

    first, last = snapshots[0], snapshots[-1]
    return ThreadSummary(
        thread_id=first.thread_id,
        kernel_time=last.kernel_time - first.kernel_time,
        user_time=last.user_time - first.user_time,
        common_stack=common_stack(snapshots),
    )


def _analyze_thread(
    snapshots: Sequence[Snapshot],
) -> tuple[CostTable, ThreadReport]:
    """Compute a thread's partial cost table and its report."""
    partial = CostTable()
    attribute_thread(snapshots, partial)
    thread_report = ThreadReport(
        summary=summarize_thread(snapshots),
        trace=tuple(diff_trace(snapshots)),
    )
    return partial, thread_report


def build_report(
    sequences: Mapping[int, Sequence[Snapshot]],
    executor: Executor | None = None,
) -> Report:
    """
    Analyse a finished sampling run.

    Args:
        sequences: Snapshots per thread id, each in sampling order.
        executor: Optional executor to analyse threads concurrently. Partial
            cost tables are merged in the calling thread in the mapping's
            order, so the result is identical either way.

    Returns:
        Ranked cost groups and thread reports sorted by total CPU time.
    """
    usable = []
    for thread_id, snapshots in sequences.items():
        if not snapshots:
            log.warning("empty_sequence", thread_id=thread_id)
            continue
        usable.append(snapshots)

    if executor is None:
        results = [_analyze_thread(snapshots) for snapshots in usable]
    else:
        results = list(executor.map(_analyze_thread, usable))

    table = CostTable()
    thread_reports = []
    for partial, thread_report in results:
        table.merge(partial)
        thread_reports.append(thread_report)

    # Stable sort keeps first-seen thread order among equal totals
    thread_reports.sort(key=lambda tr: tr.summary.total_time, reverse=True)

    return Report(
        cost_groups=tuple(rank_costs(table)),
        threads=tuple(thread_reports),
        anomalies=table.anomalies,
    )
