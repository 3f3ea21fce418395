"""Verification Test: Load - analyse a large synthetic sampling run.

Builds a run with many threads, many samples and deep stacks, and checks
the report stays deterministic whether threads are analysed sequentially
or on an executor.
"""

import random
from concurrent.futures import ThreadPoolExecutor

import pytest

from cpuspot.attribution import attribute_costs
from cpuspot.models import Snapshot
from cpuspot.report import build_report

FRAMES = [f"app.module{i}:func{i}" for i in range(40)]


@pytest.fixture
def large_run() -> dict[int, list[Snapshot]]:
    """200 threads x 100 samples with stacks up to 30 frames deep."""
    rng = random.Random(1234)
    sequences = {}
    for tid in range(200):
        total = 0
        snapshots = []
        base = [FRAMES[0], FRAMES[1 + tid % 5]]
        for tick in range(100):
            total += rng.randint(0, 500)
            depth = rng.randint(0, 28)
            stack = base + rng.sample(FRAMES[6:], depth)
            snapshots.append(
                Snapshot(
                    thread_id=tid,
                    timestamp=float(tick),
                    kernel_time=total // 3,
                    user_time=total - total // 3,
                    stack=tuple(stack),
                )
            )
        sequences[tid] = snapshots
    return sequences


class TestLoadTest:
    """Load test verification suite tests."""

    def test_report_is_sorted(self, large_run):
        """Test groups and threads come out in descending order."""
        report = build_report(large_run)

        costs = [group.cost for group in report.cost_groups]
        assert costs == sorted(costs, reverse=True)
        assert len(set(costs)) == len(costs)

        totals = [t.summary.total_time for t in report.threads]
        assert totals == sorted(totals, reverse=True)
        assert len(report.threads) == 200

    def test_kept_stacks_are_not_contained_in_each_other(self, large_run):
        """Test de-duplication within every cost group."""
        report = build_report(large_run)

        for group in report.cost_groups:
            for i, stack in enumerate(group.stacks):
                others = group.stacks[:i]
                assert not any(stack in other for other in others)
                # Kept stacks are ordered longest first
                assert all(len(other) >= len(stack) for other in others)

    def test_common_stack_is_shared_tail(self, large_run):
        """Test every sample of a thread ends with its common stack."""
        report = build_report(large_run)

        for thread in report.threads:
            common = thread.summary.common_stack
            for snapshot in large_run[thread.summary.thread_id]:
                assert snapshot.stack[len(snapshot.stack) - len(common) :] == common

    def test_leaf_cost_equals_sum_of_deltas(self, large_run):
        """Test a leaf's cost is the sum of deltas of the ticks that end in it."""
        table = attribute_costs(large_run)
        expected: dict[str, int] = {}
        for snapshots in large_run.values():
            for prev, curr in zip(snapshots, snapshots[1:]):
                if curr.stack:
                    leaf = curr.stack[-1]
                    expected[leaf] = expected.get(leaf, 0) + curr.total_time - prev.total_time

        actual = {text: cost for _, text, cost in table.items() if "\n" not in text}
        assert actual == expected

    def test_executor_matches_sequential(self, large_run):
        """Test concurrent analysis gives the same report."""
        with ThreadPoolExecutor(max_workers=8) as executor:
            concurrent = build_report(large_run, executor=executor)

        assert concurrent == build_report(large_run)
