"""Plain-text rendering of a report."""

from cpuspot.models import Unchanged
from cpuspot.report import Report

RULE = "-" * 36
SKIPPED = "<skipped>"


def format_report(report: Report) -> str:
    """Render the most expensive stacks followed by each thread's view."""
    lines = ["Most expensive stacks", RULE]
    for group in report.cost_groups:
        for stack in group.stacks:
            lines.append(stack)
            lines.append(f"===> Cost ({group.cost})")
            lines.append("")

    for thread in report.threads:
        summary = thread.summary
        lines.append(RULE)
        lines.append(str(summary.thread_id))
        lines.append(f"Kernel: {summary.kernel_time} User: {summary.user_time}")
        lines.extend(summary.common_stack)
        lines.append("Other Stacks:")
        for entry in thread.trace:
            if isinstance(entry, Unchanged):
                lines.append(SKIPPED)
            else:
                lines.append("")
                lines.extend(entry)
        lines.append(RULE)

    if report.anomalies:
        lines.append(f"Warning: {report.anomalies} negative CPU time deltas clamped to zero")

    return "\n".join(lines)
