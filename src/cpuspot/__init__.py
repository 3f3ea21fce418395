"""cpuspot - statistical CPU hotspot attribution."""

from cpuspot.attribution import CostTable, attribute_costs
from cpuspot.models import UNCHANGED, Snapshot, ThreadSummary
from cpuspot.report import Report, build_report

__all__ = [
    "UNCHANGED",
    "CostTable",
    "Report",
    "Snapshot",
    "ThreadSummary",
    "attribute_costs",
    "build_report",
]
