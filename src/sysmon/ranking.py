"""Ranking and summaries over process and interface snapshots."""

from collections.abc import Iterable, Sequence
from enum import Enum

from sysmon.models import NetworkSnapshot, NetworkSummary, ProcessSnapshot, ProcessSummary

RUNNING_STATUSES = frozenset({"R", "running"})
SLEEPING_STATUSES = frozenset({"S", "sleeping"})


class SortMetric(Enum):
    """Metrics a process ranking can be ordered by."""

    CPU = "cpu"
    MEM = "mem"

    def value_of(self, proc: ProcessSnapshot) -> float:
        if self is SortMetric.CPU:
            return proc.cpu_percent or 0.0
        return proc.memory_percent or 0.0


def top_n(
    snapshots: Iterable[ProcessSnapshot],
    metric: SortMetric,
    n: int,
) -> list[ProcessSnapshot]:
    """
    Return the ``n`` processes with the highest ``metric``, highest first.

    The input is never modified. Ties keep the order they had in the input.
    """
    if n <= 0:
        return []
    # sorted() is stable; negating the key keeps ties in input order
    ranked = sorted(snapshots, key=lambda p: -metric.value_of(p))
    return ranked[:n]


def sort_by_traffic(interfaces: Iterable[NetworkSnapshot]) -> list[NetworkSnapshot]:
    """Interfaces ordered by cumulative bytes, most active first."""
    return sorted(interfaces, key=lambda iface: -iface.total_bytes)


def top_interfaces(interfaces: Iterable[NetworkSnapshot], n: int) -> list[NetworkSnapshot]:
    """The ``n`` busiest non-loopback interfaces that have moved any bytes."""
    if n <= 0:
        return []
    active = [i for i in interfaces if not i.is_loopback and i.has_traffic]
    return sort_by_traffic(active)[:n]


def summarize_processes(processes: Sequence[ProcessSnapshot], limit: int = 10) -> ProcessSummary:
    """Count processes by state and rank them by CPU and memory."""
    return ProcessSummary(
        total=len(processes),
        running=sum(1 for p in processes if p.status in RUNNING_STATUSES),
        sleeping=sum(1 for p in processes if p.status in SLEEPING_STATUSES),
        top_cpu=tuple(top_n(processes, SortMetric.CPU, limit)),
        top_memory=tuple(top_n(processes, SortMetric.MEM, limit)),
        processes=tuple(processes),
    )


def summarize_network(interfaces: Sequence[NetworkSnapshot], connections: int = 0) -> NetworkSummary:
    """Totals over non-loopback interfaces with traffic."""
    counted = [i for i in interfaces if not i.is_loopback and i.has_traffic]
    return NetworkSummary(
        interfaces=tuple(sort_by_traffic(interfaces)),
        total_sent=sum(i.bytes_sent for i in counted),
        total_recv=sum(i.bytes_recv for i in counted),
        active_interfaces=len(counted),
        connections=connections,
    )
