"""Renderer-facing payloads, one type per view."""

from dataclasses import dataclass
from datetime import datetime

from sysmon.models import (
    DiskInfo,
    MetricSnapshot,
    NetworkSnapshot,
    NetworkSummary,
    ProcessSnapshot,
    ProcessSummary,
    RatePoint,
)
from sysmon.session import SessionState, View

# Which categories each view needs polled on refresh
NEEDS_SYSTEM = frozenset({View.OVERVIEW, View.DISKS, View.SYSTEM})
NEEDS_PROCESSES = frozenset({View.OVERVIEW, View.PROCESSES})
NEEDS_NETWORK = frozenset({View.OVERVIEW, View.NETWORK})

MAX_RATE_ROWS = 5
MAX_INTERFACE_ROWS = 8


@dataclass(slots=True, frozen=True)
class OverviewPayload:
    system: MetricSnapshot | None
    processes: ProcessSummary | None
    network: NetworkSummary | None


@dataclass(slots=True, frozen=True)
class ProcessesPayload:
    summary: ProcessSummary | None


@dataclass(slots=True, frozen=True)
class NetworkPayload:
    summary: NetworkSummary | None
    rates: tuple[RatePoint, ...]
    interfaces: tuple[NetworkSnapshot, ...]


@dataclass(slots=True, frozen=True)
class DisksPayload:
    disks: tuple[DiskInfo, ...] | None


@dataclass(slots=True, frozen=True)
class SystemPayload:
    system: MetricSnapshot | None


Payload = OverviewPayload | ProcessesPayload | NetworkPayload | DisksPayload | SystemPayload


@dataclass(slots=True, frozen=True)
class Frame:
    """Everything the renderer needs for one repaint."""

    state: SessionState
    payload: Payload
    rendered_at: datetime


def top_cpu(summary: ProcessSummary | None, limit: int) -> list[ProcessSnapshot]:
    """Rows for a CPU table: at most ``limit``, stopping below 0.1%."""
    if summary is None:
        return []
    rows = []
    for proc in summary.top_cpu[:limit]:
        if proc.cpu_percent < 0.1:
            break
        rows.append(proc)
    return rows


def top_memory(summary: ProcessSummary | None, limit: int) -> list[ProcessSnapshot]:
    """Rows for a memory table: at most ``limit``, stopping below 0.1%."""
    if summary is None:
        return []
    rows = []
    for proc in summary.top_memory[:limit]:
        if proc.memory_percent < 0.1:
            break
        rows.append(proc)
    return rows
