"""Data models for sysmon."""

from dataclasses import dataclass, field
from datetime import datetime

LOOPBACK_NAMES = frozenset({"lo", "lo0", "Loopback"})


@dataclass(slots=True, frozen=True)
class ProcessSnapshot:
    """Immutable snapshot of a process state."""

    pid: int
    name: str
    username: str  # "unknown" when the owner cannot be resolved
    status: str  # 'running', 'sleeping', 'zombie', etc.
    cpu_percent: float  # 0.0 - 100.0 * core_count
    memory_percent: float
    memory_mb: int
    threads: int
    command_line: str  # at most 100 chars plus "..."


@dataclass(slots=True, frozen=True)
class NetworkSnapshot:
    """Cumulative-since-boot counters for one interface."""

    name: str
    bytes_sent: int = 0
    bytes_recv: int = 0
    packets_sent: int = 0
    packets_recv: int = 0
    errin: int = 0
    errout: int = 0
    dropin: int = 0
    dropout: int = 0

    @property
    def has_traffic(self) -> bool:
        return self.bytes_sent > 0 or self.bytes_recv > 0

    @property
    def is_up(self) -> bool:
        # Heuristic: no link-state read, an interface that moved bytes counts as up.
        return self.has_traffic

    @property
    def is_loopback(self) -> bool:
        return self.name in LOOPBACK_NAMES

    @property
    def total_bytes(self) -> int:
        return self.bytes_sent + self.bytes_recv


@dataclass(slots=True, frozen=True)
class CpuInfo:
    usage: float = 0.0
    cores: int = 0
    model_name: str = ""


@dataclass(slots=True, frozen=True)
class MemoryInfo:
    total: int = 0
    available: int = 0
    used: int = 0
    used_percent: float = 0.0
    free: int = 0
    buffers: int = 0
    cached: int = 0


@dataclass(slots=True, frozen=True)
class DiskInfo:
    device: str
    mountpoint: str
    fstype: str
    total: int
    used: int
    free: int
    used_percent: float


@dataclass(slots=True, frozen=True)
class HostInfo:
    hostname: str = ""
    os: str = ""
    platform: str = ""
    kernel_version: str = ""
    uptime_seconds: int = 0


@dataclass(slots=True, frozen=True)
class MetricSnapshot:
    """One poll of CPU, memory, disks and host identity."""

    cpu: CpuInfo
    memory: MemoryInfo
    disks: tuple[DiskInfo, ...]
    host: HostInfo
    timestamp: datetime


@dataclass(slots=True, frozen=True)
class RatePoint:
    """Throughput of one interface between two polls, in KB/s."""

    interface: str
    upload_kbps: float
    download_kbps: float
    timestamp: float

    @property
    def total_kbps(self) -> float:
        return self.upload_kbps + self.download_kbps


@dataclass(slots=True, frozen=True)
class ProcessSummary:
    """Process list with counts and rankings."""

    total: int
    running: int
    sleeping: int
    top_cpu: tuple[ProcessSnapshot, ...]
    top_memory: tuple[ProcessSnapshot, ...]
    processes: tuple[ProcessSnapshot, ...] = field(repr=False, default=())


@dataclass(slots=True, frozen=True)
class NetworkSummary:
    """Interfaces sorted by traffic, with non-loopback totals."""

    interfaces: tuple[NetworkSnapshot, ...]
    total_sent: int
    total_recv: int
    active_interfaces: int
    connections: int


@dataclass(slots=True, frozen=True)
class StatsBundle:
    """Everything the log sink and exporter persist for one moment."""

    timestamp: datetime
    system: MetricSnapshot | None
    processes: ProcessSummary | None
    network: NetworkSummary | None
