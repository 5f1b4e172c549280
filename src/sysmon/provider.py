"""Snapshot provider for sysmon, backed by psutil."""

import logging
import platform
import time
from datetime import datetime

import psutil

from sysmon.models import (
    CpuInfo,
    DiskInfo,
    HostInfo,
    MemoryInfo,
    MetricSnapshot,
    NetworkSnapshot,
    ProcessSnapshot,
)

logger = logging.getLogger(__name__)

COMMAND_LINE_LIMIT = 100

# Attributes fetched for every process in one pass
PROCESS_ATTRS = [
    "pid",
    "name",
    "username",
    "status",
    "cpu_percent",
    "memory_percent",
    "memory_info",
    "num_threads",
    "cmdline",
]


class ProviderError(RuntimeError):
    """Raised when a whole category of metrics cannot be read."""


def format_command_line(cmdline: list[str] | str | None, name: str) -> str:
    """
    Join and truncate a command line for display.

    Falls back to the process name when the command line is empty or
    unavailable. Anything longer than 100 characters is cut to 100 and
    terminated with "...".
    """
    if isinstance(cmdline, (list, tuple)):
        cmdline = " ".join(cmdline)
    if not cmdline:
        return name
    if len(cmdline) > COMMAND_LINE_LIMIT:
        return cmdline[:COMMAND_LINE_LIMIT] + "..."
    return cmdline


class SnapshotProvider:
    """
    Point-in-time readings of the host.

    Every ``poll_*`` call is synchronous. ``poll_system`` blocks for
    ``cpu_sample_window`` seconds so the CPU reading covers a real interval.
    A field that cannot be read degrades to its zero value; only a category
    that cannot be enumerated at all raises ProviderError.
    """

    def __init__(self, cpu_sample_window: float = 1.0) -> None:
        self._cpu_sample_window = max(0.0, cpu_sample_window)
        # Prime per-process CPU counters (first call returns 0.0)
        for proc in psutil.process_iter():
            try:
                proc.cpu_percent(None)
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue

    @property
    def cpu_sample_window(self) -> float:
        return self._cpu_sample_window

    def poll_system(self) -> MetricSnapshot:
        """Collect CPU, memory, disk and host information."""
        try:
            vmem = psutil.virtual_memory()
        except (OSError, RuntimeError) as exc:
            raise ProviderError("failed to get memory info") from exc

        memory = MemoryInfo(
            total=vmem.total,
            available=vmem.available,
            used=vmem.used,
            used_percent=vmem.percent,
            free=vmem.free,
            buffers=getattr(vmem, "buffers", 0),
            cached=getattr(vmem, "cached", 0),
        )
        return MetricSnapshot(
            cpu=self._cpu_info(),
            memory=memory,
            disks=tuple(self._disks()),
            host=self._host_info(),
            timestamp=datetime.now(),
        )

    def poll_processes(self) -> list[ProcessSnapshot]:
        """
        Collect snapshots of all running processes.

        Processes that exit during enumeration are left out of the result;
        fields that cannot be read fall back to defaults.
        """
        processes: list[ProcessSnapshot] = []
        try:
            iterator = psutil.process_iter(attrs=PROCESS_ATTRS, ad_value=None)
            # process_iter already skips vanished processes and fills denied fields with None
            for proc in iterator:
                processes.append(self._process_snapshot(proc.info))
        except (OSError, psutil.Error) as exc:
            raise ProviderError("failed to enumerate processes") from exc
        return processes

    def poll_network(self) -> list[NetworkSnapshot]:
        """Collect per-interface counters."""
        try:
            counters = psutil.net_io_counters(pernic=True)
        except (OSError, RuntimeError) as exc:
            raise ProviderError("failed to get network IO counters") from exc

        return [
            NetworkSnapshot(
                name=name,
                bytes_sent=c.bytes_sent,
                bytes_recv=c.bytes_recv,
                packets_sent=c.packets_sent,
                packets_recv=c.packets_recv,
                errin=c.errin,
                errout=c.errout,
                dropin=c.dropin,
                dropout=c.dropout,
            )
            for name, c in counters.items()
        ]

    def count_connections(self) -> int:
        """Number of ESTABLISHED connections, 0 when they cannot be listed."""
        try:
            connections = psutil.net_connections(kind="all")
        except (psutil.AccessDenied, OSError) as exc:
            logger.debug("connection count unavailable: %s", exc)
            return 0
        return sum(1 for conn in connections if conn.status == psutil.CONN_ESTABLISHED)

    @staticmethod
    def _process_snapshot(info: dict) -> ProcessSnapshot:
        name = info.get("name") or ""
        mem_info = info.get("memory_info")
        memory_mb = mem_info.rss // (1024 * 1024) if mem_info else 0
        return ProcessSnapshot(
            pid=info.get("pid", 0),
            name=name,
            username=info.get("username") or "unknown",
            status=info.get("status") or "",
            cpu_percent=info.get("cpu_percent") or 0.0,
            memory_percent=info.get("memory_percent") or 0.0,
            memory_mb=memory_mb,
            threads=info.get("num_threads") or 0,
            command_line=format_command_line(info.get("cmdline"), name),
        )

    def _cpu_info(self) -> CpuInfo:
        try:
            usage = psutil.cpu_percent(interval=self._cpu_sample_window or None)
        except (OSError, RuntimeError):
            usage = 0.0
        try:
            cores = psutil.cpu_count(logical=True) or 0
        except (OSError, RuntimeError):
            cores = 0
        return CpuInfo(usage=usage, cores=cores, model_name=_cpu_model())

    @staticmethod
    def _disks() -> list[DiskInfo]:
        try:
            partitions = psutil.disk_partitions(all=False)
        except OSError as exc:
            logger.debug("disk partitions unavailable: %s", exc)
            return []

        disks: list[DiskInfo] = []
        for part in partitions:
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except OSError:
                # Skip partitions we can't access
                continue
            disks.append(
                DiskInfo(
                    device=part.device,
                    mountpoint=part.mountpoint,
                    fstype=part.fstype,
                    total=usage.total,
                    used=usage.used,
                    free=usage.free,
                    used_percent=usage.percent,
                )
            )
        return disks

    @staticmethod
    def _host_info() -> HostInfo:
        try:
            uptime = int(time.time() - psutil.boot_time())
        except (OSError, RuntimeError):
            uptime = 0
        return HostInfo(
            hostname=platform.node(),
            os=platform.system().lower(),
            platform=_platform_name(),
            kernel_version=platform.release(),
            uptime_seconds=max(0, uptime),
        )


def _cpu_model() -> str:
    try:
        with open("/proc/cpuinfo", encoding="utf-8") as fh:
            for line in fh:
                if line.startswith("model name"):
                    return line.split(":", 1)[1].strip()
    except OSError:
        pass
    return platform.processor()


def _platform_name() -> str:
    try:
        return platform.freedesktop_os_release().get("ID", "")
    except OSError:
        return platform.system()
