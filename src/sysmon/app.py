"""sysmon - Textual front-end and command-line entry point."""

import argparse
import logging
from datetime import datetime
from pathlib import PurePath

from rich.markup import escape
from textual import events
from textual.app import App, ComposeResult
from textual.containers import Container
from textual.message import Message
from textual.widgets import ContentSwitcher, DataTable, Static

from sysmon.config import Settings, configure_logging
from sysmon.frames import (
    DisksPayload,
    Frame,
    NetworkPayload,
    OverviewPayload,
    ProcessesPayload,
    SystemPayload,
    top_cpu,
    top_memory,
)
from sysmon.loop import EventLoop, Provider
from sysmon.models import MetricSnapshot, ProcessSnapshot
from sysmon.provider import SnapshotProvider
from sysmon.ranking import SortMetric
from sysmon.session import SessionState, View
from sysmon.sinks import Exporter, StatsLog

logger = logging.getLogger(__name__)

TITLE = "System Monitor"


def format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size < 1024:
            return f"{size:.1f} {unit}" if unit != "B" else f"{int(size)} B"
        size = size / 1024
    return f"{size:.1f} PB"


def format_speed(kbps: float) -> str:
    """Format a KB/s figure in the largest sensible unit."""
    if kbps >= 1024 * 1024:
        return f"{kbps / (1024 * 1024):.1f} GB/s"
    if kbps >= 1024:
        return f"{kbps / 1024:.1f} MB/s"
    if kbps >= 1:
        return f"{kbps:.1f} KB/s"
    return f"{kbps * 1024:.0f} B/s"


def format_uptime(seconds: int) -> str:
    days, rest = divmod(int(seconds), 86400)
    hours, rest = divmod(rest, 3600)
    minutes = rest // 60
    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_mb(mb: int) -> str:
    if mb >= 1024:
        return f"{mb / 1024:.1f}GB"
    return f"{mb}MB"


def truncate(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    return text[: width - 3] + "..."


def usage_color(percent: float) -> str:
    """Green below 60%, yellow up to 80%, red above."""
    if percent > 80:
        return "red"
    if percent > 60:
        return "yellow"
    return "green"


def progress_bar(percent: float, width: int = 40) -> str:
    filled = min(width, max(0, int(percent / 100 * width)))
    color = usage_color(percent)
    # Escaped bracket so Rich doesn't read the bar as markup
    return f"\\[[{color}]{'█' * filled}[/{color}][dim]{'░' * (width - filled)}[/dim]]"


class FrameReady(Message):
    """Posted by the event loop thread when a frame is ready to paint."""

    def __init__(self, frame: Frame) -> None:
        super().__init__()
        self.frame = frame


class LoopClosed(Message):
    """Posted by the event loop thread after it has shut down."""


class HeaderBar(Static):
    """Title, run status, clock, refresh interval and view tabs."""

    DEFAULT_CSS = """
    HeaderBar {
        height: auto;
        padding: 0 1;
        background: $surface;
        border: solid $primary;
    }
    """

    def update_state(self, state: SessionState, now: datetime) -> None:
        self.update(self.header_markup(state, now))

    @staticmethod
    def header_markup(state: SessionState, now: datetime) -> str:
        status = "[bold yellow]PAUSED[/]" if state.paused else "[bold green]RUNNING[/]"
        tabs = []
        for view in View:
            tab = f"\\[{view.value}]{view.label}"
            tabs.append(f"[bold yellow]{tab}[/]" if view is state.view else f"[dim]{tab}[/]")
        return (
            f"[bold]{TITLE} - {state.view.label} View[/]  {status}\n"
            f"[cyan]{now:%H:%M:%S}[/]  [dim]Refresh: {state.refresh_interval:g}s[/]\n"
            + " ".join(tabs)
        )


class FooterBar(Static):
    """Toggle states and shortcut hints."""

    DEFAULT_CSS = """
    FooterBar {
        dock: bottom;
        height: auto;
        padding: 0 1;
        background: $surface;
    }
    """

    def update_state(self, state: SessionState) -> None:
        def flag(label: str, on: bool, on_color: str, off_color: str) -> str:
            return f"[{on_color}]{label}:ON[/]" if on else f"[{off_color}]{label}:OFF[/]"

        controls = " ".join(
            [
                flag("\\[L]og", state.logging_enabled, "green", "red"),
                flag("\\[P]ause", state.paused, "yellow", "green"),
                flag("\\[C]ompact", state.compact, "yellow", "green"),
            ]
        )
        self.update(f"{controls}\n[dim]\\[H]elp \\[E]xport \\[R]efresh \\[+/-]Speed \\[Q]uit[/dim]")


class ProcessTable(Container):
    """Top processes by one metric, updated in place."""

    DEFAULT_CSS = """
    ProcessTable {
        height: auto;
        max-height: 14;
        border: solid $primary;
    }
    """

    def __init__(self, metric: SortMetric, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._metric = metric
        self._current_pids: set[int] = set()

    @property
    def current_pids(self) -> set[int]:
        return set(self._current_pids)

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable()

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        self.border_title = "Top CPU Processes" if self._metric is SortMetric.CPU else "Top Memory Processes"
        table = self.query_one(DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("NAME", key="name", width=25)
        table.add_column("USER", key="user", width=12)
        table.add_column("CPU%" if self._metric is SortMetric.CPU else "MEM%", key="value", width=8)
        table.add_column("MEMORY", key="memory", width=9)
        table.add_column("Command", key="command")

    def update_processes(self, processes: list[ProcessSnapshot]) -> None:
        """
        Show ``processes`` in the given order.

        Uses update_cell for existing rows to avoid re-rendering the whole table.
        """
        table = self.query_one(DataTable)
        new_pids = {proc.pid for proc in processes}

        for pid in self._current_pids - new_pids:
            table.remove_row(str(pid))

        for proc in processes:
            row_key = str(proc.pid)
            if proc.pid in self._current_pids:
                self._update_row(table, row_key, proc)
            else:
                self._add_row(table, row_key, proc)

        self._current_pids = new_pids
        # Keep the ranked order, including ties
        rank = {str(proc.pid): index for index, proc in enumerate(processes)}
        if rank:
            table.sort("pid", key=rank.__getitem__)

    def _cells(self, proc: ProcessSnapshot) -> list[str]:
        value = self._metric.value_of(proc)
        return [
            str(proc.pid),
            truncate(proc.name, 25),
            truncate(proc.username, 12),
            f"{value:5.1f}",
            format_mb(proc.memory_mb),
            proc.command_line,
        ]

    def _update_row(self, table: DataTable, row_key: str, proc: ProcessSnapshot) -> None:
        for column, cell in zip(("pid", "name", "user", "value", "memory", "command"), self._cells(proc)):
            table.update_cell(row_key, column, cell)

    def _add_row(self, table: DataTable, row_key: str, proc: ProcessSnapshot) -> None:
        table.add_row(*self._cells(proc), key=row_key)


class ProcessesPanel(Container):
    """Process counts plus top CPU and memory tables."""

    def compose(self) -> ComposeResult:
        yield Static("Loading process info...", id="process-counts")
        yield ProcessTable(SortMetric.CPU, id="cpu-table")
        yield ProcessTable(SortMetric.MEM, id="mem-table")

    def show_payload(self, payload: ProcessesPayload, compact: bool) -> None:
        summary = payload.summary
        if summary is None:
            return
        limit = 5 if compact else 10
        self.query_one("#process-counts", Static).update(
            f"Total: [cyan]{summary.total}[/] | Running: [green]{summary.running}[/] | "
            f"Sleeping: [yellow]{summary.sleeping}[/]"
        )
        self.query_one("#cpu-table", ProcessTable).update_processes(top_cpu(summary, limit))
        self.query_one("#mem-table", ProcessTable).update_processes(top_memory(summary, limit))


def _system_lines(system: MetricSnapshot, compact: bool) -> list[str]:
    host, cpu, mem = system.host, system.cpu, system.memory
    lines = [
        "[bold blue]System Information[/]",
        f"   Hostname: [cyan]{escape(host.hostname)}[/] | OS: [cyan]{escape(host.os)}[/] | "
        f"Uptime: [green]{format_uptime(host.uptime_seconds)}[/]",
        "",
        f"[bold blue]CPU Usage: {cpu.usage:5.1f}%[/] {progress_bar(cpu.usage)}",
    ]
    if not compact:
        lines.append(f"   Cores: {cpu.cores} | Model: [dim]{escape(truncate(cpu.model_name, 50))}[/]")
    lines.append(f"[bold blue]Memory: {mem.used_percent:5.1f}%[/] {progress_bar(mem.used_percent)}")
    if not compact:
        lines.append(
            f"   Used: [yellow]{format_bytes(mem.used)}[/] / [cyan]{format_bytes(mem.total)}[/] | "
            f"Free: [green]{format_bytes(mem.available)}[/]"
        )
        lines.append("")
        lines.append("[bold blue]Disk Usage:[/]")
        for disk in system.disks[:3]:
            device = truncate(PurePath(disk.device).name or disk.device, 15)
            lines.append(
                f"   [cyan]{escape(device):<15}[/] {disk.used_percent:6.1f}% {progress_bar(disk.used_percent, 20)} "
                f"[yellow]{format_bytes(disk.used)}[/] / [dim]{format_bytes(disk.total)}[/]"
            )
    return lines


def render_overview(payload: OverviewPayload, compact: bool) -> str:
    if payload.system is None:
        return "Loading system info..."
    lines = _system_lines(payload.system, compact)

    procs = payload.processes
    if procs is not None:
        lines += [
            "",
            "[bold magenta]Process Summary[/]",
            f"   Total: [cyan]{procs.total}[/] | Running: [green]{procs.running}[/] | "
            f"Sleeping: [yellow]{procs.sleeping}[/]",
        ]
        if not compact:
            lines.append("[bold red]Top CPU Processes:[/]")
            for proc in top_cpu(procs, 3):
                lines.append(
                    f"   [cyan]{escape(truncate(proc.name, 20)):<20}[/] {proc.cpu_percent:5.1f}% "
                    f"[dim]{format_mb(proc.memory_mb)}[/]"
                )

    net = payload.network
    if net is not None:
        lines += [
            "",
            "[bold green]Network Summary[/]",
            f"   Active Interfaces: [cyan]{net.active_interfaces}[/] | Connections: [cyan]{net.connections}[/]",
            f"   Total Sent: [red]{format_bytes(net.total_sent)}[/] | "
            f"Total Received: [green]{format_bytes(net.total_recv)}[/]",
        ]
    return "\n".join(lines)


def render_network(payload: NetworkPayload) -> str:
    net = payload.summary
    if net is None:
        return "Loading network info..."
    lines = [
        "[bold green]Network Overview[/]",
        f"   Active Interfaces: [cyan]{net.active_interfaces}[/] | Connections: [cyan]{net.connections}[/]",
        f"   Total Sent: [red]{format_bytes(net.total_sent)}[/] | "
        f"Total Received: [green]{format_bytes(net.total_recv)}[/]",
        "",
    ]
    if payload.rates:
        lines.append("[bold yellow]Current Network Speeds[/]")
        lines.append(f"   {'INTERFACE':<20} {'UPLOAD':>12} {'DOWNLOAD':>12} {'TOTAL':>12}")
        for rate in payload.rates:
            lines.append(
                f"   [cyan]{escape(truncate(rate.interface, 20)):<20}[/] "
                f"[red]{format_speed(rate.upload_kbps):>12}[/] "
                f"[green]{format_speed(rate.download_kbps):>12}[/] "
                f"[yellow]{format_speed(rate.total_kbps):>12}[/]"
            )
        lines.append("")
    if payload.interfaces:
        lines.append("[bold blue]Interface Statistics[/]")
        lines.append(f"   {'INTERFACE':<20} {'SENT':>12} {'RECEIVED':>12} {'STATUS':>8}")
        for iface in payload.interfaces:
            status = "[green]Up[/]" if iface.is_up else "[red]Down[/]"
            lines.append(
                f"   [cyan]{escape(truncate(iface.name, 20)):<20}[/] "
                f"[red]{format_bytes(iface.bytes_sent):>12}[/] "
                f"[green]{format_bytes(iface.bytes_recv):>12}[/] {status:>8}"
            )
    return "\n".join(lines)


def render_disks(payload: DisksPayload, compact: bool) -> str:
    if payload.disks is None:
        return "Loading disk info..."
    lines = [
        "[bold blue]Disk Usage Details[/]",
        f"   {'DEVICE':<20} {'USED%':>7} {'USED':>10} {'FREE':>10} {'TOTAL':>10}  MOUNTPOINT",
    ]
    for disk in payload.disks:
        device = truncate(PurePath(disk.device).name or disk.device, 20)
        color = usage_color(disk.used_percent)
        lines.append(
            f"   [cyan]{escape(device):<20}[/] [{color}]{disk.used_percent:6.1f}%[/] "
            f"[yellow]{format_bytes(disk.used):>10}[/] [green]{format_bytes(disk.free):>10}[/] "
            f"[dim]{format_bytes(disk.total):>10}[/]  [magenta]{escape(truncate(disk.mountpoint, 20))}[/]"
        )
        if not compact:
            lines.append(f"   {progress_bar(disk.used_percent, 50)}")
    return "\n".join(lines)


def render_system(payload: SystemPayload) -> str:
    system = payload.system
    if system is None:
        return "Loading system info..."
    host, cpu, mem = system.host, system.cpu, system.memory
    return "\n".join(
        [
            "[bold blue]Detailed System Information[/]",
            f"   Hostname:       [cyan]{escape(host.hostname)}[/]",
            f"   OS:             [cyan]{escape(host.os)}[/]",
            f"   Platform:       [cyan]{escape(host.platform)}[/]",
            f"   Kernel Version: [cyan]{escape(host.kernel_version)}[/]",
            f"   Uptime:         [green]{format_uptime(host.uptime_seconds)}[/]",
            "",
            "[bold blue]CPU Details[/]",
            f"   Model:          [dim]{escape(cpu.model_name)}[/]",
            f"   Logical Cores:  {cpu.cores}",
            f"   Current Usage:  [{usage_color(cpu.usage)}]{cpu.usage:.1f}%[/]",
            "",
            "[bold blue]Memory Details[/]",
            f"   Total:          [cyan]{format_bytes(mem.total)}[/]",
            f"   Used:           [yellow]{format_bytes(mem.used)}[/] ({mem.used_percent:.1f}%)",
            f"   Available:      [green]{format_bytes(mem.available)}[/]",
            f"   Free:           {format_bytes(mem.free)}",
            f"   Buffers:        {format_bytes(mem.buffers)}",
            f"   Cached:         {format_bytes(mem.cached)}",
        ]
    )


HELP_TEXT = """[bold yellow]System Monitor Help[/]

[bold green]Navigation:[/]
  [yellow]1-5[/]    Switch between views (Overview, Processes, Network, Disks, System)
  [yellow]H/?[/]    Show/hide this help screen
  [yellow]Q[/]      Quit the application

[bold green]Control:[/]
  [yellow]P[/]      Pause/resume updates
  [yellow]R[/]      Force refresh
  [yellow]C[/]      Toggle compact mode
  [yellow]+/-[/]    Lengthen/shorten the refresh interval

[bold green]Logging & Export:[/]
  [yellow]L[/]      Toggle logging to file
  [yellow]E[/]      Export current stats to JSON file

[bold green]Color Legend:[/]
  [green]●[/] Low usage (< 60%)
  [yellow]●[/] Medium usage (60-80%)
  [red]●[/] High usage (> 80%)
"""


class SysmonApp(App):
    """Main sysmon application: renderer and key source for the event loop."""

    TITLE = TITLE
    SUB_TITLE = "Python System Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    ContentSwitcher {
        height: 1fr;
        padding: 0 1;
    }

    #processes {
        height: auto;
    }
    """

    def __init__(
        self,
        settings: Settings | None = None,
        provider: Provider | None = None,
    ) -> None:
        """Initialize the SysmonApp."""
        super().__init__()
        self._config = settings or Settings()
        self._reactor = EventLoop(
            provider or SnapshotProvider(self._config.cpu_sample_window),
            self,
            state=SessionState(refresh_interval=self._config.refresh_interval),
            stats_log=StatsLog(self._config.log_dir),
            exporter=Exporter(self._config.export_dir),
            top_limit=self._config.top_limit,
        )
        self._last_frame: Frame | None = None

    @property
    def event_loop(self) -> EventLoop:
        return self._reactor

    @property
    def last_frame(self) -> Frame | None:
        return self._last_frame

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderBar(id="header")
        with ContentSwitcher(initial="overview"):
            yield Static("Loading system info...", id="overview")
            yield ProcessesPanel(id="processes")
            yield Static("Loading network info...", id="network")
            yield Static("Loading disk info...", id="disks")
            yield Static("Loading system info...", id="system")
            yield Static(HELP_TEXT, id="help")
        yield FooterBar(id="footer")

    def on_mount(self) -> None:
        """Start the event loop once the widgets exist."""
        self._reactor.start()

    def on_unmount(self) -> None:
        self._reactor.stop()

    def on_key(self, event: events.Key) -> None:
        """Forward printable keys to the event loop."""
        if event.character and event.is_printable:
            self._reactor.submit_key(event.character)
            event.stop()

    # Renderer interface, called from the event loop thread

    def render_frame(self, frame: Frame) -> None:
        self.post_message(FrameReady(frame))

    def loop_closed(self) -> None:
        self.post_message(LoopClosed())

    def on_frame_ready(self, message: FrameReady) -> None:
        frame = message.frame
        self._last_frame = frame
        state = frame.state

        self.query_one(HeaderBar).update_state(state, frame.rendered_at)
        self.query_one(FooterBar).update_state(state)

        switcher = self.query_one(ContentSwitcher)
        if state.help_visible:
            switcher.current = "help"
            return

        payload = frame.payload
        if isinstance(payload, OverviewPayload):
            self.query_one("#overview", Static).update(render_overview(payload, state.compact))
        elif isinstance(payload, ProcessesPayload):
            self.query_one(ProcessesPanel).show_payload(payload, state.compact)
        elif isinstance(payload, NetworkPayload):
            self.query_one("#network", Static).update(render_network(payload))
        elif isinstance(payload, DisksPayload):
            self.query_one("#disks", Static).update(render_disks(payload, state.compact))
        elif isinstance(payload, SystemPayload):
            self.query_one("#system", Static).update(render_system(payload))
        switcher.current = state.view.name.lower()

    def on_loop_closed(self, message: LoopClosed) -> None:
        self.exit()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="sysmon", description="Interactive terminal system monitor.")
    parser.add_argument("--interval", type=float, help="refresh interval in seconds (1-10)")
    parser.add_argument("--log-dir", help="directory for stats log files")
    parser.add_argument("--export-dir", help="directory for JSON exports")
    parser.add_argument("--log-level", help="diagnostic log level (DEBUG, INFO, WARNING, ...)")
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    """Environment-backed settings with command-line overrides on top."""
    overrides = {
        "refresh_interval": args.interval,
        "log_dir": args.log_dir,
        "export_dir": args.export_dir,
        "log_level": args.log_level,
    }
    return Settings(**{key: value for key, value in overrides.items() if value is not None})


def main(argv: list[str] | None = None) -> None:
    """Entry point for sysmon application."""
    settings = build_settings(parse_args(argv))
    configure_logging(settings)
    logger.info("sysmon starting, interval=%gs", settings.refresh_interval)

    app = SysmonApp(settings)
    app.event_loop.install_signal_handlers()
    app.run()
    print("System Monitor shutdown complete. Goodbye!")


if __name__ == "__main__":
    main()
