"""Tests for the sysmon Textual application."""

from datetime import datetime

import pytest
from textual.widgets import ContentSwitcher, DataTable

from sysmon.app import (
    FooterBar,
    HeaderBar,
    ProcessTable,
    SysmonApp,
    build_settings,
    format_bytes,
    format_mb,
    format_speed,
    format_uptime,
    parse_args,
    progress_bar,
    truncate,
    usage_color,
)
from sysmon.config import Settings
from sysmon.models import CpuInfo, HostInfo, MemoryInfo, MetricSnapshot, NetworkSnapshot, ProcessSnapshot
from sysmon.session import SessionState, View


def make_process(pid: int, cpu: float, mem: float) -> ProcessSnapshot:
    return ProcessSnapshot(
        pid=pid,
        name=f"test{pid}",
        username="user",
        status="running",
        cpu_percent=cpu,
        memory_percent=mem,
        memory_mb=100,
        threads=1,
        command_line=f"/bin/test{pid}",
    )


class StaticProvider:
    def __init__(self):
        self.processes = [make_process(100, 10.0, 5.0), make_process(200, 20.0, 1.0)]

    def poll_system(self):
        return MetricSnapshot(
            cpu=CpuInfo(usage=42.0, cores=8, model_name="Test CPU"),
            memory=MemoryInfo(total=16 << 30, used=8 << 30, used_percent=50.0),
            disks=(),
            host=HostInfo(hostname="box", os="linux", uptime_seconds=3600),
            timestamp=datetime.now(),
        )

    def poll_processes(self):
        return list(self.processes)

    def poll_network(self):
        return [NetworkSnapshot("eth0", bytes_sent=100, bytes_recv=200)]

    def count_connections(self):
        return 0


@pytest.fixture
def settings(tmp_path):
    return Settings(refresh_interval=10.0, log_dir=str(tmp_path / "logs"), export_dir=str(tmp_path / "exports"))


def test_format_bytes():
    assert format_bytes(500) == "500 B"
    assert format_bytes(2048) == "2.0 KB"
    assert format_bytes(5242880) == "5.0 MB"
    assert format_bytes(1073741824) == "1.0 GB"


def test_format_speed():
    assert format_speed(0.5) == "512 B/s"
    assert format_speed(10.0) == "10.0 KB/s"
    assert format_speed(2048.0) == "2.0 MB/s"
    assert format_speed(3 * 1024 * 1024) == "3.0 GB/s"


def test_format_uptime():
    assert format_uptime(59) == "0m"
    assert format_uptime(3 * 3600 + 120) == "3h 2m"
    assert format_uptime(2 * 86400 + 3600 + 60) == "2d 1h 1m"


def test_small_helpers():
    assert format_mb(512) == "512MB"
    assert format_mb(2048) == "2.0GB"
    assert truncate("short", 10) == "short"
    assert truncate("a" * 30, 10) == "aaaaaaa..."
    assert usage_color(10) == "green"
    assert usage_color(70) == "yellow"
    assert usage_color(95) == "red"
    assert progress_bar(50, 10).count("█") == 5


def test_cli_overrides_settings():
    args = parse_args(["--interval", "7", "--export-dir", "out"])
    settings = build_settings(args)
    assert settings.refresh_interval == 7.0
    assert settings.export_dir == "out"
    assert settings.log_dir == "logs"


def test_header_shows_fractional_interval():
    markup = HeaderBar.header_markup(SessionState(refresh_interval=2.5), datetime(2024, 1, 1, 9, 30))
    assert "Refresh: 2.5s" in markup
    assert "Refresh: 3s" in HeaderBar.header_markup(SessionState(), datetime(2024, 1, 1, 9, 30))


@pytest.mark.asyncio
async def test_app_creation(settings):
    """Test SysmonApp can be instantiated."""
    app = SysmonApp(settings, provider=StaticProvider())
    assert app.title == "System Monitor"
    assert app.event_loop is not None
    assert app.event_loop.state.refresh_interval == 10.0


@pytest.mark.asyncio
async def test_app_compose_and_first_frame(settings):
    app = SysmonApp(settings, provider=StaticProvider())
    async with app.run_test() as pilot:
        await pilot.pause(0.5)
        assert pilot.app.query_one(HeaderBar) is not None
        assert pilot.app.query_one(FooterBar) is not None
        assert app.last_frame is not None
        assert app.last_frame.state.view is View.OVERVIEW
        assert app.query_one(ContentSwitcher).current == "overview"


@pytest.mark.asyncio
async def test_view_keys_switch_views(settings):
    app = SysmonApp(settings, provider=StaticProvider())
    async with app.run_test() as pilot:
        await pilot.pause(0.3)
        await pilot.press("2")
        await pilot.pause(0.5)

        assert app.last_frame.state.view is View.PROCESSES
        assert app.query_one(ContentSwitcher).current == "processes"
        cpu_table = app.query_one("#cpu-table", ProcessTable)
        assert cpu_table.current_pids == {100, 200}

        await pilot.press("3")
        await pilot.pause(0.5)
        assert app.query_one(ContentSwitcher).current == "network"


@pytest.mark.asyncio
async def test_process_table_removes_old_processes(settings):
    provider = StaticProvider()
    app = SysmonApp(settings, provider=provider)
    async with app.run_test() as pilot:
        await pilot.press("2")
        await pilot.pause(0.5)

        provider.processes = [make_process(200, 25.0, 12.0)]
        await pilot.press("r")
        await pilot.pause(0.5)

        mem_table = app.query_one("#mem-table", ProcessTable)
        assert mem_table.current_pids == {200}


@pytest.mark.asyncio
async def test_process_table_keeps_ranked_order_for_ties(settings):
    provider = StaticProvider()
    provider.processes = [make_process(100, 10.0, 1.0), make_process(200, 10.0, 1.0)]
    app = SysmonApp(settings, provider=provider)
    async with app.run_test() as pilot:
        await pilot.press("2")
        await pilot.pause(0.5)

        provider.processes = [make_process(300, 10.0, 1.0), make_process(200, 10.0, 1.0), make_process(100, 10.0, 1.0)]
        await pilot.press("r")
        await pilot.pause(0.5)

        table = app.query_one("#cpu-table", ProcessTable).query_one(DataTable)
        assert [row.key.value for row in table.ordered_rows] == ["300", "200", "100"]


@pytest.mark.asyncio
async def test_help_and_pause_keys(settings):
    app = SysmonApp(settings, provider=StaticProvider())
    async with app.run_test() as pilot:
        await pilot.pause(0.3)
        await pilot.press("h")
        await pilot.pause(0.3)
        assert app.query_one(ContentSwitcher).current == "help"

        await pilot.press("p")
        await pilot.pause(0.3)
        assert app.last_frame.state.paused
        assert app.last_frame.state.help_visible

        await pilot.press("4")
        await pilot.pause(0.3)
        assert app.query_one(ContentSwitcher).current == "disks"


@pytest.mark.asyncio
async def test_quit_key_stops_event_loop(settings):
    app = SysmonApp(settings, provider=StaticProvider())
    async with app.run_test() as pilot:
        await pilot.pause(0.3)
        thread = app.event_loop._thread
        await pilot.press("q")
        thread.join(timeout=2.0)
        assert app.event_loop.is_closed
