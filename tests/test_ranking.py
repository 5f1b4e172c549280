"""Tests for process and interface ranking."""

import random

from sysmon.models import NetworkSnapshot, ProcessSnapshot
from sysmon.ranking import (
    SortMetric,
    sort_by_traffic,
    summarize_network,
    summarize_processes,
    top_interfaces,
    top_n,
)


def proc(pid: int, cpu: float = 0.0, mem: float = 0.0, status: str = "sleeping") -> ProcessSnapshot:
    return ProcessSnapshot(
        pid=pid,
        name=f"p{pid}",
        username="user",
        status=status,
        cpu_percent=cpu,
        memory_percent=mem,
        memory_mb=1,
        threads=1,
        command_line=f"p{pid}",
    )


class TestTopN:
    def test_sorted_descending_by_cpu(self):
        procs = [proc(1, cpu=5.0), proc(2, cpu=50.0), proc(3, cpu=20.0)]
        assert [p.pid for p in top_n(procs, SortMetric.CPU, 3)] == [2, 3, 1]

    def test_sorted_descending_by_memory(self):
        procs = [proc(1, mem=1.0), proc(2, mem=3.0), proc(3, mem=2.0)]
        assert [p.pid for p in top_n(procs, SortMetric.MEM, 3)] == [2, 3, 1]

    def test_limit_truncates(self):
        procs = [proc(i, cpu=float(i)) for i in range(20)]
        result = top_n(procs, SortMetric.CPU, 10)
        assert len(result) == 10
        assert result[0].pid == 19

    def test_small_population_returns_everything(self):
        procs = [proc(1, cpu=1.0), proc(2, cpu=2.0)]
        assert len(top_n(procs, SortMetric.CPU, 10)) == 2

    def test_zero_or_negative_limit(self):
        procs = [proc(1, cpu=1.0)]
        assert top_n(procs, SortMetric.CPU, 0) == []
        assert top_n(procs, SortMetric.CPU, -1) == []

    def test_empty_input(self):
        assert top_n([], SortMetric.MEM, 5) == []

    def test_ties_keep_input_order(self):
        procs = [proc(7, cpu=10.0), proc(3, cpu=10.0), proc(9, cpu=30.0), proc(1, cpu=10.0)]
        assert [p.pid for p in top_n(procs, SortMetric.CPU, 4)] == [9, 7, 3, 1]

    def test_input_is_not_mutated(self):
        procs = [proc(1, cpu=1.0), proc(2, cpu=3.0), proc(3, cpu=2.0)]
        before = list(procs)
        top_n(procs, SortMetric.CPU, 2)
        assert procs == before

    def test_prefix_of_full_ordering(self):
        rng = random.Random(42)
        procs = [proc(i, cpu=float(rng.randint(0, 5))) for i in range(50)]
        full = top_n(procs, SortMetric.CPU, len(procs))
        for n in (0, 1, 7, 50, 80):
            result = top_n(procs, SortMetric.CPU, n)
            assert len(result) == min(n, len(procs))
            assert result == full[: len(result)]
        values = [p.cpu_percent for p in full]
        assert values == sorted(values, reverse=True)


class TestSummaries:
    def test_process_counts(self):
        procs = [
            proc(1, status="running"),
            proc(2, status="R"),
            proc(3, status="sleeping"),
            proc(4, status="zombie"),
        ]
        summary = summarize_processes(procs, limit=2)
        assert summary.total == 4
        assert summary.running == 2
        assert summary.sleeping == 1
        assert len(summary.top_cpu) == 2
        assert len(summary.top_memory) == 2
        assert summary.processes == tuple(procs)

    def test_network_totals_skip_loopback_and_idle(self):
        interfaces = [
            NetworkSnapshot("lo", bytes_sent=500, bytes_recv=500),
            NetworkSnapshot("eth0", bytes_sent=100, bytes_recv=200),
            NetworkSnapshot("wlan0", bytes_sent=10, bytes_recv=20),
            NetworkSnapshot("docker0"),
        ]
        summary = summarize_network(interfaces, connections=3)
        assert summary.total_sent == 110
        assert summary.total_recv == 220
        assert summary.active_interfaces == 2
        assert summary.connections == 3
        # loopback is still listed, busiest first
        assert [i.name for i in summary.interfaces] == ["lo", "eth0", "wlan0", "docker0"]

    def test_top_interfaces(self):
        interfaces = [
            NetworkSnapshot("lo", bytes_sent=900),
            NetworkSnapshot("eth1", bytes_sent=5),
            NetworkSnapshot("eth0", bytes_recv=50),
            NetworkSnapshot("tun0"),
        ]
        assert [i.name for i in top_interfaces(interfaces, 8)] == ["eth0", "eth1"]
        assert [i.name for i in top_interfaces(interfaces, 1)] == ["eth0"]
        assert top_interfaces(interfaces, 0) == []

    def test_sort_by_traffic_is_stable(self):
        interfaces = [NetworkSnapshot("a", bytes_sent=1), NetworkSnapshot("b", bytes_recv=1)]
        assert [i.name for i in sort_by_traffic(interfaces)] == ["a", "b"]
