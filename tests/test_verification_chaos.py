"""Verification Test: Chaos Monkey - Random process termination resilience.

Randomly terminate dummy processes while the provider and event loop are
polling, and make sure nothing raises NoSuchProcess or stops refreshing.
A process that vanishes between enumeration and the detail read must be
left out of the result, not reported.
"""

import multiprocessing
import random
import time

import pytest

from sysmon.loop import EventLoop
from sysmon.models import ProcessSnapshot
from sysmon.provider import SnapshotProvider
from sysmon.session import SessionState, View
from sysmon.sinks import Exporter, StatsLog


def dummy_worker(duration: float = 60.0) -> None:
    """A dummy worker process that sleeps for a given duration."""
    try:
        time.sleep(duration)
    except (KeyboardInterrupt, SystemExit):
        pass


class CountingRenderer:
    def __init__(self):
        self.frames = []
        self.closed = 0

    def render_frame(self, frame):
        self.frames.append(frame)

    def loop_closed(self):
        self.closed += 1


class TestChaosMonkey:
    """Chaos Monkey verification suite tests."""

    def test_poll_survives_process_termination(self):
        """Polling must not fail while processes die mid-enumeration."""
        processes = []
        for _ in range(30):
            p = multiprocessing.Process(target=dummy_worker, args=(60.0,))
            p.start()
            processes.append(p)

        provider = SnapshotProvider(cpu_sample_window=0.0)
        try:
            assert len(provider.poll_processes()) > 0

            for p in random.sample(processes, 15):
                p.terminate()
                try:
                    snapshots = provider.poll_processes()
                except Exception as e:
                    pytest.fail(f"poll_processes raised: {e}")
                assert all(isinstance(s, ProcessSnapshot) for s in snapshots)
        finally:
            for p in processes:
                if p.is_alive():
                    p.terminate()
            for p in processes:
                p.join(timeout=1.0)

    def test_terminated_process_is_not_reported(self):
        p = multiprocessing.Process(target=dummy_worker, args=(60.0,))
        p.start()
        time.sleep(0.1)
        pid = p.pid
        p.terminate()
        p.join(timeout=1.0)

        provider = SnapshotProvider(cpu_sample_window=0.0)
        assert pid not in {s.pid for s in provider.poll_processes()}

    def test_event_loop_keeps_refreshing_during_churn(self, tmp_path):
        renderer = CountingRenderer()
        loop = EventLoop(
            SnapshotProvider(cpu_sample_window=0.1),
            renderer,
            state=SessionState(view=View.PROCESSES, refresh_interval=1.0),
            stats_log=StatsLog(tmp_path / "logs"),
            exporter=Exporter(tmp_path / "exports"),
        )
        processes = []
        try:
            loop.start()
            start_time = time.time()
            while time.time() - start_time < 3.0:
                for _ in range(3):
                    p = multiprocessing.Process(target=dummy_worker, args=(10.0,))
                    p.start()
                    processes.append(p)
                alive = [p for p in processes if p.is_alive()]
                for p in random.sample(alive, min(2, len(alive))):
                    p.terminate()
                loop.submit_key("r")
                time.sleep(0.2)

            assert loop.is_running, "Event loop crashed during churn"
        finally:
            loop.stop()
            for p in processes:
                if p.is_alive():
                    p.terminate()
            for p in processes:
                p.join(timeout=0.5)

        assert len(renderer.frames) >= 5
        assert renderer.closed == 1
        assert all(f.payload.summary is not None for f in renderer.frames)
