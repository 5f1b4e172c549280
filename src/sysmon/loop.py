"""Event loop: one consumer thread serializing ticks, keys and shutdown."""

import logging
import signal
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime
from queue import Empty, SimpleQueue
from typing import Protocol

from sysmon.frames import (
    MAX_INTERFACE_ROWS,
    MAX_RATE_ROWS,
    NEEDS_NETWORK,
    NEEDS_PROCESSES,
    NEEDS_SYSTEM,
    DisksPayload,
    Frame,
    NetworkPayload,
    OverviewPayload,
    Payload,
    ProcessesPayload,
    SystemPayload,
)
from sysmon.models import (
    MetricSnapshot,
    NetworkSnapshot,
    NetworkSummary,
    ProcessSnapshot,
    ProcessSummary,
    RatePoint,
    StatsBundle,
)
from sysmon.provider import ProviderError
from sysmon.ranking import summarize_network, summarize_processes, top_interfaces
from sysmon.rates import RateTracker
from sysmon.session import (
    Effect,
    EffectKind,
    Event,
    EventKind,
    SessionState,
    View,
    apply,
    clamp_interval,
    event_from_key,
)
from sysmon.sinks import Exporter, SinkError, StatsLog

logger = logging.getLogger(__name__)

# Placed on the intake by stop() and the signal handler
_SHUTDOWN = object()


class Provider(Protocol):
    def poll_system(self) -> MetricSnapshot: ...

    def poll_processes(self) -> list[ProcessSnapshot]: ...

    def poll_network(self) -> list[NetworkSnapshot]: ...

    def count_connections(self) -> int: ...


class Renderer(Protocol):
    def render_frame(self, frame: Frame) -> None: ...

    def loop_closed(self) -> None: ...


class EventLoop:
    """
    Single-threaded reactor for the dashboard.

    Producers (the key handler and the signal handler) only put items on
    one intake queue. The consumer thread takes them in arrival order and
    fully handles each before looking at the next: transition, then polling,
    side effects and rendering. The periodic tick is the intake's read
    timeout, so a change of refresh interval takes effect on the next wait.

    Session state, the rate tracker and the latest snapshots are touched only
    by the consumer thread.
    """

    def __init__(
        self,
        provider: Provider,
        renderer: Renderer,
        *,
        state: SessionState | None = None,
        tracker: RateTracker | None = None,
        stats_log: StatsLog | None = None,
        exporter: Exporter | None = None,
        top_limit: int = 10,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._provider = provider
        self._renderer = renderer
        self._state = state or SessionState()
        self._state = self._with_clamped_interval(self._state)
        self._tracker = tracker or RateTracker()
        self._stats_log = stats_log or StatsLog()
        self._exporter = exporter or Exporter()
        self._top_limit = top_limit
        self._clock = clock
        self._wall_clock = wall_clock

        self._intake: SimpleQueue[object] = SimpleQueue()
        self._thread: threading.Thread | None = None
        self._closed = False
        self._deadline = 0.0

        self._system: MetricSnapshot | None = None
        self._processes: ProcessSummary | None = None
        self._network: NetworkSummary | None = None
        self._rates: list[RatePoint] = []

    @staticmethod
    def _with_clamped_interval(state: SessionState) -> SessionState:
        interval = clamp_interval(state.refresh_interval)
        if interval == state.refresh_interval:
            return state
        # Not an input event: the starting interval is just normalized
        return replace(state, refresh_interval=interval)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_running(self) -> bool:
        """Check if the consumer thread is running."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def is_closed(self) -> bool:
        return self._closed

    # -- producers ------------------------------------------------------

    def submit(self, event: Event) -> None:
        """Queue an event from any thread."""
        self._intake.put(event)

    def submit_key(self, char: str) -> None:
        """Queue the event for one input character."""
        self._intake.put(event_from_key(char))

    def notify_shutdown(self, *_args: object) -> None:
        """Ask the loop to clean up and stop. Safe inside a signal handler."""
        self._intake.put(_SHUTDOWN)

    def install_signal_handlers(
        self,
        signals: Iterable[signal.Signals] = (signal.SIGINT, signal.SIGTERM),
    ) -> None:
        """Route OS shutdown signals into the intake. Main thread only."""
        for sig in signals:
            signal.signal(sig, self.notify_shutdown)

    # -- lifecycle ------------------------------------------------------

    def start(self) -> None:
        """Start the consumer thread."""
        if self.is_running or self._closed:
            return

        self._thread = threading.Thread(
            target=self.run,
            daemon=True,
            name="EventLoop",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the consumer thread.

        Args:
            timeout: How long to wait for the thread to finish (seconds).
        """
        self.notify_shutdown()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def run(self) -> None:
        """Consume events until shutdown or an exit request."""
        logger.info("event loop started, interval=%gs", self._state.refresh_interval)
        try:
            self._refresh()
            self._reset_timer()
            while True:
                item = self._next_item()
                if item is _SHUTDOWN:
                    logger.info("shutdown requested")
                    break
                if not self.dispatch(item):
                    break
        finally:
            self._close()

    def _next_item(self) -> object:
        # A due tick goes ahead of queued input so a key backlog cannot starve it
        if self._clock() >= self._deadline:
            self._reset_timer()
            return Event(EventKind.TICK)
        timeout = max(0.0, self._deadline - self._clock())
        try:
            return self._intake.get(timeout=timeout)
        except Empty:
            # The next tick is always one interval after this one, paused or not
            self._reset_timer()
            return Event(EventKind.TICK)

    def _reset_timer(self) -> None:
        self._deadline = self._clock() + self._state.refresh_interval

    # -- consumer -------------------------------------------------------

    def dispatch(self, event: Event) -> bool:
        """
        Apply one event and carry out its effect.

        Returns False once the session has asked to exit.
        """
        if self._closed or self._state.exit_requested:
            return False

        self._state, effect = apply(self._state, event)
        logger.debug("%s -> %s", event.kind.name, effect.kind.name if effect else None)

        if effect is not None:
            self._perform(effect)
        return not self._state.exit_requested

    def _perform(self, effect: Effect) -> None:
        kind = effect.kind
        if kind is EffectKind.REFRESH:
            self._refresh()
        elif kind is EffectKind.REDRAW:
            self._redraw()
        elif kind is EffectKind.RESCHEDULE:
            self._reset_timer()
            self._redraw()
        elif kind is EffectKind.OPEN_LOG:
            self._open_log()
            self._redraw()
        elif kind is EffectKind.CLOSE_LOG:
            self._stats_log.close()
            self._redraw()
        elif kind is EffectKind.EXPORT:
            self._export(effect.view or self._state.view, effect.refresh_interval or self._state.refresh_interval)
        elif kind is EffectKind.EXIT:
            self._close()

    def _refresh(self) -> None:
        """Poll what the current view needs, then log and repaint."""
        view = self._state.view
        if view in NEEDS_SYSTEM:
            self._poll_system()
        if view in NEEDS_PROCESSES:
            self._poll_processes()
        if view in NEEDS_NETWORK:
            self._poll_network()

        if self._state.logging_enabled:
            self._log_bundle()
        self._redraw()

    def _poll_system(self) -> None:
        try:
            self._system = self._provider.poll_system()
        except ProviderError as exc:
            logger.warning("system poll failed, keeping previous data: %s", exc)

    def _poll_processes(self) -> None:
        try:
            self._processes = summarize_processes(self._provider.poll_processes(), self._top_limit)
        except ProviderError as exc:
            logger.warning("process poll failed, keeping previous data: %s", exc)

    def _poll_network(self) -> None:
        try:
            interfaces = self._provider.poll_network()
        except ProviderError as exc:
            logger.warning("network poll failed, keeping previous data: %s", exc)
            return
        self._rates = self._tracker.compute_rates(interfaces, self._wall_clock())
        self._network = summarize_network(interfaces, self._provider.count_connections())

    def _redraw(self) -> None:
        frame = Frame(state=self._state, payload=self._payload(), rendered_at=datetime.now())
        self._renderer.render_frame(frame)

    def _payload(self) -> Payload:
        view = self._state.view
        if view is View.PROCESSES:
            return ProcessesPayload(summary=self._processes)
        if view is View.NETWORK:
            interfaces = self._network.interfaces if self._network else ()
            return NetworkPayload(
                summary=self._network,
                rates=tuple(self._rates[:MAX_RATE_ROWS]),
                interfaces=tuple(top_interfaces(interfaces, MAX_INTERFACE_ROWS)),
            )
        if view is View.DISKS:
            return DisksPayload(disks=self._system.disks if self._system else None)
        if view is View.SYSTEM:
            return SystemPayload(system=self._system)
        return OverviewPayload(system=self._system, processes=self._processes, network=self._network)

    def _bundle(self) -> StatsBundle:
        return StatsBundle(
            timestamp=datetime.now(),
            system=self._system,
            processes=self._processes,
            network=self._network,
        )

    def _open_log(self) -> None:
        try:
            self._stats_log.open()
        except SinkError:
            logger.exception("could not start stats logging")
            # Roll the flag back; the close intent has nothing to close
            self._state, _ = apply(self._state, Event(EventKind.TOGGLE_LOGGING))

    def _log_bundle(self) -> None:
        try:
            self._stats_log.write(self._bundle())
        except SinkError:
            logger.exception("stats logging failed, turning it off")
            self._stats_log.close()
            self._state, _ = apply(self._state, Event(EventKind.TOGGLE_LOGGING))

    def _export(self, view: View, refresh_interval: float) -> None:
        # Exports always carry fresh data for every category
        self._poll_system()
        self._poll_processes()
        self._poll_network()
        try:
            self._exporter.export(self._bundle(), view, refresh_interval)
        except SinkError:
            logger.exception("export failed")

    def _close(self) -> None:
        """Run shutdown side effects exactly once."""
        if self._closed:
            return
        self._closed = True
        self._stats_log.close()
        logger.info("event loop stopped")
        self._renderer.loop_closed()
