"""Per-interface throughput derived from consecutive network polls."""

import logging
from collections.abc import Iterable

from sysmon.models import NetworkSnapshot, RatePoint

logger = logging.getLogger(__name__)

# Interfaces below this in both directions are treated as idle (KB/s)
NOISE_FLOOR_KBPS = 0.1


def _delta(current: int, previous: int) -> int:
    # A counter that went backwards was reset (reboot, driver reload)
    return max(0, current - previous)


class RateTracker:
    """
    Turns cumulative interface counters into KB/s.

    Holds the previous poll of every interface and the time it was taken.
    The first call only records a baseline. A call whose elapsed time is not
    positive returns nothing and leaves the baseline untouched. Otherwise the
    baseline is replaced by ``current`` after the rates are computed, whether
    or not an interface made it into the output.

    Not thread-safe: one owner calls it serially.
    """

    def __init__(self) -> None:
        self._previous: dict[str, NetworkSnapshot] = {}
        self._last_read: float | None = None

    @property
    def has_baseline(self) -> bool:
        return self._last_read is not None

    @property
    def last_read(self) -> float | None:
        return self._last_read

    def baseline(self, name: str) -> NetworkSnapshot | None:
        """Stored snapshot for an interface, if any."""
        return self._previous.get(name)

    def compute_rates(self, current: Iterable[NetworkSnapshot], now: float) -> list[RatePoint]:
        """
        Compute throughput for every interface seen in both polls.

        Args:
            current: Interface counters from the latest poll.
            now: Time of that poll, in seconds.

        Returns:
            RatePoints above the noise floor, busiest first.
        """
        current = list(current)

        if self._last_read is None:
            self._store(current, now)
            return []

        elapsed = now - self._last_read
        if elapsed <= 0:
            logger.debug("skipping rate computation, elapsed=%.3fs", elapsed)
            return []

        points: list[RatePoint] = []
        for iface in current:
            previous = self._previous.get(iface.name)
            if previous is None:
                continue
            upload = _delta(iface.bytes_sent, previous.bytes_sent) / elapsed / 1024
            download = _delta(iface.bytes_recv, previous.bytes_recv) / elapsed / 1024
            if upload > NOISE_FLOOR_KBPS or download > NOISE_FLOOR_KBPS:
                points.append(RatePoint(iface.name, upload, download, now))

        self._store(current, now)

        # Stable: equal totals keep the order of ``current``
        points.sort(key=lambda p: -p.total_kbps)
        return points

    def _store(self, current: list[NetworkSnapshot], now: float) -> None:
        self._previous = {iface.name: iface for iface in current}
        self._last_read = now
