"""Dashboard session state and its transition function."""

from dataclasses import dataclass, replace
from enum import Enum

MIN_REFRESH_INTERVAL = 1.0
MAX_REFRESH_INTERVAL = 10.0
DEFAULT_REFRESH_INTERVAL = 3.0
REFRESH_STEP = 1.0


class View(Enum):
    """Dashboard views, numbered by the key that selects them."""

    OVERVIEW = 1
    PROCESSES = 2
    NETWORK = 3
    DISKS = 4
    SYSTEM = 5

    @property
    def label(self) -> str:
        return self.name.capitalize()


def clamp_interval(seconds: float) -> float:
    """Keep a refresh interval within [1s, 10s]."""
    return min(MAX_REFRESH_INTERVAL, max(MIN_REFRESH_INTERVAL, seconds))


@dataclass(slots=True, frozen=True)
class SessionState:
    """Complete state of an interactive session."""

    view: View = View.OVERVIEW
    paused: bool = False
    compact: bool = False
    logging_enabled: bool = False
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL
    help_visible: bool = False
    exit_requested: bool = False


class EventKind(Enum):
    SELECT_VIEW = "select_view"
    TOGGLE_HELP = "toggle_help"
    TOGGLE_PAUSE = "toggle_pause"
    TOGGLE_COMPACT = "toggle_compact"
    TOGGLE_LOGGING = "toggle_logging"
    INCREASE_RATE = "increase_rate"
    DECREASE_RATE = "decrease_rate"
    TRIGGER_EXPORT = "trigger_export"
    FORCE_REFRESH = "force_refresh"
    REQUEST_EXIT = "request_exit"
    TICK = "tick"
    UNRECOGNIZED = "unrecognized"


@dataclass(slots=True, frozen=True)
class Event:
    """A discrete input to the session. ``view`` is set only for SELECT_VIEW."""

    kind: EventKind
    view: View | None = None

    @classmethod
    def select_view(cls, view: View) -> "Event":
        return cls(EventKind.SELECT_VIEW, view)


class EffectKind(Enum):
    REDRAW = "redraw"  # state changed, repaint with the data already held
    REFRESH = "refresh"  # poll fresh metrics, then repaint
    RESCHEDULE = "reschedule"  # refresh interval changed
    OPEN_LOG = "open_log"
    CLOSE_LOG = "close_log"
    EXPORT = "export"
    EXIT = "exit"


@dataclass(slots=True, frozen=True)
class Effect:
    """An intent emitted by a transition; the event loop carries it out."""

    kind: EffectKind
    view: View | None = None
    refresh_interval: float | None = None


_KEYMAP: dict[str, EventKind] = {
    "h": EventKind.TOGGLE_HELP,
    "?": EventKind.TOGGLE_HELP,
    "p": EventKind.TOGGLE_PAUSE,
    "c": EventKind.TOGGLE_COMPACT,
    "l": EventKind.TOGGLE_LOGGING,
    "e": EventKind.TRIGGER_EXPORT,
    "r": EventKind.FORCE_REFRESH,
    "+": EventKind.INCREASE_RATE,
    "-": EventKind.DECREASE_RATE,
    "q": EventKind.REQUEST_EXIT,
}


def event_from_key(char: str) -> Event:
    """Map one input character to an event; unknown input is UNRECOGNIZED."""
    if len(char) == 1 and char in "12345":
        return Event.select_view(View(int(char)))
    return Event(_KEYMAP.get(char.lower(), EventKind.UNRECOGNIZED))


def apply(state: SessionState, event: Event) -> tuple[SessionState, Effect | None]:
    """
    Apply one event to the session.

    Total and pure: every (state, event) pair yields a new state and at most
    one effect, and nothing here performs I/O.
    """
    kind = event.kind

    if kind is EventKind.SELECT_VIEW:
        if event.view is None:
            return state, None
        return replace(state, view=event.view, help_visible=False), Effect(EffectKind.REFRESH)

    if kind is EventKind.TOGGLE_HELP:
        return replace(state, help_visible=not state.help_visible), Effect(EffectKind.REDRAW)

    if kind is EventKind.TOGGLE_PAUSE:
        return replace(state, paused=not state.paused), Effect(EffectKind.REDRAW)

    if kind is EventKind.TOGGLE_COMPACT:
        return replace(state, compact=not state.compact), Effect(EffectKind.REDRAW)

    if kind is EventKind.TOGGLE_LOGGING:
        enabled = not state.logging_enabled
        effect = EffectKind.OPEN_LOG if enabled else EffectKind.CLOSE_LOG
        return replace(state, logging_enabled=enabled), Effect(effect)

    if kind in (EventKind.INCREASE_RATE, EventKind.DECREASE_RATE):
        step = REFRESH_STEP if kind is EventKind.INCREASE_RATE else -REFRESH_STEP
        interval = clamp_interval(state.refresh_interval + step)
        if interval == state.refresh_interval:
            return state, None
        new_state = replace(state, refresh_interval=interval)
        return new_state, Effect(EffectKind.RESCHEDULE, refresh_interval=interval)

    if kind is EventKind.TRIGGER_EXPORT:
        return state, Effect(EffectKind.EXPORT, view=state.view, refresh_interval=state.refresh_interval)

    if kind is EventKind.FORCE_REFRESH:
        return state, Effect(EffectKind.REFRESH)

    if kind is EventKind.REQUEST_EXIT:
        return replace(state, exit_requested=True), Effect(EffectKind.EXIT)

    if kind is EventKind.TICK:
        if state.paused or state.help_visible:
            return state, None
        return state, Effect(EffectKind.REFRESH)

    return state, None
