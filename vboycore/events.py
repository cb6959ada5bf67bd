"""Shared event, interrupt and 3D-mode identifiers, and the system hooks."""

from __future__ import annotations

import enum

MASTER_CLOCK = 20000000.0
EVENT_NONONO = 0x7FFFFFFF


class Event(enum.IntEnum):
    VIP = 0
    TIMER = 1
    INPUT = 2


class IrqSource(enum.IntEnum):
    INPUT = 0
    TIMER = 1
    EXPANSION = 2
    COMM = 3
    VIP = 4


class Mode3D(enum.IntEnum):
    ANAGLYPH = 0
    CSCOPE = 1
    SIDEBYSIDE = 2
    OVERUNDER = 3
    VLI = 4
    HLI = 5


class SystemHooks:
    """Receives event scheduling, interrupt lines and loop exits from components.

    The base class records what it is told; a system can subclass it to act on it.
    """

    def __init__(self) -> None:
        self.events: dict[Event, int] = {event: EVENT_NONONO for event in Event}
        self.irq_lines: dict[IrqSource, bool] = {source: False for source in IrqSource}
        self.exit_requested = False

    def set_event(self, event: int, timestamp: int) -> None:
        """Schedule the next timestamp at which ``event`` needs servicing."""
        self.events[Event(event)] = timestamp

    def assert_irq(self, source: int, asserted: bool) -> None:
        """Raise or lower the interrupt line of ``source``."""
        self.irq_lines[IrqSource(source)] = bool(asserted)

    def exit_loop(self) -> None:
        """Ask the run loop to stop at the end of the current step."""
        self.exit_requested = True

    def next_event(self) -> int:
        """The earliest scheduled event timestamp."""
        return min(self.events.values())

    def pending_irqs(self) -> list[IrqSource]:
        """The sources whose interrupt line is currently asserted."""
        return [source for source, on in self.irq_lines.items() if on]