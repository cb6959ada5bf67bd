"""The game pad and its serial read-out unit."""

from __future__ import annotations

from typing import Optional

from .events import EVENT_NONONO, Event, IrqSource, SystemHooks
from .savestate import Field, StateMem, boolean, scalar, state_action

SCR_S_ABT_DIS = 0x01
SCR_SI_STAT = 0x02
SCR_HW_SI = 0x04
SCR_SOFT_CLK = 0x10
SCR_PARA_SI = 0x20
SCR_K_INT_INH = 0x80

_BIT_CLOCKS = 640
_BITS = 16


def _var(obj: object, attr: str, width: int, signed: bool = False) -> Field:
    return scalar(attr, lambda: getattr(obj, attr),
                  lambda value: setattr(obj, attr, value), width, signed)


class Pad:
    """Latches the controller buttons and shifts them out bit by bit."""

    def __init__(self, hooks: SystemHooks) -> None:
        self.hooks = hooks
        self.instant_read_hack = True
        self.data: Optional[bytes | bytearray | memoryview] = None
        self.IntPending = False
        self.PadData = 0
        self.PadLatched = 0
        self.SCR = 0
        self.SDR = 0
        self.ReadBitPos = 0
        self.ReadCounter = 0
        self.last_ts = 0

    def set_instant_read_hack(self, enabled: bool) -> None:
        self.instant_read_hack = bool(enabled)

    def set_input(self, data) -> None:
        """Attach the buffer whose first two bytes hold the buttons, little-endian."""
        self.data = data

    def _schedule(self, timestamp: int) -> None:
        when = timestamp + self.ReadCounter if self.ReadCounter > 0 else EVENT_NONONO
        self.hooks.set_event(Event.INPUT, when)

    def read(self, timestamp: int, address: int) -> int:
        """Read a byte-wide input register."""
        self.update(timestamp)
        ret = 0
        reg = address & 0xFF
        if reg == 0x10:
            ret = self.PadData if self.instant_read_hack else self.SDR
        elif reg == 0x14:
            ret = (self.PadData if self.instant_read_hack else self.SDR) >> 8
        elif reg == 0x28:
            ret = self.SCR | 0x40 | 0x08 | SCR_HW_SI
            if self.ReadCounter > 0:
                ret |= SCR_SI_STAT
        self._schedule(timestamp)
        return ret & 0xFF

    def write(self, timestamp: int, address: int, value: int) -> None:
        """Write a byte-wide input register."""
        self.update(timestamp)
        value &= 0xFF
        if address & 0xFF == 0x28:
            if (value & SCR_HW_SI) and not (self.SCR & SCR_S_ABT_DIS) and self.ReadCounter <= 0:
                self.PadLatched = self.PadData
                self.ReadBitPos = 0
                self.ReadCounter = _BIT_CLOCKS

            if value & SCR_S_ABT_DIS:
                self.ReadCounter = 0
                self.ReadBitPos = 0

            if value & SCR_K_INT_INH:
                self.IntPending = False
                self.hooks.assert_irq(IrqSource.INPUT, self.IntPending)

            self.SCR = value & (0x80 | 0x20 | 0x10 | 0x01)
        self._schedule(timestamp)

    def frame(self) -> None:
        """Sample the attached button buffer for the new frame."""
        if self.data is None:
            raise RuntimeError("no input buffer attached")
        raw = int.from_bytes(bytes(self.data[:2]), "little")
        self.PadData = ((raw << 2) | 0x2) & 0xFFFF

    def update(self, timestamp: int) -> int:
        """Run the serial unit up to ``timestamp``; return when it next needs service."""
        clocks = timestamp - self.last_ts

        if self.ReadCounter > 0:
            self.ReadCounter -= clocks
            while self.ReadCounter <= 0:
                bit = 1 << self.ReadBitPos
                self.SDR = (self.SDR & ~bit & 0xFFFF) | (self.PadLatched & bit)

                self.ReadBitPos += 1
                if self.ReadBitPos < _BITS:
                    self.ReadCounter += _BIT_CLOCKS
                else:
                    if not (self.SCR & SCR_K_INT_INH):
                        self.IntPending = True
                        self.hooks.assert_irq(IrqSource.INPUT, self.IntPending)
                    break

        self.last_ts = timestamp
        return timestamp + self.ReadCounter if self.ReadCounter > 0 else EVENT_NONONO

    def reset_ts(self) -> None:
        self.last_ts = 0

    def power(self) -> None:
        """Reset to the power-on state."""
        self.last_ts = 0
        self.PadData = 0
        self.PadLatched = 0
        self.SDR = 0
        self.SCR = 0
        self.ReadBitPos = 0
        self.ReadCounter = 0
        self.IntPending = False
        self.hooks.assert_irq(IrqSource.INPUT, False)

    def state_action(self, mem: StateMem, load: int) -> None:
        """Save or restore the INPUT section."""
        fields = [
            _var(self, "PadData", 2),
            _var(self, "PadLatched", 2),
            _var(self, "SCR", 1),
            _var(self, "SDR", 2),
            _var(self, "ReadBitPos", 4),
            _var(self, "ReadCounter", 4, signed=True),
            boolean("IntPending", lambda: self.IntPending,
                    lambda value: setattr(self, "IntPending", value)),
        ]
        state_action(mem, load, fields, "INPUT", False)