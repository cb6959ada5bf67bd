"""The programmable interval timer."""

from __future__ import annotations

import enum

from .events import EVENT_NONONO, Event, IrqSource, SystemHooks
from .savestate import Field, StateMem, boolean, scalar, state_action

TC_TENABLE = 0x01
TC_ZSTAT = 0x02
TC_ZSTATCLR = 0x04
TC_TIMZINT = 0x08
TC_TCLKSEL = 0x10

_FAST_PERIOD = 500
_SLOW_PERIOD = 2000
_BAD_REGISTER = 0xDEADBEEF


class TimerRegister(enum.IntEnum):
    """Debugger-visible timer registers."""

    TCR = 0
    DIVCOUNTER = 1
    RELOAD_VALUE = 2
    COUNTER = 3


def _var(obj: object, attr: str, width: int, signed: bool = False) -> Field:
    return scalar(attr, lambda: getattr(obj, attr),
                  lambda value: setattr(obj, attr, value), width, signed)


def _flag(obj: object, attr: str) -> Field:
    return boolean(attr, lambda: getattr(obj, attr),
                   lambda value: setattr(obj, attr, value))


class Timer:
    """A 16-bit down-counter with reload and zero interrupt."""

    def __init__(self, hooks: SystemHooks) -> None:
        self.hooks = hooks
        self.TimerControl = 0
        self.TimerReloadValue = 0
        self.TimerCounter = 0
        self.TimerDivider = 0
        self.TimerStatus = False
        self.TimerStatusShadow = False
        self.ReloadPending = False
        self.last_ts = 0

    def _period(self, control: int) -> int:
        return _FAST_PERIOD if control & TC_TCLKSEL else _SLOW_PERIOD

    def _irq_line(self) -> bool:
        return bool(self.TimerStatusShadow and (self.TimerControl & TC_TIMZINT))

    def power(self) -> None:
        """Reset to the power-on state."""
        self.last_ts = 0
        self.TimerCounter = 0xFFFF
        self.TimerReloadValue = 0xFFFF
        self.TimerDivider = _SLOW_PERIOD
        self.TimerStatus = False
        self.TimerStatusShadow = False
        self.TimerControl = 0
        self.ReloadPending = False
        self.hooks.assert_irq(IrqSource.TIMER, False)

    def update(self, timestamp: int) -> int:
        """Run the timer up to ``timestamp``; return when it next needs service."""
        run_time = timestamp - self.last_ts

        if self.TimerControl & TC_TENABLE:
            self.TimerDivider -= run_time
            while self.TimerDivider <= 0:
                if not self.TimerCounter or self.ReloadPending:
                    self.TimerCounter = self.TimerReloadValue
                    self.ReloadPending = False

                if self.TimerCounter:
                    self.TimerCounter -= 1

                if not self.TimerCounter or self.TimerStatus:
                    self.TimerStatus = True
                    self.TimerStatusShadow = True

                self.hooks.assert_irq(IrqSource.TIMER, self._irq_line())
                self.TimerDivider += self._period(self.TimerControl)

        self.last_ts = timestamp

        if self.TimerControl & TC_TENABLE:
            return timestamp + self.TimerDivider
        return EVENT_NONONO

    def reset_ts(self) -> None:
        self.last_ts = 0

    def read(self, timestamp: int, address: int) -> int:
        """Read a byte-wide timer register."""
        self.update(timestamp)
        reg = address & 0xFF
        if reg == 0x18:
            return self.TimerCounter & 0xFF
        if reg == 0x1C:
            return (self.TimerCounter >> 8) & 0xFF
        if reg == 0x20:
            status = TC_ZSTAT if self.TimerStatus else 0
            return (self.TimerControl | 0xE0 | TC_ZSTATCLR | status) & 0xFF
        return 0

    def write(self, timestamp: int, address: int, value: int) -> None:
        """Write a byte-wide timer register; unaligned addresses are ignored."""
        if address & 0x3:
            return

        self.update(timestamp)
        value &= 0xFF
        reg = address & 0xFF

        if reg == 0x18:
            self.TimerReloadValue = (self.TimerReloadValue & 0xFF00) | value
            self.ReloadPending = True
        elif reg == 0x1C:
            self.TimerReloadValue = (self.TimerReloadValue & 0x00FF) | (value << 8)
            self.ReloadPending = True
        elif reg == 0x20:
            if value & TC_ZSTATCLR:
                # Clearing while the enabled counter sits at zero does not stick.
                if not ((self.TimerControl & TC_TENABLE) and self.TimerCounter == 0):
                    self.TimerStatus = False
                self.TimerStatusShadow = False

            if (value & TC_TENABLE) and not (self.TimerControl & TC_TENABLE):
                self.TimerDivider = self._period(value)

            self.TimerControl = value & (TC_TCLKSEL | TC_TIMZINT | TC_TENABLE)

            if not (self.TimerControl & TC_TIMZINT):
                self.TimerStatus = False
                self.TimerStatusShadow = False

            self.hooks.assert_irq(IrqSource.TIMER, self._irq_line())

            if self.TimerControl & TC_TENABLE:
                self.hooks.set_event(Event.TIMER, timestamp + self.TimerDivider)

    def state_action(self, mem: StateMem, load: int) -> None:
        """Save or restore the TIMER section."""
        fields = [
            _var(self, "TimerCounter", 2),
            _var(self, "TimerReloadValue", 2),
            _var(self, "TimerDivider", 4, signed=True),
            _flag(self, "TimerStatus"),
            _flag(self, "TimerStatusShadow"),
            _var(self, "TimerControl", 1),
            _flag(self, "ReloadPending"),
        ]
        state_action(mem, load, fields, "TIMER", False)

    def get_register(self, reg: int) -> int:
        """Return a debugger register, or 0xDEADBEEF for an unknown one."""
        if reg == TimerRegister.TCR:
            return self.TimerControl
        if reg == TimerRegister.DIVCOUNTER:
            return self.TimerDivider & 0xFFFFFFFF
        if reg == TimerRegister.RELOAD_VALUE:
            return self.TimerReloadValue
        if reg == TimerRegister.COUNTER:
            return self.TimerCounter
        return _BAD_REGISTER

    def set_register(self, reg: int, value: int) -> None:
        """Set a debugger register; unknown registers are ignored."""
        if reg == TimerRegister.TCR:
            self.TimerControl = value & (TC_TENABLE | TC_TIMZINT | TC_TCLKSEL)
        elif reg == TimerRegister.DIVCOUNTER:
            self.TimerDivider = (value & 0xFFFFFFFF) % self._period(self.TimerControl)
        elif reg == TimerRegister.RELOAD_VALUE:
            self.TimerReloadValue = value & 0xFFFF
        elif reg == TimerRegister.COUNTER:
            self.TimerCounter = value & 0xFFFF