import pytest

from vboycore.events import EVENT_NONONO, Event, IrqSource, SystemHooks
from vboycore.savestate import StateError, StateMem
from vboycore.timer import Timer, TimerRegister


@pytest.fixture
def hooks():
    return SystemHooks()


@pytest.fixture
def timer(hooks):
    t = Timer(hooks)
    t.power()
    return t


def test_power_defaults(timer):
    assert timer.get_register(TimerRegister.COUNTER) == 0xFFFF
    assert timer.get_register(TimerRegister.RELOAD_VALUE) == 0xFFFF
    assert timer.get_register(TimerRegister.DIVCOUNTER) == 2000
    assert timer.get_register(TimerRegister.TCR) == 0


def test_counter_bytes_after_power(timer):
    assert timer.read(0, 0x18) == 0xFF
    assert timer.read(0, 0x1C) == 0xFF


def test_control_read_fixed_bits(timer):
    assert timer.read(0, 0x20) & 0xE0 == 0xE0
    assert timer.read(0, 0x20) & 0x02 == 0


def test_reload_written_in_two_halves(timer):
    timer.write(0, 0x18, 0x34)
    timer.write(0, 0x1C, 0x12)
    assert timer.get_register(TimerRegister.RELOAD_VALUE) == 0x1234
    assert timer.ReloadPending


def test_unaligned_write_ignored(timer):
    timer.write(0, 0x19, 0x00)
    assert timer.get_register(TimerRegister.RELOAD_VALUE) == 0xFFFF


def test_enable_schedules_event(timer, hooks):
    timer.write(0, 0x20, 0x01)
    assert hooks.events[Event.TIMER] == 2000


def test_fast_clock_schedules_event(timer, hooks):
    timer.write(0, 0x20, 0x11)
    assert hooks.events[Event.TIMER] == 500


def test_update_disabled_returns_nonono(timer):
    assert timer.update(12345) == EVENT_NONONO


def _arm(timer, reload):
    timer.write(0, 0x18, reload)
    timer.write(0, 0x1C, 0)
    timer.write(0, 0x20, 0x09)


def test_counts_down_to_zero_and_interrupts(timer, hooks):
    _arm(timer, 3)
    timer.update(2 * 2000)
    assert not hooks.irq_lines[IrqSource.TIMER]
    assert timer.read(2 * 2000, 0x20) & 0x02 == 0
    timer.update(3 * 2000)
    assert hooks.irq_lines[IrqSource.TIMER]
    assert timer.read(3 * 2000, 0x20) & 0x02 == 0x02
    assert timer.get_register(TimerRegister.COUNTER) == 0


def test_update_returns_next_tick(timer):
    _arm(timer, 3)
    assert timer.update(100) == 2000


def test_zstat_clear_while_zero_keeps_status(timer, hooks):
    _arm(timer, 3)
    timer.update(3 * 2000)
    timer.write(3 * 2000, 0x20, 0x0D)
    assert not hooks.irq_lines[IrqSource.TIMER]
    assert timer.read(3 * 2000, 0x20) & 0x02 == 0x02


def test_disabling_interrupt_clears_status(timer, hooks):
    _arm(timer, 3)
    timer.update(3 * 2000)
    timer.write(3 * 2000, 0x20, 0x01)
    assert timer.read(3 * 2000, 0x20) & 0x02 == 0
    assert not hooks.irq_lines[IrqSource.TIMER]


def test_set_divcounter_wraps_to_period(timer):
    timer.set_register(TimerRegister.DIVCOUNTER, 2000 + 123)
    assert timer.get_register(TimerRegister.DIVCOUNTER) == 123


def test_set_tcr_masks(timer):
    timer.set_register(TimerRegister.TCR, 0xFF)
    assert timer.get_register(TimerRegister.TCR) == 0x19


def test_unknown_register(timer):
    assert timer.get_register(99) == 0xDEADBEEF


def test_state_round_trip(timer):
    _arm(timer, 7)
    timer.update(5000)
    mem = StateMem()
    timer.state_action(mem, 0)
    mem.seek(0)
    other = Timer(SystemHooks())
    other.state_action(mem, 1)
    for reg in TimerRegister:
        assert other.get_register(reg) == timer.get_register(reg)
    assert other.TimerStatus == timer.TimerStatus
    assert other.ReloadPending == timer.ReloadPending


def test_missing_section_raises(timer):
    with pytest.raises(StateError):
        timer.state_action(StateMem(), 1)