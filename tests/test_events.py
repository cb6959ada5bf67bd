import pytest

from vboycore.events import EVENT_NONONO, Event, IrqSource, SystemHooks


def test_new_hooks_have_nothing_scheduled():
    hooks = SystemHooks()
    assert hooks.next_event() == EVENT_NONONO
    assert hooks.pending_irqs() == []
    assert hooks.exit_requested is False


def test_set_event_records_and_next_event_is_minimum():
    hooks = SystemHooks()
    hooks.set_event(Event.TIMER, 500)
    hooks.set_event(Event.INPUT, 300)
    assert hooks.events[Event.TIMER] == 500
    assert hooks.next_event() == 300
    hooks.set_event(Event.INPUT, EVENT_NONONO)
    assert hooks.next_event() == 500


def test_set_event_accepts_plain_int():
    hooks = SystemHooks()
    hooks.set_event(int(Event.VIP), 259)
    assert hooks.events[Event.VIP] == 259


def test_assert_and_deassert_irq():
    hooks = SystemHooks()
    hooks.assert_irq(IrqSource.VIP, True)
    hooks.assert_irq(IrqSource.INPUT, 1)
    assert hooks.pending_irqs() == [IrqSource.INPUT, IrqSource.VIP]
    hooks.assert_irq(IrqSource.VIP, False)
    assert hooks.pending_irqs() == [IrqSource.INPUT]


def test_exit_loop_sets_flag():
    hooks = SystemHooks()
    hooks.exit_loop()
    assert hooks.exit_requested is True


def test_unknown_ids_raise():
    hooks = SystemHooks()
    with pytest.raises(ValueError):
        hooks.assert_irq(len(IrqSource), True)
    with pytest.raises(ValueError):
        hooks.set_event(len(Event), 0)