import pytest

from vboycore.blip import BlipBuffer
from vboycore.savestate import StateError, StateMem
from vboycore.vsu import VSU


def make_vsu():
    left = BlipBuffer(8192, 1 << 24)
    right = BlipBuffer(8192, 1 << 24)
    return VSU(left, right), left, right


def reg(ch, index):
    return 0x400 + ch * 0x40 + index * 4


def playing(vsu):
    return [(c & 0x80) == 0x80 for c in vsu.intl_control]


def test_poke_wave_masks_address_and_value():
    vsu, _, _ = make_vsu()
    vsu.poke_wave(0, 0x21, 0xFF)
    assert vsu.peek_wave(0, 1) == 0x3F
    assert vsu.peek_wave(0, 0x21) == 0x3F


def test_wave_table_out_of_range():
    vsu, _, _ = make_vsu()
    with pytest.raises(ValueError):
        vsu.peek_wave(5, 0)
    with pytest.raises(ValueError):
        vsu.poke_wave(5, 0, 1)


def test_mod_wave_roundtrip():
    vsu, _, _ = make_vsu()
    vsu.poke_mod_wave(0x23, 0x1AB)
    assert vsu.peek_mod_wave(3) == 0xAB


def test_bus_write_to_wave_and_mod_memory():
    vsu, _, _ = make_vsu()
    vsu.write(0, 0x84, 0x7F)
    assert vsu.peek_wave(1, 1) == 0x3F
    vsu.write(0, 0x280 + 4 * 3, 0x80)
    assert vsu.peek_mod_wave(3) == 0x80


def test_silent_when_nothing_enabled():
    vsu, left, right = make_vsu()
    vsu.end_frame(50000)
    assert set(left.buffer) == {0}
    assert set(right.buffer) == {0}


def test_enabled_channel_outputs_on_left_only():
    vsu, left, right = make_vsu()
    for i in range(16):
        vsu.poke_wave(0, i, 0x3F)
    vsu.write(0, reg(0, 1), 0xF0)
    vsu.write(0, reg(0, 4), 0xF0)
    vsu.write(0, reg(0, 0), 0x80)
    vsu.end_frame(70000)
    assert sum(1 for sample in left.buffer if sample) > 0
    assert set(right.buffer) == {0}


def test_stop_all_channels():
    vsu, _, _ = make_vsu()
    vsu.write(0, reg(0, 0), 0x80)
    vsu.write(0, reg(3, 0), 0x80)
    assert playing(vsu) == [True, False, False, True, False, False]
    vsu.write(10, 0x580, 0x01)
    assert playing(vsu) == [False] * 6


def test_interval_stops_channel():
    vsu, _, _ = make_vsu()
    vsu.write(0, reg(0, 0), 0xA0)
    vsu.end_frame(19000)
    assert playing(vsu)[0] is True
    vsu.end_frame(1000)
    assert playing(vsu)[0] is False


def test_envelope_decays_one_step():
    vsu, _, _ = make_vsu()
    vsu.write(0, reg(0, 4), 0xF0)
    vsu.write(0, reg(0, 5), 0x01)
    vsu.write(0, reg(0, 0), 0x80)
    assert vsu.envelope[0] == 0xF
    vsu.end_frame(76800)
    assert vsu.envelope[0] == 0xF - 1


def test_sweep_raises_frequency_then_stops():
    vsu, _, _ = make_vsu()
    vsu.write(0, reg(4, 3), 0x04)
    vsu.write(0, reg(4, 7), 0x19)
    vsu.write(0, reg(4, 5), 0x40)
    vsu.write(0, reg(4, 0), 0x80)
    assert vsu.eff_freq[4] == 0x400
    vsu.end_frame(4800)
    assert vsu.eff_freq[4] == 0x400 + (0x400 >> 1)
    assert playing(vsu)[4] is True
    vsu.end_frame(4800)
    assert playing(vsu)[4] is False


def test_noise_register_resets_lfsr():
    vsu, _, _ = make_vsu()
    vsu.lfsr = 0x1234
    vsu.write(0, reg(5, 5), 0x00)
    assert vsu.lfsr == 1


def test_noise_latcher_is_zero_or_63():
    vsu, _, _ = make_vsu()
    vsu.write(0, reg(5, 0), 0x80)
    seen = set()
    for _ in range(20):
        vsu.end_frame(120)
        seen.add(vsu.noise_latcher)
    assert seen <= {0, 63}
    assert 0 <= vsu.lfsr <= 0x7FFF


def test_state_roundtrip():
    vsu, _, _ = make_vsu()
    for i in range(32):
        vsu.poke_wave(2, i, i)
        vsu.poke_mod_wave(i, 0xFF - i)
    vsu.write(0, reg(2, 6), 2)
    vsu.write(0, reg(2, 1), 0x9A)
    vsu.write(0, reg(2, 0), 0x80)
    vsu.end_frame(30000)

    mem = StateMem()
    vsu.state_action(mem, 0)
    assert mem.getvalue()[:3] == b"VSU"

    other, _, _ = make_vsu()
    mem.seek(0)
    other.state_action(mem, 1)
    assert [other.peek_wave(2, i) for i in range(32)] == list(range(32))
    assert [other.peek_mod_wave(i) for i in range(32)] == [0xFF - i for i in range(32)]
    assert other.intl_control == vsu.intl_control
    assert other.left_level == vsu.left_level
    assert other.right_level == vsu.right_level
    assert other.wave_pos == vsu.wave_pos
    assert other.freq_counter == vsu.freq_counter
    assert other.effects_clock_divider == vsu.effects_clock_divider
    assert other.ram_address == vsu.ram_address


def test_load_missing_section_raises():
    vsu, _, _ = make_vsu()
    with pytest.raises(StateError):
        vsu.state_action(StateMem(), 1)


def test_power_clears_wave_memory():
    vsu, _, _ = make_vsu()
    vsu.poke_wave(4, 7, 0x22)
    vsu.poke_mod_wave(7, 0x22)
    vsu.power()
    assert vsu.peek_wave(4, 7) == 0
    assert vsu.peek_mod_wave(7) == 0